from abc import ABC, abstractmethod
from typing import Any, Dict, Iterator, List


class LLMProvider(ABC):
    """
    Contract for the model back ends the Forge generation service can call.

    Concrete providers stream text chunks; joining them is the caller's job.
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Display name of the provider (e.g. 'Ollama')."""

    @abstractmethod
    def get_available_models(self) -> List[str]:
        """
        Returns the model identifiers this provider can serve.
        """

    @abstractmethod
    def stream_chat(self, model_name: str, prompt: str, config: Dict[str, Any]) -> Iterator[str]:
        """
        Streams a completion for a single prompt.

        Args:
            model_name: Model to run.
            prompt: Full prompt text.
            config: Generation parameters such as 'temperature' and 'top_p'.

        Yields:
            Chunks of the response text.
        """

    def stream_chat_structured(
        self,
        model_name: str,
        messages: List[Dict[str, str]],
        config: Dict[str, Any],
    ) -> Iterator[str]:
        """
        Streams a completion for role-tagged messages.

        Providers without native role support inherit this flattening: system
        text goes first unprefixed, other roles get a 'Role: ' prefix.
        """
        parts = []
        for message in messages:
            prefix = "" if message["role"] == "system" else f"{message['role'].capitalize()}: "
            parts.append(f"{prefix}{message['content']}")
        return self.stream_chat(model_name, "\n\n".join(parts), config)
