"""Ollama provider for Forge."""
import logging
import os
from typing import Any, Dict, Iterator, List, Optional

import ollama

from src.providers.base import LLMProvider

logger = logging.getLogger(__name__)

DEFAULT_OLLAMA_HOST = "http://localhost:11434"


class OllamaProvider(LLMProvider):
    """
    Provider for models served by a local Ollama daemon.

    The server location comes from the ``host`` argument, then the
    OLLAMA_HOST environment variable, then the Ollama default.
    """

    def __init__(self, host: Optional[str] = None, client: Optional[Any] = None) -> None:
        self.host = host or os.getenv("OLLAMA_HOST") or DEFAULT_OLLAMA_HOST
        self.client = client if client is not None else ollama.Client(host=self.host)
        logger.info("OllamaProvider initialized with host: %s", self.host)

    @property
    def provider_name(self) -> str:
        return "Ollama"

    def get_available_models(self) -> List[str]:
        """
        Query the Ollama server for installed models.

        Returns an empty list when the server cannot be reached.
        """
        try:
            response = self.client.list()
        except (ollama.ResponseError, ConnectionError) as exc:
            logger.warning("Failed to list Ollama models (is Ollama running?): %s", exc)
            return []

        models = [entry["model"] for entry in response["models"]]
        if not models:
            logger.warning("No Ollama models found. Install models with: ollama pull <model-name>")
        return models

    @staticmethod
    def _options(config: Dict[str, Any]) -> Dict[str, Any]:
        options = {
            "temperature": config.get("temperature", 0.7),
            "top_p": config.get("top_p", 0.95),
        }
        if config.get("max_tokens"):
            options["num_predict"] = config["max_tokens"]
        return options

    def stream_chat(self, model_name: str, prompt: str, config: Dict[str, Any]) -> Iterator[str]:
        """
        Stream a completion from Ollama's generate endpoint.

        Args:
            model_name: The Ollama model identifier.
            prompt: The prompt to send.
            config: Generation parameters.

        Yields:
            Response chunks as strings.
        """
        response = self.client.generate(model=model_name, prompt=prompt, stream=True, options=self._options(config))
        for chunk in response:
            text = chunk["response"]
            if text:
                yield text

    def stream_chat_structured(
        self,
        model_name: str,
        messages: List[Dict[str, str]],
        config: Dict[str, Any],
    ) -> Iterator[str]:
        """Stream a completion from Ollama's chat endpoint using role-tagged messages."""
        response = self.client.chat(model=model_name, messages=messages, stream=True, options=self._options(config))
        for chunk in response:
            content = chunk["message"]["content"]
            if content:
                yield content
