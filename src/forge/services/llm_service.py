import asyncio
import logging
import socket
from typing import Any, Dict, List, Optional, Tuple

from src.forge.config import GENERATION_DEFAULTS
from src.forge.models.event_types import GENERATION_FAILED
from src.forge.models.events import Event
from src.forge.models.exceptions import (
    LLMConnectionError,
    LLMEmptyResponseError,
    LLMRateLimitError,
    LLMServiceError,
    LLMTimeoutError,
)
from src.forge.models.generation_models import GenerationRequest
from src.providers.base import LLMProvider

logger = logging.getLogger(__name__)


class LLMService:
    """
    The AI generation boundary used by the chat orchestrator.

    Responsibilities:
    - Turn a GenerationRequest into a provider call (plain or role-structured).
    - Join the streamed chunks into one response string.
    - Classify provider failures into the LLMServiceError family.

    Each request is attempted exactly once; callers decide how to surface a
    failure.
    """

    def __init__(self, provider: LLMProvider, model_name: str, event_bus: Optional[Any] = None) -> None:
        self.provider = provider
        self.model_name = model_name
        self.event_bus = event_bus
        logger.info("LLMService using %s model '%s'", provider.provider_name, model_name)

    def generate(self, request: GenerationRequest) -> str:
        """
        Run a single generation request to completion.

        Args:
            request: Prompt, generation options and optional system prompt.

        Returns:
            The full response text.

        Raises:
            LLMServiceError: If the provider fails or returns no usable text.
        """
        config = self._build_config(request)
        try:
            if request.system_prompt:
                messages: List[Dict[str, str]] = [
                    {"role": "system", "content": request.system_prompt},
                    {"role": "user", "content": request.prompt},
                ]
                stream = self.provider.stream_chat_structured(self.model_name, messages, config)
            else:
                stream = self.provider.stream_chat(self.model_name, request.prompt, config)
            response = "".join(chunk for chunk in stream if chunk)
        except Exception as exc:
            error = self._categorize_exception(exc)
            logger.error("Generation with model '%s' failed: %s", self.model_name, error)
            self._dispatch_failure_event(error)
            raise error from exc

        if not response.strip():
            error = LLMEmptyResponseError(
                f"Model '{self.model_name}' returned an empty response", agent_name=self.model_name
            )
            logger.warning("%s", error)
            self._dispatch_failure_event(error)
            raise error

        logger.debug("Generation with model '%s' returned %d chars", self.model_name, len(response))
        return response

    def get_available_models(self) -> List[str]:
        return self.provider.get_available_models()

    @staticmethod
    def _build_config(request: GenerationRequest) -> Dict[str, Any]:
        config: Dict[str, Any] = {
            "temperature": request.options.temperature,
            "top_p": GENERATION_DEFAULTS["top_p"],
        }
        if request.options.max_tokens:
            config["max_tokens"] = request.options.max_tokens
        return config

    def _dispatch_failure_event(self, error: LLMServiceError) -> None:
        if not self.event_bus:
            return
        self.event_bus.dispatch(
            Event(
                event_type=GENERATION_FAILED,
                payload={"message": str(error), "error_type": type(error).__name__},
            )
        )

    # ------------------------------------------------------------------ #
    # Failure classification
    # ------------------------------------------------------------------ #

    def _categorize_exception(self, exc: Exception) -> LLMServiceError:
        """
        Classify a provider exception.

        Args:
            exc: The exception raised by the provider.

        Returns:
            The matching LLMServiceError subclass, wrapping ``exc``.
        """
        if isinstance(exc, LLMServiceError):
            return exc

        if self._is_timeout_error(exc):
            return LLMTimeoutError(
                f"Timeout while generating with '{self.model_name}': {exc}", agent_name=self.model_name, cause=exc
            )
        if self._is_rate_limit_error(exc):
            return LLMRateLimitError(
                f"Rate limit encountered with '{self.model_name}': {exc}", agent_name=self.model_name, cause=exc
            )
        if self._is_connection_error(exc):
            return LLMConnectionError(
                f"Connection issue while generating with '{self.model_name}': {exc}",
                agent_name=self.model_name,
                cause=exc,
            )
        return LLMServiceError(
            f"Unhandled provider error with '{self.model_name}': {exc}", agent_name=self.model_name, cause=exc
        )

    @staticmethod
    def _is_timeout_error(exc: Exception) -> bool:
        timeout_types: Tuple[type, ...] = (asyncio.TimeoutError, TimeoutError, socket.timeout)
        if isinstance(exc, timeout_types):
            return True
        message = str(exc).lower()
        return "timeout" in message or "timed out" in message

    @staticmethod
    def _is_rate_limit_error(exc: Exception) -> bool:
        # ollama.ResponseError and most HTTP client errors expose the status code.
        if getattr(exc, "status_code", None) == 429:
            return True
        message = str(exc).lower()
        return "rate limit" in message or "quota" in message

    @staticmethod
    def _is_connection_error(exc: Exception) -> bool:
        connection_indicators = (
            "connection reset",
            "connection aborted",
            "connection refused",
            "temporary failure in name resolution",
            "network unreachable",
            "connection closed",
            "failed to connect",
        )
        if isinstance(exc, (ConnectionError, socket.gaierror)):
            return True
        message = str(exc).lower()
        return any(indicator in message for indicator in connection_indicators)
