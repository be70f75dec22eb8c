"""
Exceptions raised across the Forge context layer.

Only template lookups and import-format problems are meant to reach the
caller as hard failures. Storage and generation errors are caught at the
service boundary that owns them and turned into a logged, degraded result.
"""
from __future__ import annotations

from typing import Optional


class ForgeError(Exception):
    """Base class for all Forge errors."""


class TemplateNotFoundError(ForgeError, KeyError):
    """Raised when a prompt template id is not registered."""

    def __init__(self, template_id: str) -> None:
        super().__init__(f"Template {template_id} not found")
        self.template_id = template_id

    def __str__(self) -> str:
        return self.args[0]


class ContextFormatError(ForgeError, ValueError):
    """
    Raised when an exported context bundle cannot be imported.

    The store is never partially written when this is raised.
    """


class StorageError(ForgeError):
    """
    Raised by a persistence backend when a read/write/remove fails.

    Args:
        message: Human-readable description of the error.
        key: Storage key involved in the failed operation.
        cause: Optional underlying exception.
    """

    def __init__(
        self,
        message: str,
        *,
        key: Optional[str] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.key = key
        self.__cause__ = cause


class ConversationBusyError(ForgeError):
    """Raised when a message is sent while another one is still in flight."""


class LLMServiceError(ForgeError):
    """
    Base exception for failures that originate from the AI generation call.

    Args:
        message: Human-readable description of the error.
        agent_name: Optional model/agent identifier associated with the failure.
        cause: Optional underlying exception that triggered the failure.
    """

    def __init__(
        self,
        message: str,
        *,
        agent_name: Optional[str] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.agent_name = agent_name
        self.__cause__ = cause


class LLMRateLimitError(LLMServiceError):
    """
    Raised when an LLM provider signals that the client exceeded a rate limit
    or quota threshold.
    """


class LLMTimeoutError(LLMServiceError):
    """
    Raised when an LLM provider request exceeds the allotted timeout window.
    """


class LLMConnectionError(LLMServiceError):
    """
    Raised when the client cannot reach the LLM provider due to network
    connectivity issues.
    """


class LLMEmptyResponseError(LLMServiceError):
    """Raised when the provider finished without returning any usable text."""
