import uuid
from datetime import datetime
from enum import Enum
from typing import List, Literal, Optional

from pydantic import Field

from src.forge.models.context_models import CamelModel, utc_now


class ToolType(str, Enum):
    """AI operating modes a conversation can switch between."""

    DEBUG = "debug"
    OPTIMIZE = "optimize"
    GENERATE = "generate"
    ANALYZE = "analyze"
    REFACTOR = "refactor"


# Tools whose responses are expected to contain code.
CODE_PRODUCING_TOOLS = frozenset({ToolType.DEBUG, ToolType.OPTIMIZE, ToolType.GENERATE, ToolType.REFACTOR})


class ToolCommand(CamelModel):
    """A parsed slash command such as ``/debug fix the login form``."""

    command: ToolType
    args: List[str] = Field(default_factory=list)
    context: str = ""


class ChatMessageMetadata(CamelModel):
    code_generated: bool = False
    files_affected: List[str] = Field(default_factory=list)
    tools_used: List[str] = Field(default_factory=list)
    error_fixed: bool = False
    optimization_applied: bool = False


class ChatMessage(CamelModel):
    """
    A single message in the in-memory chat transcript.

    Attributes:
        id: Unique message identifier.
        role: 'user', 'assistant' or 'system'.
        content: Message text.
        timestamp: When the message was created.
        tool: Tool active when the message was produced, if any.
        metadata: Flags describing what an assistant turn did.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    role: Literal["user", "assistant", "system"]
    content: str
    timestamp: datetime = Field(default_factory=utc_now)
    tool: Optional[ToolType] = None
    metadata: Optional[ChatMessageMetadata] = None
