"""Slash-command parsing and keyword-based tool detection for chat input."""

import logging
import re
from typing import List, Optional, Tuple, Union

from src.forge.models.chat_models import ToolCommand, ToolType

logger = logging.getLogger(__name__)

SLASH_COMMAND_PATTERN = re.compile(
    r"^/(debug|optimize|generate|analyze|refactor)\s*(.*)$",
    re.IGNORECASE | re.DOTALL,
)

# Checked in order; the first family with a match wins.
KEYWORD_FAMILIES: List[Tuple[ToolType, Tuple[str, ...]]] = [
    (ToolType.DEBUG, ("error", "bug", "not working", "fix", "issue", "broken")),
    (ToolType.OPTIMIZE, ("slow", "optimize", "performance", "improve", "faster", "efficiency")),
    (
        ToolType.GENERATE,
        ("full project", "complete app", "entire system", "whole application", "project structure"),
    ),
    (ToolType.REFACTOR, ("refactor", "restructure", "reorganize", "clean up")),
    (ToolType.ANALYZE, ("analyze", "review", "examine", "assess")),
]


def parse_tool_command(text: str) -> Optional[ToolCommand]:
    """
    Parse a leading ``/tool`` command.

    Returns:
        ToolCommand whose ``context`` is the remainder of the message and whose
        ``args`` are its whitespace-separated words, or None when the text does
        not start with a known slash command.
    """
    match = SLASH_COMMAND_PATTERN.match(text.strip())
    if not match:
        return None
    remainder = match.group(2).strip()
    return ToolCommand(command=ToolType(match.group(1).lower()), args=remainder.split(), context=remainder)


def detect_tool(text: str) -> Optional[ToolType]:
    lowered = text.lower()
    for tool, keywords in KEYWORD_FAMILIES:
        if any(keyword in lowered for keyword in keywords):
            return tool
    return None


def resolve_tool(text: str, forced: Optional[Union[ToolType, str]] = None) -> Optional[ToolType]:
    """Pick the tool for a message: slash command, then forced tool, then keywords."""
    command = parse_tool_command(text)
    if command is not None:
        return command.command
    if forced:
        return ToolType(forced)
    tool = detect_tool(text)
    if tool is not None:
        logger.debug("Detected tool '%s' from message keywords", tool.value)
    return tool
