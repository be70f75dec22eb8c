"""
Keeps ConversationMemory bounded by folding old turns into a text summary.

Compression is lossy and one-way: once older messages are summarized their
exact text cannot be recovered. Token counts are a coarse 4-characters-per-token
estimate used only for pacing.
"""

import logging
import math
import re
from datetime import datetime
from typing import Iterable, List, Optional

from src.forge.config import CHARS_PER_TOKEN, COMPRESSION_TOKEN_THRESHOLD, RECENT_MESSAGES_KEPT
from src.forge.models.context_models import ConversationMemory, MemoryMessage, utc_now

logger = logging.getLogger(__name__)

TECH_VOCABULARY = (
    "react",
    "vue",
    "angular",
    "laravel",
    "typescript",
    "javascript",
    "component",
    "function",
    "api",
    "database",
)
DECISION_MARKERS = ("decided", "chosen", "will use")
MAX_DECISION_CHARS = 200
MAX_SUMMARY_DECISIONS = 3

_TECH_PATTERN = re.compile(r"\b(" + "|".join(TECH_VOCABULARY) + r")\b")
_CODE_BLOCK_PATTERN = re.compile(r"```[\s\S]*?```")


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def count_tokens(messages: Iterable[MemoryMessage]) -> int:
    return sum(estimate_tokens(message.content) for message in messages)


def summarize_messages(messages: List[MemoryMessage]) -> str:
    """
    Build the rolling context summary for a batch of compressed messages.

    Captures the technology keywords mentioned, up to three decision-like
    messages (each cut to 200 characters), how many fenced code blocks were
    exchanged, and how many messages were folded in.
    """
    topics: List[str] = []
    decisions: List[str] = []
    code_blocks = 0

    for message in messages:
        content = message.content
        lowered = content.lower()

        code_blocks += len(_CODE_BLOCK_PATTERN.findall(content))

        if any(marker in lowered for marker in DECISION_MARKERS):
            decisions.append(content[:MAX_DECISION_CHARS])

        for term in _TECH_PATTERN.findall(lowered):
            if term not in topics:
                topics.append(term)

    return "\n".join(
        [
            "Conversation Summary:",
            f"- Key technologies: {', '.join(topics)}",
            f"- Important decisions: {'; '.join(decisions[:MAX_SUMMARY_DECISIONS])}",
            f"- Code examples generated: {code_blocks} blocks",
            f"- Messages compressed: {len(messages)}",
        ]
    )


def compress_memory(
    memory: ConversationMemory,
    now: Optional[datetime] = None,
    threshold: int = COMPRESSION_TOKEN_THRESHOLD,
    keep_recent: int = RECENT_MESSAGES_KEPT,
) -> bool:
    """
    Fold everything but the most recent messages into ``memory.context``.

    Runs only when the estimated token count exceeds ``threshold`` and there
    is at least one message older than the retained window, so calling it on
    an already-compressed memory is a no-op.

    Returns:
        True if the memory was compressed.
    """
    if memory.token_count <= threshold:
        return False

    older = memory.messages[:-keep_recent] if keep_recent else list(memory.messages)
    if not older:
        logger.debug(
            "Conversation over threshold (%d tokens) but nothing older than the last %d messages",
            memory.token_count,
            keep_recent,
        )
        return False

    recent = memory.messages[-keep_recent:] if keep_recent else []
    memory.context = summarize_messages(older)
    memory.messages = list(recent)
    memory.token_count = count_tokens(recent)
    memory.last_compression = now or utc_now()

    logger.info(
        "Compressed conversation memory: %d messages summarized, %d retained (~%d tokens)",
        len(older),
        len(recent),
        memory.token_count,
    )
    return True


def append_message(
    memory: ConversationMemory,
    role: str,
    content: str,
    now: Optional[datetime] = None,
) -> bool:
    """
    Append a message, refresh the token estimate and compress when needed.

    Returns:
        True if appending triggered a compression.
    """
    timestamp = now or utc_now()
    memory.messages.append(MemoryMessage(role=role, content=content, timestamp=timestamp))
    memory.token_count = count_tokens(memory.messages)
    return compress_memory(memory, now=timestamp)
