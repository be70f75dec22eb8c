"""Tests for the conversation memory compressor."""

from __future__ import annotations

from datetime import datetime, timezone

from src.forge.models.context_models import ConversationMemory, MemoryMessage
from src.forge.services.conversation_compressor import (
    append_message,
    compress_memory,
    count_tokens,
    estimate_tokens,
    summarize_messages,
)

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def _memory_with(count: int, chars: int) -> ConversationMemory:
    messages = [MemoryMessage(role="user", content=f"{i:04d}" + "x" * (chars - 4)) for i in range(count)]
    return ConversationMemory(messages=messages, token_count=count_tokens(messages))


def test_estimate_tokens_rounds_up() -> None:
    assert estimate_tokens("") == 0
    assert estimate_tokens("abcd") == 1
    assert estimate_tokens("abcde") == 2


def test_no_compression_at_or_below_threshold() -> None:
    memory = _memory_with(15, 4000)  # exactly 15000 tokens

    assert compress_memory(memory, now=NOW) is False
    assert len(memory.messages) == 15
    assert memory.last_compression is None


def test_compression_keeps_last_ten_and_summarizes_the_rest() -> None:
    memory = _memory_with(20, 4000)  # 20000 tokens
    kept = [message.content for message in memory.messages[-10:]]

    assert compress_memory(memory, now=NOW) is True

    assert [message.content for message in memory.messages] == kept
    assert memory.token_count == count_tokens(memory.messages) == 10000
    assert memory.last_compression == NOW
    assert "Messages compressed: 10" in memory.context


def test_compression_is_idempotent_once_under_threshold() -> None:
    memory = _memory_with(20, 4000)
    compress_memory(memory, now=NOW)
    snapshot = memory.model_copy(deep=True)

    assert compress_memory(memory, now=datetime(2025, 1, 1, tzinfo=timezone.utc)) is False
    assert memory == snapshot


def test_over_threshold_with_nothing_older_is_a_no_op() -> None:
    memory = _memory_with(5, 16000)

    assert compress_memory(memory, now=NOW) is False
    assert len(memory.messages) == 5
    assert memory.context == ""


def test_append_message_triggers_compression() -> None:
    memory = _memory_with(14, 4000)
    for _ in range(2):
        assert append_message(memory, "assistant", "y" * 100, now=NOW) is False
    assert len(memory.messages) == 16

    compressed = append_message(memory, "user", "z" * 4000, now=NOW)

    assert compressed is True
    assert len(memory.messages) == 10
    assert memory.messages[-1].content == "z" * 4000
    assert memory.token_count == count_tokens(memory.messages)


def test_summary_extracts_technologies_decisions_and_code_blocks() -> None:
    messages = [
        MemoryMessage(role="user", content="Let's build it in React with TypeScript and a REST api."),
        MemoryMessage(role="assistant", content="We decided to use Zustand for state. " + "a" * 300),
        MemoryMessage(role="assistant", content="```tsx\nconst A = () => null\n```\n```css\n.a{}\n```"),
        MemoryMessage(role="user", content="react again, plus a database"),
    ]

    summary = summarize_messages(messages)
    lines = summary.splitlines()

    assert lines[0] == "Conversation Summary:"
    assert lines[1] == "- Key technologies: react, typescript, api, database"
    assert lines[2].startswith("- Important decisions: We decided to use Zustand")
    assert len(lines[2]) == len("- Important decisions: ") + 200
    assert lines[3] == "- Code examples generated: 2 blocks"
    assert lines[4] == "- Messages compressed: 4"


def test_summary_keeps_at_most_three_decisions() -> None:
    messages = [MemoryMessage(role="user", content=f"we decided option {i}") for i in range(5)]

    decisions_line = summarize_messages(messages).splitlines()[2]

    assert decisions_line == "- Important decisions: we decided option 0; we decided option 1; we decided option 2"
