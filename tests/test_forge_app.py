"""Tests for ForgeApp - service wiring, the chat loop and context bundles."""

from __future__ import annotations

import io
import json
from pathlib import Path
from typing import Any, Dict, Iterator, List

import pytest

from src.forge.app.forge_app import ForgeApp, build_arg_parser
from src.forge.models.chat_models import ToolType
from src.forge.models.exceptions import ContextFormatError
from src.forge.services.storage_backends import InMemoryStorage
from src.forge.services.user_settings_manager import normalize_settings
from src.providers.base import LLMProvider


class EchoProvider(LLMProvider):
    def __init__(self) -> None:
        self.prompts: List[str] = []

    @property
    def provider_name(self) -> str:
        return "Echo"

    def get_available_models(self) -> List[str]:
        return ["echo"]

    def stream_chat(self, model_name: str, prompt: str, config: Dict[str, Any]) -> Iterator[str]:
        self.prompts.append(prompt)
        yield "echo reply"


@pytest.fixture
def app() -> ForgeApp:
    settings = normalize_settings({"model": "echo", "default_framework": "svelte"})
    forge = ForgeApp(settings=settings, provider=EchoProvider(), storage=InMemoryStorage())
    forge.open_project("demo")
    return forge


def test_arg_parser_defaults() -> None:
    args = build_arg_parser().parse_args([])

    assert args.project == "default_project"
    assert args.memory_store is False
    assert args.import_path is None


def test_app_wires_settings_into_orchestrator(app: ForgeApp) -> None:
    app.orchestrator.send_message("Hello")

    assert app.llm_service.model_name == "echo"
    history = app.context_manager.get_generation_history()
    assert history.attempts[0].framework == "svelte"


def test_run_loop_handles_chat_and_tool_commands(app: ForgeApp) -> None:
    stdin = io.StringIO("/tool debug\n\nwhy is it broken?\n/tool teleport\n/quit\nnever sent\n")
    stdout = io.StringIO()

    app.run(stdin=stdin, stdout=stdout)

    output = stdout.getvalue()
    assert "Forge chat for project 'demo'" in output
    assert "[system] Switched to DEBUG mode" in output
    assert "forge:debug> echo reply" in output
    assert "[error] Unknown tool 'teleport'" in output
    assert app.orchestrator.current_tool is ToolType.DEBUG
    assert [message.content for message in app.context_manager.get_conversation_memory().messages] == [
        "why is it broken?",
        "echo reply",
    ]


def test_export_and_import_round_trip(app: ForgeApp, tmp_path: Path) -> None:
    app.context_manager.set_user_intent("Ship the dashboard")
    bundle_path = tmp_path / "exports" / "demo.json"

    app.export_context(bundle_path)
    app.context_manager.clear_context()
    app.import_context(bundle_path)

    assert json.loads(bundle_path.read_text(encoding="utf-8"))["projectState"]["projectId"] == "demo"
    assert app.context_manager.get_project_state().ai_memory.user_intent == "Ship the dashboard"


def test_import_missing_file_raises_format_error(app: ForgeApp, tmp_path: Path) -> None:
    with pytest.raises(ContextFormatError):
        app.import_context(tmp_path / "missing.json")


def test_import_undecodable_file_raises_format_error(app: ForgeApp, tmp_path: Path) -> None:
    app.context_manager.set_user_intent("keep me")
    bundle_path = tmp_path / "bad.bin"
    bundle_path.write_bytes(b"\xff\xfe\xfa not json")

    with pytest.raises(ContextFormatError):
        app.import_context(bundle_path)

    assert app.context_manager.get_project_state().ai_memory.user_intent == "keep me"
