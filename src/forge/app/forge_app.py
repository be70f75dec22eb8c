import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, TextIO

from src.forge.app.event_bus import EventBus
from src.forge.models.chat_models import ToolType
from src.forge.models.event_types import CONVERSATION_COMPRESSED, GENERATION_FAILED, TOOL_SWITCHED
from src.forge.models.events import Event
from src.forge.models.exceptions import ContextFormatError, ForgeError
from src.forge.services.chat_orchestrator import ChatOrchestrator
from src.forge.services.context_store import ContextStore
from src.forge.services.llm_service import LLMService
from src.forge.services.logging_service import LoggingService
from src.forge.services.project_context_manager import ProjectContextManager
from src.forge.services.prompt_engine import PromptEngine
from src.forge.services.storage_backends import InMemoryStorage, KeyValueStorage, SqliteStorage
from src.forge.services.template_registry import TemplateRegistry
from src.forge.services.user_settings_manager import load_user_settings
from src.providers.base import LLMProvider
from src.providers.ollama_provider import OllamaProvider

logger = logging.getLogger(__name__)

QUIT_COMMANDS = {"/quit", "/exit"}


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Forge: AI app-builder chat with persistent project memory.")
    parser.add_argument("--project", default="default_project", help="Project identifier to open.")
    parser.add_argument("--model", help="Model name to use (overrides the settings file).")
    parser.add_argument(
        "--memory-store",
        action="store_true",
        help="Keep context documents in memory only instead of the sqlite database.",
    )
    parser.add_argument("--export", metavar="PATH", help="Write the project's context bundle to PATH and exit.")
    parser.add_argument("--import", dest="import_path", metavar="PATH", help="Load a context bundle from PATH.")
    parser.add_argument("--clear", action="store_true", help="Remove all context documents for the project.")
    parser.add_argument("--debug", action="store_true", help="Log at DEBUG level on the console.")
    return parser


class ForgeApp:
    """
    Composition root for Forge.

    Every service is constructed here and handed to its consumers explicitly:
    settings -> storage -> ContextStore -> ProjectContextManager ->
    TemplateRegistry -> PromptEngine -> LLMService -> ChatOrchestrator.
    """

    def __init__(
        self,
        settings: Optional[Dict[str, Any]] = None,
        provider: Optional[LLMProvider] = None,
        storage: Optional[KeyValueStorage] = None,
        use_memory_store: bool = False,
        model_name: Optional[str] = None,
    ) -> None:
        self.settings = settings if settings is not None else load_user_settings()
        self.event_bus = EventBus()

        if storage is not None:
            self.storage = storage
        elif use_memory_store or self.settings["storage_backend"] == "memory":
            self.storage = InMemoryStorage()
        else:
            self.storage = SqliteStorage(Path(self.settings["database_path"]))

        self.context_store = ContextStore(self.storage)
        self.context_manager = ProjectContextManager(
            self.context_store,
            event_bus=self.event_bus,
            optimization_limit=self.settings["optimization_history_limit"],
        )
        self.template_registry = TemplateRegistry(event_bus=self.event_bus)
        self.prompt_engine = PromptEngine(self.template_registry, self.context_manager)
        self.llm_service = LLMService(
            provider if provider is not None else OllamaProvider(),
            model_name or self.settings["model"],
            event_bus=self.event_bus,
        )
        self.orchestrator = ChatOrchestrator(
            self.context_manager,
            self.prompt_engine,
            self.llm_service,
            event_bus=self.event_bus,
            generation_defaults={
                "framework": self.settings["default_framework"],
                "project_type": self.settings["default_project_type"],
                "temperature": self.settings["temperature"],
            },
        )
        self._register_event_handlers()
        logger.info("ForgeApp initialized (storage: %s)", type(self.storage).__name__)

    def _register_event_handlers(self) -> None:
        self.event_bus.subscribe(TOOL_SWITCHED, self._log_event)
        self.event_bus.subscribe(CONVERSATION_COMPRESSED, self._log_event)
        self.event_bus.subscribe(GENERATION_FAILED, self._log_event)

    @staticmethod
    def _log_event(event: Event) -> None:
        logger.debug("Event %s: %s", event.event_type, event.payload)

    # ------------------------------------------------------------------ #
    # Project operations
    # ------------------------------------------------------------------ #

    def open_project(self, project_id: str) -> None:
        self.orchestrator.initialize_project(project_id)

    def export_context(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.context_manager.export_context(), encoding="utf-8")
        logger.info("Exported context for '%s' to %s", self.context_manager.project_id, path)

    def import_context(self, path: Path) -> None:
        """
        Load a context bundle from ``path`` into the active project.

        Raises:
            ContextFormatError: If the file is unreadable or not a valid bundle.
        """
        try:
            bundle = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ContextFormatError(f"Cannot read context bundle {path}: {exc}") from exc
        self.context_manager.import_context(bundle)
        logger.info("Imported context for '%s' from %s", self.context_manager.project_id, path)

    def close(self) -> None:
        if isinstance(self.storage, SqliteStorage):
            self.storage.close()

    # ------------------------------------------------------------------ #
    # Chat loop
    # ------------------------------------------------------------------ #

    def run(self, stdin: Optional[TextIO] = None, stdout: Optional[TextIO] = None) -> None:
        """Line-oriented chat loop; ``/tool <name>`` switches tools, ``/quit`` exits."""
        stdin = stdin or sys.stdin
        stdout = stdout or sys.stdout
        for message in self.orchestrator.get_messages():
            if message.role == "system":
                stdout.write(f"[system] {message.content}\n")
        stdout.write(f"Forge chat for project '{self.orchestrator.project_id}'. Type /quit to exit.\n")
        stdout.flush()

        for line in stdin:
            text = line.strip()
            if not text:
                continue
            if text.lower() in QUIT_COMMANDS:
                break
            if text.lower().startswith("/tool "):
                self._handle_tool_command(text[len("/tool "):].strip(), stdout)
                continue

            seen = len(self.orchestrator.get_messages())
            try:
                reply = self.orchestrator.send_message(text)
            except ForgeError as exc:
                stdout.write(f"[error] {exc}\n")
                stdout.flush()
                continue

            for message in self.orchestrator.get_messages()[seen:]:
                if message.role == "system":
                    stdout.write(f"[system] {message.content}\n")
            label = f"forge:{reply.tool.value}" if reply.tool else "forge"
            stdout.write(f"{label}> {reply.content}\n")
            stdout.flush()

    def _handle_tool_command(self, name: str, stdout: TextIO) -> None:
        try:
            tool = ToolType(name.lower())
        except ValueError:
            stdout.write(f"[error] Unknown tool '{name}'. Choose from: {', '.join(t.value for t in ToolType)}\n")
            return
        self.orchestrator.switch_to_tool(tool)
        stdout.write(f"[system] Switched to {tool.value.upper()} mode\n")


def run_cli(argv: Optional[List[str]] = None) -> int:
    """Entry point used by ``main.py``; returns the process exit code."""
    args = build_arg_parser().parse_args(argv)
    LoggingService.setup_logging(console_level=logging.DEBUG if args.debug else logging.WARNING)

    app = ForgeApp(use_memory_store=args.memory_store, model_name=args.model)
    try:
        app.open_project(args.project)
        if args.clear:
            app.orchestrator.clear_conversation()
            print(f"Cleared context for project '{args.project}'.")
        if args.import_path:
            try:
                app.import_context(Path(args.import_path))
            except ContextFormatError as exc:
                print(f"Import failed: {exc}", file=sys.stderr)
                return 1
            app.open_project(args.project)
            print(f"Imported context from {args.import_path}.")
        if args.export:
            app.export_context(Path(args.export))
            print(f"Exported context to {args.export}.")
            return 0
        if args.clear or args.import_path:
            return 0
        app.run()
        return 0
    finally:
        app.close()
