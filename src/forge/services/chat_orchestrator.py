"""
Single entry point for chat turns.

Mediates between raw user text, tool selection, prompt assembly, the AI
generation call and the context documents of the active project.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from src.forge.config import CONTEXT_RECOVERY_IDLE_SECONDS, GENERATION_DEFAULTS, USER_INTENT_MAX_CHARS
from src.forge.models.chat_models import CODE_PRODUCING_TOOLS, ChatMessage, ChatMessageMetadata, ToolType
from src.forge.models.context_models import utc_now
from src.forge.models.event_types import (
    CHAT_MESSAGE_ADDED,
    CONTEXT_RECOVERY_TRIGGERED,
    PROJECT_INITIALIZED,
    TOOL_SWITCHED,
)
from src.forge.models.events import Event
from src.forge.models.exceptions import ConversationBusyError
from src.forge.models.generation_models import GenerationOptions, GenerationRequest
from src.forge.services.code_structure_extractor import extract_code_blocks
from src.forge.services.project_context_manager import ProjectContextManager
from src.forge.services.prompt_engine import PromptEngine
from src.forge.services.tool_detection import resolve_tool

logger = logging.getLogger(__name__)

FALLBACK_RESPONSE = "I encountered an error while processing your request. Please try again."

_CHAT_ROLES = ("user", "assistant", "system")


def summarize_intent(text: str, limit: int = USER_INTENT_MAX_CHARS) -> str:
    return text[:limit] + "..." if len(text) > limit else text


class ChatOrchestrator:
    """
    Runs chat turns for one project at a time.

    Holds the in-memory transcript and the active tool. Only one
    ``send_message`` may be in flight; a second call raises
    ``ConversationBusyError`` instead of interleaving writes.

    Args:
        context_manager: Typed access to the project's context documents.
        prompt_engine: Renders system, tool and recovery prompts.
        ai_service: Object exposing ``generate(GenerationRequest) -> str``.
        event_bus: Optional bus for chat lifecycle events.
        generation_defaults: Overrides for framework, project type, complexity
            and temperature used when the caller does not pass them.
    """

    def __init__(
        self,
        context_manager: ProjectContextManager,
        prompt_engine: PromptEngine,
        ai_service: Any,
        event_bus: Optional[Any] = None,
        generation_defaults: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.context_manager = context_manager
        self.prompt_engine = prompt_engine
        self.ai_service = ai_service
        self.event_bus = event_bus
        self.generation_defaults = {**GENERATION_DEFAULTS, **(generation_defaults or {})}

        self._messages: List[ChatMessage] = []
        self._current_tool: Optional[ToolType] = None
        self._in_flight = False
        self._project_id: Optional[str] = None

    # ------------------------------------------------------------------ #
    # Properties
    # ------------------------------------------------------------------ #

    @property
    def current_tool(self) -> Optional[ToolType]:
        return self._current_tool

    @property
    def is_busy(self) -> bool:
        return self._in_flight

    @property
    def project_id(self) -> Optional[str]:
        return self._project_id

    # ------------------------------------------------------------------ #
    # Project lifecycle
    # ------------------------------------------------------------------ #

    def initialize_project(self, project_id: str, now: Optional[datetime] = None) -> None:
        """
        Bind to ``project_id`` and rehydrate the transcript from conversation memory.

        When the project has been idle for longer than an hour, a
        context-recovery system message is appended after the history.
        """
        self.context_manager.set_project(project_id)
        self._project_id = project_id
        self._current_tool = None

        memory = self.context_manager.get_conversation_memory()
        self._messages = []
        for stored in memory.messages:
            if stored.role not in _CHAT_ROLES:
                logger.warning("Skipping stored message with unknown role '%s'", stored.role)
                continue
            self._messages.append(ChatMessage(role=stored.role, content=stored.content, timestamp=stored.timestamp))

        recovered = False
        state = self.context_manager.get_project_state()
        if state.last_interaction_timestamp is not None:
            last = state.last_interaction_timestamp
            if last.tzinfo is None:
                last = last.replace(tzinfo=timezone.utc)
            idle_seconds = ((now or utc_now()) - last).total_seconds()
            if idle_seconds > CONTEXT_RECOVERY_IDLE_SECONDS:
                self._trigger_context_recovery(idle_seconds)
                recovered = True

        logger.info(
            "Initialized project '%s' with %d messages (context recovered: %s)",
            project_id,
            len(self._messages),
            recovered,
        )
        self._dispatch(
            PROJECT_INITIALIZED,
            {"project_id": project_id, "message_count": len(self._messages), "context_recovered": recovered},
        )

    def _trigger_context_recovery(self, idle_seconds: float) -> None:
        summary = self.context_manager.build_context_summary()
        recovery_prompt = self.prompt_engine.generate_prompt(
            "context-recovery",
            {"context_recovery": True, "context_summary": summary},
        )
        logger.info("Context recovery after %.0f idle seconds", idle_seconds)
        self._dispatch(CONTEXT_RECOVERY_TRIGGERED, {"project_id": self._project_id, "idle_seconds": idle_seconds})
        if recovery_prompt:
            self._append(ChatMessage(role="system", content=recovery_prompt))

    # ------------------------------------------------------------------ #
    # Chat turns
    # ------------------------------------------------------------------ #

    def send_message(
        self,
        text: str,
        framework: Optional[str] = None,
        project_type: Optional[str] = None,
        force_tool: Optional[Union[ToolType, str]] = None,
    ) -> ChatMessage:
        """
        Run one chat turn and return the assistant message.

        Failures of the AI call are converted into a fixed fallback reply.

        Raises:
            ConversationBusyError: If another turn is still in flight.
            TemplateNotFoundError: If a required prompt template is missing.
        """
        if self._in_flight:
            raise ConversationBusyError("A message is already being processed for this conversation.")
        if self._project_id is None:
            raise RuntimeError("No project initialized; call initialize_project() first.")

        self._in_flight = True
        try:
            return self._run_turn(text, framework, project_type, force_tool)
        finally:
            self._in_flight = False

    def _run_turn(
        self,
        text: str,
        framework: Optional[str],
        project_type: Optional[str],
        force_tool: Optional[Union[ToolType, str]],
    ) -> ChatMessage:
        self._append(ChatMessage(role="user", content=text))
        self.context_manager.add_conversation_message("user", text)

        suggested = resolve_tool(text, force_tool)
        if suggested is not None and suggested != self._current_tool:
            self._switch_tool(suggested)
        tool = self._current_tool

        options = GenerationOptions(
            framework=framework or self.generation_defaults["framework"],
            project_type=project_type or self.generation_defaults["project_type"],
            complexity=self.generation_defaults["complexity"],
            temperature=self.generation_defaults["temperature"],
        )
        request = self._build_request(text, tool, options)

        try:
            response = self.ai_service.generate(request)
        except Exception as exc:
            logger.error("Generation failed for project '%s': %s", self._project_id, exc, exc_info=True)
            self.context_manager.add_generation_attempt(
                text, str(exc), False, options.framework, options.project_type
            )
            fallback = ChatMessage(
                role="assistant",
                content=FALLBACK_RESPONSE,
                tool=tool,
                metadata=ChatMessageMetadata(),
            )
            self._append(fallback)
            return fallback

        metadata = ChatMessageMetadata(
            code_generated=tool in CODE_PRODUCING_TOOLS,
            tools_used=[tool.value] if tool else [],
            error_fixed=tool == ToolType.DEBUG,
            optimization_applied=tool == ToolType.OPTIMIZE,
        )
        if metadata.code_generated:
            files = extract_code_blocks(response)
            if files:
                self.context_manager.update_code_structure(files)
                metadata.files_affected = [file.path for file in files]

        assistant = ChatMessage(role="assistant", content=response, tool=tool, metadata=metadata)
        self._append(assistant)
        self.context_manager.add_conversation_message("assistant", response)
        self.context_manager.add_generation_attempt(
            text, response, True, options.framework, options.project_type
        )
        self._update_state_from_interaction(text, tool, metadata)
        return assistant

    def _build_request(self, text: str, tool: Optional[ToolType], options: GenerationOptions) -> GenerationRequest:
        if tool is None:
            system_prompt = self.prompt_engine.generate_prompt("unified-system")
            return GenerationRequest(
                prompt=text, options=options, project_id=self._project_id, system_prompt=system_prompt or None
            )

        system_prompt = self.prompt_engine.generate_prompt(
            "unified-system",
            {"active_tools": [tool.value], "framework": options.framework, "project_type": options.project_type},
        )
        tool_prompt = self.prompt_engine.generate_prompt(
            f"{tool.value}-mode",
            {"active_tool": tool.value, "active_tools": [tool.value]},
        )
        combined = f"{system_prompt}\n\n{tool_prompt}\n\nUser Request: {text}"
        return GenerationRequest(prompt=combined, options=options, project_id=self._project_id)

    def _update_state_from_interaction(
        self, text: str, tool: Optional[ToolType], metadata: ChatMessageMetadata
    ) -> None:
        intent = summarize_intent(text)
        self.context_manager.set_user_intent(intent)
        if metadata.code_generated:
            self.context_manager.append_key_decision(f"Generated code: {intent}")
        if tool is not None:
            self.context_manager.append_pending_task(f"{tool.value}: {intent}")

    # ------------------------------------------------------------------ #
    # Tools
    # ------------------------------------------------------------------ #

    def switch_to_tool(self, tool: Union[ToolType, str]) -> None:
        self._switch_tool(ToolType(tool))

    def _switch_tool(self, tool: ToolType) -> None:
        previous = self._current_tool
        self._current_tool = tool
        self.context_manager.set_user_intent(f"Using {tool.value} tool")
        self._append(ChatMessage(role="system", content=f"Switched to {tool.value.upper()} mode", tool=tool))
        logger.info("Switched tool %s -> %s", previous.value if previous else None, tool.value)
        self._dispatch(
            TOOL_SWITCHED,
            {
                "project_id": self._project_id,
                "previous_tool": previous.value if previous else None,
                "tool": tool.value,
            },
        )

    # ------------------------------------------------------------------ #
    # Transcript and context access
    # ------------------------------------------------------------------ #

    def get_messages(self) -> List[ChatMessage]:
        return list(self._messages)

    def clear_conversation(self) -> None:
        """Drop the transcript, reset the tool and remove all context documents."""
        self._messages = []
        self._current_tool = None
        self.context_manager.clear_context()
        logger.info("Cleared conversation for project '%s'", self._project_id)

    def export_conversation(self) -> str:
        return json.dumps(
            {
                "messages": [message.model_dump(mode="json", by_alias=True) for message in self._messages],
                "projectContext": json.loads(self.context_manager.export_context()),
            },
            indent=2,
        )

    def get_project_context(self) -> Dict[str, Any]:
        manager = self.context_manager
        return {
            "state": manager.get_project_state(),
            "structure": manager.get_code_structure(),
            "preferences": manager.get_user_preferences(),
            "history": manager.get_generation_history(),
            "errors": manager.get_error_patterns(),
            "optimizations": manager.get_optimization_map(),
        }

    def _append(self, message: ChatMessage) -> None:
        self._messages.append(message)
        self._dispatch(
            CHAT_MESSAGE_ADDED,
            {
                "project_id": self._project_id,
                "message_id": message.id,
                "role": message.role,
                "tool": message.tool.value if message.tool else None,
            },
        )

    def _dispatch(self, event_type: str, payload: Dict[str, Any]) -> None:
        if not self.event_bus:
            return
        self.event_bus.dispatch(Event(event_type=event_type, payload=payload))
