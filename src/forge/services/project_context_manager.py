"""Typed operations over the context documents of the active project.

This service owns the domain rules layered on top of the raw ContextStore:
- bounded ring buffers for pending tasks and key decisions
- FIFO caps on generation and optimization history
- conversation compression on every appended message
- merge-only updates of the code structure index
- nested merging of user preference updates
"""

import logging
import uuid
from typing import Any, Callable, Dict, Iterable, List, Optional

from src.forge.config import (
    GENERATION_HISTORY_LIMIT,
    KEY_DECISIONS_LIMIT,
    OPTIMIZATION_HISTORY_LIMIT,
    PENDING_TASKS_LIMIT,
)
from src.forge.models.context_models import (
    AppliedOptimization,
    CodeStructure,
    CommonError,
    ConversationMemory,
    ErrorPatterns,
    GenerationAttempt,
    GenerationHistory,
    OptimizationMap,
    PerformanceIssue,
    PreventionRule,
    ProjectState,
    UserPreferences,
    utc_now,
)
from src.forge.models.event_types import CONVERSATION_COMPRESSED, PROJECT_CONTEXT_CLEARED
from src.forge.models.events import Event
from src.forge.models.generation_models import GeneratedFile
from src.forge.prompts.summary_renderer import SummaryRenderer
from src.forge.services.code_structure_extractor import update_structure
from src.forge.services.context_store import ContextStore, DocumentKey
from src.forge.services.conversation_compressor import append_message

logger = logging.getLogger(__name__)

CONTEXT_SUMMARY_TEMPLATE = "context_summary.jinja2"


def append_bounded(items: List[str], item: str, limit: int, unique: bool = False) -> List[str]:
    """Append ``item`` and keep only the most recent ``limit`` entries."""
    if not (unique and item in items):
        items.append(item)
    return items[-limit:] if limit > 0 else []


def deep_merge(base: Dict[str, Any], updates: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``updates`` into a copy of ``base``; non-dict values replace."""
    merged = dict(base)
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class ProjectContextManager:
    """
    Manages the seven context documents for whichever project is active.

    Args:
        store: ContextStore used for every read and write.
        event_bus: Optional bus for compression/clear notifications.
        summary_renderer: Renderer for the textual context summary.
        optimization_limit: Cap on retained applied optimizations.
    """

    def __init__(
        self,
        store: ContextStore,
        event_bus: Optional[Any] = None,
        summary_renderer: Optional[SummaryRenderer] = None,
        optimization_limit: int = OPTIMIZATION_HISTORY_LIMIT,
    ) -> None:
        self.store = store
        self.event_bus = event_bus
        self.summary_renderer = summary_renderer or SummaryRenderer()
        self.optimization_limit = optimization_limit
        self._project_id: Optional[str] = None

    # ------------------------------------------------------------------ #
    # Project binding
    # ------------------------------------------------------------------ #

    def set_project(self, project_id: str) -> None:
        if not project_id:
            raise ValueError("project_id must be a non-empty string")
        self._project_id = project_id
        logger.debug("Active context project set to '%s'", project_id)

    @property
    def project_id(self) -> str:
        if self._project_id is None:
            raise RuntimeError("No active project; call set_project() first.")
        return self._project_id

    # ------------------------------------------------------------------ #
    # Project state
    # ------------------------------------------------------------------ #

    def get_project_state(self) -> ProjectState:
        return self.store.read(self.project_id, DocumentKey.PROJECT_STATE)

    def update_project_state(self, mutate: Callable[[ProjectState], None]) -> ProjectState:
        """
        Apply ``mutate`` to the current state, stamp the interaction time and persist.

        Returns:
            The state as written.
        """
        state = self.get_project_state()
        mutate(state)
        state.project_id = state.project_id or self.project_id
        state.ai_memory.key_decisions = state.ai_memory.key_decisions[-KEY_DECISIONS_LIMIT:]
        state.active_context.pending_tasks = state.active_context.pending_tasks[-PENDING_TASKS_LIMIT:]
        state.last_interaction_timestamp = utc_now()
        self.store.write(self.project_id, DocumentKey.PROJECT_STATE, state)
        return state

    def set_user_intent(self, intent: str) -> ProjectState:
        def _mutate(state: ProjectState) -> None:
            state.ai_memory.user_intent = intent

        return self.update_project_state(_mutate)

    def append_key_decision(self, decision: str) -> ProjectState:
        def _mutate(state: ProjectState) -> None:
            state.ai_memory.key_decisions = append_bounded(
                state.ai_memory.key_decisions, decision, KEY_DECISIONS_LIMIT
            )

        return self.update_project_state(_mutate)

    def append_pending_task(self, task: str) -> ProjectState:
        def _mutate(state: ProjectState) -> None:
            state.active_context.pending_tasks = append_bounded(
                state.active_context.pending_tasks, task, PENDING_TASKS_LIMIT, unique=True
            )

        return self.update_project_state(_mutate)

    # ------------------------------------------------------------------ #
    # Code structure
    # ------------------------------------------------------------------ #

    def get_code_structure(self) -> CodeStructure:
        return self.store.read(self.project_id, DocumentKey.CODE_STRUCTURE)

    def update_code_structure(self, files: Iterable[GeneratedFile]) -> CodeStructure:
        """Merge symbols found in ``files`` into the index and track the touched files."""
        files = list(files)
        structure = update_structure(self.get_code_structure(), files)
        self.store.write(self.project_id, DocumentKey.CODE_STRUCTURE, structure)

        if files:
            paths = [file.path for file in files]

            def _mutate(state: ProjectState) -> None:
                for path in paths:
                    if path not in state.active_context.current_files:
                        state.active_context.current_files.append(path)

            self.update_project_state(_mutate)
        logger.debug("Code structure updated from %d files", len(files))
        return structure

    # ------------------------------------------------------------------ #
    # Conversation memory
    # ------------------------------------------------------------------ #

    def get_conversation_memory(self) -> ConversationMemory:
        return self.store.read(self.project_id, DocumentKey.CONVERSATION_MEMORY)

    def add_conversation_message(self, role: str, content: str) -> ConversationMemory:
        memory = self.get_conversation_memory()
        compressed = append_message(memory, role, content)
        self.store.write(self.project_id, DocumentKey.CONVERSATION_MEMORY, memory)

        if compressed:
            self._dispatch(
                CONVERSATION_COMPRESSED,
                {
                    "project_id": self.project_id,
                    "retained_messages": len(memory.messages),
                    "token_count": memory.token_count,
                },
            )
        return memory

    # ------------------------------------------------------------------ #
    # Generation history
    # ------------------------------------------------------------------ #

    def get_generation_history(self) -> GenerationHistory:
        return self.store.read(self.project_id, DocumentKey.GENERATION_HISTORY)

    def add_generation_attempt(
        self,
        prompt: str,
        result: str,
        success: bool,
        framework: str,
        project_type: str,
    ) -> GenerationAttempt:
        history = self.get_generation_history()
        attempt = GenerationAttempt(
            id=str(uuid.uuid4()),
            prompt=prompt,
            result=result,
            success=success,
            framework=framework,
            project_type=project_type,
        )
        history.attempts.append(attempt)
        history.attempts = history.attempts[-GENERATION_HISTORY_LIMIT:]
        self.store.write(self.project_id, DocumentKey.GENERATION_HISTORY, history)
        return attempt

    # ------------------------------------------------------------------ #
    # User preferences
    # ------------------------------------------------------------------ #

    def get_user_preferences(self) -> UserPreferences:
        return self.store.read(self.project_id, DocumentKey.USER_PREFERENCES)

    def update_user_preferences(self, updates: Dict[str, Any]) -> UserPreferences:
        """
        Merge a partial preference update over the current preferences.

        Nested sections merge key by key, so updating one naming convention
        keeps the others. Keys may be snake_case or camelCase.
        """
        current = self.get_user_preferences()
        normalized = UserPreferences.model_validate(
            deep_merge(current.model_dump(by_alias=True), _camelize_keys(updates))
        )
        self.store.write(self.project_id, DocumentKey.USER_PREFERENCES, normalized)
        return normalized

    # ------------------------------------------------------------------ #
    # Error patterns
    # ------------------------------------------------------------------ #

    def get_error_patterns(self) -> ErrorPatterns:
        return self.store.read(self.project_id, DocumentKey.ERROR_PATTERNS)

    def record_error(self, error: str, fix: str) -> CommonError:
        patterns = self.get_error_patterns()
        existing = next((item for item in patterns.common_errors if item.pattern == error), None)
        if existing:
            existing.frequency += 1
            existing.last_occurrence = utc_now()
            if fix and fix not in existing.fixes:
                existing.fixes.append(fix)
            entry = existing
        else:
            entry = CommonError(pattern=error, fixes=[fix] if fix else [])
            patterns.common_errors.append(entry)

        self.store.write(self.project_id, DocumentKey.ERROR_PATTERNS, patterns)
        logger.info("Recorded error pattern '%s' (seen %d times)", error[:60], entry.frequency)
        return entry

    def set_prevention_rule(self, rule: str, active: bool, description: str = "") -> PreventionRule:
        """Toggle a prevention rule, adding it when unknown."""
        patterns = self.get_error_patterns()
        existing = next((item for item in patterns.prevention_rules if item.rule == rule), None)
        if existing:
            existing.active = active
            if description:
                existing.description = description
            entry = existing
        else:
            entry = PreventionRule(rule=rule, description=description or rule, active=active)
            patterns.prevention_rules.append(entry)
        self.store.write(self.project_id, DocumentKey.ERROR_PATTERNS, patterns)
        return entry

    # ------------------------------------------------------------------ #
    # Optimization map
    # ------------------------------------------------------------------ #

    def get_optimization_map(self) -> OptimizationMap:
        return self.store.read(self.project_id, DocumentKey.OPTIMIZATION_MAP)

    def record_optimization(self, optimization: str, impact: str, location: str) -> AppliedOptimization:
        optimization_map = self.get_optimization_map()
        entry = AppliedOptimization(optimization=optimization, impact=impact, code_location=location)
        optimization_map.applied_optimizations.append(entry)
        if self.optimization_limit > 0:
            optimization_map.applied_optimizations = optimization_map.applied_optimizations[
                -self.optimization_limit:
            ]
        self.store.write(self.project_id, DocumentKey.OPTIMIZATION_MAP, optimization_map)
        return entry

    def record_performance_issue(self, issue: str, impact: str = "medium", solution: str = "") -> PerformanceIssue:
        optimization_map = self.get_optimization_map()
        existing = next((item for item in optimization_map.performance_issues if item.issue == issue), None)
        if existing:
            existing.frequency += 1
            existing.impact = impact
            entry = existing
        else:
            entry = PerformanceIssue(issue=issue, impact=impact)
            optimization_map.performance_issues.append(entry)
        if solution and solution not in entry.solutions:
            entry.solutions.append(solution)
        self.store.write(self.project_id, DocumentKey.OPTIMIZATION_MAP, optimization_map)
        return entry

    # ------------------------------------------------------------------ #
    # Whole-context operations
    # ------------------------------------------------------------------ #

    def build_context_summary(self) -> str:
        """Render a textual summary of all seven documents for context recovery."""
        return self.summary_renderer.render(
            CONTEXT_SUMMARY_TEMPLATE,
            state=self.get_project_state(),
            structure=self.get_code_structure(),
            memory=self.get_conversation_memory(),
            history=self.get_generation_history(),
            preferences=self.get_user_preferences(),
            errors=self.get_error_patterns(),
            optimizations=self.get_optimization_map(),
        )

    def export_context(self) -> str:
        return self.store.export_json(self.project_id)

    def import_context(self, bundle: Any) -> None:
        self.store.import_all(self.project_id, bundle)

    def clear_context(self) -> None:
        self.store.clear(self.project_id)
        self._dispatch(PROJECT_CONTEXT_CLEARED, {"project_id": self.project_id})

    def _dispatch(self, event_type: str, payload: Dict[str, Any]) -> None:
        if not self.event_bus:
            return
        self.event_bus.dispatch(Event(event_type=event_type, payload=payload))


def _camelize_keys(value: Any) -> Any:
    """Convert snake_case dict keys to the camelCase aliases used by the models."""
    if not isinstance(value, dict):
        return value
    converted: Dict[str, Any] = {}
    for key, item in value.items():
        head, *rest = str(key).split("_")
        converted[head + "".join(part.capitalize() for part in rest)] = _camelize_keys(item)
    return converted
