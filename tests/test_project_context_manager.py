"""Tests for ProjectContextManager - bounded histories, merges and summaries."""

from __future__ import annotations

import pytest

from src.forge.models.event_types import CONVERSATION_COMPRESSED, PROJECT_CONTEXT_CLEARED
from src.forge.models.generation_models import GeneratedFile
from src.forge.services.context_store import ContextStore
from src.forge.services.project_context_manager import ProjectContextManager, append_bounded, deep_merge


def test_requires_active_project(store: ContextStore) -> None:
    manager = ProjectContextManager(store)

    with pytest.raises(RuntimeError):
        manager.get_project_state()
    with pytest.raises(ValueError):
        manager.set_project("")


def test_generation_history_keeps_last_fifty(context_manager: ProjectContextManager) -> None:
    for index in range(60):
        context_manager.add_generation_attempt(f"prompt {index}", "result", True, "react", "web-app")

    attempts = context_manager.get_generation_history().attempts
    assert len(attempts) == 50
    assert attempts[0].prompt == "prompt 10"
    assert attempts[-1].prompt == "prompt 59"


def test_key_decisions_and_pending_tasks_are_bounded(context_manager: ProjectContextManager) -> None:
    for index in range(12):
        context_manager.append_key_decision(f"decision {index}")
    for index in range(7):
        context_manager.append_pending_task(f"task {index}")
    context_manager.append_pending_task("task 6")

    state = context_manager.get_project_state()
    assert state.ai_memory.key_decisions == [f"decision {index}" for index in range(2, 12)]
    assert state.active_context.pending_tasks == [f"task {index}" for index in range(2, 7)]


def test_state_updates_stamp_interaction_time(context_manager: ProjectContextManager) -> None:
    assert context_manager.get_project_state().last_interaction_timestamp is None

    state = context_manager.set_user_intent("Build a dashboard")

    assert state.last_interaction_timestamp is not None
    assert state.project_id == "proj-1"
    assert context_manager.get_project_state().ai_memory.user_intent == "Build a dashboard"


def test_update_user_preferences_merges_nested_sections(context_manager: ProjectContextManager) -> None:
    prefs = context_manager.update_user_preferences({"naming_conventions": {"files": "snake_case"}})

    assert prefs.naming_conventions.files == "snake_case"
    assert prefs.naming_conventions.components == "PascalCase"

    prefs = context_manager.update_user_preferences({"codingPatterns": {"styling": "css-modules"}})
    assert prefs.coding_patterns.styling == "css-modules"
    assert prefs.naming_conventions.files == "snake_case"
    assert context_manager.get_user_preferences() == prefs


def test_record_error_counts_repeats_and_collects_fixes(context_manager: ProjectContextManager) -> None:
    first = context_manager.record_error("TypeError: x is undefined", "initialize x")
    second = context_manager.record_error("TypeError: x is undefined", "initialize x")
    third = context_manager.record_error("TypeError: x is undefined", "guard x")

    assert first.frequency == 1
    assert third.frequency == 3
    assert third.fixes == ["initialize x", "guard x"]
    assert third.last_occurrence >= second.last_occurrence
    assert len(context_manager.get_error_patterns().common_errors) == 1


def test_set_prevention_rule_toggles_and_adds(context_manager: ProjectContextManager) -> None:
    context_manager.set_prevention_rule("type-safety", False)
    context_manager.set_prevention_rule("no-any", True, "Avoid the any type")

    rules = {rule.rule: rule for rule in context_manager.get_error_patterns().prevention_rules}
    assert rules["type-safety"].active is False
    assert rules["no-any"].description == "Avoid the any type"


def test_optimization_history_is_capped(store: ContextStore) -> None:
    manager = ProjectContextManager(store, optimization_limit=3)
    manager.set_project("proj-1")

    for index in range(5):
        manager.record_optimization(f"memoize {index}", "high", f"src/c{index}.tsx")

    applied = manager.get_optimization_map().applied_optimizations
    assert [item.optimization for item in applied] == ["memoize 2", "memoize 3", "memoize 4"]


def test_record_performance_issue_increments_frequency(context_manager: ProjectContextManager) -> None:
    context_manager.record_performance_issue("slow list render", "high", "virtualize list")
    issue = context_manager.record_performance_issue("slow list render", "high", "memoize rows")

    assert issue.frequency == 2
    assert issue.solutions == ["virtualize list", "memoize rows"]


def test_update_code_structure_tracks_current_files(context_manager: ProjectContextManager) -> None:
    context_manager.update_code_structure(
        [GeneratedFile(path="src/Button.tsx", content="export const Button = () => null;")]
    )

    assert "Button" in context_manager.get_code_structure().components
    assert context_manager.get_project_state().active_context.current_files == ["src/Button.tsx"]


def test_add_conversation_message_dispatches_compression(
    context_manager: ProjectContextManager, event_bus
) -> None:
    for _ in range(16):
        context_manager.add_conversation_message("user", "x" * 4000)

    memory = context_manager.get_conversation_memory()
    assert len(memory.messages) <= 16
    events = event_bus.of_type(CONVERSATION_COMPRESSED)
    assert events
    assert events[0].payload["project_id"] == "proj-1"
    assert events[0].payload["retained_messages"] == 10


def test_context_summary_covers_all_documents(context_manager: ProjectContextManager) -> None:
    context_manager.set_user_intent("Build a todo app")
    context_manager.update_code_structure(
        [GeneratedFile(path="src/App.tsx", content="export function App() { return null; }")]
    )
    context_manager.add_generation_attempt("make a todo app", "ok", True, "react", "web-app")
    context_manager.record_error("Missing key prop", "add key")
    context_manager.record_optimization("memoize TodoItem", "medium", "src/TodoItem.tsx")
    context_manager.append_key_decision("Use Zustand for state")

    summary = context_manager.build_context_summary()

    assert summary.startswith("PROJECT CONTEXT SUMMARY:")
    assert "Current Intent: Build a todo app" in summary
    assert "- Components: App" in summary
    assert "Generation History: 1 attempts, 1 successful" in summary
    assert "- Missing key prop (seen 1x): add key" in summary
    assert "- memoize TodoItem (medium) at src/TodoItem.tsx" in summary
    assert "Use Zustand for state" in summary


def test_export_import_and_clear(context_manager: ProjectContextManager, event_bus) -> None:
    context_manager.set_user_intent("keep me")
    exported = context_manager.export_context()

    context_manager.clear_context()
    assert context_manager.get_project_state().ai_memory.user_intent == ""
    assert event_bus.of_type(PROJECT_CONTEXT_CLEARED)[-1].payload == {"project_id": "proj-1"}

    context_manager.import_context(exported)
    assert context_manager.get_project_state().ai_memory.user_intent == "keep me"


def test_helpers() -> None:
    assert append_bounded(["a", "b"], "c", 2) == ["b", "c"]
    assert append_bounded(["a", "b"], "a", 5, unique=True) == ["a", "b"]
    assert deep_merge({"a": {"b": 1, "c": 2}}, {"a": {"b": 3}, "d": 4}) == {"a": {"b": 3, "c": 2}, "d": 4}
