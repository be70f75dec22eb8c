"""Tests for PromptEngine - context building, conditions and substitution."""

from __future__ import annotations

import pytest

from src.forge.models.exceptions import TemplateNotFoundError
from src.forge.models.generation_models import GeneratedFile
from src.forge.models.prompt_models import PromptCondition
from src.forge.services.project_context_manager import ProjectContextManager
from src.forge.services.prompt_engine import PromptEngine, evaluate_condition, format_value
from src.forge.services.template_registry import TemplateRegistry


def _add(registry: TemplateRegistry, template: str, variables, conditions=None) -> None:
    registry.add_template(
        {
            "id": "sample",
            "name": "Sample",
            "category": "user",
            "template": template,
            "variables": variables,
            "conditions": conditions or [],
        }
    )


def test_unknown_template_raises(prompt_engine: PromptEngine) -> None:
    with pytest.raises(TemplateNotFoundError):
        prompt_engine.generate_prompt("nonexistent")


def test_failed_condition_returns_empty_string_without_usage(
    prompt_engine: PromptEngine, registry: TemplateRegistry
) -> None:
    _add(registry, "should not render", [], [{"variable": "x", "operator": "equals", "value": True}])

    assert prompt_engine.generate_prompt("sample") == ""
    assert registry.require("sample").metadata.usage == 0


def test_condition_passes_with_override(prompt_engine: PromptEngine, registry: TemplateRegistry) -> None:
    _add(registry, "x is {x}", ["x"], [{"variable": "x", "operator": "equals", "value": True}])

    assert prompt_engine.generate_prompt("sample", {"x": True}) == "x is true"
    assert registry.require("sample").metadata.usage == 1


def test_unresolvable_variables_render_as_empty(prompt_engine: PromptEngine, registry: TemplateRegistry) -> None:
    _add(registry, "[{missing}] [{user_intent}]", ["missing", "user_intent"])

    assert prompt_engine.generate_prompt("sample") == "[] []"


def test_none_override_clears_stored_value(
    prompt_engine: PromptEngine, registry: TemplateRegistry, context_manager: ProjectContextManager
) -> None:
    context_manager.set_user_intent("stored")
    _add(registry, "[{user_intent}]", ["user_intent"])

    assert prompt_engine.generate_prompt("sample") == "[stored]"
    assert prompt_engine.generate_prompt("sample", {"user_intent": None}) == "[]"


def test_none_document_override_falls_back_to_default(
    prompt_engine: PromptEngine, context_manager: ProjectContextManager
) -> None:
    context_manager.record_error("TypeError: x is undefined", "initialize x")

    context = prompt_engine.build_context({"error_history": None})

    assert context["error_history"].common_errors == []
    assert context["project_name"] == "proj-1"


def test_lists_render_comma_joined(prompt_engine: PromptEngine, registry: TemplateRegistry) -> None:
    _add(registry, "Tools: {active_tools}", ["active_tools"])

    assert prompt_engine.generate_prompt("sample", {"active_tools": ["debug", "optimize"]}) == "Tools: debug, optimize"


def test_unified_system_prompt_reflects_project_context(
    prompt_engine: PromptEngine, context_manager: ProjectContextManager
) -> None:
    context_manager.set_user_intent("Build a todo app")
    context_manager.update_code_structure(
        [GeneratedFile(path="src/App.tsx", content="import React from 'react';\nexport const App = () => null;")]
    )

    prompt = prompt_engine.generate_prompt("unified-system", {"active_tools": ["generate"]})

    assert "- Project: proj-1" in prompt
    assert "- Framework: react" in prompt
    assert "- Project Type: web-app" in prompt
    assert "- Active Tools: generate" in prompt
    assert "- User Intent: Build a todo app" in prompt
    assert "1 components, 1 functions across 1 files" in prompt
    assert "- Naming: camelCase functions, camelCase variables, PascalCase components, kebab-case files" in prompt
    assert "- State Management: useState" in prompt
    assert "{" not in prompt


def test_tool_template_renders_only_for_its_tool(prompt_engine: PromptEngine, registry: TemplateRegistry) -> None:
    assert prompt_engine.generate_prompt("debug-mode") == ""
    assert prompt_engine.generate_prompt("debug-mode", {"active_tool": "optimize"}) == ""

    prompt = prompt_engine.generate_prompt("debug-mode", {"active_tool": "debug"})

    assert prompt.startswith("SMART DEBUGGER MODE ACTIVATED")
    assert "Active prevention rules: Verify all imports are valid, Ensure TypeScript types are correct" in prompt
    assert registry.require("debug-mode").metadata.usage == 1


def test_active_tool_falls_back_to_first_active_tools_entry(prompt_engine: PromptEngine) -> None:
    assert prompt_engine.generate_prompt("optimize-mode", {"active_tools": ["optimize"]}) != ""


def test_debug_prompt_lists_known_errors_and_fixes(
    prompt_engine: PromptEngine, context_manager: ProjectContextManager
) -> None:
    context_manager.record_error("Cannot read property 'map' of undefined", "Default the list to []")
    context_manager.record_error("Cannot read property 'map' of undefined", "Guard with optional chaining")

    prompt = prompt_engine.generate_prompt("debug-mode", {"active_tool": "debug"})

    assert "Known error patterns: Cannot read property 'map' of undefined (x2)" in prompt
    assert "Previous fixes applied: Default the list to [], Guard with optional chaining" in prompt


def test_document_overrides_accept_plain_dicts(prompt_engine: PromptEngine) -> None:
    context = prompt_engine.build_context({"user_preferences": {"codingPatterns": {"preferredStateManagement": "redux"}}})

    assert context["user_preferences"].coding_patterns.preferred_state_management == "redux"


def test_record_effectiveness_delegates_to_registry(prompt_engine: PromptEngine, registry: TemplateRegistry) -> None:
    assert prompt_engine.record_effectiveness("unified-system", 5.0) == pytest.approx(5.0)
    assert registry.require("unified-system").metadata.effectiveness == pytest.approx(5.0)


@pytest.mark.parametrize(
    "operator, value, context_value, expected",
    [
        ("contains", "deb", "debug", True),
        ("contains", "debug", ["debug", "optimize"], True),
        ("contains", "refactor", ["debug"], False),
        ("exists", None, "something", True),
        ("exists", None, "", False),
        ("greater", 3, "5", True),
        ("greater", 3, "not-a-number", False),
        ("less", 10, 2, True),
    ],
)
def test_condition_operators(operator, value, context_value, expected) -> None:
    condition = PromptCondition(variable="sample", operator=operator, value=value)

    assert evaluate_condition(condition, {"sample": context_value}) is expected


def test_format_value_handles_empty_values() -> None:
    assert format_value(None) == ""
    assert format_value(False) == ""
    assert format_value([]) == ""
    assert format_value(["a", "b"]) == "a, b"
