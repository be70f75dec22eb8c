from __future__ import annotations

import pytest

from src.forge.models.event_types import PROMPT_TEMPLATE_CHANGED
from src.forge.models.exceptions import TemplateNotFoundError
from src.forge.services.template_registry import TemplateRegistry

TOOL_TEMPLATE_IDS = ["debug-mode", "optimize-mode", "generate-mode", "analyze-mode", "refactor-mode"]


def test_registry_is_seeded_with_system_recovery_and_tool_templates(registry: TemplateRegistry) -> None:
    ids = {template.id for template in registry.list_templates()}

    assert {"unified-system", "context-recovery", *TOOL_TEMPLATE_IDS} <= ids
    for template_id in TOOL_TEMPLATE_IDS:
        condition = registry.require(template_id).conditions[0]
        assert (condition.variable, condition.operator) == ("active_tool", "equals")
        assert condition.value == template_id.split("-")[0]


def test_require_unknown_template_raises(registry: TemplateRegistry) -> None:
    with pytest.raises(TemplateNotFoundError) as excinfo:
        registry.require("nonexistent")

    assert str(excinfo.value) == "Template nonexistent not found"
    assert registry.get("nonexistent") is None


def test_add_template_gets_fresh_admin_metadata(registry: TemplateRegistry, event_bus) -> None:
    template = registry.add_template(
        {
            "id": "custom",
            "name": "Custom",
            "version": "1.0",
            "category": "user",
            "template": "Hello {project_name}",
            "variables": ["project_name"],
            "metadata": {"usage": 99, "effectiveness": 5.0},
        }
    )

    assert "custom" in registry
    assert template.metadata.created_by == "admin"
    assert template.metadata.usage == 0
    assert template.metadata.effectiveness == 0.0
    assert event_bus.of_type(PROMPT_TEMPLATE_CHANGED)[-1].payload == {"template_id": "custom", "action": "added"}


def test_update_template_stamps_last_modified_and_keeps_stats(registry: TemplateRegistry) -> None:
    registry.increment_usage("debug-mode")
    before = registry.require("debug-mode").metadata

    updated = registry.update_template("debug-mode", {"template": "New body", "id": "hijack"})

    assert updated.id == "debug-mode"
    assert updated.template == "New body"
    assert updated.metadata.usage == 1
    assert updated.metadata.created_at == before.created_at
    assert updated.metadata.last_modified >= before.last_modified
    assert "hijack" not in registry


def test_update_unknown_template_raises(registry: TemplateRegistry) -> None:
    with pytest.raises(TemplateNotFoundError):
        registry.update_template("nope", {"template": "x"})


def test_delete_template(registry: TemplateRegistry) -> None:
    assert registry.delete_template("refactor-mode") is True
    assert registry.delete_template("refactor-mode") is False
    assert "refactor-mode" not in registry


def test_record_effectiveness_uses_running_average(registry: TemplateRegistry) -> None:
    assert registry.record_effectiveness("unified-system", 4.0) == pytest.approx(4.0)

    registry.increment_usage("unified-system")
    # usage is now 1: (4.0 * 1 + 2.0) / 2
    assert registry.record_effectiveness("unified-system", 2.0) == pytest.approx(3.0)


def test_registry_accepts_custom_seed() -> None:
    registry = TemplateRegistry(
        templates=[{"id": "only", "name": "Only", "version": "1", "category": "system", "template": "x"}]
    )

    assert [template.id for template in registry.list_templates()] == ["only"]
