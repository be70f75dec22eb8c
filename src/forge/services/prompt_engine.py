"""
Renders prompt templates against live project context.

The context for a render is built from all seven documents of the active
project, with caller-supplied overrides applied on top. Template variables
are resolved through a fixed variable-to-context mapping; names outside the
mapping fall back to a context key of the same name.
"""

import logging
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from pydantic import BaseModel

from src.forge.config import GENERATION_DEFAULTS
from src.forge.models.context_models import CodeStructure
from src.forge.models.prompt_models import PromptCondition
from src.forge.services.context_store import DOCUMENT_SPECS, DocumentKey, default_document
from src.forge.services.project_context_manager import ProjectContextManager
from src.forge.services.template_registry import TemplateRegistry

logger = logging.getLogger(__name__)

PromptContext = Dict[str, Any]

# Context keys holding whole documents. A dict override is coerced into the
# document model; a None override resets the document to its default.
DOCUMENT_CONTEXT_KEYS: Dict[str, DocumentKey] = {
    "project_state": DocumentKey.PROJECT_STATE,
    "code_structure": DocumentKey.CODE_STRUCTURE,
    "conversation_memory": DocumentKey.CONVERSATION_MEMORY,
    "generation_history": DocumentKey.GENERATION_HISTORY,
    "user_preferences": DocumentKey.USER_PREFERENCES,
    "error_history": DocumentKey.ERROR_PATTERNS,
    "optimization_map": DocumentKey.OPTIMIZATION_MAP,
}

_LIST_PREVIEW = 5


# --------------------------------------------------------------------------- #
# Variable resolvers
# --------------------------------------------------------------------------- #


def _structure_files(structure: CodeStructure) -> List[str]:
    files = set(structure.imports) | set(structure.exports)
    files.update(info.file for info in structure.functions.values() if info.file)
    files.update(info.file for info in structure.components.values() if info.file)
    return sorted(files)


def summarize_code_structure(structure: CodeStructure) -> str:
    return (
        f"{len(structure.components)} components, {len(structure.functions)} functions "
        f"across {len(_structure_files(structure))} files"
    )


def _naming_conventions(context: PromptContext) -> str:
    naming = context["user_preferences"].naming_conventions
    return (
        f"{naming.functions} functions, {naming.variables} variables, "
        f"{naming.components} components, {naming.files} files"
    )


def _coding_patterns(context: PromptContext) -> str:
    patterns = context["user_preferences"].coding_patterns
    described = [
        f"{patterns.preferred_state_management} state",
        f"{patterns.component_structure} components",
        f"{patterns.error_handling} error handling",
        f"{patterns.styling} styling",
    ]
    learned = context["project_state"].ai_memory.coding_patterns
    return ", ".join(described + list(learned))


def _error_patterns(context: PromptContext) -> str:
    errors = sorted(context["error_history"].common_errors, key=lambda item: item.frequency, reverse=True)
    return "; ".join(f"{item.pattern} (x{item.frequency})" for item in errors[:_LIST_PREVIEW])


def _previous_fixes(context: PromptContext) -> List[str]:
    fixes: List[str] = []
    for item in context["error_history"].common_errors:
        for fix in item.fixes:
            if fix not in fixes:
                fixes.append(fix)
    return fixes[-_LIST_PREVIEW:]


def _prevention_rules(context: PromptContext) -> List[str]:
    return [rule.description for rule in context["error_history"].prevention_rules if rule.active]


def _performance_history(context: PromptContext) -> str:
    issues = context["optimization_map"].performance_issues
    return "; ".join(f"{item.issue} [{item.impact}] x{item.frequency}" for item in issues[-_LIST_PREVIEW:])


def _applied_optimizations(context: PromptContext) -> List[str]:
    applied = context["optimization_map"].applied_optimizations
    return [f"{item.optimization} ({item.impact})" for item in applied[-_LIST_PREVIEW:]]


def _optimization_preferences(context: PromptContext) -> str:
    preferences = context["user_preferences"]
    react = preferences.framework_preferences.react
    return (
        f"hooks: {'yes' if react.hooks else 'no'}, typescript: {'yes' if react.typescript else 'no'}, "
        f"state: {react.state_management}, styling: {preferences.coding_patterns.styling}"
    )


def _existing_structure(context: PromptContext) -> List[str]:
    files = _structure_files(context["code_structure"])
    for path in context.get("current_files") or []:
        if path not in files:
            files.append(path)
    return files


def _current_dependencies(context: PromptContext) -> List[str]:
    specifiers = set()
    for imports in context["code_structure"].imports.values():
        specifiers.update(spec for spec in imports if not spec.startswith((".", "/", "@/")))
    return sorted(specifiers)


def _recent_generations(context: PromptContext) -> List[str]:
    attempts = context["generation_history"].attempts[-3:]
    return [f"{attempt.prompt[:80]} ({'ok' if attempt.success else 'failed'})" for attempt in attempts]


def _active_tool(context: PromptContext) -> Any:
    if context.get("active_tool"):
        return context["active_tool"]
    tools = context.get("active_tools") or []
    return tools[0] if tools else None


VARIABLE_RESOLVERS: Dict[str, Callable[[PromptContext], Any]] = {
    "active_tool": _active_tool,
    "code_structure_summary": lambda context: summarize_code_structure(context["code_structure"]),
    "naming_conventions": _naming_conventions,
    "coding_patterns": _coding_patterns,
    "state_management": lambda context: context["user_preferences"].coding_patterns.preferred_state_management,
    "context_summary": lambda context: context.get("context_summary") or context.get("conversation_context"),
    "error_patterns": _error_patterns,
    "previous_fixes": _previous_fixes,
    "prevention_rules": _prevention_rules,
    "performance_history": _performance_history,
    "applied_optimizations": _applied_optimizations,
    "optimization_preferences": _optimization_preferences,
    "existing_structure": _existing_structure,
    "architecture_decisions": lambda context: context["project_state"].ai_memory.key_decisions[-_LIST_PREVIEW:],
    "current_dependencies": _current_dependencies,
    "recent_generations": _recent_generations,
    "pending_tasks": lambda context: context["project_state"].active_context.pending_tasks,
}


def resolve_variable(context: PromptContext, variable: str) -> Any:
    resolver = VARIABLE_RESOLVERS.get(variable)
    if resolver is not None:
        return resolver(context)
    return context.get(variable)


def format_value(value: Any) -> str:
    """Render a resolved value for substitution; absent values become ''."""
    if value is None or value is False:
        return ""
    if value is True:
        return "true"
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, (list, tuple, set, frozenset)):
        return ", ".join(format_value(item) for item in value)
    return str(value)


def _as_number(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def evaluate_condition(condition: PromptCondition, context: PromptContext) -> bool:
    value = resolve_variable(context, condition.variable)
    expected = condition.value
    operator = condition.operator

    if operator == "equals":
        return value == expected
    if operator == "contains":
        if isinstance(value, (list, tuple, set)):
            return expected in value
        return format_value(expected) in format_value(value)
    if operator == "exists":
        return value is not None and value != "" and value != []
    if operator in ("greater", "less"):
        left, right = _as_number(value), _as_number(expected)
        if left is None or right is None:
            return False
        return left > right if operator == "greater" else left < right
    return True


def evaluate_conditions(conditions: Iterable[PromptCondition], context: PromptContext) -> bool:
    return all(evaluate_condition(condition, context) for condition in conditions)


class PromptEngine:
    """
    Builds final prompt strings from registered templates and live context.

    Args:
        registry: Template table to render from.
        context_manager: Source of the active project's documents.
    """

    def __init__(self, registry: TemplateRegistry, context_manager: ProjectContextManager) -> None:
        self.registry = registry
        self.context_manager = context_manager

    def build_context(self, overrides: Optional[Mapping[str, Any]] = None) -> PromptContext:
        """
        Read all seven documents for the active project and apply ``overrides`` on top.

        Overrides always win, ``None`` included: a ``None`` plain value renders as
        empty and a ``None`` document override falls back to that document's default.
        """
        manager = self.context_manager
        state = manager.get_project_state()
        memory = manager.get_conversation_memory()

        context: PromptContext = {
            "project_name": state.project_id or manager.project_id,
            "current_files": list(state.active_context.current_files),
            "conversation_context": memory.context,
            "user_intent": state.ai_memory.user_intent,
            "framework": GENERATION_DEFAULTS["framework"],
            "project_type": GENERATION_DEFAULTS["project_type"],
            "complexity": GENERATION_DEFAULTS["complexity"],
            "active_tools": [],
            "project_state": state,
            "code_structure": manager.get_code_structure(),
            "conversation_memory": memory,
            "generation_history": manager.get_generation_history(),
            "user_preferences": manager.get_user_preferences(),
            "error_history": manager.get_error_patterns(),
            "optimization_map": manager.get_optimization_map(),
        }

        for key, value in (overrides or {}).items():
            document_key = DOCUMENT_CONTEXT_KEYS.get(key)
            if document_key is not None and value is None:
                value = default_document(document_key, manager.project_id)
            elif document_key is not None and not isinstance(value, BaseModel):
                value = DOCUMENT_SPECS[document_key].model.model_validate(value)
            context[key] = value
        return context

    def generate_prompt(self, template_id: str, overrides: Optional[Mapping[str, Any]] = None) -> str:
        """
        Render a template for the active project.

        Returns an empty string when the template's conditions do not hold.
        Each successful render increments the template's usage counter.

        Raises:
            TemplateNotFoundError: If ``template_id`` is not registered.
        """
        template = self.registry.require(template_id)
        context = self.build_context(overrides)

        if not evaluate_conditions(template.conditions, context):
            logger.debug("Conditions not met for template '%s'; prompt suppressed", template_id)
            return ""

        prompt = template.template
        for variable in template.variables:
            prompt = prompt.replace("{" + variable + "}", format_value(resolve_variable(context, variable)))

        usage = self.registry.increment_usage(template_id)
        logger.debug("Rendered template '%s' (usage=%d, %d chars)", template_id, usage, len(prompt))
        return prompt

    def record_effectiveness(self, template_id: str, rating: float) -> float:
        return self.registry.record_effectiveness(template_id, rating)
