"""Pydantic models for the seven per-project context documents.

Every document is read and written as a whole unit by the ContextStore.
Field names serialize as camelCase so the persisted JSON and the export
bundle keep the same shape regardless of which side produced them.
"""

from datetime import datetime, timezone
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Base model accepting snake_case or camelCase input, dumping camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --------------------------------------------------------------------------- #
# Project state
# --------------------------------------------------------------------------- #


class ActiveContext(CamelModel):
    current_files: List[str] = Field(default_factory=list)
    active_components: List[str] = Field(default_factory=list)
    pending_tasks: List[str] = Field(default_factory=list, description="Most recent tasks, bounded")
    generation_queue: List[str] = Field(default_factory=list)


class AIMemory(CamelModel):
    conversation_summary: str = ""
    key_decisions: List[str] = Field(default_factory=list, description="Most recent decisions, bounded")
    coding_patterns: List[str] = Field(default_factory=list)
    user_intent: str = ""


class ProjectState(CamelModel):
    """Working state of a project, mutated after every chat turn."""

    project_id: str = ""
    last_interaction_timestamp: Optional[datetime] = Field(
        None, description="None until the project has seen its first interaction"
    )
    codebase_fingerprint: str = ""
    active_context: ActiveContext = Field(default_factory=ActiveContext)
    ai_memory: AIMemory = Field(default_factory=AIMemory)


# --------------------------------------------------------------------------- #
# Code structure
# --------------------------------------------------------------------------- #


class FunctionInfo(CamelModel):
    params: List[str] = Field(default_factory=list)
    return_type: str = "unknown"
    file: str = ""


class VariableInfo(CamelModel):
    type: str = "unknown"
    scope: str = "module"
    file: str = ""


class ComponentInfo(CamelModel):
    props: List[str] = Field(default_factory=list)
    file: str = ""
    dependencies: List[str] = Field(default_factory=list)


class CodeStructure(CamelModel):
    """Best-effort symbol index; entries are merged in, never removed."""

    functions: Dict[str, FunctionInfo] = Field(default_factory=dict)
    variables: Dict[str, VariableInfo] = Field(default_factory=dict)
    components: Dict[str, ComponentInfo] = Field(default_factory=dict)
    imports: Dict[str, List[str]] = Field(default_factory=dict, description="file path -> module specifiers")
    exports: Dict[str, List[str]] = Field(default_factory=dict, description="file path -> exported names")


# --------------------------------------------------------------------------- #
# Conversation memory
# --------------------------------------------------------------------------- #


class MemoryMessage(CamelModel):
    role: str
    content: str
    timestamp: datetime = Field(default_factory=utc_now)


class ConversationMemory(CamelModel):
    messages: List[MemoryMessage] = Field(default_factory=list)
    context: str = Field("", description="Rolling summary of compressed turns")
    token_count: int = Field(0, description="Estimated, not exact")
    last_compression: Optional[datetime] = None


# --------------------------------------------------------------------------- #
# Generation history
# --------------------------------------------------------------------------- #


class GenerationAttempt(CamelModel):
    id: str
    timestamp: datetime = Field(default_factory=utc_now)
    prompt: str
    result: str
    success: bool
    framework: str
    project_type: str


class GenerationHistory(CamelModel):
    attempts: List[GenerationAttempt] = Field(default_factory=list)


# --------------------------------------------------------------------------- #
# User preferences
# --------------------------------------------------------------------------- #


class NamingConventions(CamelModel):
    functions: str = "camelCase"
    variables: str = "camelCase"
    components: str = "PascalCase"
    files: str = "kebab-case"


class CodingPatternPreferences(CamelModel):
    preferred_state_management: str = "useState"
    component_structure: str = "functional"
    error_handling: str = "try-catch"
    styling: str = "tailwind"


class ReactPreferences(CamelModel):
    hooks: bool = True
    typescript: bool = True
    state_management: str = "useState"


class LaravelPreferences(CamelModel):
    version: str = "10"
    patterns: List[str] = Field(default_factory=lambda: ["eloquent", "middleware"])


class FrameworkPreferences(CamelModel):
    react: ReactPreferences = Field(default_factory=ReactPreferences)
    laravel: LaravelPreferences = Field(default_factory=LaravelPreferences)


class UserPreferences(CamelModel):
    naming_conventions: NamingConventions = Field(default_factory=NamingConventions)
    coding_patterns: CodingPatternPreferences = Field(default_factory=CodingPatternPreferences)
    framework_preferences: FrameworkPreferences = Field(default_factory=FrameworkPreferences)


# --------------------------------------------------------------------------- #
# Error patterns
# --------------------------------------------------------------------------- #


class CommonError(CamelModel):
    pattern: str
    frequency: int = 1
    fixes: List[str] = Field(default_factory=list)
    last_occurrence: datetime = Field(default_factory=utc_now)


class PreventionRule(CamelModel):
    rule: str
    description: str
    active: bool = True


def _default_prevention_rules() -> List[PreventionRule]:
    return [
        PreventionRule(rule="check-imports", description="Verify all imports are valid"),
        PreventionRule(rule="type-safety", description="Ensure TypeScript types are correct"),
    ]


class ErrorPatterns(CamelModel):
    common_errors: List[CommonError] = Field(default_factory=list)
    prevention_rules: List[PreventionRule] = Field(default_factory=_default_prevention_rules)


# --------------------------------------------------------------------------- #
# Optimization map
# --------------------------------------------------------------------------- #


class PerformanceIssue(CamelModel):
    issue: str
    frequency: int = 1
    impact: Literal["high", "medium", "low"] = "medium"
    solutions: List[str] = Field(default_factory=list)


class AppliedOptimization(CamelModel):
    optimization: str
    timestamp: datetime = Field(default_factory=utc_now)
    impact: str
    code_location: str


class OptimizationMap(CamelModel):
    performance_issues: List[PerformanceIssue] = Field(default_factory=list)
    applied_optimizations: List[AppliedOptimization] = Field(default_factory=list)
