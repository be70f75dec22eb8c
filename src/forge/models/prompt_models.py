"""Pydantic models describing prompt templates and their activation rules."""

from datetime import datetime
from typing import Any, List, Literal

from pydantic import Field

from src.forge.models.context_models import CamelModel, utc_now

ConditionOperator = Literal["equals", "contains", "exists", "greater", "less"]
TemplateCategory = Literal["system", "user", "context", "tool-specific"]


class PromptCondition(CamelModel):
    """All conditions of a template must hold for it to render."""

    variable: str
    operator: ConditionOperator
    value: Any = None


class TemplateMetadata(CamelModel):
    created_by: str = "system"
    created_at: datetime = Field(default_factory=utc_now)
    last_modified: datetime = Field(default_factory=utc_now)
    usage: int = 0
    effectiveness: float = 0.0


class PromptTemplate(CamelModel):
    """A named, versioned prompt with ``{variable}`` placeholders."""

    id: str
    name: str
    version: str = "1.0"
    category: TemplateCategory = "system"
    template: str
    variables: List[str] = Field(default_factory=list)
    conditions: List[PromptCondition] = Field(default_factory=list)
    metadata: TemplateMetadata = Field(default_factory=TemplateMetadata)
