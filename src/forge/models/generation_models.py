from typing import List, Optional

from pydantic import Field

from src.forge.config import GENERATION_DEFAULTS
from src.forge.models.context_models import CamelModel


class GeneratedFile(CamelModel):
    """A unit of generated source text, keyed by its project-relative path."""

    path: str
    content: str
    type: str = "component"
    language: str = "typescript"


class GenerationOptions(CamelModel):
    framework: str = GENERATION_DEFAULTS["framework"]
    project_type: str = GENERATION_DEFAULTS["project_type"]
    complexity: str = GENERATION_DEFAULTS["complexity"]
    features: List[str] = Field(default_factory=list)
    # Accepted for contract compatibility; responses are always consumed whole.
    streaming: bool = False
    temperature: float = GENERATION_DEFAULTS["temperature"]
    max_tokens: Optional[int] = None


class GenerationRequest(CamelModel):
    """Input handed to the external AI generation call."""

    prompt: str
    options: GenerationOptions = Field(default_factory=GenerationOptions)
    project_id: Optional[str] = None
    system_prompt: Optional[str] = Field(
        None, description="Sent as a separate system message when the provider supports roles"
    )
