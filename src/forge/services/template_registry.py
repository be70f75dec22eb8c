import logging
import threading
from typing import Any, Dict, Iterable, List, Optional, Union

from src.forge.models.context_models import utc_now
from src.forge.models.event_types import PROMPT_TEMPLATE_CHANGED
from src.forge.models.events import Event
from src.forge.models.exceptions import TemplateNotFoundError
from src.forge.models.prompt_models import PromptTemplate, TemplateMetadata
from src.forge.prompts.catalog import DEFAULT_TEMPLATES

logger = logging.getLogger(__name__)

# Fields an admin update may not overwrite directly.
_PROTECTED_FIELDS = {"id", "metadata"}


class TemplateRegistry:
    """
    Process-wide table of prompt templates keyed by id.

    Seeded from a fixed catalog at construction and mutable through the admin
    methods below. Usage and effectiveness statistics live on each template's
    metadata.
    """

    def __init__(
        self,
        templates: Optional[Iterable[Union[PromptTemplate, Dict[str, Any]]]] = None,
        event_bus: Optional[Any] = None,
    ) -> None:
        self.event_bus = event_bus
        self._templates: Dict[str, PromptTemplate] = {}
        self._lock = threading.RLock()

        for template in templates if templates is not None else DEFAULT_TEMPLATES:
            model = template if isinstance(template, PromptTemplate) else PromptTemplate.model_validate(template)
            self._templates[model.id] = model
        logger.info("TemplateRegistry initialized with %d templates", len(self._templates))

    # ------------------------------------------------------------------ #
    # Lookup
    # ------------------------------------------------------------------ #

    def get(self, template_id: str) -> Optional[PromptTemplate]:
        with self._lock:
            return self._templates.get(template_id)

    def require(self, template_id: str) -> PromptTemplate:
        """
        Return the template or raise.

        Raises:
            TemplateNotFoundError: If ``template_id`` is not registered.
        """
        template = self.get(template_id)
        if template is None:
            raise TemplateNotFoundError(template_id)
        return template

    def list_templates(self) -> List[PromptTemplate]:
        with self._lock:
            return list(self._templates.values())

    # ------------------------------------------------------------------ #
    # Admin operations
    # ------------------------------------------------------------------ #

    def add_template(self, template: Union[PromptTemplate, Dict[str, Any]], created_by: str = "admin") -> PromptTemplate:
        """Register (or replace) a template with fresh metadata."""
        data = template.model_dump() if isinstance(template, PromptTemplate) else dict(template)
        data.pop("metadata", None)
        model = PromptTemplate.model_validate({**data, "metadata": TemplateMetadata(created_by=created_by)})
        with self._lock:
            self._templates[model.id] = model
        logger.info("Added prompt template '%s'", model.id)
        self._dispatch(model.id, "added")
        return model

    def update_template(self, template_id: str, updates: Dict[str, Any]) -> PromptTemplate:
        """
        Apply a partial update and stamp ``last_modified``.

        Usage and effectiveness statistics are preserved.

        Raises:
            TemplateNotFoundError: If ``template_id`` is not registered.
        """
        with self._lock:
            existing = self.require(template_id)
            data = existing.model_dump()
            data.update({key: value for key, value in updates.items() if key not in _PROTECTED_FIELDS})
            data["metadata"] = {**existing.metadata.model_dump(), "last_modified": utc_now()}
            updated = PromptTemplate.model_validate(data)
            self._templates[template_id] = updated
        logger.info("Updated prompt template '%s' (%s)", template_id, ", ".join(sorted(updates)) or "no fields")
        self._dispatch(template_id, "updated")
        return updated

    def delete_template(self, template_id: str) -> bool:
        """Remove a template; returns False when it was not registered."""
        with self._lock:
            removed = self._templates.pop(template_id, None)
        if removed is None:
            logger.debug("Delete requested for unknown template '%s'", template_id)
            return False
        logger.info("Deleted prompt template '%s'", template_id)
        self._dispatch(template_id, "deleted")
        return True

    # ------------------------------------------------------------------ #
    # Statistics
    # ------------------------------------------------------------------ #

    def increment_usage(self, template_id: str) -> int:
        with self._lock:
            template = self.require(template_id)
            template.metadata.usage += 1
            return template.metadata.usage

    def record_effectiveness(self, template_id: str, rating: float) -> float:
        """
        Fold a rating into the running effectiveness average.

        Uses ``(effectiveness * usage + rating) / (usage + 1)`` with the usage
        count as it stands now. To weight a rating against the usage count
        before a render, record it before calling ``generate_prompt``.

        Raises:
            TemplateNotFoundError: If ``template_id`` is not registered.
        """
        with self._lock:
            metadata = self.require(template_id).metadata
            metadata.effectiveness = (metadata.effectiveness * metadata.usage + rating) / (metadata.usage + 1)
            return metadata.effectiveness

    def _dispatch(self, template_id: str, action: str) -> None:
        if not self.event_bus:
            return
        self.event_bus.dispatch(
            Event(event_type=PROMPT_TEMPLATE_CHANGED, payload={"template_id": template_id, "action": action})
        )
