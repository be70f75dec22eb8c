"""
Durable per-project storage for the seven context documents.

The store keeps a process-local cache of deserialized documents in front of a
KeyValueStorage medium. Reads never fail the caller: a missing or corrupt
document reads as its default. Writes update the cache first and then persist;
a medium failure is logged and the cached value stays in effect until the
next successful write or a restart.
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from src.forge.models.context_models import (
    CodeStructure,
    ConversationMemory,
    ErrorPatterns,
    GenerationHistory,
    OptimizationMap,
    ProjectState,
    UserPreferences,
)
from src.forge.models.exceptions import ContextFormatError, StorageError
from src.forge.services.storage_backends import KeyValueStorage, storage_key

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class DocumentKey(str, Enum):
    """Names of the per-project documents, as used in storage keys."""

    PROJECT_STATE = "project-state"
    CODE_STRUCTURE = "code-structure"
    CONVERSATION_MEMORY = "conversation-memory"
    GENERATION_HISTORY = "generation-history"
    USER_PREFERENCES = "user-preferences"
    ERROR_PATTERNS = "error-patterns"
    OPTIMIZATION_MAP = "optimization-map"


@dataclass(frozen=True)
class DocumentSpec:
    model: Type[BaseModel]
    bundle_field: str
    default_factory: Callable[[str], BaseModel]


DOCUMENT_SPECS: Dict[DocumentKey, DocumentSpec] = {
    DocumentKey.PROJECT_STATE: DocumentSpec(
        ProjectState, "projectState", lambda project_id: ProjectState(project_id=project_id)
    ),
    DocumentKey.CODE_STRUCTURE: DocumentSpec(CodeStructure, "codeStructure", lambda _: CodeStructure()),
    DocumentKey.CONVERSATION_MEMORY: DocumentSpec(
        ConversationMemory, "conversationMemory", lambda _: ConversationMemory()
    ),
    DocumentKey.GENERATION_HISTORY: DocumentSpec(
        GenerationHistory, "generationHistory", lambda _: GenerationHistory()
    ),
    DocumentKey.USER_PREFERENCES: DocumentSpec(UserPreferences, "userPreferences", lambda _: UserPreferences()),
    DocumentKey.ERROR_PATTERNS: DocumentSpec(ErrorPatterns, "errorPatterns", lambda _: ErrorPatterns()),
    DocumentKey.OPTIMIZATION_MAP: DocumentSpec(OptimizationMap, "optimizationMap", lambda _: OptimizationMap()),
}

BUNDLE_FIELDS = tuple(spec.bundle_field for spec in DOCUMENT_SPECS.values())


def default_document(key: DocumentKey, project_id: str) -> BaseModel:
    """Return a fresh copy of the declared default for ``key``."""
    return DOCUMENT_SPECS[key].default_factory(project_id)


class ContextStore:
    """
    Read/write/clear/export/import contract over the per-project documents.

    All document persistence goes through this class; other services hold
    derived views only.
    """

    def __init__(self, storage: KeyValueStorage) -> None:
        self.storage = storage
        self._cache: Dict[str, BaseModel] = {}

    # ------------------------------------------------------------------ #
    # Single-document access
    # ------------------------------------------------------------------ #

    def read(self, project_id: str, key: DocumentKey, default: Optional[T] = None) -> T:
        """
        Return a document, loading and caching it on first access.

        Args:
            project_id: Project the document belongs to.
            key: Which document to read.
            default: Value returned when the document is missing or corrupt.
                Falls back to the document's declared default.

        Returns:
            A copy of the cached document, safe for the caller to mutate.
        """
        key = DocumentKey(key)
        spec = DOCUMENT_SPECS[key]
        cache_key = storage_key(project_id, key.value)

        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached.model_copy(deep=True)  # type: ignore[return-value]

        fallback = default if default is not None else default_document(key, project_id)

        try:
            raw = self.storage.get(cache_key)
        except StorageError as exc:
            logger.warning("Failed to read cache for %s: %s", cache_key, exc)
            return fallback  # type: ignore[return-value]

        if raw is None:
            return fallback  # type: ignore[return-value]

        try:
            document = spec.model.model_validate_json(raw)
        except ValidationError as exc:
            logger.warning(
                "Discarding corrupt document %s (%d validation errors)", cache_key, exc.error_count()
            )
            return fallback  # type: ignore[return-value]

        self._cache[cache_key] = document
        logger.debug("Loaded %s from storage", cache_key)
        return document.model_copy(deep=True)  # type: ignore[return-value]

    def write(self, project_id: str, key: DocumentKey, value: Union[BaseModel, Dict[str, Any]]) -> None:
        """
        Replace a document in the cache and persist it.

        Persistence failures are logged; the cache keeps the new value.

        Raises:
            pydantic.ValidationError: If ``value`` is a dict that does not fit the document model.
        """
        key = DocumentKey(key)
        spec = DOCUMENT_SPECS[key]
        document = value if isinstance(value, spec.model) else spec.model.model_validate(value)
        cache_key = storage_key(project_id, key.value)
        self._cache[cache_key] = document.model_copy(deep=True)

        try:
            self.storage.set(cache_key, document.model_dump_json(by_alias=True))
        except (StorageError, OSError) as exc:
            logger.error("Failed to write cache for %s: %s", cache_key, exc)
            return
        logger.debug("Persisted %s", cache_key)

    # ------------------------------------------------------------------ #
    # Whole-project operations
    # ------------------------------------------------------------------ #

    def clear(self, project_id: str) -> None:
        """Remove all seven documents of a project from cache and storage."""
        for key in DocumentKey:
            cache_key = storage_key(project_id, key.value)
            self._cache.pop(cache_key, None)
            try:
                self.storage.remove(cache_key)
            except StorageError as exc:
                logger.error("Failed to remove %s: %s", cache_key, exc)
        logger.info("Cleared context documents for project '%s'", project_id)

    def export_all(self, project_id: str) -> Dict[str, Any]:
        """Snapshot all seven documents into a JSON-compatible bundle."""
        return {
            spec.bundle_field: self.read(project_id, key).model_dump(mode="json", by_alias=True)
            for key, spec in DOCUMENT_SPECS.items()
        }

    def export_json(self, project_id: str) -> str:
        return json.dumps(self.export_all(project_id), indent=2)

    def import_all(self, project_id: str, bundle: Union[str, Dict[str, Any]]) -> None:
        """
        Overwrite all seven documents from an exported bundle.

        The whole bundle is validated before anything is written.

        Raises:
            ContextFormatError: If the bundle is not valid JSON, lacks one of
                the seven fields, or a document does not fit its model.
        """
        if isinstance(bundle, (str, bytes)):
            try:
                bundle = json.loads(bundle)
            except (json.JSONDecodeError, UnicodeDecodeError) as exc:
                raise ContextFormatError(f"Invalid context data format: {exc}") from exc

        if not isinstance(bundle, dict):
            raise ContextFormatError("Invalid context data format: expected a JSON object")

        missing = [field for field in BUNDLE_FIELDS if field not in bundle]
        if missing:
            raise ContextFormatError(f"Invalid context data format: missing {', '.join(missing)}")

        documents: Dict[DocumentKey, BaseModel] = {}
        for key, spec in DOCUMENT_SPECS.items():
            try:
                documents[key] = spec.model.model_validate(bundle[spec.bundle_field])
            except ValidationError as exc:
                raise ContextFormatError(
                    f"Invalid context data format: {spec.bundle_field} failed validation"
                ) from exc

        for key, document in documents.items():
            self.write(project_id, key, document)
        logger.info("Imported context bundle into project '%s'", project_id)
