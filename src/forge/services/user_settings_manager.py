import json
import logging
from typing import Any, Dict, Optional

from src.forge.config import DEFAULT_DATABASE_PATH, GENERATION_DEFAULTS, OPTIMIZATION_HISTORY_LIMIT, SETTINGS_FILE

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "llama3.1"

# Context persistence back ends selectable from the settings file.
STORAGE_BACKENDS = ("sqlite", "memory")


def _default_settings() -> Dict[str, Any]:
    return {
        "model": DEFAULT_MODEL,
        "storage_backend": "sqlite",
        "database_path": str(DEFAULT_DATABASE_PATH),
        "optimization_history_limit": OPTIMIZATION_HISTORY_LIMIT,
        "temperature": GENERATION_DEFAULTS["temperature"],
        "default_framework": GENERATION_DEFAULTS["framework"],
        "default_project_type": GENERATION_DEFAULTS["project_type"],
    }


def _normalize_text(value: Any, fallback: str) -> str:
    if not isinstance(value, str) or not value.strip():
        return fallback
    return value.strip()


def _normalize_storage_backend(value: Any) -> str:
    if isinstance(value, str):
        selection = value.strip().lower()
        aliases = {"sqlite3": "sqlite", "in-memory": "memory", "inmemory": "memory"}
        selection = aliases.get(selection, selection)
        if selection in STORAGE_BACKENDS:
            return selection
    return "sqlite"


def _normalize_limit(value: Any, fallback: int) -> int:
    # bool is an int subclass; reject it explicitly.
    if isinstance(value, bool):
        return fallback
    try:
        limit = int(value)
    except (TypeError, ValueError):
        return fallback
    return limit if limit > 0 else fallback


def _normalize_temperature(value: Any, fallback: float) -> float:
    if isinstance(value, bool):
        return fallback
    try:
        temperature = float(value)
    except (TypeError, ValueError):
        return fallback
    return temperature if 0.0 <= temperature <= 2.0 else fallback


def normalize_settings(data: Dict[str, Any], base: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Coerce a raw settings mapping onto the known keys, dropping invalid values.
    """
    settings = dict(base) if base is not None else _default_settings()
    if "model" in data:
        settings["model"] = _normalize_text(data["model"], settings["model"])
    if "storage_backend" in data:
        settings["storage_backend"] = _normalize_storage_backend(data["storage_backend"])
    if "database_path" in data:
        settings["database_path"] = _normalize_text(data["database_path"], settings["database_path"])
    if "optimization_history_limit" in data:
        settings["optimization_history_limit"] = _normalize_limit(
            data["optimization_history_limit"], settings["optimization_history_limit"]
        )
    if "temperature" in data:
        settings["temperature"] = _normalize_temperature(data["temperature"], settings["temperature"])
    if "default_framework" in data:
        settings["default_framework"] = _normalize_text(data["default_framework"], settings["default_framework"])
    if "default_project_type" in data:
        settings["default_project_type"] = _normalize_text(
            data["default_project_type"], settings["default_project_type"]
        )
    return settings


def load_user_settings() -> Dict[str, Any]:
    """
    Load user settings from disk, falling back to defaults for anything missing or invalid.
    """
    settings = _default_settings()

    if not SETTINGS_FILE.exists():
        return settings

    try:
        with open(SETTINGS_FILE, "r", encoding="utf-8") as handle:
            data = json.load(handle)
    except (IOError, json.JSONDecodeError) as exc:
        logger.warning("Failed to read user settings from %s: %s", SETTINGS_FILE, exc)
        return settings

    if not isinstance(data, dict):
        logger.warning("User settings file %s does not contain a JSON object.", SETTINGS_FILE)
        return settings

    return normalize_settings(data, settings)


def save_user_settings(settings: Dict[str, Any]) -> None:
    """
    Persist the normalized settings payload to disk.
    """
    payload = normalize_settings(settings)

    SETTINGS_FILE.parent.mkdir(parents=True, exist_ok=True)
    with open(SETTINGS_FILE, "w", encoding="utf-8") as handle:
        json.dump(payload, handle, indent=4)

    logger.info("User settings saved to %s", SETTINGS_FILE)


def update_user_settings(updates: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge and persist setting updates; unknown keys are ignored.
    """
    settings = normalize_settings(updates, load_user_settings())
    save_user_settings(settings)
    return settings
