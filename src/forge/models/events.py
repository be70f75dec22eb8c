from datetime import datetime, timezone
from typing import Any, Dict

from pydantic import BaseModel, Field


class Event(BaseModel):
    """
    Data contract for all events flowing through the EventBus.

    Attributes:
        event_type (str): One of the names in event_types (e.g. "TOOL_SWITCHED").
        payload (Dict[str, Any]): The data associated with the event.
        emitted_at (datetime): UTC time the event was created.
    """
    event_type: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    emitted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
