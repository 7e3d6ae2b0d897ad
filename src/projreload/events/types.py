"""Event type definitions for the event bus."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """Types of events that can be broadcast."""

    # Registration events
    PROJECT_REGISTERED = "project.registered"
    PROJECT_UNREGISTERED = "project.unregistered"

    # Reload events
    RELOAD_STARTED = "reload.started"
    RELOAD_COMPLETED = "reload.completed"
    RELOAD_FAILED = "reload.failed"

    # Tree events
    TREE_PUBLISHED = "tree.published"


class Event(BaseModel):
    """A broadcast event."""

    id: str = Field(default_factory=lambda: uuid4().hex[:12])
    type: EventType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    data: dict[str, Any] = Field(default_factory=dict)
    project_file: str | None = None  # For filtering by project

    def to_json(self) -> dict:
        """Convert to JSON-serializable dict."""
        return {
            "id": self.id,
            "type": self.type.value,
            "timestamp": self.timestamp.isoformat(),
            "data": self.data,
            "project_file": self.project_file,
        }
