"""Event system for reload and tree publication notifications."""

from projreload.events.bus import EventBus, event_bus
from projreload.events.types import Event, EventType

__all__ = ["Event", "EventBus", "EventType", "event_bus"]
