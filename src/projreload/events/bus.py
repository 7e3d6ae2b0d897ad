"""Event bus for reload and tree publication notifications."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from projreload.events.types import Event, EventType

logger = logging.getLogger(__name__)


@dataclass
class _Subscription:
    queue: asyncio.Queue[Event]
    project_file: str | None = None  # None = every project

    def wants(self, event: Event) -> bool:
        return self.project_file is None or event.project_file == self.project_file


class EventBus:
    """Fans reload events out to queue subscribers and in-process callbacks.

    Queue subscribers may narrow delivery to a single project file.
    Callbacks see every event, and a failing callback does not stop delivery
    to the others.
    """

    def __init__(self) -> None:
        self._subscriptions: dict[str, _Subscription] = {}
        self._callbacks: list[Callable[[Event], Any]] = []
        self._lock = asyncio.Lock()

    async def subscribe(self, subscriber_id: str, project_file: str | None = None) -> asyncio.Queue[Event]:
        """Return a queue that receives events, optionally for one project file only."""
        queue: asyncio.Queue[Event] = asyncio.Queue()
        async with self._lock:
            self._subscriptions[subscriber_id] = _Subscription(queue, project_file)
        logger.debug(f"Subscriber {subscriber_id} attached (project: {project_file or 'all'})")
        return queue

    async def unsubscribe(self, subscriber_id: str) -> None:
        async with self._lock:
            if self._subscriptions.pop(subscriber_id, None) is not None:
                logger.debug(f"Subscriber {subscriber_id} detached")

    def add_callback(self, callback: Callable[[Event], Any]) -> None:
        """Call callback, sync or async, for every published event."""
        self._callbacks.append(callback)

    async def publish(self, event: Event) -> None:
        logger.debug(f"Publishing {event.type.value} for {event.project_file or 'all projects'}")

        async with self._lock:
            for subscription in self._subscriptions.values():
                if subscription.wants(event):
                    subscription.queue.put_nowait(event)

        for callback in self._callbacks:
            try:
                result = callback(event)
                if asyncio.iscoroutine(result):
                    await result
            except Exception:
                logger.exception(f"Event callback failed for {event.type.value}")

    async def emit(
        self,
        event_type: EventType,
        data: dict[str, Any] | None = None,
        project_file: str | None = None,
    ) -> Event:
        """Build an event and publish it.

        Returns:
            The published event
        """
        event = Event(type=event_type, data=data or {}, project_file=project_file)
        await self.publish(event)
        return event


# Process-wide bus used when services are not given one
event_bus = EventBus()
