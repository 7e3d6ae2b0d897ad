"""Evaluation and publication of the project tree.

Readers of a project do not walk the raw document; they consume the
evaluated ProjectTree: properties with ``$(Name)`` references expanded and
items grouped by type. The tree service recomputes that snapshot from the
live document under a read lock and publishes it.
"""

import asyncio
import logging
import re
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, Field

from projreload.document.model import ITEM_GROUP_TAG, PROPERTY_GROUP_TAG, ProjectDocument, local_name
from projreload.events import EventBus, EventType, event_bus
from projreload.services.lock import ProjectLockService

logger = logging.getLogger(__name__)

_PROPERTY_REFERENCE = re.compile(r"\$\(([A-Za-z_][\w.-]*)\)")


class ProjectTree(BaseModel):
    """Evaluated view of a project document."""

    project_file: str
    version: int
    properties: dict[str, str] = Field(default_factory=dict)
    items: dict[str, list[str]] = Field(default_factory=dict)
    published_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


def expand_properties(value: str, properties: dict[str, str]) -> str:
    """Replace $(Name) references with property values. Unknown names expand to ''."""
    return _PROPERTY_REFERENCE.sub(lambda m: properties.get(m.group(1), ""), value)


def evaluate_document(document: ProjectDocument) -> tuple[dict[str, str], dict[str, list[str]]]:
    """Evaluate properties, then items, in document order.

    Later property definitions win. Items without an Include attribute
    are ignored. Elements are matched by local name, so namespaced project
    files evaluate the same way.
    """
    properties: dict[str, str] = {}
    items: dict[str, list[str]] = {}

    for group in document.children:
        if local_name(group) != PROPERTY_GROUP_TAG:
            continue
        for prop in group:
            name = local_name(prop)
            if name is None:
                continue
            properties[name] = expand_properties((prop.text or "").strip(), properties)

    for group in document.children:
        if local_name(group) != ITEM_GROUP_TAG:
            continue
        for item in group:
            item_type = local_name(item)
            if item_type is None:
                continue
            include = item.get("Include")
            if include is None:
                logger.debug(f"Skipping <{item_type}> without Include")
                continue
            items.setdefault(item_type, []).append(expand_properties(include, properties))

    return properties, items


class ProjectTreeService:
    """Publishes evaluated trees for one project file."""

    def __init__(
        self,
        project_file: Path,
        lock_service: ProjectLockService,
        bus: EventBus | None = None,
    ):
        self.project_file = project_file
        self.lock_service = lock_service
        self.bus = bus or event_bus
        self._current: ProjectTree | None = None
        self._version = 0
        self._pending: set[asyncio.Task] = set()

    @property
    def current_tree(self) -> ProjectTree | None:
        """The most recently published tree."""
        return self._current

    async def _evaluate_and_publish(self) -> ProjectTree:
        async with self.lock_service.read_lock() as access:
            document = await access.get_project_xml(self.project_file)
            properties, items = evaluate_document(document)

        self._version += 1
        tree = ProjectTree(
            project_file=str(self.project_file),
            version=self._version,
            properties=properties,
            items=items,
        )
        self._current = tree
        logger.info(f"Published tree v{tree.version} for {self.project_file}")
        await self.bus.emit(
            EventType.TREE_PUBLISHED,
            data={
                "version": tree.version,
                "properties": len(properties),
                "items": sum(len(v) for v in items.values()),
            },
            project_file=str(self.project_file),
        )
        return tree

    async def publish_latest_tree(self, block_during_loading_tree: bool = True) -> None:
        """Re-evaluate the document and publish the result.

        Args:
            block_during_loading_tree: Wait until the new tree is visible to
                all readers before returning. When False the evaluation runs
                in the background.
        """
        task = asyncio.create_task(self._evaluate_and_publish())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        if block_during_loading_tree:
            # Caller cancellation must not abort a publication readers wait on
            await asyncio.shield(task)
        else:
            task.add_done_callback(self._log_background_failure)

    def _log_background_failure(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Background tree publication for {self.project_file} failed: {error}", exc_info=error)

    async def wait_for_pending(self) -> None:
        """Wait for background publications to finish.

        Failures have already been logged and are not raised here.
        """
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
