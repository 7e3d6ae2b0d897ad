"""Services an editing host provides for one open project."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from projreload.document.collection import ProjectCollection, global_collection
from projreload.events import EventBus, event_bus
from projreload.services.lock import ProjectLockService
from projreload.services.tree import ProjectTreeService


@dataclass
class ProjectServices:
    """Bundle of the collaborators a reloadable project depends on."""

    project_file: Path
    lock_service: ProjectLockService
    tree_service: ProjectTreeService
    host_handle: Any = None
    bus: EventBus = field(default_factory=lambda: event_bus)

    @classmethod
    def open(
        cls,
        project_file: str | Path,
        collection: ProjectCollection | None = None,
        host_handle: Any = None,
        bus: EventBus | None = None,
    ) -> "ProjectServices":
        """Load a project into a collection and wire services around it.

        Raises:
            InvalidProjectFileError: If the project file cannot be loaded.
        """
        collection = collection if collection is not None else global_collection
        path = Path(project_file).resolve()
        collection.open(path)

        bus = bus or event_bus
        lock_service = ProjectLockService(collection)
        tree_service = ProjectTreeService(path, lock_service, bus)
        return cls(
            project_file=path,
            lock_service=lock_service,
            tree_service=tree_service,
            host_handle=host_handle if host_handle is not None else path.name,
            bus=bus,
        )
