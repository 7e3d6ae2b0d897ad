"""In-place reload of a live project document.

A ReloadableProject registers itself with the reload manager when it is
initialized. When the manager reports that the project file changed on disk,
reload_project() pushes the on-disk content into the live document without
recreating the project:

1. Take the store's write lock and check the file out
2. Give up if the live document has unsaved changes
3. Parse the on-disk file into a throwaway collection
4. Copy it into a scratch document to surface copy failures early
5. Replace the live document's content and clear its dirty flag
6. Release the lock, then wait for the new tree to be published
"""

import io
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from projreload.document.collection import ProjectCollection
from projreload.document.model import ProjectDocument
from projreload.errors import InvalidProjectFileError
from projreload.events import EventType
from projreload.reload.lifecycle import OnceInitializedOnceDisposed
from projreload.services.host import ProjectServices

if TYPE_CHECKING:
    from projreload.reload.manager import ProjectReloadManager

logger = logging.getLogger(__name__)


class ReloadResult(str, Enum):
    """Terminal outcome of a reload attempt."""

    RELOAD_COMPLETED = "reload_completed"
    RELOAD_FAILED_PROJECT_DIRTY = "reload_failed_project_dirty"
    RELOAD_FAILED = "reload_failed"


class ReloadErrorKind(str, Enum):
    """Why a reload ended in RELOAD_FAILED."""

    INVALID_PROJECT_FILE = "invalid_project_file"  # On-disk file did not parse
    COPY_FAILED = "copy_failed"  # Scratch copy failed, live document untouched
    REPLACE_FAILED = "replace_failed"  # Live document may be inconsistent


@dataclass
class ReloadAttempt:
    """Detailed record of one reload attempt."""

    result: ReloadResult
    project_file: Path
    error_kind: ReloadErrorKind | None = None
    error_message: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def success(self) -> bool:
        return self.result == ReloadResult.RELOAD_COMPLETED

    @property
    def document_unreliable(self) -> bool:
        """True when the live document may have been left half replaced."""
        return self.error_kind == ReloadErrorKind.REPLACE_FAILED


class ReloadableProject(OnceInitializedOnceDisposed):
    """A project that reloads its own document when the file changes."""

    def __init__(self, services: ProjectServices, reload_manager: "ProjectReloadManager"):
        super().__init__()
        self._services = services
        self._reload_manager = reload_manager

    def __repr__(self) -> str:
        return f"ReloadableProject({self.project_file})"

    @property
    def project_file(self) -> Path:
        return self._services.project_file

    @property
    def host_handle(self) -> Any:
        return self._services.host_handle

    async def initialize_core(self) -> None:
        await self._reload_manager.register_project(self)

    async def dispose_core(self, initialized: bool) -> None:
        await self._reload_manager.unregister_project(self)

    async def reload_project(self) -> ReloadResult:
        """Reload the live document from disk and return the outcome."""
        attempt = await self.attempt_reload()
        return attempt.result

    async def attempt_reload(self) -> ReloadAttempt:
        """Reload the live document from disk.

        Raises:
            LockServiceUnavailableError: If the write lock cannot be acquired.
        """
        project_file = self.project_file
        bus = self._services.bus
        await bus.emit(EventType.RELOAD_STARTED, project_file=str(project_file))

        async with self._services.lock_service.write_lock() as access:
            await access.checkout(project_file)
            document = await access.get_project_xml(project_file)
            if document.has_unsaved_changes:
                logger.info(f"Not reloading {project_file}: project has unsaved changes")
                attempt = ReloadAttempt(ReloadResult.RELOAD_FAILED_PROJECT_DIRTY, project_file)
            else:
                attempt = self._replace_contents(document)

        if attempt.success:
            # Outside the lock: evaluation takes a read lock of its own
            await self._services.tree_service.publish_latest_tree(block_during_loading_tree=True)
            logger.info(f"Reloaded {project_file}")
            await bus.emit(EventType.RELOAD_COMPLETED, project_file=str(project_file))
        else:
            await bus.emit(
                EventType.RELOAD_FAILED,
                data={
                    "result": attempt.result.value,
                    "error_kind": attempt.error_kind.value if attempt.error_kind else None,
                    "error": attempt.error_message,
                },
                project_file=str(project_file),
            )
        return attempt

    def _replace_contents(self, document: ProjectDocument) -> ReloadAttempt:
        """Copy the on-disk project into document. Caller holds the write lock."""
        project_file = self.project_file

        # A fresh collection keeps the parsed file out of the shared registry
        with ProjectCollection.isolated() as collection:
            try:
                on_disk = ProjectDocument.open(project_file, collection)
            except InvalidProjectFileError as e:
                logger.warning(f"Cannot reload {project_file}: {e}")
                return ReloadAttempt(
                    ReloadResult.RELOAD_FAILED,
                    project_file,
                    ReloadErrorKind.INVALID_PROJECT_FILE,
                    str(e),
                )

            try:
                ProjectDocument.create().deep_copy_from(on_disk)
            except Exception as e:
                logger.exception(f"Copying {project_file} into a scratch document failed")
                return ReloadAttempt(
                    ReloadResult.RELOAD_FAILED,
                    project_file,
                    ReloadErrorKind.COPY_FAILED,
                    str(e),
                )

            try:
                document.remove_all_children()
                document.deep_copy_from(on_disk)
                # Saving is the only way to clear the dirty flag; the output is discarded
                document.save(io.StringIO())
            except Exception as e:
                logger.exception(f"Replacing contents of {project_file} failed, document is unreliable")
                return ReloadAttempt(
                    ReloadResult.RELOAD_FAILED,
                    project_file,
                    ReloadErrorKind.REPLACE_FAILED,
                    str(e),
                )

        return ReloadAttempt(ReloadResult.RELOAD_COMPLETED, project_file)
