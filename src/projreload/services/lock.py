"""Reader/writer locking over the shared project document store.

One writer or any number of readers hold the store at a time. Waiting
writers take precedence over new readers so a reload is not starved by a
steady stream of evaluations.

Write access is bound to the task that acquired it. Its operations never
suspend, so once a writer holds the lock its work cannot be interrupted by
cancellation; callers can only cancel while still waiting for the lock.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from projreload.document.collection import ProjectCollection, global_collection
from projreload.document.model import ProjectDocument
from projreload.errors import DocumentNotFoundError, LockNotHeldError, LockServiceUnavailableError

logger = logging.getLogger(__name__)


class AsyncReaderWriterLock:
    """Writer-preferring reader/writer lock for asyncio tasks."""

    def __init__(self) -> None:
        self._cond = asyncio.Condition()
        self._readers = 0
        self._writer: asyncio.Task | None = None
        self._waiting_writers = 0

    @property
    def writer(self) -> asyncio.Task | None:
        return self._writer

    @property
    def reader_count(self) -> int:
        return self._readers

    async def acquire_read(self) -> None:
        async with self._cond:
            await self._cond.wait_for(lambda: self._writer is None and self._waiting_writers == 0)
            self._readers += 1

    async def release_read(self) -> None:
        async with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    async def acquire_write(self) -> None:
        async with self._cond:
            self._waiting_writers += 1
            try:
                await self._cond.wait_for(lambda: self._writer is None and self._readers == 0)
            finally:
                self._waiting_writers -= 1
                # Readers blocked behind a cancelled writer may proceed
                self._cond.notify_all()
            self._writer = asyncio.current_task()

    async def release_write(self) -> None:
        async with self._cond:
            self._writer = None
            self._cond.notify_all()


class _Access:
    """Document access granted for the lifetime of one lock scope."""

    def __init__(self, service: "ProjectLockService"):
        self._service = service
        self._valid = True

    def _invalidate(self) -> None:
        self._valid = False

    def _check(self) -> None:
        if not self._valid:
            raise LockNotHeldError("Lock scope has already exited")

    async def get_project_xml(self, path: str | Path) -> ProjectDocument:
        """Return the live document for path."""
        self._check()
        return self._service._document(path)


class ReadAccess(_Access):
    """Shared read access to the document store."""


class WriteAccess(_Access):
    """Exclusive write access to the document store."""

    def __init__(self, service: "ProjectLockService", owner: asyncio.Task | None):
        super().__init__(service)
        self._owner = owner

    def _check(self) -> None:
        super()._check()
        if asyncio.current_task() is not self._owner:
            raise LockNotHeldError("Write access used outside the task that holds the lock")

    async def checkout(self, path: str | Path) -> None:
        """Record that the document at path is about to be written."""
        self._check()
        self._service._checkout(Path(path).resolve())


class ProjectLockService:
    """Serializes writers over the documents of a ProjectCollection.

    Args:
        collection: Registry of live documents. Defaults to the global one.
    """

    def __init__(self, collection: ProjectCollection | None = None):
        self.collection = collection if collection is not None else global_collection
        self._rw = AsyncReaderWriterLock()
        self._checked_out: set[Path] = set()
        self._closed = False

    @property
    def is_write_locked(self) -> bool:
        return self._rw.writer is not None

    @property
    def checked_out_paths(self) -> frozenset[Path]:
        """Paths checked out by the current writer."""
        return frozenset(self._checked_out)

    def close(self) -> None:
        """Stop handing out new locks. Scopes already held finish normally."""
        self._closed = True

    def _ensure_open(self) -> None:
        if self._closed:
            raise LockServiceUnavailableError("Project lock service has been closed")

    def _document(self, path: str | Path) -> ProjectDocument:
        document = self.collection.get(path)
        if document is None:
            raise DocumentNotFoundError(Path(path))
        return document

    def _checkout(self, path: Path) -> None:
        self._checked_out.add(path)
        logger.debug(f"Checked out {path}")

    @asynccontextmanager
    async def write_lock(self) -> AsyncIterator[WriteAccess]:
        """Acquire exclusive write access, waiting for readers and writers to leave.

        Raises:
            LockServiceUnavailableError: If the service has been closed.
        """
        self._ensure_open()
        await self._rw.acquire_write()
        access = WriteAccess(self, self._rw.writer)
        logger.debug("Write lock acquired")
        try:
            yield access
        finally:
            access._invalidate()
            self._checked_out.clear()
            await self._rw.release_write()
            logger.debug("Write lock released")

    @asynccontextmanager
    async def read_lock(self) -> AsyncIterator[ReadAccess]:
        """Acquire shared read access."""
        self._ensure_open()
        await self._rw.acquire_read()
        access = ReadAccess(self)
        try:
            yield access
        finally:
            access._invalidate()
            await self._rw.release_read()
