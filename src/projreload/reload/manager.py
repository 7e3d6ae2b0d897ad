"""Reload manager.

Keeps the registry of reloadable projects, turns detected project file
changes into reload attempts and falls back to a full reload when a project
cannot reload itself in place.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, Protocol

from projreload.errors import ProjReloadError, ReloadManagerUnavailableError
from projreload.events import EventBus, EventType, event_bus
from projreload.reload.reloadable import ReloadAttempt, ReloadResult
from projreload.reload.watcher import FileChange, ProjectFileWatcher, WatchConfig

logger = logging.getLogger(__name__)


class ReloadableUnit(Protocol):
    """What the manager needs from a registered project."""

    @property
    def project_file(self) -> Path: ...

    @property
    def host_handle(self) -> Any: ...

    async def attempt_reload(self) -> ReloadAttempt: ...


FallbackHandler = Callable[[ReloadableUnit, ReloadAttempt], Awaitable[None]]


async def log_full_reload_required(unit: ReloadableUnit, attempt: ReloadAttempt) -> None:
    """Default fallback: report that the host has to reload the project itself."""
    reason = attempt.error_message or attempt.result.value
    logger.warning(f"Project {unit.project_file} needs a full reload ({reason})")


class ProjectReloadManager:
    """Dispatches project file changes to registered projects.

    Flow:
    1. Projects register on initialization and unregister on disposal
    2. The watcher reports changed project files
    3. Each project registered for a changed file attempts an in-place reload
    4. Failed attempts are handed to the fallback handler
    """

    def __init__(
        self,
        fallback: FallbackHandler | None = None,
        watch_config: WatchConfig | None = None,
        bus: EventBus | None = None,
    ):
        self.fallback = fallback or log_full_reload_required
        self.watcher = ProjectFileWatcher(watch_config)
        self.bus = bus or event_bus
        self._units: dict[Path, list[ReloadableUnit]] = {}
        self._lock = asyncio.Lock()
        self._closed = False

        # Track reload history
        self._reload_history: list[ReloadAttempt] = []

    @property
    def is_closed(self) -> bool:
        return self._closed

    @staticmethod
    def _key(project_file: str | Path) -> Path:
        return Path(project_file).resolve()

    def is_registered(self, unit: ReloadableUnit) -> bool:
        return unit in self._units.get(self._key(unit.project_file), [])

    def registered_units(self, project_file: str | Path) -> list[ReloadableUnit]:
        return list(self._units.get(self._key(project_file), []))

    async def register_project(self, unit: ReloadableUnit) -> None:
        """Register a project for reload dispatch.

        Raises:
            ReloadManagerUnavailableError: If the manager has been closed.
        """
        if self._closed:
            raise ReloadManagerUnavailableError(f"Cannot register {unit.project_file}: reload manager is closed")

        key = self._key(unit.project_file)
        async with self._lock:
            units = self._units.setdefault(key, [])
            if unit in units:
                return
            units.append(unit)
            self.watcher.track(key)

        logger.info(f"Registered {unit.project_file} for reload ({unit.host_handle})")
        await self.bus.emit(EventType.PROJECT_REGISTERED, project_file=str(unit.project_file))

    async def unregister_project(self, unit: ReloadableUnit) -> None:
        """Stop dispatching reloads to a project.

        A reload already running for the project is left to finish.
        """
        key = self._key(unit.project_file)
        async with self._lock:
            units = self._units.get(key)
            if not units or unit not in units:
                return
            units.remove(unit)
            if not units:
                del self._units[key]
                self.watcher.untrack(key)

        logger.info(f"Unregistered {unit.project_file}")
        await self.bus.emit(EventType.PROJECT_UNREGISTERED, project_file=str(unit.project_file))

    async def reload_project_file(self, project_file: str | Path) -> list[ReloadAttempt]:
        """Reload every project registered for a changed file.

        A project whose reload raises is recorded as failed and handed to
        the fallback; the remaining projects are still reloaded.

        Returns:
            The attempts made, one per registered project.
        """
        attempts: list[ReloadAttempt] = []

        for unit in self.registered_units(project_file):
            try:
                attempt = await unit.attempt_reload()
            except ProjReloadError as e:
                logger.exception(f"Reload of {unit.project_file} ({unit.host_handle}) raised")
                attempt = ReloadAttempt(
                    ReloadResult.RELOAD_FAILED,
                    Path(unit.project_file),
                    error_message=str(e),
                )
            self._reload_history.append(attempt)
            attempts.append(attempt)

            match attempt.result:
                case ReloadResult.RELOAD_COMPLETED:
                    logger.info(f"Reloaded {project_file} in place")
                case ReloadResult.RELOAD_FAILED_PROJECT_DIRTY:
                    logger.info(f"{project_file} has unsaved changes, falling back to full reload")
                    await self.fallback(unit, attempt)
                case ReloadResult.RELOAD_FAILED:
                    logger.warning(f"In-place reload of {project_file} failed: {attempt.error_message}")
                    await self.fallback(unit, attempt)

        return attempts

    async def process_changes(self, changes: list[FileChange]) -> list[ReloadAttempt]:
        """Reload projects for a batch of detected changes.

        Deleted files are skipped; the host decides what happens to a
        project whose file disappeared.
        """
        attempts: list[ReloadAttempt] = []
        seen: set[Path] = set()

        for change in changes:
            if change.change_type == "deleted":
                logger.warning(f"Project file deleted: {change.path}")
                continue
            if change.path in seen:
                continue
            seen.add(change.path)
            attempts.extend(await self.reload_project_file(change.path))

        return attempts

    async def watch_loop(self) -> None:
        """Watch registered project files until close() is called."""
        if self._closed:
            raise ReloadManagerUnavailableError("Cannot watch: reload manager is closed")
        await self.watcher.watch_loop(self.process_changes)

    async def close(self) -> None:
        """Refuse new registrations and stop watching."""
        self._closed = True
        self.watcher.stop()
        logger.info("Reload manager closed")

    def get_reload_history(self, limit: int = 10) -> list[ReloadAttempt]:
        """Get recent reload attempts.

        Args:
            limit: Maximum number of attempts to return.

        Returns:
            List of recent ReloadAttempts.
        """
        return self._reload_history[-limit:]
