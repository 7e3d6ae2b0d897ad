"""Project file change watching.

Polls the project files registered with the reload manager and reports
which of them changed on disk. Uses modification times, optionally
confirmed by a content hash so that touching a file without changing it
does not trigger a reload.
"""

import asyncio
import hashlib
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass
class WatchConfig:
    """Configuration for project file watching."""

    # Seconds between polls of the watched files
    poll_interval: float = 1.0

    # Seconds without further changes before reporting a batch
    debounce_seconds: float = 0.5

    # Confirm mtime changes by comparing content hashes
    use_hash: bool = True


@dataclass
class FileChange:
    """Represents a detected file change."""

    path: Path
    change_type: str  # "modified", "created", "deleted"
    detected_at: datetime = field(default_factory=lambda: datetime.now(UTC))


# (mtime, hash) of a file, or None while it does not exist
FileState = tuple[float, str | None] | None


class ProjectFileWatcher:
    """Watches an explicit set of project files for changes."""

    def __init__(self, config: WatchConfig | None = None):
        self.config = config or WatchConfig()
        self._file_states: dict[Path, FileState] = {}
        self._running = False

    @property
    def watched_paths(self) -> list[Path]:
        return list(self._file_states)

    @property
    def is_running(self) -> bool:
        return self._running

    def _compute_hash(self, path: Path) -> str:
        """Compute SHA256 hash of file content."""
        content = path.read_bytes()
        return hashlib.sha256(content).hexdigest()

    def _read_state(self, path: Path) -> FileState:
        try:
            mtime = path.stat().st_mtime
            file_hash = self._compute_hash(path) if self.config.use_hash else None
        except OSError:
            return None
        return mtime, file_hash

    def track(self, path: Path) -> None:
        """Start watching a file, recording its current state."""
        if path not in self._file_states:
            self._file_states[path] = self._read_state(path)
            logger.debug(f"Watching {path}")

    def untrack(self, path: Path) -> None:
        if path in self._file_states:
            del self._file_states[path]
            logger.debug(f"Stopped watching {path}")

    def detect_changes(self) -> list[FileChange]:
        """Detect changes since the last call.

        Returns:
            List of FileChange objects describing detected changes.
        """
        changes: list[FileChange] = []

        for path, old_state in list(self._file_states.items()):
            new_state = self._read_state(path)

            if old_state is None and new_state is not None:
                changes.append(FileChange(path=path, change_type="created"))
            elif old_state is not None and new_state is None:
                changes.append(FileChange(path=path, change_type="deleted"))
            elif old_state is not None and new_state is not None:
                old_mtime, old_hash = old_state
                new_mtime, new_hash = new_state
                if self.config.use_hash:
                    changed = new_hash != old_hash
                else:
                    changed = new_mtime != old_mtime
                if changed:
                    changes.append(FileChange(path=path, change_type="modified"))

            self._file_states[path] = new_state

        return changes

    def stop(self) -> None:
        """Ask a running watch loop to exit after its current poll."""
        self._running = False

    async def watch_loop(self, callback: Callable[[list[FileChange]], Awaitable[object]]) -> None:
        """Poll for changes until stop() is called.

        Args:
            callback: Async function to call with each debounced batch of changes.
        """
        self._running = True
        pending_changes: list[FileChange] = []
        last_change_time: datetime | None = None

        while self._running:
            changes = self.detect_changes()

            if changes:
                pending_changes.extend(changes)
                last_change_time = datetime.now(UTC)

            # Debounce: wait for changes to settle
            if (
                pending_changes
                and last_change_time
                and (datetime.now(UTC) - last_change_time).total_seconds()
                >= self.config.debounce_seconds
            ):
                logger.info(f"Detected {len(pending_changes)} project file changes")
                await callback(pending_changes)
                pending_changes = []
                last_change_time = None

            await asyncio.sleep(self.config.poll_interval)
