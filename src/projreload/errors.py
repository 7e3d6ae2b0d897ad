"""Exception types shared across projreload."""

from pathlib import Path


class ProjReloadError(Exception):
    """Base class for projreload errors."""


class InvalidProjectFileError(ProjReloadError):
    """Raised when a project file cannot be read or parsed."""

    def __init__(
        self,
        path: Path | None,
        reason: str,
        line: int | None = None,
        column: int | None = None,
    ):
        self.path = path
        self.reason = reason
        self.line = line
        self.column = column
        location = f" (line {line}, column {column})" if line is not None else ""
        super().__init__(f"Invalid project file {path}{location}: {reason}")


class LockServiceUnavailableError(ProjReloadError):
    """Raised when a lock is requested from a closed lock service."""


class LockNotHeldError(ProjReloadError):
    """Raised when lock-scoped access is used outside the owning task."""


class DocumentNotFoundError(ProjReloadError):
    """Raised when the lock service has no document for a path."""

    def __init__(self, path: Path):
        self.path = path
        super().__init__(f"No project document registered for {path}")


class ReloadManagerUnavailableError(ProjReloadError):
    """Raised when registering with a closed reload manager."""


class ObjectDisposedError(ProjReloadError):
    """Raised when a disposed component is used again."""
