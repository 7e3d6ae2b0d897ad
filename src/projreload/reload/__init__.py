"""In-place reload of project definition documents.

- Reloadable projects that swap new on-disk content into the live document
- A reload manager that dispatches file changes and handles fallbacks
- Polling watcher for project files
"""

from projreload.reload.lifecycle import OnceInitializedOnceDisposed
from projreload.reload.manager import ProjectReloadManager, log_full_reload_required
from projreload.reload.reloadable import ReloadableProject, ReloadAttempt, ReloadErrorKind, ReloadResult
from projreload.reload.watcher import FileChange, ProjectFileWatcher, WatchConfig

__all__ = [
    "FileChange",
    "OnceInitializedOnceDisposed",
    "ProjectFileWatcher",
    "ProjectReloadManager",
    "ReloadAttempt",
    "ReloadErrorKind",
    "ReloadResult",
    "ReloadableProject",
    "WatchConfig",
    "log_full_reload_required",
]
