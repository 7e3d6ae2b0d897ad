"""Registries of loaded project documents.

A ProjectCollection caches one document per resolved path. The process-wide
``global_collection`` holds the live documents that editing hosts work on;
reloads parse the on-disk file into a throwaway collection instead so the
fresh document never shows up in, or collides with, the shared registry.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from projreload.document.model import ProjectDocument

logger = logging.getLogger(__name__)


class ProjectCollection:
    """Caches parsed project documents keyed by resolved path."""

    def __init__(self, name: str = "isolated"):
        self.name = name
        self._documents: dict[Path, ProjectDocument] = {}

    def __len__(self) -> int:
        return len(self._documents)

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, str | Path):
            return False
        return Path(path).resolve() in self._documents

    @property
    def loaded_paths(self) -> list[Path]:
        return list(self._documents)

    def open(self, path: str | Path) -> ProjectDocument:
        """Return the cached document for path, parsing it on first use.

        Raises:
            InvalidProjectFileError: If the file is missing or malformed.
        """
        key = Path(path).resolve()
        document = self._documents.get(key)
        if document is None:
            document = ProjectDocument.load(key)
            self._documents[key] = document
            logger.debug(f"Loaded {key} into {self.name} collection")
        return document

    def get(self, path: str | Path) -> ProjectDocument | None:
        return self._documents.get(Path(path).resolve())

    def unload(self, path: str | Path) -> None:
        self._documents.pop(Path(path).resolve(), None)

    def unload_all(self) -> None:
        if self._documents:
            logger.debug(f"Unloading {len(self._documents)} documents from {self.name} collection")
        self._documents.clear()

    @classmethod
    @contextmanager
    def isolated(cls) -> Iterator["ProjectCollection"]:
        """Yield a fresh collection that is emptied on every exit path."""
        collection = cls()
        try:
            yield collection
        finally:
            collection.unload_all()


# Shared registry of live documents
global_collection = ProjectCollection("global")
