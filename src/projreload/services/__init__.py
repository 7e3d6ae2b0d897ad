"""Collaborator services around the live project documents."""

from projreload.services.host import ProjectServices
from projreload.services.lock import AsyncReaderWriterLock, ProjectLockService, ReadAccess, WriteAccess
from projreload.services.tree import ProjectTree, ProjectTreeService, evaluate_document

__all__ = [
    "AsyncReaderWriterLock",
    "ProjectLockService",
    "ProjectServices",
    "ProjectTree",
    "ProjectTreeService",
    "ReadAccess",
    "WriteAccess",
    "evaluate_document",
]
