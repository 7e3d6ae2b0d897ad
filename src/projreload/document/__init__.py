"""Project document model and document registries."""

from projreload.document.collection import ProjectCollection, global_collection
from projreload.document.model import ProjectDocument

__all__ = ["ProjectCollection", "ProjectDocument", "global_collection"]
