"""Storage abstraction layer for source documents and claim groupings."""

from claim_organizer.storage.base import (
    DocumentSource,
    GroupingInfo,
    GroupingStore,
    StorageError,
    StorageMoveError,
    StorageReadError,
    StorageWriteError,
)
from claim_organizer.storage.local import LocalDocumentSource, LocalGroupingStore

__all__ = [
    "DocumentSource",
    "GroupingInfo",
    "GroupingStore",
    "LocalDocumentSource",
    "LocalGroupingStore",
    "StorageError",
    "StorageMoveError",
    "StorageReadError",
    "StorageWriteError",
]
