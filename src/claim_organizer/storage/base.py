"""Abstract base classes for the document source and the grouping store."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any
from urllib.parse import unquote

from claim_organizer.models.document import SourceDocument

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


@dataclass
class GroupingInfo:
    """A claim grouping (folder) in the destination store."""

    name: str
    location: str
    modified_at: datetime | None = None


class DocumentSource(ABC):
    """Enumerable collection of newly dropped documents.

    Documents are opaque handles; their bytes are fetched on demand.
    """

    @abstractmethod
    async def list_documents(self) -> list[SourceDocument]:
        """List documents waiting to be processed.

        Raises:
            StorageReadError: If the source cannot be listed.
        """
        ...

    @abstractmethod
    async def read_bytes(self, document: SourceDocument) -> bytes:
        """Download document content.

        Raises:
            StorageReadError: If the document cannot be read.
        """
        ...


class GroupingStore(ABC):
    """Destination store holding one grouping per claim.

    Creation is idempotent: creating a grouping that already exists returns
    the existing one, so concurrent runs converge on a single grouping.
    """

    # =========================================================================
    # Grouping Operations
    # =========================================================================

    @abstractmethod
    async def list_groupings(self) -> list[GroupingInfo]:
        """List all groupings under the destination root.

        Raises:
            StorageReadError: If the root cannot be listed.
        """
        ...

    @abstractmethod
    async def find_grouping(self, name: str) -> GroupingInfo | None:
        """Find a grouping by exact name."""
        ...

    @abstractmethod
    async def create_grouping(self, name: str) -> GroupingInfo:
        """Create a grouping, returning the existing one if present.

        Raises:
            StorageWriteError: If the grouping cannot be created.
        """
        ...

    # =========================================================================
    # Document Operations
    # =========================================================================

    @abstractmethod
    async def move_document(self, document: SourceDocument, grouping: GroupingInfo) -> str:
        """Relocate a source document into a grouping.

        Returns:
            Location of the document after the move.

        Raises:
            StorageMoveError: If the move fails.
        """
        ...

    @abstractmethod
    async def rename_document(self, location: str, new_name: str) -> str:
        """Rename a document inside its grouping.

        Returns:
            Location after the rename (a numeric suffix is added on collision).

        Raises:
            StorageMoveError: If the rename fails.
        """
        ...

    # =========================================================================
    # Metadata Operations
    # =========================================================================

    @abstractmethod
    async def read_metadata(self, grouping: GroupingInfo) -> dict[str, Any] | None:
        """Read the metadata sidecar of a grouping, None if absent or corrupt."""
        ...

    @abstractmethod
    async def write_metadata(self, grouping: GroupingInfo, metadata: dict[str, Any]) -> None:
        """Write the metadata sidecar of a grouping.

        Raises:
            StorageWriteError: If the sidecar cannot be written.
        """
        ...

    # =========================================================================
    # Helper Operations (with default implementations)
    # =========================================================================

    async def ensure_grouping(self, name: str) -> tuple[GroupingInfo, bool]:
        """Find a grouping or create it.

        Returns:
            Tuple of (grouping, created).
        """
        existing = await self.find_grouping(name)
        if existing is not None:
            return existing, False
        return await self.create_grouping(name), True

    def document_name(self, location: str) -> str:
        """File name component of a document location."""
        return unquote(location.rstrip("/").rsplit("/", 1)[-1])

    async def list_recent_groupings(self, limit: int) -> list[GroupingInfo]:
        """Most recently modified groupings, newest first."""
        groupings = await self.list_groupings()
        groupings.sort(key=lambda g: g.modified_at or _EPOCH, reverse=True)
        return groupings[:limit]


class StorageError(Exception):
    """Base exception for storage operations."""

    pass


class StorageReadError(StorageError):
    """Error while listing or reading."""

    pass


class StorageWriteError(StorageError):
    """Error while creating groupings or writing metadata."""

    pass


class StorageMoveError(StorageError):
    """Error while relocating or renaming a document."""

    pass
