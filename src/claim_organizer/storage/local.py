"""Local filesystem document source and grouping store."""

import asyncio
import json
import mimetypes
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from urllib.parse import quote, unquote

import aiofiles
import aiofiles.os

from claim_organizer.models.document import SourceDocument
from claim_organizer.storage.base import (
    DocumentSource,
    GroupingInfo,
    GroupingStore,
    StorageMoveError,
    StorageReadError,
    StorageWriteError,
)

URI_SCHEME = "file://"
METADATA_FILENAME = ".claim.meta"


def path_to_uri(path: Path) -> str:
    """Convert a filesystem path to a file:// URI."""
    return f"{URI_SCHEME}{quote(str(path))}"


def uri_to_path(file_uri: str) -> Path:
    """Convert a file:// URI back to a filesystem path.

    Raises:
        ValueError: If the URI does not use the file:// scheme.
    """
    if not file_uri.startswith(URI_SCHEME):
        raise ValueError(f"Invalid file URI: {file_uri} (expected file:// scheme)")
    return Path(unquote(file_uri[len(URI_SCHEME):]))


def _mtime(path: Path) -> datetime:
    return datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)


def _unique_target(directory: Path, filename: str) -> Path:
    """Return ``directory/filename``, suffixed ``-1``, ``-2``... if taken."""
    target = directory / filename
    counter = 1
    while target.exists():
        target = directory / f"{Path(filename).stem}-{counter}{Path(filename).suffix}"
        counter += 1
    return target


class _LocalRoot:
    """Shared root handling with traversal protection."""

    def __init__(self, base_path: str):
        self.base_path = Path(base_path).resolve()
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _get_full_path(self, name: str) -> Path:
        """Resolve a name under the root.

        Raises:
            ValueError: If path traversal is detected.
        """
        name = name.lstrip("/")
        full_path = (self.base_path / name).resolve()
        if full_path != self.base_path and self.base_path not in full_path.parents:
            raise ValueError(f"Invalid name: {name} (path traversal detected)")
        return full_path

    def _uri_to_path(self, file_uri: str) -> Path:
        """Convert a URI to a path, refusing locations outside the root."""
        path = uri_to_path(file_uri).resolve()
        if self.base_path not in path.parents:
            raise ValueError(f"Invalid file URI: {file_uri} (outside storage root)")
        return path


class LocalDocumentSource(_LocalRoot, DocumentSource):
    """Document source backed by a local inbox directory.

    Every non-hidden regular file directly under the root is a document.
    Documents are listed in name order.
    """

    def __init__(self, base_path: str = "./data/inbox"):
        """Initialize local document source.

        Args:
            base_path: Inbox directory (SOURCE_ROOT).
        """
        super().__init__(base_path)

    async def list_documents(self) -> list[SourceDocument]:
        """List documents in the inbox."""
        try:
            entries = sorted(self.base_path.iterdir(), key=lambda p: p.name)
        except OSError as e:
            raise StorageReadError(f"Failed to list {self.base_path}: {e}") from e

        documents: list[SourceDocument] = []
        for path in entries:
            if path.name.startswith(".") or not path.is_file():
                continue
            content_type, _ = mimetypes.guess_type(path.name)
            stat = path.stat()
            documents.append(
                SourceDocument(
                    source_id=path_to_uri(path),
                    name=path.name,
                    content_type=content_type or "application/octet-stream",
                    size=stat.st_size,
                    modified_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
                )
            )
        return documents

    async def read_bytes(self, document: SourceDocument) -> bytes:
        """Read document content."""
        path = self._uri_to_path(document.source_id)
        try:
            async with aiofiles.open(path, "rb") as f:
                return await f.read()
        except OSError as e:
            raise StorageReadError(f"Failed to read {document.name}: {e}") from e


class LocalGroupingStore(_LocalRoot, GroupingStore):
    """Grouping store where each claim is a directory under the root.

    Each grouping directory may carry a ``.claim.meta`` JSON sidecar with the
    claim's structured identity.

    Layout:
        {root}/{label}/.claim.meta
        {root}/{label}/{PREFIX}_{original name}
        {root}/{label}/claim_report.xlsx
    """

    def __init__(self, base_path: str = "./data/claims"):
        """Initialize local grouping store.

        Args:
            base_path: Destination directory (DESTINATION_ROOT).
        """
        super().__init__(base_path)

    def _info(self, path: Path) -> GroupingInfo:
        return GroupingInfo(name=path.name, location=path_to_uri(path), modified_at=_mtime(path))

    # =========================================================================
    # Grouping Operations
    # =========================================================================

    async def list_groupings(self) -> list[GroupingInfo]:
        """List grouping directories in name order."""
        try:
            entries = sorted(self.base_path.iterdir(), key=lambda p: p.name)
        except OSError as e:
            raise StorageReadError(f"Failed to list {self.base_path}: {e}") from e

        return [
            self._info(path)
            for path in entries
            if path.is_dir() and not path.name.startswith(".")
        ]

    async def find_grouping(self, name: str) -> GroupingInfo | None:
        """Find a grouping directory by exact name."""
        path = self._get_full_path(name)
        if not path.is_dir():
            return None
        return self._info(path)

    async def create_grouping(self, name: str) -> GroupingInfo:
        """Create a grouping directory (no-op if it exists)."""
        path = self._get_full_path(name)
        try:
            await aiofiles.os.makedirs(path, exist_ok=True)
        except OSError as e:
            raise StorageWriteError(f"Failed to create grouping {name}: {e}") from e
        return self._info(path)

    # =========================================================================
    # Document Operations
    # =========================================================================

    async def move_document(self, document: SourceDocument, grouping: GroupingInfo) -> str:
        """Move a document file into a grouping directory."""
        source_path = uri_to_path(document.source_id)
        grouping_path = self._uri_to_path(grouping.location)

        if not source_path.exists():
            raise StorageMoveError(f"Document not found: {document.name}")

        target = _unique_target(grouping_path, source_path.name)
        try:
            await asyncio.to_thread(shutil.move, str(source_path), str(target))
        except OSError as e:
            raise StorageMoveError(f"Failed to move {document.name} to {grouping.name}: {e}") from e
        return path_to_uri(target)

    async def rename_document(self, location: str, new_name: str) -> str:
        """Rename a document within its directory."""
        path = self._uri_to_path(location)
        if path.name == new_name:
            return location

        target = _unique_target(path.parent, new_name)
        try:
            await aiofiles.os.rename(path, target)
        except OSError as e:
            raise StorageMoveError(f"Failed to rename {path.name} to {new_name}: {e}") from e
        return path_to_uri(target)

    # =========================================================================
    # Metadata Operations
    # =========================================================================

    async def read_metadata(self, grouping: GroupingInfo) -> dict[str, Any] | None:
        """Read the grouping's metadata sidecar."""
        meta_path = self._uri_to_path(grouping.location) / METADATA_FILENAME
        if not meta_path.exists():
            return None
        try:
            async with aiofiles.open(meta_path, "r") as f:
                data = json.loads(await f.read())
        except (json.JSONDecodeError, OSError):
            return None
        return data if isinstance(data, dict) else None

    async def write_metadata(self, grouping: GroupingInfo, metadata: dict[str, Any]) -> None:
        """Write the grouping's metadata sidecar."""
        meta_path = self._uri_to_path(grouping.location) / METADATA_FILENAME
        try:
            async with aiofiles.open(meta_path, "w") as f:
                await f.write(json.dumps(metadata, indent=2))
        except OSError as e:
            raise StorageWriteError(f"Failed to write metadata for {grouping.name}: {e}") from e

