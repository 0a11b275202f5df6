"""Store client interfaces for mission records and imagery."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Protocol, runtime_checkable

from mission_media.pagination import ResumeKey


class ByteStream(Protocol):
    """Blocking, file-like body returned by a blob store."""

    def read(self, size: int = -1) -> bytes:
        ...

    def close(self) -> None:
        ...


@dataclass(frozen=True)
class ObjectMetadata:
    """Metadata mirrored from a blob store object onto the HTTP response."""

    content_type: Optional[str] = None
    content_length: Optional[int] = None
    etag: Optional[str] = None
    last_modified: Optional[datetime] = None
    cache_control: Optional[str] = None
    content_range: Optional[str] = None


@dataclass(frozen=True)
class BlobObject:
    """An opened blob: an unread byte stream plus its metadata.

    The caller owns ``body`` and must close it.
    """

    body: ByteStream
    metadata: ObjectMetadata


@dataclass(frozen=True)
class ScanPage:
    """One page of a bounded table scan.

    ``last_key`` is None when the scan has no more pages.
    """

    items: list[dict[str, Any]] = field(default_factory=list)
    last_key: Optional[ResumeKey] = None


@runtime_checkable
class BlobStore(Protocol):
    """Abstract interface for fetching image objects.

    Implementations must be safe to share across concurrent requests.
    """

    async def get_object(
        self,
        bucket: str,
        key: str,
        range_header: Optional[str] = None,
    ) -> BlobObject:
        """Open an object, optionally restricted to a byte range.

        Args:
            bucket: Bucket holding the object.
            key: Object key.
            range_header: HTTP ``Range`` header value forwarded verbatim.

        Returns:
            BlobObject: Open stream and metadata. ``metadata.content_range``
            is set when the store honoured a range.

        Raises:
            ObjectNotFoundError: If the object does not exist.
            StorageError: If the store call fails.
        """
        ...


@runtime_checkable
class KeyValueStore(Protocol):
    """Abstract interface for mission record lookups and scans."""

    async def get_item(self, table: str, key: dict[str, Any]) -> Optional[dict[str, Any]]:
        """Fetch one item by primary key.

        Returns:
            The item as plain Python values, or None if absent.

        Raises:
            StorageError: If the store call fails.
        """
        ...

    async def scan(
        self,
        table: str,
        limit: int,
        resume_key: Optional[ResumeKey] = None,
    ) -> ScanPage:
        """Scan at most ``limit`` items, continuing after ``resume_key``.

        Raises:
            StorageError: If the store call fails.
        """
        ...


class StorageError(Exception):
    """Base exception for storage-related errors."""
    pass


class ObjectNotFoundError(StorageError):
    """The requested object or item does not exist."""
    pass
