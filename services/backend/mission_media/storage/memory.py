"""In-memory store implementations.

Used for local development and tests. Data is not persisted and will be lost
when the application restarts.
"""
import hashlib
import io
import logging
import re
from datetime import datetime, timezone
from typing import Any, Optional

from mission_media.pagination import ResumeKey, key_attribute

from .base import (
    BlobObject,
    BlobStore,
    KeyValueStore,
    ObjectMetadata,
    ObjectNotFoundError,
    ScanPage,
    StorageError,
)

logger = logging.getLogger(__name__)

_range_re = re.compile(r"^bytes=(\d*)-(\d*)$")


def resolve_range(range_header: str, size: int) -> Optional[tuple[int, int]]:
    """Resolve a single-range ``Range`` header against an object size.

    Mirrors S3: a header that does not parse is ignored (None, full object),
    a range that parses but cannot be satisfied is an error.

    Returns:
        Inclusive (start, end) byte offsets, or None to serve the whole object.

    Raises:
        StorageError: If the range is not satisfiable.
    """
    m = _range_re.match(range_header.strip())
    if not m or (m.group(1) == "" and m.group(2) == ""):
        return None

    first, last = m.group(1), m.group(2)
    if first == "":
        # Suffix range: the final N bytes
        length = int(last)
        if length == 0 or size == 0:
            raise StorageError(f"Range not satisfiable: {range_header}")
        return max(size - length, 0), size - 1

    start = int(first)
    end = size - 1 if last == "" else min(int(last), size - 1)
    if start >= size or (last != "" and int(last) < start):
        raise StorageError(f"Range not satisfiable: {range_header}")
    return start, end


class InMemoryBlobStore(BlobStore):
    """Blob store holding objects in a dictionary keyed by (bucket, key)."""

    def __init__(self):
        """Initialize the in-memory blob store."""
        self._objects: dict[tuple[str, str], tuple[bytes, ObjectMetadata]] = {}
        logger.info("Initialized InMemoryBlobStore")

    def put_object(
        self,
        bucket: str,
        key: str,
        content: bytes,
        content_type: str = "application/octet-stream",
        cache_control: Optional[str] = None,
    ) -> None:
        """Store an object, replacing any previous content under the key."""
        metadata = ObjectMetadata(
            content_type=content_type,
            content_length=len(content),
            etag=f'"{hashlib.md5(content).hexdigest()}"',
            last_modified=datetime.now(timezone.utc).replace(microsecond=0),
            cache_control=cache_control,
        )
        self._objects[(bucket, key)] = (content, metadata)

    def clear(self) -> None:
        """Remove all objects."""
        self._objects.clear()

    async def get_object(
        self,
        bucket: str,
        key: str,
        range_header: Optional[str] = None,
    ) -> BlobObject:
        """Open a stored object as a BytesIO stream."""
        try:
            content, metadata = self._objects[(bucket, key)]
        except KeyError:
            raise ObjectNotFoundError(f"{bucket}/{key} not found")

        if range_header:
            byte_range = resolve_range(range_header, len(content))
            if byte_range is not None:
                start, end = byte_range
                part = content[start:end + 1]
                metadata = ObjectMetadata(
                    content_type=metadata.content_type,
                    content_length=len(part),
                    etag=metadata.etag,
                    last_modified=metadata.last_modified,
                    cache_control=metadata.cache_control,
                    content_range=f"bytes {start}-{end}/{len(content)}",
                )
                return BlobObject(body=io.BytesIO(part), metadata=metadata)

        return BlobObject(body=io.BytesIO(content), metadata=metadata)


class InMemoryKeyValueStore(KeyValueStore):
    """Key-value store holding each table as an insertion-ordered list.

    Every table is keyed by a single partition attribute, ``id`` by default.
    """

    def __init__(self, key_name: str = "id"):
        """Initialize the in-memory key-value store.

        Args:
            key_name: Primary key attribute shared by all tables.
        """
        self.key_name = key_name
        self._tables: dict[str, dict[Any, dict[str, Any]]] = {}
        logger.info("Initialized InMemoryKeyValueStore")

    def put_item(self, table: str, item: dict[str, Any]) -> None:
        """Insert or replace an item."""
        if self.key_name not in item:
            raise ValueError(f"Item is missing key attribute {self.key_name!r}")
        self._tables.setdefault(table, {})[item[self.key_name]] = dict(item)

    def clear(self) -> None:
        """Remove all tables."""
        self._tables.clear()

    async def get_item(self, table: str, key: dict[str, Any]) -> Optional[dict[str, Any]]:
        """Fetch one item by primary key."""
        item = self._tables.get(table, {}).get(key.get(self.key_name))
        return dict(item) if item is not None else None

    async def scan(
        self,
        table: str,
        limit: int,
        resume_key: Optional[ResumeKey] = None,
    ) -> ScanPage:
        """Scan a page of items in insertion order.

        Unlike DynamoDB, no resume key is returned when the page reaches the
        end of the table exactly.
        """
        if limit <= 0:
            raise StorageError(f"Scan limit must be positive, got {limit}")

        keys = list(self._tables.get(table, {}).keys())
        start = 0
        if resume_key:
            wanted = resume_key.get(self.key_name)
            positions = [i for i, k in enumerate(keys) if key_attribute(k) == wanted]
            if not positions:
                raise StorageError(f"Resume key not found in table {table}")
            start = positions[0] + 1

        page_keys = keys[start:start + limit]
        items = [dict(self._tables[table][k]) for k in page_keys]

        last_key = None
        if page_keys and start + limit < len(keys):
            last_key = {self.key_name: key_attribute(page_keys[-1])}

        return ScanPage(items=items, last_key=last_key)
