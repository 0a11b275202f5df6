"""Storage module for mission records and imagery."""

from .base import (
    BlobObject,
    BlobStore,
    KeyValueStore,
    ObjectMetadata,
    ObjectNotFoundError,
    ScanPage,
    StorageError,
)
from .dynamodb import DynamoDBStore
from .memory import InMemoryBlobStore, InMemoryKeyValueStore
from .s3 import S3BlobStore

__all__ = [
    "BlobObject",
    "BlobStore",
    "KeyValueStore",
    "ObjectMetadata",
    "ObjectNotFoundError",
    "ScanPage",
    "StorageError",
    "DynamoDBStore",
    "InMemoryBlobStore",
    "InMemoryKeyValueStore",
    "S3BlobStore",
]
