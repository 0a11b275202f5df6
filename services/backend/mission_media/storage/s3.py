"""S3 implementation of BlobStore."""
import logging
from functools import partial
from typing import TYPE_CHECKING, Optional

from anyio import to_thread
from botocore.exceptions import BotoCoreError, ClientError

from .base import BlobObject, BlobStore, ObjectMetadata, ObjectNotFoundError, StorageError

if TYPE_CHECKING:
    from mypy_boto3_s3.client import S3Client

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


def is_not_found_client_error(exception: ClientError) -> bool:
    """Check whether a ClientError means the object is absent."""
    error = exception.response.get("Error", {})
    return error.get("Code") in NOT_FOUND_CODES


class S3BlobStore(BlobStore):
    """Blob store backed by an S3 (or S3-compatible) bucket.

    boto3 is blocking, so each call runs in a worker thread. If the awaiting
    request is cancelled the await returns immediately and the thread's
    result is discarded.
    """

    def __init__(self, client: "S3Client"):
        """Initialize the S3 blob store.

        Args:
            client: A boto3 S3 client. Clients are thread-safe and shared.
        """
        self._client = client

    async def get_object(
        self,
        bucket: str,
        key: str,
        range_header: Optional[str] = None,
    ) -> BlobObject:
        """Open an S3 object, forwarding the Range header verbatim.

        Raises:
            ObjectNotFoundError: If the key does not exist.
            StorageError: If the S3 call fails.
        """
        kwargs = {"Bucket": bucket, "Key": key}
        if range_header:
            kwargs["Range"] = range_header

        try:
            result = await to_thread.run_sync(
                partial(self._client.get_object, **kwargs),
                abandon_on_cancel=True,
            )
        except ClientError as e:
            if is_not_found_client_error(e):
                raise ObjectNotFoundError(f"s3://{bucket}/{key} not found") from e
            raise StorageError(f"GetObject failed for s3://{bucket}/{key}: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"GetObject failed for s3://{bucket}/{key}: {e}") from e

        logger.debug(
            f"Opened s3://{bucket}/{key} range={range_header!r} "
            f"length={result.get('ContentLength')}"
        )
        return BlobObject(
            body=result["Body"],
            metadata=ObjectMetadata(
                content_type=result.get("ContentType"),
                content_length=result.get("ContentLength"),
                etag=result.get("ETag"),
                last_modified=result.get("LastModified"),
                cache_control=result.get("CacheControl"),
                content_range=result.get("ContentRange"),
            ),
        )
