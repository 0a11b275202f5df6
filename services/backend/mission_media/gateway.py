"""Delivery gateway for mission imagery.

Each request takes one of two paths:

- stream: the object (or the requested byte range) is copied from the blob
  store to the client chunk by chunk, with the store's metadata mirrored
  onto the response.
- transform: the whole object is fetched, decoded, resized and/or
  contrast-adjusted, and re-encoded. Nothing is sent until the encoded
  buffer is complete, so Content-Length is always exact and a failed
  transform never produces a half-written body.

Once a request enters the transform path it never falls back to streaming.
"""
import logging
from datetime import datetime, timezone
from email.utils import format_datetime
from enum import Enum
from functools import partial
from typing import AsyncIterator, Callable, Optional

from anyio import to_thread
from fastapi.responses import Response, StreamingResponse
from starlette.types import Receive, Scope, Send

from config import Settings
from mission_media import imaging
from mission_media.errors import NotFoundError, ValidationError
from mission_media.imaging import OutputFormat, TransformRequest
from mission_media.storage.base import BlobObject, BlobStore, ByteStream, StorageError

logger = logging.getLogger(__name__)

STREAM_CACHE_CONTROL = "private, max-age=60"
TRANSFORM_CACHE_CONTROL = "private, max-age=3600"

OBJECT_NOT_FOUND = "object not found"


class DeliveryPath(str, Enum):
    """How an image request is served."""

    STREAM = "stream"
    TRANSFORM = "transform"


def choose_path(transform: TransformRequest) -> DeliveryPath:
    """Transform only when a resize or contrast change was requested."""
    if transform.needs_processing:
        return DeliveryPath.TRANSFORM
    return DeliveryPath.STREAM


def http_date(value: datetime) -> str:
    """Format a timestamp as an RFC 7231 HTTP date."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return format_datetime(value.astimezone(timezone.utc), usegmt=True)


def close_quietly(body: ByteStream, key: str) -> None:
    """Release a store stream, logging rather than raising on failure."""
    try:
        body.close()
    except Exception as e:
        logger.warning(f"Failed to close stream for key={key}: {e}")


async def iter_body(body: ByteStream, key: str, chunk_size: int) -> AsyncIterator[bytes]:
    """Copy a blocking store stream to the response in chunks.

    Headers are already committed when this runs, so a read error ends the
    body early and is logged instead of raised. The stream is closed on every
    exit, including client disconnects.
    """
    sent = 0
    try:
        while True:
            chunk = await to_thread.run_sync(body.read, chunk_size, abandon_on_cancel=True)
            if not chunk:
                break
            sent += len(chunk)
            yield chunk
    except Exception as e:
        logger.error(f"Error streaming key={key} after {sent} bytes: {e}")
    finally:
        close_quietly(body, key)


class PassThroughResponse(StreamingResponse):
    """Streaming response that owns the store stream it copies from.

    The stream is released even if the server never starts iterating the
    body, e.g. when the client disconnects before the first chunk.
    """

    def __init__(self, source: BlobObject, key: str, chunk_size: int, **kwargs):
        self.source = source
        self.key = key
        super().__init__(iter_body(source.body, key, chunk_size), **kwargs)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            close_quietly(self.source.body, self.key)


class ImageGateway:
    """Serves one image request by streaming or transforming a blob."""

    def __init__(
        self,
        blob_store: BlobStore,
        bucket: str,
        key_for: Callable[[str], str],
        output_format: OutputFormat = "jpeg",
        jpeg_quality: int = imaging.DEFAULT_JPEG_QUALITY,
        max_dimension: int = 4096,
        chunk_size: int = 64 * 1024,
    ):
        """Initialize the gateway.

        Args:
            blob_store: Store the images are fetched from.
            bucket: Bucket holding the images.
            key_for: Maps an image id to its object key.
            output_format: ``"jpeg"`` to always re-encode as JPEG, ``"source"``
                to keep the source container where it can be written.
            jpeg_quality: Quality for JPEG re-encoding.
            max_dimension: Largest width or height accepted for resizing.
            chunk_size: Read size for pass-through streaming.
        """
        self.blob_store = blob_store
        self.bucket = bucket
        self.key_for = key_for
        self.output_format = output_format
        self.jpeg_quality = jpeg_quality
        self.max_dimension = max_dimension
        self.chunk_size = chunk_size

    @classmethod
    def from_settings(cls, blob_store: BlobStore, settings: Settings) -> "ImageGateway":
        return cls(
            blob_store=blob_store,
            bucket=settings.sat_images_bucket,
            key_for=settings.image_key,
            output_format=settings.transform_output_format,
            jpeg_quality=settings.jpeg_quality,
            max_dimension=settings.max_transform_dimension,
            chunk_size=settings.stream_chunk_size,
        )

    async def deliver(
        self,
        image_id: str,
        range_header: Optional[str],
        transform: TransformRequest,
    ) -> Response:
        """Serve an image, choosing the stream or transform path.

        Args:
            image_id: Image identifier, mapped to an object key.
            range_header: Inbound ``Range`` header. Ignored on the transform
                path, where the whole source is needed.
            transform: Requested resize/contrast.

        Returns:
            Response: 200/206 pass-through stream, or a 200 buffered image.

        Raises:
            ValidationError: If the id is empty or the size is out of bounds.
            NotFoundError: If the object is missing or the fetch failed.
            ImageProcessingError: If decoding, transforming or encoding failed.
        """
        if not image_id or not image_id.strip():
            raise ValidationError("missing id")

        path = choose_path(transform)
        if path is DeliveryPath.TRANSFORM:
            self._check_dimensions(transform)

        key = self.key_for(image_id)
        forwarded_range = range_header if path is DeliveryPath.STREAM else None
        logger.debug(f"Fetching key={key} path={path.value} range={forwarded_range!r}")
        blob = await self._fetch(key, forwarded_range)

        if path is DeliveryPath.STREAM:
            return self._stream(key, blob)
        return await self._transform(key, blob, transform)

    def _check_dimensions(self, transform: TransformRequest) -> None:
        if transform.width > self.max_dimension or transform.height > self.max_dimension:
            logger.warning(
                f"Rejected resize {transform.width}x{transform.height}, "
                f"limit is {self.max_dimension}"
            )
            raise ValidationError(f"width and height must not exceed {self.max_dimension}")

    async def _fetch(self, key: str, range_header: Optional[str]) -> BlobObject:
        # Absence and store failures look the same to the client
        try:
            return await self.blob_store.get_object(self.bucket, key, range_header)
        except StorageError as e:
            logger.error(f"Blob fetch failed bucket={self.bucket} key={key}: {e}")
            raise NotFoundError(OBJECT_NOT_FOUND) from e
        except Exception as e:
            logger.exception(f"Unexpected blob store error bucket={self.bucket} key={key}: {e}")
            raise NotFoundError(OBJECT_NOT_FOUND) from e

    def _stream(self, key: str, blob: BlobObject) -> Response:
        meta = blob.metadata
        headers = {
            "Accept-Ranges": "bytes",
            "Cache-Control": meta.cache_control or STREAM_CACHE_CONTROL,
        }
        if meta.content_length is not None:
            headers["Content-Length"] = str(meta.content_length)
        if meta.etag:
            headers["ETag"] = meta.etag
        if meta.last_modified:
            headers["Last-Modified"] = http_date(meta.last_modified)

        status_code = 200
        if meta.content_range:
            headers["Content-Range"] = meta.content_range
            status_code = 206

        logger.info(f"Streaming key={key} status={status_code} length={meta.content_length}")
        return PassThroughResponse(
            blob,
            key,
            self.chunk_size,
            status_code=status_code,
            headers=headers,
            media_type=meta.content_type,
        )

    async def _transform(self, key: str, blob: BlobObject, transform: TransformRequest) -> Response:
        try:
            data = await to_thread.run_sync(blob.body.read, abandon_on_cancel=True)
        except Exception as e:
            logger.error(f"Failed to read key={key} for transform: {e}")
            raise NotFoundError(OBJECT_NOT_FOUND) from e
        finally:
            close_quietly(blob.body, key)

        encoded = await to_thread.run_sync(
            partial(
                imaging.transform,
                data,
                transform,
                self.output_format,
                self.jpeg_quality,
                self.max_dimension,
            ),
            abandon_on_cancel=True,
        )

        logger.info(
            f"Transformed key={key} width={transform.width} height={transform.height} "
            f"contrast={transform.contrast} -> {encoded.format} {len(encoded.data)} bytes"
        )
        return Response(
            content=encoded.data,
            status_code=200,
            media_type=encoded.media_type,
            headers={
                "Content-Length": str(len(encoded.data)),
                "Cache-Control": TRANSFORM_CACHE_CONTROL,
            },
        )
