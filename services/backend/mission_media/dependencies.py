"""FastAPI dependency injection configuration."""

import logging
from dataclasses import dataclass

import boto3
from fastapi import Depends

from config import Settings, get_settings
from mission_media.gateway import ImageGateway
from mission_media.repositories import MissionRepository
from mission_media.storage import (
    BlobStore,
    DynamoDBStore,
    InMemoryBlobStore,
    InMemoryKeyValueStore,
    KeyValueStore,
    S3BlobStore,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServiceContext:
    """Immutable per-process handles shared by every request.

    Store clients are safe for concurrent reuse; nothing here is mutated
    after construction.
    """

    settings: Settings
    blob_store: BlobStore
    kv_store: KeyValueStore


# Global instance, built on first use
_service_context: ServiceContext | None = None


def build_service_context(settings: Settings) -> ServiceContext:
    """Create the store clients selected by STORAGE_TYPE.

    - "aws": S3 for imagery and DynamoDB for missions
    - "memory": empty in-memory stores (data lost on restart)
    """
    if settings.storage_type == "memory":
        logger.info("Created in-memory blob and key-value stores")
        return ServiceContext(
            settings=settings,
            blob_store=InMemoryBlobStore(),
            kv_store=InMemoryKeyValueStore(),
        )

    session = boto3.Session(region_name=settings.aws_region)
    s3 = session.client("s3", endpoint_url=settings.aws_endpoint_url)
    dynamodb = session.client("dynamodb", endpoint_url=settings.aws_endpoint_url)
    logger.info(
        f"Created AWS store clients region={session.region_name} "
        f"table={settings.mission_table} bucket={settings.sat_images_bucket}"
    )
    return ServiceContext(
        settings=settings,
        blob_store=S3BlobStore(s3),
        kv_store=DynamoDBStore(dynamodb),
    )


def get_service_context() -> ServiceContext:
    """Get the process-wide service context."""
    global _service_context

    if _service_context is None:
        _service_context = build_service_context(get_settings())

    return _service_context


def get_image_gateway(context: ServiceContext = Depends(get_service_context)) -> ImageGateway:
    """Get an ImageGateway bound to the context's blob store."""
    return ImageGateway.from_settings(context.blob_store, context.settings)


def get_mission_repository(
    context: ServiceContext = Depends(get_service_context),
) -> MissionRepository:
    """Get a MissionRepository bound to the context's key-value store."""
    return MissionRepository(
        context.kv_store,
        context.settings.mission_table,
        default_page_size=context.settings.default_page_size,
        max_page_size=context.settings.max_page_size,
    )
