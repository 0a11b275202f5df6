"""Shared fixtures for API and gateway tests."""
import io

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from config import Settings
from mission_media.dependencies import ServiceContext, get_service_context
from mission_media.main import app
from mission_media.storage import InMemoryBlobStore, InMemoryKeyValueStore

TEST_BUCKET = "test-sat-images"
TEST_TABLE = "test-missions"


def create_test_image(
    width: int = 400,
    height: int = 200,
    fmt: str = "JPEG",
    mode: str = "RGB",
    color=(200, 120, 40),
) -> bytes:
    """Create a small test image.

    Args:
        width: Image width in pixels.
        height: Image height in pixels.
        fmt: Pillow format name to encode with.
        mode: Pillow image mode.
        color: Fill color.

    Returns:
        bytes: Encoded image data.
    """
    img = Image.new(mode, (width, height), color=color)
    img_bytes = io.BytesIO()
    img.save(img_bytes, format=fmt)
    return img_bytes.getvalue()


def make_mission(index: int, **overrides) -> dict:
    """Build a stored mission item."""
    item = {
        "id": f"m-{index}",
        "name": f"Mission {index}",
        "status": "scheduled",
        "priority": index,
        "target_satellite_id": "25544",
        "observer_satellite_id": "48274",
        "tca": 1767225600 + index,
        "min_range_km": 12.5,
        "collection_window_start": 1767225480,
        "collection_window_end": 1767225720,
        "collection_type": "optical",
        "pointing_target": "target",
        "image_ids": [f"img-{index}-a", f"img-{index}-b"],
    }
    item.update(overrides)
    return item


@pytest.fixture
def settings():
    """Settings pointing at in-memory stores."""
    return Settings(
        storage_type="memory",
        mission_table=TEST_TABLE,
        sat_images_bucket=TEST_BUCKET,
    )


@pytest.fixture
def blob_store():
    return InMemoryBlobStore()


@pytest.fixture
def kv_store():
    return InMemoryKeyValueStore()


@pytest.fixture
def service_context(settings, blob_store, kv_store):
    return ServiceContext(settings=settings, blob_store=blob_store, kv_store=kv_store)


@pytest.fixture
def client(service_context):
    """Create a test client wired to the in-memory service context."""
    app.dependency_overrides[get_service_context] = lambda: service_context

    yield TestClient(app)

    app.dependency_overrides.clear()
