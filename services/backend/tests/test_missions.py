"""Tests for the mission endpoints and repository."""
import base64
import json
from decimal import Decimal

import pytest

from conftest import TEST_TABLE, make_mission
from mission_media.errors import UpstreamError, ValidationError
from mission_media.repositories import MissionRepository, resolve_page_size
from mission_media.storage import InMemoryKeyValueStore, ScanPage, StorageError


@pytest.fixture
def five_missions(kv_store):
    for i in range(1, 6):
        kv_store.put_item(TEST_TABLE, make_mission(i))


def mission_ids(response) -> list:
    return [m["id"] for m in response.json()["missions"]]


class TestResolvePageSize:
    """Test page size resolution."""

    def test_default(self):
        assert resolve_page_size(None) == 10
        assert resolve_page_size(None, default=25) == 25

    def test_clamped(self):
        assert resolve_page_size(500) == 100
        assert resolve_page_size(500, maximum=50) == 50

    def test_passthrough(self):
        assert resolve_page_size(7) == 7

    @pytest.mark.parametrize("count", [0, -1])
    def test_non_positive(self, count):
        with pytest.raises(ValidationError):
            resolve_page_size(count)


class TestListMissions:
    """GET /missions."""

    def test_pages_through_table(self, client, five_missions):
        first = client.get("/missions?count=2")
        assert first.status_code == 200
        assert mission_ids(first) == ["m-1", "m-2"]
        token = first.json()["nextToken"]

        second = client.get("/missions", params={"count": 2, "nextToken": token})
        assert mission_ids(second) == ["m-3", "m-4"]

        third = client.get("/missions", params={"count": 2, "nextToken": second.json()["nextToken"]})
        assert mission_ids(third) == ["m-5"]
        assert "nextToken" not in third.json()

    def test_token_is_url_safe_and_opaque(self, client, five_missions):
        token = client.get("/missions?count=1").json()["nextToken"]

        payload = json.loads(base64.urlsafe_b64decode(token))
        assert payload == {"id": {"S": "m-1"}}

    def test_default_page_size(self, client, kv_store):
        for i in range(15):
            kv_store.put_item(TEST_TABLE, make_mission(i))

        response = client.get("/missions")

        assert len(response.json()["missions"]) == 10
        assert "nextToken" in response.json()

    def test_count_clamped(self, client, kv_store):
        for i in range(120):
            kv_store.put_item(TEST_TABLE, make_mission(i))

        response = client.get("/missions?count=500")

        assert response.status_code == 200
        assert len(response.json()["missions"]) == 100

    def test_empty_table(self, client):
        response = client.get("/missions")

        assert response.status_code == 200
        assert response.json() == {"missions": []}

    def test_empty_token_starts_over(self, client, five_missions):
        response = client.get("/missions?count=1&nextToken=")

        assert mission_ids(response) == ["m-1"]

    def test_mission_fields(self, client, kv_store):
        kv_store.put_item(TEST_TABLE, make_mission(1))

        mission = client.get("/missions").json()["missions"][0]

        assert mission == {
            "id": "m-1",
            "name": "Mission 1",
            "status": "scheduled",
            "priority": 1,
            "target_satellite_id": "25544",
            "observer_satellite_id": "48274",
            "tca": 1767225601,
            "min_range_km": 12.5,
            "collection_window_start": 1767225480,
            "collection_window_end": 1767225720,
            "collection_type": "optical",
            "pointing_target": "target",
            "image_ids": ["img-1-a", "img-1-b"],
        }

    @pytest.mark.parametrize("count", ["0", "-3", "abc", "1.5"])
    def test_invalid_count(self, client, five_missions, count):
        response = client.get(f"/missions?count={count}")

        assert response.status_code == 400
        assert "error" in response.json()

    @pytest.mark.parametrize("token", [
        "!!!",
        base64.b64encode(b"not json").decode(),
        base64.b64encode(json.dumps({"id": {"B": "AA=="}}).encode()).decode(),
        base64.b64encode(json.dumps({"id": {"S": "m-1", "N": "1"}}).encode()).decode(),
    ])
    def test_invalid_token(self, client, five_missions, token):
        response = client.get("/missions", params={"nextToken": token})

        assert response.status_code == 400
        assert response.json() == {"error": "invalid pagination token"}

    def test_scan_failure(self, client, kv_store, monkeypatch):
        async def failing_scan(table, limit, resume_key=None):
            raise StorageError("throttled")

        monkeypatch.setattr(kv_store, "scan", failing_scan)

        response = client.get("/missions")

        assert response.status_code == 500
        assert response.json() == {"error": "failed to retrieve missions"}

    def test_stale_token(self, client, five_missions, kv_store):
        token = client.get("/missions?count=1").json()["nextToken"]
        kv_store.clear()

        response = client.get("/missions", params={"nextToken": token})

        assert response.status_code == 500
        assert response.json() == {"error": "failed to retrieve missions"}

    def test_malformed_item(self, client, kv_store):
        kv_store.put_item(TEST_TABLE, make_mission(1, priority="high"))

        response = client.get("/missions")

        assert response.status_code == 500
        assert response.json() == {"error": "failed to process mission data"}


class TestGetMission:
    """GET /mission/{id}."""

    def test_found(self, client, five_missions):
        response = client.get("/mission/m-3")

        assert response.status_code == 200
        assert response.json()["id"] == "m-3"
        assert response.json()["image_ids"] == ["img-3-a", "img-3-b"]

    def test_missing_attributes_default(self, client, kv_store):
        kv_store.put_item(TEST_TABLE, {"id": "bare"})

        response = client.get("/mission/bare")

        assert response.status_code == 200
        body = response.json()
        assert body["name"] == ""
        assert body["priority"] == 0
        assert body["min_range_km"] == 0.0
        assert body["image_ids"] == []

    def test_numbers_from_store(self, client, kv_store):
        kv_store.put_item(TEST_TABLE, make_mission(
            2, priority=Decimal("4"), tca=Decimal("1767225602"), min_range_km=Decimal("3.25"),
        ))

        body = client.get("/mission/m-2").json()

        assert body["priority"] == 4
        assert body["tca"] == 1767225602
        assert body["min_range_km"] == 3.25

    def test_not_found(self, client):
        response = client.get("/mission/does-not-exist")

        assert response.status_code == 404
        assert response.json() == {"error": "mission not found"}

    def test_missing_id(self, client):
        response = client.get("/mission/")

        assert response.status_code == 400
        assert response.json() == {"error": "missing id"}

    def test_lookup_failure(self, client, kv_store, monkeypatch):
        async def failing_get_item(table, key):
            raise StorageError("timeout")

        monkeypatch.setattr(kv_store, "get_item", failing_get_item)

        response = client.get("/mission/m-1")

        assert response.status_code == 500
        assert response.json() == {"error": "failed to retrieve mission"}


class TestMissionRepository:
    """Repository behaviour independent of HTTP."""

    @pytest.mark.asyncio
    async def test_uses_configured_page_sizes(self):
        store = InMemoryKeyValueStore()
        for i in range(10):
            store.put_item("t", make_mission(i))
        repo = MissionRepository(store, "t", default_page_size=3, max_page_size=4)

        assert len((await repo.list_missions()).missions) == 3
        assert len((await repo.list_missions(count=9)).missions) == 4

    @pytest.mark.asyncio
    async def test_empty_last_page(self):
        class EmptyStore(InMemoryKeyValueStore):
            async def scan(self, table, limit, resume_key=None):
                return ScanPage(items=[], last_key=None)

        repo = MissionRepository(EmptyStore(), "t")

        page = await repo.list_missions()
        assert page.missions == []
        assert page.next_token is None

    @pytest.mark.asyncio
    async def test_item_without_id(self):
        store = InMemoryKeyValueStore(key_name="pk")
        store.put_item("t", {"pk": "x", "name": "no id"})
        repo = MissionRepository(store, "t")

        with pytest.raises(UpstreamError):
            await repo.list_missions()

    @pytest.mark.asyncio
    async def test_blank_id(self):
        repo = MissionRepository(InMemoryKeyValueStore(), "t")

        with pytest.raises(ValidationError):
            await repo.get_mission("  ")
