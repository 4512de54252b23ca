"""Tests for the HTTP API with in-memory collaborators."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from py_geoguess.api import main as api_main
from py_geoguess.api.main import GenerationRequest, app
from py_geoguess.core.errors import LocatorError
from py_geoguess.core.panorama import PanoramaLocator
from py_geoguess.core.round_generator import GenerationState
from py_geoguess.core.types import Coordinate, Round

from conftest import EmptyLookup, IdentityLookup, RecordingStore


class BlockingLookup(IdentityLookup):
    """Identity lookup that waits until released."""

    def __init__(self):
        super().__init__()
        self.release = asyncio.Event()

    async def query(self, request):
        await self.release.wait()
        return await super().query(request)


@pytest.fixture
def wired_api(monkeypatch):
    """Point the API at in-memory collaborators."""
    store = RecordingStore()
    store.read_rounds = AsyncMock(return_value={})
    monkeypatch.setattr(api_main, "round_store", store)
    monkeypatch.setattr(api_main, "locator", PanoramaLocator(IdentityLookup()))
    monkeypatch.setattr(api_main, "shape_fetcher", AsyncMock())
    monkeypatch.setattr(api_main, "sessions", {})
    monkeypatch.setattr(api_main, "watchers", {})
    return store


class TestEndpoints:
    """Test the synchronous endpoints through the test client."""

    def setup_method(self):
        """Set up test client."""
        self.client = TestClient(app)

    def test_root(self):
        response = self.client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "running"

    @patch("py_geoguess.api.main.db")
    def test_health(self, mock_db):
        mock_db.ping.return_value = True
        response = self.client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "database": "connected"}

    @patch("py_geoguess.api.main.db")
    def test_health_unavailable(self, mock_db):
        mock_db.ping.side_effect = RuntimeError("Database not initialized")
        assert self.client.get("/health").status_code == 503

    def test_score(self):
        response = self.client.post("/score", json={"distances_km": {"ana": 0.2, "ben": 25.0, "cy": 1e6}})
        assert response.status_code == 200
        assert response.json() == {"ana": 100.0, "ben": 95.0, "cy": 0.0}

    def test_unknown_room(self, wired_api):
        assert self.client.get("/rooms/nowhere/status").status_code == 404
        assert self.client.post("/rooms/nowhere/cancel").status_code == 404

    def test_rounds(self, wired_api):
        wired_api.read_rounds.return_value = {
            1: Round(index=1, map_position=Coordinate(lat=1.0, lng=2.0)),
            0: Round(index=0, map_position=Coordinate(lat=3.0, lng=4.0)),
        }
        response = self.client.get("/rooms/r1/rounds")
        assert response.status_code == 200
        assert response.json() == [
            {"index": 0, "map_position": {"lat": 3.0, "lng": 4.0}},
            {"index": 1, "map_position": {"lat": 1.0, "lng": 2.0}},
        ]

    def test_no_rounds(self, wired_api):
        assert self.client.get("/rooms/r1/rounds").status_code == 404

    def test_jump(self, wired_api):
        response = self.client.post(
            "/jump", json={"origin": {"lat": 46.0, "lng": 6.0}, "distance_km": 10.0, "bearing_deg": 90}
        )
        assert response.status_code == 200
        assert response.json()["distance_km"] == pytest.approx(10.0, rel=1e-3)

    def test_jump_not_found(self, wired_api, monkeypatch):
        monkeypatch.setattr(api_main, "locator", PanoramaLocator(EmptyLookup()))
        response = self.client.post(
            "/jump", json={"origin": {"lat": 46.0, "lng": 6.0}, "distance_km": 10.0, "bearing_deg": 90}
        )
        assert response.status_code == 404

    def test_jump_locator_error(self, wired_api, monkeypatch):
        lookup = AsyncMock()
        lookup.query.side_effect = LocatorError("REQUEST_DENIED")
        monkeypatch.setattr(api_main, "locator", PanoramaLocator(lookup))
        response = self.client.post(
            "/jump", json={"origin": {"lat": 46.0, "lng": 6.0}, "distance_km": 10.0, "bearing_deg": 0}
        )
        assert response.status_code == 502


class TestGenerationEndpoints:
    """Test session handling on a live event loop."""

    @pytest.mark.asyncio
    async def test_generate_and_status(self, wired_api):
        response = await api_main.generate_rounds("room-1", GenerationRequest(round_count=3, seed=7))
        assert response.state == "generating"

        await api_main.watchers["room-1"]

        status = await api_main.get_generation_status("room-1")
        assert status.state == GenerationState.COMPLETED.value
        assert status.round_count == 3
        assert len(wired_api.writes) == 1
        assert sorted(wired_api.writes[0][1]) == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_failed_generation_reports_message(self, wired_api, monkeypatch):
        monkeypatch.setattr(api_main, "locator", PanoramaLocator(EmptyLookup()))

        await api_main.generate_rounds("room-2", GenerationRequest(round_count=1))
        await api_main.watchers["room-2"]

        status = await api_main.get_generation_status("room-2")
        assert status.state == "failed"
        assert "Try different location settings" in status.error_message

    @pytest.mark.asyncio
    async def test_conflict_and_cancel(self, wired_api, monkeypatch):
        lookup = BlockingLookup()
        monkeypatch.setattr(api_main, "locator", PanoramaLocator(lookup))

        await api_main.generate_rounds("room-3", GenerationRequest())
        with pytest.raises(HTTPException) as exc_info:
            await api_main.generate_rounds("room-3", GenerationRequest())
        assert exc_info.value.status_code == 409

        await api_main.cancel_generation("room-3")
        lookup.release.set()
        await api_main.watchers["room-3"]

        status = await api_main.get_generation_status("room-3")
        assert status.state == "cancelled"
        assert wired_api.writes == []

    @pytest.mark.asyncio
    async def test_seeded_generation_is_reproducible(self, wired_api):
        await api_main.generate_rounds("room-a", GenerationRequest(round_count=4, seed=11))
        await api_main.generate_rounds("room-b", GenerationRequest(round_count=4, seed=11))
        await asyncio.gather(api_main.watchers["room-a"], api_main.watchers["room-b"])

        (_, rounds_a), (_, rounds_b) = wired_api.writes
        assert [r.map_position for r in rounds_a.values()] == [r.map_position for r in rounds_b.values()]

    @pytest.mark.asyncio
    async def test_finished_watcher_is_released(self, wired_api):
        await api_main.generate_rounds("room-4", GenerationRequest(round_count=2))
        await api_main.watchers["room-4"]

        assert "room-4" not in api_main.watchers
        status = await api_main.get_generation_status("room-4")
        assert status.state == "completed"

    @pytest.mark.asyncio
    async def test_shutdown_waits_for_sessions(self, wired_api, monkeypatch):
        """Shutdown cancels running sessions and waits until they settle."""
        lookup = BlockingLookup()
        monkeypatch.setattr(api_main, "locator", PanoramaLocator(lookup))
        monkeypatch.setattr(api_main, "http_client", None)

        await api_main.generate_rounds("room-5", GenerationRequest())
        watcher = api_main.watchers["room-5"]
        asyncio.get_running_loop().call_soon(lookup.release.set)

        await api_main.shutdown_event()

        assert watcher.done()
        assert api_main.sessions["room-5"].state == GenerationState.CANCELLED
        assert wired_api.writes == []
