"""Tests for recording resolve and sync endpoints."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import AsyncClient

from coach_ledger.adapters.drive_adapter import DriveAdapter
from coach_ledger.adapters.memory_ledger import InMemoryLedgerBackend
from coach_ledger.main import app
from coach_ledger.models.recording import RawRecordingEvent


def _json(event: RawRecordingEvent) -> dict:
    return event.model_dump(mode="json")


class TestResolve:
    """Tests for POST /recordings/resolve."""

    @pytest.mark.asyncio
    async def test_resolves_without_writing(
        self,
        client: AsyncClient,
        coaching_event: RawRecordingEvent,
        backend: InMemoryLedgerBackend,
    ):
        response = await client.post("/recordings/resolve", json=_json(coaching_event))

        assert response.status_code == 200
        data = response.json()
        assert data["standardized_name"] == "Jenny_Huda_Week5_2024-10-07"
        assert data["identity"]["coach"] == "Jenny"
        assert data["identity"]["week_method"] == "filename"
        assert len(data["fingerprint"]) == 32
        assert data["overall_confidence"] == data["identity"]["overall_confidence"]
        assert backend.partitions == []

    @pytest.mark.asyncio
    async def test_resolve_is_deterministic(
        self, client: AsyncClient, coaching_event: RawRecordingEvent
    ):
        first = await client.post("/recordings/resolve", json=_json(coaching_event))
        second = await client.post("/recordings/resolve", json=_json(coaching_event))

        assert first.json()["fingerprint"] == second.json()["fingerprint"]

    @pytest.mark.asyncio
    async def test_degraded_event_still_resolves(
        self, client: AsyncClient, degraded_event: RawRecordingEvent
    ):
        response = await client.post("/recordings/resolve", json=_json(degraded_event))

        assert response.status_code == 200
        data = response.json()
        assert data["standardized_name"] == "Unknown_Week1"
        assert "missing: start_time" in data["identity"]["evidence"]

    @pytest.mark.asyncio
    async def test_invalid_body(self, client: AsyncClient):
        response = await client.post(
            "/recordings/resolve", json={"duration_seconds": -5}
        )
        assert response.status_code == 422


class TestSync:
    """Tests for POST /recordings/sync."""

    @pytest.mark.asyncio
    async def test_sync_inserts_then_skips(
        self,
        client: AsyncClient,
        coaching_event: RawRecordingEvent,
        backend: InMemoryLedgerBackend,
    ):
        body = {"events": [_json(coaching_event)]}

        first = await client.post("/recordings/sync", json=body)
        second = await client.post("/recordings/sync", json=body)

        assert first.status_code == 200
        assert first.json()["inserted"] == 1
        assert second.json()["inserted"] == 0
        assert second.json()["skipped"] == 1
        assert len(backend.rows("Zoom API - Standardized")) == 1

    @pytest.mark.asyncio
    async def test_sync_zoom_payloads(
        self, client: AsyncClient, backend: InMemoryLedgerBackend
    ):
        body = {
            "zoom_recordings": [
                {
                    "uuid": "z-1",
                    "topic": "Rachel and Maya",
                    "start_time": "2024-09-16T15:00:00Z",
                    "duration": 50,
                }
            ],
            "zoom_data_source_tag": "webhook",
        }

        response = await client.post("/recordings/sync", json=body)

        assert response.status_code == 200
        data = response.json()
        assert data["processed"] == 1
        outcome = data["outcomes"][0]
        assert outcome["identity"]["week_number"] == 3
        assert outcome["identity"]["week_method"] == "timeline"
        assert len(backend.rows("Webhook - Standardized")) == 1

    @pytest.mark.asyncio
    async def test_invalid_zoom_payload(self, client: AsyncClient):
        body = {"zoom_recordings": [{"uuid": "z-1", "start_time": "yesterday-ish"}]}

        response = await client.post("/recordings/sync", json=body)

        assert response.status_code == 400
        assert "Invalid Zoom recording" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_empty_batch(self, client: AsyncClient):
        response = await client.post("/recordings/sync", json={})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_drive_not_configured(self, client: AsyncClient):
        response = await client.post(
            "/recordings/sync", json={"drive_folder_ids": ["folder-1"]}
        )

        assert response.status_code == 503

    @pytest.mark.asyncio
    async def test_drive_folder_sync(
        self, client: AsyncClient, backend: InMemoryLedgerBackend
    ):
        drive = MagicMock(spec=DriveAdapter)
        drive.build_folder_event = AsyncMock(
            return_value=RawRecordingEvent(
                external_id="folder-1",
                topic="Jenny and Huda Week 7",
                data_source_tag="google-drive",
            )
        )
        app.state.drive_adapter = drive

        response = await client.post(
            "/recordings/sync", json={"drive_folder_ids": ["folder-1"]}
        )

        assert response.status_code == 200
        assert response.json()["inserted"] == 1
        assert len(backend.rows("Drive Import - Standardized")) == 1

    @pytest.mark.asyncio
    async def test_drive_unavailable(self, client: AsyncClient):
        drive = MagicMock(spec=DriveAdapter)
        drive.build_folder_event = AsyncMock(side_effect=TimeoutError("timed out"))
        app.state.drive_adapter = drive

        response = await client.post(
            "/recordings/sync", json={"drive_folder_ids": ["folder-1"]}
        )

        assert response.status_code == 502
        assert response.json()["detail"].startswith("google-drive unavailable")
