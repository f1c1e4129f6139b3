"""Tests for the sync API routes."""

import pytest

from app.core.config import Settings
from app.features.sync.service import SyncService


@pytest.fixture
def blocking_service(api_app, database, portal_settings, blocking_client) -> SyncService:
    """Install a sync service whose runs block until released."""
    service = SyncService(
        database,
        client_factory=lambda: blocking_client,
        settings=portal_settings,
    )
    api_app.state.sync_service = service
    return service


@pytest.mark.integration
class TestTriggerRoute:
    """Tests for POST /sync/trigger."""

    @pytest.mark.asyncio
    async def test_trigger_accepted_then_conflict(self, client, blocking_service, blocking_client):
        response = await client.post("/sync/trigger")

        assert response.status_code == 202
        body = response.json()
        assert body["status"] == "running"
        sync_id = body["sync_id"]

        await blocking_client.started.wait()
        conflict = await client.post("/sync/trigger")

        assert conflict.status_code == 409
        assert conflict.headers["content-type"] == "application/problem+json"
        problem = conflict.json()
        assert problem["code"] == "SYNC_BUSY"
        assert problem["type"] == "/errors/sync-busy"
        assert problem["sync_id"] == sync_id

        blocking_client.release.set()
        await blocking_service.wait_idle()

        status = (await client.get("/sync/status")).json()
        assert status["is_running"] is False
        assert status["last_run"]["id"] == sync_id
        assert status["last_run"]["status"] == "success"

    @pytest.mark.asyncio
    async def test_trigger_without_credentials(self, client, api_app, database):
        api_app.state.sync_service = SyncService(database, settings=Settings(_env_file=None))

        response = await client.post("/sync/trigger")

        assert response.status_code == 400
        problem = response.json()
        assert problem["code"] == "SYNC_NOT_CONFIGURED"
        assert problem["detail"] == "ZSBMS credentials not configured"


@pytest.mark.integration
class TestStatusAndHistory:
    """Tests for GET /sync/status and /sync/history."""

    @pytest.mark.asyncio
    async def test_status_before_any_run(self, client):
        response = await client.get("/sync/status")

        assert response.status_code == 200
        assert response.json() == {
            "is_running": False,
            "current_sync_id": None,
            "credentials_configured": True,
            "last_run": None,
        }

    @pytest.mark.asyncio
    async def test_history_lists_finished_runs(self, client, blocking_service, blocking_client):
        blocking_client.release.set()
        for _ in range(2):
            assert (await client.post("/sync/trigger")).status_code == 202
            await blocking_service.wait_idle()

        response = await client.get("/sync/history", params={"limit": 5})

        assert response.status_code == 200
        runs = response.json()["runs"]
        assert len(runs) == 2
        assert runs[0]["id"] > runs[1]["id"]
        assert all(run["trigger_type"] == "manual" for run in runs)

    @pytest.mark.asyncio
    async def test_history_limit_validation(self, client):
        response = await client.get("/sync/history", params={"limit": 0})
        assert response.status_code == 422


class TestReportsRoute:
    """Tests for GET /sync/reports."""

    @pytest.mark.asyncio
    async def test_lists_registered_reports(self, client):
        response = await client.get("/sync/reports")

        assert response.status_code == 200
        body = response.json()
        assert "Agrupar por Loja" in body["common_rules"]
        assert [r["key"] for r in body["reports"]] == [
            "full_clearance",
            "zones",
            "items",
            "abc_analysis",
            "hourly_totals",
        ]
        hourly = body["reports"][-1]
        assert hourly["file_format"] == "hourly"
        assert "Período: 30 minutos" in hourly["rules"]
