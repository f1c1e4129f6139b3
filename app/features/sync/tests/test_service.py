"""Tests for sync orchestration."""

import asyncio
from datetime import UTC, datetime

import httpx
import pytest
from sqlalchemy import func, select

from app.core.config import Settings
from app.core.exceptions import SyncAlreadyRunningError, SyncConfigurationError
from app.features.data_platform.models import SyncRun, SyncStatus, SyncTrigger
from app.features.exporter.client import ZsbmsClient
from app.features.parsers.schemas import FileFormat
from app.features.sync.service import STALE_RUN_MESSAGE, SyncService, SyncSlot, classify_run


class TestClassifyRun:
    """Tests for the overall status rule."""

    @pytest.mark.parametrize(
        ("succeeded", "failed", "expected"),
        [
            (5, 0, SyncStatus.SUCCESS),
            (4, 1, SyncStatus.PARTIAL),
            (0, 5, SyncStatus.FAILED),
            (0, 0, SyncStatus.SUCCESS),
        ],
    )
    def test_classification(self, succeeded, failed, expected):
        assert classify_run(succeeded, failed) is expected


class TestSyncSlot:
    """Tests for the single-flight guard."""

    def test_second_acquire_reports_running_id(self):
        slot = SyncSlot()
        slot.acquire()
        slot.bind(7)

        with pytest.raises(SyncAlreadyRunningError) as exc_info:
            slot.acquire()
        assert exc_info.value.sync_id == 7
        assert exc_info.value.status_code == 409

    def test_release_frees_the_slot(self):
        slot = SyncSlot()
        slot.acquire()
        slot.bind(1)
        slot.release()

        assert slot.is_running is False
        assert slot.current_sync_id is None
        slot.acquire()

    @pytest.mark.asyncio
    async def test_holder_id_waits_for_bind(self):
        slot = SyncSlot()
        slot.acquire()
        waiter = asyncio.create_task(slot.holder_id())
        await asyncio.sleep(0)

        assert waiter.done() is False
        slot.bind(9)
        assert await waiter == 9

    @pytest.mark.asyncio
    async def test_trigger_while_run_is_starting_reports_its_id(
        self, database, portal_settings
    ):
        service = SyncService(database, settings=portal_settings)
        service.slot.acquire()
        pending = asyncio.create_task(service.start_sync(SyncTrigger.MANUAL))
        await asyncio.sleep(0)

        service.slot.bind(42)

        with pytest.raises(SyncAlreadyRunningError) as exc_info:
            await pending
        assert exc_info.value.sync_id == 42
        assert exc_info.value.details == {"sync_id": 42}


@pytest.mark.integration
class TestSyncRuns:
    """End-to-end runs against a mock portal and a stub importer."""

    @pytest.mark.asyncio
    async def test_partial_failure_when_one_download_fails(
        self, database, portal_settings, make_portal_client, stub_importer, fixed_today
    ):
        service = SyncService(
            database,
            client_factory=make_portal_client({"49"}),
            settings=portal_settings,
            import_service=stub_importer,
            today=fixed_today,
        )

        run = await service.run_sync(SyncTrigger.MANUAL)

        assert run.status == SyncStatus.PARTIAL.value
        assert run.trigger_type == "manual"
        assert run.reports_succeeded == 4
        assert run.reports_failed == 1
        assert run.total_inserted == 40
        assert run.total_updated == 8
        assert run.completed_at is not None

        statuses = [(d["key"], d["status"]) for d in run.details]
        assert statuses == [
            ("full_clearance", "success"),
            ("zones", "success"),
            ("items", "download_failed"),
            ("abc_analysis", "success"),
            ("hourly_totals", "success"),
        ]
        assert "Unexpected response type" in run.details[2]["error"]
        assert run.details[0]["errors"] == ['Row 9: invalid date "x"']
        assert service.slot.is_running is False

    @pytest.mark.asyncio
    async def test_each_download_imported_with_its_report_format(
        self, database, portal_settings, make_portal_client, stub_importer, fixed_today
    ):
        service = SyncService(
            database,
            client_factory=make_portal_client(),
            settings=portal_settings,
            import_service=stub_importer,
            today=fixed_today,
        )

        run = await service.run_sync()

        assert run.status == SyncStatus.SUCCESS.value
        assert run.trigger_type == "cron"
        assert [fmt for _, fmt in stub_importer.imported] == [
            FileFormat.DAILY,
            FileFormat.ZONE,
            FileFormat.ARTICLE,
            FileFormat.ABC,
            FileFormat.HOURLY,
        ]
        first_path = stub_importer.imported[0][0]
        assert first_path.name == "Vendas_Completo_2025-01-01_2025-03-15.xlsx"
        # Work directory is removed once the run ends
        assert not first_path.parent.exists()

    @pytest.mark.asyncio
    async def test_import_failure_is_recorded_per_report(
        self, database, portal_settings, make_portal_client, stub_importer, fixed_today
    ):
        stub_importer.failing_formats = {FileFormat.ABC}
        service = SyncService(
            database,
            client_factory=make_portal_client(),
            settings=portal_settings,
            import_service=stub_importer,
            today=fixed_today,
        )

        run = await service.run_sync()

        assert run.status == SyncStatus.PARTIAL.value
        abc_detail = next(d for d in run.details if d["key"] == "abc_analysis")
        assert abc_detail["status"] == "import_failed"
        assert "cannot parse ABC_Vendas" in abc_detail["error"]

    @pytest.mark.asyncio
    async def test_all_downloads_failing_fails_the_run(
        self, database, portal_settings, make_portal_client, stub_importer, fixed_today
    ):
        service = SyncService(
            database,
            client_factory=make_portal_client({"48", "46", "49", "9", "70"}),
            settings=portal_settings,
            import_service=stub_importer,
            today=fixed_today,
        )

        run = await service.run_sync()

        assert run.status == SyncStatus.FAILED.value
        assert run.reports_failed == 5
        assert stub_importer.imported == []

    @pytest.mark.asyncio
    async def test_login_failure_fails_the_run(
        self, database, portal_settings, stub_importer, fixed_today
    ):
        def no_session(request: httpx.Request) -> httpx.Response:
            if request.method == "GET":
                return httpx.Response(200, headers={"set-cookie": "csrftoken=tok; Path=/"})
            return httpx.Response(200, text="bad credentials")

        service = SyncService(
            database,
            client_factory=lambda: ZsbmsClient.from_settings(
                portal_settings, transport=httpx.MockTransport(no_session)
            ),
            settings=portal_settings,
            import_service=stub_importer,
            today=fixed_today,
        )

        run = await service.run_sync()

        assert run.status == SyncStatus.FAILED.value
        assert run.error_type == "PortalAuthenticationError"
        assert "no sessionid cookie" in run.error_message
        assert run.details is None
        assert service.slot.is_running is False

    @pytest.mark.asyncio
    async def test_second_trigger_is_rejected_while_running(
        self, database, portal_settings, blocking_client
    ):
        service = SyncService(
            database,
            client_factory=lambda: blocking_client,
            settings=portal_settings,
        )

        handle = await service.start_sync(SyncTrigger.MANUAL)
        await blocking_client.started.wait()

        with pytest.raises(SyncAlreadyRunningError) as exc_info:
            await service.start_sync(SyncTrigger.MANUAL)
        assert exc_info.value.sync_id == handle.sync_id

        status = await service.get_status()
        assert status["is_running"] is True
        assert status["current_sync_id"] == handle.sync_id
        assert status["last_run"].status == SyncStatus.RUNNING.value

        blocking_client.release.set()
        await handle.task

        assert service.slot.is_running is False
        finished = await service.get_run(handle.sync_id)
        assert finished.status == SyncStatus.SUCCESS.value

        async with database.session() as db:
            count = await db.scalar(select(func.count()).select_from(SyncRun))
        assert count == 1

    @pytest.mark.asyncio
    async def test_missing_credentials(self, database):
        service = SyncService(database, settings=Settings(_env_file=None))

        with pytest.raises(SyncConfigurationError):
            await service.start_sync(SyncTrigger.MANUAL)

        assert service.slot.is_running is False
        assert await service.list_history() == []

    @pytest.mark.asyncio
    async def test_fail_stale_runs(self, database, portal_settings):
        async with database.session() as db:
            db.add(
                SyncRun(
                    trigger_type="cron",
                    status=SyncStatus.RUNNING.value,
                    started_at=datetime(2025, 3, 1, 3, 0, tzinfo=UTC),
                )
            )
            db.add(
                SyncRun(
                    trigger_type="manual",
                    status=SyncStatus.SUCCESS.value,
                    started_at=datetime(2025, 2, 1, 3, 0, tzinfo=UTC),
                )
            )
            await db.commit()

        service = SyncService(database, settings=portal_settings)
        assert await service.fail_stale_runs() == 1

        runs = await service.list_history()
        by_trigger = {run.trigger_type: run for run in runs}
        assert by_trigger["cron"].status == SyncStatus.FAILED.value
        assert by_trigger["cron"].error_message == STALE_RUN_MESSAGE
        assert by_trigger["manual"].status == SyncStatus.SUCCESS.value

        assert await service.fail_stale_runs() == 0

    @pytest.mark.asyncio
    async def test_history_is_newest_first_and_limited(
        self, database, portal_settings, make_portal_client, stub_importer, fixed_today
    ):
        service = SyncService(
            database,
            client_factory=make_portal_client(),
            settings=portal_settings,
            import_service=stub_importer,
            today=fixed_today,
        )
        first = await service.run_sync()
        second = await service.run_sync()

        runs = await service.list_history(limit=1)
        assert [run.id for run in runs] == [second.id]
        assert second.id > first.id
