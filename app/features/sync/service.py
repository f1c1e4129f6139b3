"""Sync orchestration: download every portal report and import it.

A run is: create a ``sync_run`` row, export the year-to-date reports
into a temporary directory, import each downloaded workbook through
ImportService, then record per-report details and the overall status.

Only one run may be in flight per process. The SyncSlot holds that
invariant; it is checked and taken without yielding to the event loop
so two triggers can never both start a run.

CRITICAL: Every run ends in a terminal status. A crash is written to the
run row before the slot is released, and rows left ``running`` by a
previous process are failed at startup by fail_stale_runs().
"""

from __future__ import annotations

import asyncio
import shutil
import tempfile
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any

from sqlalchemy import select, update

from app.core.config import Settings, get_settings
from app.core.database import Database
from app.core.exceptions import NotFoundError, SyncAlreadyRunningError, SyncConfigurationError
from app.core.logging import get_logger, sync_id_ctx
from app.features.data_platform.models import SyncRun, SyncStatus, SyncTrigger
from app.features.exporter.client import ExportPeriod, PortalCredentials, ZsbmsClient
from app.features.exporter.reports import REPORT_BY_KEY, REPORTS, ReportDefinition
from app.features.exporter.schemas import ExportResult
from app.features.ingest.service import ImportService

logger = get_logger(__name__)

ERROR_MESSAGE_MAX_CHARS = 2000
STALE_RUN_MESSAGE = "Interrupted: the process stopped while this sync was running"


# =============================================================================
# Single-flight guard
# =============================================================================


class SyncSlot:
    """Process-wide single-flight holder for sync runs.

    acquire() and release() never await, so the check-and-set is atomic
    with respect to other coroutines on the same event loop. Between
    acquire() and bind() the slot is taken but has no run id yet;
    holder_id() waits out that window.
    """

    def __init__(self) -> None:
        self._taken = False
        self._sync_id: int | None = None
        self._settled = asyncio.Event()
        self._settled.set()

    @property
    def is_running(self) -> bool:
        return self._taken

    @property
    def current_sync_id(self) -> int | None:
        return self._sync_id

    def acquire(self) -> None:
        """Take the slot.

        Raises:
            SyncAlreadyRunningError: If a run already holds it.
        """
        if self._taken:
            raise SyncAlreadyRunningError(self._sync_id)
        self._taken = True
        self._sync_id = None
        self._settled.clear()

    def bind(self, sync_id: int) -> None:
        """Attach the id of the run that holds the slot."""
        self._sync_id = sync_id
        self._settled.set()

    def release(self) -> None:
        self._taken = False
        self._sync_id = None
        self._settled.set()

    async def holder_id(self) -> int | None:
        """Id of the run holding the slot, once its row exists."""
        await self._settled.wait()
        return self._sync_id


@dataclass
class SyncHandle:
    """A started run: its id and the background task executing it."""

    sync_id: int
    task: asyncio.Task[None]


@dataclass
class SyncOutcome:
    """Aggregated per-report results of a run."""

    reports_succeeded: int = 0
    reports_failed: int = 0
    total_inserted: int = 0
    total_updated: int = 0
    details: list[dict[str, Any]] = field(default_factory=list)

    @property
    def status(self) -> SyncStatus:
        return classify_run(self.reports_succeeded, self.reports_failed)


def classify_run(reports_succeeded: int, reports_failed: int) -> SyncStatus:
    """Overall status: no failures is success, some successes is partial."""
    if reports_failed == 0:
        return SyncStatus.SUCCESS
    if reports_succeeded > 0:
        return SyncStatus.PARTIAL
    return SyncStatus.FAILED


# =============================================================================
# Service
# =============================================================================


class SyncService:
    """Runs portal syncs in the background and records them in sync_run."""

    def __init__(
        self,
        database: Database,
        client_factory: Callable[[], ZsbmsClient] | None = None,
        settings: Settings | None = None,
        slot: SyncSlot | None = None,
        import_service: ImportService | None = None,
        reports: tuple[ReportDefinition, ...] = REPORTS,
        today: Callable[[], date] = date.today,
    ) -> None:
        """Initialize the sync service.

        Args:
            database: Store handle; each step opens its own session.
            client_factory: Builds a portal client per run.
            settings: Application settings (credentials, store ids).
            slot: Single-flight holder shared by every trigger path.
            import_service: Importer used for downloaded workbooks.
            reports: Reports downloaded on each run.
            today: Clock for the year-to-date period.
        """
        self.database = database
        self.settings = settings or get_settings()
        self.client_factory = client_factory or (
            lambda: ZsbmsClient.from_settings(self.settings)
        )
        self.slot = slot or SyncSlot()
        self.import_service = import_service or ImportService()
        self.reports = reports
        self.today = today
        self._tasks: set[asyncio.Task[None]] = set()

    # -------------------------------------------------------------------------
    # Triggering
    # -------------------------------------------------------------------------

    async def start_sync(self, trigger: SyncTrigger) -> SyncHandle:
        """Start a run in the background and return immediately.

        Args:
            trigger: What started the run.

        Returns:
            Handle with the new sync_run id and the running task.

        Raises:
            SyncAlreadyRunningError: If another run is in flight.
            SyncConfigurationError: If portal credentials are missing.
        """
        try:
            self.slot.acquire()
        except SyncAlreadyRunningError as e:
            if e.sync_id is not None:
                raise
            # the holder is still inserting its sync_run row
            raise SyncAlreadyRunningError(await self.slot.holder_id()) from e

        try:
            if not self.settings.has_portal_credentials:
                raise SyncConfigurationError()
            sync_id = await self._create_run(trigger)
        except BaseException:
            self.slot.release()
            raise

        self.slot.bind(sync_id)
        task = asyncio.create_task(self._run_guarded(sync_id), name=f"sync-{sync_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        logger.info("sync.run_triggered", sync_id=sync_id, trigger=trigger.value)
        return SyncHandle(sync_id=sync_id, task=task)

    async def run_sync(self, trigger: SyncTrigger = SyncTrigger.CRON) -> SyncRun:
        """Start a run and wait for it to finish (CLI and external cron).

        Returns:
            The finished sync_run row.
        """
        handle = await self.start_sync(trigger)
        await handle.task
        return await self.get_run(handle.sync_id)

    async def wait_idle(self) -> None:
        """Wait for every background run started by this service to end."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel in-flight runs; their rows are failed by the next startup sweep."""
        for task in self._tasks:
            task.cancel()
        await self.wait_idle()

    async def _create_run(self, trigger: SyncTrigger) -> int:
        async with self.database.session() as db:
            run = SyncRun(
                trigger_type=trigger.value,
                status=SyncStatus.RUNNING.value,
                started_at=datetime.now(UTC),
            )
            db.add(run)
            await db.commit()
            return run.id

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    async def _run_guarded(self, sync_id: int) -> None:
        """Execute a run; whatever happens, record it and free the slot."""
        token = sync_id_ctx.set(sync_id)
        try:
            await self._execute(sync_id)
        except Exception as e:
            logger.error(
                "sync.run_failed",
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            await self._mark_failed(sync_id, e)
        finally:
            self.slot.release()
            sync_id_ctx.reset(token)

    async def _execute(self, sync_id: int) -> None:
        period = ExportPeriod.year_to_date(self.today())
        work_dir = Path(tempfile.mkdtemp(prefix="lupita-sync-"))
        logger.info(
            "sync.run_started",
            date_from=period.date_from.isoformat(),
            date_to=period.date_to.isoformat(),
            work_dir=str(work_dir),
        )

        try:
            credentials = PortalCredentials(
                username=self.settings.zsbms_username,
                password=self.settings.zsbms_password,
            )
            async with self.client_factory() as client:
                exports = await client.export_all(credentials, period, work_dir, self.reports)

            outcome = await self._import_exports(exports)
            await self._finish(sync_id, outcome)
        finally:
            shutil.rmtree(work_dir, ignore_errors=True)

    async def _import_exports(self, exports: list[ExportResult]) -> SyncOutcome:
        outcome = SyncOutcome()
        for export in exports:
            detail: dict[str, Any] = {"report": export.report_name, "key": export.report_key}

            if not export.success:
                outcome.reports_failed += 1
                outcome.details.append(
                    {**detail, "status": "download_failed", "error": export.error}
                )
                continue

            report = REPORT_BY_KEY.get(export.report_key)
            try:
                if report is None:
                    raise NotFoundError(f"No importer registered for report: {export.report_key}")
                async with self.database.session() as db:
                    result = await self.import_service.import_file(
                        db, Path(export.file_path), report.file_format
                    )
            except Exception as e:
                outcome.reports_failed += 1
                outcome.details.append({**detail, "status": "import_failed", "error": str(e)})
                logger.error(
                    "sync.report_import_failed",
                    report_key=export.report_key,
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )
                continue

            outcome.reports_succeeded += 1
            outcome.total_inserted += result.records_inserted
            outcome.total_updated += result.records_updated
            entry = {
                **detail,
                "status": "success",
                "inserted": result.records_inserted,
                "updated": result.records_updated,
            }
            if result.errors:
                entry["errors"] = result.errors[: self.settings.ingest_max_errors_logged]
            outcome.details.append(entry)
            logger.info(
                "sync.report_imported",
                report_key=export.report_key,
                inserted=result.records_inserted,
                updated=result.records_updated,
                errors=len(result.errors),
            )
        return outcome

    async def _finish(self, sync_id: int, outcome: SyncOutcome) -> None:
        status = outcome.status
        async with self.database.session() as db:
            run = await db.get(SyncRun, sync_id)
            if run is None:
                raise NotFoundError(f"Sync run {sync_id} disappeared", details={"sync_id": sync_id})
            if not run.can_transition_to(status):
                msg = f"Cannot move sync run {sync_id} from '{run.status}' to '{status.value}'"
                raise ValueError(msg)

            run.status = status.value
            run.completed_at = datetime.now(UTC)
            run.reports_succeeded = outcome.reports_succeeded
            run.reports_failed = outcome.reports_failed
            run.total_inserted = outcome.total_inserted
            run.total_updated = outcome.total_updated
            run.details = outcome.details
            await db.commit()

        logger.info(
            "sync.run_completed",
            status=status.value,
            reports_succeeded=outcome.reports_succeeded,
            reports_failed=outcome.reports_failed,
            total_inserted=outcome.total_inserted,
            total_updated=outcome.total_updated,
        )

    async def _mark_failed(self, sync_id: int, error: Exception) -> None:
        async with self.database.session() as db:
            run = await db.get(SyncRun, sync_id)
            if run is None or not run.can_transition_to(SyncStatus.FAILED):
                return
            run.status = SyncStatus.FAILED.value
            run.completed_at = datetime.now(UTC)
            run.error_message = str(error)[:ERROR_MESSAGE_MAX_CHARS]
            run.error_type = type(error).__name__
            await db.commit()

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    async def get_run(self, sync_id: int) -> SyncRun:
        """Load one run.

        Raises:
            NotFoundError: If no run has this id.
        """
        async with self.database.session() as db:
            run = await db.get(SyncRun, sync_id)
        if run is None:
            raise NotFoundError(f"Sync run {sync_id} not found", details={"sync_id": sync_id})
        return run

    async def get_last_run(self) -> SyncRun | None:
        async with self.database.session() as db:
            result = await db.execute(select(SyncRun).order_by(SyncRun.id.desc()).limit(1))
            return result.scalar_one_or_none()

    async def get_status(self) -> dict[str, Any]:
        """Current slot state plus the most recent run."""
        return {
            "is_running": self.slot.is_running,
            "current_sync_id": self.slot.current_sync_id,
            "credentials_configured": self.settings.has_portal_credentials,
            "last_run": await self.get_last_run(),
        }

    async def list_history(self, limit: int | None = None) -> list[SyncRun]:
        """Most recent runs, newest first."""
        limit = limit or self.settings.sync_history_limit
        async with self.database.session() as db:
            result = await db.execute(select(SyncRun).order_by(SyncRun.id.desc()).limit(limit))
            return list(result.scalars().all())

    async def fail_stale_runs(self) -> int:
        """Fail runs left ``running`` by a process that no longer exists.

        The run currently holding this process's slot is left alone.

        Returns:
            Number of rows updated.
        """
        stmt = (
            update(SyncRun)
            .where(SyncRun.status == SyncStatus.RUNNING.value)
            .values(
                status=SyncStatus.FAILED.value,
                completed_at=datetime.now(UTC),
                error_message=STALE_RUN_MESSAGE,
                error_type="Interrupted",
            )
        )
        if self.slot.current_sync_id is not None:
            stmt = stmt.where(SyncRun.id != self.slot.current_sync_id)

        async with self.database.session() as db:
            result = await db.execute(stmt)
            await db.commit()

        count = result.rowcount or 0
        if count:
            logger.warning("sync.stale_runs_failed", count=count)
        return count
