"""Sync API routes: trigger, status, history and report catalogue."""

from fastapi import APIRouter, Depends, Query, Request, status

from app.core.logging import get_logger
from app.features.data_platform.models import SyncTrigger
from app.features.exporter.reports import COMMON_RULES, REPORTS
from app.features.exporter.schemas import ReportCatalogResponse, ReportInfo
from app.features.sync.schemas import (
    SyncHistoryResponse,
    SyncRunResponse,
    SyncStatusResponse,
    SyncTriggerResponse,
)
from app.features.sync.service import SyncService

logger = get_logger(__name__)

router = APIRouter(prefix="/sync", tags=["sync"])


def get_sync_service(request: Request) -> SyncService:
    """Dependency returning the process-wide sync service."""
    service: SyncService = request.app.state.sync_service
    return service


@router.post(
    "/trigger",
    response_model=SyncTriggerResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Start a portal sync",
    description="""
Download every registered report from the ZSBMS portal for the current
year (January 1st to today) and import them.

The sync runs in the background; poll `GET /sync/status` for progress.

**Errors:**
- `409` when a sync is already running. The problem detail carries the
  running `sync_id`.
- `400` when portal credentials are not configured.
""",
)
async def trigger_sync(
    service: SyncService = Depends(get_sync_service),
) -> SyncTriggerResponse:
    """Start a manual sync."""
    handle = await service.start_sync(SyncTrigger.MANUAL)
    return SyncTriggerResponse(sync_id=handle.sync_id)


@router.get(
    "/status",
    response_model=SyncStatusResponse,
    summary="Current sync state",
)
async def get_sync_status(
    service: SyncService = Depends(get_sync_service),
) -> SyncStatusResponse:
    """Whether a sync is running, and the most recent run."""
    state = await service.get_status()
    last_run = state.pop("last_run")
    return SyncStatusResponse(
        **state,
        last_run=SyncRunResponse.model_validate(last_run) if last_run else None,
    )


@router.get(
    "/history",
    response_model=SyncHistoryResponse,
    summary="Recent sync runs",
)
async def get_sync_history(
    limit: int | None = Query(None, ge=1, le=200, description="Max runs to return"),
    service: SyncService = Depends(get_sync_service),
) -> SyncHistoryResponse:
    """Recent runs, newest first."""
    runs = await service.list_history(limit)
    return SyncHistoryResponse(runs=[SyncRunResponse.model_validate(run) for run in runs])


@router.get(
    "/reports",
    response_model=ReportCatalogResponse,
    summary="Registered portal reports",
    description="""
Reports downloaded by each sync, with the portal menu path and filter
rules needed to export them by hand.
""",
)
async def list_reports() -> ReportCatalogResponse:
    """Display metadata for every registered report."""
    return ReportCatalogResponse(
        common_rules=list(COMMON_RULES),
        reports=[
            ReportInfo(
                key=report.key,
                title=report.title,
                portal_path=report.portal_path,
                portal_id=report.portal_id,
                file_format=report.file_format,
                periods=list(report.periods),
                rules=list(report.rules),
            )
            for report in REPORTS
        ],
    )
