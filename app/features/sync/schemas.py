"""Pydantic schemas for sync runs."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from app.features.data_platform.models import SyncStatus, SyncTrigger

ReportOutcome = Literal["success", "download_failed", "import_failed"]


class SyncReportDetail(BaseModel):
    """Outcome of one report within a sync run."""

    report: str = Field(..., description="Export file base name")
    key: str = Field(..., description="Registry key of the report")
    status: ReportOutcome
    inserted: int | None = Field(None, ge=0)
    updated: int | None = Field(None, ge=0)
    errors: list[str] | None = Field(None, description="Row errors reported by the import")
    error: str | None = Field(None, description="Why the download or import failed")


class SyncRunResponse(BaseModel):
    """One sync_run row."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    trigger_type: SyncTrigger
    status: SyncStatus
    started_at: datetime
    completed_at: datetime | None
    reports_succeeded: int
    reports_failed: int
    total_inserted: int
    total_updated: int
    details: list[SyncReportDetail] | None = None
    error_message: str | None = None
    error_type: str | None = None


class SyncTriggerResponse(BaseModel):
    """Response body for POST /sync/trigger."""

    sync_id: int
    status: SyncStatus = SyncStatus.RUNNING
    message: str = "Sync started"


class SyncStatusResponse(BaseModel):
    """Response body for GET /sync/status."""

    is_running: bool
    current_sync_id: int | None = None
    credentials_configured: bool
    last_run: SyncRunResponse | None = None


class SyncHistoryResponse(BaseModel):
    """Response body for GET /sync/history."""

    runs: list[SyncRunResponse]
