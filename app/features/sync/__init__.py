"""Portal sync orchestration (download, import, record)."""

from app.features.sync.schemas import SyncRunResponse, SyncStatusResponse, SyncTriggerResponse
from app.features.sync.service import (
    SyncHandle,
    SyncOutcome,
    SyncService,
    SyncSlot,
    classify_run,
)

__all__ = [
    "SyncHandle",
    "SyncOutcome",
    "SyncRunResponse",
    "SyncService",
    "SyncSlot",
    "SyncStatusResponse",
    "SyncTriggerResponse",
    "classify_run",
]
