"""Sales warehouse tables fed by the ZSBMS imports.

- Fact tables: DailySale, ZoneSale, ArticleSale, AbcDaily, HourlySale
- Audit tables: ImportLog, SyncRun
"""

from app.features.data_platform.models import (
    AbcDaily,
    ArticleSale,
    DailySale,
    ExclusionReason,
    HourlySale,
    ImportLog,
    ImportType,
    SyncRun,
    SyncStatus,
    SyncTrigger,
    ZoneSale,
)

__all__ = [
    "AbcDaily",
    "ArticleSale",
    "DailySale",
    "ExclusionReason",
    "HourlySale",
    "ImportLog",
    "ImportType",
    "SyncRun",
    "SyncStatus",
    "SyncTrigger",
    "ZoneSale",
]
