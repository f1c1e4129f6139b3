"""Analytics module for sales KPIs, trends, article mix and ABC analysis.

Read-only queries over the facts loaded by the ingest and sync features.
"""

from app.features.analytics.routes import router
from app.features.analytics.schemas import (
    Channel,
    ComparisonPeriod,
    DateRangeParams,
    KPIResponse,
    TimeGranularity,
)
from app.features.analytics.service import AnalyticsService

__all__ = [
    "AnalyticsService",
    "Channel",
    "ComparisonPeriod",
    "DateRangeParams",
    "KPIResponse",
    "TimeGranularity",
    "router",
]
