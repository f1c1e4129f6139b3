"""ZSBMS portal exporter: report registry and session-authenticated client."""

from app.features.exporter.client import (
    ExportPeriod,
    PortalCredentials,
    PortalSession,
    ZsbmsClient,
)
from app.features.exporter.reports import (
    COMMON_RULES,
    REPORT_BY_KEY,
    REPORTS,
    ReportDefinition,
    get_report,
)
from app.features.exporter.schemas import ExportResult, ReportCatalogResponse, ReportInfo

__all__ = [
    "COMMON_RULES",
    "REPORTS",
    "REPORT_BY_KEY",
    "ExportPeriod",
    "ExportResult",
    "PortalCredentials",
    "PortalSession",
    "ReportCatalogResponse",
    "ReportDefinition",
    "ReportInfo",
    "ZsbmsClient",
    "get_report",
]
