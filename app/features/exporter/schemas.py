"""Pydantic schemas for portal exports and the report catalogue."""

from pydantic import BaseModel, Field

from app.features.parsers.schemas import FileFormat


class ExportResult(BaseModel):
    """Outcome of downloading one report."""

    report_key: str = Field(..., description="Registry key of the report")
    report_name: str = Field(..., description="Export file base name")
    file_path: str = Field(..., description="Where the workbook was (or would be) saved")
    size: int = Field(0, ge=0, description="Downloaded bytes")
    success: bool
    error: str | None = Field(None, description="Failure message when success is false")


class ReportInfo(BaseModel):
    """Display metadata for one registered report."""

    key: str
    title: str
    portal_path: str
    portal_id: str
    file_format: FileFormat
    periods: list[str]
    rules: list[str]


class ReportCatalogResponse(BaseModel):
    """Response body for GET /sync/reports."""

    common_rules: list[str]
    reports: list[ReportInfo]
