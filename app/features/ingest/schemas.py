"""Pydantic schemas for the import API."""

from datetime import date as date_type
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from app.features.parsers.schemas import FileFormat


class ImportResult(BaseModel):
    """Outcome of importing one workbook."""

    filename: str = Field(..., description="Name of the imported file")
    file_format: FileFormat = Field(..., description="Report format used to parse the file")
    date_from: date_type | None = Field(None, description="First day covered by the file")
    date_to: date_type | None = Field(None, description="Last day covered by the file")
    records_inserted: int = Field(0, ge=0, description="Rows created")
    records_updated: int = Field(0, ge=0, description="Existing rows overwritten")
    errors: list[str] = Field(default_factory=list, description="Row and structure problems")
    stores: list[str] = Field(default_factory=list, description="Store ids present in the file")
    import_log_id: int | None = Field(None, description="Audit row written for this import")


class ImportPreview(BaseModel):
    """What importing a workbook would store, without storing it."""

    filename: str
    file_format: FileFormat
    date_from: date_type | None = None
    date_to: date_type | None = None
    stores: list[str] = Field(default_factory=list)
    row_count: int = Field(..., ge=0, description="Rows that would be upserted")
    errors: list[str] = Field(default_factory=list)
    sample: list[dict[str, Any]] = Field(
        default_factory=list, description="First parsed rows, as they would be stored"
    )


class ImportBatchResponse(BaseModel):
    """Response body for POST /ingest/files."""

    results: list[ImportResult]
    total_inserted: int = Field(..., ge=0)
    total_updated: int = Field(..., ge=0)
    duration_ms: float = Field(..., ge=0)


class ImportLogResponse(BaseModel):
    """One entry of the import audit trail."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    filename: str
    import_type: str
    date_from: date_type | None
    date_to: date_type | None
    records_inserted: int
    records_updated: int
    errors: list[str]
    created_at: datetime
