"""Import API routes: workbook upload, preview and audit history."""

import tempfile
import time
from pathlib import Path

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.exceptions import BadRequestError, SpreadsheetReadError
from app.core.logging import get_logger
from app.features.ingest.schemas import (
    ImportBatchResponse,
    ImportLogResponse,
    ImportPreview,
    ImportResult,
)
from app.features.ingest.service import ImportService
from app.features.parsers.schemas import FileFormat

logger = get_logger(__name__)

router = APIRouter(prefix="/ingest", tags=["ingest"])


DEFAULT_UPLOAD_NAME = "upload.xlsx"


def upload_name(filename: str | None) -> str:
    """Reduce a client-supplied name to a plain file name inside the temp dir."""
    name = Path(filename or "").name
    if name in ("", ".", ".."):
        return DEFAULT_UPLOAD_NAME
    return name


@router.post(
    "/files",
    response_model=ImportBatchResponse,
    status_code=status.HTTP_200_OK,
    summary="Import ZSBMS report workbooks",
    description="""
Upload one or more workbooks exported from ZSBMS.

The report format is detected from the file name, then from the title
and header rows, unless `file_format` is given.

**Idempotency:** rows are keyed by their natural key (store, date, ...);
re-uploading a file updates the existing rows instead of duplicating them.

**Partial success:** malformed rows are skipped and listed in `errors`;
a file that cannot be opened is reported in its own result without
stopping the other files.
""",
)
async def import_files(
    files: list[UploadFile] = File(..., description="Workbooks (.xlsx)"),
    file_format: FileFormat | None = Form(None, description="Skip detection and use this format"),
    db: AsyncSession = Depends(get_db),
) -> ImportBatchResponse:
    """Store each upload in a temp dir and import it."""
    start_time = time.perf_counter()
    service = ImportService()
    results: list[ImportResult] = []

    logger.info("ingest.upload_received", file_count=len(files))

    with tempfile.TemporaryDirectory(prefix="lupita-upload-") as tmp_dir:
        for upload in files:
            # Detection relies on the original file name
            filename = upload_name(upload.filename)
            target = Path(tmp_dir) / filename
            target.write_bytes(await upload.read())

            try:
                result = await service.import_file(db, target, file_format, filename=filename)
            except SpreadsheetReadError as e:
                result = ImportResult(
                    filename=filename,
                    file_format=file_format or FileFormat.UNKNOWN,
                    errors=[e.message],
                )
            except BadRequestError as e:
                result = ImportResult(
                    filename=filename, file_format=FileFormat.UNKNOWN, errors=[e.message]
                )
            results.append(result)

    duration_ms = (time.perf_counter() - start_time) * 1000
    logger.info(
        "ingest.upload_completed",
        file_count=len(files),
        duration_ms=round(duration_ms, 2),
    )

    return ImportBatchResponse(
        results=results,
        total_inserted=sum(r.records_inserted for r in results),
        total_updated=sum(r.records_updated for r in results),
        duration_ms=round(duration_ms, 2),
    )


@router.post(
    "/preview",
    response_model=ImportPreview,
    summary="Parse a workbook without importing it",
    description="""
Detect the report format and parse one workbook, returning its period,
stores, row count, row errors and the first rows as they would be stored.
Nothing is written to the database or the import log.

An unreadable file or an unsupported format is a `400` problem detail.
""",
)
async def preview_file(
    file: UploadFile = File(..., description="Workbook (.xlsx)"),
    file_format: FileFormat | None = Form(None, description="Skip detection and use this format"),
) -> ImportPreview:
    """Parse one upload in a temp dir."""
    filename = upload_name(file.filename)
    with tempfile.TemporaryDirectory(prefix="lupita-preview-") as tmp_dir:
        target = Path(tmp_dir) / filename
        target.write_bytes(await file.read())
        return ImportService().preview_file(target, file_format, filename=filename)


@router.get(
    "/history",
    response_model=list[ImportLogResponse],
    summary="Import audit trail",
)
async def import_history(
    limit: int = Query(50, ge=1, le=500, description="Maximum entries to return"),
    db: AsyncSession = Depends(get_db),
) -> list[ImportLogResponse]:
    """Most recent imports, newest first."""
    entries = await ImportService().list_history(db, limit=limit)
    return [ImportLogResponse.model_validate(entry) for entry in entries]
