"""Import orchestration: parse a workbook, upsert its rows, audit the run."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Any

from sqlalchemy import insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.exceptions import BadRequestError
from app.core.logging import get_logger
from app.features.data_platform.models import (
    AbcDaily,
    ArticleSale,
    DailySale,
    HourlySale,
    ImportLog,
    ImportType,
    ZoneSale,
)
from app.features.ingest.schemas import ImportPreview, ImportResult
from app.features.parsers.detector import detect_file_type
from app.features.parsers.registry import PARSERS, Parser
from app.features.parsers.schemas import ArticleSaleRow, FileFormat, SaleRow

logger = get_logger(__name__)

PREVIEW_SAMPLE_ROWS = 10


class UpsertOutcome(str, Enum):
    """What a natural-key upsert did."""

    INSERTED = "inserted"
    UPDATED = "updated"


@dataclass
class UpsertResult:
    """Tally of a batch upsert."""

    inserted_count: int = 0
    updated_count: int = 0
    errors: list[str] = field(default_factory=list)


async def upsert_row(db: AsyncSession, model: Any, values: dict[str, Any]) -> UpsertOutcome:
    """Insert ``values`` or overwrite the row sharing its natural key.

    Args:
        db: Async database session.
        model: ORM class declaring ``natural_key``.
        values: Column values, natural key included.

    Returns:
        Whether a row was inserted or updated.
    """
    key_columns: tuple[str, ...] = model.natural_key
    conditions = [getattr(model, column) == values[column] for column in key_columns]

    existing_id = (await db.execute(select(model.id).where(*conditions))).scalar_one_or_none()
    if existing_id is None:
        await db.execute(insert(model).values(**values))
        return UpsertOutcome.INSERTED

    changes = {column: value for column, value in values.items() if column not in key_columns}
    await db.execute(update(model).where(model.id == existing_id).values(**changes))
    return UpsertOutcome.UPDATED


def aggregate_article_rows(rows: Sequence[ArticleSaleRow]) -> list[ArticleSaleRow]:
    """Sum article rows sharing (store, period, article code).

    A workbook can list the same article several times for one period;
    summing first keeps a re-import from overwriting totals with a
    fraction of them.
    """
    totals: dict[tuple[str, date, date, str], ArticleSaleRow] = {}
    for row in rows:
        key = (row.store_id, row.date_from, row.date_to, row.article_code)
        current = totals.get(key)
        if current is None:
            totals[key] = row
            continue
        totals[key] = current.model_copy(
            update={
                "qty_sold": current.qty_sold + row.qty_sold,
                "revenue_net": current.revenue_net + row.revenue_net,
                "revenue_gross": current.revenue_gross + row.revenue_gross,
            }
        )
    return list(totals.values())


@dataclass(frozen=True)
class FormatHandler:
    """How the rows of one report format are stored.

    Attributes:
        model: Target ORM class (declares ``natural_key``).
        import_type: Label written to import_log.
        label: Noun used in row error messages.
        prepare: Optional transform applied to all rows before upserting.
    """

    model: Any
    import_type: ImportType
    label: str
    prepare: Callable[[Sequence[Any]], list[Any]] | None = None


FORMAT_HANDLERS: dict[FileFormat, FormatHandler] = {
    FileFormat.DAILY: FormatHandler(DailySale, ImportType.FINANCIAL, "daily sale"),
    FileFormat.ZONE: FormatHandler(ZoneSale, ImportType.ZONES, "zone sale"),
    FileFormat.ARTICLE: FormatHandler(
        ArticleSale, ImportType.ARTICLES, "article", prepare=aggregate_article_rows
    ),
    FileFormat.ABC: FormatHandler(AbcDaily, ImportType.ABC, "ABC line"),
    FileFormat.HOURLY: FormatHandler(HourlySale, ImportType.HOURLY, "hourly sale"),
}


def _describe(model: Any, row: SaleRow) -> str:
    return " / ".join(str(getattr(row, column)) for column in model.natural_key)


class ImportService:
    """Imports ZSBMS workbooks into the sales tables.

    Parsers and storage handlers are looked up by format tag, so a new
    report format only needs entries in the two tables.
    """

    def __init__(
        self,
        parsers: Mapping[FileFormat, Parser] | None = None,
        handlers: Mapping[FileFormat, FormatHandler] | None = None,
    ) -> None:
        self.parsers = parsers if parsers is not None else PARSERS
        self.handlers = handlers if handlers is not None else FORMAT_HANDLERS
        self.settings = get_settings()

    def _resolve(
        self, file_path: Path, file_format: FileFormat | None, filename: str
    ) -> tuple[FileFormat, Parser, FormatHandler]:
        """Pick the format (detecting it when not given) and its parser and handler.

        Raises:
            BadRequestError: If the format has no parser or handler.
        """
        resolved_format = file_format or detect_file_type(file_path)
        parser = self.parsers.get(resolved_format)
        handler = self.handlers.get(resolved_format)
        if parser is None or handler is None:
            raise BadRequestError(
                message=f"Unsupported file type for {filename}",
                details={"filename": filename, "file_format": resolved_format.value},
            )
        return resolved_format, parser, handler

    async def upsert_rows(
        self, db: AsyncSession, handler: FormatHandler, rows: Sequence[SaleRow]
    ) -> UpsertResult:
        """Upsert rows one by one; a failing row is recorded and skipped.

        Each row runs in its own SAVEPOINT so a failure rolls back that row
        only.
        """
        result = UpsertResult()
        for row in rows:
            try:
                async with db.begin_nested():
                    outcome = await upsert_row(db, handler.model, row.model_dump())
            except SQLAlchemyError as e:
                result.errors.append(
                    f"Error importing {handler.label} {_describe(handler.model, row)}: {e}"
                )
                logger.warning(
                    "ingest.row_failed",
                    table=handler.model.__tablename__,
                    key=_describe(handler.model, row),
                    error=str(e),
                    error_type=type(e).__name__,
                )
                continue

            if outcome is UpsertOutcome.INSERTED:
                result.inserted_count += 1
            else:
                result.updated_count += 1
        return result

    async def import_file(
        self,
        db: AsyncSession,
        file_path: Path,
        file_format: FileFormat | None = None,
        filename: str | None = None,
    ) -> ImportResult:
        """Parse and store one workbook, then write its import_log row.

        Args:
            db: Async database session (committed here).
            file_path: Workbook on disk.
            file_format: Known format; detected from the file when None.
            filename: Name recorded in the audit log (defaults to the file name).

        Returns:
            Counts, period, stores and every row/structure error.

        Raises:
            BadRequestError: If the format is unknown.
            SpreadsheetReadError: If the workbook cannot be opened.
        """
        filename = filename or file_path.name
        resolved_format, parser, handler = self._resolve(file_path, file_format, filename)

        logger.info("ingest.file_started", filename=filename, file_format=resolved_format.value)

        parsed = parser(file_path)
        rows = handler.prepare(parsed.rows) if handler.prepare else list(parsed.rows)
        upserted = await self.upsert_rows(db, handler, rows)
        errors = [*parsed.errors, *upserted.errors]

        date_from = date.fromisoformat(parsed.period_from) if parsed.period_from else None
        date_to = date.fromisoformat(parsed.period_to) if parsed.period_to else None

        log_entry = ImportLog(
            filename=filename,
            import_type=handler.import_type.value,
            date_from=date_from,
            date_to=date_to,
            records_inserted=upserted.inserted_count,
            records_updated=upserted.updated_count,
            errors=errors[: self.settings.ingest_max_errors_logged],
        )
        db.add(log_entry)
        await db.commit()

        logger.info(
            "ingest.file_completed",
            filename=filename,
            file_format=resolved_format.value,
            inserted=upserted.inserted_count,
            updated=upserted.updated_count,
            errors=len(errors),
            import_log_id=log_entry.id,
        )

        return ImportResult(
            filename=filename,
            file_format=resolved_format,
            date_from=date_from,
            date_to=date_to,
            records_inserted=upserted.inserted_count,
            records_updated=upserted.updated_count,
            errors=errors,
            stores=parsed.stores,
            import_log_id=log_entry.id,
        )

    async def list_history(self, db: AsyncSession, limit: int = 50) -> list[ImportLog]:
        """Most recent import_log rows, newest first."""
        stmt = select(ImportLog).order_by(ImportLog.id.desc()).limit(limit)
        result = await db.execute(stmt)
        return list(result.scalars().all())

    def preview_file(
        self,
        file_path: Path,
        file_format: FileFormat | None = None,
        filename: str | None = None,
        sample_size: int = PREVIEW_SAMPLE_ROWS,
    ) -> ImportPreview:
        """Detect and parse a workbook without writing anything.

        Raises:
            BadRequestError: If the format is unknown.
            SpreadsheetReadError: If the workbook cannot be opened.
        """
        filename = filename or file_path.name
        resolved_format, parser, handler = self._resolve(file_path, file_format, filename)

        parsed = parser(file_path)
        rows = handler.prepare(parsed.rows) if handler.prepare else list(parsed.rows)

        logger.info(
            "ingest.file_previewed",
            filename=filename,
            file_format=resolved_format.value,
            rows=len(rows),
            errors=len(parsed.errors),
        )

        return ImportPreview(
            filename=filename,
            file_format=resolved_format,
            date_from=date.fromisoformat(parsed.period_from) if parsed.period_from else None,
            date_to=date.fromisoformat(parsed.period_to) if parsed.period_to else None,
            stores=parsed.stores,
            row_count=len(rows),
            errors=parsed.errors,
            sample=[row.model_dump(mode="json") for row in rows[:sample_size]],
        )
