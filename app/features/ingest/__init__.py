"""Workbook import: parse, upsert by natural key, write the audit log."""

from app.features.ingest.inbox import InboxReport, import_inbox
from app.features.ingest.schemas import ImportPreview, ImportResult
from app.features.ingest.service import (
    FORMAT_HANDLERS,
    FormatHandler,
    ImportService,
    UpsertOutcome,
    aggregate_article_rows,
    upsert_row,
)

__all__ = [
    "FORMAT_HANDLERS",
    "FormatHandler",
    "ImportPreview",
    "InboxReport",
    "ImportResult",
    "ImportService",
    "UpsertOutcome",
    "aggregate_article_rows",
    "import_inbox",
    "upsert_row",
]
