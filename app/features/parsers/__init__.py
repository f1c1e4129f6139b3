"""ZSBMS report parsers.

Each parser turns the first worksheet of an exported workbook into typed
rows plus a list of row-level errors; only an unreadable file raises.
"""

from app.features.parsers.detector import detect_file_type
from app.features.parsers.registry import PARSERS, get_parser
from app.features.parsers.schemas import (
    AbcDailyRow,
    ArticleSaleRow,
    DailySaleRow,
    FileFormat,
    HourlySaleRow,
    ParseResult,
    ZoneSaleRow,
)
from app.features.parsers.stores import normalize_zone, resolve_store_id, slugify

__all__ = [
    "PARSERS",
    "AbcDailyRow",
    "ArticleSaleRow",
    "DailySaleRow",
    "FileFormat",
    "HourlySaleRow",
    "ParseResult",
    "ZoneSaleRow",
    "detect_file_type",
    "get_parser",
    "normalize_zone",
    "resolve_store_id",
    "slugify",
]
