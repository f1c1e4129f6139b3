"""Classify an incoming workbook into one of the report formats."""

from pathlib import Path

from app.core.exceptions import SpreadsheetReadError
from app.core.logging import get_logger
from app.features.parsers.abc import is_abc_file
from app.features.parsers.grid import read_grid, row_contains
from app.features.parsers.schemas import FileFormat

logger = get_logger(__name__)

SPREADSHEET_SUFFIXES = frozenset({".xlsx", ".xlsm", ".xls"})
DEFAULT_FORMAT = FileFormat.DAILY

# Checked in order against the lowercased file name
FILENAME_HINTS: tuple[tuple[str, FileFormat], ...] = (
    ("abc", FileFormat.ABC),
    ("hora", FileFormat.HOURLY),
    ("zona", FileFormat.ZONE),
    ("artigo", FileFormat.ARTICLE),
)

HEADER_SCAN_ROWS = range(4, 7)


def detect_file_type(file_path: Path) -> FileFormat:
    """Detect the report format of a workbook.

    File name hints win; otherwise the title and header rows are
    inspected. Anything inconclusive, including an unreadable file, is
    treated as the daily clearance report, the most common upload.

    Args:
        file_path: Path of the uploaded or downloaded workbook.

    Returns:
        Detected format; UNKNOWN only for non-spreadsheet files.
    """
    if file_path.suffix.lower() not in SPREADSHEET_SUFFIXES:
        return FileFormat.UNKNOWN

    name = file_path.name.lower()
    for hint, file_format in FILENAME_HINTS:
        if hint in name:
            return file_format

    try:
        grid = read_grid(file_path)
    except SpreadsheetReadError as e:
        logger.warning(
            "parsers.detect_read_failed",
            file=file_path.name,
            error=e.message,
            fallback=DEFAULT_FORMAT.value,
        )
        return DEFAULT_FORMAT

    if is_abc_file(grid):
        return FileFormat.ABC

    for index in HEADER_SCAN_ROWS:
        if index >= len(grid):
            break
        row = grid[index]
        if row_contains(row, "Artigo", "Familia"):
            return FileFormat.ARTICLE
        if row_contains(row, "Hora", "Zona"):
            return FileFormat.HOURLY
        if row_contains(row, "Zona"):
            return FileFormat.ZONE
        if row_contains(row, "Ticket"):
            return FileFormat.DAILY

    logger.info("parsers.detect_defaulted", file=file_path.name, fallback=DEFAULT_FORMAT.value)
    return DEFAULT_FORMAT
