"""Worksheet grid access, header discovery and row classification.

A grid is the first worksheet as a list of rows (lists of raw cell
values). All lookups are bounds-safe: rows in read-only workbooks can be
shorter than the header.
"""

import re
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from openpyxl import load_workbook

from app.core.exceptions import SpreadsheetReadError
from app.core.logging import get_logger
from app.features.parsers.cells import cell_text, normalize_header, to_iso_date

logger = get_logger(__name__)

Row = list[Any]
Grid = list[Row]

SUBTOTAL_PREFIXES = ("Loja -", "Zona -", "Data -", "Hora -")
FOOTER_MARKERS = ("NIF", "MPDF")

_PERIOD_RE = re.compile(
    r"(\d{2})[/-](\d{2})[/-](\d{4})\s*a\s*(\d{2})[/-](\d{2})[/-](\d{4})"
)
PERIOD_SCAN_ROWS = 5


def read_grid(file_path: Path) -> Grid:
    """Load the first worksheet of a workbook.

    Args:
        file_path: Path to an .xlsx/.xlsm workbook.

    Returns:
        Rows of raw cell values (datetimes, numbers, strings, None).

    Raises:
        SpreadsheetReadError: If the file is missing or not a workbook.
    """
    try:
        workbook = load_workbook(file_path, read_only=True, data_only=True)
    except FileNotFoundError as e:
        raise SpreadsheetReadError(
            f"File not found: {file_path}", details={"path": str(file_path)}
        ) from e
    except Exception as e:
        # openpyxl surfaces corrupt archives as zip, XML or key errors
        raise _read_error(file_path, e) from e

    try:
        if not workbook.worksheets:
            return []
        sheet = workbook.worksheets[0]
        grid = [list(row) for row in sheet.iter_rows(values_only=True)]
    except Exception as e:
        # read-only sheets parse their XML lazily, during iteration
        raise _read_error(file_path, e) from e
    finally:
        workbook.close()

    logger.debug("parsers.grid_loaded", path=str(file_path), rows=len(grid))
    return grid


def _read_error(file_path: Path, error: Exception) -> SpreadsheetReadError:
    return SpreadsheetReadError(
        f"Cannot read spreadsheet {file_path.name}: {error}",
        details={"path": str(file_path), "error_type": type(error).__name__},
    )


def cell(row: Sequence[Any] | None, index: int | None) -> Any:
    """Return ``row[index]`` or None when the row or column is missing."""
    if row is None or index is None or index < 0 or index >= len(row):
        return None
    return row[index]


# =============================================================================
# Period metadata
# =============================================================================


def extract_period(grid: Grid) -> tuple[str | None, str | None]:
    """Recover the report's overall date range from its title rows.

    Two layouts exist: a free-text cell "01-03-2025 a 31-03-2025", or a
    row labelled "Data" whose cells 2 and 4 (sometimes 3) hold the bounds.

    Returns:
        (date_from, date_to) as ISO strings, or (None, None).
    """
    for row in grid[:PERIOD_SCAN_ROWS]:
        for value in row:
            match = _PERIOD_RE.search(cell_text(value))
            if match:
                d1, m1, y1, d2, m2, y2 = match.groups()
                return (
                    to_iso_date(f"{y1}-{m1}-{d1}"),
                    to_iso_date(f"{y2}-{m2}-{d2}"),
                )

    for row in grid[:PERIOD_SCAN_ROWS]:
        if "data" not in normalize_header(cell(row, 1)):
            continue
        date_from = to_iso_date(cell(row, 2))
        date_to = to_iso_date(cell(row, 4)) or to_iso_date(cell(row, 3))
        if date_from and date_to:
            return date_from, date_to

    return None, None


# =============================================================================
# Header discovery
# =============================================================================


@dataclass(frozen=True)
class ColumnMatcher:
    """Fuzzy rule selecting a column by its normalized header text.

    Attributes:
        exact: Header equals one of these.
        contains: Header contains every token of at least one group.
        excludes: Header must contain none of these tokens.
    """

    exact: tuple[str, ...] = ()
    contains: tuple[tuple[str, ...], ...] = ()
    excludes: tuple[str, ...] = ()

    def matches(self, header: str) -> bool:
        if not header or any(token in header for token in self.excludes):
            return False
        if header in self.exact:
            return True
        return any(all(token in header for token in group) for group in self.contains)


def row_contains(row: Sequence[Any], *markers: str) -> bool:
    """True if every marker occurs in some cell of the row (accent-insensitive)."""
    headers = [normalize_header(value) for value in row]
    return all(
        any(normalize_header(marker) in header for header in headers) for marker in markers
    )


def row_has_labels(row: Sequence[Any], *labels: str) -> bool:
    """True if every label is the full text of some cell (accent-insensitive)."""
    headers = {normalize_header(value) for value in row}
    return all(normalize_header(label) in headers for label in labels)


def find_header_row(grid: Grid, labels: Sequence[str], start: int, stop: int) -> int | None:
    """Return the first row index in [start, stop] having every label as a cell."""
    for index in range(start, min(stop, len(grid) - 1) + 1):
        if row_has_labels(grid[index], *labels):
            return index
    return None


def map_columns(header: Sequence[Any], matchers: Mapping[str, ColumnMatcher]) -> dict[str, int]:
    """Map logical column names to indexes of the header row.

    Each name takes the first (left-most) column its matcher accepts;
    names with no match are absent from the result.
    """
    normalized = [normalize_header(value) for value in header]
    columns: dict[str, int] = {}
    for name, matcher in matchers.items():
        for index, text in enumerate(normalized):
            if matcher.matches(text):
                columns[name] = index
                break
    return columns


# =============================================================================
# Row classification
# =============================================================================


class RowKind(str, Enum):
    """How a scanned data-area row should be treated."""

    DATA = "data"
    SKIP = "skip"
    END = "end"


def classify_row(row: Sequence[Any]) -> RowKind:
    """Classify a row below the header.

    END: grand-total footer ("Total..." first cell, or "Total Global" in
    any of the first three cells). SKIP: blank rows, rows with a blank
    first cell, subtotal rows ("Loja - ...") and company footers (NIF,
    legal-entity lines).
    """
    first = cell_text(cell(row, 0))
    if first.lower().startswith("total"):
        return RowKind.END
    if any(cell_text(cell(row, i)).lower().startswith("total global") for i in range(3)):
        return RowKind.END
    if not first:
        return RowKind.SKIP
    if first.startswith(SUBTOTAL_PREFIXES):
        return RowKind.SKIP
    if first.startswith(FOOTER_MARKERS) or "UNIPESSOAL" in first.upper():
        return RowKind.SKIP
    return RowKind.DATA


def iter_data_rows(grid: Grid, start: int) -> Iterator[tuple[int, Row]]:
    """Yield (spreadsheet line number, row) for data rows from ``start``.

    Stops at the grand-total footer; subtotal, blank and footer rows are
    skipped.
    """
    for index in range(start, len(grid)):
        row = grid[index]
        kind = classify_row(row)
        if kind is RowKind.END:
            return
        if kind is RowKind.DATA:
            yield index + 1, row
