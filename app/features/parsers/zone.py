"""Parser for the sales-by-zone report ("Zonas").

The portal has shipped this report with 6 columns and later with 15, in
a different order; columns are therefore always resolved from the
header text, never by position.
"""

import datetime
from pathlib import Path

from pydantic import ValidationError

from app.core.logging import get_logger
from app.features.parsers.cells import cell_text, to_iso_date, to_number
from app.features.parsers.grid import (
    ColumnMatcher,
    cell,
    find_header_row,
    iter_data_rows,
    map_columns,
    read_grid,
)
from app.features.parsers.schemas import ParseResult, ZoneSaleRow
from app.features.parsers.stores import normalize_zone, resolve_store_id

logger = get_logger(__name__)

MIN_ROWS = 8
REQUIRED_COLUMNS = ("zone", "date", "total_gross")

ZONE_COLUMNS: dict[str, ColumnMatcher] = {
    "store": ColumnMatcher(exact=("loja",)),
    "date": ColumnMatcher(exact=("data",)),
    "day_of_week": ColumnMatcher(exact=("dia", "dia semana", "dia da semana")),
    "zone": ColumnMatcher(exact=("zona",)),
    "total_net": ColumnMatcher(contains=(("liquido",),), excludes=("%", "medio", "media")),
    "total_gross": ColumnMatcher(contains=(("final",),), excludes=("%", "medio", "media")),
}


def parse_zone(file_path: Path, today: datetime.date | None = None) -> ParseResult[ZoneSaleRow]:
    """Parse a zone report workbook.

    Args:
        file_path: Workbook path.
        today: Reference day; later dates are ignored (defaults to today).

    Returns:
        Parsed rows, row errors, covered period and stores.

    Raises:
        SpreadsheetReadError: If the file cannot be opened.
    """
    grid = read_grid(file_path)
    result: ParseResult[ZoneSaleRow] = ParseResult()
    today_iso = (today or datetime.date.today()).isoformat()

    if len(grid) < MIN_ROWS:
        result.errors.append(f"File has fewer than {MIN_ROWS} rows: invalid format")
        return result

    header_index = find_header_row(grid, ("Zona",), 3, 8)
    if header_index is None:
        result.errors.append('Header row with "Zona" not found: the report layout may have changed')
        return result

    columns = map_columns(grid[header_index], ZONE_COLUMNS)
    missing = [name for name in REQUIRED_COLUMNS if name not in columns]
    if missing:
        result.errors.append(f"Missing zone report columns: {', '.join(missing)}")
        return result
    columns.setdefault("store", 0)

    for line, row in iter_data_rows(grid, header_index + 1):
        raw_date = cell(row, columns["date"])
        iso_date = to_iso_date(raw_date)
        if iso_date is None:
            result.errors.append(f'Row {line}: invalid date "{raw_date}"')
            continue
        if iso_date > today_iso:
            continue

        try:
            sale = ZoneSaleRow(
                store_id=resolve_store_id(cell_text(cell(row, columns["store"]))),
                date=iso_date,
                zone=normalize_zone(cell_text(cell(row, columns["zone"]))),
                day_of_week=cell_text(cell(row, columns.get("day_of_week"))) or None,
                total_net=to_number(cell(row, columns.get("total_net"))),
                total_gross=to_number(cell(row, columns["total_gross"])),
            )
        except ValidationError as e:
            result.errors.append(f"Row {line}: {e.errors()[0]['msg']}")
            continue

        result.add(sale)
        result.widen_period(iso_date)

    logger.info(
        "parsers.zone_parsed",
        file=file_path.name,
        rows=len(result.rows),
        errors=len(result.errors),
        columns=len(grid[header_index]),
    )
    return result
