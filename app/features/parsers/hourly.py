"""Parser for the totals-per-hour report ("Totais Apurados por Hora").

Exported with 30-minute periods, grouped by store and zone; one row per
store, zone, day and slot.
"""

import datetime
from pathlib import Path

from pydantic import ValidationError

from app.core.logging import get_logger
from app.features.parsers.cells import (
    cell_text,
    parse_time_slot,
    to_int,
    to_iso_date,
    to_number,
)
from app.features.parsers.daily import DAILY_COLUMNS
from app.features.parsers.grid import (
    ColumnMatcher,
    cell,
    find_header_row,
    iter_data_rows,
    map_columns,
    read_grid,
)
from app.features.parsers.schemas import HourlySaleRow, ParseResult
from app.features.parsers.stores import normalize_zone, resolve_store_id

logger = get_logger(__name__)

MIN_ROWS = 8
DEFAULT_HEADER_ROW = 6

HOURLY_COLUMNS: dict[str, ColumnMatcher] = {
    "zone": ColumnMatcher(exact=("zona",)),
    "hour": ColumnMatcher(exact=("hora", "periodo")),
    **{
        name: DAILY_COLUMNS[name]
        for name in (
            "store",
            "date",
            "num_tickets",
            "num_customers",
            "avg_ticket",
            "avg_per_customer",
            "total_net",
            "total_gross",
        )
    },
}

HOURLY_POSITIONS: dict[str, int] = {
    "store": 0,
    "zone": 1,
    "date": 2,
    "hour": 3,
    "num_tickets": 4,
    "num_customers": 5,
    "avg_ticket": 6,
    "avg_per_customer": 7,
    "total_net": 8,
    "total_gross": 9,
}


def parse_hourly(
    file_path: Path, today: datetime.date | None = None
) -> ParseResult[HourlySaleRow]:
    """Parse a totals-per-hour workbook.

    Rows with a blank or "-" zone are zone subtotals and are skipped, as
    are rows whose hour cell is not a time of day.

    Raises:
        SpreadsheetReadError: If the file cannot be opened.
    """
    grid = read_grid(file_path)
    result: ParseResult[HourlySaleRow] = ParseResult()
    today_iso = (today or datetime.date.today()).isoformat()

    if len(grid) < MIN_ROWS:
        result.errors.append(f"File has fewer than {MIN_ROWS} rows: invalid format")
        return result

    header_index = find_header_row(grid, ("Hora",), 4, 8)
    if header_index is None:
        result.errors.append(
            f'Header row with "Hora" not found; assuming row {DEFAULT_HEADER_ROW + 1}'
        )
        header_index = DEFAULT_HEADER_ROW
    columns = {**HOURLY_POSITIONS, **map_columns(grid[header_index], HOURLY_COLUMNS)}

    for line, row in iter_data_rows(grid, header_index + 1):
        raw_zone = cell_text(cell(row, columns["zone"]))
        if not raw_zone or raw_zone == "-":
            continue
        time_slot = parse_time_slot(cell(row, columns["hour"]))
        if time_slot is None:
            continue
        iso_date = to_iso_date(cell(row, columns["date"]))
        if iso_date is None or iso_date > today_iso:
            continue

        try:
            sale = HourlySaleRow(
                store_id=resolve_store_id(cell_text(cell(row, columns["store"]))),
                date=iso_date,
                zone=normalize_zone(raw_zone),
                time_slot=time_slot,
                num_tickets=to_int(cell(row, columns["num_tickets"])),
                num_customers=to_int(cell(row, columns["num_customers"])),
                avg_ticket=to_number(cell(row, columns["avg_ticket"])),
                avg_per_customer=to_number(cell(row, columns["avg_per_customer"])),
                total_net=to_number(cell(row, columns["total_net"])),
                total_gross=to_number(cell(row, columns["total_gross"])),
            )
        except ValidationError as e:
            result.errors.append(f"Row {line}: {e.errors()[0]['msg']}")
            continue

        result.add(sale)
        result.widen_period(iso_date)

    logger.info(
        "parsers.hourly_parsed",
        file=file_path.name,
        rows=len(result.rows),
        errors=len(result.errors),
    )
    return result
