"""Parser for the daily financial clearance report ("Vendas Completo").

One row per store per day: tickets, customers, items, net/VAT/gross and
the day's revenue target. Columns are located by header text; the
classic 14-column layout is used for any column whose header is not
recognized.
"""

import datetime
from pathlib import Path

from pydantic import ValidationError

from app.core.logging import get_logger
from app.features.parsers.cells import cell_text, to_int, to_iso_date, to_number
from app.features.parsers.grid import (
    ColumnMatcher,
    cell,
    find_header_row,
    iter_data_rows,
    map_columns,
    read_grid,
)
from app.features.parsers.schemas import DailySaleRow, ParseResult
from app.features.parsers.stores import resolve_store_id

logger = get_logger(__name__)

MIN_ROWS = 8
DEFAULT_HEADER_ROW = 6

DAILY_COLUMNS: dict[str, ColumnMatcher] = {
    "store": ColumnMatcher(exact=("loja",)),
    "date": ColumnMatcher(exact=("data",)),
    "day_of_week": ColumnMatcher(exact=("dia", "dia semana", "dia da semana")),
    "num_tickets": ColumnMatcher(contains=(("tickets",),), excludes=("medio", "/")),
    "avg_ticket": ColumnMatcher(contains=(("ticket", "medio"),)),
    "num_customers": ColumnMatcher(
        contains=(("pessoas",), ("clientes",)), excludes=("media", "medio", "/")
    ),
    "avg_per_customer": ColumnMatcher(contains=(("pessoa", "media"), ("cliente", "medio"))),
    "qty_items": ColumnMatcher(exact=("qtd", "qtd.", "quantidade", "qtd. artigos")),
    "qty_per_ticket": ColumnMatcher(contains=(("qtd", "ticket"),)),
    "total_net": ColumnMatcher(contains=(("liquido",),), excludes=("%",)),
    "total_vat": ColumnMatcher(contains=(("iva",),), excludes=("%",)),
    "total_gross": ColumnMatcher(contains=(("final",),), excludes=("%", "objetivo")),
    "target_gross": ColumnMatcher(contains=(("objetivo",), ("objectivo",))),
}

# Layout of the report as exported since 2024
DAILY_POSITIONS: dict[str, int] = {
    "store": 0,
    "date": 1,
    "day_of_week": 2,
    "num_tickets": 3,
    "avg_ticket": 4,
    "num_customers": 5,
    "avg_per_customer": 6,
    "qty_items": 7,
    "qty_per_ticket": 8,
    "total_net": 10,
    "total_vat": 11,
    "total_gross": 12,
    "target_gross": 13,
}


def parse_daily(file_path: Path, today: datetime.date | None = None) -> ParseResult[DailySaleRow]:
    """Parse a daily clearance workbook.

    Args:
        file_path: Workbook path.
        today: Reference day; later dates are ignored (defaults to today).

    Returns:
        Parsed rows, row errors, covered period and stores.

    Raises:
        SpreadsheetReadError: If the file cannot be opened.
    """
    grid = read_grid(file_path)
    result: ParseResult[DailySaleRow] = ParseResult()
    today_iso = (today or datetime.date.today()).isoformat()

    if len(grid) < MIN_ROWS:
        result.errors.append(f"File has fewer than {MIN_ROWS} rows: invalid format")
        return result

    header_index = find_header_row(grid, ("Loja",), 3, 8)
    if header_index is None:
        result.errors.append(
            f"Header row not found; assuming row {DEFAULT_HEADER_ROW + 1}. "
            "The report layout may have changed"
        )
        header_index = DEFAULT_HEADER_ROW
    columns = {**DAILY_POSITIONS, **map_columns(grid[header_index], DAILY_COLUMNS)}

    for line, row in iter_data_rows(grid, header_index + 1):
        store_id = resolve_store_id(cell_text(cell(row, columns["store"])))
        raw_date = cell(row, columns["date"])
        iso_date = to_iso_date(raw_date)
        if iso_date is None:
            result.errors.append(f'Row {line}: invalid date "{raw_date}"')
            continue
        if iso_date > today_iso:
            continue

        num_tickets = to_int(cell(row, columns["num_tickets"]))
        try:
            sale = DailySaleRow(
                store_id=store_id,
                date=iso_date,
                day_of_week=cell_text(cell(row, columns["day_of_week"])) or None,
                num_tickets=num_tickets,
                avg_ticket=to_number(cell(row, columns["avg_ticket"])),
                num_customers=to_int(cell(row, columns["num_customers"])),
                avg_per_customer=to_number(cell(row, columns["avg_per_customer"])),
                qty_items=to_number(cell(row, columns["qty_items"])),
                qty_per_ticket=to_number(cell(row, columns["qty_per_ticket"])),
                total_net=to_number(cell(row, columns["total_net"])),
                total_vat=to_number(cell(row, columns["total_vat"])),
                total_gross=to_number(cell(row, columns["total_gross"])),
                target_gross=to_number(cell(row, columns["target_gross"])),
                is_closed=num_tickets == 0,
            )
        except ValidationError as e:
            result.errors.append(f"Row {line}: {e.errors()[0]['msg']}")
            continue

        result.add(sale)
        result.widen_period(iso_date)

    logger.info(
        "parsers.daily_parsed",
        file=file_path.name,
        rows=len(result.rows),
        errors=len(result.errors),
        period_from=result.period_from,
        period_to=result.period_to,
    )
    return result
