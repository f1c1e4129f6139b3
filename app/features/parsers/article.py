"""Parser for the article sales report ("Artigos").

The report covers a period printed in its title rows. Newer exports add
a "Data" column; rows then carry their own day and the title period is
only used for the import log.
"""

from pathlib import Path

from pydantic import ValidationError

from app.core.logging import get_logger
from app.features.parsers.cells import cell_text, to_iso_date, to_number
from app.features.parsers.grid import (
    ColumnMatcher,
    cell,
    extract_period,
    find_header_row,
    iter_data_rows,
    map_columns,
    read_grid,
)
from app.features.parsers.schemas import ArticleSaleRow, ParseResult
from app.features.parsers.stores import resolve_store_id

logger = get_logger(__name__)

MIN_ROWS = 7
MODIFIER_PREFIX = "@"

ARTICLE_COLUMNS: dict[str, ColumnMatcher] = {
    "store": ColumnMatcher(exact=("loja",)),
    "date": ColumnMatcher(exact=("data",)),
    "article_code": ColumnMatcher(contains=(("cod", "artigo"),)),
    "article_name": ColumnMatcher(exact=("artigo",)),
    "barcode": ColumnMatcher(contains=(("barras",),)),
    "family": ColumnMatcher(contains=(("famil",),), excludes=("sub",)),
    "subfamily": ColumnMatcher(contains=(("sub", "famil"),)),
    "qty_sold": ColumnMatcher(exact=("qtd", "qtd.", "quantidade")),
    "revenue_net": ColumnMatcher(contains=(("liquido",),), excludes=("%",)),
    "revenue_gross": ColumnMatcher(contains=(("final",),), excludes=("%",)),
}


def parse_article(file_path: Path) -> ParseResult[ArticleSaleRow]:
    """Parse an article sales workbook.

    Lines without code or name, "@" modifier lines and lines with zero
    gross revenue are dropped.

    Raises:
        SpreadsheetReadError: If the file cannot be opened.
    """
    grid = read_grid(file_path)
    result: ParseResult[ArticleSaleRow] = ParseResult()

    if len(grid) < MIN_ROWS:
        result.errors.append(f"File has fewer than {MIN_ROWS} rows: invalid format")
        return result

    result.period_from, result.period_to = extract_period(grid)

    header_index = find_header_row(grid, ("Artigo",), 3, 6)
    if header_index is None:
        result.errors.append('Header row with "Artigo" not found')
        return result

    columns = map_columns(grid[header_index], ARTICLE_COLUMNS)
    columns.setdefault("store", 0)
    has_daily_rows = "date" in columns
    has_title_period = bool(result.period_from and result.period_to)

    if not has_daily_rows and not has_title_period:
        result.errors.append("Report period not found in the title rows")
        return result

    for line, row in iter_data_rows(grid, header_index + 1):
        code = cell_text(cell(row, columns.get("article_code")))
        name = cell_text(cell(row, columns.get("article_name")))
        if not code or not name or name.startswith(MODIFIER_PREFIX):
            continue

        revenue_gross = to_number(cell(row, columns.get("revenue_gross")))
        if revenue_gross == 0:
            continue

        if has_daily_rows:
            row_date = to_iso_date(cell(row, columns["date"]))
            if row_date is None:
                continue
            date_from = date_to = row_date
        else:
            date_from, date_to = result.period_from, result.period_to

        try:
            sale = ArticleSaleRow(
                store_id=resolve_store_id(cell_text(cell(row, columns["store"]))),
                date_from=date_from,
                date_to=date_to,
                article_code=code,
                article_name=name,
                barcode=cell_text(cell(row, columns.get("barcode"))) or None,
                family=cell_text(cell(row, columns.get("family"))) or None,
                subfamily=cell_text(cell(row, columns.get("subfamily"))) or None,
                qty_sold=to_number(cell(row, columns.get("qty_sold"))),
                revenue_net=to_number(cell(row, columns.get("revenue_net"))),
                revenue_gross=revenue_gross,
            )
        except ValidationError as e:
            result.errors.append(f"Row {line}: {e.errors()[0]['msg']}")
            continue

        result.add(sale)
        if has_daily_rows and not has_title_period:
            result.widen_period(date_from)

    logger.info(
        "parsers.article_parsed",
        file=file_path.name,
        rows=len(result.rows),
        errors=len(result.errors),
        daily_rows=has_daily_rows,
    )
    return result
