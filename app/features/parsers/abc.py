"""Parser for the daily ABC sales analysis ("Análise ABC Vendas").

Each line is one article on one store-day, with the portal's own value
ranking. Lines that are not real products (modifiers, system fees,
zero sales) are kept but flagged as excluded and left unclassified.

The stored ``abc_class`` has two letters: the value class (the file's
label when present, else derived from the cumulative value share) and
the quantity class, ranked here per store-day over the included lines.
"""

from pathlib import Path
from typing import Any

import pandas as pd
from pydantic import ValidationError

from app.core.logging import get_logger
from app.features.data_platform.models import ExclusionReason
from app.features.parsers.cells import (
    cell_text,
    normalize_header,
    to_int,
    to_iso_date,
    to_number,
)
from app.features.parsers.grid import (
    ColumnMatcher,
    Grid,
    cell,
    extract_period,
    find_header_row,
    iter_data_rows,
    map_columns,
    read_grid,
    row_contains,
)
from app.features.parsers.schemas import AbcDailyRow, ParseResult
from app.features.parsers.stores import resolve_store_id
from app.shared.abc import ABC_CLASSES, abc_class_for, normalize_share, rank_dimension

logger = get_logger(__name__)

MIN_ROWS = 7
TITLE_MARKER = "Analise ABC Vendas"
MODIFIER_PREFIX = "@"
SYSTEM_FEE_PREFIX = "-"

ABC_COLUMNS: dict[str, ColumnMatcher] = {
    "store": ColumnMatcher(exact=("loja",)),
    "date": ColumnMatcher(exact=("data",)),
    "article_code": ColumnMatcher(contains=(("cod", "artigo"),)),
    "article_name": ColumnMatcher(exact=("artigo",)),
    "barcode": ColumnMatcher(contains=(("barras",),)),
    "qty": ColumnMatcher(exact=("qtd", "qtd.", "quantidade")),
    "qty_pct": ColumnMatcher(contains=(("qtd", "%"), ("quantidade", "%"))),
    "ranking": ColumnMatcher(contains=(("ranking",),)),
    "abc_class": ColumnMatcher(exact=("abc",)),
}


def is_abc_file(grid: Grid) -> bool:
    """True if the title rows carry the ABC analysis marker."""
    return any(row_contains(row, TITLE_MARKER) for row in grid[:3])


def exclusion_reason(
    article_name: str, article_code: str, qty: float, value: float
) -> ExclusionReason | None:
    """First matching reason, in priority order, or None for a real sale."""
    if article_name.startswith(MODIFIER_PREFIX):
        return ExclusionReason.MODIFIER
    if article_code.startswith(SYSTEM_FEE_PREFIX):
        return ExclusionReason.SYSTEM_FEE
    if value == 0 and qty == 0:
        return ExclusionReason.ZERO_SALES
    if value == 0 and qty > 0:
        return ExclusionReason.NO_PRICE
    return None


def _map_value_columns(header: list[str]) -> dict[str, int]:
    """Disambiguate the "Valor ..." / "... Acumulado" columns.

    Rules are tried in order per column; a plain "Valor" header is the
    gross value only when no explicit final/gross column exists.
    """
    columns: dict[str, int] = {}
    plain_value: int | None = None
    for index, text in enumerate(header):
        if "valor" not in text and "acumulado" not in text:
            continue
        has_pct = "%" in text
        if "liq" in text and not has_pct and "acum" not in text:
            columns["value_net"] = index
        elif ("final" in text or "bruto" in text) and not has_pct and "acum" not in text:
            columns["value_gross"] = index
        elif has_pct and "valor" in text and "acum" not in text:
            columns["value_pct"] = index
        elif "acumulado" in text and not has_pct:
            columns["value_cumulative"] = index
        elif "acumulado" in text and has_pct:
            columns["cumulative_pct"] = index
        elif text == "valor" and plain_value is None:
            plain_value = index
    if "value_gross" not in columns and plain_value is not None:
        columns["value_gross"] = plain_value
    return columns


def _quantity_classes(pending: list[dict[str, Any]]) -> dict[int, str]:
    """Quantity class per pending line, ranked within each store-day."""
    included = [
        {key: item[key] for key in ("line", "store_id", "date", "qty")}
        for item in pending
        if item["exclude_reason"] is None
    ]
    if not included:
        return {}

    frame = pd.DataFrame(included)
    classes: dict[int, str] = {}
    for _, group in frame.groupby(["store_id", "date"], sort=False):
        ranked = rank_dimension(group, "qty", "qty")
        classes.update(zip(ranked["line"], ranked["qty_class"], strict=True))
    return classes


def parse_abc(file_path: Path) -> ParseResult[AbcDailyRow]:
    """Parse a daily ABC analysis workbook.

    Raises:
        SpreadsheetReadError: If the file cannot be opened.
    """
    grid = read_grid(file_path)
    result: ParseResult[AbcDailyRow] = ParseResult()

    if len(grid) < MIN_ROWS:
        result.errors.append(f"File has fewer than {MIN_ROWS} rows: invalid format")
        return result
    if not is_abc_file(grid):
        result.errors.append("ABC analysis title not found in the first rows")

    period_from, period_to = extract_period(grid)

    header_index = find_header_row(grid, ("Artigo", "Ranking"), 3, 8)
    if header_index is None:
        header_index = find_header_row(grid, ("Artigo", "ABC"), 3, 8)
    if header_index is None:
        header_index = find_header_row(grid, ("Artigo",), 3, 8)
    if header_index is None:
        result.errors.append("Header row not found in the ABC file")
        return result

    header = [normalize_header(value) for value in grid[header_index]]
    columns = {**map_columns(grid[header_index], ABC_COLUMNS), **_map_value_columns(header)}
    columns.setdefault("store", 0)

    # A report without a Data column can still be imported when it covers one day
    single_day = period_from if period_from and period_from == period_to else None

    pending: list[dict[str, Any]] = []
    for line, row in iter_data_rows(grid, header_index + 1):
        code = cell_text(cell(row, columns.get("article_code")))
        name = cell_text(cell(row, columns.get("article_name")))
        if not code or not name:
            continue

        iso_date = to_iso_date(cell(row, columns["date"])) if "date" in columns else single_day
        if iso_date is None:
            continue

        qty = to_number(cell(row, columns.get("qty")))
        value_gross = to_number(cell(row, columns.get("value_gross")))
        cumulative_pct = normalize_share(to_number(cell(row, columns.get("cumulative_pct"))))
        pending.append(
            {
                "line": line,
                "store_id": resolve_store_id(cell_text(cell(row, columns["store"]))),
                "date": iso_date,
                "article_code": code,
                "article_name": name,
                "barcode": cell_text(cell(row, columns.get("barcode"))) or None,
                "qty": qty,
                "qty_pct": normalize_share(to_number(cell(row, columns.get("qty_pct")))),
                "value_net": to_number(cell(row, columns.get("value_net"))),
                "value_gross": value_gross,
                "value_pct": normalize_share(to_number(cell(row, columns.get("value_pct")))),
                "value_cumulative": to_number(cell(row, columns.get("value_cumulative"))),
                "cumulative_pct": cumulative_pct,
                "ranking": to_int(cell(row, columns.get("ranking"))),
                "file_class": cell_text(cell(row, columns.get("abc_class"))).upper(),
                "exclude_reason": exclusion_reason(name, code, qty, value_gross),
            }
        )

    qty_classes = _quantity_classes(pending)
    for item in pending:
        line = item.pop("line")
        file_class = item.pop("file_class")
        reason = item["exclude_reason"]
        if reason is None:
            if len(file_class) == 2 and all(c in ABC_CLASSES for c in file_class):
                abc_class = file_class
            else:
                value_class = file_class if file_class in ABC_CLASSES else None
                abc_class = (value_class or abc_class_for(item["cumulative_pct"])) + qty_classes[
                    line
                ]
        else:
            abc_class = None

        try:
            record = AbcDailyRow(**item, abc_class=abc_class, is_excluded=reason is not None)
        except ValidationError as e:
            result.errors.append(f"Row {line}: {e.errors()[0]['msg']}")
            continue

        result.add(record)
        result.widen_period(item["date"])

    logger.info(
        "parsers.abc_parsed",
        file=file_path.name,
        rows=len(result.rows),
        excluded=sum(1 for r in result.rows if r.is_excluded),
        errors=len(result.errors),
    )
    return result
