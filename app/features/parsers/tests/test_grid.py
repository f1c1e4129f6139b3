"""Tests for grid helpers: periods, header matching, row classification."""

from datetime import datetime

import pytest

from app.core.exceptions import SpreadsheetReadError
from app.features.parsers.grid import (
    ColumnMatcher,
    RowKind,
    cell,
    classify_row,
    extract_period,
    find_header_row,
    iter_data_rows,
    map_columns,
    read_grid,
)


class TestClassifyRow:
    """Tests for data/skip/end classification."""

    @pytest.mark.parametrize(
        ("row", "expected"),
        [
            (["Lupita Pizza - Alvalade (2)", "2025-03-03", 10], RowKind.DATA),
            (["Total Global", None, 1000], RowKind.END),
            (["Totais", None, 1000], RowKind.END),
            (["Lupita Pizza", "Total Global"], RowKind.END),
            ([None, "2025-03-03", 10], RowKind.SKIP),
            ([], RowKind.SKIP),
            (["Loja - Lupita Pizza - Alvalade (2)", None, 500], RowKind.SKIP),
            (["Zona - Sala", None, 500], RowKind.SKIP),
            (["NIF: 515449741"], RowKind.SKIP),
            (["Lupita Restauração Unipessoal Lda"], RowKind.SKIP),
        ],
    )
    def test_classification(self, row, expected):
        assert classify_row(row) is expected

    def test_iter_data_rows_stops_at_footer(self):
        grid = [
            ["Loja", "Data"],
            ["a", 1],
            ["Loja - a", None],
            [None, None],
            ["b", 2],
            ["Total Global"],
            ["c", 3],
        ]

        assert list(iter_data_rows(grid, 1)) == [(2, ["a", 1]), (5, ["b", 2])]


class TestExtractPeriod:
    """Tests for the report period in the title rows."""

    def test_free_text_period(self):
        grid = [["Vendas - Artigos"], ["Período", "01-03-2025 a 31-03-2025"]]
        assert extract_period(grid) == ("2025-03-01", "2025-03-31")

    def test_labelled_data_row(self):
        grid = [
            ["Vendas - Artigos"],
            [None, "Data", datetime(2025, 3, 1), "a", datetime(2025, 3, 31)],
        ]
        assert extract_period(grid) == ("2025-03-01", "2025-03-31")

    def test_missing_period(self):
        assert extract_period([["Vendas"], ["Filtro"]]) == (None, None)


class TestHeaders:
    """Tests for header discovery and column mapping."""

    def test_find_header_row_is_accent_insensitive(self):
        grid = [["t"], ["p"], ["f"], ["f"], ["Loja", "Família"], ["x"]]

        assert find_header_row(grid, ("loja", "Familia"), 3, 8) == 4
        assert find_header_row(grid, ("Zona",), 3, 8) is None

    def test_map_columns_takes_leftmost_match(self):
        matchers = {
            "net": ColumnMatcher(contains=(("liquido",),), excludes=("%",)),
            "store": ColumnMatcher(exact=("loja",)),
            "zone": ColumnMatcher(exact=("zona",)),
        }
        header = ["% Líquido", "Loja", "Total Líquido", "Valor Líquido"]

        assert map_columns(header, matchers) == {"net": 2, "store": 1}

    def test_cell_is_bounds_safe(self):
        assert cell(["a"], 3) is None
        assert cell(None, 0) is None
        assert cell(["a"], None) is None
        assert cell(["a", "b"], 1) == "b"


class TestReadGrid:
    """Tests for workbook loading."""

    def test_reads_first_sheet(self, write_workbook):
        path = write_workbook("grid.xlsx", [["a", 1], ["b", 2.5]])
        assert read_grid(path) == [["a", 1], ["b", 2.5]]

    def test_missing_file(self, tmp_path):
        with pytest.raises(SpreadsheetReadError, match="File not found"):
            read_grid(tmp_path / "nope.xlsx")

    def test_not_a_workbook(self, tmp_path):
        path = tmp_path / "broken.xlsx"
        path.write_bytes(b"<html>login</html>")

        with pytest.raises(SpreadsheetReadError, match="Cannot read spreadsheet broken.xlsx"):
            read_grid(path)

    @pytest.mark.parametrize("part", ["xl/workbook.xml", "xl/worksheets/sheet1.xml"])
    def test_malformed_xml_part(self, corrupt_workbook, part):
        path = corrupt_workbook(part=part)

        with pytest.raises(SpreadsheetReadError, match="Cannot read spreadsheet corrupt.xlsx"):
            read_grid(path)
