"""Tests for report format detection."""

from datetime import date

import pytest

from app.features.parsers.detector import detect_file_type
from app.features.parsers.registry import PARSERS, get_parser
from app.features.parsers.schemas import FileFormat


class TestFilenameHints:
    """File name hints win over content."""

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("ABC_Vendas_2025-03-01_2025-03-31.xlsx", FileFormat.ABC),
            ("Totais_Hora_2025.xlsx", FileFormat.HOURLY),
            ("Zonas_2025.xlsx", FileFormat.ZONE),
            ("Artigos_2025.xlsx", FileFormat.ARTICLE),
            ("abc_por_zona.xlsx", FileFormat.ABC),
        ],
    )
    def test_hint(self, daily_workbook, daily_row, name, expected):
        # Content is a daily clearance report: the name must win
        path = daily_workbook([daily_row("Loja X", date(2025, 3, 3), 1, 10.0)], name=name)
        assert detect_file_type(path) is expected


class TestContentDetection:
    """Detection from title and header rows when the name says nothing."""

    def test_daily(self, daily_workbook, daily_row):
        path = daily_workbook([daily_row("Loja X", date(2025, 3, 3), 1, 10.0)], name="e1.xlsx")
        assert detect_file_type(path) is FileFormat.DAILY

    def test_zone(self, zone_workbook):
        assert detect_file_type(zone_workbook([], name="e2.xlsx")) is FileFormat.ZONE

    def test_wide_zone(self, zone_workbook):
        path = zone_workbook([], name="e3.xlsx", wide=True)
        assert detect_file_type(path) is FileFormat.ZONE

    def test_hourly_before_zone(self, hourly_workbook):
        assert detect_file_type(hourly_workbook([], name="e4.xlsx")) is FileFormat.HOURLY

    def test_article(self, article_workbook):
        assert detect_file_type(article_workbook([], name="e5.xlsx")) is FileFormat.ARTICLE

    def test_abc_title(self, abc_workbook):
        assert detect_file_type(abc_workbook([], name="e6.xlsx")) is FileFormat.ABC

    def test_inconclusive_defaults_to_daily(self, write_workbook):
        path = write_workbook("e7.xlsx", [["nothing to see"]])
        assert detect_file_type(path) is FileFormat.DAILY

    def test_unreadable_defaults_to_daily(self, tmp_path):
        path = tmp_path / "e8.xlsx"
        path.write_bytes(b"not a zip")
        assert detect_file_type(path) is FileFormat.DAILY

    def test_malformed_workbook_defaults_to_daily(self, corrupt_workbook):
        assert detect_file_type(corrupt_workbook()) is FileFormat.DAILY

    def test_non_spreadsheet_is_unknown(self, tmp_path):
        path = tmp_path / "zonas.csv"
        path.write_text("a,b")
        assert detect_file_type(path) is FileFormat.UNKNOWN


def test_registry_covers_every_known_format():
    assert set(PARSERS) == set(FileFormat) - {FileFormat.UNKNOWN}
    assert get_parser(FileFormat.UNKNOWN) is None
