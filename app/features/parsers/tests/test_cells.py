"""Tests for cell coercion helpers."""

from datetime import date, datetime, time, timedelta

import pytest

from app.features.parsers.cells import (
    cell_text,
    normalize_header,
    parse_time_slot,
    to_int,
    to_iso_date,
    to_number,
)


class TestToNumber:
    """Tests for European number parsing."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (12.5, 12.5),
            (7, 7.0),
            ("1.234,56", 1234.56),
            ("12,5 €", 12.5),
            ("45%", 45.0),
            ("1.234.567", 1234567.0),
            ("1.234", 1234.0),
            ("12.345.678", 12345678.0),
            ("", 0.0),
            ("n/a", 0.0),
            (None, 0.0),
            (float("nan"), 0.0),
        ],
    )
    def test_parsing(self, value, expected):
        assert to_number(value) == expected

    def test_to_int_rounds_half_up(self):
        assert to_int(2.5) == 3
        assert to_int("10,4") == 10


class TestToIsoDate:
    """Tests for date normalization."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (datetime(2025, 3, 15, 10, 30), "2025-03-15"),
            (date(2025, 3, 15), "2025-03-15"),
            ("15-03-2025", "2025-03-15"),
            ("15/03/2025", "2025-03-15"),
            ("2025-03-15", "2025-03-15"),
            ("2025-03-15T10:00:00", "2025-03-15"),
            (45731, "2025-03-15"),
        ],
    )
    def test_valid(self, value, expected):
        assert to_iso_date(value) == expected

    @pytest.mark.parametrize("value", ["31-02-2025", "March 15", 12, True, None, ""])
    def test_invalid(self, value):
        assert to_iso_date(value) is None


class TestParseTimeSlot:
    """Tests for 30-minute slot normalization."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (0.5, "12:00"),
            (20.5 / 24, "20:30"),
            (0.0, "00:00"),
            (time(9, 30), "09:30"),
            (datetime(1900, 1, 1, 13, 0), "13:00"),
            (timedelta(hours=11, minutes=30), "11:30"),
            ("9:30", "09:30"),
            ("21:00:00", "21:00"),
        ],
    )
    def test_valid(self, value, expected):
        assert parse_time_slot(value) == expected

    @pytest.mark.parametrize("value", [1.0, -0.1, "24:00", "12:60", "Total", None, True])
    def test_invalid(self, value):
        assert parse_time_slot(value) is None


class TestText:
    """Tests for text helpers."""

    def test_cell_text_drops_integral_decimals(self):
        assert cell_text(300.0) == "300"
        assert cell_text(2.5) == "2.5"
        assert cell_text("  Sala ") == "Sala"
        assert cell_text(None) == ""

    def test_normalize_header(self):
        assert normalize_header("  Total  Líquido ") == "total liquido"
        assert normalize_header("Cód. Artigo") == "cod. artigo"
