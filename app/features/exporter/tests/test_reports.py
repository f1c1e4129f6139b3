"""Tests for the report registry."""

import pytest

from app.core.exceptions import NotFoundError
from app.features.exporter.reports import COMMON_RULES, REPORT_BY_KEY, REPORTS, get_report
from app.features.parsers.schemas import FileFormat


def test_registry_order_and_ids():
    assert [(r.key, r.portal_id) for r in REPORTS] == [
        ("full_clearance", "48"),
        ("zones", "46"),
        ("items", "49"),
        ("abc_analysis", "9"),
        ("hourly_totals", "70"),
    ]


def test_every_report_maps_to_a_parser_format():
    assert {r.file_format for r in REPORTS} == {
        FileFormat.DAILY,
        FileFormat.ZONE,
        FileFormat.ARTICLE,
        FileFormat.ABC,
        FileFormat.HOURLY,
    }


def test_keys_are_unique():
    assert len(REPORT_BY_KEY) == len(REPORTS)


def test_rules_fall_back_to_common_rules():
    assert get_report("zones").rules == COMMON_RULES
    assert "Período: 30 minutos" in get_report("hourly_totals").rules


def test_file_name_for_period():
    assert (
        get_report("abc_analysis").file_name_for("2025-01-01", "2025-02-01")
        == "ABC_Vendas_2025-01-01_2025-02-01.xlsx"
    )


def test_unknown_key():
    with pytest.raises(NotFoundError) as exc_info:
        get_report("nope")
    assert "full_clearance" in exc_info.value.details["available"]
