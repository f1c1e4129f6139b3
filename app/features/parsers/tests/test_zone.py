"""Tests for the sales-by-zone report parser."""

import datetime

from app.features.parsers.zone import parse_zone

ALVALADE = "Lupita Pizza - Alvalade (2)"
MARCH_3 = datetime.datetime(2025, 3, 3)
TODAY = datetime.date(2025, 3, 31)


def test_six_column_layout(zone_workbook):
    path = zone_workbook(
        [
            [ALVALADE, MARCH_3, "Seg", "Sala", 100.0, 113.0],
            [ALVALADE, MARCH_3, "Seg", "delivery", 50.0, 56.5],
            ["Loja - Lupita Pizza - Alvalade (2)", None, None, None, 150.0, 169.5],
        ]
    )

    result = parse_zone(path, today=TODAY)

    assert result.errors == []
    assert [(r.zone, r.total_gross) for r in result.rows] == [
        ("Sala", 113.0),
        ("Delivery", 56.5),
    ]
    assert result.rows[0].store_id == "alvalade"
    assert result.rows[0].total_net == 100.0
    assert result.rows[0].day_of_week == "Seg"


def test_fifteen_column_layout(zone_workbook):
    path = zone_workbook(
        [
            ["Sala", "Lupita Pizza - Cais do Sodré (1)", MARCH_3, "Seg",
             10, 12, 11.3, 9.4, 30, 50, 100.0, 50, 13.0, 113.0, 50],
        ],  # fmt: skip
        wide=True,
    )

    result = parse_zone(path, today=TODAY)

    assert len(result.rows) == 1
    row = result.rows[0]
    assert (row.store_id, row.zone) == ("cais_do_sodre", "Sala")
    assert (row.total_net, row.total_gross) == (100.0, 113.0)


def test_unknown_or_blank_zone_becomes_outros(zone_workbook):
    path = zone_workbook(
        [
            [ALVALADE, MARCH_3, "Seg", "Esplanada", 10.0, 11.3],
            [ALVALADE, MARCH_3, "Seg", None, 5.0, 5.65],
        ]
    )

    result = parse_zone(path, today=TODAY)

    assert [r.zone for r in result.rows] == ["Outros", "Outros"]


def test_future_days_are_ignored(zone_workbook):
    path = zone_workbook(
        [
            [ALVALADE, MARCH_3, "Seg", "Sala", 100.0, 113.0],
            [ALVALADE, datetime.datetime(2025, 3, 4), "Ter", "Sala", 80.0, 90.4],
        ]
    )

    result = parse_zone(path, today=datetime.date(2025, 3, 3))

    assert len(result.rows) == 1
    assert (result.period_from, result.period_to) == ("2025-03-03", "2025-03-03")


def test_missing_zone_header(daily_workbook, daily_row):
    path = daily_workbook([daily_row(ALVALADE, datetime.date(2025, 3, 3), 10, 300.0)])

    result = parse_zone(path, today=TODAY)

    assert result.rows == []
    assert result.errors == ['Header row with "Zona" not found: the report layout may have changed']


def test_missing_required_column(write_workbook):
    path = write_workbook(
        "Zonas.xlsx",
        [
            ["Vendas - Apuramentos - Zonas"],
            *[[f"Filtro {i}"] for i in range(5)],
            ["Loja", "Data", "Zona", "Valor"],
            [ALVALADE, MARCH_3, "Sala", 113.0],
            ["Total Global"],
        ],
    )

    result = parse_zone(path, today=TODAY)

    assert result.rows == []
    assert result.errors == ["Missing zone report columns: total_gross"]
