"""Tests for the totals-per-hour report parser."""

import datetime

from app.features.parsers.hourly import parse_hourly

ALVALADE = "Lupita Pizza - Alvalade (2)"
MARCH_3 = datetime.datetime(2025, 3, 3)


def test_parses_slots(hourly_workbook):
    path = hourly_workbook(
        [
            [ALVALADE, "Sala", MARCH_3, 0.5, 4, 5, 30.0, 24.0, 106.19, 120.0],
            [ALVALADE, "Sala", MARCH_3, datetime.time(20, 30), 3, 4, 20.0, 15.0, 53.1, 60.0],
            [ALVALADE, "Delivery", MARCH_3, "9:30", 1, 1, 15.0, 15.0, 13.27, 15.0],
        ]
    )

    result = parse_hourly(path, today=datetime.date(2025, 3, 31))

    assert result.errors == []
    assert [(r.zone, r.time_slot) for r in result.rows] == [
        ("Sala", "12:00"),
        ("Sala", "20:30"),
        ("Delivery", "09:30"),
    ]
    first = result.rows[0]
    assert first.store_id == "alvalade"
    assert (first.num_tickets, first.num_customers) == (4, 5)
    assert (first.total_net, first.total_gross) == (106.19, 120.0)
    assert (result.period_from, result.period_to) == ("2025-03-03", "2025-03-03")


def test_subtotal_and_unreadable_slots_are_skipped(hourly_workbook):
    path = hourly_workbook(
        [
            [ALVALADE, "-", MARCH_3, 0.5, 9, 9, 10.0, 10.0, 80.0, 90.0],
            [ALVALADE, None, MARCH_3, 0.5, 9, 9, 10.0, 10.0, 80.0, 90.0],
            [ALVALADE, "Sala", MARCH_3, "Total", 9, 9, 10.0, 10.0, 80.0, 90.0],
            [ALVALADE, "Sala", MARCH_3, 0.5, 1, 1, 10.0, 10.0, 8.85, 10.0],
        ]
    )

    result = parse_hourly(path, today=datetime.date(2025, 3, 31))

    assert len(result.rows) == 1
    assert result.rows[0].total_gross == 10.0


def test_future_days_are_ignored(hourly_workbook):
    path = hourly_workbook(
        [
            [ALVALADE, "Sala", MARCH_3, 0.5, 1, 1, 10.0, 10.0, 8.85, 10.0],
            [ALVALADE, "Sala", datetime.datetime(2025, 3, 4), 0.5, 1, 1, 10.0, 10.0, 8.85, 10.0],
        ]
    )

    result = parse_hourly(path, today=datetime.date(2025, 3, 3))

    assert [r.date for r in result.rows] == [datetime.date(2025, 3, 3)]
