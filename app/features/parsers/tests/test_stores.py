"""Tests for store and zone normalization."""

import pytest

from app.features.parsers.stores import DEFAULT_ZONE, normalize_zone, resolve_store_id


@pytest.mark.parametrize(
    ("label", "expected"),
    [
        ("Lupita Pizza - Cais do Sodré (1)", "cais_do_sodre"),
        ("Lupita Pizza - Cais do Sodre (1)", "cais_do_sodre"),
        ("  Lupita Pizza - Alvalade (2) ", "alvalade"),
        ("Lupita Pizza - Testing (9)", "lupita_pizza_testing_9"),
    ],
)
def test_resolve_store_id(label, expected):
    assert resolve_store_id(label) == expected


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Sala", "Sala"),
        ("  SALA ", "Sala"),
        ("Take Away", "Takeaway"),
        ("delivery", "Delivery"),
        ("Esplanada", DEFAULT_ZONE),
        ("", DEFAULT_ZONE),
        (None, DEFAULT_ZONE),
    ],
)
def test_normalize_zone(raw, expected):
    assert normalize_zone(raw) == expected
