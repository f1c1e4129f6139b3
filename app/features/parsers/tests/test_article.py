"""Tests for the article sales report parser."""

import datetime

from app.features.parsers.article import parse_article

ALVALADE = "Lupita Pizza - Alvalade (2)"
DAILY_ARTICLE_HEADER = [
    "Loja", "Data", "Cód. Artigo", "Artigo", "Família", "Qtd", "Total Líquido", "Total Final",
]  # fmt: skip


def test_period_rows(article_workbook):
    path = article_workbook(
        [
            [ALVALADE, 300, "Pizza Pepperoni", "560000", "PIZZAS", "Clássicas", 20, 200.0, 240.0],
            [ALVALADE, "900", "@Extra Queijo", None, "EXTRAS", None, 5, 0, 0],
            [ALVALADE, "901", "Agua 50cl", None, "BEBIDAS", None, 0, 0, 0],
            [ALVALADE, None, "Sem codigo", None, "BEBIDAS", None, 1, 1.0, 1.2],
            ["Loja - Lupita Pizza - Alvalade (2)", None, None, None, None, None, 25, 200, 240],
        ]
    )

    result = parse_article(path)

    assert result.errors == []
    assert (result.period_from, result.period_to) == ("2025-03-01", "2025-03-31")
    assert len(result.rows) == 1
    row = result.rows[0]
    assert row.store_id == "alvalade"
    assert row.article_code == "300"
    assert row.article_name == "Pizza Pepperoni"
    assert row.barcode == "560000"
    assert (row.family, row.subfamily) == ("PIZZAS", "Clássicas")
    assert (row.qty_sold, row.revenue_net, row.revenue_gross) == (20, 200.0, 240.0)
    assert (row.date_from, row.date_to) == (datetime.date(2025, 3, 1), datetime.date(2025, 3, 31))


def test_daily_rows_keep_their_own_day(article_workbook):
    path = article_workbook(
        [
            [ALVALADE, datetime.datetime(2025, 3, 5), "300", "Pizza Pepperoni",
             "PIZZAS", 4, 40.0, 48.0],
        ],  # fmt: skip
        header=DAILY_ARTICLE_HEADER,
    )

    result = parse_article(path)

    row = result.rows[0]
    assert row.date_from == row.date_to == datetime.date(2025, 3, 5)
    assert result.period_from == "2025-03-01"


def test_daily_rows_without_title_period_define_it(article_workbook):
    path = article_workbook(
        [
            [ALVALADE, datetime.datetime(2025, 3, 5), "300", "Pizza Pepperoni",
             "PIZZAS", 4, 40.0, 48.0],
            [ALVALADE, datetime.datetime(2025, 3, 9), "300", "Pizza Pepperoni",
             "PIZZAS", 2, 20.0, 24.0],
        ],  # fmt: skip
        period="",
        header=DAILY_ARTICLE_HEADER,
    )

    result = parse_article(path)

    assert len(result.rows) == 2
    assert (result.period_from, result.period_to) == ("2025-03-05", "2025-03-09")


def test_missing_period_is_an_error(article_workbook):
    path = article_workbook(
        [[ALVALADE, "300", "Pizza Pepperoni", None, "PIZZAS", None, 1, 10.0, 12.0]],
        period="",
    )

    result = parse_article(path)

    assert result.rows == []
    assert result.errors == ["Report period not found in the title rows"]
