"""Test fixtures for analytics module.

``seeded_database`` loads a small March 2025 data set for two stores:

- daily: alvalade open Mon 3rd and Mon 10th (closed Tue 4th),
  cais_do_sodre open Mon 3rd, plus an April row outside the window
- zones and 30-minute slots for the same days
- article periods, one of them outside the window and one straddling it
- ABC lines arranged so alvalade hits the 70% and 90% thresholds exactly
"""

from collections.abc import AsyncGenerator
from datetime import date

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import Database
from app.features.analytics.schemas import DateRangeParams
from app.features.analytics.service import AnalyticsService
from app.features.data_platform.models import (
    AbcDaily,
    ArticleSale,
    DailySale,
    HourlySale,
    ZoneSale,
)

MARCH = (date(2025, 3, 1), date(2025, 3, 31))


def _daily(store_id, day, tickets, customers, gross, net, target, items) -> DailySale:
    return DailySale(
        store_id=store_id,
        date=day,
        num_tickets=tickets,
        num_customers=customers,
        total_gross=gross,
        total_net=net,
        total_vat=round(gross - net, 2),
        target_gross=target,
        qty_items=items,
        is_closed=tickets == 0,
    )


def _article(store_id, period, code, name, family, qty, net, gross) -> ArticleSale:
    return ArticleSale(
        store_id=store_id,
        date_from=period[0],
        date_to=period[1],
        article_code=code,
        article_name=name,
        family=family,
        qty_sold=qty,
        revenue_net=net,
        revenue_gross=gross,
    )


def _abc(store_id, day, code, name, qty, value, excluded=None, ranking=0) -> AbcDaily:
    return AbcDaily(
        store_id=store_id,
        date=day,
        article_code=code,
        article_name=name,
        qty=qty,
        value_gross=value,
        value_net=round(value / 1.13, 2),
        ranking=ranking,
        is_excluded=excluded is not None,
        exclude_reason=excluded,
    )


@pytest.fixture
def march() -> DateRangeParams:
    return DateRangeParams(start_date=MARCH[0], end_date=MARCH[1])


@pytest.fixture
def march_alvalade() -> DateRangeParams:
    return DateRangeParams(start_date=MARCH[0], end_date=MARCH[1], store_id="alvalade")


@pytest.fixture
async def seeded_database(database: Database) -> Database:
    """Test store loaded with the March 2025 data set."""
    mon3, tue4, mon10 = date(2025, 3, 3), date(2025, 3, 4), date(2025, 3, 10)
    feb = (date(2025, 2, 1), date(2025, 2, 28))
    straddling = (date(2025, 2, 15), date(2025, 3, 5))

    rows = [
        _daily("alvalade", mon3, 10, 12, 300.0, 250.0, 250.0, 40),
        _daily("alvalade", tue4, 0, 0, 0.0, 0.0, 250.0, 0),
        _daily("alvalade", mon10, 20, 25, 500.0, 420.0, 400.0, 60),
        _daily("cais_do_sodre", mon3, 30, 30, 900.0, 750.0, 1000.0, 90),
        _daily("alvalade", date(2025, 4, 1), 99, 99, 9999.0, 9000.0, 0.0, 99),
        ZoneSale(store_id="alvalade", date=mon3, zone="Sala", total_gross=200.0, total_net=160.0),
        ZoneSale(
            store_id="alvalade", date=mon3, zone="Delivery", total_gross=100.0, total_net=80.0
        ),
        ZoneSale(
            store_id="cais_do_sodre", date=mon3, zone="Sala", total_gross=600.0, total_net=500.0
        ),
        ZoneSale(
            store_id="cais_do_sodre",
            date=mon3,
            zone="Takeaway",
            total_gross=300.0,
            total_net=250.0,
        ),
        HourlySale(
            store_id="alvalade", date=mon3, zone="Sala", time_slot="12:00",
            num_tickets=4, num_customers=5, total_gross=120.0, total_net=100.0,
        ),
        HourlySale(
            store_id="alvalade", date=mon10, zone="Sala", time_slot="12:00",
            num_tickets=6, num_customers=6, total_gross=180.0, total_net=150.0,
        ),
        HourlySale(
            store_id="alvalade", date=mon3, zone="Delivery", time_slot="12:00",
            num_tickets=2, num_customers=2, total_gross=40.0, total_net=33.0,
        ),
        HourlySale(
            store_id="alvalade", date=mon3, zone="Sala", time_slot="20:30",
            num_tickets=3, num_customers=4, total_gross=150.0, total_net=125.0,
        ),
        _article("alvalade", MARCH, "101", "Molho Ranch Fumado", "MOLHOS", 10, 8.0, 10.0),
        _article("alvalade", MARCH, "205", "molho ranch", "MOLHOS", 5, 4.0, 5.0),
        _article("alvalade", MARCH, "300", "Pizza Pepperoni", "PIZZAS", 20, 200.0, 240.0),
        _article("alvalade", MARCH, "301", "Pizza Pepperoni", "DELIVERY", 4, 50.0, 60.0),
        _article("cais_do_sodre", MARCH, "300", "Pizza Pepperoni", "PIZZAS", 10, 100.0, 120.0),
        _article("cais_do_sodre", MARCH, "400", "Limonada", None, 8, 16.0, 20.0),
        _article("alvalade", feb, "300", "Pizza Pepperoni", "PIZZAS", 99, 900.0, 999.0),
        _article("cais_do_sodre", straddling, "500", "Tiramisu", "SOBREMESAS", 3, 12.0, 15.0),
        _abc("alvalade", mon3, "1", "Pizza Margherita", 5, 50.0, ranking=1),
        _abc("alvalade", tue4, "1", "Pizza Margherita", 2, 20.0, ranking=1),
        _abc("alvalade", mon3, "2", "Coca Cola", 10, 10.0, ranking=2),
        _abc("alvalade", tue4, "3", "coca-cola", 10, 10.0, ranking=2),
        _abc("alvalade", mon3, "4", "Tiramisu", 3, 10.0, ranking=3),
        _abc("alvalade", date(2025, 3, 5), "5", "Extra Queijo", 50, 100.0, "modifier"),
        _abc("cais_do_sodre", mon3, "6", "Nachos", 1, 30.0, ranking=1),
    ]  # fmt: skip

    async with database.session() as session:
        session.add_all(rows)
        await session.commit()
    return database


@pytest.fixture
async def seeded_session(seeded_database: Database) -> AsyncGenerator[AsyncSession, None]:
    """Session on the seeded store."""
    async with seeded_database.session() as session:
        yield session


@pytest.fixture
def service() -> AnalyticsService:
    return AnalyticsService()
