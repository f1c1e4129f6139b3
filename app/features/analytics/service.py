"""Service layer for analytics operations.

Read-only aggregations over the imported ZSBMS facts. Every query takes a
DateRangeParams window (inclusive on both ends) and an optional store.
Week buckets use SQLite's strftime, so the queries target the SQLite store.
"""

import calendar
from datetime import date, timedelta
from typing import Any

import pandas as pd
from sqlalchemy import ColumnElement, Select, Subquery, case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.exceptions import ValidationError
from app.core.logging import get_logger
from app.features.analytics.aliases import canonical_name_expr
from app.features.analytics.schemas import (
    AbcConcentrationResponse,
    AbcDateRangeResponse,
    AbcDistributionResponse,
    AbcEvolutionPoint,
    AbcEvolutionResponse,
    AbcMarginal,
    AbcMatrixCell,
    AbcRankingItem,
    AbcRankingResponse,
    AbcStoreComparisonResponse,
    AbcStoreItem,
    ArticlesByStoreResponse,
    ArticleStoreItem,
    ArticleTrendPoint,
    ArticleTrendResponse,
    Channel,
    ChannelSplitResponse,
    ComparisonPeriod,
    DailyDetailResponse,
    DailySaleItem,
    DateRangeParams,
    DayOfWeekItem,
    DayOfWeekResponse,
    FamilyMixItem,
    FamilyMixResponse,
    HourlyProfileResponse,
    HourlySlotItem,
    KPIComparisonResponse,
    KPIMetrics,
    KPIResponse,
    MetricComparison,
    MonthProjectionResponse,
    MonthToDateResponse,
    ProjectionDelta,
    StoreComparison,
    StoreKPI,
    StoreKPIResponse,
    TargetComparison,
    TimeGranularity,
    TopArticleItem,
    TopArticlesResponse,
    TrendPoint,
    TrendResponse,
    YearToDateResponse,
    ZoneMixItem,
    ZoneMixResponse,
    ZoneStoreItem,
    ZoneTrendPoint,
    ZoneTrendResponse,
)
from app.features.data_platform.models import AbcDaily, ArticleSale, DailySale, HourlySale, ZoneSale
from app.shared.abc import ABC_CLASSES, classify_two_dimensions

logger = get_logger(__name__)

DELIVERY_FAMILIES = ("DELIVERY", "Hidden Delivery")
WEEKDAY_NAMES = ("Segunda", "Terça", "Quarta", "Quinta", "Sexta", "Sábado", "Domingo")
WEEK_FORMAT = "%Y-W%W"
MONTH_FORMAT = "%Y-%m"
CONCENTRATION_TOPS = (5, 10, 20)
STORE_LABELS = {"alvalade": "Alvalade", "cais_do_sodre": "Cais do Sodré"}
CSV_COLUMNS = [
    "Data",
    "Dia",
    "Loja",
    "Faturação (c/ IVA)",
    "Faturação (s/ IVA)",
    "IVA",
    "Nº Tickets",
    "Ticket Médio",
    "Nº Clientes",
    "VM Pessoa",
    "Objectivo",
    "Variação vs Obj. (%)",
]


def _pct(part: float, total: float) -> float:
    return round(part / total * 100, 2) if total > 0 else 0.0


def _split_concat(value: str | None) -> list[str]:
    """Split a GROUP_CONCAT result into sorted distinct values."""
    if not value:
        return []
    return sorted({part for part in value.split(",") if part})


def _variation(current: float, previous: float) -> float | None:
    """Percent change; 100 when starting from zero, None when both are zero."""
    if previous == 0:
        return 100.0 if current > 0 else None
    return round((current - previous) / previous * 100, 2)


def _shift_back(day: date, comparison: ComparisonPeriod) -> date:
    """Same day one week, month or year earlier, clamped to the month's end."""
    if comparison == ComparisonPeriod.WOW:
        return day - timedelta(days=7)
    if comparison == ComparisonPeriod.MOM:
        return (pd.Timestamp(day) - pd.DateOffset(months=1)).date()
    return (pd.Timestamp(day) - pd.DateOffset(years=1)).date()


def _kpi_columns() -> list[ColumnElement[Any]]:
    """Aggregate columns shared by the daily clearance queries."""
    return [
        func.coalesce(func.sum(DailySale.total_gross), 0).label("total_revenue"),
        func.coalesce(func.sum(DailySale.total_net), 0).label("total_net"),
        func.coalesce(func.sum(DailySale.total_vat), 0).label("total_vat"),
        func.coalesce(func.sum(DailySale.target_gross), 0).label("total_target"),
        func.coalesce(func.sum(DailySale.num_tickets), 0).label("total_tickets"),
        func.coalesce(func.sum(DailySale.num_customers), 0).label("total_customers"),
        func.coalesce(func.sum(DailySale.qty_items), 0).label("total_items"),
        func.count(case((DailySale.is_closed.is_(False), 1))).label("open_days"),
    ]


def _metrics_from_row(row: Any) -> KPIMetrics:
    total_revenue = float(row.total_revenue)
    total_tickets = int(row.total_tickets)
    total_customers = int(row.total_customers)
    total_target = float(row.total_target)

    return KPIMetrics(
        total_revenue=total_revenue,
        total_net=float(row.total_net),
        total_vat=float(row.total_vat),
        total_target=total_target,
        total_tickets=total_tickets,
        total_customers=total_customers,
        total_items=float(row.total_items),
        open_days=int(row.open_days),
        avg_ticket=round(total_revenue / total_tickets, 2) if total_tickets > 0 else None,
        avg_per_customer=(
            round(total_revenue / total_customers, 2) if total_customers > 0 else None
        ),
        target_attainment_pct=_pct(total_revenue, total_target) if total_target > 0 else None,
    )


class AnalyticsService:
    """Service for computing sales analytics.

    All methods are async, read-only and use SQLAlchemy 2.0 style queries.
    """

    def __init__(self) -> None:
        """Initialize analytics service."""
        self.settings = get_settings()

    def _check_range(self, params: DateRangeParams) -> None:
        """Reject inverted or oversized windows.

        Raises:
            ValidationError: If end_date precedes start_date or the window
                is longer than analytics_max_date_range_days.
        """
        if params.end_date < params.start_date:
            raise ValidationError(
                "end_date must be on or after start_date",
                details={
                    "start_date": params.start_date.isoformat(),
                    "end_date": params.end_date.isoformat(),
                },
            )
        max_days = self.settings.analytics_max_date_range_days
        if params.days > max_days:
            raise ValidationError(
                f"Date range of {params.days} days exceeds the maximum of {max_days}",
                details={"max_days": max_days},
            )

    def _cap(self, limit: int | None) -> int:
        max_rows = self.settings.analytics_max_rows
        return max_rows if limit is None else min(limit, max_rows)

    # =========================================================================
    # Daily clearance
    # =========================================================================

    @staticmethod
    def _daily_query(params: DateRangeParams, *columns: Any) -> Select[Any]:
        stmt = select(*columns).where(
            (DailySale.date >= params.start_date) & (DailySale.date <= params.end_date)
        )
        if params.store_id is not None:
            stmt = stmt.where(DailySale.store_id == params.store_id)
        return stmt

    async def get_kpis(self, db: AsyncSession, params: DateRangeParams) -> KPIResponse:
        """Compute aggregated KPIs for a date range.

        Args:
            db: Database session.
            params: Analysis window and optional store.

        Returns:
            Aggregated KPI metrics. Sums are zero when there is no data.
        """
        self._check_range(params)
        result = await db.execute(self._daily_query(params, *_kpi_columns()))
        metrics = _metrics_from_row(result.one())

        logger.info(
            "analytics.kpis_computed",
            start_date=str(params.start_date),
            end_date=str(params.end_date),
            store_id=params.store_id,
            total_revenue=metrics.total_revenue,
            open_days=metrics.open_days,
        )

        return KPIResponse(
            metrics=metrics,
            start_date=params.start_date,
            end_date=params.end_date,
            store_id=params.store_id,
        )

    async def get_kpis_by_store(
        self, db: AsyncSession, params: DateRangeParams
    ) -> StoreKPIResponse:
        """Compute KPIs per store, highest revenue first.

        The store filter, when set, restricts the result to that store.
        """
        self._check_range(params)
        stmt = (
            self._daily_query(params, DailySale.store_id, *_kpi_columns())
            .group_by(DailySale.store_id)
            .order_by(func.sum(DailySale.total_gross).desc(), DailySale.store_id)
        )
        rows = (await db.execute(stmt)).all()
        grand_total = sum(float(row.total_revenue) for row in rows)

        stores = [
            StoreKPI(
                store_id=row.store_id,
                metrics=_metrics_from_row(row),
                revenue_share_pct=_pct(float(row.total_revenue), grand_total),
            )
            for row in rows
        ]

        logger.info(
            "analytics.store_kpis_computed",
            start_date=str(params.start_date),
            end_date=str(params.end_date),
            store_count=len(stores),
        )

        return StoreKPIResponse(
            stores=stores, start_date=params.start_date, end_date=params.end_date
        )

    async def _window_metrics(
        self, db: AsyncSession, start: date, end: date, store_id: str | None
    ) -> KPIMetrics:
        params = DateRangeParams(start_date=start, end_date=end, store_id=store_id)
        result = await db.execute(self._daily_query(params, *_kpi_columns()))
        return _metrics_from_row(result.one())

    async def get_kpi_comparison(
        self,
        db: AsyncSession,
        params: DateRangeParams,
        comparison: ComparisonPeriod = ComparisonPeriod.MOM,
    ) -> KPIComparisonResponse:
        """Compare the window's KPIs with the same window shifted back.

        Both ends of the window move by a week, a month or a year. Month
        and year shifts clamp to the end of the shorter month, so March 31
        compares with February 28.

        Args:
            db: Database session.
            params: Analysis window and optional store.
            comparison: How far back the comparison window lies.

        Returns:
            Each KPI with its previous value and percent change, the target
            attainment and a per-store breakdown covering every store.
        """
        self._check_range(params)
        prev_start = _shift_back(params.start_date, comparison)
        prev_end = _shift_back(params.end_date, comparison)

        current = await self._window_metrics(
            db, params.start_date, params.end_date, params.store_id
        )
        previous = await self._window_metrics(db, prev_start, prev_end, params.store_id)

        def compare(value: float | None, before: float | None) -> MetricComparison:
            value, before = value or 0.0, before or 0.0
            return MetricComparison(
                value=value, previous=before, variation_pct=_variation(value, before)
            )

        stores = await self._store_comparison(
            db, params.start_date, params.end_date, prev_start, prev_end
        )

        logger.info(
            "analytics.kpi_comparison_computed",
            comparison=comparison.value,
            start_date=str(params.start_date),
            end_date=str(params.end_date),
            store_id=params.store_id,
            total_revenue=current.total_revenue,
            previous_revenue=previous.total_revenue,
        )

        return KPIComparisonResponse(
            comparison=comparison,
            start_date=params.start_date,
            end_date=params.end_date,
            previous_start_date=prev_start,
            previous_end_date=prev_end,
            store_id=params.store_id,
            revenue=compare(current.total_revenue, previous.total_revenue),
            avg_ticket=compare(current.avg_ticket, previous.avg_ticket),
            tickets=compare(current.total_tickets, previous.total_tickets),
            customers=compare(current.total_customers, previous.total_customers),
            avg_per_customer=compare(current.avg_per_customer, previous.avg_per_customer),
            target=TargetComparison(
                target=current.total_target,
                actual=current.total_revenue,
                difference=round(current.total_revenue - current.total_target, 2),
                variation_pct=(
                    _variation(current.total_revenue, current.total_target)
                    if current.total_target > 0
                    else None
                ),
            ),
            stores=stores,
        )

    async def _store_comparison(
        self, db: AsyncSession, start: date, end: date, prev_start: date, prev_end: date
    ) -> list[StoreComparison]:
        revenue = func.coalesce(func.sum(DailySale.total_gross), 0)
        current_stmt = (
            self._daily_query(
                DateRangeParams(start_date=start, end_date=end),
                DailySale.store_id,
                revenue.label("revenue"),
                func.coalesce(func.sum(DailySale.num_tickets), 0).label("tickets"),
                func.coalesce(func.sum(DailySale.num_customers), 0).label("customers"),
                func.coalesce(func.sum(DailySale.target_gross), 0).label("target"),
            )
            .group_by(DailySale.store_id)
            .order_by(revenue.desc(), DailySale.store_id)
        )
        previous_stmt = self._daily_query(
            DateRangeParams(start_date=prev_start, end_date=prev_end),
            DailySale.store_id,
            revenue.label("revenue"),
        ).group_by(DailySale.store_id)

        rows = (await db.execute(current_stmt)).all()
        before = {row.store_id: float(row.revenue) for row in await db.execute(previous_stmt)}
        grand_total = sum(float(row.revenue) for row in rows)

        return [
            StoreComparison(
                store_id=row.store_id,
                revenue=float(row.revenue),
                tickets=int(row.tickets),
                customers=int(row.customers),
                target=float(row.target),
                mix_pct=_pct(float(row.revenue), grand_total),
                variation_pct=_variation(float(row.revenue), before.get(row.store_id, 0.0)),
            )
            for row in rows
        ]

    async def get_month_to_date(
        self, db: AsyncSession, as_of: date | None = None, store_id: str | None = None
    ) -> MonthToDateResponse:
        """Revenue of the month so far against last month and last year.

        The comparison windows cover the same days of the month; when the
        earlier month is shorter they end on its last day.
        """
        as_of = as_of or date.today()
        month_start = as_of.replace(day=1)
        days_in_month = calendar.monthrange(as_of.year, as_of.month)[1]

        current = await self._window_metrics(db, month_start, as_of, store_id)
        last_month_end = _shift_back(as_of, ComparisonPeriod.MOM)
        last_month = await self._window_metrics(
            db, last_month_end.replace(day=1), last_month_end, store_id
        )
        last_year_end = _shift_back(as_of, ComparisonPeriod.YOY)
        last_year = await self._window_metrics(
            db, last_year_end.replace(day=1), last_year_end, store_id
        )

        daily_avg = current.total_revenue / (current.open_days or 1)

        return MonthToDateResponse(
            as_of=as_of,
            month_start=month_start,
            current=current.total_revenue,
            previous_month=last_month.total_revenue,
            previous_year=last_year.total_revenue,
            variation_mom_pct=_variation(current.total_revenue, last_month.total_revenue),
            variation_yoy_pct=_variation(current.total_revenue, last_year.total_revenue),
            projection=round(daily_avg * days_in_month, 2),
            progress_pct=_pct(as_of.day, days_in_month),
            days_elapsed=as_of.day,
            days_in_month=days_in_month,
            store_id=store_id,
        )

    async def get_year_to_date(
        self, db: AsyncSession, as_of: date | None = None, store_id: str | None = None
    ) -> YearToDateResponse:
        """Revenue since 1 January against the same days of the previous year."""
        as_of = as_of or date.today()
        year_start = as_of.replace(month=1, day=1)

        current = await self._window_metrics(db, year_start, as_of, store_id)
        last_year_end = _shift_back(as_of, ComparisonPeriod.YOY)
        last_year = await self._window_metrics(
            db, last_year_end.replace(month=1, day=1), last_year_end, store_id
        )

        return YearToDateResponse(
            as_of=as_of,
            year_start=year_start,
            current=current.total_revenue,
            previous_year=last_year.total_revenue,
            variation_pct=_variation(current.total_revenue, last_year.total_revenue),
            tickets=current.total_tickets,
            customers=current.total_customers,
            store_id=store_id,
        )

    async def get_month_projection(
        self, db: AsyncSession, as_of: date | None = None, store_id: str | None = None
    ) -> MonthProjectionResponse:
        """Project the month-end revenue of the month containing ``as_of``.

        Two projections are returned: keeping the performance ratio reached
        so far on the remaining targets, and meeting every remaining target
        exactly. Days with sales count as elapsed; every other day of the
        month, including past days without data, counts as remaining.
        """
        as_of = as_of or date.today()
        month_start = as_of.replace(day=1)
        days_total = calendar.monthrange(as_of.year, as_of.month)[1]
        month_end = as_of.replace(day=days_total)
        has_sales = DailySale.total_gross > 0

        stmt = self._daily_query(
            DateRangeParams(start_date=month_start, end_date=month_end, store_id=store_id),
            func.coalesce(func.sum(case((has_sales, DailySale.total_gross), else_=0)), 0).label(
                "actual"
            ),
            func.coalesce(func.sum(case((has_sales, DailySale.target_gross), else_=0)), 0).label(
                "target_elapsed"
            ),
            func.coalesce(func.sum(DailySale.target_gross), 0).label("target_total"),
            func.count(case((has_sales, DailySale.date)).distinct()).label("days_elapsed"),
        )
        row = (await db.execute(stmt)).one()

        actual = float(row.actual)
        target_total = float(row.target_total)
        target_elapsed = float(row.target_elapsed)
        target_remaining = target_total - target_elapsed
        days_elapsed = int(row.days_elapsed)
        days_remaining = max(days_total - days_elapsed, 0)

        ratio = actual / target_elapsed if target_elapsed > 0 else 1.0
        projection_avg = actual + target_remaining * ratio
        projection_target = actual + target_remaining

        def delta(value: float, reference: float) -> ProjectionDelta:
            return ProjectionDelta(
                euros=round(value - reference, 2),
                pct=_variation(value, reference) if reference > 0 else None,
            )

        logger.info(
            "analytics.month_projection_computed",
            month=month_start.strftime(MONTH_FORMAT),
            store_id=store_id,
            actual=actual,
            projection_avg=round(projection_avg, 2),
        )

        return MonthProjectionResponse(
            month=month_start.strftime(MONTH_FORMAT),
            month_start=month_start,
            month_end=month_end,
            actual=actual,
            target_total=target_total,
            target_elapsed=target_elapsed,
            target_remaining=target_remaining,
            performance_ratio=round(ratio, 4),
            projection_avg=round(projection_avg, 2),
            projection_target=round(projection_target, 2),
            avg_daily=round(actual / days_elapsed, 2) if days_elapsed else 0.0,
            required_daily=(
                round(max(target_total - actual, 0.0) / days_remaining, 2)
                if days_remaining
                else 0.0
            ),
            days_elapsed=days_elapsed,
            days_total=days_total,
            days_remaining=days_remaining,
            delta_avg_vs_target=delta(projection_avg, target_total),
            delta_target_vs_target=delta(projection_target, target_total),
            delta_avg_vs_projection_target=delta(projection_avg, projection_target),
            store_id=store_id,
        )

    async def _get_trend(
        self, db: AsyncSession, params: DateRangeParams, granularity: TimeGranularity
    ) -> TrendResponse:
        self._check_range(params)
        fmt = WEEK_FORMAT if granularity == TimeGranularity.WEEK else MONTH_FORMAT
        period = func.strftime(fmt, DailySale.date).label("period")

        stmt = (
            self._daily_query(
                params,
                period,
                func.min(DailySale.date).label("period_start"),
                DailySale.store_id,
                func.coalesce(func.sum(DailySale.total_gross), 0).label("total_revenue"),
                func.coalesce(func.sum(DailySale.num_tickets), 0).label("total_tickets"),
                func.coalesce(func.sum(DailySale.num_customers), 0).label("total_customers"),
                func.coalesce(func.sum(DailySale.target_gross), 0).label("total_target"),
                func.count(case((DailySale.is_closed.is_(False), 1))).label("open_days"),
            )
            .group_by(period, DailySale.store_id)
            .order_by(period, DailySale.store_id)
        )
        rows = (await db.execute(stmt)).all()

        points = [
            TrendPoint(
                period=row.period,
                period_start=row.period_start,
                store_id=row.store_id,
                total_revenue=float(row.total_revenue),
                total_tickets=int(row.total_tickets),
                total_customers=int(row.total_customers),
                total_target=float(row.total_target),
                open_days=int(row.open_days),
            )
            for row in rows
        ]

        logger.info(
            "analytics.trend_computed",
            granularity=granularity.value,
            start_date=str(params.start_date),
            end_date=str(params.end_date),
            store_id=params.store_id,
            points=len(points),
        )

        return TrendResponse(
            granularity=granularity,
            points=points,
            start_date=params.start_date,
            end_date=params.end_date,
            store_id=params.store_id,
        )

    async def get_weekly_trend(self, db: AsyncSession, params: DateRangeParams) -> TrendResponse:
        """Revenue per store and week (Monday-based week number)."""
        return await self._get_trend(db, params, TimeGranularity.WEEK)

    async def get_monthly_trend(self, db: AsyncSession, params: DateRangeParams) -> TrendResponse:
        """Revenue per store and calendar month."""
        return await self._get_trend(db, params, TimeGranularity.MONTH)

    async def get_day_of_week(self, db: AsyncSession, params: DateRangeParams) -> DayOfWeekResponse:
        """Average revenue and tickets of open days per weekday and store.

        The weekday is derived from the date, not from the label the portal
        printed, so it is immune to locale differences between exports.
        """
        self._check_range(params)
        # strftime('%w') counts from Sunday = 0
        sqlite_weekday = func.strftime("%w", DailySale.date).label("sqlite_weekday")
        is_open = DailySale.is_closed.is_(False)

        stmt = self._daily_query(
            params,
            sqlite_weekday,
            DailySale.store_id,
            func.avg(case((is_open, DailySale.total_gross))).label("avg_revenue"),
            func.avg(case((is_open, DailySale.num_tickets))).label("avg_tickets"),
            func.count(case((is_open, 1))).label("days_open"),
        ).group_by(sqlite_weekday, DailySale.store_id)
        rows = (await db.execute(stmt)).all()

        items = []
        for row in rows:
            weekday = (int(row.sqlite_weekday) + 6) % 7
            items.append(
                DayOfWeekItem(
                    weekday=weekday,
                    day_of_week=WEEKDAY_NAMES[weekday],
                    store_id=row.store_id,
                    avg_revenue=None if row.avg_revenue is None else round(row.avg_revenue, 2),
                    avg_tickets=None if row.avg_tickets is None else round(row.avg_tickets, 2),
                    days_open=int(row.days_open),
                )
            )
        items.sort(key=lambda item: (item.weekday, item.store_id))

        return DayOfWeekResponse(
            items=items,
            start_date=params.start_date,
            end_date=params.end_date,
            store_id=params.store_id,
        )

    # =========================================================================
    # Zones and time slots
    # =========================================================================

    @staticmethod
    def _zone_query(params: DateRangeParams, *columns: Any) -> Select[Any]:
        stmt = select(*columns).where(
            (ZoneSale.date >= params.start_date) & (ZoneSale.date <= params.end_date)
        )
        if params.store_id is not None:
            stmt = stmt.where(ZoneSale.store_id == params.store_id)
        return stmt

    async def get_zone_mix(self, db: AsyncSession, params: DateRangeParams) -> ZoneMixResponse:
        """Revenue per zone, with a per-store breakdown across all stores."""
        self._check_range(params)
        revenue = func.coalesce(func.sum(ZoneSale.total_gross), 0)
        net = func.coalesce(func.sum(ZoneSale.total_net), 0)

        zone_stmt = (
            self._zone_query(
                params, ZoneSale.zone, revenue.label("total_revenue"), net.label("total_net")
            )
            .group_by(ZoneSale.zone)
            .order_by(revenue.desc(), ZoneSale.zone)
        )
        zone_rows = (await db.execute(zone_stmt)).all()
        grand_total = sum(float(row.total_revenue) for row in zone_rows)

        zones = [
            ZoneMixItem(
                zone=row.zone,
                total_revenue=float(row.total_revenue),
                total_net=float(row.total_net),
                revenue_share_pct=_pct(float(row.total_revenue), grand_total),
            )
            for row in zone_rows
        ]

        breakdown: list[ZoneStoreItem] = []
        if params.store_id is None:
            store_stmt = (
                self._zone_query(
                    params,
                    ZoneSale.zone,
                    ZoneSale.store_id,
                    revenue.label("total_revenue"),
                    net.label("total_net"),
                )
                .group_by(ZoneSale.zone, ZoneSale.store_id)
                .order_by(ZoneSale.zone, revenue.desc())
            )
            breakdown = [
                ZoneStoreItem(
                    zone=row.zone,
                    store_id=row.store_id,
                    total_revenue=float(row.total_revenue),
                    total_net=float(row.total_net),
                )
                for row in (await db.execute(store_stmt)).all()
            ]

        return ZoneMixResponse(
            zones=zones,
            store_breakdown=breakdown,
            start_date=params.start_date,
            end_date=params.end_date,
            store_id=params.store_id,
        )

    async def get_zone_weekly_trend(
        self, db: AsyncSession, params: DateRangeParams
    ) -> ZoneTrendResponse:
        """Weekly revenue per zone, all stores combined unless filtered."""
        self._check_range(params)
        week = func.strftime(WEEK_FORMAT, ZoneSale.date).label("week")

        stmt = (
            self._zone_query(
                params,
                week,
                func.min(ZoneSale.date).label("week_start"),
                ZoneSale.zone,
                func.coalesce(func.sum(ZoneSale.total_gross), 0).label("total_revenue"),
            )
            .group_by(week, ZoneSale.zone)
            .order_by(week, ZoneSale.zone)
        )
        points = [
            ZoneTrendPoint(
                week=row.week,
                week_start=row.week_start,
                zone=row.zone,
                total_revenue=float(row.total_revenue),
            )
            for row in (await db.execute(stmt)).all()
        ]

        return ZoneTrendResponse(
            points=points,
            start_date=params.start_date,
            end_date=params.end_date,
            store_id=params.store_id,
        )

    async def get_hourly_profile(
        self, db: AsyncSession, params: DateRangeParams, zone: str | None = None
    ) -> HourlyProfileResponse:
        """Revenue, tickets and customers per 30-minute slot.

        Averages are per day with sales in the slot, so a slot only open on
        weekends is not diluted by weekdays.
        """
        self._check_range(params)
        stmt = select(
            HourlySale.time_slot,
            func.coalesce(func.sum(HourlySale.total_gross), 0).label("total_revenue"),
            func.coalesce(func.sum(HourlySale.num_tickets), 0).label("total_tickets"),
            func.coalesce(func.sum(HourlySale.num_customers), 0).label("total_customers"),
            func.count(HourlySale.date.distinct()).label("days"),
        ).where((HourlySale.date >= params.start_date) & (HourlySale.date <= params.end_date))
        if params.store_id is not None:
            stmt = stmt.where(HourlySale.store_id == params.store_id)
        if zone is not None:
            stmt = stmt.where(HourlySale.zone == zone)
        stmt = stmt.group_by(HourlySale.time_slot).order_by(HourlySale.time_slot)

        slots = []
        for row in (await db.execute(stmt)).all():
            days = int(row.days)
            revenue = float(row.total_revenue)
            tickets = int(row.total_tickets)
            customers = int(row.total_customers)
            slots.append(
                HourlySlotItem(
                    time_slot=row.time_slot,
                    total_revenue=revenue,
                    total_tickets=tickets,
                    total_customers=customers,
                    days=days,
                    avg_revenue=round(revenue / days, 2) if days else 0.0,
                    avg_tickets=round(tickets / days, 2) if days else 0.0,
                    avg_customers=round(customers / days, 2) if days else 0.0,
                    avg_ticket=round(revenue / tickets, 2) if tickets else None,
                )
            )

        return HourlyProfileResponse(
            slots=slots,
            zone=zone,
            start_date=params.start_date,
            end_date=params.end_date,
            store_id=params.store_id,
        )

    # =========================================================================
    # Articles
    # =========================================================================

    @staticmethod
    def _article_lines(params: DateRangeParams, channel: Channel = Channel.ALL) -> Subquery:
        """Article lines whose period overlaps the window, names canonicalized.

        An export covering a longer period than the window is counted whole:
        the stored totals cannot be split by day.
        """
        stmt = select(
            canonical_name_expr(ArticleSale.article_name).label("article_name"),
            ArticleSale.store_id,
            ArticleSale.date_from,
            ArticleSale.article_code,
            ArticleSale.family,
            ArticleSale.qty_sold,
            ArticleSale.revenue_net,
            ArticleSale.revenue_gross,
        ).where(
            (ArticleSale.date_from <= params.end_date) & (ArticleSale.date_to >= params.start_date)
        )
        if params.store_id is not None:
            stmt = stmt.where(ArticleSale.store_id == params.store_id)
        if channel == Channel.DELIVERY:
            stmt = stmt.where(ArticleSale.family.in_(DELIVERY_FAMILIES))
        elif channel == Channel.LOJA:
            stmt = stmt.where(
                ArticleSale.family.is_(None) | ArticleSale.family.not_in(DELIVERY_FAMILIES)
            )
        return stmt.subquery("article_lines")

    async def get_top_articles(
        self,
        db: AsyncSession,
        params: DateRangeParams,
        channel: Channel = Channel.ALL,
        limit: int = 15,
    ) -> TopArticlesResponse:
        """Best selling articles by revenue.

        Lines are merged by canonical name, so aliases and articles sold
        under several codes count once.

        Args:
            db: Database session.
            params: Analysis window and optional store.
            channel: Restrict to delivery or in-store families.
            limit: Maximum number of articles (capped by analytics_max_rows).

        Returns:
            Ranked articles, highest revenue first.
        """
        self._check_range(params)
        lines = self._article_lines(params, channel)
        revenue = func.coalesce(func.sum(lines.c.revenue_gross), 0)

        stmt = (
            select(
                lines.c.article_name,
                func.group_concat(lines.c.article_code.distinct()).label("codes"),
                func.group_concat(lines.c.family.distinct()).label("families"),
                func.coalesce(func.sum(lines.c.qty_sold), 0).label("total_qty"),
                func.coalesce(func.sum(lines.c.revenue_net), 0).label("total_net"),
                revenue.label("total_revenue"),
            )
            .group_by(lines.c.article_name)
            .order_by(revenue.desc(), lines.c.article_name)
            .limit(self._cap(limit))
        )
        rows = (await db.execute(stmt)).all()

        items = [
            TopArticleItem(
                rank=rank,
                article_name=row.article_name,
                article_codes=_split_concat(row.codes),
                families=_split_concat(row.families),
                total_qty=float(row.total_qty),
                total_net=float(row.total_net),
                total_revenue=float(row.total_revenue),
            )
            for rank, row in enumerate(rows, 1)
        ]

        logger.info(
            "analytics.top_articles_computed",
            start_date=str(params.start_date),
            end_date=str(params.end_date),
            store_id=params.store_id,
            channel=channel.value,
            items_count=len(items),
        )

        return TopArticlesResponse(
            items=items,
            channel=channel,
            start_date=params.start_date,
            end_date=params.end_date,
            store_id=params.store_id,
        )

    async def get_family_mix(self, db: AsyncSession, params: DateRangeParams) -> FamilyMixResponse:
        """Revenue, quantity and distinct articles per family."""
        self._check_range(params)
        lines = self._article_lines(params)
        revenue = func.coalesce(func.sum(lines.c.revenue_gross), 0)

        stmt = (
            select(
                lines.c.family,
                revenue.label("total_revenue"),
                func.coalesce(func.sum(lines.c.qty_sold), 0).label("total_qty"),
                func.count(lines.c.article_code.distinct()).label("article_count"),
            )
            .group_by(lines.c.family)
            .order_by(revenue.desc(), lines.c.family)
        )
        rows = (await db.execute(stmt)).all()
        grand_total = sum(float(row.total_revenue) for row in rows)

        families = [
            FamilyMixItem(
                family=row.family,
                total_revenue=float(row.total_revenue),
                total_qty=float(row.total_qty),
                article_count=int(row.article_count),
                revenue_share_pct=_pct(float(row.total_revenue), grand_total),
            )
            for row in rows
        ]

        return FamilyMixResponse(
            families=families,
            start_date=params.start_date,
            end_date=params.end_date,
            store_id=params.store_id,
        )

    async def get_channel_split(
        self, db: AsyncSession, params: DateRangeParams
    ) -> ChannelSplitResponse:
        """Delivery versus in-store revenue and quantity."""
        self._check_range(params)
        lines = self._article_lines(params)
        is_delivery = lines.c.family.in_(DELIVERY_FAMILIES)

        stmt = select(
            func.coalesce(
                func.sum(case((is_delivery, lines.c.revenue_gross), else_=0)), 0
            ).label("delivery_revenue"),
            func.coalesce(func.sum(case((is_delivery, lines.c.qty_sold), else_=0)), 0).label(
                "delivery_qty"
            ),
            func.coalesce(func.sum(lines.c.revenue_gross), 0).label("total_revenue"),
            func.coalesce(func.sum(lines.c.qty_sold), 0).label("total_qty"),
        )
        row = (await db.execute(stmt)).one()

        delivery_revenue = float(row.delivery_revenue)
        delivery_qty = float(row.delivery_qty)
        total_revenue = float(row.total_revenue)
        total_qty = float(row.total_qty)

        return ChannelSplitResponse(
            delivery_revenue=delivery_revenue,
            delivery_qty=delivery_qty,
            loja_revenue=total_revenue - delivery_revenue,
            loja_qty=total_qty - delivery_qty,
            total_revenue=total_revenue,
            total_qty=total_qty,
            delivery_share_pct=_pct(delivery_revenue, total_revenue),
            start_date=params.start_date,
            end_date=params.end_date,
            store_id=params.store_id,
        )

    async def _top_article_names(
        self, db: AsyncSession, lines: Subquery, limit: int
    ) -> list[str]:
        """Canonical names of the highest-revenue articles among ``lines``."""
        stmt = (
            select(lines.c.article_name)
            .group_by(lines.c.article_name)
            .order_by(func.sum(lines.c.revenue_gross).desc(), lines.c.article_name)
            .limit(self._cap(limit))
        )
        return list((await db.execute(stmt)).scalars())

    async def get_article_trend(
        self,
        db: AsyncSession,
        params: DateRangeParams,
        channel: Channel = Channel.ALL,
        limit: int = 5,
    ) -> ArticleTrendResponse:
        """Monthly sales of the top articles of the window.

        Each export is assigned to the month its period starts in.
        """
        self._check_range(params)
        lines = self._article_lines(params, channel)
        top = await self._top_article_names(db, lines, limit)
        month = func.strftime(MONTH_FORMAT, lines.c.date_from).label("month")
        revenue = func.coalesce(func.sum(lines.c.revenue_gross), 0)

        stmt = (
            select(
                month,
                lines.c.article_name,
                func.coalesce(func.sum(lines.c.qty_sold), 0).label("total_qty"),
                revenue.label("total_revenue"),
            )
            .where(lines.c.article_name.in_(top))
            .group_by(month, lines.c.article_name)
            .order_by(month, revenue.desc(), lines.c.article_name)
        )
        points = [
            ArticleTrendPoint(
                month=row.month,
                article_name=row.article_name,
                total_qty=float(row.total_qty),
                total_revenue=float(row.total_revenue),
            )
            for row in (await db.execute(stmt)).all()
        ]

        return ArticleTrendResponse(
            points=points,
            channel=channel,
            start_date=params.start_date,
            end_date=params.end_date,
            store_id=params.store_id,
        )

    async def get_articles_by_store(
        self,
        db: AsyncSession,
        params: DateRangeParams,
        channel: Channel = Channel.ALL,
        limit: int = 10,
    ) -> ArticlesByStoreResponse:
        """Top articles of all stores combined, with each store's sales of them.

        The store filter is ignored: the point is comparing stores.
        """
        self._check_range(params)
        lines = self._article_lines(params.model_copy(update={"store_id": None}), channel)
        top = await self._top_article_names(db, lines, limit)
        revenue = func.coalesce(func.sum(lines.c.revenue_gross), 0)

        stmt = (
            select(
                lines.c.store_id,
                lines.c.article_name,
                func.coalesce(func.sum(lines.c.qty_sold), 0).label("total_qty"),
                func.coalesce(func.sum(lines.c.revenue_net), 0).label("total_net"),
                revenue.label("total_revenue"),
            )
            .where(lines.c.article_name.in_(top))
            .group_by(lines.c.store_id, lines.c.article_name)
            .order_by(lines.c.store_id, revenue.desc(), lines.c.article_name)
        )
        items = [
            ArticleStoreItem(
                store_id=row.store_id,
                article_name=row.article_name,
                total_qty=float(row.total_qty),
                total_net=float(row.total_net),
                total_revenue=float(row.total_revenue),
            )
            for row in (await db.execute(stmt)).all()
        ]

        return ArticlesByStoreResponse(
            items=items, channel=channel, start_date=params.start_date, end_date=params.end_date
        )

    # =========================================================================
    # ABC analysis
    # =========================================================================

    async def _abc_frame(self, db: AsyncSession, params: DateRangeParams) -> pd.DataFrame:
        """Ranked ABC lines summed per canonical article name over the window.

        Excluded lines (modifiers, fees, zero sales) never enter the ranking.
        The classes stored per day are ignored: they are recomputed here for
        the whole window.
        """
        self._check_range(params)
        stmt = select(
            canonical_name_expr(AbcDaily.article_name).label("article_name"),
            AbcDaily.article_code,
            AbcDaily.qty,
            AbcDaily.value_gross,
        ).where(
            (AbcDaily.date >= params.start_date)
            & (AbcDaily.date <= params.end_date)
            & AbcDaily.is_excluded.is_(False)
        )
        if params.store_id is not None:
            stmt = stmt.where(AbcDaily.store_id == params.store_id)
        lines = stmt.subquery("abc_lines")

        total_value = func.coalesce(func.sum(lines.c.value_gross), 0)
        grouped = (
            select(
                lines.c.article_name,
                func.group_concat(lines.c.article_code.distinct()).label("codes"),
                func.coalesce(func.sum(lines.c.qty), 0).label("total_qty"),
                total_value.label("total_value"),
            )
            .group_by(lines.c.article_name)
            .order_by(total_value.desc(), lines.c.article_name)
        )
        rows = (await db.execute(grouped)).all()

        frame = pd.DataFrame(
            [
                {
                    "article_name": row.article_name,
                    "codes": _split_concat(row.codes),
                    "total_qty": float(row.total_qty),
                    "total_value": float(row.total_value),
                }
                for row in rows
            ],
            columns=["article_name", "codes", "total_qty", "total_value"],
        )
        return classify_two_dimensions(frame, value_column="total_value", qty_column="total_qty")

    @staticmethod
    def _ranking_items(frame: pd.DataFrame) -> list[AbcRankingItem]:
        return [
            AbcRankingItem(
                ranking=int(row.value_rank),
                article_name=row.article_name,
                article_codes=row.codes,
                total_value=float(row.total_value),
                total_qty=float(row.total_qty),
                value_share=float(row.value_share),
                cumulative_value_share=float(row.value_cumulative),
                abc_value=row.value_class,
                qty_ranking=int(row.qty_rank),
                qty_share=float(row.qty_share),
                cumulative_qty_share=float(row.qty_cumulative),
                abc_qty=row.qty_class,
                abc_class=row.abc_class,
            )
            for row in frame.itertuples(index=False)
        ]

    async def get_abc_ranking(
        self, db: AsyncSession, params: DateRangeParams, limit: int | None = None
    ) -> AbcRankingResponse:
        """Two-dimensional ABC ranking recomputed over the window.

        Articles are ranked by value and by quantity independently; the
        article whose cumulative share reaches 70% is still A, 90% still B.

        Args:
            db: Database session.
            params: Analysis window and optional store.
            limit: Maximum number of items returned. Totals always cover
                every ranked article.

        Returns:
            Articles ordered by value rank.
        """
        frame = await self._abc_frame(db, params)
        items = self._ranking_items(frame)
        total_value = sum(item.total_value for item in items)
        total_qty = sum(item.total_qty for item in items)

        logger.info(
            "analytics.abc_ranking_computed",
            start_date=str(params.start_date),
            end_date=str(params.end_date),
            store_id=params.store_id,
            total_articles=len(items),
        )

        return AbcRankingResponse(
            items=items[: self._cap(limit)],
            total_articles=len(items),
            total_value=total_value,
            total_qty=total_qty,
            start_date=params.start_date,
            end_date=params.end_date,
            store_id=params.store_id,
        )

    async def get_abc_distribution(
        self, db: AsyncSession, params: DateRangeParams
    ) -> AbcDistributionResponse:
        """Count, revenue and quantity per class cell and per dimension."""
        items = self._ranking_items(await self._abc_frame(db, params))
        total_value = sum(item.total_value for item in items)
        total_qty = sum(item.total_qty for item in items)

        matrix = []
        for value_class in ABC_CLASSES:
            for qty_class in ABC_CLASSES:
                cell = [i for i in items if i.abc_class == value_class + qty_class]
                revenue = sum(i.total_value for i in cell)
                qty = sum(i.total_qty for i in cell)
                matrix.append(
                    AbcMatrixCell(
                        abc_class=value_class + qty_class,
                        count=len(cell),
                        revenue=revenue,
                        qty=qty,
                        revenue_pct=_pct(revenue, total_value),
                        qty_pct=_pct(qty, total_qty),
                    )
                )

        by_value = []
        by_qty = []
        for abc_class in ABC_CLASSES:
            value_members = [i for i in items if i.abc_value == abc_class]
            revenue = sum(i.total_value for i in value_members)
            by_value.append(
                AbcMarginal(
                    abc_class=abc_class,
                    count=len(value_members),
                    amount=revenue,
                    pct=_pct(revenue, total_value),
                )
            )
            qty_members = [i for i in items if i.abc_qty == abc_class]
            qty = sum(i.total_qty for i in qty_members)
            by_qty.append(
                AbcMarginal(
                    abc_class=abc_class,
                    count=len(qty_members),
                    amount=qty,
                    pct=_pct(qty, total_qty),
                )
            )

        return AbcDistributionResponse(
            matrix=matrix,
            by_value=by_value,
            by_qty=by_qty,
            start_date=params.start_date,
            end_date=params.end_date,
            store_id=params.store_id,
        )

    async def get_abc_pareto(
        self, db: AsyncSession, params: DateRangeParams, limit: int = 30
    ) -> AbcRankingResponse:
        """Head of the value ranking with cumulative shares, for Pareto charts."""
        return await self.get_abc_ranking(db, params, limit=limit)

    async def get_abc_concentration(
        self, db: AsyncSession, params: DateRangeParams
    ) -> AbcConcentrationResponse:
        """Share of revenue carried by the top 5, 10 and 20 articles."""
        items = self._ranking_items(await self._abc_frame(db, params))
        total_value = sum(item.total_value for item in items)
        tops = {n: sum(item.total_value for item in items[:n]) for n in CONCENTRATION_TOPS}

        return AbcConcentrationResponse(
            total_articles=len(items),
            total_value=total_value,
            top5_value=tops[5],
            top10_value=tops[10],
            top20_value=tops[20],
            top5_pct=_pct(tops[5], total_value),
            top10_pct=_pct(tops[10], total_value),
            top20_pct=_pct(tops[20], total_value),
            start_date=params.start_date,
            end_date=params.end_date,
            store_id=params.store_id,
        )

    async def get_abc_date_range(self, db: AsyncSession) -> AbcDateRangeResponse:
        """First and last day with ranked (non-excluded) ABC lines."""
        stmt = select(
            func.min(AbcDaily.date).label("min_date"),
            func.max(AbcDaily.date).label("max_date"),
        ).where(AbcDaily.is_excluded.is_(False))
        row = (await db.execute(stmt)).one()
        return AbcDateRangeResponse(min_date=row.min_date, max_date=row.max_date)

    @staticmethod
    def _abc_lines(params: DateRangeParams) -> Subquery:
        """Ranked ABC lines of the window, names canonicalized."""
        stmt = select(
            canonical_name_expr(AbcDaily.article_name).label("article_name"),
            AbcDaily.store_id,
            AbcDaily.date,
            AbcDaily.ranking,
            AbcDaily.qty,
            AbcDaily.value_gross,
        ).where(
            (AbcDaily.date >= params.start_date)
            & (AbcDaily.date <= params.end_date)
            & AbcDaily.is_excluded.is_(False)
        )
        if params.store_id is not None:
            stmt = stmt.where(AbcDaily.store_id == params.store_id)
        return stmt.subquery("abc_lines")

    async def _top_abc_names(self, db: AsyncSession, lines: Subquery, limit: int) -> list[str]:
        stmt = (
            select(lines.c.article_name)
            .group_by(lines.c.article_name)
            .order_by(func.sum(lines.c.value_gross).desc(), lines.c.article_name)
            .limit(self._cap(limit))
        )
        return list((await db.execute(stmt)).scalars())

    async def get_abc_evolution(
        self, db: AsyncSession, params: DateRangeParams, limit: int = 10
    ) -> AbcEvolutionResponse:
        """Weekly average portal ranking and value of the top articles.

        The ranking is the one the portal printed for each day, so a lower
        average means a better week.
        """
        self._check_range(params)
        lines = self._abc_lines(params)
        top = await self._top_abc_names(db, lines, limit)
        week = func.strftime(WEEK_FORMAT, lines.c.date).label("week")
        value = func.coalesce(func.sum(lines.c.value_gross), 0)

        stmt = (
            select(
                week,
                func.min(lines.c.date).label("week_start"),
                lines.c.article_name,
                func.avg(lines.c.ranking).label("avg_ranking"),
                value.label("week_value"),
            )
            .where(lines.c.article_name.in_(top))
            .group_by(week, lines.c.article_name)
            .order_by(week, value.desc(), lines.c.article_name)
        )
        points = [
            AbcEvolutionPoint(
                week=row.week,
                week_start=row.week_start,
                article_name=row.article_name,
                avg_ranking=round(float(row.avg_ranking), 2),
                week_value=float(row.week_value),
            )
            for row in (await db.execute(stmt)).all()
        ]

        return AbcEvolutionResponse(
            points=points,
            start_date=params.start_date,
            end_date=params.end_date,
            store_id=params.store_id,
        )

    async def get_abc_store_comparison(
        self, db: AsyncSession, params: DateRangeParams, limit: int = 15
    ) -> AbcStoreComparisonResponse:
        """ABC totals of the top articles of all stores, per store.

        The store filter is ignored.
        """
        self._check_range(params)
        lines = self._abc_lines(params.model_copy(update={"store_id": None}))
        top = await self._top_abc_names(db, lines, limit)
        value = func.coalesce(func.sum(lines.c.value_gross), 0)

        stmt = (
            select(
                lines.c.store_id,
                lines.c.article_name,
                func.coalesce(func.sum(lines.c.qty), 0).label("total_qty"),
                value.label("total_value"),
            )
            .where(lines.c.article_name.in_(top))
            .group_by(lines.c.store_id, lines.c.article_name)
            .order_by(lines.c.store_id, value.desc(), lines.c.article_name)
        )
        items = [
            AbcStoreItem(
                store_id=row.store_id,
                article_name=row.article_name,
                total_qty=float(row.total_qty),
                total_value=float(row.total_value),
            )
            for row in (await db.execute(stmt)).all()
        ]

        return AbcStoreComparisonResponse(
            items=items, start_date=params.start_date, end_date=params.end_date
        )

    # =========================================================================
    # Daily detail
    # =========================================================================

    async def get_daily_detail(
        self, db: AsyncSession, params: DateRangeParams
    ) -> DailyDetailResponse:
        """Stored store-days of the window, by date then store."""
        self._check_range(params)
        stmt = self._daily_query(params, DailySale).order_by(DailySale.date, DailySale.store_id)
        rows = (await db.execute(stmt)).scalars().all()

        return DailyDetailResponse(
            items=[DailySaleItem.model_validate(row) for row in rows],
            start_date=params.start_date,
            end_date=params.end_date,
            store_id=params.store_id,
        )

    async def get_daily_csv(self, db: AsyncSession, params: DateRangeParams) -> str:
        """Daily detail as a CSV spreadsheet export.

        Semicolon separated with decimal commas and a UTF-8 byte order mark,
        the layout Excel expects in a Portuguese locale. Averages and the
        target variation are left blank when undefined.
        """
        detail = await self.get_daily_detail(db, params)
        records = []
        for item in detail.items:
            records.append(
                {
                    "Data": item.date.isoformat(),
                    "Dia": WEEKDAY_NAMES[item.date.weekday()],
                    "Loja": STORE_LABELS.get(item.store_id, item.store_id),
                    "Faturação (c/ IVA)": item.total_gross,
                    "Faturação (s/ IVA)": item.total_net,
                    "IVA": item.total_vat,
                    "Nº Tickets": item.num_tickets,
                    "Ticket Médio": (
                        item.total_gross / item.num_tickets if item.num_tickets else None
                    ),
                    "Nº Clientes": item.num_customers,
                    "VM Pessoa": (
                        item.total_gross / item.num_customers if item.num_customers else None
                    ),
                    "Objectivo": item.target_gross,
                    "Variação vs Obj. (%)": (
                        _variation(item.total_gross, item.target_gross)
                        if item.target_gross > 0
                        else None
                    ),
                }
            )
        frame = pd.DataFrame(records, columns=CSV_COLUMNS)

        logger.info(
            "analytics.daily_csv_exported",
            start_date=str(params.start_date),
            end_date=str(params.end_date),
            store_id=params.store_id,
            rows=len(frame),
        )

        csv_text = frame.to_csv(
            sep=";", decimal=",", float_format="%.2f", index=False, lineterminator="\n"
        )
        return "\ufeff" + csv_text
