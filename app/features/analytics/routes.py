"""API routes for analytics endpoints.

Window endpoints take an inclusive `start_date`/`end_date` range and an
optional `store_id` slug; the month and year-to-date ones take an `as_of` day.
"""

from datetime import date

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.logging import get_logger
from app.features.analytics.schemas import (
    AbcConcentrationResponse,
    AbcDateRangeResponse,
    AbcDistributionResponse,
    AbcEvolutionResponse,
    AbcRankingResponse,
    AbcStoreComparisonResponse,
    ArticlesByStoreResponse,
    ArticleTrendResponse,
    Channel,
    ChannelSplitResponse,
    ComparisonPeriod,
    DailyDetailResponse,
    DateRangeParams,
    DayOfWeekResponse,
    FamilyMixResponse,
    HourlyProfileResponse,
    KPIComparisonResponse,
    KPIResponse,
    MonthProjectionResponse,
    MonthToDateResponse,
    StoreKPIResponse,
    TopArticlesResponse,
    TrendResponse,
    YearToDateResponse,
    ZoneMixResponse,
    ZoneTrendResponse,
)
from app.features.analytics.service import AnalyticsService

logger = get_logger(__name__)

router = APIRouter(prefix="/analytics", tags=["analytics"])


def date_range_params(
    start_date: date = Query(
        ...,
        description="Start of analysis period (inclusive). Format: YYYY-MM-DD.",
    ),
    end_date: date = Query(
        ...,
        description="End of analysis period (inclusive). Format: YYYY-MM-DD.",
    ),
    store_id: str | None = Query(
        None,
        description="Store slug (e.g. 'alvalade'). Omit for all stores.",
    ),
) -> DateRangeParams:
    """Collect the shared window query parameters."""
    return DateRangeParams(start_date=start_date, end_date=end_date, store_id=store_id)


# =============================================================================
# Financial KPI Endpoints
# =============================================================================


@router.get(
    "/kpis",
    response_model=KPIResponse,
    summary="Compute aggregated KPIs",
    description="""
Aggregate the daily clearance over a date range.

**Metrics Computed**:
- `total_revenue`, `total_net`, `total_vat`: revenue with and without VAT
- `total_tickets`, `total_customers`, `total_items`
- `open_days`: store-days with at least one ticket
- `avg_ticket`: total_revenue / total_tickets
- `avg_per_customer`: total_revenue / total_customers
- `target_attainment_pct`: total_revenue as a percentage of the targets

**Date Range**:
- Both start_date and end_date are inclusive
- Maximum range: 730 days (2 years)

**Example**: `GET /analytics/kpis?start_date=2025-03-01&end_date=2025-03-31&store_id=alvalade`
""",
)
async def get_kpis(
    params: DateRangeParams = Depends(date_range_params),
    db: AsyncSession = Depends(get_db),
) -> KPIResponse:
    """Compute KPIs for a date range."""
    service = AnalyticsService()
    return await service.get_kpis(db=db, params=params)


@router.get(
    "/kpis/stores",
    response_model=StoreKPIResponse,
    summary="Compute KPIs per store",
    description="Same metrics as `/analytics/kpis`, one entry per store, "
    "highest revenue first, with each store's share of the total.",
)
async def get_kpis_by_store(
    params: DateRangeParams = Depends(date_range_params),
    db: AsyncSession = Depends(get_db),
) -> StoreKPIResponse:
    """Compute KPIs per store."""
    service = AnalyticsService()
    return await service.get_kpis_by_store(db=db, params=params)


@router.get(
    "/kpis/comparison",
    response_model=KPIComparisonResponse,
    summary="Compare KPIs with an earlier period",
    description="""
Revenue, tickets, customers and averages of the window next to the same
window one week (`wow`), one month (`mom`) or one year (`yoy`) earlier.

Month and year shifts clamp to the end of the shorter month. A metric that
grows from zero reports a variation of 100%. The store breakdown always
covers every store.
""",
)
async def get_kpi_comparison(
    params: DateRangeParams = Depends(date_range_params),
    comparison: ComparisonPeriod = Query(
        ComparisonPeriod.MOM, description="wow, mom or yoy."
    ),
    db: AsyncSession = Depends(get_db),
) -> KPIComparisonResponse:
    """KPI comparison."""
    service = AnalyticsService()
    return await service.get_kpi_comparison(db=db, params=params, comparison=comparison)


@router.get(
    "/kpis/mtd",
    response_model=MonthToDateResponse,
    summary="Month-to-date revenue",
    description="Revenue from the first of the month to `as_of` (default today), "
    "against the same days of the previous month and of the previous year, "
    "with a month-end projection from the average per open day.",
)
async def get_month_to_date(
    as_of: date | None = Query(None, description="Last day counted. Defaults to today."),
    store_id: str | None = Query(None, description="Store slug. Omit for all stores."),
    db: AsyncSession = Depends(get_db),
) -> MonthToDateResponse:
    """Month to date."""
    service = AnalyticsService()
    return await service.get_month_to_date(db=db, as_of=as_of, store_id=store_id)


@router.get(
    "/kpis/ytd",
    response_model=YearToDateResponse,
    summary="Year-to-date revenue",
)
async def get_year_to_date(
    as_of: date | None = Query(None, description="Last day counted. Defaults to today."),
    store_id: str | None = Query(None, description="Store slug. Omit for all stores."),
    db: AsyncSession = Depends(get_db),
) -> YearToDateResponse:
    """Year to date."""
    service = AnalyticsService()
    return await service.get_year_to_date(db=db, as_of=as_of, store_id=store_id)


@router.get(
    "/kpis/projection",
    response_model=MonthProjectionResponse,
    summary="Month-end revenue projection",
    description="""
Project the revenue of the month containing `as_of` from the daily targets.

- `projection_avg`: revenue so far plus the remaining targets scaled by the
  performance ratio reached on the days with sales
- `projection_target`: revenue so far plus the remaining targets as set
- `required_daily`: revenue per remaining day needed to reach the month target
""",
)
async def get_month_projection(
    as_of: date | None = Query(None, description="Any day of the month. Defaults to today."),
    store_id: str | None = Query(None, description="Store slug. Omit for all stores."),
    db: AsyncSession = Depends(get_db),
) -> MonthProjectionResponse:
    """Month projection."""
    service = AnalyticsService()
    return await service.get_month_projection(db=db, as_of=as_of, store_id=store_id)


# =============================================================================
# Trend Endpoints
# =============================================================================


@router.get(
    "/trends/weekly",
    response_model=TrendResponse,
    summary="Weekly revenue per store",
    description="""
Revenue, tickets, customers and target per store and week.

Weeks are labelled `YYYY-Www` with Monday as first day of the week; days
before the first Monday of the year fall in week `00`.
""",
)
async def get_weekly_trend(
    params: DateRangeParams = Depends(date_range_params),
    db: AsyncSession = Depends(get_db),
) -> TrendResponse:
    """Weekly revenue series."""
    service = AnalyticsService()
    return await service.get_weekly_trend(db=db, params=params)


@router.get(
    "/trends/monthly",
    response_model=TrendResponse,
    summary="Monthly revenue per store",
)
async def get_monthly_trend(
    params: DateRangeParams = Depends(date_range_params),
    db: AsyncSession = Depends(get_db),
) -> TrendResponse:
    """Monthly revenue series."""
    service = AnalyticsService()
    return await service.get_monthly_trend(db=db, params=params)


@router.get(
    "/day-of-week",
    response_model=DayOfWeekResponse,
    summary="Average revenue per weekday",
    description="Average revenue and tickets of open days per weekday and store, "
    "Monday first. Closed days are left out of the averages.",
)
async def get_day_of_week(
    params: DateRangeParams = Depends(date_range_params),
    db: AsyncSession = Depends(get_db),
) -> DayOfWeekResponse:
    """Weekday profile."""
    service = AnalyticsService()
    return await service.get_day_of_week(db=db, params=params)


# =============================================================================
# Zone and Time Slot Endpoints
# =============================================================================


@router.get(
    "/zones/mix",
    response_model=ZoneMixResponse,
    summary="Revenue per service zone",
    description="Revenue per zone (Sala, Delivery, Takeaway, ...). Without a "
    "store filter the response also breaks each zone down by store.",
)
async def get_zone_mix(
    params: DateRangeParams = Depends(date_range_params),
    db: AsyncSession = Depends(get_db),
) -> ZoneMixResponse:
    """Zone mix."""
    service = AnalyticsService()
    return await service.get_zone_mix(db=db, params=params)


@router.get(
    "/zones/weekly",
    response_model=ZoneTrendResponse,
    summary="Weekly revenue per zone",
)
async def get_zone_weekly_trend(
    params: DateRangeParams = Depends(date_range_params),
    db: AsyncSession = Depends(get_db),
) -> ZoneTrendResponse:
    """Weekly zone series."""
    service = AnalyticsService()
    return await service.get_zone_weekly_trend(db=db, params=params)


@router.get(
    "/hourly",
    response_model=HourlyProfileResponse,
    summary="Sales per 30-minute slot",
    description="Totals and per-day averages for each half-hour slot. "
    "Averages divide by the number of days with sales in the slot.",
)
async def get_hourly_profile(
    params: DateRangeParams = Depends(date_range_params),
    zone: str | None = Query(None, description="Restrict to one zone (e.g. 'Sala')."),
    db: AsyncSession = Depends(get_db),
) -> HourlyProfileResponse:
    """Hourly profile."""
    service = AnalyticsService()
    return await service.get_hourly_profile(db=db, params=params, zone=zone)


# =============================================================================
# Article Endpoints
# =============================================================================


@router.get(
    "/articles/top",
    response_model=TopArticlesResponse,
    summary="Top articles by revenue",
    description="""
Best selling articles over the window.

**Merging**: lines are grouped by canonical article name, so name variants
(e.g. "molho ranch" and "Molho Ranch Fumado") and articles sold under
several codes are counted once.

**Period overlap**: article exports cover a period; every export whose
period overlaps the window is counted in full.

**Channel**:
- `all`: every article
- `delivery`: families DELIVERY and Hidden Delivery
- `loja`: everything else
""",
)
async def get_top_articles(
    params: DateRangeParams = Depends(date_range_params),
    channel: Channel = Query(Channel.ALL, description="all, loja or delivery."),
    limit: int = Query(15, ge=1, le=500, description="Maximum number of articles."),
    db: AsyncSession = Depends(get_db),
) -> TopArticlesResponse:
    """Top articles."""
    service = AnalyticsService()
    return await service.get_top_articles(db=db, params=params, channel=channel, limit=limit)


@router.get(
    "/articles/families",
    response_model=FamilyMixResponse,
    summary="Revenue per article family",
)
async def get_family_mix(
    params: DateRangeParams = Depends(date_range_params),
    db: AsyncSession = Depends(get_db),
) -> FamilyMixResponse:
    """Family mix."""
    service = AnalyticsService()
    return await service.get_family_mix(db=db, params=params)


@router.get(
    "/articles/channels",
    response_model=ChannelSplitResponse,
    summary="Delivery versus in-store sales",
)
async def get_channel_split(
    params: DateRangeParams = Depends(date_range_params),
    db: AsyncSession = Depends(get_db),
) -> ChannelSplitResponse:
    """Channel split."""
    service = AnalyticsService()
    return await service.get_channel_split(db=db, params=params)


@router.get(
    "/articles/trend",
    response_model=ArticleTrendResponse,
    summary="Monthly sales of the top articles",
    description="Picks the top `limit` articles by revenue over the window and "
    "returns their sales per month. Exports count in the month their period starts.",
)
async def get_article_trend(
    params: DateRangeParams = Depends(date_range_params),
    channel: Channel = Query(Channel.ALL, description="all, loja or delivery."),
    limit: int = Query(5, ge=1, le=50, description="Number of top articles."),
    db: AsyncSession = Depends(get_db),
) -> ArticleTrendResponse:
    """Article trend."""
    service = AnalyticsService()
    return await service.get_article_trend(db=db, params=params, channel=channel, limit=limit)


@router.get(
    "/articles/stores",
    response_model=ArticlesByStoreResponse,
    summary="Top articles per store",
    description="Top articles of all stores combined, broken down by store. "
    "`store_id` is ignored.",
)
async def get_articles_by_store(
    params: DateRangeParams = Depends(date_range_params),
    channel: Channel = Query(Channel.ALL, description="all, loja or delivery."),
    limit: int = Query(10, ge=1, le=100, description="Number of top articles."),
    db: AsyncSession = Depends(get_db),
) -> ArticlesByStoreResponse:
    """Articles by store."""
    service = AnalyticsService()
    return await service.get_articles_by_store(
        db=db, params=params, channel=channel, limit=limit
    )


# =============================================================================
# ABC Endpoints
# =============================================================================


@router.get(
    "/abc/ranking",
    response_model=AbcRankingResponse,
    summary="Two-dimensional ABC ranking",
    description="""
Rank articles by value and by quantity over the window and classify each
dimension by cumulative share: up to 70% is A, up to 90% is B, the rest C.
The article that reaches a threshold exactly stays in the higher class.

`abc_class` combines both letters, value first ("AB" = top revenue,
mid volume). Modifiers, fees and zero-sale lines are excluded.
""",
)
async def get_abc_ranking(
    params: DateRangeParams = Depends(date_range_params),
    limit: int | None = Query(None, ge=1, description="Maximum number of items returned."),
    db: AsyncSession = Depends(get_db),
) -> AbcRankingResponse:
    """ABC ranking."""
    service = AnalyticsService()
    return await service.get_abc_ranking(db=db, params=params, limit=limit)


@router.get(
    "/abc/distribution",
    response_model=AbcDistributionResponse,
    summary="ABC class matrix",
    description="Article count, revenue and quantity for each of the nine "
    "value x quantity classes, plus per-dimension totals.",
)
async def get_abc_distribution(
    params: DateRangeParams = Depends(date_range_params),
    db: AsyncSession = Depends(get_db),
) -> AbcDistributionResponse:
    """ABC distribution."""
    service = AnalyticsService()
    return await service.get_abc_distribution(db=db, params=params)


@router.get(
    "/abc/pareto",
    response_model=AbcRankingResponse,
    summary="Pareto head of the ABC ranking",
)
async def get_abc_pareto(
    params: DateRangeParams = Depends(date_range_params),
    limit: int = Query(30, ge=1, le=200, description="Number of top articles."),
    db: AsyncSession = Depends(get_db),
) -> AbcRankingResponse:
    """ABC pareto."""
    service = AnalyticsService()
    return await service.get_abc_pareto(db=db, params=params, limit=limit)


@router.get(
    "/abc/concentration",
    response_model=AbcConcentrationResponse,
    summary="Revenue concentration of the top articles",
)
async def get_abc_concentration(
    params: DateRangeParams = Depends(date_range_params),
    db: AsyncSession = Depends(get_db),
) -> AbcConcentrationResponse:
    """ABC concentration."""
    service = AnalyticsService()
    return await service.get_abc_concentration(db=db, params=params)


@router.get(
    "/abc/date-range",
    response_model=AbcDateRangeResponse,
    summary="Days covered by ABC data",
)
async def get_abc_date_range(db: AsyncSession = Depends(get_db)) -> AbcDateRangeResponse:
    """ABC date range."""
    service = AnalyticsService()
    return await service.get_abc_date_range(db=db)


@router.get(
    "/abc/evolution",
    response_model=AbcEvolutionResponse,
    summary="Weekly ranking of the top ABC articles",
    description="Average daily portal ranking and revenue per week for the top "
    "`limit` articles by value. A lower ranking is better.",
)
async def get_abc_evolution(
    params: DateRangeParams = Depends(date_range_params),
    limit: int = Query(10, ge=1, le=50, description="Number of top articles."),
    db: AsyncSession = Depends(get_db),
) -> AbcEvolutionResponse:
    """ABC evolution."""
    service = AnalyticsService()
    return await service.get_abc_evolution(db=db, params=params, limit=limit)


@router.get(
    "/abc/stores",
    response_model=AbcStoreComparisonResponse,
    summary="Top ABC articles per store",
    description="ABC totals of the top articles of all stores, one entry per "
    "store and article. `store_id` is ignored.",
)
async def get_abc_store_comparison(
    params: DateRangeParams = Depends(date_range_params),
    limit: int = Query(15, ge=1, le=100, description="Number of top articles."),
    db: AsyncSession = Depends(get_db),
) -> AbcStoreComparisonResponse:
    """ABC store comparison."""
    service = AnalyticsService()
    return await service.get_abc_store_comparison(db=db, params=params, limit=limit)


# =============================================================================
# Daily Detail Endpoints
# =============================================================================


@router.get(
    "/daily",
    response_model=DailyDetailResponse,
    summary="Daily clearance rows",
)
async def get_daily_detail(
    params: DateRangeParams = Depends(date_range_params),
    db: AsyncSession = Depends(get_db),
) -> DailyDetailResponse:
    """Daily detail."""
    service = AnalyticsService()
    return await service.get_daily_detail(db=db, params=params)


@router.get(
    "/daily/csv",
    response_class=Response,
    summary="Export the daily clearance as CSV",
    description="""
Download the daily rows as a spreadsheet-ready CSV file.

**Format**: `;` separated, decimal commas, UTF-8 with byte order mark,
Portuguese column headers. One row per store and day.
""",
    responses={200: {"content": {"text/csv": {}}}},
)
async def export_daily_csv(
    params: DateRangeParams = Depends(date_range_params),
    db: AsyncSession = Depends(get_db),
) -> Response:
    """Daily CSV export."""
    service = AnalyticsService()
    content = await service.get_daily_csv(db=db, params=params)
    filename = f"lupita_{params.start_date.isoformat()}_{params.end_date.isoformat()}.csv"
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
