"""Pydantic schemas for analytics endpoints.

Monetary values are euros as stored by the imports (floats). Shares named
``*_share`` are fractions in [0, 1]; fields named ``*_pct`` are percentages.
"""

from datetime import date
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

# =============================================================================
# Enums
# =============================================================================


class TimeGranularity(str, Enum):
    """Bucket size of revenue trends."""

    WEEK = "week"
    MONTH = "month"


class Channel(str, Enum):
    """Sales channel of an article line, derived from its family.

    Articles in the delivery families are delivery sales, everything else
    (including lines without a family) was sold in the store.
    """

    ALL = "all"
    LOJA = "loja"
    DELIVERY = "delivery"


class ComparisonPeriod(str, Enum):
    """Earlier window a KPI period is compared with."""

    WOW = "wow"
    MOM = "mom"
    YOY = "yoy"


# =============================================================================
# Query Parameters
# =============================================================================


class DateRangeParams(BaseModel):
    """Analysis window shared by every analytics query."""

    start_date: date = Field(..., description="Start of the analysis period (inclusive).")
    end_date: date = Field(..., description="End of the analysis period (inclusive).")
    store_id: str | None = Field(
        None,
        description="Store slug filter (e.g. 'alvalade'). Null means all stores.",
    )

    @property
    def days(self) -> int:
        """Number of calendar days in the window."""
        return (self.end_date - self.start_date).days + 1


# =============================================================================
# Financial KPIs
# =============================================================================


class KPIMetrics(BaseModel):
    """Core KPIs aggregated from the daily clearance."""

    total_revenue: float = Field(..., description="Revenue with VAT (sum of total_gross).")
    total_net: float = Field(..., description="Revenue without VAT.")
    total_vat: float = Field(..., description="VAT collected.")
    total_target: float = Field(..., description="Sum of the daily revenue targets.")
    total_tickets: int = Field(..., ge=0, description="Number of tickets issued.")
    total_customers: int = Field(..., ge=0, description="Number of customers served.")
    total_items: float = Field(..., ge=0, description="Quantity of items sold.")
    open_days: int = Field(
        ...,
        ge=0,
        description="Store-days with at least one ticket. Two stores open on "
        "the same day count as two.",
    )
    avg_ticket: float | None = Field(
        None,
        description="Average ticket (total_revenue / total_tickets). Null if no tickets.",
    )
    avg_per_customer: float | None = Field(
        None,
        description="Average spend per customer. Null if no customers.",
    )
    target_attainment_pct: float | None = Field(
        None,
        description="Revenue as a percentage of target. Null if no target was set.",
    )


class KPIResponse(BaseModel):
    """Aggregated KPIs for a date range."""

    metrics: KPIMetrics
    start_date: date
    end_date: date
    store_id: str | None = Field(None, description="Store filter applied (if any).")


class StoreKPI(BaseModel):
    """KPIs of one store."""

    store_id: str
    metrics: KPIMetrics
    revenue_share_pct: float = Field(
        ...,
        ge=0,
        le=100,
        description="Share of the revenue of all stores in the window.",
    )


class StoreKPIResponse(BaseModel):
    """KPIs per store, highest revenue first."""

    stores: list[StoreKPI]
    start_date: date
    end_date: date


class MetricComparison(BaseModel):
    """A metric in the window and in the comparison window."""

    value: float
    previous: float
    variation_pct: float | None = Field(
        None,
        description="Change versus previous, in percent. 100 when previous is 0 and "
        "value is positive, null when both are 0.",
    )


class TargetComparison(BaseModel):
    """Revenue against the sum of the daily targets."""

    target: float
    actual: float
    difference: float = Field(..., description="actual - target.")
    variation_pct: float | None = Field(None, description="Null if no target was set.")


class StoreComparison(BaseModel):
    """Revenue of one store in the window, with its change versus the comparison window."""

    store_id: str
    revenue: float
    tickets: int
    customers: int
    target: float
    mix_pct: float = Field(..., ge=0, le=100, description="Share of all stores' revenue.")
    variation_pct: float | None = Field(
        None, description="Revenue change versus the comparison window, in percent."
    )


class KPIComparisonResponse(BaseModel):
    """KPIs of a window next to the same KPIs of an earlier window."""

    comparison: ComparisonPeriod
    start_date: date
    end_date: date
    previous_start_date: date
    previous_end_date: date
    store_id: str | None = None
    revenue: MetricComparison
    avg_ticket: MetricComparison
    tickets: MetricComparison
    customers: MetricComparison
    avg_per_customer: MetricComparison
    target: TargetComparison
    stores: list[StoreComparison] = Field(
        ..., description="Every store, regardless of the store filter."
    )


class MonthToDateResponse(BaseModel):
    """Revenue from the first of the month up to as_of."""

    as_of: date
    month_start: date
    current: float
    previous_month: float = Field(
        ..., description="Same days of the previous month (clamped to its length)."
    )
    previous_year: float = Field(..., description="Same days of this month one year earlier.")
    variation_mom_pct: float | None = None
    variation_yoy_pct: float | None = None
    projection: float = Field(
        ..., description="Average revenue per open day times the days in the month."
    )
    progress_pct: float = Field(..., description="Share of the month elapsed by as_of.")
    days_elapsed: int
    days_in_month: int
    store_id: str | None = None


class YearToDateResponse(BaseModel):
    """Revenue from 1 January up to as_of, against the same days a year earlier."""

    as_of: date
    year_start: date
    current: float
    previous_year: float
    variation_pct: float | None = None
    tickets: int
    customers: int
    store_id: str | None = None


class ProjectionDelta(BaseModel):
    """Difference between two month-end figures."""

    euros: float
    pct: float | None = None


class MonthProjectionResponse(BaseModel):
    """Month-end revenue projections from the sales and targets so far.

    Days with sales are the elapsed days; every other calendar day of the
    month is remaining, whether it is in the past or the future.
    """

    month: str = Field(..., description="'YYYY-MM'.")
    month_start: date
    month_end: date
    actual: float = Field(..., description="Revenue of the days with sales.")
    target_total: float = Field(..., description="Targets of every day of the month.")
    target_elapsed: float = Field(..., description="Targets of the days with sales.")
    target_remaining: float = Field(..., description="Targets of the days without sales.")
    performance_ratio: float = Field(
        ..., description="actual / target_elapsed, 1 when no target has elapsed."
    )
    projection_avg: float = Field(
        ..., description="actual + target_remaining x performance_ratio."
    )
    projection_target: float = Field(
        ..., description="actual + target_remaining, if every remaining target is met."
    )
    avg_daily: float
    required_daily: float = Field(
        ..., description="Revenue per remaining day needed to reach target_total."
    )
    days_elapsed: int
    days_total: int
    days_remaining: int
    delta_avg_vs_target: ProjectionDelta
    delta_target_vs_target: ProjectionDelta
    delta_avg_vs_projection_target: ProjectionDelta
    store_id: str | None = None


# =============================================================================
# Trends
# =============================================================================


class TrendPoint(BaseModel):
    """Revenue of one store in one week or month."""

    period: str = Field(
        ...,
        description="Bucket label: 'YYYY-Www' (week number with Monday as "
        "first day, week 00 before the first Monday) or 'YYYY-MM'.",
    )
    period_start: date = Field(..., description="First day with data in the bucket.")
    store_id: str
    total_revenue: float
    total_tickets: int
    total_customers: int
    total_target: float
    open_days: int


class TrendResponse(BaseModel):
    """Revenue series ordered by period then store."""

    granularity: TimeGranularity
    points: list[TrendPoint]
    start_date: date
    end_date: date
    store_id: str | None = None


class DayOfWeekItem(BaseModel):
    """Average performance of open days on one weekday."""

    weekday: int = Field(..., ge=0, le=6, description="0 = Monday ... 6 = Sunday.")
    day_of_week: str = Field(..., description="Portuguese weekday name.")
    store_id: str
    avg_revenue: float | None = Field(None, description="Null when the store never opened.")
    avg_tickets: float | None = None
    days_open: int


class DayOfWeekResponse(BaseModel):
    """Weekday profile, Monday first."""

    items: list[DayOfWeekItem]
    start_date: date
    end_date: date
    store_id: str | None = None


# =============================================================================
# Zones and time slots
# =============================================================================


class ZoneMixItem(BaseModel):
    """Revenue of one service zone."""

    zone: str
    total_revenue: float
    total_net: float
    revenue_share_pct: float = Field(..., ge=0, le=100)


class ZoneStoreItem(BaseModel):
    """Revenue of one zone in one store."""

    zone: str
    store_id: str
    total_revenue: float
    total_net: float


class ZoneMixResponse(BaseModel):
    """Zone mix, with a per-store breakdown when no store filter is set."""

    zones: list[ZoneMixItem]
    store_breakdown: list[ZoneStoreItem]
    start_date: date
    end_date: date
    store_id: str | None = None


class ZoneTrendPoint(BaseModel):
    """Weekly revenue of one zone."""

    week: str
    week_start: date
    zone: str
    total_revenue: float


class ZoneTrendResponse(BaseModel):
    """Weekly zone series ordered by week then zone."""

    points: list[ZoneTrendPoint]
    start_date: date
    end_date: date
    store_id: str | None = None


class HourlySlotItem(BaseModel):
    """Aggregates of one 30-minute slot across the window."""

    time_slot: str = Field(..., description="Slot start, HH:MM.")
    total_revenue: float
    total_tickets: int
    total_customers: int
    days: int = Field(..., ge=0, description="Distinct days with sales in the slot.")
    avg_revenue: float = Field(..., description="Revenue per day with sales in the slot.")
    avg_tickets: float
    avg_customers: float
    avg_ticket: float | None = Field(None, description="Null if no tickets in the slot.")


class HourlyProfileResponse(BaseModel):
    """Slots in time order."""

    slots: list[HourlySlotItem]
    zone: str | None = Field(None, description="Zone filter applied (if any).")
    start_date: date
    end_date: date
    store_id: str | None = None


# =============================================================================
# Articles
# =============================================================================


class TopArticleItem(BaseModel):
    """One article, merged across codes and aliases."""

    rank: int = Field(..., ge=1)
    article_name: str = Field(..., description="Canonical article name.")
    article_codes: list[str] = Field(..., description="Portal codes merged into the name.")
    families: list[str]
    total_qty: float
    total_net: float
    total_revenue: float


class TopArticlesResponse(BaseModel):
    """Best selling articles by revenue."""

    items: list[TopArticleItem]
    channel: Channel
    start_date: date
    end_date: date
    store_id: str | None = None


class FamilyMixItem(BaseModel):
    """Revenue of one article family."""

    family: str | None = Field(None, description="Null for lines without a family.")
    total_revenue: float
    total_qty: float
    article_count: int = Field(..., ge=0, description="Distinct article codes.")
    revenue_share_pct: float = Field(..., ge=0, le=100)


class FamilyMixResponse(BaseModel):
    """Family mix, highest revenue first."""

    families: list[FamilyMixItem]
    start_date: date
    end_date: date
    store_id: str | None = None


class ChannelSplitResponse(BaseModel):
    """Delivery versus in-store article sales."""

    delivery_revenue: float
    delivery_qty: float
    loja_revenue: float
    loja_qty: float
    total_revenue: float
    total_qty: float
    delivery_share_pct: float = Field(..., ge=0, le=100)
    start_date: date
    end_date: date
    store_id: str | None = None


class ArticleTrendPoint(BaseModel):
    """Monthly sales of one of the top articles."""

    month: str = Field(..., description="'YYYY-MM' of the export period start.")
    article_name: str
    total_qty: float
    total_revenue: float


class ArticleTrendResponse(BaseModel):
    """Monthly series of the top articles, ordered by month then revenue."""

    points: list[ArticleTrendPoint]
    channel: Channel
    start_date: date
    end_date: date
    store_id: str | None = None


class ArticleStoreItem(BaseModel):
    """Sales of one top article in one store."""

    store_id: str
    article_name: str
    total_qty: float
    total_net: float
    total_revenue: float


class ArticlesByStoreResponse(BaseModel):
    """Top articles of all stores, broken down by store."""

    items: list[ArticleStoreItem]
    channel: Channel
    start_date: date
    end_date: date


# =============================================================================
# ABC analysis
# =============================================================================


class AbcRankingItem(BaseModel):
    """Two-dimensional ABC line of one article over the window."""

    ranking: int = Field(..., ge=1, description="Rank by value (1 = highest).")
    article_name: str
    article_codes: list[str]
    total_value: float
    total_qty: float
    value_share: float
    cumulative_value_share: float
    abc_value: str = Field(..., pattern="^[ABC]$")
    qty_ranking: int = Field(..., ge=1)
    qty_share: float
    cumulative_qty_share: float
    abc_qty: str = Field(..., pattern="^[ABC]$")
    abc_class: str = Field(
        ...,
        pattern="^[ABC]{2}$",
        description="Value class followed by quantity class, e.g. 'AB'.",
    )


class AbcRankingResponse(BaseModel):
    """ABC ranking ordered by value."""

    items: list[AbcRankingItem]
    total_articles: int
    total_value: float
    total_qty: float
    start_date: date
    end_date: date
    store_id: str | None = None


class AbcMatrixCell(BaseModel):
    """Articles falling in one value x quantity class."""

    abc_class: str
    count: int
    revenue: float
    qty: float
    revenue_pct: float
    qty_pct: float


class AbcMarginal(BaseModel):
    """Articles in one class of a single dimension."""

    abc_class: str
    count: int
    amount: float = Field(..., description="Revenue (value) or quantity (qty).")
    pct: float


class AbcDistributionResponse(BaseModel):
    """3x3 class matrix plus per-dimension totals. All nine cells are present."""

    matrix: list[AbcMatrixCell]
    by_value: list[AbcMarginal]
    by_qty: list[AbcMarginal]
    start_date: date
    end_date: date
    store_id: str | None = None


class AbcConcentrationResponse(BaseModel):
    """How much of the revenue the top articles carry."""

    total_articles: int
    total_value: float
    top5_value: float
    top10_value: float
    top20_value: float
    top5_pct: float
    top10_pct: float
    top20_pct: float
    start_date: date
    end_date: date
    store_id: str | None = None


class AbcDateRangeResponse(BaseModel):
    """Days covered by ranked ABC lines. Both null when nothing was imported."""

    min_date: date | None
    max_date: date | None


class AbcEvolutionPoint(BaseModel):
    """Weekly position of one of the top articles."""

    week: str
    week_start: date
    article_name: str
    avg_ranking: float = Field(..., description="Mean of the portal's daily ranking.")
    week_value: float


class AbcEvolutionResponse(BaseModel):
    """Weekly ranking of the top articles, ordered by week."""

    points: list[AbcEvolutionPoint]
    start_date: date
    end_date: date
    store_id: str | None = None


class AbcStoreItem(BaseModel):
    """ABC totals of one top article in one store."""

    store_id: str
    article_name: str
    total_qty: float
    total_value: float


class AbcStoreComparisonResponse(BaseModel):
    """Top articles of all stores side by side."""

    items: list[AbcStoreItem]
    start_date: date
    end_date: date


# =============================================================================
# Daily detail
# =============================================================================


class DailySaleItem(BaseModel):
    """One stored store-day of the daily clearance."""

    model_config = ConfigDict(from_attributes=True)

    store_id: str
    date: date
    day_of_week: str | None = None
    total_gross: float
    total_net: float
    total_vat: float
    num_tickets: int
    avg_ticket: float
    num_customers: int
    avg_per_customer: float
    qty_items: float
    target_gross: float
    is_closed: bool


class DailyDetailResponse(BaseModel):
    """Store-days ordered by date then store."""

    items: list[DailySaleItem]
    start_date: date
    end_date: date
    store_id: str | None = None
