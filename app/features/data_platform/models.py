"""Sales warehouse ORM models for the ZSBMS report imports.

Fact tables, one per report format, each with a natural-key unique
constraint that doubles as the idempotency contract of re-imports:
- DailySale (store_id, date)
- ZoneSale (store_id, date, zone)
- ArticleSale (store_id, date_from, date_to, article_code)
- AbcDaily (store_id, date, article_code)
- HourlySale (store_id, date, zone, time_slot)

Audit tables (append-only): ImportLog, SyncRun.
"""

from __future__ import annotations

import datetime
from enum import Enum
from typing import Any, ClassVar

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base
from app.shared.models import TimestampMixin


class ImportType(str, Enum):
    """Audit label written to import_log for each report format."""

    FINANCIAL = "financial"
    ZONES = "zones"
    ARTICLES = "articles"
    ABC = "abc"
    HOURLY = "hourly"


class ExclusionReason(str, Enum):
    """Why an ABC line is kept out of the ranking.

    Listed in priority order: the first matching reason wins.
    """

    MODIFIER = "modifier"
    SYSTEM_FEE = "system_fee"
    ZERO_SALES = "zero_sales"
    NO_PRICE = "no_price"


class SyncTrigger(str, Enum):
    """What started a sync run."""

    MANUAL = "manual"
    CRON = "cron"


class SyncStatus(str, Enum):
    """Sync run lifecycle states.

    State transitions:
    - RUNNING -> SUCCESS | PARTIAL | FAILED
    """

    RUNNING = "running"
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


VALID_SYNC_TRANSITIONS: dict[SyncStatus, set[SyncStatus]] = {
    SyncStatus.RUNNING: {SyncStatus.SUCCESS, SyncStatus.PARTIAL, SyncStatus.FAILED},
    SyncStatus.SUCCESS: set(),
    SyncStatus.PARTIAL: set(),
    SyncStatus.FAILED: set(),
}


# ============================================================================
# FACT TABLES
# ============================================================================


class DailySale(TimestampMixin, Base):
    """Daily financial clearance ("apuramento") per store.

    Grain is (store_id, date) - one row per store per calendar day.

    Attributes:
        store_id: Stable store slug (e.g. "alvalade").
        date: Business day.
        day_of_week: Weekday label as printed by the portal.
        num_tickets: Ticket count; zero means the store was closed.
        total_net: Revenue without VAT.
        total_gross: Revenue with VAT.
        target_gross: Revenue target for the day.
        is_closed: True when no ticket was issued.
    """

    __tablename__ = "daily_sales"
    natural_key: ClassVar[tuple[str, ...]] = ("store_id", "date")

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    store_id: Mapped[str] = mapped_column(String(100), index=True)
    date: Mapped[datetime.date] = mapped_column(Date, index=True)
    day_of_week: Mapped[str | None] = mapped_column(String(30), nullable=True)
    num_tickets: Mapped[int] = mapped_column(Integer, default=0)
    avg_ticket: Mapped[float] = mapped_column(Float, default=0.0)
    num_customers: Mapped[int] = mapped_column(Integer, default=0)
    avg_per_customer: Mapped[float] = mapped_column(Float, default=0.0)
    qty_items: Mapped[float] = mapped_column(Float, default=0.0)
    qty_per_ticket: Mapped[float] = mapped_column(Float, default=0.0)
    total_net: Mapped[float] = mapped_column(Float, default=0.0)
    total_vat: Mapped[float] = mapped_column(Float, default=0.0)
    total_gross: Mapped[float] = mapped_column(Float, default=0.0)
    target_gross: Mapped[float] = mapped_column(Float, default=0.0)
    is_closed: Mapped[bool] = mapped_column(Boolean, default=False)

    __table_args__ = (
        UniqueConstraint("store_id", "date", name="uq_daily_sales_grain"),
        CheckConstraint("num_tickets >= 0", name="ck_daily_sales_tickets_positive"),
    )


class ZoneSale(TimestampMixin, Base):
    """Revenue per service zone (Sala, Delivery, Takeaway, ...) per day."""

    __tablename__ = "zone_sales"
    natural_key: ClassVar[tuple[str, ...]] = ("store_id", "date", "zone")

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    store_id: Mapped[str] = mapped_column(String(100), index=True)
    date: Mapped[datetime.date] = mapped_column(Date, index=True)
    zone: Mapped[str] = mapped_column(String(50))
    day_of_week: Mapped[str | None] = mapped_column(String(30), nullable=True)
    total_net: Mapped[float] = mapped_column(Float, default=0.0)
    total_gross: Mapped[float] = mapped_column(Float, default=0.0)

    __table_args__ = (
        UniqueConstraint("store_id", "date", "zone", name="uq_zone_sales_grain"),
        Index("ix_zone_sales_date_store", "date", "store_id"),
    )


class ArticleSale(TimestampMixin, Base):
    """Article sales over a reporting period.

    The period is a single day when the export carries a per-row date,
    otherwise the report's overall range.
    """

    __tablename__ = "article_sales"
    natural_key: ClassVar[tuple[str, ...]] = ("store_id", "date_from", "date_to", "article_code")

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    store_id: Mapped[str] = mapped_column(String(100), index=True)
    date_from: Mapped[datetime.date] = mapped_column(Date)
    date_to: Mapped[datetime.date] = mapped_column(Date)
    article_code: Mapped[str] = mapped_column(String(50))
    article_name: Mapped[str] = mapped_column(String(200), index=True)
    barcode: Mapped[str | None] = mapped_column(String(50), nullable=True)
    family: Mapped[str | None] = mapped_column(String(100), nullable=True)
    subfamily: Mapped[str | None] = mapped_column(String(100), nullable=True)
    qty_sold: Mapped[float] = mapped_column(Float, default=0.0)
    revenue_net: Mapped[float] = mapped_column(Float, default=0.0)
    revenue_gross: Mapped[float] = mapped_column(Float, default=0.0)

    __table_args__ = (
        UniqueConstraint(
            "store_id", "date_from", "date_to", "article_code", name="uq_article_sales_grain"
        ),
        Index("ix_article_sales_period", "date_from", "date_to"),
        CheckConstraint("date_to >= date_from", name="ck_article_sales_valid_period"),
    )


class AbcDaily(TimestampMixin, Base):
    """Daily ABC analysis line per store and article.

    Attributes:
        abc_class: Two letters, value class then quantity class (e.g. "AB").
            NULL for excluded lines.
        is_excluded: Line kept out of rankings (modifiers, fees, zero sales).
        exclude_reason: One of ExclusionReason when excluded.
    """

    __tablename__ = "abc_daily"
    natural_key: ClassVar[tuple[str, ...]] = ("store_id", "date", "article_code")

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    store_id: Mapped[str] = mapped_column(String(100), index=True)
    date: Mapped[datetime.date] = mapped_column(Date, index=True)
    article_code: Mapped[str] = mapped_column(String(50))
    article_name: Mapped[str] = mapped_column(String(200))
    barcode: Mapped[str | None] = mapped_column(String(50), nullable=True)
    qty: Mapped[float] = mapped_column(Float, default=0.0)
    qty_pct: Mapped[float] = mapped_column(Float, default=0.0)
    value_net: Mapped[float] = mapped_column(Float, default=0.0)
    value_gross: Mapped[float] = mapped_column(Float, default=0.0)
    value_pct: Mapped[float] = mapped_column(Float, default=0.0)
    value_cumulative: Mapped[float] = mapped_column(Float, default=0.0)
    cumulative_pct: Mapped[float] = mapped_column(Float, default=0.0)
    ranking: Mapped[int] = mapped_column(Integer, default=0)
    abc_class: Mapped[str | None] = mapped_column(String(2), nullable=True)
    is_excluded: Mapped[bool] = mapped_column(Boolean, default=False)
    exclude_reason: Mapped[str | None] = mapped_column(String(20), nullable=True)

    __table_args__ = (
        UniqueConstraint("store_id", "date", "article_code", name="uq_abc_daily_grain"),
        Index("ix_abc_daily_date_store", "date", "store_id"),
        CheckConstraint(
            "exclude_reason IS NULL OR exclude_reason IN "
            "('modifier', 'system_fee', 'zero_sales', 'no_price')",
            name="ck_abc_daily_valid_reason",
        ),
    )


class HourlySale(TimestampMixin, Base):
    """Totals per 30-minute slot, store and zone."""

    __tablename__ = "hourly_sales"
    natural_key: ClassVar[tuple[str, ...]] = ("store_id", "date", "zone", "time_slot")

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    store_id: Mapped[str] = mapped_column(String(100), index=True)
    date: Mapped[datetime.date] = mapped_column(Date, index=True)
    zone: Mapped[str] = mapped_column(String(50))
    time_slot: Mapped[str] = mapped_column(String(5))  # HH:MM
    num_tickets: Mapped[int] = mapped_column(Integer, default=0)
    num_customers: Mapped[int] = mapped_column(Integer, default=0)
    avg_ticket: Mapped[float] = mapped_column(Float, default=0.0)
    avg_per_customer: Mapped[float] = mapped_column(Float, default=0.0)
    total_net: Mapped[float] = mapped_column(Float, default=0.0)
    total_gross: Mapped[float] = mapped_column(Float, default=0.0)

    __table_args__ = (
        UniqueConstraint("store_id", "date", "zone", "time_slot", name="uq_hourly_sales_grain"),
    )


# ============================================================================
# AUDIT TABLES
# ============================================================================


class ImportLog(TimestampMixin, Base):
    """One row per imported file, written even when rows failed."""

    __tablename__ = "import_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    filename: Mapped[str] = mapped_column(String(255))
    import_type: Mapped[str] = mapped_column(String(20), index=True)
    date_from: Mapped[datetime.date | None] = mapped_column(Date, nullable=True)
    date_to: Mapped[datetime.date | None] = mapped_column(Date, nullable=True)
    records_inserted: Mapped[int] = mapped_column(Integer, default=0)
    records_updated: Mapped[int] = mapped_column(Integer, default=0)
    errors: Mapped[list[str]] = mapped_column(JSON, default=list)

    __table_args__ = (
        CheckConstraint(
            "import_type IN ('financial', 'zones', 'articles', 'abc', 'hourly')",
            name="ck_import_log_valid_type",
        ),
    )


class SyncRun(TimestampMixin, Base):
    """One row per end-to-end sync attempt.

    Attributes:
        details: Per-report outcome list (report key, status, counts, error).
        error_message: Fatal error that aborted the run, if any.
    """

    __tablename__ = "sync_run"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    trigger_type: Mapped[str] = mapped_column(String(10))
    status: Mapped[str] = mapped_column(String(10), default=SyncStatus.RUNNING.value, index=True)
    started_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    reports_succeeded: Mapped[int] = mapped_column(Integer, default=0)
    reports_failed: Mapped[int] = mapped_column(Integer, default=0)
    total_inserted: Mapped[int] = mapped_column(Integer, default=0)
    total_updated: Mapped[int] = mapped_column(Integer, default=0)
    details: Mapped[list[dict[str, Any]] | None] = mapped_column(JSON, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    error_type: Mapped[str | None] = mapped_column(String(100), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('running', 'success', 'partial', 'failed')",
            name="ck_sync_run_valid_status",
        ),
        CheckConstraint("trigger_type IN ('manual', 'cron')", name="ck_sync_run_valid_trigger"),
    )

    def can_transition_to(self, new_status: SyncStatus) -> bool:
        """Check whether the run may move to ``new_status``."""
        current = SyncStatus(self.status)
        return new_status in VALID_SYNC_TRANSITIONS.get(current, set())
