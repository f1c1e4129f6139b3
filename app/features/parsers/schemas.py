"""Typed records produced by the report parsers.

One pydantic model per report format; required fields make a malformed
row fail at parse time instead of reaching the database half-filled.
"""

import datetime
from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from app.features.data_platform.models import ExclusionReason


class FileFormat(str, Enum):
    """Report layouts exported by the ZSBMS portal."""

    DAILY = "daily"
    ZONE = "zone"
    ARTICLE = "article"
    ABC = "abc"
    HOURLY = "hourly"
    UNKNOWN = "unknown"


class SaleRow(BaseModel):
    """Base for parsed rows."""

    model_config = ConfigDict(frozen=True, use_enum_values=True)

    store_id: str = Field(..., min_length=1)


class DailySaleRow(SaleRow):
    """One store-day of the financial clearance report."""

    date: datetime.date
    day_of_week: str | None = None
    num_tickets: int = Field(..., ge=0)
    avg_ticket: float = 0.0
    num_customers: int = Field(0, ge=0)
    avg_per_customer: float = 0.0
    qty_items: float = 0.0
    qty_per_ticket: float = 0.0
    total_net: float = 0.0
    total_vat: float = 0.0
    total_gross: float = 0.0
    target_gross: float = 0.0
    is_closed: bool = False


class ZoneSaleRow(SaleRow):
    """Revenue of one zone on one store-day."""

    date: datetime.date
    zone: str = Field(..., min_length=1)
    day_of_week: str | None = None
    total_net: float = 0.0
    total_gross: float = 0.0


class ArticleSaleRow(SaleRow):
    """Article totals over a period."""

    date_from: datetime.date
    date_to: datetime.date
    article_code: str = Field(..., min_length=1)
    article_name: str = Field(..., min_length=1)
    barcode: str | None = None
    family: str | None = None
    subfamily: str | None = None
    qty_sold: float = 0.0
    revenue_net: float = 0.0
    revenue_gross: float = 0.0


class AbcDailyRow(SaleRow):
    """One line of the daily ABC analysis."""

    date: datetime.date
    article_code: str = Field(..., min_length=1)
    article_name: str = Field(..., min_length=1)
    barcode: str | None = None
    qty: float = 0.0
    qty_pct: float = 0.0
    value_net: float = 0.0
    value_gross: float = 0.0
    value_pct: float = 0.0
    value_cumulative: float = 0.0
    cumulative_pct: float = 0.0
    ranking: int = 0
    abc_class: str | None = Field(None, max_length=2)
    is_excluded: bool = False
    exclude_reason: ExclusionReason | None = None


class HourlySaleRow(SaleRow):
    """Totals of one 30-minute slot in one zone."""

    date: datetime.date
    zone: str = Field(..., min_length=1)
    time_slot: str = Field(..., pattern=r"^\d{2}:\d{2}$")
    num_tickets: int = Field(0, ge=0)
    num_customers: int = Field(0, ge=0)
    avg_ticket: float = 0.0
    avg_per_customer: float = 0.0
    total_net: float = 0.0
    total_gross: float = 0.0


RowT = TypeVar("RowT", bound=SaleRow)


@dataclass
class ParseResult(Generic[RowT]):
    """Outcome of parsing one workbook.

    Attributes:
        rows: Valid records in file order.
        errors: Row-level and structural problems, human readable.
        period_from: First day covered (ISO), if known.
        period_to: Last day covered (ISO), if known.
        stores: Store ids seen, in first-seen order.
    """

    rows: list[RowT] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    period_from: str | None = None
    period_to: str | None = None
    stores: list[str] = field(default_factory=list)

    def add(self, row: RowT) -> None:
        self.rows.append(row)
        if row.store_id not in self.stores:
            self.stores.append(row.store_id)

    def widen_period(self, iso_date: str) -> None:
        """Extend the covered period to include ``iso_date``."""
        if self.period_from is None or iso_date < self.period_from:
            self.period_from = iso_date
        if self.period_to is None or iso_date > self.period_to:
            self.period_to = iso_date
