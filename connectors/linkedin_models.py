"""
Typed records for LinkedIn ad analytics responses.

Field names follow the adAnalytics payload (camelCase on the wire,
snake_case in Python).
"""

from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# Counters summed when records are merged
COUNTER_FIELDS = (
    "impressions",
    "clicks",
    "likes",
    "comments",
    "shares",
    "follows",
    "company_page_clicks",
    "action_clicks",
    "viral_impressions",
    "one_click_leads",
    "landing_page_clicks",
    "ad_unit_clicks",
    "one_click_lead_form_opens",
    "viral_follows",
    "sends",
    "viral_clicks",
)


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class DateParts(ApiModel):
    year: int
    month: int
    day: int

    @classmethod
    def from_date(cls, value: date) -> "DateParts":
        return cls(year=value.year, month=value.month, day=value.day)

    def to_date(self) -> date:
        return date(self.year, self.month, self.day)


class DateRange(ApiModel):
    start: DateParts
    end: DateParts


class AnalyticsRecord(ApiModel):
    """One adAnalytics row. Immutable; merging builds new records."""
    date_range: Optional[DateRange] = None
    pivot_values: list[str] = []
    cost_in_local_currency: str = "0"
    approximate_member_reach: Optional[int] = Field(default=None, ge=0)

    impressions: int = Field(default=0, ge=0)
    clicks: int = Field(default=0, ge=0)
    likes: int = Field(default=0, ge=0)
    comments: int = Field(default=0, ge=0)
    shares: int = Field(default=0, ge=0)
    follows: int = Field(default=0, ge=0)
    company_page_clicks: int = Field(default=0, ge=0)
    action_clicks: int = Field(default=0, ge=0)
    viral_impressions: int = Field(default=0, ge=0)
    one_click_leads: int = Field(default=0, ge=0)
    landing_page_clicks: int = Field(default=0, ge=0)
    ad_unit_clicks: int = Field(default=0, ge=0)
    one_click_lead_form_opens: int = Field(default=0, ge=0)
    viral_follows: int = Field(default=0, ge=0)
    sends: int = Field(default=0, ge=0)
    viral_clicks: int = Field(default=0, ge=0)

    @field_validator("cost_in_local_currency", mode="before")
    @classmethod
    def _check_cost(cls, value):
        if value is None:
            return "0"
        try:
            amount = Decimal(str(value))
        except InvalidOperation:
            raise ValueError(f"costInLocalCurrency is not a decimal: {value!r}")
        if not amount.is_finite() or amount < 0:
            raise ValueError(f"costInLocalCurrency must be a non-negative decimal: {value!r}")
        return str(value)

    @property
    def cost(self) -> Decimal:
        return Decimal(self.cost_in_local_currency)


class FetchStatus(str, Enum):
    SUCCESS = "success"
    NO_DATA = "no-data"
    ERROR = "error"


class WindowResult(ApiModel):
    """Tagged outcome of one reporting call."""
    records: list[AnalyticsRecord] = []
    status: FetchStatus
    error_message: Optional[str] = None
