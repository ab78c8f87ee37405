from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from models import PaymentMethod, RecurringType
from money import MAX_AMOUNT

Currency = Literal["USD", "EUR", "GBP", "JPY", "CAD", "AUD"]

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
HEX_COLOR_PATTERN = r"^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$"


def _normalize_email(value: Optional[str]) -> Optional[str]:
    return value.strip().lower() if value is not None else None


def _upper_currency(value):
    return value.strip().upper() if isinstance(value, str) else value


class UserIn(BaseModel):
    name: str = Field(..., min_length=2, max_length=50)
    email: str = Field(..., max_length=254, pattern=EMAIL_PATTERN)
    # Left empty, registration falls back to the configured default currency.
    currency: Optional[Currency] = None
    monthly_budget: Decimal = Field(default=Decimal("0"), ge=0, le=MAX_AMOUNT)

    @field_validator("email")
    @classmethod
    def _clean_email(cls, value: Optional[str]) -> Optional[str]:
        return _normalize_email(value)

    @field_validator("currency", mode="before")
    @classmethod
    def _clean_currency(cls, value):
        return _upper_currency(value)


class UserUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=50)
    email: Optional[str] = Field(default=None, max_length=254, pattern=EMAIL_PATTERN)
    currency: Optional[Currency] = None
    monthly_budget: Optional[Decimal] = Field(default=None, ge=0, le=MAX_AMOUNT)

    @field_validator("email")
    @classmethod
    def _clean_email(cls, value: Optional[str]) -> Optional[str]:
        return _normalize_email(value)

    @field_validator("currency", mode="before")
    @classmethod
    def _clean_currency(cls, value):
        return _upper_currency(value)


class CategoryIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    icon: str = Field(default="💰", max_length=10)
    color: str = Field(default="#3B82F6", pattern=HEX_COLOR_PATTERN)
    description: Optional[str] = Field(default=None, max_length=200)
    budget: Decimal = Field(default=Decimal("0"), ge=0, le=MAX_AMOUNT)


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    icon: Optional[str] = Field(default=None, max_length=10)
    color: Optional[str] = Field(default=None, pattern=HEX_COLOR_PATTERN)
    description: Optional[str] = Field(default=None, max_length=200)
    budget: Optional[Decimal] = Field(default=None, ge=0, le=MAX_AMOUNT)
    is_active: Optional[bool] = None


class ExpenseIn(BaseModel):
    title: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., ge=0, le=MAX_AMOUNT)
    category_id: int
    date: Optional[datetime] = None
    payment_method: PaymentMethod = PaymentMethod.cash
    description: Optional[str] = Field(default=None, max_length=500)
    location: Optional[str] = Field(default=None, max_length=100)
    tags: list[str] = Field(default_factory=list)
    is_recurring: bool = False
    recurring_type: RecurringType = RecurringType.monthly


class ExpenseUpdate(BaseModel):
    """Partial update; only fields present in the request body are applied."""

    title: Optional[str] = Field(default=None, min_length=1, max_length=100)
    amount: Optional[Decimal] = Field(default=None, ge=0, le=MAX_AMOUNT)
    category_id: Optional[int] = None
    date: Optional[datetime] = None
    payment_method: Optional[PaymentMethod] = None
    description: Optional[str] = Field(default=None, max_length=500)
    location: Optional[str] = Field(default=None, max_length=100)
    tags: Optional[list[str]] = None
    is_recurring: Optional[bool] = None
    recurring_type: Optional[RecurringType] = None


class WireModel(BaseModel):
    """Response payloads use camelCase keys on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UserOut(WireModel):
    id: int
    name: str
    email: str
    currency: str
    monthly_budget: float


class RegisteredUserOut(UserOut):
    token: str


class CategoryOut(WireModel):
    id: int
    name: str
    icon: str
    color: str
    description: Optional[str] = None
    budget: float
    is_active: bool
    is_default: bool


class CategoryRefOut(WireModel):
    name: str
    icon: str
    color: str


class ExpenseOut(WireModel):
    id: int
    title: str
    amount: float
    date: datetime
    category: CategoryRefOut
    payment_method: str
    tags: list[str]
    is_recurring: bool
    recurring_type: str
    description: Optional[str] = None
    location: Optional[str] = None


class PeriodOut(WireModel):
    start: datetime
    end: datetime
    type: str


class SummaryTotalsOut(WireModel):
    total_amount: float
    expense_count: int
    monthly_budget: float
    budget_utilization: float


class NamedAmountOut(WireModel):
    name: str
    amount: float


class DailyAmountOut(WireModel):
    date: str
    amount: float


class MethodAmountOut(WireModel):
    method: str
    amount: float


class DashboardSummaryOut(WireModel):
    period: PeriodOut
    summary: SummaryTotalsOut
    category_breakdown: dict[str, float]
    category_counts: dict[str, int]
    top_categories: list[NamedAmountOut]
    recent_expenses: list[ExpenseOut]


class DashboardChartsOut(WireModel):
    daily_trend: list[DailyAmountOut]
    category_breakdown: list[NamedAmountOut]
    payment_method_breakdown: list[MethodAmountOut]


class InsightOut(WireModel):
    severity: str
    title: str
    message: str


class DashboardInsightsOut(WireModel):
    current_month_total: float
    last_month_total: float
    percentage_change: float
    insights: list[InsightOut]


class DefaultCategoryOut(WireModel):
    name: str
    icon: str
    color: str
    description: str


class PaginationOut(WireModel):
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int


class ExpensePageOut(WireModel):
    expenses: list[ExpenseOut]
    pagination: PaginationOut


class MonthSummaryOut(WireModel):
    total_amount: float
    category_totals: dict[str, float]
    expense_count: int
    period: PeriodOut
