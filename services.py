from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload, selectinload

from aggregation import AggregateResult, ExpenseAggregator
from config import get_settings
from errors import InvalidArgumentError, NotFoundError
from insights import InsightGenerator, percentage_change
from models import Category, Expense, PaymentMethod, Tag, User
from money import cents_to_amount, percent, round_half_up, to_cents
from periods import (
    CURRENT_MONTH,
    LAST_MONTH,
    resolve_chart_period,
    resolve_period,
    to_storage,
)
from schemas import (
    CategoryIn,
    CategoryOut,
    CategoryRefOut,
    CategoryUpdate,
    DailyAmountOut,
    DashboardChartsOut,
    DashboardInsightsOut,
    DashboardSummaryOut,
    DefaultCategoryOut,
    ExpenseIn,
    ExpenseOut,
    ExpenseUpdate,
    InsightOut,
    MethodAmountOut,
    MonthSummaryOut,
    NamedAmountOut,
    PeriodOut,
    SummaryTotalsOut,
    UserIn,
    UserOut,
    UserUpdate,
)
from stores import (
    CategoryRecord,
    ExpenseRecord,
    ExpenseStore,
    SqlExpenseStore,
    SqlUserStore,
    UserRecord,
    UserStore,
    expense_record,
)

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES = [
    ("Food & Dining", "🍽️", "#EF4444", "Restaurants, groceries, and dining out"),
    ("Transportation", "🚗", "#3B82F6", "Gas, public transport, and vehicle expenses"),
    ("Shopping", "🛍️", "#8B5CF6", "Clothing, electronics, and general shopping"),
    ("Entertainment", "🎬", "#EC4899", "Movies, games, and leisure activities"),
    ("Healthcare", "🏥", "#10B981", "Medical expenses and health-related costs"),
    ("Utilities", "⚡", "#F59E0B", "Electricity, water, internet, and phone bills"),
    ("Housing", "🏠", "#6366F1", "Rent, mortgage, and home maintenance"),
    ("Education", "📚", "#06B6D4", "Books, courses, and educational expenses"),
    ("Travel", "✈️", "#84CC16", "Vacations, business trips, and travel expenses"),
    ("Other", "📦", "#6B7280", "Miscellaneous expenses"),
]


def local_now() -> datetime:
    settings = get_settings()
    return datetime.now(ZoneInfo(settings.timezone))


def user_out(user: User | UserRecord) -> UserOut:
    return UserOut(
        id=user.id,
        name=user.name,
        email=user.email,
        currency=user.currency,
        monthly_budget=cents_to_amount(user.monthly_budget_cents),
    )


def category_out(category: Category | CategoryRecord) -> CategoryOut:
    owner_id = (
        category.user_id if isinstance(category, Category) else category.owner_id
    )
    return CategoryOut(
        id=category.id,
        name=category.name,
        icon=category.icon,
        color=category.color,
        description=category.description,
        budget=cents_to_amount(category.budget_cents),
        is_active=category.is_active,
        is_default=owner_id is None,
    )


def expense_out(record: ExpenseRecord) -> ExpenseOut:
    return ExpenseOut(
        id=record.id,
        title=record.title,
        amount=cents_to_amount(record.amount_cents),
        date=record.date,
        category=CategoryRefOut(
            name=record.category.name,
            icon=record.category.icon,
            color=record.category.color,
        ),
        payment_method=record.payment_method,
        tags=sorted(record.tags),
        is_recurring=record.is_recurring,
        recurring_type=record.recurring_type,
        description=record.description,
        location=record.location,
    )


def _named_amounts(totals: dict[str, int]) -> list[NamedAmountOut]:
    return [
        NamedAmountOut(name=name, amount=cents_to_amount(cents))
        for name, cents in totals.items()
    ]


def default_categories() -> list[DefaultCategoryOut]:
    return [
        DefaultCategoryOut(name=name, icon=icon, color=color, description=description)
        for name, icon, color, description in DEFAULT_CATEGORIES
    ]


class UserService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def _email_taken(self, email: str, exclude_id: Optional[int] = None) -> bool:
        stmt = select(User.id).where(func.lower(User.email) == email.lower())
        if exclude_id is not None:
            stmt = stmt.where(User.id != exclude_id)
        return self.session.scalar(stmt) is not None

    def create(self, data: UserIn) -> User:
        if self._email_taken(data.email):
            raise ValueError("User already exists")
        user = User(
            name=data.name.strip(),
            email=data.email,
            currency=data.currency or get_settings().default_currency,
            monthly_budget_cents=to_cents(data.monthly_budget),
        )
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        logger.info(f"user_created: user_id={user.id}")
        return user

    def get(self, user_id: int) -> User:
        user = self.session.get(User, user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    def update(self, user_id: int, data: UserUpdate) -> User:
        user = self.get(user_id)
        if data.email and data.email != user.email:
            if self._email_taken(data.email, exclude_id=user.id):
                raise ValueError("Email already in use")
            user.email = data.email
        if data.name:
            user.name = data.name.strip()
        if data.currency:
            user.currency = data.currency
        if data.monthly_budget is not None:
            user.monthly_budget_cents = to_cents(data.monthly_budget)
        self.session.commit()
        self.session.refresh(user)
        logger.info(
            f"user_updated: user_id={user.id} budget_cents={user.monthly_budget_cents}"
        )
        return user


class TagService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def get_or_create(self, name: str) -> Tag:
        clean_name = name.strip()
        if not clean_name:
            raise ValueError("Tag name cannot be empty")

        stmt = select(Tag).where(
            Tag.user_id == self.user_id, func.lower(Tag.name) == clean_name.lower()
        )
        existing = self.session.scalar(stmt)
        if existing:
            return existing

        tag = Tag(user_id=self.user_id, name=clean_name)
        self.session.add(tag)
        self.session.flush()
        return tag

    def resolve(self, names: list[str]) -> list[Tag]:
        """Tags for ``names`` in first-seen order, blanks skipped, duplicates folded."""
        tags: list[Tag] = []
        tag_ids: set[int] = set()
        for name in names:
            if not name.strip():
                continue
            tag = self.get_or_create(name)
            if tag.id not in tag_ids:
                tags.append(tag)
                tag_ids.add(tag.id)
        return tags


class CategoryService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def get(self, category_id: int) -> Category:
        """An owned or shared category; anything else reads as missing."""
        category = self.session.scalar(
            select(Category).where(
                Category.id == category_id,
                or_(Category.user_id == self.user_id, Category.user_id.is_(None)),
            )
        )
        if not category:
            raise NotFoundError("Category not found")
        return category

    def _owned(self, category_id: int) -> Category:
        category = self.session.get(Category, category_id)
        if not category or category.user_id != self.user_id:
            raise NotFoundError("Category not found")
        return category

    def _name_taken(self, name: str, exclude_id: Optional[int] = None) -> bool:
        stmt = select(Category.id).where(
            Category.user_id == self.user_id,
            func.lower(Category.name) == name.strip().lower(),
        )
        if exclude_id is not None:
            stmt = stmt.where(Category.id != exclude_id)
        return self.session.scalar(stmt) is not None

    def create(self, data: CategoryIn) -> Category:
        if self._name_taken(data.name):
            raise ValueError("Category with this name already exists")
        category = Category(
            user_id=self.user_id,
            name=data.name.strip(),
            icon=data.icon,
            color=data.color,
            description=data.description.strip() if data.description else None,
            budget_cents=to_cents(data.budget),
        )
        self.session.add(category)
        self.session.commit()
        self.session.refresh(category)
        return category

    def update(self, category_id: int, data: CategoryUpdate) -> Category:
        # Shared defaults belong to nobody and stay read-only.
        category = self._owned(category_id)
        changes = data.model_dump(exclude_unset=True)
        name = (changes.get("name") or "").strip()
        if name and name != category.name:
            if self._name_taken(name, exclude_id=category.id):
                raise ValueError("Category with this name already exists")
            category.name = name
        if changes.get("icon"):
            category.icon = changes["icon"]
        if changes.get("color"):
            category.color = changes["color"]
        if "description" in changes:
            category.description = (changes["description"] or "").strip() or None
        if changes.get("budget") is not None:
            category.budget_cents = to_cents(changes["budget"])
        if changes.get("is_active") is not None:
            category.is_active = changes["is_active"]
        self.session.commit()
        self.session.refresh(category)
        return category

    def deactivate(self, category_id: int) -> None:
        category = self._owned(category_id)
        category.is_active = False
        self.session.commit()

    def import_defaults(self) -> list[Category]:
        has_any = self.session.scalar(
            select(func.count(Category.id)).where(Category.user_id == self.user_id)
        )
        if has_any:
            raise ValueError("User already has categories")
        categories = [
            Category(
                user_id=self.user_id,
                name=name,
                icon=icon,
                color=color,
                description=description,
            )
            for name, icon, color, description in DEFAULT_CATEGORIES
        ]
        self.session.add_all(categories)
        self.session.commit()
        logger.info(
            f"default_categories_imported: user_id={self.user_id} count={len(categories)}"
        )
        return categories


@dataclass
class ExpenseFilters:
    category_id: Optional[int] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    min_amount_cents: Optional[int] = None
    max_amount_cents: Optional[int] = None
    payment_method: Optional[PaymentMethod] = None


SORT_COLUMNS = {
    "date": Expense.date,
    "amount": Expense.amount_cents,
    "title": Expense.title,
}


class ExpenseService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def _usable_category(self, category_id: int) -> Category:
        category = self.session.get(Category, category_id)
        if (
            not category
            or category.user_id not in (self.user_id, None)
            or not category.is_active
        ):
            raise ValueError("Category not found")
        return category

    def _owned(self, expense_id: int) -> Expense:
        expense = self.session.get(Expense, expense_id)
        if not expense or expense.user_id != self.user_id:
            raise NotFoundError("Expense not found")
        return expense

    def _commit(self, expense: Expense) -> ExpenseRecord:
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise ValueError("Invalid expense") from exc
        self.session.refresh(expense)
        return expense_record(expense)

    def create(self, data: ExpenseIn) -> ExpenseRecord:
        category = self._usable_category(data.category_id)
        occurred = data.date or datetime.now(timezone.utc)
        expense = Expense(
            user_id=self.user_id,
            title=data.title.strip(),
            amount_cents=to_cents(data.amount),
            category_id=category.id,
            date=to_storage(occurred),
            payment_method=data.payment_method,
            description=(data.description or "").strip() or None,
            location=(data.location or "").strip() or None,
            is_recurring=data.is_recurring,
            recurring_type=data.recurring_type,
        )
        if data.tags:
            expense.tags = TagService(self.session, self.user_id).resolve(data.tags)

        self.session.add(expense)
        return self._commit(expense)

    def get(self, expense_id: int) -> ExpenseRecord:
        return expense_record(self._owned(expense_id))

    def update(self, expense_id: int, data: ExpenseUpdate) -> ExpenseRecord:
        expense = self._owned(expense_id)
        changes = data.model_dump(exclude_unset=True)
        if changes.get("category_id") is not None:
            expense.category_id = self._usable_category(changes["category_id"]).id
        if changes.get("title"):
            expense.title = changes["title"].strip()
        if changes.get("amount") is not None:
            expense.amount_cents = to_cents(changes["amount"])
        if changes.get("date") is not None:
            expense.date = to_storage(changes["date"])
        if changes.get("payment_method") is not None:
            expense.payment_method = changes["payment_method"]
        for field in ("description", "location"):
            if field in changes:
                setattr(expense, field, (changes[field] or "").strip() or None)
        if "tags" in changes:
            expense.tags = TagService(self.session, self.user_id).resolve(
                changes["tags"] or []
            )
        if changes.get("is_recurring") is not None:
            expense.is_recurring = changes["is_recurring"]
        if changes.get("recurring_type") is not None:
            expense.recurring_type = changes["recurring_type"]
        record = self._commit(expense)
        logger.info(f"expense_updated: user_id={self.user_id} expense_id={expense_id}")
        return record

    def list(
        self,
        filters: Optional[ExpenseFilters] = None,
        *,
        page: int = 1,
        limit: int = 10,
        sort_by: str = "date",
        sort_order: str = "desc",
    ) -> tuple[list[ExpenseRecord], int]:
        """One page of the owner's expenses plus the total number of matches."""
        filters = filters or ExpenseFilters()
        if sort_by not in SORT_COLUMNS:
            raise ValueError(f"Invalid sort field: {sort_by}")
        conditions = [Expense.user_id == self.user_id]
        if filters.category_id:
            conditions.append(Expense.category_id == filters.category_id)
        if filters.payment_method:
            conditions.append(Expense.payment_method == filters.payment_method)
        if filters.min_amount_cents is not None:
            conditions.append(Expense.amount_cents >= filters.min_amount_cents)
        if filters.max_amount_cents is not None:
            conditions.append(Expense.amount_cents <= filters.max_amount_cents)
        if filters.start is not None:
            conditions.append(Expense.date >= to_storage(filters.start))
        if filters.end is not None:
            conditions.append(Expense.date <= to_storage(filters.end))

        column = SORT_COLUMNS[sort_by]
        if sort_order == "asc":
            ordering = (column.asc(), Expense.id.asc())
        else:
            ordering = (column.desc(), Expense.id.desc())
        stmt = (
            select(Expense)
            .options(joinedload(Expense.category), selectinload(Expense.tags))
            .where(*conditions)
            .order_by(*ordering)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        total = self.session.scalar(select(func.count(Expense.id)).where(*conditions))
        expenses = self.session.scalars(stmt).all()
        return [expense_record(e) for e in expenses], int(total or 0)

    def delete(self, expense_id: int) -> None:
        expense = self._owned(expense_id)
        self.session.delete(expense)
        self.session.commit()


class DashboardService:
    """Summary, charts and insights over one owner's expenses.

    Reads go through the injected stores only, so the same service runs
    against the database (``for_session``) or in-memory stores in tests.
    ``clock`` returns the reference instant every period is resolved
    against; it defaults to "now" in the configured time zone.
    """

    def __init__(
        self,
        expenses: ExpenseStore,
        users: UserStore,
        *,
        clock: Optional[Callable[[], datetime]] = None,
        insight_generator: Optional[InsightGenerator] = None,
    ) -> None:
        self.users = users
        self.aggregator = ExpenseAggregator(expenses)
        self.clock = clock or local_now
        self.insight_generator = insight_generator or InsightGenerator()

    @classmethod
    def for_session(cls, session: Session, **kwargs) -> "DashboardService":
        return cls(SqlExpenseStore(session), SqlUserStore(session), **kwargs)

    def _owner(self, owner_id: int) -> UserRecord:
        if isinstance(owner_id, bool) or not isinstance(owner_id, int) or owner_id <= 0:
            raise InvalidArgumentError(f"Invalid owner id: {owner_id!r}")
        user = self.users.find_by_id(owner_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    def summary(
        self, owner_id: int, period: Optional[str] = None
    ) -> DashboardSummaryOut:
        user = self._owner(owner_id)
        window = resolve_period(period, self.clock())
        result = self.aggregator.aggregate(owner_id, window)

        budget = user.monthly_budget_cents
        utilization = (
            round_half_up(percent(result.total_cents, budget), 2) if budget > 0 else 0.0
        )
        logger.info(
            f"dashboard_summary: owner={owner_id} period={window.label} "
            f"count={result.expense_count}"
        )
        return DashboardSummaryOut(
            period=PeriodOut(start=window.start, end=window.end, type=window.label),
            summary=SummaryTotalsOut(
                total_amount=cents_to_amount(result.total_cents),
                expense_count=result.expense_count,
                monthly_budget=cents_to_amount(budget),
                budget_utilization=utilization,
            ),
            category_breakdown={
                name: cents_to_amount(cents)
                for name, cents in result.per_category_totals.items()
            },
            category_counts=dict(result.per_category_counts),
            top_categories=[
                NamedAmountOut(name=top.name, amount=cents_to_amount(top.amount_cents))
                for top in result.top_categories
            ],
            recent_expenses=[expense_out(r) for r in result.recent_expenses],
        )

    def charts(self, owner_id: int, period: Optional[str] = None) -> DashboardChartsOut:
        self._owner(owner_id)
        window = resolve_chart_period(period, self.clock())
        result = self.aggregator.aggregate(owner_id, window, include_recent=False)
        logger.info(
            f"dashboard_charts: owner={owner_id} period={window.label} "
            f"days={len(result.per_day_totals)}"
        )
        return DashboardChartsOut(
            daily_trend=[
                DailyAmountOut(date=day, amount=cents_to_amount(cents))
                for day, cents in sorted(result.per_day_totals.items())
            ],
            category_breakdown=_named_amounts(result.per_category_totals),
            payment_method_breakdown=[
                MethodAmountOut(method=method, amount=cents_to_amount(cents))
                for method, cents in result.per_payment_method_totals.items()
            ],
        )

    def month_summary(self, owner_id: int) -> MonthSummaryOut:
        """Total, per-category totals and count for the current calendar month."""
        self._owner(owner_id)
        window = resolve_period(CURRENT_MONTH, self.clock())
        result = self.aggregator.aggregate(owner_id, window, include_recent=False)
        return MonthSummaryOut(
            total_amount=cents_to_amount(result.total_cents),
            category_totals={
                name: cents_to_amount(cents)
                for name, cents in result.per_category_totals.items()
            },
            expense_count=result.expense_count,
            period=PeriodOut(start=window.start, end=window.end, type=window.label),
        )

    def month_over_month(self, owner_id: int) -> tuple[AggregateResult, AggregateResult]:
        now = self.clock()
        current = self.aggregator.aggregate(
            owner_id, resolve_period(CURRENT_MONTH, now), include_recent=False
        )
        previous = self.aggregator.aggregate(
            owner_id, resolve_period(LAST_MONTH, now), include_recent=False
        )
        return current, previous

    def insights(self, owner_id: int) -> DashboardInsightsOut:
        user = self._owner(owner_id)
        current, previous = self.month_over_month(owner_id)
        events = self.insight_generator.generate(
            owner_id,
            user.monthly_budget_cents,
            current,
            previous,
        )
        change = percentage_change(current.total_cents, previous.total_cents)
        logger.info(f"dashboard_insights: owner={owner_id} insights={len(events)}")
        return DashboardInsightsOut(
            current_month_total=cents_to_amount(current.total_cents),
            last_month_total=cents_to_amount(previous.total_cents),
            percentage_change=round_half_up(change, 2),
            insights=[
                InsightOut(
                    severity=event.severity.value,
                    title=event.title,
                    message=event.message,
                )
                for event in events
            ],
        )
