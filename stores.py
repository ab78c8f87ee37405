"""Read-side store interfaces consumed by the dashboard engine.

The engine only ever sees the record types defined here. ``Sql*Store``
classes read them from the database through a SQLAlchemy session and turn
driver failures into ``StorageError``; ``InMemory*Store`` classes hold them
in plain lists and are what the engine tests run against.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional, Protocol

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, selectinload

from errors import StorageError
from models import Category, Expense, User


@dataclass(frozen=True)
class CategoryRef:
    name: str
    icon: str
    color: str


@dataclass(frozen=True)
class ExpenseRecord:
    id: int
    owner_id: int
    title: str
    amount_cents: int
    date: datetime
    category: CategoryRef
    payment_method: str = "Cash"
    tags: frozenset[str] = field(default_factory=frozenset)
    is_recurring: bool = False
    recurring_type: str = "Monthly"
    description: Optional[str] = None
    location: Optional[str] = None


@dataclass(frozen=True)
class CategoryRecord:
    id: int
    owner_id: Optional[int]
    name: str
    icon: str
    color: str
    description: Optional[str] = None
    budget_cents: int = 0
    is_active: bool = True


@dataclass(frozen=True)
class UserRecord:
    id: int
    name: str
    email: str
    currency: str = "USD"
    monthly_budget_cents: int = 0


class ExpenseStore(Protocol):
    def find(
        self,
        owner_id: int,
        *,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        newest_first: bool = False,
        limit: Optional[int] = None,
    ) -> list[ExpenseRecord]: ...


class CategoryStore(Protocol):
    def find(self, owner_id: int, *, active: bool = True) -> list[CategoryRecord]: ...


class UserStore(Protocol):
    def find_by_id(self, owner_id: int) -> Optional[UserRecord]: ...


def expense_record(expense: Expense) -> ExpenseRecord:
    category = expense.category
    return ExpenseRecord(
        id=expense.id,
        owner_id=expense.user_id,
        title=expense.title,
        amount_cents=expense.amount_cents,
        date=expense.date,
        category=CategoryRef(category.name, category.icon, category.color),
        payment_method=expense.payment_method.value,
        tags=frozenset(tag.name for tag in expense.tags),
        is_recurring=expense.is_recurring,
        recurring_type=expense.recurring_type.value,
        description=expense.description,
        location=expense.location,
    )


def category_record(category: Category) -> CategoryRecord:
    return CategoryRecord(
        id=category.id,
        owner_id=category.user_id,
        name=category.name,
        icon=category.icon,
        color=category.color,
        description=category.description,
        budget_cents=category.budget_cents,
        is_active=category.is_active,
    )


def user_record(user: User) -> UserRecord:
    return UserRecord(
        id=user.id,
        name=user.name,
        email=user.email,
        currency=user.currency,
        monthly_budget_cents=user.monthly_budget_cents,
    )


class SqlExpenseStore:
    def __init__(self, session: Session) -> None:
        self.session = session

    def find(
        self,
        owner_id: int,
        *,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        newest_first: bool = False,
        limit: Optional[int] = None,
    ) -> list[ExpenseRecord]:
        stmt = (
            select(Expense)
            .options(joinedload(Expense.category), selectinload(Expense.tags))
            .where(Expense.user_id == owner_id)
        )
        if start is not None:
            stmt = stmt.where(Expense.date >= start)
        if end is not None:
            stmt = stmt.where(Expense.date <= end)
        if newest_first:
            stmt = stmt.order_by(Expense.date.desc(), Expense.id.desc())
        else:
            stmt = stmt.order_by(Expense.date, Expense.id)
        if limit is not None:
            stmt = stmt.limit(limit)
        try:
            expenses = self.session.scalars(stmt).all()
            return [expense_record(expense) for expense in expenses]
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to load expenses for owner {owner_id}") from exc


class SqlCategoryStore:
    def __init__(self, session: Session) -> None:
        self.session = session

    def find(self, owner_id: int, *, active: bool = True) -> list[CategoryRecord]:
        stmt = (
            select(Category)
            .where(
                or_(Category.user_id == owner_id, Category.user_id.is_(None)),
                Category.is_active.is_(active),
            )
            .order_by(Category.name)
        )
        try:
            return [category_record(c) for c in self.session.scalars(stmt).all()]
        except SQLAlchemyError as exc:
            raise StorageError(
                f"Failed to load categories for owner {owner_id}"
            ) from exc


class SqlUserStore:
    def __init__(self, session: Session) -> None:
        self.session = session

    def find_by_id(self, owner_id: int) -> Optional[UserRecord]:
        try:
            user = self.session.get(User, owner_id)
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to load user {owner_id}") from exc
        return user_record(user) if user else None


class InMemoryExpenseStore:
    def __init__(self, records: Iterable[ExpenseRecord] = ()) -> None:
        self.records: list[ExpenseRecord] = list(records)

    def add(self, record: ExpenseRecord) -> ExpenseRecord:
        self.records.append(record)
        return record

    def find(
        self,
        owner_id: int,
        *,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        newest_first: bool = False,
        limit: Optional[int] = None,
    ) -> list[ExpenseRecord]:
        matches = [
            r
            for r in self.records
            if r.owner_id == owner_id
            and (start is None or r.date >= start)
            and (end is None or r.date <= end)
        ]
        matches.sort(key=lambda r: (r.date, r.id), reverse=newest_first)
        if limit is not None:
            matches = matches[:limit]
        return matches


class InMemoryCategoryStore:
    def __init__(self, records: Iterable[CategoryRecord] = ()) -> None:
        self.records: list[CategoryRecord] = list(records)

    def find(self, owner_id: int, *, active: bool = True) -> list[CategoryRecord]:
        return sorted(
            (
                r
                for r in self.records
                if r.owner_id in (owner_id, None) and r.is_active == active
            ),
            key=lambda r: r.name,
        )


class InMemoryUserStore:
    def __init__(self, records: Iterable[UserRecord] = ()) -> None:
        self.records = {r.id: r for r in records}

    def find_by_id(self, owner_id: int) -> Optional[UserRecord]:
        return self.records.get(owner_id)
