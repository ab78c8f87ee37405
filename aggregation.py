from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from periods import PeriodWindow
from stores import ExpenseRecord, ExpenseStore

logger = logging.getLogger(__name__)

TOP_CATEGORY_LIMIT = 5
RECENT_EXPENSE_LIMIT = 5


@dataclass(frozen=True)
class CategoryTotal:
    name: str
    amount_cents: int


@dataclass(frozen=True)
class AggregateResult:
    """Totals for one owner over one window.

    All mappings keep first-seen order and only hold keys that occurred at
    least once; a category with no expenses in the window is absent, not 0.
    Amounts are integer cents.
    """

    total_cents: int = 0
    expense_count: int = 0
    per_category_totals: dict[str, int] = field(default_factory=dict)
    per_category_counts: dict[str, int] = field(default_factory=dict)
    per_day_totals: dict[str, int] = field(default_factory=dict)
    per_payment_method_totals: dict[str, int] = field(default_factory=dict)
    top_categories: list[CategoryTotal] = field(default_factory=list)
    recent_expenses: list[ExpenseRecord] = field(default_factory=list)


def _accumulate(totals: dict[str, int], key: str, amount: int) -> None:
    totals[key] = totals.get(key, 0) + amount


def rank_categories(
    totals: dict[str, int], limit: int = TOP_CATEGORY_LIMIT
) -> list[CategoryTotal]:
    # sorted() is stable, so equal totals keep their first-seen order.
    ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    return [CategoryTotal(name, amount) for name, amount in ranked[:limit]]


def reduce_expenses(
    expenses: Iterable[ExpenseRecord],
    recent: Iterable[ExpenseRecord] = (),
) -> AggregateResult:
    total = 0
    count = 0
    by_category: dict[str, int] = {}
    counts: dict[str, int] = {}
    by_day: dict[str, int] = {}
    by_method: dict[str, int] = {}

    for expense in expenses:
        amount = expense.amount_cents
        total += amount
        count += 1
        _accumulate(by_category, expense.category.name, amount)
        _accumulate(counts, expense.category.name, 1)
        _accumulate(by_day, expense.date.date().isoformat(), amount)
        _accumulate(by_method, expense.payment_method, amount)

    return AggregateResult(
        total_cents=total,
        expense_count=count,
        per_category_totals=by_category,
        per_category_counts=counts,
        per_day_totals=by_day,
        per_payment_method_totals=by_method,
        top_categories=rank_categories(by_category),
        recent_expenses=list(recent),
    )


class ExpenseAggregator:
    def __init__(self, expenses: ExpenseStore) -> None:
        self.expenses = expenses

    def recent(
        self, owner_id: int, limit: int = RECENT_EXPENSE_LIMIT
    ) -> list[ExpenseRecord]:
        return self.expenses.find(owner_id, newest_first=True, limit=limit)

    def aggregate(
        self,
        owner_id: int,
        window: PeriodWindow,
        *,
        include_recent: bool = True,
    ) -> AggregateResult:
        start, end = window.storage_bounds()
        expenses = self.expenses.find(owner_id, start=start, end=end)
        recent = self.recent(owner_id) if include_recent else []
        result = reduce_expenses(expenses, recent)
        logger.debug(
            f"aggregate: owner={owner_id} period={window.label} "
            f"count={result.expense_count} total_cents={result.total_cents}"
        )
        return result
