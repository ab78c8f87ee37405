"""Rule-based spending insights.

Each rule looks at an :class:`InsightContext` and returns at most one
:class:`InsightEvent`. Rules run in the order of ``DEFAULT_RULES`` and the
events keep that order, so new rules are appended without reshuffling
what callers already display.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from numbers import Real
from typing import Callable, Optional, Sequence

from aggregation import AggregateResult
from errors import InvalidArgumentError
from money import format_money, percent, round_half_up

BUDGET_ALERT_THRESHOLD = 90
BUDGET_NOTICE_THRESHOLD = 75
SPENDING_CHANGE_THRESHOLD = 20


class Severity(str, Enum):
    info = "info"
    warning = "warning"
    success = "success"


@dataclass(frozen=True)
class InsightEvent:
    severity: Severity
    title: str
    message: str


@dataclass(frozen=True)
class InsightContext:
    owner_id: int
    monthly_budget_cents: Real
    current: AggregateResult
    previous: AggregateResult

    @property
    def percentage_change(self) -> float:
        return percentage_change(self.current.total_cents, self.previous.total_cents)


Rule = Callable[[InsightContext], Optional[InsightEvent]]


def percentage_change(current_cents: int, previous_cents: int) -> float:
    if previous_cents <= 0:
        return 0.0
    return (current_cents - previous_cents) / previous_cents * 100


def budget_rule(ctx: InsightContext) -> Optional[InsightEvent]:
    if ctx.monthly_budget_cents <= 0:
        return None
    utilization = percent(ctx.current.total_cents, ctx.monthly_budget_cents)
    shown = int(round_half_up(utilization))
    if utilization > BUDGET_ALERT_THRESHOLD:
        return InsightEvent(
            Severity.warning,
            "Budget Alert",
            f"You've used {shown}% of your monthly budget. "
            "Consider reducing expenses.",
        )
    if utilization > BUDGET_NOTICE_THRESHOLD:
        return InsightEvent(
            Severity.info,
            "Budget Notice",
            f"You've used {shown}% of your monthly budget.",
        )
    return None


def spending_change_rule(ctx: InsightContext) -> Optional[InsightEvent]:
    change = ctx.percentage_change
    if change > SPENDING_CHANGE_THRESHOLD:
        return InsightEvent(
            Severity.warning,
            "Spending Increase",
            f"Your spending is {int(round_half_up(change))}% higher than last month.",
        )
    if change < -SPENDING_CHANGE_THRESHOLD:
        return InsightEvent(
            Severity.success,
            "Great Job!",
            f"Your spending is {int(round_half_up(abs(change)))}% lower "
            "than last month.",
        )
    return None


def highest_spending_day_rule(ctx: InsightContext) -> Optional[InsightEvent]:
    days = ctx.current.per_day_totals
    if not days:
        return None
    # Highest total wins; ISO keys sort chronologically, so ties go to the earliest day.
    day, cents = min(days.items(), key=lambda item: (-item[1], item[0]))
    return InsightEvent(
        Severity.info,
        "Highest Spending Day",
        f"Your highest spending day this month was {day} "
        f"with {format_money(cents)}.",
    )


DEFAULT_RULES: tuple[Rule, ...] = (
    budget_rule,
    spending_change_rule,
    highest_spending_day_rule,
)


def _check_inputs(owner_id, monthly_budget, current, previous) -> None:
    if isinstance(owner_id, bool) or not isinstance(owner_id, int) or owner_id <= 0:
        raise InvalidArgumentError(f"Invalid owner id: {owner_id!r}")
    if isinstance(monthly_budget, bool) or not isinstance(
        monthly_budget, (Real, Decimal)
    ):
        raise InvalidArgumentError(f"Budget must be a number: {monthly_budget!r}")
    if monthly_budget != monthly_budget or monthly_budget < 0:
        raise InvalidArgumentError(f"Budget must be non-negative: {monthly_budget!r}")
    for name, value in (("current", current), ("previous", previous)):
        if not isinstance(value, AggregateResult):
            raise InvalidArgumentError(f"{name} must be an AggregateResult")


class InsightGenerator:
    def __init__(self, rules: Sequence[Rule] = DEFAULT_RULES) -> None:
        self.rules = tuple(rules)

    def generate(
        self,
        owner_id: int,
        monthly_budget_cents,
        current: AggregateResult,
        previous: AggregateResult,
    ) -> list[InsightEvent]:
        _check_inputs(owner_id, monthly_budget_cents, current, previous)
        ctx = InsightContext(
            owner_id=owner_id,
            monthly_budget_cents=monthly_budget_cents,
            current=current,
            previous=previous,
        )
        events = []
        for rule in self.rules:
            event = rule(ctx)
            if event is not None:
                events.append(event)
        return events
