"""Budget progress: spent / remaining / percentage per category plus alerts.

Everything here is a pure function of a budget and a set of expenses. The
stored ``spent``/``remaining``/``percentage`` values on a budget are only a
cache; callers recompute them before trusting them.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from ..models.budget import Budget
from ..models.expense import Expense
from .periods import period_contains, round2


@dataclass
class BudgetProgress:
    category_budgets: List[Dict[str, Any]]
    total_limit: float
    total_spent: float
    total_remaining: float
    alerts: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def overall_percentage(self) -> float:
        if self.total_limit <= 0:
            return 0.0
        return round2(self.total_spent / self.total_limit * 100)

    @property
    def triggered_alerts(self) -> List[Dict[str, Any]]:
        return [a for a in self.alerts if a.get("triggered")]


def spending_by_category(budget: Budget, expenses: Iterable[Expense]) -> Dict[str, float]:
    totals: Dict[str, float] = defaultdict(float)
    for expense in expenses:
        if period_contains(budget.start_date, budget.end_date, expense.expense_date):
            totals[expense.category] += expense.amount
    return totals


def _category_progress(category: str, limit: float, spent: float) -> Dict[str, Any]:
    percentage = spent / limit * 100 if limit > 0 else 0
    return {
        "category": category,
        "limit": limit,
        "spent": round2(spent),
        "remaining": round2(limit - spent),
        "percentage": round2(percentage),
    }


def _latch_alert(alert: Dict[str, Any], percentage: Optional[float], now: datetime) -> Dict[str, Any]:
    was_triggered = bool(alert.get("triggered"))
    crossed = percentage is not None and percentage >= alert["threshold"]

    updated = dict(alert)
    updated["triggered"] = was_triggered or crossed
    if crossed and not was_triggered:
        updated["triggered_at"] = now.isoformat()
    else:
        updated["triggered_at"] = alert.get("triggered_at")
    return updated


def compute_progress(budget: Budget, expenses: Iterable[Expense], now: datetime) -> BudgetProgress:
    """Recompute a budget's progress from ``expenses``.

    ``expenses`` may contain anything belonging to the budget's owner; only
    those dated inside the closed budget period count. Categories that are
    not budgeted never reach the totals. Alerts latch: once triggered they stay
    triggered (with their original ``triggered_at``) until reconfigured.
    """
    spending = spending_by_category(budget, expenses)

    category_budgets = [
        _category_progress(cb["category"], cb["limit"], spending.get(cb["category"], 0.0))
        for cb in budget.category_budgets
    ]
    percentages = {cb["category"]: cb["percentage"] for cb in category_budgets}

    total_spent = round2(sum(cb["spent"] for cb in category_budgets))
    total_limit = budget.total_limit

    alerts = [_latch_alert(a, percentages.get(a["category"]), now) for a in budget.alerts]

    return BudgetProgress(
        category_budgets=category_budgets,
        total_limit=total_limit,
        total_spent=total_spent,
        total_remaining=round2(total_limit - total_spent),
        alerts=alerts,
    )


def apply_progress(budget: Budget, progress: BudgetProgress, now: datetime) -> Budget:
    budget.category_budgets = progress.category_budgets
    budget.total_spent = progress.total_spent
    budget.total_remaining = progress.total_remaining
    budget.alerts = progress.alerts
    budget.updated_at = now
    return budget


def total_limit_of(category_budgets: Iterable[Dict[str, Any]]) -> float:
    return float(sum(cb["limit"] for cb in category_budgets))
