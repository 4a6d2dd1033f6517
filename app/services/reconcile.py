import logging
import uuid
from datetime import date, datetime
from typing import Iterable, List

from sqlalchemy import and_, or_
from sqlmodel import Session, select

from ..models.budget import Budget
from ..models.expense import Expense
from .budget_progress import apply_progress, compute_progress

logger = logging.getLogger(__name__)


def expenses_in_period(session: Session, user_id: uuid.UUID, start: date, end: date) -> List[Expense]:
    stmt = select(Expense).where(
        Expense.user_id == user_id,
        Expense.expense_date >= start,
        Expense.expense_date <= end,
    )
    return list(session.exec(stmt).all())


def affected_budgets(session: Session, user_id: uuid.UUID, dates: Iterable[date]) -> List[Budget]:
    days = sorted(set(dates))
    if not days:
        return []
    covers_any = or_(*[and_(Budget.start_date <= d, Budget.end_date >= d) for d in days])
    stmt = select(Budget).where(
        Budget.user_id == user_id,
        Budget.is_active == True,  # noqa: E712
        covers_any,
    )
    return list(session.exec(stmt).all())


def reconcile_affected_budgets(
    session: Session,
    user_id: uuid.UUID,
    dates: Iterable[date],
    now: datetime,
) -> int:
    """Refresh stored progress of every active budget covering ``dates``.

    Runs after the expense write has been committed. All affected budgets are
    written in one commit; any failure is logged and rolled back so the
    expense operation that triggered it still succeeds.
    """
    try:
        budgets = affected_budgets(session, user_id, dates)
        for budget in budgets:
            expenses = expenses_in_period(session, user_id, budget.start_date, budget.end_date)
            apply_progress(budget, compute_progress(budget, expenses, now), now)
            session.add(budget)
        if budgets:
            session.commit()
            logger.info("Updated %d affected budgets for user %s", len(budgets), user_id)
        return len(budgets)
    except Exception:
        session.rollback()
        logger.exception("Failed to update affected budgets for user %s", user_id)
        return 0
