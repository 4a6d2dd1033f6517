"""Recurring expense scheduler.

A template is either scheduled (``is_active``) or inactive. ``next_occurrence``
is the cursor: generation materializes an expense dated at the cursor and then
moves the cursor one frequency step forward. Only the sweep retires templates
whose ``end_date`` has passed; on-demand generation ignores ``end_date``.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Set, Tuple

from sqlalchemy import update
from sqlmodel import Session, select

from ..core.errors import ValidationError
from ..models.expense import Expense
from ..models.recurring import RecurringTemplate
from .periods import advance, monthly_cost, round2
from .reconcile import reconcile_affected_budgets

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    generated: int = 0
    deactivated: int = 0
    skipped: int = 0
    # (user_id, expense_date) pairs touched by the sweep, for budget reconciliation
    touched: Set[Tuple[Any, date]] = field(default_factory=set)


def initial_next_occurrence(start_date: date, frequency: str) -> date:
    return advance(start_date, frequency)


def materialize(template: RecurringTemplate, now: datetime) -> Expense:
    return Expense(
        user_id=template.user_id,
        amount=template.amount,
        category=template.category,
        description=template.description,
        expense_date=template.next_occurrence,
        ai_suggested=False,
        recurring_template_id=template.id,
        created_at=now,
        updated_at=now,
    )


def advance_cursor(template: RecurringTemplate, now: datetime) -> RecurringTemplate:
    # Resolve the next date first so a bad frequency leaves the template untouched
    next_occurrence = advance(template.next_occurrence, template.frequency)
    template.last_generated = template.next_occurrence
    template.next_occurrence = next_occurrence
    template.updated_at = now
    return template


def generate_one(session: Session, template: RecurringTemplate, now: datetime) -> Tuple[Expense, RecurringTemplate]:
    """Materialize the template's current occurrence and advance its cursor.

    Ownership is checked by the caller. ``end_date`` is deliberately not
    enforced here.
    """
    if not template.is_active:
        raise ValidationError("Recurring expense is inactive")

    expense = materialize(template, now)
    advance_cursor(template, now)

    session.add(expense)
    session.add(template)
    session.commit()
    session.refresh(expense)
    session.refresh(template)
    return expense, template


def due_templates(session: Session, today: date) -> List[RecurringTemplate]:
    stmt = select(RecurringTemplate).where(
        RecurringTemplate.is_active == True,  # noqa: E712
        RecurringTemplate.auto_generate == True,  # noqa: E712
        RecurringTemplate.next_occurrence <= today,
    )
    return list(session.exec(stmt).all())


def sweep_due(session: Session, today: date, now: datetime) -> SweepResult:
    """Generate one expense for every due auto-generating template.

    Templates whose ``end_date`` is before ``today`` are deactivated instead.
    All inserts and cursor moves are committed together. Cursor moves are
    conditional on the cursor still holding the value read at the start of the
    sweep, so a template advanced by an overlapping sweep is skipped rather
    than generated twice.
    """
    result = SweepResult()
    try:
        for template in due_templates(session, today):
            if template.end_date is not None and template.end_date < today:
                stmt = (
                    update(RecurringTemplate)
                    .where(RecurringTemplate.id == template.id, RecurringTemplate.is_active == True)  # noqa: E712
                    .values(is_active=False, updated_at=now)
                    .execution_options(synchronize_session=False)
                )
                if session.execute(stmt).rowcount:
                    result.deactivated += 1
                continue

            seen = template.next_occurrence
            next_occurrence = advance(seen, template.frequency)
            expense = materialize(template, now)

            stmt = (
                update(RecurringTemplate)
                .where(RecurringTemplate.id == template.id, RecurringTemplate.next_occurrence == seen)
                .values(last_generated=seen, next_occurrence=next_occurrence, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            if session.execute(stmt).rowcount != 1:
                logger.warning("Recurring expense %s already advanced past %s; skipping", template.id, seen)
                result.skipped += 1
                continue

            session.add(expense)
            result.generated += 1
            result.touched.add((template.user_id, seen))

        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(
        "Generated %d expenses from recurring templates (%d deactivated, %d skipped) for %s",
        result.generated,
        result.deactivated,
        result.skipped,
        today.isoformat(),
    )
    return result


def recompute_on_edit(template: RecurringTemplate, changes: Dict[str, Any]) -> RecurringTemplate:
    """Apply ``changes`` and re-anchor the cursor when the schedule changed."""
    if "frequency" in changes or "start_date" in changes:
        frequency = changes.get("frequency", template.frequency)
        start_date = changes.get("start_date", template.start_date)
        anchor = template.last_generated or start_date
        next_occurrence = advance(anchor, frequency)
        changes = dict(changes, next_occurrence=next_occurrence)

    for key, value in changes.items():
        setattr(template, key, value)
    return template


def upcoming(templates: Iterable[RecurringTemplate], today: date, days: int) -> List[Dict[str, Any]]:
    horizon = today + timedelta(days=days)
    rows = [
        {"template": t, "days_until": (t.next_occurrence - today).days}
        for t in templates
        if t.is_active and today <= t.next_occurrence <= horizon
    ]
    rows.sort(key=lambda r: r["template"].next_occurrence)
    return rows


def summarize(templates: List[RecurringTemplate]) -> Dict[str, Any]:
    active = [t for t in templates if t.is_active]
    return {
        "total": len(templates),
        "active": len(active),
        "inactive": len(templates) - len(active),
        "estimated_monthly_total": round2(sum(monthly_cost(t.amount, t.frequency) for t in active)),
    }


def reconcile_touched(session: Session, result: SweepResult, now: datetime) -> None:
    """Refresh budgets of every user who received generated expenses."""
    by_user: Dict[Any, Set[date]] = {}
    for user_id, expense_date in result.touched:
        by_user.setdefault(user_id, set()).add(expense_date)
    for user_id, dates in by_user.items():
        reconcile_affected_budgets(session, user_id, dates, now)
