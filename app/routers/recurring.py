import uuid
from datetime import date, datetime, timedelta
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from sqlmodel import Field, Session, SQLModel, select

from ..config import settings
from ..core.clock import get_now, get_today
from ..core.errors import ValidationError
from ..core.security import ensure_owner, get_current_user
from ..database import get_session
from ..models.recurring import RecurringTemplate
from ..models.user import User
from ..services import scheduler
from ..services.reconcile import reconcile_affected_budgets
from .expenses import ExpenseRead

router = APIRouter(
    prefix="/recurring-expenses",
    tags=["recurring-expenses"],
)

Frequency = Literal["daily", "weekly", "biweekly", "monthly", "yearly"]
MAX_AMOUNT = 1_000_000


class RecurringCreate(SQLModel):
    template_name: str = Field(min_length=1, max_length=100)
    amount: float = Field(ge=0, le=MAX_AMOUNT)
    category: str = Field(min_length=1, max_length=50)
    description: str = Field(min_length=1, max_length=500)
    frequency: Frequency
    start_date: date
    end_date: Optional[date] = None
    auto_generate: bool = True
    reminder_days: int = Field(default=0, ge=0, le=30)
    is_active: bool = True


class RecurringUpdate(SQLModel):
    template_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    amount: Optional[float] = Field(default=None, ge=0, le=MAX_AMOUNT)
    category: Optional[str] = Field(default=None, min_length=1, max_length=50)
    description: Optional[str] = Field(default=None, min_length=1, max_length=500)
    frequency: Optional[Frequency] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    auto_generate: Optional[bool] = None
    reminder_days: Optional[int] = Field(default=None, ge=0, le=30)
    is_active: Optional[bool] = None


class RecurringRead(SQLModel):
    id: uuid.UUID
    user_id: uuid.UUID
    template_name: str
    amount: float
    category: str
    description: str
    frequency: str
    start_date: date
    end_date: Optional[date] = None
    next_occurrence: date
    last_generated: Optional[date] = None
    is_active: bool
    auto_generate: bool
    reminder_days: int
    created_at: datetime
    updated_at: datetime


class RecurringSummary(SQLModel):
    total: int
    active: int
    inactive: int
    estimated_monthly_total: float


class RecurringListOut(SQLModel):
    recurring_expenses: List[RecurringRead]
    summary: RecurringSummary


class UpcomingItem(RecurringRead):
    days_until: int


class UpcomingOut(SQLModel):
    upcoming: List[UpcomingItem]
    count: int
    start: date
    end: date


class GenerateOut(SQLModel):
    expense: ExpenseRead
    recurring_expense: RecurringRead
    next_occurrence: date


class SweepOut(SQLModel):
    run_date: date
    generated: int
    deactivated: int
    skipped: int


def _check_dates(start_date: date, end_date: Optional[date]) -> None:
    if end_date is not None and end_date <= start_date:
        raise ValidationError("Validation failed", details=["End date must be after start date"])


def _strip_text(values: dict) -> dict:
    for key in ("template_name", "category", "description"):
        if key in values:
            values[key] = values[key].strip()
            if not values[key]:
                raise ValidationError("Validation failed", details=[f"{key} cannot be empty"])
    return values


@router.post(
    "",
    response_model=RecurringRead,
    status_code=status.HTTP_201_CREATED,
)
def create_recurring_expense(
    payload: RecurringCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
):
    _check_dates(payload.start_date, payload.end_date)
    values = _strip_text(payload.model_dump())

    template = RecurringTemplate(
        id=uuid.uuid4(),
        user_id=current_user.id,
        next_occurrence=scheduler.initial_next_occurrence(payload.start_date, payload.frequency),
        last_generated=None,
        created_at=now,
        updated_at=now,
        **values,
    )
    session.add(template)
    session.commit()
    session.refresh(template)
    return template


@router.get(
    "",
    response_model=RecurringListOut,
)
def list_recurring_expenses(
    is_active: Optional[bool] = None,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    stmt = select(RecurringTemplate).where(RecurringTemplate.user_id == current_user.id)
    if is_active is not None:
        stmt = stmt.where(RecurringTemplate.is_active == is_active)
    templates = list(session.exec(stmt.order_by(RecurringTemplate.next_occurrence.asc())).all())

    return RecurringListOut(
        recurring_expenses=[RecurringRead.model_validate(t) for t in templates],
        summary=RecurringSummary(**scheduler.summarize(templates)),
    )


@router.get(
    "/upcoming",
    response_model=UpcomingOut,
)
def upcoming_recurring_expenses(
    days: int = Query(default=30, ge=1, le=365),
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    today: date = Depends(get_today),
):
    stmt = select(RecurringTemplate).where(
        RecurringTemplate.user_id == current_user.id,
        RecurringTemplate.is_active == True,  # noqa: E712
    )
    rows = scheduler.upcoming(session.exec(stmt).all(), today, days)
    items = [
        UpcomingItem(**RecurringRead.model_validate(r["template"]).model_dump(), days_until=r["days_until"])
        for r in rows
    ]
    return UpcomingOut(
        upcoming=items,
        count=len(items),
        start=today,
        end=today + timedelta(days=days),
    )


@router.post(
    "/sweep",
    response_model=SweepOut,
)
def sweep_due_recurring_expenses(
    x_cron_secret: Optional[str] = Header(default=None),
    session: Session = Depends(get_session),
    today: date = Depends(get_today),
    now: datetime = Depends(get_now),
):
    """Cron entry point: generate every due auto-generating template once.

    Must be triggered by a single external scheduler.
    """
    if not settings.cron_secret:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="CRON_SECRET not configured")
    if x_cron_secret != settings.cron_secret:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid cron secret")

    result = scheduler.sweep_due(session, today, now)
    scheduler.reconcile_touched(session, result, now)

    return SweepOut(run_date=today, generated=result.generated, deactivated=result.deactivated, skipped=result.skipped)


@router.get(
    "/{template_id}",
    response_model=RecurringRead,
)
def get_recurring_expense(
    template_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return ensure_owner(session.get(RecurringTemplate, template_id), current_user, "Recurring expense")


@router.patch(
    "/{template_id}",
    response_model=RecurringRead,
)
def update_recurring_expense(
    template_id: uuid.UUID,
    payload: RecurringUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
):
    """Partially update a template.

    Changing ``frequency`` or ``start_date`` re-anchors ``next_occurrence`` on
    the last generated date, or on the start date if nothing was generated.
    """
    template = ensure_owner(session.get(RecurringTemplate, template_id), current_user, "Recurring expense")

    # end_date may be cleared explicitly; other fields ignore nulls
    changes = {
        k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None or k == "end_date"
    }
    changes = _strip_text(changes)
    if not changes:
        raise ValidationError("No fields to update")

    _check_dates(changes.get("start_date", template.start_date), changes.get("end_date", template.end_date))

    scheduler.recompute_on_edit(template, changes)
    template.updated_at = now
    session.add(template)
    session.commit()
    session.refresh(template)
    return template


@router.delete(
    "/{template_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
def delete_recurring_expense(
    template_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    template = ensure_owner(session.get(RecurringTemplate, template_id), current_user, "Recurring expense")
    session.delete(template)
    session.commit()
    return None


@router.post(
    "/{template_id}/generate",
    response_model=GenerateOut,
    status_code=status.HTTP_201_CREATED,
)
def generate_recurring_expense(
    template_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
):
    template = ensure_owner(session.get(RecurringTemplate, template_id), current_user, "Recurring expense")
    expense, template = scheduler.generate_one(session, template, now)

    out = GenerateOut(
        expense=ExpenseRead.model_validate(expense),
        recurring_expense=RecurringRead.model_validate(template),
        next_occurrence=template.next_occurrence,
    )
    reconcile_affected_budgets(session, current_user.id, [out.expense.expense_date], now)
    return out
