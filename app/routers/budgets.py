import uuid
from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, status
from sqlmodel import Field, Session, SQLModel, select

from ..core.clock import get_now, get_today
from ..core.errors import NotFoundError, ValidationError
from ..core.security import ensure_owner, get_current_user
from ..database import get_session
from ..models.budget import Budget
from ..models.user import User
from ..services.budget_progress import BudgetProgress, apply_progress, compute_progress, total_limit_of
from ..services.reconcile import expenses_in_period


router = APIRouter(
    prefix="/budgets",
    tags=["budgets"],
)

MAX_LIMIT = 1_000_000


class CategoryBudgetIn(SQLModel):
    category: str = Field(min_length=1, max_length=50)
    limit: float = Field(ge=0, le=MAX_LIMIT)


class AlertIn(SQLModel):
    category: str = Field(min_length=1, max_length=50)
    threshold: float = Field(ge=0, le=100)


class BudgetCreate(SQLModel):
    name: str = Field(min_length=1, max_length=100)
    type: Literal["monthly", "weekly", "custom"]
    start_date: date
    end_date: date
    category_budgets: List[CategoryBudgetIn] = Field(min_length=1)
    alerts: List[AlertIn] = Field(default_factory=list)
    is_active: bool = True


class BudgetUpdate(SQLModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    type: Optional[Literal["monthly", "weekly", "custom"]] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    category_budgets: Optional[List[CategoryBudgetIn]] = Field(default=None, min_length=1)
    is_active: Optional[bool] = None


class AlertsConfigIn(SQLModel):
    alerts: List[AlertIn]


class CategoryBudgetRead(SQLModel):
    category: str
    limit: float
    spent: float
    remaining: float
    percentage: float


class AlertRead(SQLModel):
    category: str
    threshold: float
    triggered: bool
    triggered_at: Optional[datetime] = None


class BudgetRead(SQLModel):
    id: uuid.UUID
    user_id: uuid.UUID
    name: str
    type: str
    start_date: date
    end_date: date
    category_budgets: List[CategoryBudgetRead]
    total_limit: float
    total_spent: float
    total_remaining: float
    alerts: List[AlertRead]
    is_active: bool
    created_at: datetime
    updated_at: datetime


class BudgetProgressRead(SQLModel):
    category_budgets: List[CategoryBudgetRead]
    total_limit: float
    total_spent: float
    total_remaining: float
    overall_percentage: float
    alerts: List[AlertRead]


def _check_period(start_date: date, end_date: date) -> None:
    if end_date <= start_date:
        raise ValidationError("Validation failed", details=["Period end date must be after start date"])


def _category_rows(items: List[CategoryBudgetIn]) -> List[Dict[str, Any]]:
    rows = []
    for item in items:
        category = item.category.strip()
        if not category:
            raise ValidationError("Validation failed", details=["Category budget category cannot be empty"])
        rows.append({"category": category, "limit": float(item.limit), "spent": 0.0,
                     "remaining": float(item.limit), "percentage": 0.0})
    return rows


def _alert_rows(items: List[AlertIn]) -> List[Dict[str, Any]]:
    # Fresh alerts always start untriggered; this is the only way to reset a latch
    return [
        {"category": a.category.strip(), "threshold": float(a.threshold), "triggered": False, "triggered_at": None}
        for a in items
    ]


def _progress(session: Session, budget: Budget, now: datetime) -> BudgetProgress:
    expenses = expenses_in_period(session, budget.user_id, budget.start_date, budget.end_date)
    return compute_progress(budget, expenses, now)


def _live_progress(session: Session, budget: Budget, now: datetime) -> BudgetProgress:
    """Progress for a read; an alert that newly triggers is stored right away
    so its ``triggered_at`` does not move on later reads."""
    progress = _progress(session, budget, now)
    was_triggered = [bool(a.get("triggered")) for a in budget.alerts]
    if any(a["triggered"] and not before for a, before in zip(progress.alerts, was_triggered)):
        apply_progress(budget, progress, now)
        session.add(budget)
        session.commit()
        session.refresh(budget)
    return progress


def _read(budget: Budget, progress: BudgetProgress) -> BudgetRead:
    return BudgetRead(
        id=budget.id,
        user_id=budget.user_id,
        name=budget.name,
        type=budget.type,
        start_date=budget.start_date,
        end_date=budget.end_date,
        category_budgets=progress.category_budgets,
        total_limit=progress.total_limit,
        total_spent=progress.total_spent,
        total_remaining=progress.total_remaining,
        alerts=progress.alerts,
        is_active=budget.is_active,
        created_at=budget.created_at,
        updated_at=budget.updated_at,
    )


def _save_with_progress(session: Session, budget: Budget, now: datetime) -> BudgetRead:
    progress = _progress(session, budget, now)
    apply_progress(budget, progress, now)
    session.add(budget)
    session.commit()
    session.refresh(budget)
    return _read(budget, progress)


@router.post(
    "",
    response_model=BudgetRead,
    status_code=status.HTTP_201_CREATED,
)
def create_budget(
    payload: BudgetCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
):
    _check_period(payload.start_date, payload.end_date)
    name = payload.name.strip()
    if not name:
        raise ValidationError("Validation failed", details=["Budget name cannot be empty"])

    category_budgets = _category_rows(payload.category_budgets)
    budget = Budget(
        id=uuid.uuid4(),
        user_id=current_user.id,
        name=name,
        type=payload.type,
        start_date=payload.start_date,
        end_date=payload.end_date,
        category_budgets=category_budgets,
        total_limit=total_limit_of(category_budgets),
        alerts=_alert_rows(payload.alerts),
        is_active=payload.is_active,
        created_at=now,
        updated_at=now,
    )
    return _save_with_progress(session, budget, now)


@router.get(
    "",
    response_model=List[BudgetRead],
    status_code=status.HTTP_200_OK,
)
def list_budgets(
    is_active: Optional[bool] = None,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
):
    stmt = select(Budget).where(Budget.user_id == current_user.id)
    if is_active is not None:
        stmt = stmt.where(Budget.is_active == is_active)
    stmt = stmt.order_by(Budget.start_date.desc())
    return [_read(b, _live_progress(session, b, now)) for b in session.exec(stmt).all()]


@router.get(
    "/current",
    response_model=BudgetRead,
)
def current_budget(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    today: date = Depends(get_today),
    now: datetime = Depends(get_now),
):
    stmt = (
        select(Budget)
        .where(
            Budget.user_id == current_user.id,
            Budget.is_active == True,  # noqa: E712
            Budget.start_date <= today,
            Budget.end_date >= today,
        )
        .order_by(Budget.start_date.desc())
    )
    budget = session.exec(stmt).first()
    if budget is None:
        raise NotFoundError("No active budget found: no budget covers the current date")
    return _read(budget, _live_progress(session, budget, now))


@router.get(
    "/{budget_id}",
    response_model=BudgetRead,
)
def get_budget(
    budget_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
):
    budget = ensure_owner(session.get(Budget, budget_id), current_user, "Budget")
    return _read(budget, _live_progress(session, budget, now))


@router.get(
    "/{budget_id}/progress",
    response_model=BudgetProgressRead,
)
def get_budget_progress(
    budget_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
):
    """Live progress of a budget; only triggered alerts are listed."""
    budget = ensure_owner(session.get(Budget, budget_id), current_user, "Budget")
    progress = _live_progress(session, budget, now)
    return BudgetProgressRead(
        category_budgets=progress.category_budgets,
        total_limit=progress.total_limit,
        total_spent=progress.total_spent,
        total_remaining=progress.total_remaining,
        overall_percentage=progress.overall_percentage,
        alerts=progress.triggered_alerts,
    )


@router.patch(
    "/{budget_id}",
    response_model=BudgetRead,
)
def update_budget(
    budget_id: uuid.UUID,
    payload: BudgetUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
):
    budget = ensure_owner(session.get(Budget, budget_id), current_user, "Budget")

    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise ValidationError("No fields to update")

    _check_period(changes.get("start_date", budget.start_date), changes.get("end_date", budget.end_date))

    if "name" in changes:
        changes["name"] = changes["name"].strip()
        if not changes["name"]:
            raise ValidationError("Validation failed", details=["Budget name cannot be empty"])
    if payload.category_budgets is not None:
        rows = _category_rows(payload.category_budgets)
        changes["category_budgets"] = rows
        changes["total_limit"] = total_limit_of(rows)

    for key, value in changes.items():
        setattr(budget, key, value)
    return _save_with_progress(session, budget, now)


@router.delete(
    "/{budget_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
def delete_budget(
    budget_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    budget = ensure_owner(session.get(Budget, budget_id), current_user, "Budget")
    session.delete(budget)
    session.commit()
    return None


@router.post(
    "/{budget_id}/alerts",
    response_model=BudgetRead,
)
def configure_alerts(
    budget_id: uuid.UUID,
    payload: AlertsConfigIn,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
):
    """Replace the budget's alerts; every alert starts untriggered."""
    budget = ensure_owner(session.get(Budget, budget_id), current_user, "Budget")
    budget.alerts = _alert_rows(payload.alerts)
    return _save_with_progress(session, budget, now)
