import math
import uuid
from datetime import datetime, date
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func
from sqlmodel import SQLModel, Field, Session, select

from ..core.clock import get_now
from ..core.errors import ValidationError
from ..core.security import ensure_owner, get_current_user
from ..database import get_session
from ..models.expense import Expense
from ..models.user import User
from ..services.categorizer import suggest_category
from ..services.periods import round2
from ..services.reconcile import reconcile_affected_budgets

router = APIRouter(
    prefix="/expenses",
    tags=["expenses"],
)

MAX_AMOUNT = 1_000_000

# ─────────────────────────────
#   SCHEMAS
# ─────────────────────────────

class ExpenseCreate(SQLModel):
    amount: float = Field(ge=0, le=MAX_AMOUNT)
    description: str = Field(min_length=1, max_length=500)
    # Left empty, the category is filled in by the categorizer
    category: Optional[str] = Field(default=None, max_length=50)
    expense_date: date
    ai_suggested: bool = False


class ExpenseUpdate(SQLModel):
    amount: Optional[float] = Field(default=None, ge=0, le=MAX_AMOUNT)
    description: Optional[str] = Field(default=None, min_length=1, max_length=500)
    category: Optional[str] = Field(default=None, min_length=1, max_length=50)
    expense_date: Optional[date] = None
    ai_suggested: Optional[bool] = None


class ExpenseRead(SQLModel):
    id: uuid.UUID
    user_id: uuid.UUID
    amount: float
    description: str
    category: str
    expense_date: date
    ai_suggested: bool
    recurring_template_id: Optional[uuid.UUID] = None
    created_at: datetime
    updated_at: datetime


class Pagination(SQLModel):
    page: int
    limit: int
    total: int
    total_pages: int


class ListSummary(SQLModel):
    total_expenses: int
    total_amount: float


class ExpenseListOut(SQLModel):
    expenses: List[ExpenseRead]
    pagination: Pagination
    summary: ListSummary


class CategoryBreakdown(SQLModel):
    category: str
    count: int
    total: float
    percentage: float


class ExpenseStats(SQLModel):
    total_expenses: int
    total_amount: float
    average_expense: float
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    category_breakdown: List[CategoryBreakdown]


def _clean(value: str, field: str) -> str:
    cleaned = value.strip()
    if not cleaned:
        raise ValidationError("Validation failed", details=[f"{field} cannot be empty"])
    return cleaned


def _filtered(user: User, category: Optional[str], start_date: Optional[date], end_date: Optional[date]):
    conditions = [Expense.user_id == user.id]
    if category:
        conditions.append(Expense.category == category)
    if start_date:
        conditions.append(Expense.expense_date >= start_date)
    if end_date:
        conditions.append(Expense.expense_date <= end_date)
    return conditions


# ─────────────────────────────
#   ENDPOINTS
# ─────────────────────────────

@router.post(
    "",
    response_model=ExpenseRead,
    status_code=status.HTTP_201_CREATED,
)
def create_expense(
    expense_in: ExpenseCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
):
    """Create an expense and refresh every active budget covering its date."""
    description = _clean(expense_in.description, "Description")
    ai_suggested = expense_in.ai_suggested
    if expense_in.category is None or not expense_in.category.strip():
        suggestion = suggest_category(description, expense_in.amount, current_user.categories)
        category = suggestion.category
        ai_suggested = True
    else:
        category = expense_in.category.strip()

    expense = Expense(
        id=uuid.uuid4(),
        user_id=current_user.id,
        amount=expense_in.amount,
        description=description,
        category=category,
        expense_date=expense_in.expense_date,
        ai_suggested=ai_suggested,
        created_at=now,
        updated_at=now,
    )

    session.add(expense)
    session.commit()
    session.refresh(expense)
    created = ExpenseRead.model_validate(expense)

    reconcile_affected_budgets(session, current_user.id, [created.expense_date], now)
    return created


@router.get(
    "",
    response_model=ExpenseListOut,
)
def list_expenses(
    category: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    sort_by: Literal["date", "amount"] = "date",
    order: Literal["asc", "desc"] = "desc",
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=100),
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    conditions = _filtered(current_user, category, start_date, end_date)

    count, total_amount = session.exec(
        select(func.count(Expense.id), func.coalesce(func.sum(Expense.amount), 0.0)).where(*conditions)
    ).one()

    sort_col = Expense.amount if sort_by == "amount" else Expense.expense_date
    sort_col = sort_col.asc() if order == "asc" else sort_col.desc()
    stmt = (
        select(Expense)
        .where(*conditions)
        .order_by(sort_col, Expense.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    expenses = session.exec(stmt).all()

    return ExpenseListOut(
        expenses=[ExpenseRead.model_validate(e) for e in expenses],
        pagination=Pagination(page=page, limit=limit, total=count, total_pages=math.ceil(count / limit)),
        summary=ListSummary(total_expenses=count, total_amount=round2(total_amount)),
    )


@router.get(
    "/stats/summary",
    response_model=ExpenseStats,
)
def expense_stats(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    conditions = _filtered(current_user, None, start_date, end_date)
    rows = session.exec(
        select(Expense.category, func.count(Expense.id), func.sum(Expense.amount))
        .where(*conditions)
        .group_by(Expense.category)
    ).all()

    total_count = sum(count for _, count, _ in rows)
    total_amount = sum(total for _, _, total in rows)

    breakdown = [
        CategoryBreakdown(
            category=cat,
            count=count,
            total=round2(total),
            percentage=round2(total / total_amount * 100) if total_amount > 0 else 0.0,
        )
        for cat, count, total in sorted(rows, key=lambda r: r[2], reverse=True)
    ]

    return ExpenseStats(
        total_expenses=total_count,
        total_amount=round2(total_amount),
        average_expense=round2(total_amount / total_count) if total_count else 0.0,
        start_date=start_date,
        end_date=end_date,
        category_breakdown=breakdown,
    )


@router.get(
    "/{expense_id}",
    response_model=ExpenseRead,
)
def get_expense(
    expense_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return ensure_owner(session.get(Expense, expense_id), current_user, "Expense")


@router.patch(
    "/{expense_id}",
    response_model=ExpenseRead,
)
def update_expense(
    expense_id: uuid.UUID,
    expense_in: ExpenseUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
):
    """Partially update an expense; budgets covering the old and new date are refreshed."""
    expense = ensure_owner(session.get(Expense, expense_id), current_user, "Expense")

    changes = expense_in.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise ValidationError("No fields to update")
    for field in ("description", "category"):
        if field in changes:
            changes[field] = _clean(changes[field], field.capitalize())

    previous_date = expense.expense_date
    for key, value in changes.items():
        setattr(expense, key, value)
    expense.updated_at = now

    session.add(expense)
    session.commit()
    session.refresh(expense)
    updated = ExpenseRead.model_validate(expense)

    reconcile_affected_budgets(session, current_user.id, [previous_date, updated.expense_date], now)
    return updated


@router.delete(
    "/{expense_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
def delete_expense(
    expense_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
):
    expense = ensure_owner(session.get(Expense, expense_id), current_user, "Expense")
    expense_date = expense.expense_date

    session.delete(expense)
    session.commit()

    reconcile_affected_budgets(session, current_user.id, [expense_date], now)
    return None
