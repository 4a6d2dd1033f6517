from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlmodel import Field, Session, SQLModel

from ..core.clock import get_now
from ..core.errors import ValidationError
from ..core.security import get_current_user
from ..database import get_session
from ..models.user import User
from ..services.categorizer import DEFAULT_CATEGORIES, suggest_category

router = APIRouter(
    prefix="/ai",
    tags=["ai"],
)

MAX_CATEGORIES = 30


class SuggestIn(SQLModel):
    description: str = Field(min_length=1, max_length=500)
    amount: Optional[float] = Field(default=None, ge=0)


class SuggestionRead(SQLModel):
    category: str
    confidence: int
    reasoning: str
    ai_generated: bool


class SuggestOut(SQLModel):
    suggestion: SuggestionRead
    description: str
    amount: Optional[float] = None


class CategoriesIn(SQLModel):
    categories: List[str] = Field(min_length=1, max_length=MAX_CATEGORIES)


class CategoriesOut(SQLModel):
    categories: List[str]
    total: int


def _user_categories(user: User) -> List[str]:
    return list(user.categories) if user.categories else list(DEFAULT_CATEGORIES)


@router.post(
    "/suggest-category",
    response_model=SuggestOut,
    status_code=status.HTTP_200_OK,
)
def suggest(
    payload: SuggestIn,
    current_user: User = Depends(get_current_user),
):
    description = payload.description.strip()
    if not description:
        raise ValidationError("Description is required")
    suggestion = suggest_category(description, payload.amount, _user_categories(current_user))
    return SuggestOut(
        suggestion=SuggestionRead(**suggestion.to_dict()),
        description=description,
        amount=payload.amount,
    )


@router.get(
    "/categories",
    response_model=CategoriesOut,
)
def get_categories(current_user: User = Depends(get_current_user)):
    categories = _user_categories(current_user)
    return CategoriesOut(categories=categories, total=len(categories))


@router.put(
    "/categories",
    response_model=CategoriesOut,
)
def update_categories(
    payload: CategoriesIn,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
):
    cleaned = [c.strip() for c in payload.categories]
    if any(not c for c in cleaned):
        raise ValidationError("All categories must be non-empty strings")
    if any(len(c) > 50 for c in cleaned):
        raise ValidationError("Each category must be less than 50 characters")

    current_user.categories = cleaned
    current_user.updated_at = now
    session.add(current_user)
    session.commit()
    return CategoriesOut(categories=cleaned, total=len(cleaned))
