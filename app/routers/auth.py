import uuid
from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlmodel import SQLModel, Field, Session, select
from pydantic import EmailStr

from ..database import get_session
from ..models.user import User
from ..core.clock import get_now
from ..core.errors import ConflictError, ValidationError
from ..core.security import get_current_user, hash_password, verify_password
from ..core.jwt import create_access_token


router = APIRouter(
    prefix="/auth",
    tags=["auth"],
)


class RegisterIn(SQLModel):
    email: EmailStr
    password: str = Field(min_length=6)


class UserRead(SQLModel):
    id: uuid.UUID
    email: str
    categories: List[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class TokenOut(SQLModel):
    access_token: str
    token_type: str = "bearer"


def _password_without_spaces(password: str) -> str:
    if any(c.isspace() for c in password):
        raise ValidationError("Password must not contain whitespace")
    return password


def _find_by_email(session: Session, email: str):
    return session.exec(select(User).where(User.email == email.strip().lower())).first()


@router.post(
    "/register",
    response_model=UserRead,
    status_code=status.HTTP_201_CREATED,
)
def register_user(
    payload: RegisterIn,
    session: Session = Depends(get_session),
    now: datetime = Depends(get_now),
):
    password = _password_without_spaces(payload.password)
    if _find_by_email(session, payload.email) is not None:
        raise ConflictError("Email already registered")

    user = User(
        id=uuid.uuid4(),
        email=payload.email.strip().lower(),
        hashed_password=hash_password(password),
        created_at=now,
        updated_at=now,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return UserRead(id=user.id, email=user.email, categories=user.categories or [],
                    created_at=user.created_at, updated_at=user.updated_at)


@router.post(
    "/token",
    response_model=TokenOut,
)
def issue_token(form_data: OAuth2PasswordRequestForm = Depends(), session: Session = Depends(get_session)):
    """OAuth2 password flow; the email goes in ``username``."""
    password = _password_without_spaces(form_data.password)
    user = _find_by_email(session, form_data.username)
    if user is None or not verify_password(password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return TokenOut(access_token=create_access_token(str(user.id), {"email": user.email}))


@router.get(
    "/me",
    response_model=UserRead,
)
def me(current_user: User = Depends(get_current_user)):
    return UserRead(id=current_user.id, email=current_user.email, categories=current_user.categories or [],
                    created_at=current_user.created_at, updated_at=current_user.updated_at)
