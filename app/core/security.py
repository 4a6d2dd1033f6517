import hashlib
import hmac
import os
import uuid
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlmodel import Session
from jose.exceptions import ExpiredSignatureError, JWTError

from ..database import get_session
from ..models.user import User
from .errors import ForbiddenError, NotFoundError
from .jwt import decode_access_token


ALGORITHM = "pbkdf2_sha256"
ITERATIONS = 100_000
SALT_BYTES = 16


def _pbkdf2_hash(password: str, salt: bytes) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, ITERATIONS)


def hash_password(password: str) -> str:
    salt = os.urandom(SALT_BYTES)
    digest = _pbkdf2_hash(password, salt)
    return f"{ALGORITHM}${salt.hex()}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    try:
        algorithm, salt_hex, hash_hex = stored.strip().split("$")
    except ValueError:
        return False
    if algorithm != ALGORITHM:
        return False
    candidate = _pbkdf2_hash(password, bytes.fromhex(salt_hex))
    return hmac.compare_digest(candidate, bytes.fromhex(hash_hex))


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    token: str = Depends(oauth2_scheme),
    session: Session = Depends(get_session),
) -> User:
    try:
        payload = decode_access_token(token)
    except ExpiredSignatureError:
        raise _unauthorized("Token expired")
    except JWTError:
        raise _unauthorized("Invalid token")

    sub = payload.get("sub")
    if sub is None:
        raise _unauthorized("Invalid token: missing subject")
    try:
        user_id = uuid.UUID(str(sub))
    except ValueError:
        raise _unauthorized("Invalid token: bad subject format")

    user = session.get(User, user_id)
    if user is None:
        raise _unauthorized("User not found")
    return user


def ensure_owner(entity: Optional[object], user: User, label: str):
    """Return ``entity`` if it exists and belongs to ``user``."""
    if entity is None:
        raise NotFoundError(f"{label} not found")
    if entity.user_id != user.id:
        raise ForbiddenError(f"You do not have permission to access this {label.lower()}")
    return entity
