from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import jwt

from ..config import settings


ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 24


def create_access_token(subject: str, extra: Optional[Dict[str, Any]] = None, expires_minutes: Optional[int] = None) -> str:
    now = datetime.now(timezone.utc)
    expire = now + timedelta(minutes=expires_minutes or ACCESS_TOKEN_EXPIRE_MINUTES)
    claims = dict(extra or {})
    claims.update({"sub": subject, "iat": int(now.timestamp()), "exp": int(expire.timestamp())})
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Dict[str, Any]:
    # JWTError / ExpiredSignatureError propagate to get_current_user
    return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
