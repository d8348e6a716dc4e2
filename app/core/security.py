# app/core/security.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import jwt
from passlib.context import CryptContext

from app.core.config import get_settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# claims that callers may not override
_RESERVED_CLAIMS = ("sub", "iat", "exp")


def hash_password(raw: str) -> str:
    return pwd_context.hash(raw)


def verify_password(raw: str, hashed: str) -> bool:
    """
    False for a wrong password and for a stored value that is not a
    recognised hash (seeded placeholders, truncated imports).
    """
    try:
        return pwd_context.verify(raw, hashed)
    except ValueError:
        return False


def password_needs_rehash(hashed: str) -> bool:
    return pwd_context.needs_update(hashed)


def create_access_token(subject: str, claims: Dict[str, Any], expires_minutes: Optional[int] = None) -> str:
    settings = get_settings()
    exp_minutes = expires_minutes or settings.jwt_access_token_minutes
    now = datetime.now(timezone.utc)
    payload = {k: v for k, v in claims.items() if k not in _RESERVED_CLAIMS}
    payload.update(
        sub=subject,
        iat=int(now.timestamp()),
        exp=int((now + timedelta(minutes=exp_minutes)).timestamp()),
    )
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Dict[str, Any]:
    settings = get_settings()
    return jwt.decode(
        token,
        settings.jwt_secret_key,
        algorithms=[settings.jwt_algorithm],
        options={"require_exp": True, "require_sub": True},
    )
