"""Collector credentials: bcrypt password hashes and signed bearer tokens.

Tokens carry the collector's email as `sub`; the role claim is informational
only, authorization always re-reads the user row.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from app.config import settings
from app.core.clock import utc_now

TOKEN_TYPE = "vault-access"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(
    subject: str,
    *,
    role: Optional[str] = None,
    expires_minutes: Optional[int] = None,
) -> str:
    now = utc_now()
    minutes = expires_minutes or settings.access_token_expire_minutes
    claims: dict[str, Any] = {
        "sub": str(subject),
        "typ": TOKEN_TYPE,
        "iat": now,
        "exp": now + timedelta(minutes=minutes),
    }
    if role:
        claims["role"] = role
    return jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> Optional[str]:
    """Return the token subject, or None when the token is invalid, expired or foreign."""

    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
    if payload.get("typ") != TOKEN_TYPE:
        return None
    subject = payload.get("sub")
    return str(subject) if subject else None
