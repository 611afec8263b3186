from typing import Callable, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from app.config import settings
from app.core.permissions import is_admin, is_self_or_admin, role_of
from app.database import get_db
from app.models import RoleName, User
from app.services.auth import decode_access_token
from app.services.documents import DocumentRenderer, default_renderer
from app.services.minting import TokenMinter, default_minter


def _token_url() -> str:
    return f"{settings.api_prefix.rstrip('/')}/auth/token"


oauth2_optional = OAuth2PasswordBearer(tokenUrl=_token_url(), auto_error=False)

_DB_DEP = Depends(get_db)
_TOKEN_OPT_DEP = Depends(oauth2_optional)


def _bearer_from_headers(request: Request) -> Optional[str]:
    raw = (request.headers.get("authorization") or request.headers.get("x-auth-token") or "").strip()
    if raw.lower().startswith("bearer "):
        raw = raw.split(" ", 1)[1].strip()
    return raw or None


def _collector_for_token(db: Session, token: str) -> Optional[User]:
    subject = decode_access_token(token)
    if not subject:
        return None
    user = db.query(User).filter(User.email == subject).first()
    # Accounts pending review, rejected or suspended lose access immediately.
    if user is None or not user.active:
        return None
    return user


def get_current_user(
    request: Request,
    db: Session = _DB_DEP,
    token: Optional[str] = _TOKEN_OPT_DEP,
) -> User:
    token = token or _bearer_from_headers(request)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    user = _collector_for_token(db, token)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def get_current_user_optional(
    request: Request,
    db: Session = _DB_DEP,
    token: Optional[str] = _TOKEN_OPT_DEP,
) -> Optional[User]:
    """Anonymous browsing is allowed; a bad token simply means anonymous."""

    token = token or _bearer_from_headers(request)
    return _collector_for_token(db, token) if token else None


_CURRENT_USER_DEP = Depends(get_current_user)


def require_roles(*roles: RoleName) -> Callable:
    allowed = set(roles)

    def dependency(user: User = _CURRENT_USER_DEP) -> User:
        if allowed and not is_admin(user) and role_of(user) not in allowed:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient role")
        return user

    return dependency


def require_self_or_admin(user_id: int, user: User = _CURRENT_USER_DEP) -> User:
    """Guard for user-scoped reads keyed by a `user_id` path parameter."""

    if not is_self_or_admin(user, user_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed")
    return user


def get_token_minter() -> TokenMinter:
    return default_minter


def get_document_renderer() -> DocumentRenderer:
    return default_renderer


def request_context(request: Request) -> dict:
    """Audit metadata taken from the incoming request."""

    return {
        "request_id": getattr(request.state, "request_id", None)
        or request.headers.get("x-request-id"),
        "ip": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent"),
    }
