from __future__ import annotations

from typing import Callable

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from core.config import settings
from core.database import get_db
from core.security import TokenError, user_id_from_token
from models.user import User


bearer_scheme = HTTPBearer(auto_error=False)


def _token_from(request: Request, creds: HTTPAuthorizationCredentials | None) -> str | None:
    # The Authorization header wins; the httponly cookie is the browser fallback.
    if creds is not None and creds.credentials:
        return creds.credentials
    return request.cookies.get(settings.auth_cookie_name) or None


def get_current_user(
    request: Request,
    creds: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    cached = getattr(request.state, "current_user", None)
    if isinstance(cached, User):
        return cached

    token = _token_from(request, creds)
    if token is None:
        raise HTTPException(status_code=401, detail="NOT_AUTHENTICATED")
    try:
        user_id = user_id_from_token(token)
    except TokenError:
        raise HTTPException(status_code=401, detail="INVALID_TOKEN")

    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="INVALID_TOKEN")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="USER_DISABLED")

    request.state.current_user = user
    return user


def require_role(*roles: str) -> Callable[..., User]:
    """Dependency factory: the signed-in user must hold one of ``roles``."""

    allowed = frozenset(r.lower() for r in roles)

    def _check(current_user: User = Depends(get_current_user)) -> User:
        if (current_user.role or "").lower() not in allowed:
            raise HTTPException(status_code=403, detail="NOT_AUTHORIZED")
        return current_user

    return _check


# Every mutation in the API is admin-only; teachers get read access.
require_admin = require_role("admin")
