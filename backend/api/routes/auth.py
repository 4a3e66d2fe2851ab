from __future__ import annotations

import logging
import time
from collections import deque
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from api.deps import get_current_user
from core.config import settings
from core.database import get_db
from core.security import create_access_token, verify_password
from models.user import User
from schemas.auth import LoginRequest, LoginResponse, UserOut


router = APIRouter()

logger = logging.getLogger(__name__)


class LoginThrottle:
    """Sliding-window limit on login attempts per (client ip, username).

    In-memory, so each worker process counts separately.
    """

    def __init__(self, *, max_attempts: int, window_seconds: float) -> None:
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self._attempts: dict[str, deque[float]] = {}

    def hit(self, key: str, *, now: float | None = None) -> bool:
        """Record an attempt; False once the key is over its limit."""

        now = time.monotonic() if now is None else now
        window = self._attempts.setdefault(key, deque())
        while window and now - window[0] >= self.window_seconds:
            window.popleft()
        window.append(now)
        return len(window) <= self.max_attempts

    def reset(self) -> None:
        self._attempts.clear()


login_throttle = LoginThrottle(
    max_attempts=settings.login_max_attempts,
    window_seconds=settings.login_window_seconds,
)


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _authenticate(db: Session, *, username: str, password: str, ip: str) -> User:
    user = db.execute(select(User).where(func.lower(User.username) == username.lower())).scalar_one_or_none()
    if user is None:
        logger.warning("Login failed (unknown user) ip=%s username=%r", ip, username)
        raise HTTPException(status_code=401, detail="INVALID_CREDENTIALS")
    if not user.is_active:
        logger.warning("Login failed (disabled user) ip=%s username=%r", ip, username)
        raise HTTPException(status_code=403, detail="USER_DISABLED")

    if verify_password(password, user.password_hash):
        return user
    # Pasted passwords often carry a trailing newline or space.
    if password != password.strip() and verify_password(password.strip(), user.password_hash):
        logger.warning("Login accepted after trimming password whitespace username=%r", username)
        return user

    logger.warning("Login failed (bad password) ip=%s username=%r", ip, username)
    raise HTTPException(status_code=401, detail="INVALID_CREDENTIALS")


@router.post("/login", response_model=LoginResponse)
def login(
    payload: LoginRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
) -> LoginResponse:
    username = payload.username.strip()
    ip = _client_ip(request)
    if not login_throttle.hit(f"{ip}:{username.lower()}"):
        logger.warning("Login rate limited ip=%s username=%r", ip, username)
        raise HTTPException(status_code=429, detail="RATE_LIMITED")

    user = _authenticate(db, username=username, password=payload.password, ip=ip)
    token, expires_at = create_access_token(user_id=user.id, username=user.username, role=user.role)
    response.set_cookie(
        key=settings.auth_cookie_name,
        value=token,
        httponly=True,
        secure=settings.is_production,
        samesite=settings.cookie_samesite,
        max_age=settings.access_token_expire_minutes * 60,
        path="/",
    )

    logger.info("Login success ip=%s username=%r role=%s", ip, user.username, user.role)
    return LoginResponse(ok=True, access_token=token, expires_at=expires_at, user=UserOut.model_validate(user))


@router.post("/logout")
def logout(response: Response) -> dict[str, Any]:
    response.delete_cookie(key=settings.auth_cookie_name, path="/")
    return {"ok": True}


@router.get("/me", response_model=UserOut)
def me(current_user: User = Depends(get_current_user)) -> UserOut:
    return UserOut.model_validate(current_user)
