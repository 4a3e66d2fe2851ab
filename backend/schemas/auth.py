from __future__ import annotations

from datetime import datetime

from pydantic import Field

from schemas.base import CamelModel


class LoginRequest(CamelModel):
    username: str = Field(min_length=1, max_length=100)
    password: str = Field(min_length=1, max_length=256)


class UserOut(CamelModel):
    id: int
    username: str
    role: str
    name: str
    email: str | None = None
    is_active: bool
    created_at: datetime


class LoginResponse(CamelModel):
    ok: bool = True
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime
    user: UserOut
