from __future__ import annotations

from pathlib import Path

from pydantic import Field, field_validator
from pydantic.aliases import AliasChoices
from pydantic_settings import BaseSettings, SettingsConfigDict


BACKEND_DIR = Path(__file__).resolve().parents[1]

_SAMESITE_VALUES = {"lax", "strict", "none"}
_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR"}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=BACKEND_DIR / ".env", env_file_encoding="utf-8", extra="ignore")

    database_url: str
    auto_create_schema: bool = True

    # Auth
    jwt_secret_key: str = Field(validation_alias=AliasChoices("jwt_secret_key", "JWT_SECRET_KEY", "JWT_SECRET"))
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = Field(default=7 * 24 * 60, ge=1)
    auth_cookie_name: str = "access_token"
    cookie_samesite: str = "lax"
    login_max_attempts: int = Field(default=12, ge=1)
    login_window_seconds: int = Field(default=60, ge=1)

    # Seeds an admin on startup when BOTH are set.
    seed_admin_username: str | None = Field(
        default=None,
        validation_alias=AliasChoices("seed_admin_username", "SEED_ADMIN_USERNAME", "ADMIN_SEED_USERNAME"),
    )
    seed_admin_password: str | None = Field(
        default=None,
        validation_alias=AliasChoices("seed_admin_password", "SEED_ADMIN_PASSWORD", "ADMIN_SEED_PASSWORD"),
    )

    # Runtime
    environment: str = "development"
    frontend_origin: str = "http://localhost:3000"
    log_level: str | None = None

    # The transfer endpoint was historically hidden from the router; keep it switchable.
    enable_enrollment_transfer: bool = True

    @field_validator("frontend_origin")
    @classmethod
    def _normalize_frontend_origin(cls, v: str) -> str:
        # Starlette CORS compares the Origin header exactly; no trailing slash.
        return v.strip().rstrip("/")

    @field_validator("cookie_samesite")
    @classmethod
    def _normalize_cookie_samesite(cls, v: str) -> str:
        v = (v or "lax").strip().lower()
        if v not in _SAMESITE_VALUES:
            raise ValueError("COOKIE_SAMESITE must be 'lax', 'strict' or 'none'")
        return v

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        v = v.strip().upper()
        if v not in _LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {sorted(_LOG_LEVELS)}")
        return v

    @field_validator("seed_admin_username")
    @classmethod
    def _normalize_seed_admin_username(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip() or None

    @field_validator("seed_admin_password")
    @classmethod
    def _normalize_seed_admin_password(cls, v: str | None) -> str | None:
        # Whitespace is significant in passwords; only an empty value means unset.
        return v or None

    @property
    def is_production(self) -> bool:
        return self.environment.lower().strip() == "production"


settings = Settings()
