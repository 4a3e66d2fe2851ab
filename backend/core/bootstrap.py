from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from core.config import settings
from core.database import ENGINE, SessionLocal
from core.security import hash_password
from models import Base, User


logger = logging.getLogger(__name__)


def _ensure_schema() -> None:
    # create_all is idempotent; it only creates missing tables and indexes.
    Base.metadata.create_all(bind=ENGINE)


def _seed_admin_if_configured(db: Session) -> None:
    username = settings.seed_admin_username
    password = settings.seed_admin_password
    if not username or not password:
        return

    existing = db.execute(select(User.id).where(func.lower(User.username) == username.lower()).limit(1)).first()
    if existing is not None:
        return

    db.add(
        User(
            username=username,
            password_hash=hash_password(password),
            role="admin",
            name=username,
            is_active=True,
        )
    )
    db.commit()

    logger.warning(
        "Seeded initial admin user from env (username=%r). Change the password after first login.",
        username,
    )


def bootstrap() -> None:
    """Startup bootstrap, safe to run on every start.

    - Creates missing tables when AUTO_CREATE_SCHEMA is on.
    - Seeds an admin user if SEED_ADMIN_USERNAME + SEED_ADMIN_PASSWORD are set.
    """

    if settings.auto_create_schema:
        _ensure_schema()

    with SessionLocal() as db:
        _seed_admin_if_configured(db)
