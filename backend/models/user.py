from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, Enum, Integer, String, Text
from sqlalchemy.sql import func

from models.base import Base


USER_ROLES = ("admin", "teacher")

USER_ROLE = Enum(*USER_ROLES, name="user_role", native_enum=False, create_constraint=True)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(50), nullable=False, unique=True)
    password_hash = Column(Text, nullable=False)
    role = Column(USER_ROLE, nullable=False, default="teacher")
    name = Column(String(100), nullable=False)
    email = Column(String(200), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
