from __future__ import annotations

from sqlalchemy import CheckConstraint, Column, DateTime, Enum, Integer, String, Text
from sqlalchemy.sql import func

from models.base import Base


SCHOOL_TYPES = ("madrasa", "islamic_school", "regular_school")

SCHOOL_TYPE = Enum(*SCHOOL_TYPES, name="school_type", native_enum=False, create_constraint=True)


class School(Base):
    __tablename__ = "schools"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    school_type = Column(SCHOOL_TYPE, nullable=False)
    founded_year = Column(Integer, nullable=False)
    address = Column(Text, nullable=True)
    phone = Column(String(20), nullable=True)
    email = Column(String(200), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("founded_year >= 1900", name="ck_schools_founded_year"),
    )
