from __future__ import annotations

from sqlalchemy import Column, DateTime, Enum, Integer, String, Text
from sqlalchemy.sql import func

from models.base import Base


SUBJECT_CATEGORIES = ("quran", "hadith", "fiqh", "aqidah", "arabic", "other")
SUBJECT_LEVELS = ("beginner", "intermediate", "advanced")

SUBJECT_CATEGORY = Enum(*SUBJECT_CATEGORIES, name="subject_category", native_enum=False, create_constraint=True)
SUBJECT_LEVEL = Enum(*SUBJECT_LEVELS, name="subject_level", native_enum=False, create_constraint=True)


class Subject(Base):
    __tablename__ = "subjects"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    name_arabic = Column(String(100), nullable=True)
    category = Column(SUBJECT_CATEGORY, nullable=False)
    level = Column(SUBJECT_LEVEL, nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
