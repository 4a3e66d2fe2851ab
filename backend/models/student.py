from __future__ import annotations

from sqlalchemy import Column, Date, DateTime, Enum, Integer, String, Text
from sqlalchemy.sql import func

from models.base import Base


GENDERS = ("male", "female")

GENDER = Enum(*GENDERS, name="student_gender", native_enum=False, create_constraint=True)


class Student(Base):
    __tablename__ = "students"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    full_name = Column(String(200), nullable=False)
    date_of_birth = Column(Date, nullable=True)
    gender = Column(GENDER, nullable=False)
    parent_name = Column(String(200), nullable=True)
    parent_phone = Column(String(20), nullable=True)
    parent_email = Column(String(200), nullable=True)
    address = Column(Text, nullable=True)
    enrollment_date = Column(Date, nullable=False)
    academic_year = Column(String(20), nullable=False)
    level = Column(String(50), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
