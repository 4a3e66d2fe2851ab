from __future__ import annotations

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.sql import func

from models.base import Base


class SchoolClass(Base):
    """A class (study group) in a school.

    ``current_students`` is denormalized: it is only ever written by
    ``services.enrollment_capacity.recompute_current_students``.
    """

    __tablename__ = "classes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    school_id = Column(Integer, ForeignKey("schools.id"), nullable=False, index=True)
    teacher_id = Column(Integer, ForeignKey("teachers.id", ondelete="SET NULL"), nullable=True, index=True)
    primary_subject_id = Column(Integer, ForeignKey("subjects.id", ondelete="SET NULL"), nullable=True)
    max_students = Column(Integer, nullable=False)
    current_students = Column(Integer, nullable=False, default=0)
    academic_year = Column(String(20), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("max_students >= 1 and max_students <= 200", name="ck_classes_max_students"),
        CheckConstraint("current_students >= 0", name="ck_classes_current_students"),
    )
