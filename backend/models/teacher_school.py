from __future__ import annotations

from sqlalchemy import Column, ForeignKey, Integer, UniqueConstraint

from models.base import Base


class TeacherSchool(Base):
    __tablename__ = "teacher_schools"

    id = Column(Integer, primary_key=True, autoincrement=True)
    teacher_id = Column(Integer, ForeignKey("teachers.id", ondelete="CASCADE"), nullable=False, index=True)
    school_id = Column(Integer, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)

    __table_args__ = (
        UniqueConstraint("teacher_id", "school_id", name="uq_teacher_schools_teacher_school"),
    )
