from __future__ import annotations

from sqlalchemy import Column, Date, DateTime, Enum, ForeignKey, Index, Integer, String, text
from sqlalchemy.sql import func

from models.base import Base


ENROLLMENT_STATUSES = ("active", "inactive", "transferred", "graduated")

ENROLLMENT_STATUS = Enum(
    *ENROLLMENT_STATUSES,
    name="enrollment_status",
    native_enum=False,
    create_constraint=True,
)


class Enrollment(Base):
    __tablename__ = "enrollments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    class_id = Column(Integer, ForeignKey("classes.id"), nullable=False, index=True)
    status = Column(ENROLLMENT_STATUS, nullable=False, default="active")
    enrollment_date = Column(Date, nullable=False)
    academic_year = Column(String(20), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        # At most one active row per (student, class); history rows are unrestricted.
        Index(
            "ux_enrollments_active_student_class",
            "student_id",
            "class_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
        Index("ix_enrollments_class_status", "class_id", "status"),
    )
