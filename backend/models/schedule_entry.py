from __future__ import annotations

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String, Time, UniqueConstraint
from sqlalchemy.sql import func

from models.base import Base


class ScheduleEntry(Base):
    __tablename__ = "schedule_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    class_id = Column(Integer, ForeignKey("classes.id", ondelete="CASCADE"), nullable=False, index=True)
    subject_id = Column(Integer, ForeignKey("subjects.id"), nullable=False)
    day_of_week = Column(Integer, nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    room = Column(String(50), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("day_of_week >= 0 and day_of_week <= 6", name="ck_schedule_entries_day"),
        CheckConstraint("start_time < end_time", name="ck_schedule_entries_time_order"),
        UniqueConstraint("class_id", "day_of_week", "start_time", name="uq_schedule_entries_class_day_start"),
    )
