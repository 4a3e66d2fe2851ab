from __future__ import annotations

from typing import Any

from pydantic import Field

from schemas.base import CamelModel


class ScheduleItemIn(CamelModel):
    subject_id: int
    day_of_week: int = Field(ge=0, le=6)
    start_time: str = Field(min_length=1, max_length=5)
    end_time: str = Field(min_length=1, max_length=5)
    room: str | None = Field(default=None, max_length=50)


class ScheduleValidateRequest(ScheduleItemIn):
    class_id: int


class ScheduleValidateResponse(CamelModel):
    valid: bool
    conflicts: list[str]
    schedule: dict[str, Any]


class EntryConflictOut(CamelModel):
    schedule_id: int
    class_name: str
    subject_name: str
    day_of_week: int
    day_name: str
    time_range: str
    room: str | None = None
    conflicts: list[str]


class ConflictReport(CamelModel):
    total_conflicts: int
    conflicts: list[EntryConflictOut]


class RoomSessionOut(CamelModel):
    class_id: int
    class_name: str
    subject_name: str
    day_of_week: int
    day_name: str
    time_range: str
    duration: float


class RoomUsageOut(CamelModel):
    room: str
    total_hours: float
    sessions: list[RoomSessionOut]
    conflicts: list[str]


class RoomUtilizationReport(CamelModel):
    total_rooms: int
    rooms: list[RoomUsageOut]
