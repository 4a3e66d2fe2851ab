from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from api.deps import require_admin
from core.database import get_db
from core.errors import ReferenceNotFoundError
from models.school_class import SchoolClass
from models.subject import Subject
from schemas.schedule import (
    ConflictReport,
    EntryConflictOut,
    RoomSessionOut,
    RoomUsageOut,
    RoomUtilizationReport,
    ScheduleValidateRequest,
    ScheduleValidateResponse,
)
from services.room_utilization import room_utilization_report
from services.schedule_conflicts import ScheduleConflictDetector, check_schedule_conflicts
from services.schedule_views import (
    ScheduleFilters,
    class_schedule,
    day_name,
    filtered_schedule,
    school_schedule,
    teacher_schedule,
    weekly_schedule,
)
from services.time_range import TimeRange


logger = logging.getLogger(__name__)


router = APIRouter()


def _filters(
    school_id: int | None = Query(default=None, alias="schoolId"),
    teacher_id: int | None = Query(default=None, alias="teacherId"),
    class_id: int | None = Query(default=None, alias="classId"),
    day_of_week: int | None = Query(default=None, alias="dayOfWeek", ge=0, le=6),
    room: str | None = Query(default=None),
) -> ScheduleFilters:
    return ScheduleFilters(
        school_id=school_id,
        teacher_id=teacher_id,
        class_id=class_id,
        day_of_week=day_of_week,
        room=room,
    )


@router.get("")
def get_schedule(
    filters: ScheduleFilters = Depends(_filters),
    db: Session = Depends(get_db),
) -> list[dict[str, Any]]:
    return filtered_schedule(db, filters)


@router.get("/weekly")
def get_weekly_schedule(
    filters: ScheduleFilters = Depends(_filters),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    return weekly_schedule(db, filters)


@router.get("/class/{class_id}")
def get_class_schedule(class_id: int, db: Session = Depends(get_db)) -> dict[str, Any]:
    return class_schedule(db, class_id)


@router.get("/teacher/{teacher_id}")
def get_teacher_schedule(teacher_id: int, db: Session = Depends(get_db)) -> dict[str, Any]:
    return teacher_schedule(db, teacher_id)


@router.get("/school/{school_id}")
def get_school_schedule(school_id: int, db: Session = Depends(get_db)) -> dict[str, Any]:
    return school_schedule(db, school_id)


@router.post("/validate", response_model=ScheduleValidateResponse)
def validate_schedule(
    payload: ScheduleValidateRequest,
    _admin=Depends(require_admin),
    db: Session = Depends(get_db),
) -> ScheduleValidateResponse:
    time_range = TimeRange.parse(payload.day_of_week, payload.start_time, payload.end_time).validate()
    if db.get(SchoolClass, payload.class_id) is None:
        raise ReferenceNotFoundError("Class not found", code="CLASS_NOT_FOUND")

    check = check_schedule_conflicts(
        db,
        class_id=payload.class_id,
        subject_id=payload.subject_id,
        time_range=time_range,
        room=payload.room,
    )
    return ScheduleValidateResponse(
        valid=check.valid,
        conflicts=check.conflicts,
        schedule={
            "classId": payload.class_id,
            "subjectId": payload.subject_id,
            "dayOfWeek": time_range.day_of_week,
            "startTime": time_range.start_label,
            "endTime": time_range.end_label,
            "room": payload.room,
        },
    )


@router.get("/conflicts", response_model=ConflictReport)
def get_schedule_conflicts(db: Session = Depends(get_db)) -> ConflictReport:
    found = ScheduleConflictDetector.for_all(db).report()

    subject_ids = {f.slot.subject_id for f in found if f.slot.subject_id is not None}
    subject_names: dict[int, str] = {}
    if subject_ids:
        rows = db.execute(select(Subject.id, Subject.name).where(Subject.id.in_(subject_ids))).all()
        subject_names = {int(r.id): str(r.name) for r in rows}

    conflicts = [
        EntryConflictOut(
            schedule_id=f.slot.entry_id,
            class_name=f.slot.class_name or "Unknown",
            subject_name=subject_names.get(f.slot.subject_id, "Unknown"),
            day_of_week=f.slot.time_range.day_of_week,
            day_name=day_name(f.slot.time_range.day_of_week),
            time_range=f.slot.time_range.label(),
            room=f.slot.room,
            conflicts=f.conflicts,
        )
        for f in found
    ]
    if conflicts:
        logger.info("Schedule conflict report: %d entries with conflicts", len(conflicts))
    return ConflictReport(total_conflicts=len(conflicts), conflicts=conflicts)


@router.get("/rooms", response_model=RoomUtilizationReport)
def get_room_utilization(db: Session = Depends(get_db)) -> RoomUtilizationReport:
    usages = room_utilization_report(db)
    rooms = [
        RoomUsageOut(
            room=u.room,
            total_hours=u.total_hours,
            sessions=[RoomSessionOut.model_validate(s) for s in u.sessions],
            conflicts=u.conflicts,
        )
        for u in usages
    ]
    return RoomUtilizationReport(total_rooms=len(rooms), rooms=rooms)
