from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable

from sqlalchemy import delete
from sqlalchemy.orm import Session

from core.errors import ValidationError
from models.schedule_entry import ScheduleEntry
from models.school_class import SchoolClass
from models.teacher import Teacher
from services.schedule_conflicts import ScheduleConflictDetector, ScheduledSlot, load_slots
from services.time_range import TimeRange, minutes_to_time


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProposedEntry:
    subject_id: int
    time_range: TimeRange
    room: str | None


def _clean_room(room: Any) -> str | None:
    if room is None:
        return None
    return str(room).strip() or None


def validate_schedule_items(items: Iterable[Any], *, subject_ids: Iterable[int]) -> list[ProposedEntry]:
    """Hard checks for a proposed class schedule, in order; the first failure raises.

    Each item needs ``subject_id``, ``day_of_week``, ``start_time``,
    ``end_time`` and optionally ``room``.
    """

    allowed = {int(s) for s in subject_ids}
    out: list[ProposedEntry] = []
    for item in items:
        tr = TimeRange.parse(item.day_of_week, item.start_time, item.end_time).validate()
        if int(item.subject_id) not in allowed:
            raise ValidationError(
                "Schedule subject must be included in class subjects",
                code="SCHEDULE_SUBJECT_NOT_IN_CLASS",
            )
        out.append(ProposedEntry(subject_id=int(item.subject_id), time_range=tr, room=_clean_room(getattr(item, "room", None))))
    return out


def schedule_warnings(db: Session, *, school_class: SchoolClass, proposed: list[ProposedEntry]) -> list[str]:
    """Advisory conflicts for a schedule that is about to replace the class's current one.

    The class's own persisted entries are left out (they are being
    replaced); proposed entries are also checked against each other.
    """

    teacher_name = None
    if school_class.teacher_id is not None:
        teacher = db.get(Teacher, school_class.teacher_id)
        teacher_name = teacher.name if teacher is not None else None

    others = [s for s in load_slots(db) if s.class_id != school_class.id]
    detector = ScheduleConflictDetector(others)
    warnings: list[str] = []
    for p in proposed:
        slot = ScheduledSlot(
            class_id=school_class.id,
            subject_id=p.subject_id,
            time_range=p.time_range,
            room=p.room,
            class_name=school_class.name,
            teacher_id=school_class.teacher_id,
            teacher_name=teacher_name,
        )
        warnings.extend(detector.conflicts_for(slot))
        detector.add(slot)

    if warnings:
        logger.warning("Class schedule has %d conflict(s) class_id=%s", len(warnings), school_class.id)
    return warnings


def replace_class_schedule(db: Session, *, class_id: int, proposed: list[ProposedEntry]) -> list[ScheduleEntry]:
    """Delete every entry of the class and insert ``proposed``; the caller commits."""

    db.execute(delete(ScheduleEntry).where(ScheduleEntry.class_id == int(class_id)))
    entries = [
        ScheduleEntry(
            class_id=int(class_id),
            subject_id=p.subject_id,
            day_of_week=p.time_range.day_of_week,
            start_time=minutes_to_time(p.time_range.start),
            end_time=minutes_to_time(p.time_range.end),
            room=p.room,
        )
        for p in proposed
    ]
    db.add_all(entries)
    return entries

