from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from models.schedule_entry import ScheduleEntry
from models.school_class import SchoolClass
from models.teacher import Teacher
from services.time_range import TimeRange, format_time_range


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScheduledSlot:
    """A schedule entry (persisted or proposed) with the class data conflict checks need."""

    class_id: int
    time_range: TimeRange
    room: str | None = None
    entry_id: int | None = None
    subject_id: int | None = None
    class_name: str | None = None
    teacher_id: int | None = None
    teacher_name: str | None = None

    @property
    def room_key(self) -> str | None:
        room = (self.room or "").strip()
        return room.lower() or None


@dataclass(frozen=True)
class EntryConflicts:
    slot: ScheduledSlot
    conflicts: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ConflictPolicy:
    """Scheduling double-bookings are warnings for the admin, never a hard rejection."""

    blocking: bool = False

    def evaluate(self, conflicts: list[str]) -> "ScheduleCheck":
        return ScheduleCheck(valid=not conflicts, conflicts=list(conflicts), blocking=self.blocking and bool(conflicts))


@dataclass(frozen=True)
class ScheduleCheck:
    valid: bool
    conflicts: list[str]
    blocking: bool = False


ADVISORY = ConflictPolicy()


def _slot_query():
    return (
        select(
            ScheduleEntry,
            SchoolClass.name.label("class_name"),
            SchoolClass.teacher_id.label("teacher_id"),
            Teacher.name.label("teacher_name"),
        )
        .select_from(ScheduleEntry)
        .join(SchoolClass, SchoolClass.id == ScheduleEntry.class_id)
        .outerjoin(Teacher, Teacher.id == SchoolClass.teacher_id)
    )


def _row_to_slot(row) -> ScheduledSlot:
    entry: ScheduleEntry = row[0]
    return ScheduledSlot(
        entry_id=entry.id,
        class_id=entry.class_id,
        subject_id=entry.subject_id,
        time_range=TimeRange.from_times(entry.day_of_week, entry.start_time, entry.end_time),
        room=entry.room,
        class_name=row.class_name,
        teacher_id=row.teacher_id,
        teacher_name=row.teacher_name,
    )


def load_slots(db: Session, *, day_of_week: int | None = None) -> list[ScheduledSlot]:
    q = _slot_query().order_by(ScheduleEntry.day_of_week.asc(), ScheduleEntry.start_time.asc(), ScheduleEntry.id.asc())
    if day_of_week is not None:
        q = q.where(ScheduleEntry.day_of_week == int(day_of_week))
    return [_row_to_slot(r) for r in db.execute(q).all()]


def pair_conflicts(candidate: ScheduledSlot, existing: ScheduledSlot) -> list[str]:
    """Conflict messages for one candidate/existing pair; room and teacher checks are independent."""

    if not candidate.time_range.overlaps(existing.time_range):
        return []

    out: list[str] = []
    booked_at = format_time_range(existing.time_range.start_label, existing.time_range.end_label)

    if candidate.room_key is not None and candidate.room_key == existing.room_key:
        out.append(
            f"Room conflict: {candidate.room} is already booked at {booked_at} "
            f"for class {existing.class_name or 'Unknown'}"
        )

    if candidate.teacher_id is not None and candidate.teacher_id == existing.teacher_id:
        out.append(
            f"Teacher conflict: {existing.teacher_name or 'Unknown teacher'} is already scheduled at {booked_at}"
        )

    return out


class ScheduleConflictDetector:
    """Finds room and teacher double-bookings against a snapshot of persisted entries."""

    def __init__(self, slots: Iterable[ScheduledSlot]) -> None:
        self._by_day: dict[int, list[ScheduledSlot]] = defaultdict(list)
        for s in slots:
            self._by_day[s.time_range.day_of_week].append(s)

    def add(self, slot: ScheduledSlot) -> None:
        self._by_day[slot.time_range.day_of_week].append(slot)

    @classmethod
    def for_day(cls, db: Session, day_of_week: int) -> "ScheduleConflictDetector":
        return cls(load_slots(db, day_of_week=day_of_week))

    @classmethod
    def for_all(cls, db: Session) -> "ScheduleConflictDetector":
        return cls(load_slots(db))

    @property
    def slots(self) -> list[ScheduledSlot]:
        return [s for day in sorted(self._by_day) for s in self._by_day[day]]

    def conflicts_for(self, candidate: ScheduledSlot, *, exclude_id: int | None = None) -> list[str]:
        conflicts: list[str] = []
        for existing in self._by_day.get(candidate.time_range.day_of_week, []):
            if exclude_id is not None and existing.entry_id == exclude_id:
                continue
            conflicts.extend(pair_conflicts(candidate, existing))
        return conflicts

    def report(self) -> list[EntryConflicts]:
        """Every persisted entry checked against all others (self excluded); only entries with conflicts."""

        out: list[EntryConflicts] = []
        for slot in self.slots:
            found = self.conflicts_for(slot, exclude_id=slot.entry_id)
            if found:
                out.append(EntryConflicts(slot=slot, conflicts=found))
        return out


def build_candidate(
    db: Session,
    *,
    class_id: int,
    time_range: TimeRange,
    room: str | None,
    subject_id: int | None = None,
    entry_id: int | None = None,
) -> ScheduledSlot:
    cls = db.get(SchoolClass, class_id)
    return ScheduledSlot(
        entry_id=entry_id,
        class_id=class_id,
        subject_id=subject_id,
        time_range=time_range,
        room=room,
        class_name=cls.name if cls is not None else None,
        teacher_id=cls.teacher_id if cls is not None else None,
    )


def check_schedule_conflicts(
    db: Session,
    *,
    class_id: int,
    time_range: TimeRange,
    room: str | None,
    subject_id: int | None = None,
    exclude_id: int | None = None,
    policy: ConflictPolicy = ADVISORY,
) -> ScheduleCheck:
    """Validate a proposed slot against the persisted schedule.

    ``time_range`` must already be well formed; malformed input is a hard
    error raised by ``TimeRange.validate`` before this point.
    """

    candidate = build_candidate(db, class_id=class_id, time_range=time_range, room=room, subject_id=subject_id)
    detector = ScheduleConflictDetector.for_day(db, time_range.day_of_week)
    conflicts = detector.conflicts_for(candidate, exclude_id=exclude_id)
    if conflicts:
        logger.info(
            "Schedule conflicts detected class_id=%s day=%s range=%s count=%d",
            class_id,
            time_range.day_of_week,
            time_range.label(),
            len(conflicts),
        )
    return policy.evaluate(conflicts)
