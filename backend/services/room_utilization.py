from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.orm import Session

from models.subject import Subject
from services.schedule_conflicts import ScheduleConflictDetector, ScheduledSlot, load_slots
from services.schedule_views import day_name


@dataclass
class RoomSession:
    class_id: int
    class_name: str
    subject_name: str
    day_of_week: int
    day_name: str
    time_range: str
    duration: float


@dataclass
class RoomUsage:
    room: str
    total_hours: float = 0.0
    sessions: list[RoomSession] = field(default_factory=list)
    conflicts: list[str] = field(default_factory=list)


def aggregate_room_utilization(
    slots: list[ScheduledSlot],
    *,
    subject_names: dict[int, str] | None = None,
    detector: ScheduleConflictDetector | None = None,
) -> list[RoomUsage]:
    """Group slots by room (case-insensitive), summing booked hours.

    Overlapping sessions in the same room are each counted; the per-room
    ``conflicts`` list is what surfaces the double-booking. Slots without a
    room are not part of any room's utilization. The display label is the
    first-seen casing of the room.
    """

    subject_names = subject_names or {}
    if detector is None:
        detector = ScheduleConflictDetector(slots)

    by_key: dict[str, RoomUsage] = {}
    for slot in slots:
        key = slot.room_key
        if key is None:
            continue
        usage = by_key.get(key)
        if usage is None:
            usage = RoomUsage(room=str(slot.room).strip())
            by_key[key] = usage

        tr = slot.time_range
        usage.total_hours += tr.duration_hours
        usage.sessions.append(
            RoomSession(
                class_id=slot.class_id,
                class_name=slot.class_name or "Unknown",
                subject_name=subject_names.get(slot.subject_id, "Unknown"),
                day_of_week=tr.day_of_week,
                day_name=day_name(tr.day_of_week),
                time_range=tr.label(),
                duration=tr.duration_hours,
            )
        )
        usage.conflicts.extend(detector.conflicts_for(slot, exclude_id=slot.entry_id))

    return sorted(by_key.values(), key=lambda u: u.total_hours, reverse=True)


def room_utilization_report(db: Session) -> list[RoomUsage]:
    slots = load_slots(db)
    subject_ids = {s.subject_id for s in slots if s.subject_id is not None}
    subject_names: dict[int, str] = {}
    if subject_ids:
        rows = db.execute(select(Subject.id, Subject.name).where(Subject.id.in_(subject_ids))).all()
        subject_names = {int(r.id): str(r.name) for r in rows}
    return aggregate_room_utilization(slots, subject_names=subject_names)
