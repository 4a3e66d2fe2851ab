from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from models.enrollment import Enrollment
from models.school_class import SchoolClass


logger = logging.getLogger(__name__)


REJECT_DUPLICATE = "duplicate"
REJECT_FULL = "full"


@dataclass(frozen=True)
class CapacityPolicy:
    """Accept/reject rule for seats; only ``active`` enrollments occupy a seat."""

    def admits(self, *, active_count: int, max_students: int) -> bool:
        return int(active_count) < int(max_students)


DEFAULT_CAPACITY_POLICY = CapacityPolicy()


def lock_class(db: Session, class_id: int) -> SchoolClass | None:
    """Load a class with a row lock held until the transaction ends.

    Concurrent admissions into the same class serialize on this lock on
    PostgreSQL. SQLite has no row locks (the clause is not rendered) and
    serializes writers on the database file instead.
    """

    return db.execute(
        select(SchoolClass)
        .where(SchoolClass.id == int(class_id))
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()


def active_count(db: Session, class_id: int) -> int:
    return int(
        db.execute(
            select(func.count(Enrollment.id))
            .where(Enrollment.class_id == int(class_id))
            .where(Enrollment.status == "active")
        ).scalar_one()
    )


def has_active_enrollment(db: Session, *, student_id: int, class_id: int) -> bool:
    q = (
        select(Enrollment.id)
        .where(Enrollment.student_id == int(student_id))
        .where(Enrollment.class_id == int(class_id))
        .where(Enrollment.status == "active")
        .limit(1)
    )
    return db.execute(q).first() is not None


def admission_rejection(
    db: Session,
    *,
    student_id: int,
    school_class: SchoolClass,
    policy: CapacityPolicy = DEFAULT_CAPACITY_POLICY,
) -> str | None:
    """Return why ``student_id`` cannot take an active seat in the class, or None.

    The duplicate check runs before the capacity check, so a student who is
    already active in a full class is reported as a duplicate.
    """

    if has_active_enrollment(db, student_id=student_id, class_id=school_class.id):
        return REJECT_DUPLICATE
    count = active_count(db, school_class.id)
    if not policy.admits(active_count=count, max_students=school_class.max_students):
        return REJECT_FULL
    return None


def recompute_current_students(db: Session, class_ids: Iterable[int]) -> dict[int, int]:
    """Set ``current_students`` to the live active count for each class.

    Runs inside the caller's transaction; the caller commits. This is the
    only code path that writes ``SchoolClass.current_students``.
    """

    ids = sorted({int(c) for c in class_ids if c is not None})
    if not ids:
        return {}

    rows = db.execute(
        select(Enrollment.class_id, func.count(Enrollment.id))
        .where(Enrollment.class_id.in_(ids))
        .where(Enrollment.status == "active")
        .group_by(Enrollment.class_id)
    ).all()
    counts = {int(class_id): int(n) for class_id, n in rows}

    out: dict[int, int] = {}
    for class_id in ids:
        n = counts.get(class_id, 0)
        db.execute(update(SchoolClass).where(SchoolClass.id == class_id).values(current_students=n))
        out[class_id] = n
    return out


@dataclass(frozen=True)
class CountDrift:
    class_id: int
    class_name: str
    stored: int
    actual: int


def find_count_drift(db: Session) -> list[CountDrift]:
    """Classes whose stored ``current_students`` disagrees with the active count."""

    active = (
        select(Enrollment.class_id.label("class_id"), func.count(Enrollment.id).label("n"))
        .where(Enrollment.status == "active")
        .group_by(Enrollment.class_id)
        .subquery()
    )
    rows = db.execute(
        select(SchoolClass.id, SchoolClass.name, SchoolClass.current_students, func.coalesce(active.c.n, 0))
        .outerjoin(active, active.c.class_id == SchoolClass.id)
        .order_by(SchoolClass.id.asc())
    ).all()
    return [
        CountDrift(class_id=int(r[0]), class_name=str(r[1]), stored=int(r[2] or 0), actual=int(r[3] or 0))
        for r in rows
        if int(r[2] or 0) != int(r[3] or 0)
    ]
