from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from core.database import LIKE_ESCAPE, contains_pattern
from core.errors import NotFoundError
from models.enrollment import Enrollment
from models.schedule_entry import ScheduleEntry
from models.school import School
from models.school_class import SchoolClass
from models.student import Student
from models.subject import Subject
from models.teacher import Teacher
from services.time_range import format_time, format_time_range


# Display names only; day_of_week itself stays an opaque 0-6 index.
DAY_NAMES: tuple[str, ...] = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")

UNASSIGNED_TEACHER = "Not assigned"


def day_name(day_of_week: int) -> str:
    if 0 <= int(day_of_week) < len(DAY_NAMES):
        return DAY_NAMES[int(day_of_week)]
    return str(day_of_week)


def _subject_view(subject: Subject | None, *, with_category: bool = True) -> dict[str, Any] | None:
    if subject is None:
        return None
    out: dict[str, Any] = {"id": subject.id, "name": subject.name, "nameArabic": subject.name_arabic}
    if with_category:
        out["category"] = subject.category
    return out


def entry_view(entry: ScheduleEntry, *, subject: Subject | None = None, class_name: str | None = None) -> dict[str, Any]:
    start = format_time(entry.start_time)
    end = format_time(entry.end_time)
    out: dict[str, Any] = {
        "id": entry.id,
        "classId": entry.class_id,
        "subjectId": entry.subject_id,
        "dayOfWeek": entry.day_of_week,
        "startTime": start,
        "endTime": end,
        "room": entry.room,
        "subject": _subject_view(subject),
        "dayName": day_name(entry.day_of_week),
        "timeRange": format_time_range(start, end),
    }
    if class_name is not None:
        out["className"] = class_name
    return out


def _sort_key(view: dict[str, Any]) -> tuple:
    return (view["dayOfWeek"], view["startTime"], view.get("className") or "")


def _entries_with_subjects(db: Session, class_ids: list[int]) -> list[tuple[ScheduleEntry, Subject | None]]:
    if not class_ids:
        return []
    rows = db.execute(
        select(ScheduleEntry, Subject)
        .outerjoin(Subject, Subject.id == ScheduleEntry.subject_id)
        .where(ScheduleEntry.class_id.in_(class_ids))
        .order_by(ScheduleEntry.day_of_week.asc(), ScheduleEntry.start_time.asc(), ScheduleEntry.id.asc())
    ).all()
    return [(r[0], r[1]) for r in rows]


def class_schedule(db: Session, class_id: int) -> dict[str, Any]:
    cls = db.get(SchoolClass, class_id)
    if cls is None:
        raise NotFoundError("Class not found")

    schedule = [entry_view(e, subject=s) for e, s in _entries_with_subjects(db, [cls.id])]
    schedule.sort(key=_sort_key)
    return {"classId": cls.id, "className": cls.name, "schedule": schedule}


def class_schedule_entries(db: Session, class_id: int) -> list[dict[str, Any]]:
    return [entry_view(e, subject=s) for e, s in _entries_with_subjects(db, [class_id])]


def teacher_schedule(db: Session, teacher_id: int) -> dict[str, Any]:
    teacher = db.get(Teacher, teacher_id)
    if teacher is None:
        raise NotFoundError("Teacher not found")

    classes = db.execute(select(SchoolClass).where(SchoolClass.teacher_id == teacher.id)).scalars().all()
    school_names = _school_names(db, {c.school_id for c in classes})
    by_class = {c.id: c for c in classes}

    schedule: list[dict[str, Any]] = []
    for entry, subject in _entries_with_subjects(db, list(by_class)):
        cls = by_class[entry.class_id]
        view = entry_view(entry, subject=subject, class_name=cls.name)
        view["school"] = school_names.get(cls.school_id, "Unknown")
        schedule.append(view)
    schedule.sort(key=lambda v: (v["dayOfWeek"], v["startTime"]))

    return {
        "teacherId": teacher.id,
        "teacherName": teacher.name,
        "totalClasses": len(classes),
        "schedule": schedule,
    }


def school_schedule(db: Session, school_id: int) -> dict[str, Any]:
    school = db.get(School, school_id)
    if school is None:
        raise NotFoundError("School not found")

    classes = db.execute(select(SchoolClass).where(SchoolClass.school_id == school.id)).scalars().all()
    teacher_names = _teacher_names(db, {c.teacher_id for c in classes if c.teacher_id is not None})
    by_class = {c.id: c for c in classes}

    all_schedules: list[dict[str, Any]] = []
    for entry, subject in _entries_with_subjects(db, list(by_class)):
        cls = by_class[entry.class_id]
        view = entry_view(entry, subject=subject, class_name=cls.name)
        view["teacher"] = teacher_names.get(cls.teacher_id, UNASSIGNED_TEACHER)
        all_schedules.append(view)
    all_schedules.sort(key=_sort_key)

    schedule_by_day = [
        {"day": name, "dayIndex": idx, "classes": [v for v in all_schedules if v["dayOfWeek"] == idx]}
        for idx, name in enumerate(DAY_NAMES)
    ]
    return {
        "schoolId": school.id,
        "schoolName": school.name,
        "totalClasses": len(classes),
        "scheduleByDay": schedule_by_day,
        "allSchedules": all_schedules,
    }


@dataclass(frozen=True)
class ScheduleFilters:
    school_id: int | None = None
    teacher_id: int | None = None
    class_id: int | None = None
    day_of_week: int | None = None
    room: str | None = None


def filtered_schedule(db: Session, filters: ScheduleFilters) -> list[dict[str, Any]]:
    """Entries matching ``filters``, grouped by class (first-appearance order after sorting)."""

    q = (
        select(ScheduleEntry, Subject, SchoolClass)
        .join(SchoolClass, SchoolClass.id == ScheduleEntry.class_id)
        .outerjoin(Subject, Subject.id == ScheduleEntry.subject_id)
    )
    if filters.school_id is not None:
        q = q.where(SchoolClass.school_id == filters.school_id)
    if filters.teacher_id is not None:
        q = q.where(SchoolClass.teacher_id == filters.teacher_id)
    if filters.class_id is not None:
        q = q.where(ScheduleEntry.class_id == filters.class_id)
    if filters.day_of_week is not None:
        q = q.where(ScheduleEntry.day_of_week == filters.day_of_week)
    room = (filters.room or "").strip()
    if room:
        q = q.where(ScheduleEntry.room.ilike(contains_pattern(room), escape=LIKE_ESCAPE))
    q = q.order_by(ScheduleEntry.day_of_week.asc(), ScheduleEntry.start_time.asc(), ScheduleEntry.id.asc())

    rows = db.execute(q).all()
    classes: dict[int, SchoolClass] = {}
    grouped: dict[int, list[dict[str, Any]]] = {}
    for entry, subject, cls in rows:
        classes[cls.id] = cls
        grouped.setdefault(cls.id, []).append(entry_view(entry, subject=subject))

    school_names = _school_names(db, {c.school_id for c in classes.values()})
    teacher_names = _teacher_names(db, {c.teacher_id for c in classes.values() if c.teacher_id is not None})
    students = _active_students_by_class(db, list(classes))

    out: list[dict[str, Any]] = []
    for class_id, schedule in grouped.items():
        cls = classes[class_id]
        out.append(
            {
                "classId": cls.id,
                "className": cls.name,
                "school": {"id": cls.school_id, "name": school_names.get(cls.school_id, "Unknown")},
                "teacher": (
                    {"id": cls.teacher_id, "name": teacher_names.get(cls.teacher_id, UNASSIGNED_TEACHER)}
                    if cls.teacher_id is not None
                    else {"id": 0, "name": UNASSIGNED_TEACHER}
                ),
                "schedule": schedule,
                "students": students.get(cls.id, []),
            }
        )
    return out


def weekly_schedule(db: Session, filters: ScheduleFilters) -> dict[str, Any]:
    return {"schedule": filtered_schedule(db, filters), "dayNames": list(DAY_NAMES)}


def _school_names(db: Session, ids: set[int]) -> dict[int, str]:
    if not ids:
        return {}
    rows = db.execute(select(School.id, School.name).where(School.id.in_(ids))).all()
    return {int(r.id): str(r.name) for r in rows}


def _teacher_names(db: Session, ids: set[int]) -> dict[int, str]:
    if not ids:
        return {}
    rows = db.execute(select(Teacher.id, Teacher.name).where(Teacher.id.in_(ids))).all()
    return {int(r.id): str(r.name) for r in rows}


def _active_students_by_class(db: Session, class_ids: list[int]) -> dict[int, list[dict[str, Any]]]:
    if not class_ids:
        return {}
    rows = db.execute(
        select(Enrollment.class_id, Student.id, Student.name)
        .join(Student, Student.id == Enrollment.student_id)
        .where(Enrollment.class_id.in_(class_ids))
        .where(Enrollment.status == "active")
        .order_by(Student.name.asc())
    ).all()
    out: dict[int, list[dict[str, Any]]] = {}
    for class_id, student_id, name in rows:
        out.setdefault(int(class_id), []).append({"id": int(student_id), "name": str(name)})
    return out
