from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from models.class_subject import ClassSubject
from models.enrollment import Enrollment
from models.school import School
from models.school_class import SchoolClass
from models.student import Student
from models.teacher import Teacher
from models.teacher_school import TeacherSchool


@dataclass(frozen=True)
class NamedRef:
    id: int
    name: str


@dataclass
class ClassSummary:
    id: int
    name: str
    school: NamedRef
    teacher: NamedRef | None
    students_count: int
    max_students: int
    academic_year: str
    subjects_count: int


@dataclass
class RosterStudent:
    id: int
    name: str
    full_name: str
    level: str
    classes: list[str] = field(default_factory=list)


@dataclass
class SchoolTeacher:
    id: int
    name: str
    email: str | None
    phone: str | None
    classes_count: int


def _scoped(q, *, school_id: int | None, teacher_id: int | None):
    if school_id is not None:
        q = q.where(SchoolClass.school_id == school_id)
    if teacher_id is not None:
        q = q.where(SchoolClass.teacher_id == teacher_id)
    return q


def class_summaries(
    db: Session, *, school_id: int | None = None, teacher_id: int | None = None
) -> list[ClassSummary]:
    """Classes of a school or a teacher; ``students_count`` counts active enrollments only."""

    active = (
        select(Enrollment.class_id.label("class_id"), func.count().label("n"))
        .where(Enrollment.status == "active")
        .group_by(Enrollment.class_id)
        .subquery()
    )
    subjects = (
        select(ClassSubject.class_id.label("class_id"), func.count().label("n"))
        .group_by(ClassSubject.class_id)
        .subquery()
    )
    q = (
        select(SchoolClass, School.name, Teacher.name, active.c.n, subjects.c.n)
        .join(School, School.id == SchoolClass.school_id)
        .outerjoin(Teacher, Teacher.id == SchoolClass.teacher_id)
        .outerjoin(active, active.c.class_id == SchoolClass.id)
        .outerjoin(subjects, subjects.c.class_id == SchoolClass.id)
        .order_by(SchoolClass.name.asc(), SchoolClass.id.asc())
    )
    rows = db.execute(_scoped(q, school_id=school_id, teacher_id=teacher_id)).all()
    return [
        ClassSummary(
            id=cls.id,
            name=cls.name,
            school=NamedRef(cls.school_id, school_name),
            teacher=NamedRef(cls.teacher_id, teacher_name) if cls.teacher_id is not None else None,
            students_count=int(active_n or 0),
            max_students=cls.max_students,
            academic_year=cls.academic_year,
            subjects_count=int(subjects_n or 0),
        )
        for cls, school_name, teacher_name, active_n, subjects_n in rows
    ]


def active_roster(db: Session, *, school_id: int | None = None, teacher_id: int | None = None) -> list[RosterStudent]:
    """Distinct students actively enrolled in the scoped classes, each with their class names."""

    q = (
        select(Student, SchoolClass.name)
        .join(Enrollment, Enrollment.student_id == Student.id)
        .join(SchoolClass, SchoolClass.id == Enrollment.class_id)
        .where(Enrollment.status == "active")
        .order_by(Student.name.asc(), Student.id.asc(), SchoolClass.name.asc())
    )
    roster: dict[int, RosterStudent] = {}
    for student, class_name in db.execute(_scoped(q, school_id=school_id, teacher_id=teacher_id)).all():
        entry = roster.get(student.id)
        if entry is None:
            entry = roster[student.id] = RosterStudent(
                id=student.id, name=student.name, full_name=student.full_name, level=student.level
            )
        entry.classes.append(class_name)
    return list(roster.values())


def school_teachers(db: Session, school_id: int) -> list[SchoolTeacher]:
    taught = (
        select(SchoolClass.teacher_id.label("teacher_id"), func.count().label("n"))
        .where(SchoolClass.school_id == school_id)
        .where(SchoolClass.teacher_id.is_not(None))
        .group_by(SchoolClass.teacher_id)
        .subquery()
    )
    rows = db.execute(
        select(Teacher, taught.c.n)
        .join(TeacherSchool, TeacherSchool.teacher_id == Teacher.id)
        .outerjoin(taught, taught.c.teacher_id == Teacher.id)
        .where(TeacherSchool.school_id == school_id)
        .order_by(Teacher.name.asc(), Teacher.id.asc())
    ).all()
    return [
        SchoolTeacher(id=t.id, name=t.name, email=t.email, phone=t.phone, classes_count=int(n or 0))
        for t, n in rows
    ]
