from __future__ import annotations

import logging
from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from api.deps import require_admin
from core.database import LIKE_ESCAPE, contains_pattern, get_db
from core.errors import ConflictError, NotFoundError, ReferenceNotFoundError, ValidationError
from models.class_subject import ClassSubject
from models.enrollment import Enrollment
from models.schedule_entry import ScheduleEntry
from models.school import School
from models.school_class import SchoolClass
from models.student import Student
from models.subject import Subject
from models.teacher import Teacher
from models.teacher_school import TeacherSchool
from schemas.common import MessageOut, PageParams, Ref, build_pagination
from schemas.school_class import ClassCreate, ClassList, ClassOut, ClassStudentBrief, ClassStudentOut, ClassUpdate
from schemas.subject import SubjectBrief
from services.class_schedule import replace_class_schedule, schedule_warnings, validate_schedule_items
from services.enrollment_capacity import active_count
from services.schedule_views import class_schedule_entries


logger = logging.getLogger(__name__)


router = APIRouter()


_SORT_COLUMNS = {
    "name": func.lower(SchoolClass.name),
    "maxStudents": SchoolClass.max_students,
    "currentStudents": SchoolClass.current_students,
    "academicYear": SchoolClass.academic_year,
    "createdAt": SchoolClass.created_at,
}


def _get_class(db: Session, class_id: int) -> SchoolClass:
    cls = db.get(SchoolClass, class_id)
    if cls is None:
        raise NotFoundError("Class not found")
    return cls


def _subject_ids(db: Session, class_id: int) -> list[int]:
    return sorted(db.execute(select(ClassSubject.subject_id).where(ClassSubject.class_id == class_id)).scalars().all())


def _ensure_school(db: Session, school_id: int) -> None:
    if db.get(School, school_id) is None:
        raise ReferenceNotFoundError("School not found", code="SCHOOL_NOT_FOUND")


def _ensure_teacher_in_school(db: Session, *, teacher_id: int, school_id: int) -> None:
    if db.get(Teacher, teacher_id) is None:
        raise ReferenceNotFoundError("Teacher not found", code="TEACHER_NOT_FOUND")
    assigned = db.execute(
        select(TeacherSchool.id)
        .where(TeacherSchool.teacher_id == teacher_id)
        .where(TeacherSchool.school_id == school_id)
        .limit(1)
    ).first()
    if assigned is None:
        raise ValidationError("Teacher is not assigned to this school", code="TEACHER_NOT_IN_SCHOOL")


def _ensure_subjects(db: Session, subject_ids: list[int]) -> None:
    found = set(db.execute(select(Subject.id).where(Subject.id.in_(subject_ids))).scalars().all())
    for subject_id in subject_ids:
        if subject_id not in found:
            raise ReferenceNotFoundError(f"Subject with ID {subject_id} not found", code="SUBJECT_NOT_FOUND")


def _ensure_primary_subject(primary_subject_id: int | None, subject_ids: list[int]) -> None:
    if primary_subject_id is not None and primary_subject_id not in subject_ids:
        raise ValidationError(
            "Primary subject must be included in the subject list", code="PRIMARY_SUBJECT_NOT_IN_CLASS"
        )


def _ensure_unique_name(db: Session, *, school_id: int, name: str, exclude_id: int | None) -> None:
    q = (
        select(SchoolClass.id)
        .where(SchoolClass.school_id == school_id)
        .where(func.lower(SchoolClass.name) == name.lower())
    )
    if exclude_id is not None:
        q = q.where(SchoolClass.id != exclude_id)
    if db.execute(q.limit(1)).first() is not None:
        raise ConflictError("Class with this name already exists in the school", code="CLASS_NAME_TAKEN")


def _set_subjects(db: Session, class_id: int, subject_ids: list[int]) -> None:
    db.execute(delete(ClassSubject).where(ClassSubject.class_id == class_id))
    db.add_all([ClassSubject(class_id=class_id, subject_id=s) for s in sorted(set(subject_ids))])


# PostgreSQL names the constraint; SQLite names the table and columns.
_DUPLICATE_SLOT_MARKERS = (
    "uq_schedule_entries_class_day_start",
    "unique constraint failed: schedule_entries.",
)


def _is_duplicate_slot(exc: IntegrityError) -> bool:
    message = str(exc.orig).lower()
    return any(marker in message for marker in _DUPLICATE_SLOT_MARKERS)


def _commit_schedule(db: Session) -> None:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if not _is_duplicate_slot(exc):
            raise
        raise ValidationError(
            "A class cannot have two schedule entries starting at the same time on the same day",
            code="DUPLICATE_SCHEDULE_SLOT",
        ) from exc


def _to_out(db: Session, cls: SchoolClass, *, warnings: list[str] | None = None) -> ClassOut:
    school = db.get(School, cls.school_id)
    teacher = db.get(Teacher, cls.teacher_id) if cls.teacher_id is not None else None
    subject_ids = _subject_ids(db, cls.id)
    subjects = (
        db.execute(select(Subject).where(Subject.id.in_(subject_ids)).order_by(Subject.id)).scalars().all()
        if subject_ids
        else []
    )
    primary = next((s for s in subjects if s.id == cls.primary_subject_id), None)
    students = db.execute(
        select(Student)
        .join(Enrollment, Enrollment.student_id == Student.id)
        .where(Enrollment.class_id == cls.id)
        .where(Enrollment.status == "active")
        .order_by(Student.name.asc())
    ).scalars().all()

    return ClassOut(
        id=cls.id,
        name=cls.name,
        school_id=cls.school_id,
        teacher_id=cls.teacher_id,
        subject_ids=subject_ids,
        primary_subject_id=cls.primary_subject_id,
        max_students=cls.max_students,
        current_students=cls.current_students,
        academic_year=cls.academic_year,
        school=Ref(id=school.id, name=school.name) if school is not None else Ref(id=0, name="Unknown"),
        teacher=Ref(id=teacher.id, name=teacher.name) if teacher is not None else None,
        subjects=[SubjectBrief.model_validate(s) for s in subjects],
        primary_subject=SubjectBrief.model_validate(primary) if primary is not None else None,
        students=[ClassStudentBrief.model_validate(s) for s in students],
        schedule=class_schedule_entries(db, cls.id),
        schedule_warnings=warnings or [],
        created_at=cls.created_at,
        updated_at=cls.updated_at,
    )


@router.get("", response_model=ClassList)
def list_classes(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    sort_by: str | None = Query(default=None, alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query(default="asc", alias="sortOrder"),
    search: str | None = Query(default=None),
    school_id: int | None = Query(default=None, alias="schoolId"),
    teacher_id: int | None = Query(default=None, alias="teacherId"),
    subject_id: int | None = Query(default=None, alias="subjectId"),
    academic_year: str | None = Query(default=None, alias="academicYear"),
    db: Session = Depends(get_db),
) -> ClassList:
    params = PageParams(page=page, limit=limit)
    q = select(SchoolClass)
    if search:
        q = q.where(SchoolClass.name.ilike(contains_pattern(search.strip()), escape=LIKE_ESCAPE))
    if school_id is not None:
        q = q.where(SchoolClass.school_id == school_id)
    if teacher_id is not None:
        q = q.where(SchoolClass.teacher_id == teacher_id)
    if subject_id is not None:
        q = q.where(SchoolClass.id.in_(select(ClassSubject.class_id).where(ClassSubject.subject_id == subject_id)))
    if academic_year:
        q = q.where(SchoolClass.academic_year == academic_year)

    total = int(db.execute(select(func.count()).select_from(q.subquery())).scalar_one())
    col = _SORT_COLUMNS.get(sort_by or "", SchoolClass.id)
    q = q.order_by(col.desc() if sort_order == "desc" else col.asc(), SchoolClass.id.asc())
    classes = db.execute(q.offset(params.offset).limit(params.limit)).scalars().all()

    return ClassList(
        classes=[_to_out(db, c) for c in classes],
        total=total,
        pagination=build_pagination(total=total, page=params.page, limit=params.limit),
    )


@router.get("/{class_id}", response_model=ClassOut)
def get_class(class_id: int, db: Session = Depends(get_db)) -> ClassOut:
    return _to_out(db, _get_class(db, class_id))


@router.get("/{class_id}/students", response_model=list[ClassStudentOut])
def get_class_students(class_id: int, db: Session = Depends(get_db)) -> list[ClassStudentOut]:
    cls = _get_class(db, class_id)
    rows = db.execute(
        select(Student, Enrollment)
        .join(Enrollment, Enrollment.student_id == Student.id)
        .where(Enrollment.class_id == cls.id)
        .where(Enrollment.status == "active")
        .order_by(Student.name.asc())
    ).all()
    return [
        ClassStudentOut(
            id=student.id,
            name=student.name,
            full_name=student.full_name,
            level=student.level,
            enrollment_id=enrollment.id,
            enrollment_date=enrollment.enrollment_date,
            status=enrollment.status,
        )
        for student, enrollment in rows
    ]


@router.get("/{class_id}/schedule")
def get_class_schedule(class_id: int, db: Session = Depends(get_db)) -> list[dict]:
    cls = _get_class(db, class_id)
    return class_schedule_entries(db, cls.id)


@router.post("", response_model=ClassOut, status_code=201)
def create_class(
    payload: ClassCreate,
    _admin=Depends(require_admin),
    db: Session = Depends(get_db),
) -> ClassOut:
    _ensure_school(db, payload.school_id)
    if payload.teacher_id is not None:
        _ensure_teacher_in_school(db, teacher_id=payload.teacher_id, school_id=payload.school_id)
    _ensure_subjects(db, payload.subject_ids)
    _ensure_primary_subject(payload.primary_subject_id, payload.subject_ids)
    proposed = validate_schedule_items(payload.schedule or [], subject_ids=payload.subject_ids)
    name = payload.name.strip()
    _ensure_unique_name(db, school_id=payload.school_id, name=name, exclude_id=None)

    cls = SchoolClass(
        name=name,
        school_id=payload.school_id,
        teacher_id=payload.teacher_id,
        primary_subject_id=payload.primary_subject_id,
        max_students=payload.max_students,
        current_students=0,
        academic_year=payload.academic_year,
    )
    db.add(cls)
    db.flush()
    _set_subjects(db, cls.id, payload.subject_ids)
    warnings = schedule_warnings(db, school_class=cls, proposed=proposed)
    replace_class_schedule(db, class_id=cls.id, proposed=proposed)
    _commit_schedule(db)
    db.refresh(cls)

    logger.info("Class created id=%s school_id=%s entries=%d warnings=%d", cls.id, cls.school_id, len(proposed), len(warnings))
    return _to_out(db, cls, warnings=warnings)


@router.put("/{class_id}", response_model=ClassOut)
def update_class(
    class_id: int,
    payload: ClassUpdate,
    _admin=Depends(require_admin),
    db: Session = Depends(get_db),
) -> ClassOut:
    cls = _get_class(db, class_id)
    data = payload.model_dump(exclude_unset=True, exclude={"schedule"})

    school_id = data.get("school_id") or cls.school_id
    if data.get("school_id") is not None:
        _ensure_school(db, school_id)

    teacher_id = data["teacher_id"] if "teacher_id" in data else cls.teacher_id
    if teacher_id is not None and ("teacher_id" in data or school_id != cls.school_id):
        _ensure_teacher_in_school(db, teacher_id=teacher_id, school_id=school_id)

    subject_ids = data.pop("subject_ids", None)
    if subject_ids is not None:
        _ensure_subjects(db, subject_ids)
    effective_subjects = subject_ids if subject_ids is not None else _subject_ids(db, cls.id)
    primary_subject_id = data["primary_subject_id"] if "primary_subject_id" in data else cls.primary_subject_id
    _ensure_primary_subject(primary_subject_id, effective_subjects)

    if payload.schedule is not None:
        proposed = validate_schedule_items(payload.schedule, subject_ids=effective_subjects)
    else:
        proposed = None
        if subject_ids is not None:
            kept = set(
                db.execute(select(ScheduleEntry.subject_id).where(ScheduleEntry.class_id == cls.id)).scalars().all()
            )
            if not kept <= set(effective_subjects):
                raise ValidationError(
                    "Schedule subject must be included in class subjects", code="SCHEDULE_SUBJECT_NOT_IN_CLASS"
                )

    name = (data.get("name") or cls.name).strip()
    if name.lower() != cls.name.lower() or school_id != cls.school_id:
        _ensure_unique_name(db, school_id=school_id, name=name, exclude_id=cls.id)

    max_students = data.get("max_students") or cls.max_students
    if max_students < active_count(db, cls.id):
        raise ValidationError(
            "maxStudents cannot be lower than the number of active students", code="CAPACITY_BELOW_ENROLLMENT"
        )

    cls.name = name
    cls.school_id = school_id
    cls.teacher_id = teacher_id
    cls.primary_subject_id = primary_subject_id
    cls.max_students = max_students
    if data.get("academic_year"):
        cls.academic_year = data["academic_year"]
    if subject_ids is not None:
        _set_subjects(db, cls.id, subject_ids)

    warnings: list[str] = []
    if proposed is not None:
        db.flush()
        warnings = schedule_warnings(db, school_class=cls, proposed=proposed)
        replace_class_schedule(db, class_id=cls.id, proposed=proposed)
    _commit_schedule(db)
    db.refresh(cls)

    logger.info("Class updated id=%s schedule_replaced=%s warnings=%d", cls.id, proposed is not None, len(warnings))
    return _to_out(db, cls, warnings=warnings)


@router.delete("/{class_id}", response_model=MessageOut)
def delete_class(
    class_id: int,
    _admin=Depends(require_admin),
    db: Session = Depends(get_db),
) -> MessageOut:
    cls = _get_class(db, class_id)
    if active_count(db, cls.id) > 0:
        raise ConflictError(
            "Cannot delete class with active student enrollments. Please remove all students first.",
            code="CLASS_IN_USE",
        )

    db.execute(delete(ScheduleEntry).where(ScheduleEntry.class_id == cls.id))
    db.execute(delete(ClassSubject).where(ClassSubject.class_id == cls.id))
    db.execute(delete(Enrollment).where(Enrollment.class_id == cls.id))
    db.delete(cls)
    db.commit()
    logger.info("Class deleted id=%s", class_id)
    return MessageOut(message="Class deleted successfully")
