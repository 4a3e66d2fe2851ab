from __future__ import annotations

import logging
from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from api.deps import require_admin
from core.database import LIKE_ESCAPE, contains_pattern, get_db
from core.errors import NotFoundError
from models.enrollment import Enrollment
from models.school import School
from models.school_class import SchoolClass
from models.student import Student
from models.teacher import Teacher
from schemas.common import MessageOut, PageParams, Ref, build_pagination
from schemas.student import StudentClassOut, StudentCreate, StudentList, StudentOut, StudentUpdate
from services.enrollment_lifecycle import delete_student as delete_student_cascade


logger = logging.getLogger(__name__)


router = APIRouter()


_SORT_COLUMNS = {
    "name": func.lower(Student.name),
    "fullName": func.lower(Student.full_name),
    "enrollmentDate": Student.enrollment_date,
    "level": Student.level,
    "createdAt": Student.created_at,
}


def _get_student(db: Session, student_id: int) -> Student:
    student = db.get(Student, student_id)
    if student is None:
        raise NotFoundError("Student not found")
    return student


def _active_classes(db: Session, student_ids: list[int]) -> dict[int, list[Ref]]:
    if not student_ids:
        return {}
    rows = db.execute(
        select(Enrollment.student_id, SchoolClass.id, SchoolClass.name)
        .join(SchoolClass, SchoolClass.id == Enrollment.class_id)
        .where(Enrollment.student_id.in_(student_ids))
        .where(Enrollment.status == "active")
        .order_by(SchoolClass.name.asc())
    ).all()
    out: dict[int, list[Ref]] = {}
    for student_id, class_id, class_name in rows:
        out.setdefault(int(student_id), []).append(Ref(id=class_id, name=class_name))
    return out


def _to_out(student: Student, classes: list[Ref]) -> StudentOut:
    return StudentOut.model_validate(student).model_copy(update={"classes": classes})


@router.get("", response_model=StudentList)
def list_students(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    sort_by: str | None = Query(default=None, alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query(default="asc", alias="sortOrder"),
    search: str | None = Query(default=None),
    class_id: int | None = Query(default=None, alias="classId"),
    school_id: int | None = Query(default=None, alias="schoolId"),
    level: str | None = Query(default=None),
    gender: Literal["male", "female"] | None = Query(default=None),
    db: Session = Depends(get_db),
) -> StudentList:
    params = PageParams(page=page, limit=limit)
    q = select(Student)
    if search:
        like = contains_pattern(search.strip())
        q = q.where(
            or_(Student.name.ilike(like, escape=LIKE_ESCAPE), Student.full_name.ilike(like, escape=LIKE_ESCAPE))
        )
    if class_id is not None:
        q = q.where(
            Student.id.in_(
                select(Enrollment.student_id)
                .where(Enrollment.class_id == class_id)
                .where(Enrollment.status == "active")
            )
        )
    if school_id is not None:
        q = q.where(
            Student.id.in_(
                select(Enrollment.student_id)
                .join(SchoolClass, SchoolClass.id == Enrollment.class_id)
                .where(SchoolClass.school_id == school_id)
                .where(Enrollment.status == "active")
            )
        )
    if level:
        q = q.where(Student.level == level)
    if gender:
        q = q.where(Student.gender == gender)

    total = int(db.execute(select(func.count()).select_from(q.subquery())).scalar_one())
    col = _SORT_COLUMNS.get(sort_by or "", Student.id)
    q = q.order_by(col.desc() if sort_order == "desc" else col.asc(), Student.id.asc())
    students = db.execute(q.offset(params.offset).limit(params.limit)).scalars().all()
    classes = _active_classes(db, [s.id for s in students])

    return StudentList(
        students=[_to_out(s, classes.get(s.id, [])) for s in students],
        total=total,
        pagination=build_pagination(total=total, page=params.page, limit=params.limit),
    )


@router.get("/{student_id}", response_model=StudentOut)
def get_student(student_id: int, db: Session = Depends(get_db)) -> StudentOut:
    student = _get_student(db, student_id)
    return _to_out(student, _active_classes(db, [student.id]).get(student.id, []))


@router.get("/{student_id}/classes", response_model=list[StudentClassOut])
def get_student_classes(student_id: int, db: Session = Depends(get_db)) -> list[StudentClassOut]:
    student = _get_student(db, student_id)
    rows = db.execute(
        select(Enrollment, SchoolClass, School.name, Teacher.name)
        .join(SchoolClass, SchoolClass.id == Enrollment.class_id)
        .join(School, School.id == SchoolClass.school_id)
        .outerjoin(Teacher, Teacher.id == SchoolClass.teacher_id)
        .where(Enrollment.student_id == student.id)
        .order_by(Enrollment.enrollment_date.desc(), Enrollment.id.desc())
    ).all()
    return [
        StudentClassOut(
            id=cls.id,
            name=cls.name,
            school=Ref(id=cls.school_id, name=school_name),
            teacher=Ref(id=cls.teacher_id, name=teacher_name) if cls.teacher_id is not None else None,
            academic_year=cls.academic_year,
            enrollment_id=enrollment.id,
            enrollment_date=enrollment.enrollment_date,
            status=enrollment.status,
        )
        for enrollment, cls, school_name, teacher_name in rows
    ]


@router.post("", response_model=StudentOut, status_code=201)
def create_student(
    payload: StudentCreate,
    _admin=Depends(require_admin),
    db: Session = Depends(get_db),
) -> StudentOut:
    student = Student(**payload.model_dump())
    db.add(student)
    db.commit()
    db.refresh(student)
    logger.info("Student created id=%s", student.id)
    return _to_out(student, [])


@router.put("/{student_id}", response_model=StudentOut)
def update_student(
    student_id: int,
    payload: StudentUpdate,
    _admin=Depends(require_admin),
    db: Session = Depends(get_db),
) -> StudentOut:
    student = _get_student(db, student_id)
    required = {"name", "full_name", "gender", "enrollment_date", "academic_year", "level"}
    for key, value in payload.model_dump(exclude_unset=True).items():
        if value is None and key in required:
            continue
        setattr(student, key, value)
    db.commit()
    db.refresh(student)
    return _to_out(student, _active_classes(db, [student.id]).get(student.id, []))


@router.delete("/{student_id}", response_model=MessageOut)
def delete_student(
    student_id: int,
    _admin=Depends(require_admin),
    db: Session = Depends(get_db),
) -> MessageOut:
    delete_student_cascade(db, student_id=student_id)
    return MessageOut(message="Student deleted successfully")
