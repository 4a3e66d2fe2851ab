from __future__ import annotations

import logging
from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from api.deps import require_admin
from core.config import settings
from core.database import LIKE_ESCAPE, contains_pattern, get_db
from core.errors import NotFoundError
from models.enrollment import Enrollment
from models.school import School
from models.school_class import SchoolClass
from models.student import Student
from schemas.common import MessageOut, PageParams, Ref, build_pagination
from schemas.enrollment import (
    BulkEnrollmentOut,
    EnrollmentBulkCreate,
    EnrollmentCreate,
    EnrollmentList,
    EnrollmentOut,
    EnrollmentStatusUpdate,
    EnrollmentTransfer,
    StudentRef,
)
from services import enrollment_lifecycle


logger = logging.getLogger(__name__)


router = APIRouter()


_SORT_COLUMNS = {
    "enrollmentDate": Enrollment.enrollment_date,
    "status": Enrollment.status,
    "academicYear": Enrollment.academic_year,
    "createdAt": Enrollment.created_at,
    "studentName": func.lower(Student.name),
    "className": func.lower(SchoolClass.name),
}


def _base_query():
    return (
        select(Enrollment, Student, SchoolClass, School)
        .join(Student, Student.id == Enrollment.student_id)
        .join(SchoolClass, SchoolClass.id == Enrollment.class_id)
        .join(School, School.id == SchoolClass.school_id)
    )


def _row_to_out(enrollment: Enrollment, student: Student, cls: SchoolClass, school: School) -> EnrollmentOut:
    return EnrollmentOut(
        id=enrollment.id,
        student_id=enrollment.student_id,
        class_id=enrollment.class_id,
        status=enrollment.status,
        enrollment_date=enrollment.enrollment_date,
        academic_year=enrollment.academic_year,
        student=StudentRef(id=student.id, name=student.name, full_name=student.full_name),
        class_=Ref(id=cls.id, name=cls.name),
        school=Ref(id=school.id, name=school.name),
        created_at=enrollment.created_at,
        updated_at=enrollment.updated_at,
    )


def _load_out(db: Session, enrollment_ids: list[int]) -> list[EnrollmentOut]:
    if not enrollment_ids:
        return []
    rows = db.execute(_base_query().where(Enrollment.id.in_(enrollment_ids))).all()
    by_id = {r[0].id: _row_to_out(*r) for r in rows}
    return [by_id[i] for i in enrollment_ids if i in by_id]


def _one_out(db: Session, enrollment_id: int) -> EnrollmentOut:
    found = _load_out(db, [enrollment_id])
    if not found:
        raise NotFoundError("Enrollment not found")
    return found[0]


@router.get("", response_model=EnrollmentList)
def list_enrollments(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    sort_by: str | None = Query(default=None, alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query(default="asc", alias="sortOrder"),
    search: str | None = Query(default=None),
    student_id: int | None = Query(default=None, alias="studentId"),
    class_id: int | None = Query(default=None, alias="classId"),
    school_id: int | None = Query(default=None, alias="schoolId"),
    status: Literal["active", "inactive", "transferred", "graduated"] | None = Query(default=None),
    academic_year: str | None = Query(default=None, alias="academicYear"),
    db: Session = Depends(get_db),
) -> EnrollmentList:
    params = PageParams(page=page, limit=limit)
    conditions = []
    if search:
        like = contains_pattern(search.strip())
        conditions.append(
            or_(
                Student.name.ilike(like, escape=LIKE_ESCAPE),
                Student.full_name.ilike(like, escape=LIKE_ESCAPE),
                SchoolClass.name.ilike(like, escape=LIKE_ESCAPE),
            )
        )
    if student_id is not None:
        conditions.append(Enrollment.student_id == student_id)
    if class_id is not None:
        conditions.append(Enrollment.class_id == class_id)
    if school_id is not None:
        conditions.append(SchoolClass.school_id == school_id)
    if status:
        conditions.append(Enrollment.status == status)
    if academic_year:
        conditions.append(Enrollment.academic_year == academic_year)

    count_q = (
        select(func.count(Enrollment.id))
        .select_from(Enrollment)
        .join(Student, Student.id == Enrollment.student_id)
        .join(SchoolClass, SchoolClass.id == Enrollment.class_id)
        .where(*conditions)
    )
    total = int(db.execute(count_q).scalar_one())
    q = _base_query().where(*conditions)
    col = _SORT_COLUMNS.get(sort_by or "", Enrollment.id)
    q = q.order_by(col.desc() if sort_order == "desc" else col.asc(), Enrollment.id.asc())
    rows = db.execute(q.offset(params.offset).limit(params.limit)).all()

    return EnrollmentList(
        enrollments=[_row_to_out(*r) for r in rows],
        total=total,
        pagination=build_pagination(total=total, page=params.page, limit=params.limit),
    )


@router.get("/{enrollment_id}", response_model=EnrollmentOut)
def get_enrollment(enrollment_id: int, db: Session = Depends(get_db)) -> EnrollmentOut:
    return _one_out(db, enrollment_id)


@router.post("", response_model=EnrollmentOut, status_code=201)
def create_enrollment(
    payload: EnrollmentCreate,
    _admin=Depends(require_admin),
    db: Session = Depends(get_db),
) -> EnrollmentOut:
    enrollment = enrollment_lifecycle.create_enrollment(
        db,
        student_id=payload.student_id,
        class_id=payload.class_id,
        enrollment_date=payload.enrollment_date,
        academic_year=payload.academic_year,
    )
    return _one_out(db, enrollment.id)


@router.post("/bulk", response_model=BulkEnrollmentOut)
def bulk_create_enrollments(
    payload: EnrollmentBulkCreate,
    _admin=Depends(require_admin),
    db: Session = Depends(get_db),
) -> BulkEnrollmentOut:
    result = enrollment_lifecycle.bulk_create_enrollments(
        db,
        student_ids=payload.student_ids,
        class_id=payload.class_id,
        enrollment_date=payload.enrollment_date,
        academic_year=payload.academic_year,
    )
    return BulkEnrollmentOut(created=_load_out(db, [e.id for e in result.created]), errors=result.errors)


@router.put("/{enrollment_id}", response_model=EnrollmentOut)
def update_enrollment(
    enrollment_id: int,
    payload: EnrollmentStatusUpdate,
    _admin=Depends(require_admin),
    db: Session = Depends(get_db),
) -> EnrollmentOut:
    enrollment = enrollment_lifecycle.update_enrollment_status(db, enrollment_id=enrollment_id, status=payload.status)
    return _one_out(db, enrollment.id)


def transfer_enrollment(
    enrollment_id: int,
    payload: EnrollmentTransfer,
    _admin=Depends(require_admin),
    db: Session = Depends(get_db),
) -> EnrollmentOut:
    new_enrollment = enrollment_lifecycle.transfer_enrollment(
        db, enrollment_id=enrollment_id, new_class_id=payload.new_class_id
    )
    return _one_out(db, new_enrollment.id)


if settings.enable_enrollment_transfer:
    router.add_api_route(
        "/{enrollment_id}/transfer",
        transfer_enrollment,
        methods=["PUT"],
        response_model=EnrollmentOut,
    )


@router.delete("/{enrollment_id}", response_model=MessageOut)
def delete_enrollment(
    enrollment_id: int,
    _admin=Depends(require_admin),
    db: Session = Depends(get_db),
) -> MessageOut:
    enrollment_lifecycle.delete_enrollment(db, enrollment_id=enrollment_id)
    return MessageOut(message="Enrollment deleted successfully")
