from __future__ import annotations

import logging
from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import Session

from api.deps import require_admin
from core.database import LIKE_ESCAPE, contains_pattern, get_db
from core.errors import ConflictError, NotFoundError, ReferenceNotFoundError
from models.school import School
from models.school_class import SchoolClass
from models.teacher import Teacher
from models.teacher_school import TeacherSchool
from schemas.common import MessageOut, PageParams, Ref, build_pagination
from schemas.school_class import ClassSummaryOut
from schemas.student import RosterStudentOut
from schemas.teacher import TeacherCreate, TeacherList, TeacherOut, TeacherUpdate
from services import rosters


logger = logging.getLogger(__name__)


router = APIRouter()


_SORT_COLUMNS = {
    "name": func.lower(Teacher.name),
    "joinDate": Teacher.join_date,
    "createdAt": Teacher.created_at,
}


def _get_teacher(db: Session, teacher_id: int) -> Teacher:
    teacher = db.get(Teacher, teacher_id)
    if teacher is None:
        raise NotFoundError("Teacher not found")
    return teacher


def _ensure_schools_exist(db: Session, school_ids: list[int]) -> None:
    found = set(db.execute(select(School.id).where(School.id.in_(school_ids))).scalars().all())
    for school_id in school_ids:
        if school_id not in found:
            raise ReferenceNotFoundError(f"School with ID {school_id} not found", code="SCHOOL_NOT_FOUND")


def _ensure_unique_email(db: Session, *, email: str | None, exclude_id: int | None) -> None:
    if not email:
        return
    q = select(Teacher.id).where(func.lower(Teacher.email) == email.lower())
    if exclude_id is not None:
        q = q.where(Teacher.id != exclude_id)
    if db.execute(q.limit(1)).first() is not None:
        raise ConflictError("Teacher with this email already exists", code="TEACHER_EMAIL_TAKEN")


def _school_ids(db: Session, teacher_id: int) -> list[int]:
    return sorted(
        db.execute(select(TeacherSchool.school_id).where(TeacherSchool.teacher_id == teacher_id)).scalars().all()
    )


def _to_out(db: Session, teacher: Teacher) -> TeacherOut:
    school_ids = _school_ids(db, teacher.id)
    schools = []
    if school_ids:
        rows = db.execute(select(School.id, School.name).where(School.id.in_(school_ids)).order_by(School.id)).all()
        schools = [Ref(id=r.id, name=r.name) for r in rows]
    class_count = db.execute(select(func.count(SchoolClass.id)).where(SchoolClass.teacher_id == teacher.id)).scalar_one()
    return TeacherOut.model_validate(teacher).model_copy(
        update={"school_ids": school_ids, "schools": schools, "class_count": int(class_count)}
    )


def _set_schools(db: Session, teacher_id: int, school_ids: list[int]) -> None:
    db.execute(delete(TeacherSchool).where(TeacherSchool.teacher_id == teacher_id))
    db.add_all([TeacherSchool(teacher_id=teacher_id, school_id=s) for s in sorted(set(school_ids))])


@router.get("", response_model=TeacherList)
def list_teachers(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    sort_by: str | None = Query(default=None, alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query(default="asc", alias="sortOrder"),
    search: str | None = Query(default=None),
    school_id: int | None = Query(default=None, alias="schoolId"),
    db: Session = Depends(get_db),
) -> TeacherList:
    params = PageParams(page=page, limit=limit)
    q = select(Teacher)
    if search:
        like = contains_pattern(search.strip())
        q = q.where(
            or_(Teacher.name.ilike(like, escape=LIKE_ESCAPE), Teacher.email.ilike(like, escape=LIKE_ESCAPE))
        )
    if school_id is not None:
        q = q.where(
            Teacher.id.in_(select(TeacherSchool.teacher_id).where(TeacherSchool.school_id == school_id))
        )

    total = int(db.execute(select(func.count()).select_from(q.subquery())).scalar_one())
    col = _SORT_COLUMNS.get(sort_by or "", Teacher.id)
    q = q.order_by(col.desc() if sort_order == "desc" else col.asc(), Teacher.id.asc())
    teachers = db.execute(q.offset(params.offset).limit(params.limit)).scalars().all()

    return TeacherList(
        teachers=[_to_out(db, t) for t in teachers],
        total=total,
        pagination=build_pagination(total=total, page=params.page, limit=params.limit),
    )


@router.get("/{teacher_id}", response_model=TeacherOut)
def get_teacher(teacher_id: int, db: Session = Depends(get_db)) -> TeacherOut:
    return _to_out(db, _get_teacher(db, teacher_id))


@router.get("/{teacher_id}/classes", response_model=list[ClassSummaryOut])
def get_teacher_classes(teacher_id: int, db: Session = Depends(get_db)) -> list[ClassSummaryOut]:
    teacher = _get_teacher(db, teacher_id)
    return [ClassSummaryOut.model_validate(c) for c in rosters.class_summaries(db, teacher_id=teacher.id)]


@router.get("/{teacher_id}/students", response_model=list[RosterStudentOut])
def get_teacher_students(teacher_id: int, db: Session = Depends(get_db)) -> list[RosterStudentOut]:
    teacher = _get_teacher(db, teacher_id)
    return [RosterStudentOut.model_validate(s) for s in rosters.active_roster(db, teacher_id=teacher.id)]


@router.post("", response_model=TeacherOut, status_code=201)
def create_teacher(
    payload: TeacherCreate,
    _admin=Depends(require_admin),
    db: Session = Depends(get_db),
) -> TeacherOut:
    _ensure_schools_exist(db, payload.school_ids)
    email = (payload.email or "").strip() or None
    _ensure_unique_email(db, email=email, exclude_id=None)

    teacher = Teacher(name=payload.name.strip(), email=email, phone=payload.phone)
    if payload.join_date is not None:
        teacher.join_date = payload.join_date
    db.add(teacher)
    db.flush()
    _set_schools(db, teacher.id, payload.school_ids)
    db.commit()
    db.refresh(teacher)
    logger.info("Teacher created id=%s schools=%s", teacher.id, sorted(set(payload.school_ids)))
    return _to_out(db, teacher)


@router.put("/{teacher_id}", response_model=TeacherOut)
def update_teacher(
    teacher_id: int,
    payload: TeacherUpdate,
    _admin=Depends(require_admin),
    db: Session = Depends(get_db),
) -> TeacherOut:
    teacher = _get_teacher(db, teacher_id)
    data = payload.model_dump(exclude_unset=True)

    school_ids = data.pop("school_ids", None)
    if school_ids is not None:
        _ensure_schools_exist(db, school_ids)
        removed = set(_school_ids(db, teacher.id)) - set(school_ids)
        for school_id in sorted(removed):
            in_use = db.execute(
                select(SchoolClass.id)
                .where(SchoolClass.teacher_id == teacher.id)
                .where(SchoolClass.school_id == school_id)
                .limit(1)
            ).first()
            if in_use is not None:
                raise ConflictError(
                    f"Cannot remove teacher from school. Teacher has classes assigned in school ID {school_id}",
                    code="TEACHER_IN_USE",
                )

    if "email" in data:
        data["email"] = (data["email"] or "").strip() or None
        _ensure_unique_email(db, email=data["email"], exclude_id=teacher.id)

    for key, value in data.items():
        if value is None and key in {"name", "join_date"}:
            continue
        setattr(teacher, key, value)
    if school_ids is not None:
        _set_schools(db, teacher.id, school_ids)
    db.commit()
    db.refresh(teacher)
    return _to_out(db, teacher)


@router.delete("/{teacher_id}", response_model=MessageOut)
def delete_teacher(
    teacher_id: int,
    _admin=Depends(require_admin),
    db: Session = Depends(get_db),
) -> MessageOut:
    teacher = _get_teacher(db, teacher_id)
    has_classes = db.execute(select(SchoolClass.id).where(SchoolClass.teacher_id == teacher.id).limit(1)).first()
    if has_classes is not None:
        raise ConflictError(
            "Cannot delete teacher with assigned classes. Please reassign classes first.", code="TEACHER_IN_USE"
        )

    db.execute(delete(TeacherSchool).where(TeacherSchool.teacher_id == teacher.id))
    db.delete(teacher)
    db.commit()
    logger.info("Teacher deleted id=%s", teacher_id)
    return MessageOut(message="Teacher deleted successfully")
