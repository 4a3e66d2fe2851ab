from __future__ import annotations

import logging
from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from api.deps import require_admin
from core.database import LIKE_ESCAPE, contains_pattern, get_db
from core.errors import ConflictError, NotFoundError
from models.school import School
from models.school_class import SchoolClass
from models.teacher_school import TeacherSchool
from schemas.common import MessageOut, PageParams, build_pagination
from schemas.school import SchoolCreate, SchoolList, SchoolOut, SchoolTeacherOut, SchoolUpdate
from schemas.school_class import ClassSummaryOut
from schemas.student import RosterStudentOut
from services import rosters


logger = logging.getLogger(__name__)


router = APIRouter()


_SORT_COLUMNS = {
    "name": func.lower(School.name),
    "foundedYear": School.founded_year,
    "type": School.school_type,
    "createdAt": School.created_at,
}


def _get_school(db: Session, school_id: int) -> School:
    school = db.get(School, school_id)
    if school is None:
        raise NotFoundError("School not found")
    return school


def _ensure_unique_name(db: Session, *, name: str, exclude_id: int | None) -> None:
    q = select(School.id).where(func.lower(School.name) == name.lower())
    if exclude_id is not None:
        q = q.where(School.id != exclude_id)
    if db.execute(q.limit(1)).first() is not None:
        raise ConflictError("School with this name already exists", code="SCHOOL_NAME_TAKEN")


def _counts(db: Session, school_id: int) -> tuple[int, int]:
    classes = db.execute(select(func.count(SchoolClass.id)).where(SchoolClass.school_id == school_id)).scalar_one()
    teachers = db.execute(select(func.count(TeacherSchool.id)).where(TeacherSchool.school_id == school_id)).scalar_one()
    return int(classes), int(teachers)


def _to_out(db: Session, school: School) -> SchoolOut:
    class_count, teacher_count = _counts(db, school.id)
    return SchoolOut.model_validate(school).model_copy(update={"class_count": class_count, "teacher_count": teacher_count})


@router.get("", response_model=SchoolList)
def list_schools(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    sort_by: str | None = Query(default=None, alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query(default="asc", alias="sortOrder"),
    search: str | None = Query(default=None),
    school_type: Literal["madrasa", "islamic_school", "regular_school"] | None = Query(default=None, alias="type"),
    db: Session = Depends(get_db),
) -> SchoolList:
    params = PageParams(page=page, limit=limit)
    q = select(School)
    if search:
        like = contains_pattern(search.strip())
        q = q.where(
            or_(School.name.ilike(like, escape=LIKE_ESCAPE), School.address.ilike(like, escape=LIKE_ESCAPE))
        )
    if school_type:
        q = q.where(School.school_type == school_type)

    total = int(db.execute(select(func.count()).select_from(q.subquery())).scalar_one())
    col = _SORT_COLUMNS.get(sort_by or "", School.id)
    q = q.order_by(col.desc() if sort_order == "desc" else col.asc(), School.id.asc())
    schools = db.execute(q.offset(params.offset).limit(params.limit)).scalars().all()

    return SchoolList(
        schools=[_to_out(db, s) for s in schools],
        total=total,
        pagination=build_pagination(total=total, page=params.page, limit=params.limit),
    )


@router.get("/{school_id}", response_model=SchoolOut)
def get_school(school_id: int, db: Session = Depends(get_db)) -> SchoolOut:
    return _to_out(db, _get_school(db, school_id))


@router.get("/{school_id}/classes", response_model=list[ClassSummaryOut])
def get_school_classes(school_id: int, db: Session = Depends(get_db)) -> list[ClassSummaryOut]:
    school = _get_school(db, school_id)
    return [ClassSummaryOut.model_validate(c) for c in rosters.class_summaries(db, school_id=school.id)]


@router.get("/{school_id}/teachers", response_model=list[SchoolTeacherOut])
def get_school_teachers(school_id: int, db: Session = Depends(get_db)) -> list[SchoolTeacherOut]:
    school = _get_school(db, school_id)
    return [SchoolTeacherOut.model_validate(t) for t in rosters.school_teachers(db, school.id)]


@router.get("/{school_id}/students", response_model=list[RosterStudentOut])
def get_school_students(school_id: int, db: Session = Depends(get_db)) -> list[RosterStudentOut]:
    school = _get_school(db, school_id)
    return [RosterStudentOut.model_validate(s) for s in rosters.active_roster(db, school_id=school.id)]


@router.post("", response_model=SchoolOut, status_code=201)
def create_school(
    payload: SchoolCreate,
    _admin=Depends(require_admin),
    db: Session = Depends(get_db),
) -> SchoolOut:
    name = payload.name.strip()
    _ensure_unique_name(db, name=name, exclude_id=None)

    school = School(**payload.model_dump(exclude={"name"}), name=name)
    db.add(school)
    db.commit()
    db.refresh(school)
    logger.info("School created id=%s name=%r", school.id, school.name)
    return _to_out(db, school)


@router.put("/{school_id}", response_model=SchoolOut)
def update_school(
    school_id: int,
    payload: SchoolUpdate,
    _admin=Depends(require_admin),
    db: Session = Depends(get_db),
) -> SchoolOut:
    school = _get_school(db, school_id)
    data = payload.model_dump(exclude_unset=True)
    if data.get("name") is not None:
        data["name"] = data["name"].strip()
        if data["name"].lower() != school.name.lower():
            _ensure_unique_name(db, name=data["name"], exclude_id=school.id)

    for key, value in data.items():
        if value is None and key in {"name", "school_type", "founded_year"}:
            continue
        setattr(school, key, value)
    db.commit()
    db.refresh(school)
    return _to_out(db, school)


@router.delete("/{school_id}", response_model=MessageOut)
def delete_school(
    school_id: int,
    _admin=Depends(require_admin),
    db: Session = Depends(get_db),
) -> MessageOut:
    school = _get_school(db, school_id)
    class_count, teacher_count = _counts(db, school.id)
    if class_count:
        raise ConflictError(
            "Cannot delete school with existing classes. Please remove all classes first.", code="SCHOOL_IN_USE"
        )
    if teacher_count:
        raise ConflictError(
            "Cannot delete school with assigned teachers. Please reassign teachers first.", code="SCHOOL_IN_USE"
        )

    db.delete(school)
    db.commit()
    logger.info("School deleted id=%s", school_id)
    return MessageOut(message="School deleted successfully")
