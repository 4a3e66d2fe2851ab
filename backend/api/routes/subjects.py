from __future__ import annotations

import logging
from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from api.deps import require_admin
from core.database import LIKE_ESCAPE, contains_pattern, get_db
from core.errors import ConflictError, NotFoundError
from models.class_subject import ClassSubject
from models.schedule_entry import ScheduleEntry
from models.subject import Subject
from schemas.common import MessageOut, PageParams, build_pagination
from schemas.subject import (
    PredefinedSubjectOut,
    SubjectBulkCreate,
    SubjectBulkOut,
    SubjectCreate,
    SubjectList,
    SubjectOut,
    SubjectUpdate,
)
from services import subject_catalog


logger = logging.getLogger(__name__)


router = APIRouter()


_SORT_COLUMNS = {
    "name": func.lower(Subject.name),
    "category": Subject.category,
    "level": Subject.level,
    "createdAt": Subject.created_at,
}


def _get_subject(db: Session, subject_id: int) -> Subject:
    subject = db.get(Subject, subject_id)
    if subject is None:
        raise NotFoundError("Subject not found")
    return subject


def _ensure_unique_name(db: Session, *, name: str, exclude_id: int | None) -> None:
    q = select(Subject.id).where(func.lower(Subject.name) == name.lower())
    if exclude_id is not None:
        q = q.where(Subject.id != exclude_id)
    if db.execute(q.limit(1)).first() is not None:
        raise ConflictError("Subject with this name already exists", code="SUBJECT_NAME_TAKEN")


@router.get("", response_model=SubjectList)
def list_subjects(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    sort_by: str | None = Query(default=None, alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query(default="asc", alias="sortOrder"),
    search: str | None = Query(default=None),
    category: Literal["quran", "hadith", "fiqh", "aqidah", "arabic", "other"] | None = Query(default=None),
    level: Literal["beginner", "intermediate", "advanced"] | None = Query(default=None),
    db: Session = Depends(get_db),
) -> SubjectList:
    params = PageParams(page=page, limit=limit)
    q = select(Subject)
    if search:
        like = contains_pattern(search.strip())
        q = q.where(
            or_(
                Subject.name.ilike(like, escape=LIKE_ESCAPE),
                Subject.name_arabic.ilike(like, escape=LIKE_ESCAPE),
                Subject.description.ilike(like, escape=LIKE_ESCAPE),
            )
        )
    if category:
        q = q.where(Subject.category == category)
    if level:
        q = q.where(Subject.level == level)

    total = int(db.execute(select(func.count()).select_from(q.subquery())).scalar_one())
    col = _SORT_COLUMNS.get(sort_by or "", Subject.id)
    q = q.order_by(col.desc() if sort_order == "desc" else col.asc(), Subject.id.asc())
    subjects = db.execute(q.offset(params.offset).limit(params.limit)).scalars().all()

    return SubjectList(
        subjects=[SubjectOut.model_validate(s) for s in subjects],
        total=total,
        pagination=build_pagination(total=total, page=params.page, limit=params.limit),
    )


@router.get("/categories", response_model=dict[str, list[SubjectOut]])
def get_subjects_by_category(db: Session = Depends(get_db)) -> dict[str, list[SubjectOut]]:
    grouped = subject_catalog.subjects_by_category(db)
    return {category: [SubjectOut.model_validate(s) for s in subjects] for category, subjects in grouped.items()}


@router.get("/predefined", response_model=list[PredefinedSubjectOut])
def get_predefined_subjects() -> list[PredefinedSubjectOut]:
    return [
        PredefinedSubjectOut(index=i, name=p.name, name_arabic=p.name_arabic, category=p.category)
        for i, p in enumerate(subject_catalog.PREDEFINED_SUBJECTS)
    ]


@router.post("/bulk-create", response_model=SubjectBulkOut)
def bulk_create_subjects(
    payload: SubjectBulkCreate,
    _admin=Depends(require_admin),
    db: Session = Depends(get_db),
) -> SubjectBulkOut:
    result = subject_catalog.bulk_create_predefined(db, payload.subject_indices)
    return SubjectBulkOut(created=[SubjectOut.model_validate(s) for s in result.created], errors=result.errors)


@router.get("/{subject_id}", response_model=SubjectOut)
def get_subject(subject_id: int, db: Session = Depends(get_db)) -> SubjectOut:
    return _get_subject(db, subject_id)


@router.post("", response_model=SubjectOut, status_code=201)
def create_subject(
    payload: SubjectCreate,
    _admin=Depends(require_admin),
    db: Session = Depends(get_db),
) -> SubjectOut:
    name = payload.name.strip()
    _ensure_unique_name(db, name=name, exclude_id=None)

    subject = Subject(**payload.model_dump(exclude={"name"}), name=name)
    db.add(subject)
    db.commit()
    db.refresh(subject)
    return subject


@router.put("/{subject_id}", response_model=SubjectOut)
def update_subject(
    subject_id: int,
    payload: SubjectUpdate,
    _admin=Depends(require_admin),
    db: Session = Depends(get_db),
) -> SubjectOut:
    subject = _get_subject(db, subject_id)
    data = payload.model_dump(exclude_unset=True)
    if data.get("name") is not None:
        data["name"] = data["name"].strip()
        if data["name"].lower() != subject.name.lower():
            _ensure_unique_name(db, name=data["name"], exclude_id=subject.id)

    for key, value in data.items():
        if value is None and key in {"name", "category", "level"}:
            continue
        setattr(subject, key, value)
    db.commit()
    db.refresh(subject)
    return subject


@router.delete("/{subject_id}", response_model=MessageOut)
def delete_subject(
    subject_id: int,
    _admin=Depends(require_admin),
    db: Session = Depends(get_db),
) -> MessageOut:
    subject = _get_subject(db, subject_id)
    if db.execute(select(ClassSubject.id).where(ClassSubject.subject_id == subject.id).limit(1)).first():
        raise ConflictError(
            "Cannot delete subject that is used in classes. Please remove from classes first.", code="SUBJECT_IN_USE"
        )
    if db.execute(select(ScheduleEntry.id).where(ScheduleEntry.subject_id == subject.id).limit(1)).first():
        raise ConflictError(
            "Cannot delete subject that is used in schedules. Please remove from schedules first.",
            code="SUBJECT_IN_USE",
        )

    db.delete(subject)
    db.commit()
    logger.info("Subject deleted id=%s", subject_id)
    return MessageOut(message="Subject deleted successfully")
