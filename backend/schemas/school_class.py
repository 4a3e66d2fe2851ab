from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import Field

from schemas.base import CamelModel
from schemas.common import Pagination, Ref
from schemas.schedule import ScheduleItemIn
from schemas.subject import SubjectBrief


class ClassCreate(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    school_id: int
    teacher_id: int | None = None
    subject_ids: list[int] = Field(min_length=1)
    primary_subject_id: int | None = None
    max_students: int = Field(ge=1, le=200)
    academic_year: str = Field(min_length=1, max_length=20)
    schedule: list[ScheduleItemIn] | None = None


class ClassUpdate(CamelModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    school_id: int | None = None
    teacher_id: int | None = None
    subject_ids: list[int] | None = Field(default=None, min_length=1)
    primary_subject_id: int | None = None
    max_students: int | None = Field(default=None, ge=1, le=200)
    academic_year: str | None = Field(default=None, min_length=1, max_length=20)
    schedule: list[ScheduleItemIn] | None = None


class ClassStudentBrief(CamelModel):
    id: int
    name: str
    full_name: str


class ClassOut(CamelModel):
    id: int
    name: str
    school_id: int
    teacher_id: int | None = None
    subject_ids: list[int]
    primary_subject_id: int | None = None
    max_students: int
    current_students: int
    academic_year: str
    school: Ref
    teacher: Ref | None = None
    subjects: list[SubjectBrief]
    primary_subject: SubjectBrief | None = None
    students: list[ClassStudentBrief]
    schedule: list[dict[str, Any]]
    schedule_warnings: list[str] = []
    created_at: datetime
    updated_at: datetime


class ClassList(CamelModel):
    classes: list[ClassOut]
    total: int
    pagination: Pagination


class ClassStudentOut(CamelModel):
    id: int
    name: str
    full_name: str
    level: str
    enrollment_id: int
    enrollment_date: date
    status: str


class ClassSummaryOut(CamelModel):
    id: int
    name: str
    school: Ref
    teacher: Ref | None = None
    students_count: int
    max_students: int
    academic_year: str
    subjects_count: int
