from __future__ import annotations

from datetime import date, datetime

from pydantic import Field

from schemas.base import CamelModel
from schemas.common import Pagination, Ref


class TeacherCreate(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    email: str | None = Field(default=None, max_length=200)
    phone: str | None = Field(default=None, max_length=20)
    school_ids: list[int] = Field(min_length=1)
    join_date: date | None = None


class TeacherUpdate(CamelModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    email: str | None = Field(default=None, max_length=200)
    phone: str | None = Field(default=None, max_length=20)
    school_ids: list[int] | None = Field(default=None, min_length=1)
    join_date: date | None = None


class TeacherOut(CamelModel):
    id: int
    name: str
    email: str | None = None
    phone: str | None = None
    join_date: date
    school_ids: list[int] = []
    schools: list[Ref] = []
    class_count: int = 0
    created_at: datetime
    updated_at: datetime


class TeacherList(CamelModel):
    teachers: list[TeacherOut]
    total: int
    pagination: Pagination
