from __future__ import annotations

from datetime import date, datetime
from typing import Literal

from pydantic import Field

from schemas.base import CamelModel
from schemas.common import Pagination, Ref


Gender = Literal["male", "female"]


class StudentCreate(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    full_name: str = Field(min_length=1, max_length=200)
    date_of_birth: date | None = None
    gender: Gender
    parent_name: str | None = Field(default=None, max_length=200)
    parent_phone: str | None = Field(default=None, max_length=20)
    parent_email: str | None = Field(default=None, max_length=200)
    address: str | None = Field(default=None, max_length=500)
    enrollment_date: date
    academic_year: str = Field(min_length=1, max_length=20)
    level: str = Field(min_length=1, max_length=50)


class StudentUpdate(CamelModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    full_name: str | None = Field(default=None, min_length=1, max_length=200)
    date_of_birth: date | None = None
    gender: Gender | None = None
    parent_name: str | None = Field(default=None, max_length=200)
    parent_phone: str | None = Field(default=None, max_length=20)
    parent_email: str | None = Field(default=None, max_length=200)
    address: str | None = Field(default=None, max_length=500)
    enrollment_date: date | None = None
    academic_year: str | None = Field(default=None, min_length=1, max_length=20)
    level: str | None = Field(default=None, min_length=1, max_length=50)


class StudentOut(CamelModel):
    id: int
    name: str
    full_name: str
    date_of_birth: date | None = None
    gender: str
    parent_name: str | None = None
    parent_phone: str | None = None
    parent_email: str | None = None
    address: str | None = None
    enrollment_date: date
    academic_year: str
    level: str
    classes: list[Ref] = []
    created_at: datetime
    updated_at: datetime


class StudentList(CamelModel):
    students: list[StudentOut]
    total: int
    pagination: Pagination


class StudentClassOut(CamelModel):
    id: int
    name: str
    school: Ref
    teacher: Ref | None = None
    academic_year: str
    enrollment_id: int
    enrollment_date: date
    status: str


class RosterStudentOut(CamelModel):
    id: int
    name: str
    full_name: str
    level: str
    classes: list[str]
