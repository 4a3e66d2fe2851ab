from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field

from schemas.base import CamelModel
from schemas.common import Pagination


SchoolType = Literal["madrasa", "islamic_school", "regular_school"]


class SchoolCreate(CamelModel):
    name: str = Field(min_length=1, max_length=200)
    school_type: SchoolType = Field(alias="type")
    founded_year: int = Field(ge=1900)
    address: str | None = Field(default=None, max_length=500)
    phone: str | None = Field(default=None, max_length=20)
    email: str | None = Field(default=None, max_length=200)


class SchoolUpdate(CamelModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    school_type: SchoolType | None = Field(default=None, alias="type")
    founded_year: int | None = Field(default=None, ge=1900)
    address: str | None = Field(default=None, max_length=500)
    phone: str | None = Field(default=None, max_length=20)
    email: str | None = Field(default=None, max_length=200)


class SchoolOut(CamelModel):
    id: int
    name: str
    school_type: str = Field(alias="type")
    founded_year: int
    address: str | None = None
    phone: str | None = None
    email: str | None = None
    class_count: int = 0
    teacher_count: int = 0
    created_at: datetime
    updated_at: datetime


class SchoolList(CamelModel):
    schools: list[SchoolOut]
    total: int
    pagination: Pagination


class SchoolTeacherOut(CamelModel):
    id: int
    name: str
    email: str | None = None
    phone: str | None = None
    classes_count: int
