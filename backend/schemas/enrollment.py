from __future__ import annotations

from datetime import date, datetime

from pydantic import Field

from schemas.base import CamelModel
from schemas.common import Pagination, Ref


class EnrollmentCreate(CamelModel):
    student_id: int
    class_id: int
    enrollment_date: date
    academic_year: str = Field(min_length=1, max_length=20)


class EnrollmentBulkCreate(CamelModel):
    student_ids: list[int]
    class_id: int
    enrollment_date: date
    academic_year: str = Field(min_length=1, max_length=20)


class EnrollmentStatusUpdate(CamelModel):
    status: str


class EnrollmentTransfer(CamelModel):
    new_class_id: int


class StudentRef(CamelModel):
    id: int
    name: str
    full_name: str


class EnrollmentOut(CamelModel):
    id: int
    student_id: int
    class_id: int
    status: str
    enrollment_date: date
    academic_year: str
    student: StudentRef
    class_: Ref = Field(alias="class")
    school: Ref
    created_at: datetime
    updated_at: datetime


class EnrollmentList(CamelModel):
    enrollments: list[EnrollmentOut]
    total: int
    pagination: Pagination


class BulkEnrollmentOut(CamelModel):
    created: list[EnrollmentOut]
    errors: list[str]
