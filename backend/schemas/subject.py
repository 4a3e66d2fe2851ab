from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field

from schemas.base import CamelModel
from schemas.common import Pagination


SubjectCategory = Literal["quran", "hadith", "fiqh", "aqidah", "arabic", "other"]
SubjectLevel = Literal["beginner", "intermediate", "advanced"]


class SubjectCreate(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    name_arabic: str | None = Field(default=None, max_length=100)
    category: SubjectCategory
    level: SubjectLevel
    description: str | None = Field(default=None, max_length=500)


class SubjectUpdate(CamelModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    name_arabic: str | None = Field(default=None, max_length=100)
    category: SubjectCategory | None = None
    level: SubjectLevel | None = None
    description: str | None = Field(default=None, max_length=500)


class SubjectOut(CamelModel):
    id: int
    name: str
    name_arabic: str | None = None
    category: str
    level: str
    description: str | None = None
    created_at: datetime
    updated_at: datetime


class SubjectBrief(CamelModel):
    id: int
    name: str
    name_arabic: str | None = None


class SubjectList(CamelModel):
    subjects: list[SubjectOut]
    total: int
    pagination: Pagination


class PredefinedSubjectOut(CamelModel):
    index: int
    name: str
    name_arabic: str
    category: SubjectCategory


class SubjectBulkCreate(CamelModel):
    subject_indices: list[int]


class SubjectBulkOut(CamelModel):
    created: list[SubjectOut]
    errors: list[str]
