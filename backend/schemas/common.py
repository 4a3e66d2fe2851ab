from __future__ import annotations

import math

from pydantic import Field

from schemas.base import CamelModel


DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


class Ref(CamelModel):
    id: int
    name: str


class MessageOut(CamelModel):
    message: str


class Pagination(CamelModel):
    current_page: int
    total_pages: int
    total_items: int
    has_next: bool
    has_prev: bool


class PageParams(CamelModel):
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def build_pagination(*, total: int, page: int, limit: int) -> Pagination:
    total_pages = math.ceil(total / limit) if limit else 0
    return Pagination(
        current_page=page,
        total_pages=total_pages,
        total_items=total,
        has_next=page < total_pages,
        has_prev=page > 1,
    )
