from math import ceil
from typing import Generic, Optional, TypeVar
from pydantic import BaseModel

T = TypeVar("T")


class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total_items: int
    has_next_page: bool

    @classmethod
    def build(cls, page: int, page_size: int, total: int) -> "Pagination":
        return cls(
            current_page=page,
            total_pages=ceil(total / page_size) if page_size else 0,
            total_items=total,
            has_next_page=page * page_size < total,
        )


class Envelope(BaseModel, Generic[T]):
    success: bool = True
    data: Optional[T] = None
    message: Optional[str] = None


class PageEnvelope(Envelope[T], Generic[T]):
    pagination: Pagination
