from __future__ import annotations

from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel

from .config import PaginationConfig

T = TypeVar("T")


class PageRequest(BaseModel):
    """Client request for one page of results."""

    page: int = 1
    page_size: int = 0
    sort_by: Optional[str] = None
    descending: bool = True

    def normalize(self, config: PaginationConfig) -> "PageRequest":
        """Clamp page and page size to the configured limits."""
        page = max(self.page, 1)
        page_size = self.page_size if self.page_size >= 1 else config.default_page_size
        page_size = min(page_size, config.max_page_size)
        return self.model_copy(update={"page": page, "page_size": page_size})

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


class PageResult(BaseModel, Generic[T]):
    """A page of items plus totals."""

    data: List[T]
    total: int
    page: int
    page_size: int
    total_pages: int

    @classmethod
    def build(cls, data: List[T], total: int, page: int, page_size: int) -> "PageResult[T]":
        total_pages = max(-(-total // page_size), 1) if page_size else 1
        return cls(
            data=data,
            total=total,
            page=page,
            page_size=page_size,
            total_pages=total_pages,
        )
