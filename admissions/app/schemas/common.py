from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    items: list[T]
    total: int
    page: int
    per_page: int
    total_pages: int

    @classmethod
    def build(cls, items: list, total: int, page: int, per_page: int):
        total_pages = (total + per_page - 1) // per_page if per_page else 0
        return cls(items=items, total=total, page=page, per_page=per_page, total_pages=total_pages)
