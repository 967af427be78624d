"""
Pagination for list endpoints

Every listing returns the same envelope so clients can page users,
subjects and grades alike.
"""
from typing import TypeVar, Generic, List, Tuple
from pydantic import BaseModel
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

from academia.core.config import settings

T = TypeVar('T')


class PaginatedResponse(BaseModel, Generic[T]):
    """Standard paginated response"""
    items: List[T]
    total: int
    page: int
    page_size: int
    total_pages: int
    has_next: bool
    has_previous: bool

    class Config:
        from_attributes = True


def clamp_page(page: int, page_size: int) -> Tuple[int, int]:
    page = max(1, page)
    page_size = max(1, min(settings.MAX_PAGE_SIZE, page_size))
    return page, page_size


def create_paginated_response(items: List, total: int, page: int, page_size: int) -> dict:
    """Build the paginated response dictionary"""
    total_pages = (total + page_size - 1) // page_size if total > 0 else 1

    return {
        "items": items,
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_previous": page > 1
    }


async def paginate(db: AsyncSession, query: Select, page: int = 1, page_size: int = 10) -> dict:
    """
    Run one page of `query` plus a count of the whole result.

    Page size is capped at MAX_PAGE_SIZE. Returns items, total, page,
    page_size, total_pages, has_next, has_previous.
    """
    page, page_size = clamp_page(page, page_size)

    count_query = select(func.count()).select_from(query.order_by(None).subquery())
    total = (await db.execute(count_query)).scalar() or 0

    result = await db.execute(query.offset((page - 1) * page_size).limit(page_size))
    return create_paginated_response(list(result.scalars().all()), total, page, page_size)
