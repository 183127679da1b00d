"""Page/limit query parsing shared by every list endpoint."""

import math
from dataclasses import dataclass
from typing import Any

from fastapi import Query
from pydantic import BaseModel

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 20
MAX_LIMIT = 100


@dataclass(frozen=True, slots=True)
class Pagination:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def _to_number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def parse_pagination(page: Any = None, limit: Any = None) -> Pagination:
    """Coerce raw query values into a bounded page/limit pair.

    Non-numeric or non-positive values fall back to the defaults; ``limit``
    is floored and capped at ``MAX_LIMIT``.
    """
    page_number = _to_number(page)
    parsed_page = int(page_number) if page_number is not None and page_number >= 1 else DEFAULT_PAGE

    limit_number = _to_number(limit)
    if limit_number is None or limit_number <= 0:
        parsed_limit = DEFAULT_LIMIT
    else:
        parsed_limit = min(max(int(limit_number), 1), MAX_LIMIT)

    return Pagination(page=parsed_page, limit=parsed_limit)


class PaginationMeta(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, pagination: Pagination, total: int) -> "PaginationMeta":
        total_pages = math.ceil(total / pagination.limit) if total else 0
        return cls(
            page=pagination.page,
            limit=pagination.limit,
            total=total,
            total_pages=total_pages,
            has_next=pagination.page < total_pages,
            has_prev=pagination.page > 1,
        )


def pagination_params(page: str | None = Query(None), limit: str | None = Query(None)) -> Pagination:
    """FastAPI dependency; raw strings so bad input falls back instead of 422."""
    return parse_pagination(page, limit)
