"""Response envelopes shared by every endpoint."""

from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from storeflow.pagination import Pagination, PaginationMeta

T = TypeVar("T")


class CamelModel(BaseModel):
    """Request body accepting camelCase keys (snake_case works too)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SuccessResponse(BaseModel, Generic[T]):
    success: bool = True
    data: T
    message: str | None = None
    timestamp: datetime = Field(default_factory=_now)


class PaginatedData(BaseModel, Generic[T]):
    items: list[T]
    pagination: PaginationMeta


def ok(data: Any, message: str | None = None) -> dict:
    """Wrap ``data`` in the success envelope."""
    return {"success": True, "data": data, "message": message, "timestamp": _now()}


def paginated(items: list, pagination: Pagination, total: int, message: str | None = None) -> dict:
    return ok(
        {"items": items, "pagination": PaginationMeta.build(pagination, total)},
        message=message,
    )
