"""Common schemas used across the application."""

from __future__ import annotations

import math
from typing import Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from catalog_admin.schemas.record import ModerationStatus

T = TypeVar("T")


class Pagination(BaseModel):
    page: int = 1
    limit: int = 20
    total: int = 0
    pages: int = 0

    @classmethod
    def of(cls, page: int, limit: int, total: int) -> Pagination:
        return cls(
            page=page,
            limit=limit,
            total=total,
            pages=math.ceil(total / limit) if limit else 0,
        )


class Page(BaseModel, Generic[T]):
    """Generic paginated listing returned by the collaborator API.

    Usage:
        Page[Record]

    Returns:
        {
            "items": [...],
            "pagination": {"page": 1, "limit": 20, "total": 150, "pages": 8}
        }
    """
    items: list[T]
    pagination: Pagination


class ListParams(BaseModel):
    """Query parameters for listing endpoints.

    Serialized with camelCase keys; ``None`` values are omitted.
    """

    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=500)
    search: str | None = None
    parent_id: str | None = None
    moderation_status: ModerationStatus | None = None
    sort_by: str | None = None
    sort_order: Literal["asc", "desc"] | None = None
    is_active: bool | None = None
    include_inactive: bool | None = None
    include_deleted: bool | None = None

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    def merged(self, **overrides) -> ListParams:
        """Return a copy with ``overrides`` applied (``None`` values ignored)."""
        updates = {k: v for k, v in overrides.items() if v is not None}
        return self.model_copy(update=updates)

    def to_query(self) -> dict[str, str]:
        query: dict[str, str] = {}
        for key, value in self.model_dump(by_alias=True, exclude_none=True, mode="json").items():
            if isinstance(value, bool):
                query[key] = "true" if value else "false"
            else:
                query[key] = str(value)
        return query
