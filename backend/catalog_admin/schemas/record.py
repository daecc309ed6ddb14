"""Pydantic schemas for moderated catalog records (categories and services).

Records travel over the wire in camelCase and are otherwise opaque: any
field the store does not interpret (images, tags, pricing...) is kept
as an extra attribute and round-trips untouched.
"""

import enum
from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ModerationStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    FLAGGED = "flagged"
    HIDDEN = "hidden"


class RecordKind(str, enum.Enum):
    CATEGORY = "category"
    SERVICE = "service"

    @property
    def resource(self) -> str:
        """URL segment for the collection, e.g. ``categories``."""
        return "categories" if self is RecordKind.CATEGORY else "services"


_wire_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Record ───────────────────────────────────────────────────

class Record(BaseModel):
    """A category or service as the admin store sees it."""

    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    name: str | None = None
    is_active: bool = True
    is_deleted: bool = False
    moderation_status: ModerationStatus = ModerationStatus.PENDING
    moderation_notes: str | None = None
    parent_id: str | None = None
    display_order: int | None = None
    created_at: datetime | None = None
    deleted_at: datetime | None = None
    deleted_by: str | dict[str, Any] | None = None

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        frozen=True,
    )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


# ── Payloads ─────────────────────────────────────────────────

class ModerateRequest(BaseModel):
    status: ModerationStatus = Field(alias="moderationStatus")
    notes: str | None = Field(None, alias="moderationNotes")

    model_config = {"populate_by_name": True}


class RecordCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = None
    tags: list[str] | None = None
    parent_id: str | None = None
    display_order: int | None = Field(None, ge=0)

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )


class RecordUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = None
    tags: list[str] | None = None
    parent_id: str | None = None
    display_order: int | None = Field(None, ge=0)
    is_active: bool | None = None

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )


class DisplayOrderEntry(BaseModel):
    id: str
    display_order: int = Field(..., ge=0)

    model_config = _wire_config


# ── Stats ────────────────────────────────────────────────────

class ModerationStats(BaseModel):
    """Record counts per moderation status, plus soft-deleted records."""
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    flagged: int = 0
    hidden: int = 0
    deleted: int = 0

    @property
    def total(self) -> int:
        return (
            self.pending + self.approved + self.rejected
            + self.flagged + self.hidden + self.deleted
        )
