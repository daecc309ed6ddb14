"""In-memory record repository behind the sandbox catalog API.

Implements the server side of the contract the admin store relies on:

- ``list_records`` excludes soft-deleted records unless ``include_deleted`` is set,
  and excludes inactive records unless ``include_inactive`` is set.
  ``is_active`` narrows the listing to one status; pagination counts
  the filtered set.
- Soft delete stamps ``deleted_at``/``deleted_by`` and cascades to child
  records (``parent_id``) that are not already deleted.
- Restore clears the stamps on the record and on every child deleted by
  the same cascade. A child cannot be restored while its parent is deleted.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from catalog_admin.exceptions import ModerationConflictError, RecordNotFoundError
from catalog_admin.schemas.common import ListParams, Page, Pagination
from catalog_admin.schemas.record import (
    DisplayOrderEntry,
    ModerateRequest,
    Record,
    RecordCreate,
    RecordKind,
    RecordUpdate,
)

_SORT_FIELDS = {
    "name": lambda r: (r.name or "").lower(),
    "createdAt": lambda r: r.created_at or datetime.min.replace(tzinfo=timezone.utc),
    "displayOrder": lambda r: (r.display_order is None, r.display_order or 0),
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


class CatalogRepository:
    def __init__(self, kind: RecordKind, records: list[Record] | None = None):
        self.kind = kind
        self._records: dict[str, Record] = {}
        for record in records or []:
            self._records[record.id] = record

    def __len__(self) -> int:
        return len(self._records)

    def _label(self) -> str:
        return self.kind.value.capitalize()

    def get(self, record_id: str, *, deleted: bool | None = False) -> Record:
        """Fetch one record. ``deleted=None`` matches either state."""
        record = self._records.get(record_id)
        if record is None or (deleted is not None and record.is_deleted != deleted):
            label = f"Deleted {self.kind.value}" if deleted else self._label()
            raise RecordNotFoundError(label, record_id)
        return record

    def _save(self, record: Record) -> Record:
        self._records[record.id] = record
        return record

    def _children(self, parent_id: str) -> list[Record]:
        return [r for r in self._records.values() if r.parent_id == parent_id]

    # ── Listing ──────────────────────────────────────────────

    def _paginate(self, records: list[Record], params: ListParams) -> Page[Record]:
        start = (params.page - 1) * params.limit
        return Page[Record](
            items=records[start:start + params.limit],
            pagination=Pagination.of(params.page, params.limit, len(records)),
        )

    def _sorted(self, records: list[Record], params: ListParams) -> list[Record]:
        key = _SORT_FIELDS.get(params.sort_by or "displayOrder", _SORT_FIELDS["displayOrder"])
        return sorted(records, key=key, reverse=params.sort_order == "desc")

    def list_records(self, params: ListParams) -> Page[Record]:
        records = [
            r for r in self._records.values()
            if (params.include_deleted or not r.is_deleted)
            and (params.include_inactive or params.is_active is False or r.is_active)
            and (params.is_active is None or r.is_active == params.is_active)
            and (params.moderation_status is None or r.moderation_status == params.moderation_status)
            and (params.parent_id is None or r.parent_id == params.parent_id)
            and (not params.search or params.search.lower() in (r.name or "").lower())
        ]
        return self._paginate(self._sorted(records, params), params)

    def list_deleted(self, params: ListParams) -> Page[Record]:
        records = [
            r for r in self._records.values()
            if r.is_deleted
            and (not params.search or params.search.lower() in (r.name or "").lower())
        ]
        records.sort(key=lambda r: r.deleted_at or _now(), reverse=True)
        return self._paginate(records, params)

    def search(self, query: str, limit: int, include_inactive: bool = False) -> list[Record]:
        needle = query.strip().lower()
        matches = [
            r for r in self._records.values()
            if not r.is_deleted
            and (include_inactive or r.is_active)
            and (
                needle in (r.name or "").lower()
                or needle in str(getattr(r, "description", "") or "").lower()
            )
        ]
        return matches[:limit]

    # ── Mutations ────────────────────────────────────────────

    def create(self, data: RecordCreate) -> Record:
        if data.parent_id is not None:
            self.get(data.parent_id)
        record = Record(
            id=uuid.uuid4().hex,
            created_at=_now(),
            **data.model_dump(exclude_none=True),
        )
        return self._save(record)

    def update(self, record_id: str, data: RecordUpdate) -> Record:
        record = self.get(record_id)
        return self._save(record.model_copy(update=data.model_dump(exclude_unset=True)))

    def toggle_active(self, record_id: str) -> Record:
        record = self.get(record_id)
        return self._save(record.model_copy(update={"is_active": not record.is_active}))

    def moderate(self, record_id: str, request: ModerateRequest) -> Record:
        record = self.get(record_id)
        return self._save(record.model_copy(update={
            "moderation_status": request.status,
            "moderation_notes": request.notes,
        }))

    def soft_delete(self, record_id: str, actor: str) -> list[str]:
        """Soft-delete a record and its live children; return cascaded ids."""
        record = self._records.get(record_id)
        if record is not None and record.is_deleted:
            raise ModerationConflictError(f"{self._label()} is already deleted")
        record = self.get(record_id)
        stamp = {"is_deleted": True, "deleted_at": _now(), "deleted_by": actor}
        self._save(record.model_copy(update=stamp))
        cascade_ids: list[str] = []
        for child in self._children(record_id):
            if not child.is_deleted:
                self._save(child.model_copy(update=stamp))
                cascade_ids.append(child.id)
        return cascade_ids

    def restore(self, record_id: str) -> tuple[Record, list[str]]:
        record = self._records.get(record_id)
        if record is not None and not record.is_deleted:
            raise ModerationConflictError(f"{self._label()} is not deleted")
        record = self.get(record_id, deleted=True)
        if record.parent_id is not None:
            parent = self._records.get(record.parent_id)
            if parent is not None and parent.is_deleted:
                raise ModerationConflictError(
                    f"Cannot restore {self.kind.value}: parent {parent.name or parent.id} "
                    "is also deleted. Restore the parent first."
                )
        cleared = {"is_deleted": False, "deleted_at": None, "deleted_by": None}
        restored = self._save(record.model_copy(update=cleared))
        cascade_ids: list[str] = []
        for child in self._children(record_id):
            if child.is_deleted and child.deleted_at == record.deleted_at:
                self._save(child.model_copy(update=cleared))
                cascade_ids.append(child.id)
        return restored, cascade_ids

    def update_display_order(self, entries: list[DisplayOrderEntry]) -> None:
        for entry in entries:
            self.get(entry.id)
        for entry in entries:
            record = self._records[entry.id]
            self._save(record.model_copy(update={"display_order": entry.display_order}))
