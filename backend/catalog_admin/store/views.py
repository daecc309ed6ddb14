"""View membership and in-place reconciliation of cached record lists.

Pure functions over tuples of Records; the reducer composes them. A
patch never reorders a list: an entry that stays is replaced where it
sits, an entry that joins a view is appended.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable

from catalog_admin.schemas.record import Record

Records = tuple[Record, ...]


# ── Membership rules ─────────────────────────────────────────

def belongs_in_active(record: Record) -> bool:
    return record.is_active and not record.is_deleted


def belongs_in_inactive(record: Record) -> bool:
    return not record.is_active or record.is_deleted


def belongs_in_deleted(record: Record) -> bool:
    return record.is_deleted


def split_active_inactive(records: Iterable[Record]) -> tuple[Records, Records]:
    """Derive active/inactive from a listing; soft-deleted entries join neither."""
    live = tuple(r for r in records if not r.is_deleted)
    return (
        tuple(r for r in live if belongs_in_active(r)),
        tuple(r for r in live if belongs_in_inactive(r)),
    )


# ── List patches ─────────────────────────────────────────────

def contains(records: Records, record_id: str) -> bool:
    return any(r.id == record_id for r in records)


def ids(records: Iterable[Record]) -> set[str]:
    return {r.id for r in records}


def replace_in_place(records: Records, updated: Record) -> Records:
    """Swap the entry with ``updated.id`` for ``updated``; no-op if absent."""
    if not contains(records, updated.id):
        return records
    return tuple(updated if r.id == updated.id else r for r in records)


def without(records: Records, record_id: str) -> Records:
    return tuple(r for r in records if r.id != record_id)


def reconcile_membership(
    records: Records,
    updated: Record,
    belongs: Callable[[Record], bool],
    *,
    may_add: bool = True,
) -> Records:
    """Make ``updated.id`` present in ``records`` iff ``belongs(updated)``.

    Present and still belonging: replaced in place. Present and no longer
    belonging: removed. Absent and belonging: appended when ``may_add``.
    """
    if belongs(updated):
        if contains(records, updated.id):
            return replace_in_place(records, updated)
        return records + (updated,) if may_add else records
    return without(records, updated.id)


def prune_selection(selection: Iterable[str], records: Iterable[Record]) -> set[str]:
    """Drop selected ids that no longer appear in ``records``."""
    return set(selection) & ids(records)
