"""Which moderation actions make sense for a record, and how urgent it is.

Advisory only: the admin UI uses these to enable buttons and sort the
review queue. The server remains the authority on what is allowed.
"""

from datetime import datetime, timezone

from catalog_admin.schemas.record import ModerationStatus, Record

_REVIEWABLE = {ModerationStatus.PENDING, ModerationStatus.FLAGGED}


def can_perform(action: str, record: Record | None = None) -> bool:
    if record is None:
        return True

    match action:
        case "approve" | "reject":
            return not record.is_deleted and record.moderation_status in _REVIEWABLE
        case "flag" | "hide":
            return not record.is_deleted
        case "restore":
            return record.is_deleted
        case "delete" | "toggle_status":
            return not record.is_deleted
        case _:
            return True


def priority_level(record: Record, now: datetime | None = None) -> str:
    """Return "high" after 7 days waiting, "medium" after 3, else "low"."""
    if record.created_at is None:
        return "low"
    now = now or datetime.now(timezone.utc)
    created_at = record.created_at
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    days_waiting = (now - created_at).days
    if days_waiting > 7:
        return "high"
    if days_waiting > 3:
        return "medium"
    return "low"
