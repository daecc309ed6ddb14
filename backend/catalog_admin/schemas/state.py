"""Store bookkeeping types: cached views and per-action request state."""

from __future__ import annotations

import enum
from dataclasses import dataclass


class View(str, enum.Enum):
    ALL = "all"
    ACTIVE = "active"
    INACTIVE = "inactive"
    DELETED = "deleted"
    SEARCH_RESULTS = "search_results"


class ActionClass(str, enum.Enum):
    FETCH = "fetch"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    MODERATE = "moderate"


@dataclass(frozen=True)
class ActionState:
    """idle -> loading -> (success | error); back to idle only via reset."""
    loading: bool = False
    error: str | None = None
    success: bool = False

    @property
    def is_idle(self) -> bool:
        return not (self.loading or self.success or self.error)

    def started(self) -> ActionState:
        return ActionState(loading=True)

    def succeeded(self) -> ActionState:
        return ActionState(success=True)

    def failed(self, message: str) -> ActionState:
        return ActionState(error=message)
