"""Store state, the actions that change it, and the reducer.

Every state transition of a ModerationStateStore is one of the action
types below; ``reduce`` is a pure function from (state, action) to the
next state and never awaits, so each patch is applied all at once.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Union, assert_never

from catalog_admin.schemas.common import ListParams, Pagination
from catalog_admin.schemas.record import ModerationStats, Record
from catalog_admin.schemas.state import ActionClass, ActionState, View
from catalog_admin.store import views
from catalog_admin.store.views import Records


def _idle_actions() -> dict[ActionClass, ActionState]:
    return {action_class: ActionState() for action_class in ActionClass}


@dataclass(frozen=True)
class StoreState:
    record: Record | None = None
    all: Records = ()
    active: Records = ()
    inactive: Records = ()
    deleted: Records = ()
    search_results: Records = ()
    pagination: Mapping[View, Pagination] = field(default_factory=dict)
    search_query: str = ""
    params: ListParams = field(default_factory=ListParams)
    stats: ModerationStats | None = None
    is_initialized: bool = False
    actions: Mapping[ActionClass, ActionState] = field(default_factory=_idle_actions)

    def view(self, view: View) -> Records:
        return getattr(self, view.value)

    def action(self, action_class: ActionClass) -> ActionState:
        return self.actions[action_class]

    def is_loaded(self, view: View) -> bool:
        return view in self.pagination

    @property
    def is_loading(self) -> bool:
        return self.actions[ActionClass.FETCH].loading

    @property
    def error(self) -> str | None:
        return self.actions[ActionClass.FETCH].error


# ── Actions ──────────────────────────────────────────────────

@dataclass(frozen=True)
class RequestStarted:
    action_class: ActionClass


@dataclass(frozen=True)
class RequestSucceeded:
    action_class: ActionClass


@dataclass(frozen=True)
class RequestFailed:
    action_class: ActionClass
    message: str


@dataclass(frozen=True)
class RequestReset:
    action_class: ActionClass


@dataclass(frozen=True)
class ViewLoaded:
    view: View
    records: Records
    pagination: Pagination | None = None


@dataclass(frozen=True)
class RecordLoaded:
    record: Record | None


@dataclass(frozen=True)
class SearchResolved:
    query: str
    records: Records


@dataclass(frozen=True)
class SearchQuerySet:
    query: str


@dataclass(frozen=True)
class RecordChanged:
    """The server confirmed a new version of a record (moderate, toggle, update)."""
    record: Record


@dataclass(frozen=True)
class RecordDeleted:
    record_id: str
    keep_in_all: bool = False


@dataclass(frozen=True)
class RecordRestored:
    record: Record


@dataclass(frozen=True)
class StatsLoaded:
    stats: ModerationStats


@dataclass(frozen=True)
class ParamsUpdated:
    params: ListParams


@dataclass(frozen=True)
class Initialized:
    pass


@dataclass(frozen=True)
class DataCleared:
    pass


Action = Union[
    RequestStarted,
    RequestSucceeded,
    RequestFailed,
    RequestReset,
    ViewLoaded,
    RecordLoaded,
    SearchResolved,
    SearchQuerySet,
    RecordChanged,
    RecordDeleted,
    RecordRestored,
    StatsLoaded,
    ParamsUpdated,
    Initialized,
    DataCleared,
]


# ── Reducer ──────────────────────────────────────────────────

def _with_action(state: StoreState, action_class: ActionClass, value: ActionState) -> StoreState:
    return replace(state, actions={**state.actions, action_class: value})


def _with_pagination(state: StoreState, view: View, pagination: Pagination | None) -> dict:
    if pagination is None:
        return {}
    return {"pagination": {**state.pagination, view: pagination}}


def _patch_detail(state: StoreState, record: Record) -> Record | None:
    if state.record is not None and state.record.id == record.id:
        return record
    return state.record


def _may_add(state: StoreState, view: View, tracked: bool) -> bool:
    # Only move records the loaded listings already show; never seed an unloaded view.
    return tracked and (state.is_loaded(view) or state.is_loaded(View.ALL))


def _apply_change(state: StoreState, record: Record) -> StoreState:
    tracked = any(
        views.contains(records, record.id)
        for records in (state.all, state.active, state.inactive)
    )
    return replace(
        state,
        record=_patch_detail(state, record),
        # `all` is patched in place only; status changes never evict from it.
        all=views.replace_in_place(state.all, record),
        active=views.reconcile_membership(
            state.active, record, views.belongs_in_active,
            may_add=_may_add(state, View.ACTIVE, tracked),
        ),
        inactive=views.reconcile_membership(
            state.inactive, record, views.belongs_in_inactive,
            may_add=_may_add(state, View.INACTIVE, tracked),
        ),
        # Deleted entries carry server-set deletedAt/deletedBy; never synthesized.
        deleted=views.reconcile_membership(
            state.deleted, record, views.belongs_in_deleted, may_add=False
        ),
        search_results=views.replace_in_place(state.search_results, record),
    )


def reduce(state: StoreState, action: Action) -> StoreState:
    match action:
        case RequestStarted(action_class=action_class):
            return _with_action(state, action_class, state.action(action_class).started())
        case RequestSucceeded(action_class=action_class):
            return _with_action(state, action_class, state.action(action_class).succeeded())
        case RequestFailed(action_class=action_class, message=message):
            return _with_action(state, action_class, state.action(action_class).failed(message))
        case RequestReset(action_class=action_class):
            return _with_action(state, action_class, ActionState())

        case ViewLoaded(view=View.ALL, records=records, pagination=pagination):
            active, inactive = views.split_active_inactive(records)
            return replace(
                state,
                all=tuple(records),
                active=active,
                inactive=inactive,
                **_with_pagination(state, View.ALL, pagination),
            )
        case ViewLoaded(view=view, records=records, pagination=pagination):
            return replace(
                state,
                **{view.value: tuple(records)},
                **_with_pagination(state, view, pagination),
            )

        case RecordLoaded(record=record):
            return replace(state, record=record)
        case SearchResolved(query=query, records=records):
            return replace(state, search_query=query, search_results=tuple(records))
        case SearchQuerySet(query=query):
            return replace(state, search_query=query)

        case RecordChanged(record=record):
            return _apply_change(state, record)
        case RecordDeleted(record_id=record_id, keep_in_all=keep_in_all):
            detail = state.record
            if detail is not None and detail.id == record_id:
                detail = None
            return replace(
                state,
                record=detail,
                all=state.all if keep_in_all else views.without(state.all, record_id),
                active=views.without(state.active, record_id),
                inactive=views.without(state.inactive, record_id),
            )
        case RecordRestored(record=record):
            return replace(
                state,
                record=_patch_detail(state, record),
                all=views.replace_in_place(state.all, record),
                deleted=views.without(state.deleted, record.id),
            )

        case StatsLoaded(stats=stats):
            return replace(state, stats=stats)
        case ParamsUpdated(params=params):
            return replace(state, params=params)
        case Initialized():
            return replace(state, is_initialized=True)
        case DataCleared():
            return replace(
                state,
                record=None,
                all=(),
                active=(),
                inactive=(),
                deleted=(),
                search_results=(),
                pagination={},
                stats=None,
            )
        case _:
            assert_never(action)
