"""Admin moderation state for categories and services.

``ModerationStateStore`` caches the record views an admin screen shows
(all, active, inactive, deleted, search results) and keeps them
consistent as moderation actions succeed. Changes are applied only
after the collaborator API confirms them, then reconciled into the
loaded views so a single action never needs a full reload.

One store per owning screen. Create it, optionally ``await
store.initialize()`` (or use ``async with``), and ``dispose()`` it when
the screen goes away; writes that complete after disposal are dropped.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Sequence
from functools import partial
from typing import TypeVar

from catalog_admin.api.base import CollaboratorAPI
from catalog_admin.config import StoreOptions
from catalog_admin.exceptions import describe_error, is_unauthenticated
from catalog_admin.schemas.common import ListParams
from catalog_admin.schemas.record import (
    DisplayOrderEntry,
    ModerateRequest,
    ModerationStats,
    ModerationStatus,
    Record,
    RecordCreate,
    RecordUpdate,
)
from catalog_admin.schemas.state import ActionClass, View
from catalog_admin.store import views
from catalog_admin.store.actions import (
    Action,
    DataCleared,
    Initialized,
    ParamsUpdated,
    RecordChanged,
    RecordDeleted,
    RecordLoaded,
    RecordRestored,
    RequestFailed,
    RequestReset,
    RequestStarted,
    RequestSucceeded,
    SearchQuerySet,
    SearchResolved,
    StatsLoaded,
    StoreState,
    ViewLoaded,
    reduce,
)
from catalog_admin.store.bulk import BulkResult, Settled, settle_all
from catalog_admin.store.views import Records

logger = logging.getLogger("catalog_admin.store")

T = TypeVar("T")
Listener = Callable[[StoreState], None]


class ModerationStateStore:
    def __init__(self, api: CollaboratorAPI, options: StoreOptions | None = None):
        self.api = api
        self.options = options or StoreOptions()
        self._state = StoreState(
            params=self.options.default_params.merged(
                include_inactive=self.options.include_inactive
            ),
        )
        self._listeners: list[Listener] = []
        self._disposed = False

    async def __aenter__(self) -> ModerationStateStore:
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.dispose()

    @property
    def state(self) -> StoreState:
        return self._state

    @property
    def disposed(self) -> bool:
        return self._disposed

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` with the new state after every change."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def dispose(self) -> None:
        self._disposed = True
        self._listeners.clear()

    # ── Plumbing ─────────────────────────────────────────────

    def _dispatch(self, action: Action) -> None:
        if self._disposed:
            logger.debug("Dropping %s: store disposed", type(action).__name__)
            return
        self._state = reduce(self._state, action)
        for listener in list(self._listeners):
            listener(self._state)

    async def _run(
        self,
        action_class: ActionClass,
        call: Callable[[], Awaitable[T]],
        reconcile: Callable[[T], Iterable[Action]] | None = None,
    ) -> T:
        """Track ``call`` in the ActionState for ``action_class``.

        On success the reconciliation actions are applied before the
        success flag, so observers never see success over stale views.
        On failure the error is recorded and re-raised; views are untouched.
        """
        self._dispatch(RequestStarted(action_class))
        try:
            result = await call()
        except Exception as exc:
            self._dispatch(RequestFailed(action_class, describe_error(exc)))
            raise
        if reconcile is not None:
            for action in reconcile(result):
                self._dispatch(action)
        self._dispatch(RequestSucceeded(action_class))
        return result

    async def _refresh(self, view: View) -> None:
        """Refetch ``view`` after an action; the action already succeeded."""
        try:
            await self.fetch(view)
        except Exception as exc:
            logger.warning("Refetch of %s view failed: %s", view.value, exc)

    def _query(self, view: View, params: ListParams | None) -> ListParams:
        query = params or self._state.params
        if view is View.ALL and self.options.all_includes_deleted:
            query = query.merged(include_deleted=True)
        return query

    async def _load(self, view: View, query: ListParams) -> ViewLoaded:
        match view:
            case View.ALL:
                page = await self.api.list_all(query)
                return ViewLoaded(View.ALL, tuple(page.items), page.pagination)
            case View.ACTIVE:
                page = await self.api.list_all(query.merged(is_active=True))
                active = tuple(r for r in page.items if views.belongs_in_active(r))
                return ViewLoaded(View.ACTIVE, active, page.pagination)
            case View.INACTIVE:
                page = await self.api.list_inactive(query)
                return ViewLoaded(View.INACTIVE, tuple(page.items), page.pagination)
            case View.DELETED:
                page = await self.api.list_deleted(query)
                return ViewLoaded(View.DELETED, tuple(page.items), page.pagination)
            case View.SEARCH_RESULTS:
                raise ValueError("search results are loaded with search()")

    # ── Initialization ───────────────────────────────────────

    async def initialize(self) -> None:
        """Run the auto-fetches enabled in the store options, concurrently.

        Each part settles on its own: a failed part is logged and skipped.
        A 401 is never shown as an error (the admin is not signed in yet).
        """
        if self._state.is_initialized:
            return

        options = self.options
        if not options.wants_auto_fetch:
            self._dispatch(Initialized())
            return

        parts: list[tuple[str, Awaitable[Action]]] = []
        if options.record_id and options.auto_fetch_record:
            parts.append(("record", self._load_record(options.record_id)))
        if options.auto_fetch_all:
            parts.append(("all", self._load(View.ALL, self._query(View.ALL, None))))
        if options.auto_fetch_inactive:
            parts.append(("inactive", self._load(View.INACTIVE, self._query(View.INACTIVE, None))))
        if options.auto_fetch_deleted:
            parts.append(("deleted", self._load(View.DELETED, self._query(View.DELETED, None))))

        self._dispatch(RequestStarted(ActionClass.FETCH))
        results = await asyncio.gather(
            *(coro for _, coro in parts), return_exceptions=True
        )
        if self._disposed:
            return

        error: str | None = None
        failures = 0
        for (name, _), result in zip(parts, results):
            if isinstance(result, BaseException):
                failures += 1
                logger.warning("Initial fetch of %s failed: %s", name, result)
                if error is None and not is_unauthenticated(result):
                    error = describe_error(result)
            else:
                self._dispatch(result)

        if error is not None:
            self._dispatch(RequestFailed(ActionClass.FETCH, error))
        elif failures:
            self._dispatch(RequestReset(ActionClass.FETCH))
        else:
            self._dispatch(RequestSucceeded(ActionClass.FETCH))
        self._dispatch(Initialized())
        logger.info(
            "Store initialized: %d of %d initial fetches succeeded",
            len(parts) - failures, len(parts),
        )

    async def _load_record(self, record_id: str) -> RecordLoaded:
        return RecordLoaded(await self.api.get(record_id))

    # ── Fetching ─────────────────────────────────────────────

    async def fetch(self, view: View, params: ListParams | None = None) -> Records:
        """Replace ``view`` and its pagination wholesale."""
        loaded = await self._run(
            ActionClass.FETCH,
            partial(self._load, view, self._query(view, params)),
            lambda action: [action],
        )
        return loaded.records

    async def fetch_record(self, record_id: str) -> Record:
        loaded = await self._run(
            ActionClass.FETCH,
            partial(self._load_record, record_id),
            lambda action: [action],
        )
        return loaded.record

    async def fetch_stats(self) -> ModerationStats:
        async def _count(status: ModerationStatus) -> int:
            page = await self.api.list_all(
                ListParams(page=1, limit=1, moderation_status=status, include_inactive=True)
            )
            return page.pagination.total

        async def _collect() -> ModerationStats:
            statuses = list(ModerationStatus)
            counts = await asyncio.gather(*(_count(status) for status in statuses))
            deleted = await self.api.list_deleted(ListParams(page=1, limit=1))
            return ModerationStats(
                **{status.value: count for status, count in zip(statuses, counts)},
                deleted=deleted.pagination.total,
            )

        return await self._run(
            ActionClass.FETCH, _collect, lambda stats: [StatsLoaded(stats)]
        )

    async def refetch(self) -> None:
        """Reload everything currently on screen."""
        loads: list[Awaitable] = []
        if self.options.record_id and self._state.record is not None:
            loads.append(self.fetch_record(self.options.record_id))
        for view in (View.ALL, View.ACTIVE, View.INACTIVE, View.DELETED):
            if self._state.is_loaded(view):
                loads.append(self.fetch(view))
        results = await asyncio.gather(*loads, return_exceptions=True)
        errors = [result for result in results if isinstance(result, BaseException)]
        if errors:
            logger.warning("%d of %d refetches failed", len(errors), len(loads))
            raise errors[0]

    # ── Search ───────────────────────────────────────────────

    async def search(self, query: str, limit: int | None = None) -> Records:
        return await self._search(query, limit, inactive_only=False)

    async def search_inactive(self, query: str, limit: int | None = None) -> Records:
        return await self._search(query, limit, inactive_only=True)

    async def _search(self, query: str, limit: int | None, *, inactive_only: bool) -> Records:
        if not query.strip():
            self._dispatch(SearchResolved(query, ()))
            return ()

        async def _call() -> Records:
            found = await self.api.search(query, limit or self.options.search_limit)
            if inactive_only:
                found = [r for r in found if not r.is_active]
            return tuple(found)

        return await self._run(
            ActionClass.FETCH, _call, lambda found: [SearchResolved(query, found)]
        )

    def clear_search(self) -> None:
        self._dispatch(SearchResolved("", ()))

    def set_search_query(self, query: str) -> None:
        self._dispatch(SearchQuerySet(query))

    # ── Single-record actions ────────────────────────────────

    async def create(self, data: RecordCreate) -> Record:
        record = await self._run(ActionClass.CREATE, partial(self.api.create, data))
        if self._state.is_loaded(View.ALL):
            await self._refresh(View.ALL)
        return record

    async def update(self, record_id: str, data: RecordUpdate) -> Record:
        return await self._run(
            ActionClass.UPDATE,
            partial(self.api.update, record_id, data),
            lambda record: [RecordChanged(record)],
        )

    async def moderate(
        self, record_id: str, status: ModerationStatus, notes: str | None = None
    ) -> Record:
        request = ModerateRequest(status=status, notes=notes)
        return await self._run(
            ActionClass.MODERATE,
            partial(self.api.moderate, record_id, request),
            lambda record: [RecordChanged(record)],
        )

    async def approve(self, record_id: str, notes: str | None = None) -> Record:
        return await self.moderate(record_id, ModerationStatus.APPROVED, notes)

    async def reject(self, record_id: str, reason: str | None = None) -> Record:
        return await self.moderate(record_id, ModerationStatus.REJECTED, reason)

    async def flag(self, record_id: str, notes: str | None = None) -> Record:
        return await self.moderate(record_id, ModerationStatus.FLAGGED, notes)

    async def hide(self, record_id: str, notes: str | None = None) -> Record:
        return await self.moderate(record_id, ModerationStatus.HIDDEN, notes)

    async def toggle_status(self, record_id: str) -> Record:
        return await self._run(
            ActionClass.UPDATE,
            partial(self.api.toggle_active, record_id),
            lambda record: [RecordChanged(record)],
        )

    async def delete(self, record_id: str, *, refetch: bool = True) -> None:
        """Soft-delete. The deleted view is refetched, not synthesized."""
        keep_in_all = self.options.all_includes_deleted
        await self._run(
            ActionClass.DELETE,
            partial(self.api.soft_delete, record_id),
            lambda _: [RecordDeleted(record_id, keep_in_all=keep_in_all)],
        )
        if refetch:
            await self._after_delete()

    async def _after_delete(self) -> None:
        await self._refresh(View.DELETED)
        if self.options.all_includes_deleted and self._state.is_loaded(View.ALL):
            await self._refresh(View.ALL)

    async def restore(self, record_id: str, *, refetch: bool = True) -> Record:
        """Undo a soft delete.

        The server may restore child records too, so the all/active/inactive
        views are refetched rather than patched.
        """
        record = await self._run(
            ActionClass.UPDATE,
            partial(self.api.restore, record_id),
            lambda restored: [RecordRestored(restored)],
        )
        if refetch:
            await self._refresh(View.ALL)
        return record

    async def update_display_order(self, entries: Sequence[DisplayOrderEntry]) -> None:
        await self._run(
            ActionClass.UPDATE, partial(self.api.update_display_order, list(entries))
        )
        if self._state.is_loaded(View.ALL):
            await self._refresh(View.ALL)

    # ── Bulk actions ─────────────────────────────────────────

    def _bulk_result(
        self,
        requested: int,
        settled: Settled,
        selection: Iterable[str] | None,
        view: View,
        removed: Iterable[str] = (),
    ) -> BulkResult:
        pruned = None
        if selection is not None:
            kept = views.prune_selection(selection, self._state.view(view))
            pruned = frozenset(kept.difference(removed))
        records = tuple(value for value in settled.values if isinstance(value, Record))
        return BulkResult(
            requested=requested,
            succeeded=requested - settled.failed,
            failed=settled.failed,
            records=records,
            selection=pruned,
        )

    async def bulk_approve(
        self,
        record_ids: Sequence[str],
        notes: str | None = None,
        *,
        selection: Iterable[str] | None = None,
        view: View = View.ALL,
    ) -> BulkResult:
        settled = await settle_all(
            record_ids, partial(self.approve, notes=notes), label="approve"
        )
        return self._bulk_result(len(record_ids), settled, selection, view)

    async def bulk_reject(
        self,
        record_ids: Sequence[str],
        reason: str | None = None,
        *,
        selection: Iterable[str] | None = None,
        view: View = View.ALL,
    ) -> BulkResult:
        settled = await settle_all(
            record_ids, partial(self.reject, reason=reason), label="reject"
        )
        return self._bulk_result(len(record_ids), settled, selection, view)

    async def bulk_moderate(
        self,
        items: Sequence[tuple[str, ModerateRequest]],
        *,
        selection: Iterable[str] | None = None,
        view: View = View.ALL,
    ) -> BulkResult:
        async def _moderate(item: tuple[str, ModerateRequest]) -> Record:
            record_id, request = item
            return await self.moderate(record_id, request.status, request.notes)

        settled = await settle_all(items, _moderate, label="moderation")
        return self._bulk_result(len(items), settled, selection, view)

    async def bulk_toggle_status(
        self,
        record_ids: Sequence[str],
        *,
        selection: Iterable[str] | None = None,
        view: View = View.ALL,
    ) -> BulkResult:
        settled = await settle_all(record_ids, self.toggle_status, label="status toggle")
        return self._bulk_result(len(record_ids), settled, selection, view)

    async def bulk_delete(
        self,
        record_ids: Sequence[str],
        *,
        selection: Iterable[str] | None = None,
        view: View = View.ALL,
    ) -> BulkResult:
        async def _delete(record_id: str) -> str:
            await self.delete(record_id, refetch=False)
            return record_id

        settled = await settle_all(record_ids, _delete, label="delete")
        if settled.failed < len(record_ids):
            await self._after_delete()
        # Deleted ids leave the selection even when `all` still lists them.
        return self._bulk_result(
            len(record_ids), settled, selection, view, removed=settled.values
        )

    async def bulk_restore(
        self,
        record_ids: Sequence[str],
        *,
        selection: Iterable[str] | None = None,
        view: View = View.DELETED,
    ) -> BulkResult:
        settled = await settle_all(
            record_ids, partial(self.restore, refetch=False), label="restore"
        )
        if settled.failed < len(record_ids):
            await self._refresh(View.ALL)
        return self._bulk_result(len(record_ids), settled, selection, view)

    # ── Explicit resets ──────────────────────────────────────

    def update_params(self, **overrides) -> ListParams:
        params = self._state.params.merged(**overrides)
        self._dispatch(ParamsUpdated(params))
        return params

    def clear_data(self) -> None:
        self._dispatch(DataCleared())

    def clear_error(self) -> None:
        self._dispatch(RequestReset(ActionClass.FETCH))

    def reset(self, action_class: ActionClass) -> None:
        self._dispatch(RequestReset(action_class))
