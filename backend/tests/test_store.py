"""Tests for ModerationStateStore against the in-memory collaborator."""

import asyncio
from datetime import datetime, timezone

import pytest

from catalog_admin.config import StoreOptions
from catalog_admin.exceptions import UNEXPECTED_ERROR_MESSAGE, CollaboratorAPIError
from catalog_admin.schemas.common import ListParams
from catalog_admin.schemas.record import (
    DisplayOrderEntry,
    ModerationStatus,
    RecordCreate,
    RecordUpdate,
)
from catalog_admin.schemas.state import ActionClass, View
from catalog_admin.store.moderation import ModerationStateStore

DELETED_AT = datetime(2024, 2, 1, tzinfo=timezone.utc)


def ids(records):
    return [r.id for r in records]


@pytest.fixture
def store(fake_api) -> ModerationStateStore:
    return ModerationStateStore(fake_api)


@pytest.mark.unit
@pytest.mark.asyncio
class TestReconciliation:
    """Test that confirmed actions are reconciled into loaded views."""

    async def test_toggle_moves_record_to_inactive(self, store, fake_api, make_record):
        """Deactivating A leaves B alone in active and puts A' in inactive."""
        fake_api.seed(make_record("a"), make_record("b"))
        await store.fetch(View.ALL)

        updated = await store.toggle_status("a")

        assert updated.is_active is False
        assert store.state.active == (make_record("b"),)
        assert store.state.inactive == (updated,)
        assert ids(store.state.all) == ["a", "b"]
        assert store.state.action(ActionClass.UPDATE).success

    async def test_restore_patches_all_and_refetches(self, fake_api, make_record):
        """Restore removes C from deleted, patches it in all, then refetches."""
        store = ModerationStateStore(fake_api, StoreOptions(all_includes_deleted=True))
        fake_api.seed(make_record("c", is_deleted=True, deleted_at=DELETED_AT))
        await store.fetch(View.ALL)
        await store.fetch(View.DELETED)
        assert ids(store.state.all) == ["c"]
        assert ids(store.state.deleted) == ["c"]

        snapshots = []
        store.subscribe(snapshots.append)
        list_calls = fake_api.calls["list_all"]

        restored = await store.restore("c")

        assert restored.is_deleted is False
        patched = next(s for s in snapshots if s.deleted == ())
        assert patched.all == (restored,)
        assert store.state.deleted == ()
        assert store.state.all == (restored,)
        assert fake_api.calls["list_all"] == list_calls + 1

    async def test_restore_rederives_active_view(self, store, fake_api, make_record):
        fake_api.seed(make_record("c", is_deleted=True, deleted_at=DELETED_AT))
        await store.fetch(View.DELETED)

        await store.restore("c")

        assert ids(store.state.active) == ["c"]
        assert store.state.inactive == ()
        assert store.state.deleted == ()
        assert fake_api.calls["list_all"] == 1

    async def test_moderate_patches_every_view(self, store, fake_api, make_record):
        fake_api.seed(make_record("a", name="Alpha"), make_record("b", name="Beta"))
        await store.fetch(View.ALL)
        await store.fetch_record("a")
        await store.search("alpha")

        approved = await store.approve("a", notes="Looks good")

        assert approved.moderation_status is ModerationStatus.APPROVED
        assert store.state.record == approved
        assert store.state.all[0] == approved
        assert store.state.active[0] == approved
        assert store.state.search_results == (approved,)
        assert store.state.action(ActionClass.MODERATE).success

    async def test_delete_removes_and_refetches_deleted(self, store, fake_api, make_record):
        fake_api.seed(make_record("a"), make_record("b"))
        await store.fetch(View.ALL)
        await store.fetch(View.DELETED)

        await store.delete("a")

        assert ids(store.state.all) == ["b"]
        assert ids(store.state.active) == ["b"]
        assert ids(store.state.deleted) == ["a"]
        assert store.state.deleted[0].deleted_by == "admin"
        assert store.state.deleted[0].deleted_at is not None
        assert fake_api.calls["list_deleted"] == 2
        assert fake_api.calls["list_all"] == 1

    async def test_delete_with_inclusive_all(self, fake_api, make_record):
        store = ModerationStateStore(fake_api, StoreOptions(all_includes_deleted=True))
        fake_api.seed(make_record("a"), make_record("b"))
        await store.fetch(View.ALL)

        await store.delete("a")

        assert ids(store.state.all) == ["a", "b"]
        assert store.state.all[0].is_deleted
        assert ids(store.state.active) == ["b"]
        assert store.state.inactive == ()
        assert fake_api.calls["list_all"] == 2

    async def test_inclusive_all_keeps_deleted_out_of_active_and_inactive(
        self, fake_api, make_record
    ):
        store = ModerationStateStore(fake_api, StoreOptions(all_includes_deleted=True))
        fake_api.seed(
            make_record("a"),
            make_record("b", is_active=False),
            make_record("c", is_deleted=True, deleted_at=DELETED_AT),
        )
        await store.fetch(View.ALL)
        assert ids(store.state.all) == ["a", "b", "c"]

        await store.toggle_status("b")
        await store.delete("a")

        deleted = {r.id for r in store.state.all if r.is_deleted}
        assert deleted == {"a", "c"}
        assert ids(store.state.active) == ["b"]
        assert store.state.inactive == ()
        for record_id in deleted:
            assert record_id not in ids(store.state.active)
            assert record_id not in ids(store.state.inactive)

    async def test_change_does_not_seed_unloaded_views(self, store, fake_api, make_record):
        fake_api.seed(
            make_record("y", is_deleted=True, deleted_at=DELETED_AT),
            make_record("z"),
        )
        await store.fetch(View.DELETED)

        await store.toggle_status("z")

        assert store.state.inactive == ()
        assert store.state.active == ()
        assert not store.state.is_loaded(View.INACTIVE)

    async def test_views_stay_exclusive(self, store, fake_api, make_record):
        fake_api.seed(
            make_record("a"),
            make_record("b", is_active=False),
            make_record("c"),
        )
        await store.fetch(View.ALL)

        await store.toggle_status("b")
        await store.toggle_status("c")
        await store.delete("a")

        active, inactive = set(ids(store.state.active)), set(ids(store.state.inactive))
        assert active.isdisjoint(inactive)
        assert active == {"b"}
        assert inactive == {"c"}


@pytest.mark.unit
@pytest.mark.asyncio
class TestFailures:
    """Test that failures are recorded, re-raised, and leave views alone."""

    async def test_failed_action_keeps_views(self, store, fake_api, make_record):
        fake_api.seed(make_record("a"), make_record("b"))
        await store.fetch(View.ALL)
        before = store.state
        fake_api.fail("toggle_active", "a")

        with pytest.raises(CollaboratorAPIError):
            await store.toggle_status("a")

        assert store.state.action(ActionClass.UPDATE).error == "toggle_active failed"
        assert store.state.all == before.all
        assert store.state.active == before.active
        assert store.state.inactive == before.inactive

    async def test_unexpected_error_is_described_generically(self, store, fake_api, make_record):
        fake_api.seed(make_record("a"))
        fake_api.fail("moderate", "a", RuntimeError("socket closed"))

        with pytest.raises(RuntimeError):
            await store.reject("a", reason="Spam")

        assert store.state.action(ActionClass.MODERATE).error == UNEXPECTED_ERROR_MESSAGE

    async def test_failed_fetch_keeps_previous_view(self, store, fake_api, make_record):
        fake_api.seed(make_record("a"))
        await store.fetch(View.ALL)
        fake_api.fail("list_all")

        with pytest.raises(CollaboratorAPIError):
            await store.fetch(View.ALL)

        assert ids(store.state.all) == ["a"]
        assert store.state.error == "list_all failed"

        store.clear_error()
        assert store.state.error is None

    async def test_reset_returns_class_to_idle(self, store, fake_api, make_record):
        fake_api.seed(make_record("a"))
        await store.hide("a")
        assert store.state.action(ActionClass.MODERATE).success

        store.reset(ActionClass.MODERATE)

        assert store.state.action(ActionClass.MODERATE).is_idle

    async def test_failed_search_keeps_last_results(self, store, fake_api, make_record):
        fake_api.seed(make_record("a", name="Alpha"))
        await store.search("alp")
        fake_api.fail("search")

        with pytest.raises(CollaboratorAPIError):
            await store.search("beta")

        assert ids(store.state.search_results) == ["a"]
        assert store.state.search_query == "alp"

    async def test_missing_record(self, store):
        with pytest.raises(CollaboratorAPIError) as exc_info:
            await store.delete("ghost")

        assert exc_info.value.status_code == 404
        assert store.state.action(ActionClass.DELETE).error == "Category not found: ghost"


@pytest.mark.unit
@pytest.mark.asyncio
class TestFetching:
    """Test fetch, search and the other read operations."""

    async def test_fetch_is_idempotent(self, store, fake_api, make_record):
        fake_api.seed(make_record("a"), make_record("b", is_active=False))

        first = await store.fetch(View.ALL)
        state = store.state
        second = await store.fetch(View.ALL)

        assert first == second
        assert store.state.all == state.all
        assert store.state.active == state.active
        assert store.state.inactive == state.inactive

    async def test_fetch_sets_pagination(self, store, fake_api, make_record):
        fake_api.seed(*(make_record(str(n)) for n in range(5)))
        store.update_params(limit=2)

        records = await store.fetch(View.ALL)

        assert len(records) == 2
        pagination = store.state.pagination[View.ALL]
        assert pagination.total == 5
        assert pagination.pages == 3

    async def test_inactive_pagination_spans_pages(self, store, fake_api, make_record):
        fake_api.seed(*(make_record(f"off-{n:02d}", is_active=False) for n in range(30)))
        fake_api.seed(*(make_record(f"on-{n}") for n in range(5)))

        await store.fetch(View.INACTIVE, ListParams(limit=10, include_inactive=True))
        pagination = store.state.pagination[View.INACTIVE]
        assert len(store.state.inactive) == 10
        assert pagination.total == 30
        assert pagination.pages == 3

        await store.fetch(View.INACTIVE, ListParams(page=3, limit=10, include_inactive=True))
        assert ids(store.state.inactive)[-1] == "off-29"
        assert store.state.pagination[View.INACTIVE].page == 3

    async def test_active_pagination_spans_pages(self, store, fake_api, make_record):
        fake_api.seed(*(make_record(f"on-{n:02d}") for n in range(30)))
        fake_api.seed(*(make_record(f"off-{n}", is_active=False) for n in range(5)))

        await store.fetch(View.ACTIVE, ListParams(page=2, limit=10, include_inactive=True))

        pagination = store.state.pagination[View.ACTIVE]
        assert pagination.total == 30
        assert pagination.pages == 3
        assert ids(store.state.active)[0] == "on-10"
        assert all(r.is_active for r in store.state.active)

    async def test_fetch_inactive(self, store, fake_api, make_record):
        fake_api.seed(make_record("a"), make_record("b", is_active=False))
        await store.fetch(View.INACTIVE)
        assert ids(store.state.inactive) == ["b"]

    async def test_empty_search_clears_without_network(self, store, fake_api, make_record):
        fake_api.seed(make_record("a", name="Alpha"))
        await store.search("alpha")
        assert ids(store.state.search_results) == ["a"]

        results = await store.search("")

        assert results == ()
        assert store.state.search_results == ()
        assert fake_api.calls["search"] == 1

    async def test_whitespace_search_is_not_searching(self, store, fake_api):
        await store.search("   ")
        assert store.state.search_results == ()
        assert fake_api.calls["search"] == 0

    async def test_search_inactive(self, store, fake_api, make_record):
        fake_api.seed(
            make_record("a", name="Alpha"),
            make_record("b", name="Alpha two", is_active=False),
        )
        results = await store.search_inactive("alpha")
        assert ids(results) == ["b"]

    async def test_fetch_stats(self, store, fake_api, make_record):
        fake_api.seed(
            make_record("a"),
            make_record("b", moderation_status=ModerationStatus.APPROVED),
            make_record("c", is_active=False, moderation_status=ModerationStatus.FLAGGED),
            make_record("d", is_deleted=True, deleted_at=DELETED_AT),
        )

        stats = await store.fetch_stats()

        assert stats.pending == 1
        assert stats.approved == 1
        assert stats.flagged == 1
        assert stats.deleted == 1
        assert stats.total == 4
        assert store.state.stats == stats

    async def test_refetch_reloads_loaded_views(self, store, fake_api, make_record):
        fake_api.seed(make_record("a"))
        await store.fetch(View.ALL)
        await store.fetch(View.DELETED)

        await store.refetch()

        assert fake_api.calls["list_all"] == 2
        assert fake_api.calls["list_deleted"] == 2
        assert fake_api.calls["list_inactive"] == 0

    async def test_refetch_settles_every_view_before_raising(self, store, fake_api, make_record):
        fake_api.seed(make_record("a"), make_record("b", is_deleted=True, deleted_at=DELETED_AT))
        await store.fetch(View.ALL)
        await store.fetch(View.DELETED)
        fake_api.seed(make_record("c"))
        fake_api.fail("list_deleted")

        with pytest.raises(CollaboratorAPIError):
            await store.refetch()

        assert ids(store.state.all) == ["a", "c"]
        assert ids(store.state.deleted) == ["b"]
        assert fake_api.calls["list_all"] == 2


@pytest.mark.unit
@pytest.mark.asyncio
class TestWrites:
    """Test create, update and display order."""

    async def test_create_refreshes_loaded_all(self, store, fake_api):
        await store.fetch(View.ALL)

        record = await store.create(RecordCreate(name="Plumbing"))

        assert ids(store.state.all) == [record.id]
        assert store.state.action(ActionClass.CREATE).success
        assert fake_api.calls["list_all"] == 2

    async def test_update_patches_in_place(self, store, fake_api, make_record):
        fake_api.seed(make_record("a"), make_record("b"))
        await store.fetch(View.ALL)

        await store.update("b", RecordUpdate(name="Renamed"))

        assert ids(store.state.all) == ["a", "b"]
        assert store.state.all[1].name == "Renamed"

    async def test_update_display_order(self, store, fake_api, make_record):
        fake_api.seed(make_record("a"), make_record("b"))
        await store.fetch(View.ALL)

        await store.update_display_order([
            DisplayOrderEntry(id="b", display_order=0),
            DisplayOrderEntry(id="a", display_order=1),
        ])

        assert ids(store.state.all) == ["b", "a"]

    async def test_update_params_merges(self, store):
        params = store.update_params(page=3, search="clean")
        assert params.page == 3
        assert params.search == "clean"
        assert params.include_inactive is True
        assert store.state.params == params


@pytest.mark.integration
@pytest.mark.asyncio
class TestLifecycle:
    """Test initialization, subscription and disposal."""

    async def test_initialize_runs_auto_fetches(self, fake_api, make_record):
        fake_api.seed(make_record("a"), make_record("b", is_deleted=True, deleted_at=DELETED_AT))
        store = ModerationStateStore(
            fake_api, StoreOptions.manager(auto_fetch_deleted=True)
        )

        await store.initialize()
        await store.initialize()

        assert store.state.is_initialized
        assert ids(store.state.all) == ["a"]
        assert ids(store.state.deleted) == ["b"]
        assert store.state.action(ActionClass.FETCH).success
        assert fake_api.calls["list_all"] == 1

    async def test_initialize_without_auto_fetch(self, store, fake_api):
        await store.initialize()

        assert store.state.is_initialized
        assert store.state.action(ActionClass.FETCH).is_idle
        assert sum(fake_api.calls.values()) == 0

    async def test_initialize_hides_unauthenticated(self, fake_api):
        fake_api.fail("list_all", exc=CollaboratorAPIError("Not authorized, no token", 401))
        store = ModerationStateStore(fake_api, StoreOptions.manager())

        await store.initialize()

        assert store.state.is_initialized
        assert store.state.error is None
        assert store.state.action(ActionClass.FETCH).is_idle

    async def test_initialize_settles_parts_independently(self, fake_api, make_record):
        fake_api.seed(make_record("a"))
        fake_api.fail("list_deleted")
        store = ModerationStateStore(
            fake_api, StoreOptions.manager(auto_fetch_deleted=True)
        )

        await store.initialize()

        assert ids(store.state.all) == ["a"]
        assert store.state.error == "list_deleted failed"
        assert store.state.is_initialized

    async def test_context_manager_loads_detail(self, fake_api, make_record):
        fake_api.seed(make_record("a"))

        async with ModerationStateStore(fake_api, StoreOptions.detail("a")) as store:
            assert store.state.record.id == "a"

        assert store.disposed

    async def test_subscribe_and_unsubscribe(self, store, fake_api, make_record):
        fake_api.seed(make_record("a"))
        seen = []
        unsubscribe = store.subscribe(seen.append)

        await store.fetch(View.ALL)
        count = len(seen)
        unsubscribe()
        await store.fetch(View.ALL)

        assert count == 3
        assert len(seen) == count
        assert seen[-1].action(ActionClass.FETCH).success

    async def test_writes_after_dispose_are_dropped(self, store, fake_api, make_record):
        fake_api.seed(make_record("a"))

        task = asyncio.create_task(store.fetch(View.ALL))
        await asyncio.sleep(0)
        store.dispose()
        records = await task

        assert ids(records) == ["a"]
        assert store.state.all == ()
        assert not store.state.is_loaded(View.ALL)

    async def test_clear_data(self, store, fake_api, make_record):
        fake_api.seed(make_record("a"))
        await store.fetch(View.ALL)

        store.clear_data()

        assert store.state.all == ()
        assert store.state.pagination == {}
