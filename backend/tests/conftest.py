"""Pytest configuration and fixtures for catalog admin tests.

Provides an in-memory collaborator for store tests, a record factory,
and an httpx client wired to the sandbox API.
"""

import asyncio
from collections import Counter
from datetime import datetime, timezone
from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio

from catalog_admin.exceptions import CollaboratorAPIError
from catalog_admin.sandbox.app import create_app
from catalog_admin.sandbox.repository import CatalogRepository
from catalog_admin.schemas.common import ListParams, Page
from catalog_admin.schemas.record import (
    DisplayOrderEntry,
    ModerateRequest,
    Record,
    RecordCreate,
    RecordKind,
    RecordUpdate,
)

CREATED_AT = datetime(2024, 1, 1, tzinfo=timezone.utc)


def build_record(record_id: str, **fields) -> Record:
    """Create a record with sensible defaults for tests."""
    fields.setdefault("name", f"Record {record_id}")
    fields.setdefault("created_at", CREATED_AT)
    return Record(id=record_id, **fields)


# ── Fake collaborator ────────────────────────────────────────────

class FakeCollaborator:
    """In-memory CollaboratorAPI with call counters and failure injection.

    Server semantics come from the sandbox repository, so the store sees
    the same cascade and listing rules as against the HTTP API.
    """

    def __init__(self):
        self.repository = CatalogRepository(RecordKind.CATEGORY)
        self.calls: Counter[str] = Counter()
        self._failures: dict[tuple[str, str | None], Exception] = {}

    def seed(self, *records: Record) -> None:
        for record in records:
            self.repository._save(record)

    def fail(self, method: str, record_id: str | None = None, exc: Exception | None = None) -> None:
        """Make ``method`` raise for ``record_id`` (or for every call)."""
        self._failures[(method, record_id)] = exc or CollaboratorAPIError(
            f"{method} failed", status_code=500
        )

    def heal(self) -> None:
        self._failures.clear()

    async def _enter(self, method: str, record_id: str | None = None) -> None:
        self.calls[method] += 1
        await asyncio.sleep(0)
        exc = self._failures.get((method, record_id)) or self._failures.get((method, None))
        if exc is not None:
            raise exc

    async def get(self, record_id: str) -> Record:
        await self._enter("get", record_id)
        return self.repository.get(record_id, deleted=None)

    async def list_all(self, params: ListParams) -> Page[Record]:
        await self._enter("list_all")
        return self.repository.list_records(params)

    async def list_inactive(self, params: ListParams) -> Page[Record]:
        await self._enter("list_inactive")
        return self.repository.list_records(
            params.merged(include_inactive=True, is_active=False)
        )

    async def list_deleted(self, params: ListParams) -> Page[Record]:
        await self._enter("list_deleted")
        return self.repository.list_deleted(params)

    async def search(self, query: str, limit: int) -> list[Record]:
        await self._enter("search")
        return self.repository.search(query, limit, include_inactive=True)

    async def create(self, data: RecordCreate) -> Record:
        await self._enter("create")
        return self.repository.create(data)

    async def update(self, record_id: str, data: RecordUpdate) -> Record:
        await self._enter("update", record_id)
        return self.repository.update(record_id, data)

    async def soft_delete(self, record_id: str) -> None:
        await self._enter("soft_delete", record_id)
        self.repository.soft_delete(record_id, "admin")

    async def restore(self, record_id: str) -> Record:
        await self._enter("restore", record_id)
        record, _ = self.repository.restore(record_id)
        return record

    async def toggle_active(self, record_id: str) -> Record:
        await self._enter("toggle_active", record_id)
        return self.repository.toggle_active(record_id)

    async def moderate(self, record_id: str, request: ModerateRequest) -> Record:
        await self._enter("moderate", record_id)
        return self.repository.moderate(record_id, request)

    async def update_display_order(self, entries: list[DisplayOrderEntry]) -> None:
        await self._enter("update_display_order")
        self.repository.update_display_order(entries)


# ── Fixtures ─────────────────────────────────────────────────────

@pytest.fixture
def make_record():
    """Factory for records: ``make_record("a", is_active=False)``."""
    return build_record


@pytest.fixture
def fake_api() -> FakeCollaborator:
    return FakeCollaborator()


@pytest.fixture
def sandbox_app():
    return create_app(
        categories=[
            build_record("parent", name="Cleaning", display_order=0),
            build_record("child", name="Deep cleaning", parent_id="parent", display_order=1),
            build_record("dormant", name="Gardening", is_active=False, display_order=2),
        ],
        services=[
            build_record("svc-1", name="Window washing"),
        ],
    )


@pytest_asyncio.fixture
async def sandbox_client(sandbox_app) -> AsyncGenerator[httpx.AsyncClient, None]:
    """httpx client talking to the sandbox API in-process."""
    transport = httpx.ASGITransport(app=sandbox_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test/api") as client:
        yield client


# ── Test Markers ─────────────────────────────────────────────────

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "api: Tests against the sandbox HTTP API")
