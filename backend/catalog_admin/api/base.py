"""The remote catalog API the admin store talks to.

Any object with these coroutines can back a ModerationStateStore: the
httpx client in ``catalog_admin.api.http`` for a real deployment, or an
in-memory fake in tests. Every method raises ``CollaboratorAPIError``
on failure.
"""

from typing import Protocol

from catalog_admin.schemas.common import ListParams, Page
from catalog_admin.schemas.record import (
    DisplayOrderEntry,
    ModerateRequest,
    Record,
    RecordCreate,
    RecordUpdate,
)


class CollaboratorAPI(Protocol):
    async def get(self, record_id: str) -> Record: ...

    async def list_all(self, params: ListParams) -> Page[Record]: ...

    async def list_inactive(self, params: ListParams) -> Page[Record]: ...

    async def list_deleted(self, params: ListParams) -> Page[Record]: ...

    async def search(self, query: str, limit: int) -> list[Record]: ...

    async def create(self, data: RecordCreate) -> Record: ...

    async def update(self, record_id: str, data: RecordUpdate) -> Record: ...

    async def soft_delete(self, record_id: str) -> None: ...

    async def restore(self, record_id: str) -> Record: ...

    async def toggle_active(self, record_id: str) -> Record: ...

    async def moderate(self, record_id: str, request: ModerateRequest) -> Record: ...

    async def update_display_order(self, entries: list[DisplayOrderEntry]) -> None: ...
