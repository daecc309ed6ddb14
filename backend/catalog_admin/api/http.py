"""httpx-backed client for the catalog admin REST API.

One instance talks to one resource collection (``/categories`` or
``/services``). Responses use the envelope::

    {"success": true, "data": {"category": {...}}}
    {"success": true, "data": {"categories": [...], "pagination": {...}}}

Usage:
    async with HttpCollaborator(RecordKind.SERVICE) as api:
        store = ModerationStateStore(api, StoreOptions.manager())
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from catalog_admin.config import settings
from catalog_admin.exceptions import CollaboratorAPIError
from catalog_admin.schemas.common import ListParams, Page, Pagination
from catalog_admin.schemas.record import (
    DisplayOrderEntry,
    ModerateRequest,
    Record,
    RecordCreate,
    RecordKind,
    RecordUpdate,
)

logger = logging.getLogger(__name__)


class HttpCollaborator:
    def __init__(
        self,
        kind: RecordKind = RecordKind.CATEGORY,
        *,
        client: httpx.AsyncClient | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        headers: dict[str, str] | None = None,
    ):
        self.kind = kind
        self._prefix = f"/{kind.resource}"
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url or settings.api_base_url,
            timeout=timeout or settings.request_timeout_seconds,
            headers={"Content-Type": "application/json", **(headers or {})},
        )

    async def __aenter__(self) -> HttpCollaborator:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ── Transport ────────────────────────────────────────────

    async def _request(self, method: str, path: str, **kwargs) -> dict[str, Any]:
        url = f"{self._prefix}{path}"
        logger.debug("%s %s", method, url)
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.RequestError as exc:
            raise CollaboratorAPIError(
                "Network error or server is unreachable", data=str(exc)
            ) from exc

        if "application/json" in response.headers.get("content-type", ""):
            try:
                data = response.json()
            except ValueError:
                data = {"success": False, "message": response.text}
        else:
            data = {"success": False, "message": response.text}

        if response.is_error:
            message = data.get("message") if isinstance(data, dict) else None
            raise CollaboratorAPIError(
                message or f"Request failed with status {response.status_code}",
                status_code=response.status_code,
                data=data,
            )
        return data

    def _payload(self, body: dict[str, Any], key: str) -> Any:
        try:
            return body["data"][key]
        except (KeyError, TypeError):
            raise CollaboratorAPIError(
                f"Malformed response: missing '{key}'", data=body
            ) from None

    def _record(self, body: dict[str, Any]) -> Record:
        return Record.model_validate(self._payload(body, self.kind.value))

    def _records(self, body: dict[str, Any]) -> list[Record]:
        return [
            Record.model_validate(item)
            for item in self._payload(body, self.kind.resource)
        ]

    def _page(self, body: dict[str, Any]) -> Page[Record]:
        return Page[Record](
            items=self._records(body),
            pagination=Pagination.model_validate(self._payload(body, "pagination")),
        )

    # ── Reads ────────────────────────────────────────────────

    async def get(self, record_id: str) -> Record:
        return self._record(await self._request("GET", f"/{record_id}"))

    async def list_all(self, params: ListParams) -> Page[Record]:
        body = await self._request("GET", "/", params=params.to_query())
        return self._page(body)

    async def list_inactive(self, params: ListParams) -> Page[Record]:
        """Inactive records via the ``isActive=false`` filter of the listing."""
        page = await self.list_all(
            params.merged(include_inactive=True, is_active=False)
        )
        # Pagination counts the server-filtered set.
        return Page[Record](
            items=[record for record in page.items if not record.is_active],
            pagination=page.pagination,
        )

    async def list_deleted(self, params: ListParams) -> Page[Record]:
        query = ListParams(page=params.page, limit=params.limit, search=params.search)
        body = await self._request("GET", "/deleted", params=query.to_query())
        return self._page(body)

    async def search(self, query: str, limit: int) -> list[Record]:
        body = await self._request(
            "GET",
            "/search",
            params={"q": query, "limit": str(limit), "includeInactive": "true"},
        )
        return self._records(body)

    # ── Writes ───────────────────────────────────────────────

    async def create(self, data: RecordCreate) -> Record:
        body = await self._request(
            "POST", "/", json=data.model_dump(by_alias=True, exclude_none=True)
        )
        return self._record(body)

    async def update(self, record_id: str, data: RecordUpdate) -> Record:
        body = await self._request(
            "PUT",
            f"/{record_id}",
            json=data.model_dump(by_alias=True, exclude_unset=True),
        )
        return self._record(body)

    async def soft_delete(self, record_id: str) -> None:
        await self._request("DELETE", f"/{record_id}")

    async def restore(self, record_id: str) -> Record:
        return self._record(await self._request("PATCH", f"/{record_id}/restore"))

    async def toggle_active(self, record_id: str) -> Record:
        return self._record(
            await self._request("PATCH", f"/{record_id}/toggle-status")
        )

    async def moderate(self, record_id: str, request: ModerateRequest) -> Record:
        body = await self._request(
            "PATCH",
            f"/{record_id}/moderate",
            json=request.model_dump(by_alias=True, mode="json"),
        )
        return self._record(body)

    async def update_display_order(self, entries: list[DisplayOrderEntry]) -> None:
        await self._request(
            "PATCH",
            "/display-order",
            json={"items": [entry.model_dump(by_alias=True) for entry in entries]},
        )
