"""In-process catalog admin API for local development and integration tests.

Serves ``/api/categories`` and ``/api/services`` from in-memory
repositories with the same envelope and routes the HTTP collaborator
expects from the production API.

Usage:
    app = create_app(categories=[...])
    transport = httpx.ASGITransport(app=app)
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, status
from pydantic import BaseModel, Field

from catalog_admin.config import configure_logging, settings
from catalog_admin.sandbox.errors import register_exception_handlers
from catalog_admin.sandbox.repository import CatalogRepository
from catalog_admin.schemas.common import ListParams, Page
from catalog_admin.schemas.record import (
    DisplayOrderEntry,
    ModerateRequest,
    ModerationStatus,
    Record,
    RecordCreate,
    RecordKind,
    RecordUpdate,
)

logger = logging.getLogger(__name__)


class DisplayOrderBody(BaseModel):
    items: list[DisplayOrderEntry] = Field(..., min_length=1)


# ── Envelope helpers ─────────────────────────────────────────

def _one(kind: RecordKind, record: Record, **extra) -> dict:
    return {"success": True, "data": {kind.value: record.to_wire(), **extra}}


def _many(kind: RecordKind, records: list[Record]) -> dict:
    return {"success": True, "data": {kind.resource: [r.to_wire() for r in records]}}


def _page(kind: RecordKind, page: Page[Record]) -> dict:
    return {
        "success": True,
        "data": {
            kind.resource: [r.to_wire() for r in page.items],
            "pagination": page.pagination.model_dump(),
        },
    }


# ── Auth ─────────────────────────────────────────────────────

def require_admin(request: Request) -> str:
    """Return the acting admin; 401 when a token is configured and missing."""
    token = request.app.state.admin_token
    if token is None:
        return "admin"
    header = request.headers.get("Authorization", "")
    if header != f"Bearer {token}":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authorized, no token",
        )
    return "admin"


# ── Routers ──────────────────────────────────────────────────

def build_router(kind: RecordKind) -> APIRouter:
    router = APIRouter(dependencies=[Depends(require_admin)])
    label = kind.value.capitalize()

    def get_repository(request: Request) -> CatalogRepository:
        return request.app.state.repositories[kind]

    @router.get("/")
    async def list_records(
        page: int = Query(1, ge=1),
        limit: int = Query(settings.default_page_size, ge=1, le=500),
        search: str | None = None,
        parent_id: str | None = Query(None, alias="parentId"),
        moderation_status: ModerationStatus | None = Query(None, alias="moderationStatus"),
        sort_by: str | None = Query(None, alias="sortBy"),
        sort_order: str | None = Query(None, alias="sortOrder", pattern="^(asc|desc)$"),
        is_active: bool | None = Query(None, alias="isActive"),
        include_inactive: bool = Query(False, alias="includeInactive"),
        include_deleted: bool = Query(False, alias="includeDeleted"),
        repo: CatalogRepository = Depends(get_repository),
    ):
        params = ListParams(
            is_active=is_active,
            page=page,
            limit=limit,
            search=search,
            parent_id=parent_id,
            moderation_status=moderation_status,
            sort_by=sort_by,
            sort_order=sort_order,
            include_inactive=include_inactive,
            include_deleted=include_deleted,
        )
        return _page(kind, repo.list_records(params))

    @router.get("/deleted")
    async def list_deleted(
        page: int = Query(1, ge=1),
        limit: int = Query(settings.default_page_size, ge=1, le=500),
        search: str | None = None,
        repo: CatalogRepository = Depends(get_repository),
    ):
        params = ListParams(page=page, limit=limit, search=search)
        return _page(kind, repo.list_deleted(params))

    @router.get("/search")
    async def search_records(
        q: str = Query(..., min_length=1),
        limit: int = Query(settings.search_limit, ge=1, le=100),
        include_inactive: bool = Query(False, alias="includeInactive"),
        repo: CatalogRepository = Depends(get_repository),
    ):
        return _many(kind, repo.search(q, limit, include_inactive=include_inactive))

    @router.patch("/display-order")
    async def update_display_order(
        body: DisplayOrderBody,
        repo: CatalogRepository = Depends(get_repository),
    ):
        repo.update_display_order(body.items)
        return {"success": True, "message": "Display order updated successfully"}

    @router.post("/", status_code=status.HTTP_201_CREATED)
    async def create_record(
        body: RecordCreate,
        repo: CatalogRepository = Depends(get_repository),
    ):
        record = repo.create(body)
        logger.info("%s created: %s", label, record.id)
        return _one(kind, record)

    @router.get("/{record_id}")
    async def get_record(
        record_id: str,
        repo: CatalogRepository = Depends(get_repository),
    ):
        return _one(kind, repo.get(record_id, deleted=None))

    @router.put("/{record_id}")
    async def update_record(
        record_id: str,
        body: RecordUpdate,
        repo: CatalogRepository = Depends(get_repository),
    ):
        return _one(kind, repo.update(record_id, body))

    @router.delete("/{record_id}")
    async def delete_record(
        record_id: str,
        actor: str = Depends(require_admin),
        repo: CatalogRepository = Depends(get_repository),
    ):
        cascade_ids = repo.soft_delete(record_id, actor)
        logger.info(
            "%s soft-deleted: %s (cascaded to %d)", label, record_id, len(cascade_ids)
        )
        return {
            "success": True,
            "message": f"{label} deleted successfully",
            "data": {
                "deletedAt": datetime.now(timezone.utc).isoformat(),
                "cascadeDeleted": cascade_ids,
            },
        }

    @router.patch("/{record_id}/restore")
    async def restore_record(
        record_id: str,
        repo: CatalogRepository = Depends(get_repository),
    ):
        record, cascade_ids = repo.restore(record_id)
        logger.info(
            "%s restored: %s (cascaded to %d)", label, record_id, len(cascade_ids)
        )
        return _one(kind, record, cascadeRestored=cascade_ids)

    @router.patch("/{record_id}/toggle-status")
    async def toggle_status(
        record_id: str,
        repo: CatalogRepository = Depends(get_repository),
    ):
        return _one(kind, repo.toggle_active(record_id))

    @router.patch("/{record_id}/moderate")
    async def moderate_record(
        record_id: str,
        body: ModerateRequest,
        repo: CatalogRepository = Depends(get_repository),
    ):
        return _one(kind, repo.moderate(record_id, body))

    return router


def create_app(
    categories: list[Record] | None = None,
    services: list[Record] | None = None,
    admin_token: str | None = None,
) -> FastAPI:
    configure_logging(settings)
    app = FastAPI(
        title="Catalog Admin Sandbox",
        description="In-memory categories and services API",
        version="0.1.0",
    )
    app.state.admin_token = admin_token
    app.state.repositories = {
        RecordKind.CATEGORY: CatalogRepository(RecordKind.CATEGORY, categories),
        RecordKind.SERVICE: CatalogRepository(RecordKind.SERVICE, services),
    }

    # ── Exception Handlers ───────────────────────────────────
    register_exception_handlers(app)

    # ── Routers ──────────────────────────────────────────────
    @app.get("/health", tags=["health"])
    async def health_check():
        return {
            "status": "ok",
            "service": "catalog-admin-sandbox",
            "environment": settings.environment,
        }

    for kind in RecordKind:
        app.include_router(
            build_router(kind), prefix=f"/api/{kind.resource}", tags=[kind.resource]
        )

    return app
