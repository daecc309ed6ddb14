from __future__ import annotations

import logging

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

from catalog_admin.schemas.common import ListParams


class Settings(BaseSettings):
    # App
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # Collaborator API
    api_base_url: str = "http://localhost:5000/api"
    request_timeout_seconds: float = 15.0

    # Listing defaults
    default_page_size: int = 20
    search_limit: int = 10

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()


def configure_logging(config: Settings = settings) -> None:
    """Apply the configured log level. Call once from the embedding app."""
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# ── Store options ────────────────────────────────────────────


def _default_params() -> ListParams:
    return ListParams(page=1, limit=settings.default_page_size)


class StoreOptions(BaseModel):
    """Construction-time options for a ModerationStateStore.

    Resolved once when the store is built; the store never reads
    partially-specified option dicts afterwards.
    """

    record_id: str | None = None
    auto_fetch_record: bool = True
    auto_fetch_all: bool = False
    auto_fetch_inactive: bool = False
    auto_fetch_deleted: bool = False
    include_inactive: bool = True
    # Whether the remote `all` listing returns soft-deleted records.
    all_includes_deleted: bool = False
    default_params: ListParams = Field(default_factory=_default_params)
    search_limit: int = Field(default_factory=lambda: settings.search_limit, ge=1)

    model_config = {"frozen": True}

    @property
    def wants_auto_fetch(self) -> bool:
        return bool(
            (self.record_id and self.auto_fetch_record)
            or self.auto_fetch_all
            or self.auto_fetch_inactive
            or self.auto_fetch_deleted
        )

    # ── Presets ──────────────────────────────────────────────

    @classmethod
    def manager(cls, **overrides) -> StoreOptions:
        """Full admin table: loads every non-deleted record on init."""
        return cls(**{"auto_fetch_all": True, **overrides})

    @classmethod
    def inactive_manager(cls, **overrides) -> StoreOptions:
        return cls(**{"auto_fetch_inactive": True, **overrides})

    @classmethod
    def deleted_manager(cls, **overrides) -> StoreOptions:
        return cls(**{"auto_fetch_deleted": True, **overrides})

    @classmethod
    def detail(cls, record_id: str, **overrides) -> StoreOptions:
        return cls(**{"record_id": record_id, **overrides})
