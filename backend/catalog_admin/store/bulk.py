"""Settle-all execution for bulk moderation actions.

Runs one coroutine per target concurrently inside an ``asyncio.TaskGroup``,
waits for every one of them, and reports how many failed. A failure
never cancels its siblings and never rolls back their successes.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Generic, TypeVar

from catalog_admin.schemas.record import Record

logger = logging.getLogger(__name__)

K = TypeVar("K")
T = TypeVar("T")


@dataclass(frozen=True)
class BulkResult:
    requested: int
    succeeded: int
    failed: int
    records: tuple[Record, ...] = ()
    # Caller's selection with ids that left the displayed view removed.
    selection: frozenset[str] | None = None

    @property
    def all_failed(self) -> bool:
        return self.requested > 0 and self.failed == self.requested


@dataclass(frozen=True)
class Settled(Generic[T]):
    values: list[T]
    failed: int


async def settle_all(
    targets: Sequence[K],
    operation: Callable[[K], Awaitable[T]],
    *,
    label: str,
) -> Settled[T]:
    """Run ``operation`` for every target; collect results in target order."""
    outcomes: list[tuple[bool, T | None]] = [(False, None)] * len(targets)

    async def _settle(index: int, target: K) -> None:
        try:
            outcomes[index] = (True, await operation(target))
        except Exception as exc:
            logger.debug("Bulk %s failed for %r: %s", label, target, exc)

    async with asyncio.TaskGroup() as group:
        for index, target in enumerate(targets):
            group.create_task(_settle(index, target))

    values = [value for ok, value in outcomes if ok]
    failed = len(targets) - len(values)
    if failed:
        logger.warning(
            "%d out of %d %s actions failed", failed, len(targets), label
        )
    else:
        logger.info("Bulk %s completed for %d targets", label, len(targets))
    return Settled(values=values, failed=failed)
