"""One aggregation + reconciliation pass."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Sequence

from contest_reminder.clock import utcnow
from contest_reminder.db import SessionFactory
from contest_reminder.ingestion.adapters import PlatformAdapter
from contest_reminder.ingestion.aggregate import run_all
from contest_reminder.ingestion.reconcile import reconcile

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    total_fetched: int = 0
    inserted: int = 0
    updated: int = 0
    unchanged: int = 0
    errors: int = 0
    swept: int = 0
    platform_counts: dict[str, int] = field(default_factory=dict)
    failed_platforms: list[str] = field(default_factory=list)


class PartialBatchError(RuntimeError):
    """Every upsert of a non-empty batch failed."""

    def __init__(self, message: str, result: SyncResult) -> None:
        super().__init__(message)
        self.result = result


async def run_sync_pass(
    adapters: Sequence[PlatformAdapter] | None = None,
    now: datetime | None = None,
    *,
    session_factory: SessionFactory | None = None,
) -> SyncResult:
    now = now or utcnow()
    aggregate = await run_all(adapters, now)
    report = await reconcile(aggregate.contests, now, session_factory=session_factory)

    result = SyncResult(
        total_fetched=len(aggregate.contests),
        inserted=report.inserted,
        updated=report.updated,
        unchanged=report.unchanged,
        errors=report.errors + len(aggregate.failed_platforms),
        swept=report.swept,
        platform_counts=aggregate.counts,
        failed_platforms=aggregate.failed_platforms,
    )
    if report.all_failed:
        logger.error("Sync pass failed: every one of %s upserts failed", len(report.outcomes))
        raise PartialBatchError(
            f"All {len(report.outcomes)} contest upserts failed", result
        )
    return result
