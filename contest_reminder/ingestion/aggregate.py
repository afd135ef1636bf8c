"""Run every platform adapter concurrently and collect their contests."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Sequence

from contest_reminder.clock import utcnow
from contest_reminder.ingestion.adapters import AdapterOutcome, PlatformAdapter
from contest_reminder.ingestion.platforms import build_adapters
from contest_reminder.ingestion.schema import CanonicalContest

logger = logging.getLogger(__name__)
# Extra wall-clock allowance on top of the HTTP timeout (parsing, thread start-up).
TIMEOUT_GRACE_SECONDS = 3.0


@dataclass
class AggregateReport:
    outcomes: list[AdapterOutcome] = field(default_factory=list)

    @property
    def contests(self) -> list[CanonicalContest]:
        combined: list[CanonicalContest] = []
        for outcome in self.outcomes:
            combined.extend(outcome.contests)
        return combined

    @property
    def counts(self) -> dict[str, int]:
        return {outcome.platform: outcome.count for outcome in self.outcomes}

    @property
    def failed_platforms(self) -> list[str]:
        return [outcome.platform for outcome in self.outcomes if not outcome.ok]


async def _run_adapter(adapter: PlatformAdapter, now: datetime) -> AdapterOutcome:
    return await asyncio.wait_for(
        asyncio.to_thread(adapter.run, now),
        timeout=adapter.timeout + TIMEOUT_GRACE_SECONDS,
    )


async def run_all(
    adapters: Sequence[PlatformAdapter] | None = None,
    now: datetime | None = None,
) -> AggregateReport:
    """Fetch from all adapters in parallel; one failing platform never fails the rest.

    Outcomes keep adapter registration order regardless of completion order.
    """

    now = now or utcnow()
    adapters = list(adapters) if adapters is not None else build_adapters()
    results = await asyncio.gather(
        *(_run_adapter(adapter, now) for adapter in adapters),
        return_exceptions=True,
    )

    report = AggregateReport()
    for adapter, result in zip(adapters, results):
        if isinstance(result, asyncio.TimeoutError):
            outcome = AdapterOutcome(
                platform=adapter.platform,
                ok=False,
                error=f"timed out after {adapter.timeout + TIMEOUT_GRACE_SECONDS:.0f}s",
            )
        elif isinstance(result, BaseException):
            outcome = AdapterOutcome(
                platform=adapter.platform,
                ok=False,
                error=f"{type(result).__name__}: {result}",
            )
        else:
            outcome = result

        if outcome.ok:
            logger.info("Fetched %s contests from platform=%s", outcome.count, outcome.platform)
        else:
            logger.error("Adapter failed platform=%s error=%s", outcome.platform, outcome.error)
        report.outcomes.append(outcome)
    return report
