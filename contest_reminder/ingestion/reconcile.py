"""Upsert canonical contests by slug and sweep stale statuses."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from contest_reminder.clock import ensure_utc, utcnow
from contest_reminder.db import SessionFactory, SessionLocal
from contest_reminder.ingestion.schema import CanonicalContest
from contest_reminder.models import Contest

logger = logging.getLogger(__name__)
DEFAULT_CONCURRENCY = 4


def compute_status(now: datetime, start_time: datetime, end_time: datetime) -> str:
    now = ensure_utc(now)
    if now < ensure_utc(start_time):
        return "upcoming"
    if now < ensure_utc(end_time):
        return "running"
    return "finished"


@dataclass
class UpsertOutcome:
    slug: str
    ok: bool
    action: str | None = None  # inserted | updated | unchanged
    error: str | None = None


@dataclass
class ReconcileReport:
    outcomes: list[UpsertOutcome] = field(default_factory=list)
    swept: int = 0

    def _count(self, action: str) -> int:
        return sum(1 for outcome in self.outcomes if outcome.ok and outcome.action == action)

    @property
    def inserted(self) -> int:
        return self._count("inserted")

    @property
    def updated(self) -> int:
        return self._count("updated")

    @property
    def unchanged(self) -> int:
        return self._count("unchanged")

    @property
    def errors(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.ok)

    @property
    def all_failed(self) -> bool:
        return bool(self.outcomes) and self.errors == len(self.outcomes)


def _contest_values(dto: CanonicalContest, now: datetime) -> dict[str, Any]:
    return {
        "name": dto.name,
        "platform": dto.platform,
        "start_time": dto.start_time,
        "end_time": dto.end_time,
        "status": compute_status(now, dto.start_time, dto.end_time),
        "url": dto.url,
    }


def _same_value(current: Any, new: Any) -> bool:
    if isinstance(current, datetime) and isinstance(new, datetime):
        return ensure_utc(current) == ensure_utc(new)
    return current == new


def _update_contest(contest: Contest, values: dict[str, Any]) -> bool:
    changed = False
    for key, value in values.items():
        if not _same_value(getattr(contest, key), value):
            setattr(contest, key, value)
            changed = True
    return changed


def _write_contest(db: Session, slug: str, values: dict[str, Any]) -> str:
    existing = db.query(Contest).filter(Contest.slug == slug).one_or_none()
    if existing is None:
        db.add(Contest(slug=slug, **values))
        db.commit()
        return "inserted"
    if _update_contest(existing, values):
        db.commit()
        return "updated"
    return "unchanged"


def upsert_contest(
    dto: CanonicalContest,
    now: datetime,
    session_factory: SessionFactory = SessionLocal,
) -> UpsertOutcome:
    values = _contest_values(dto, now)
    try:
        with session_factory() as db:
            try:
                action = _write_contest(db, dto.slug, values)
            except IntegrityError:
                # Another writer inserted the same slug first; apply ours as an update.
                db.rollback()
                logger.info("Concurrent insert for slug=%s, retrying as update", dto.slug)
                action = _write_contest(db, dto.slug, values)
    except Exception as exc:
        logger.exception("Failed upserting contest slug=%s", dto.slug)
        return UpsertOutcome(slug=dto.slug, ok=False, error=f"{type(exc).__name__}: {exc}")

    logger.debug("Upserted contest slug=%s action=%s", dto.slug, action)
    return UpsertOutcome(slug=dto.slug, ok=True, action=action)


def sweep_statuses(now: datetime, session_factory: SessionFactory = SessionLocal) -> int:
    """Advance statuses that time alone has made stale. Returns rows touched."""

    now = ensure_utc(now)
    with session_factory() as db:
        finished = (
            db.query(Contest)
            .filter(Contest.end_time <= now, Contest.status != "finished")
            .update({Contest.status: "finished", Contest.updated_at: now}, synchronize_session=False)
        )
        running = (
            db.query(Contest)
            .filter(
                Contest.start_time <= now,
                Contest.end_time > now,
                Contest.status == "upcoming",
            )
            .update({Contest.status: "running", Contest.updated_at: now}, synchronize_session=False)
        )
        db.commit()

    if finished or running:
        logger.info("Sweep marked finished=%s running=%s", finished, running)
    return finished + running


async def reconcile(
    records: Iterable[CanonicalContest],
    now: datetime | None = None,
    *,
    session_factory: SessionFactory | None = None,
    concurrency: int = DEFAULT_CONCURRENCY,
) -> ReconcileReport:
    """Upsert every record independently, then sweep once all upserts settled."""

    now = ensure_utc(now) if now else utcnow()
    session_factory = session_factory or SessionLocal
    records = list(records)
    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def _upsert(dto: CanonicalContest) -> UpsertOutcome:
        async with semaphore:
            return await asyncio.to_thread(upsert_contest, dto, now, session_factory)

    results = await asyncio.gather(*(_upsert(dto) for dto in records), return_exceptions=True)

    report = ReconcileReport()
    for dto, result in zip(records, results):
        if isinstance(result, BaseException):
            logger.error("Upsert task crashed slug=%s error=%s", dto.slug, result)
            result = UpsertOutcome(slug=dto.slug, ok=False, error=f"{type(result).__name__}: {result}")
        report.outcomes.append(result)

    try:
        report.swept = await asyncio.to_thread(sweep_statuses, now, session_factory)
    except Exception:
        logger.exception("Status sweep failed.")

    logger.info(
        "Reconciled %s contests: inserted=%s updated=%s unchanged=%s errors=%s swept=%s",
        len(records),
        report.inserted,
        report.updated,
        report.unchanged,
        report.errors,
        report.swept,
    )
    return report
