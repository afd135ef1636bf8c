"""Lead-time notifications for stored upcoming contests.

The scheduler is polled (every minute by default) and a threshold stays
matchable for the whole tolerance window, so every (slug, threshold) pair that
fired is remembered until the contest starts.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, Sequence

from contest_reminder.clock import ensure_utc, utcnow
from contest_reminder.db import SessionFactory, SessionLocal
from contest_reminder.models import Contest
from contest_reminder.notifications.messages import contest_alert
from contest_reminder.notifications.sink import NotificationSink

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLDS = (360, 120, 60, 30, 15)
DEFAULT_TOLERANCE_MINUTES = 5


@dataclass(frozen=True)
class NotificationEvent:
    slug: str
    threshold_minutes: int
    minutes_until_start: int
    name: str
    platform: str
    url: str | None
    start_time: datetime


@dataclass
class DispatchReport:
    sent: list[NotificationEvent] = field(default_factory=list)
    failed: list[NotificationEvent] = field(default_factory=list)


class FiredKeyCache:
    """(slug, threshold) pairs already notified, kept until the contest starts."""

    def __init__(self) -> None:
        self._fired: dict[tuple[str, int], datetime] = {}

    def __contains__(self, key: tuple[str, int]) -> bool:
        return key in self._fired

    def __len__(self) -> int:
        return len(self._fired)

    def mark(self, slug: str, threshold_minutes: int, start_time: datetime) -> None:
        self._fired[(slug, threshold_minutes)] = ensure_utc(start_time)

    def evict_expired(self, now: datetime) -> int:
        now = ensure_utc(now)
        expired = [key for key, start in self._fired.items() if now > start]
        for key in expired:
            del self._fired[key]
        return len(expired)


class NotificationScheduler:
    def __init__(
        self,
        sink: NotificationSink,
        recipients: Sequence[str],
        *,
        thresholds: Sequence[int] = DEFAULT_THRESHOLDS,
        tolerance_minutes: int = DEFAULT_TOLERANCE_MINUTES,
        fired: FiredKeyCache | None = None,
    ) -> None:
        self.sink = sink
        self.recipients = tuple(recipients)
        self.thresholds = tuple(sorted(set(thresholds), reverse=True))
        self.tolerance_minutes = tolerance_minutes
        self.fired = fired if fired is not None else FiredKeyCache()

    @property
    def horizon(self) -> timedelta:
        return timedelta(minutes=max(self.thresholds) + self.tolerance_minutes)

    def evaluate(self, contests: Iterable, now: datetime) -> list[NotificationEvent]:
        """Events for thresholds crossed at *now* that have not fired yet."""

        now = ensure_utc(now)
        events: list[NotificationEvent] = []
        for contest in contests:
            start_time = ensure_utc(contest.start_time)
            if start_time <= now:
                continue
            diff_minutes = round((start_time - now).total_seconds() / 60)
            for threshold in self.thresholds:
                if abs(diff_minutes - threshold) > self.tolerance_minutes:
                    continue
                if (contest.slug, threshold) in self.fired:
                    continue
                events.append(
                    NotificationEvent(
                        slug=contest.slug,
                        threshold_minutes=threshold,
                        minutes_until_start=diff_minutes,
                        name=contest.name,
                        platform=contest.platform,
                        url=contest.url,
                        start_time=start_time,
                    )
                )
        return events

    def _send_one(self, recipient: str, event: NotificationEvent) -> bool:
        subject, text, html = contest_alert(
            event.name,
            event.platform,
            event.url,
            event.start_time,
            event.threshold_minutes,
        )
        try:
            return bool(self.sink.send(recipient, subject, text, html))
        except Exception:
            logger.exception(
                "Sink raised for slug=%s threshold=%s to=%s",
                event.slug,
                event.threshold_minutes,
                recipient,
            )
            return False

    def dispatch(self, events: Iterable[NotificationEvent]) -> DispatchReport:
        """Send each event to every recipient; mark it fired only if all sends succeeded."""

        report = DispatchReport()
        if not self.recipients:
            return report
        for event in events:
            results = [self._send_one(recipient, event) for recipient in self.recipients]
            if all(results):
                self.fired.mark(event.slug, event.threshold_minutes, event.start_time)
                report.sent.append(event)
                logger.info(
                    "Notified slug=%s threshold=%sm (starts in %sm)",
                    event.slug,
                    event.threshold_minutes,
                    event.minutes_until_start,
                )
            else:
                report.failed.append(event)
                logger.warning(
                    "Notification failed slug=%s threshold=%sm; will retry next poll",
                    event.slug,
                    event.threshold_minutes,
                )
        return report

    def load_candidates(
        self,
        now: datetime,
        session_factory: SessionFactory = SessionLocal,
    ) -> list[Contest]:
        now = ensure_utc(now)
        with session_factory() as db:
            return (
                db.query(Contest)
                .filter(
                    Contest.start_time > now,
                    Contest.start_time <= now + self.horizon,
                    Contest.status == "upcoming",
                )
                .order_by(Contest.start_time.asc())
                .all()
            )

    async def run_pass(
        self,
        now: datetime | None = None,
        *,
        session_factory: SessionFactory | None = None,
    ) -> DispatchReport:
        now = ensure_utc(now) if now else utcnow()
        evicted = self.fired.evict_expired(now)
        if evicted:
            logger.debug("Evicted %s fired notification keys", evicted)

        contests = await asyncio.to_thread(self.load_candidates, now, session_factory or SessionLocal)
        events = self.evaluate(contests, now)
        if not events:
            return DispatchReport()
        if not self.recipients:
            logger.info("%s notifications due but no recipients configured", len(events))
            return DispatchReport()
        return await asyncio.to_thread(self.dispatch, events)
