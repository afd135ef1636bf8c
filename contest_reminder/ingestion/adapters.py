"""Platform adapter contract: fetch, normalize, window-filter, never raise."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterable

from pydantic import ValidationError

from contest_reminder.clock import utcnow
from contest_reminder.ingestion.http_client import DEFAULT_TIMEOUT_SECONDS, UpstreamFetchError
from contest_reminder.ingestion.schema import CanonicalContest

logger = logging.getLogger(__name__)
DEFAULT_LOOKAHEAD = timedelta(days=14)


def safe_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def epoch_to_utc(value: Any) -> datetime | None:
    seconds = safe_int(value)
    if seconds is None:
        return None
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


def parse_iso(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def build_contest(**fields: Any) -> CanonicalContest | None:
    """Return a CanonicalContest, or None when the fields do not validate."""
    try:
        return CanonicalContest(**fields)
    except ValidationError as exc:
        logger.debug("Discarded malformed contest slug=%s: %s", fields.get("slug"), exc)
        return None


def dedupe_by_slug(contests: Iterable[CanonicalContest]) -> list[CanonicalContest]:
    seen: set[str] = set()
    unique: list[CanonicalContest] = []
    for contest in contests:
        if contest.slug in seen:
            continue
        seen.add(contest.slug)
        unique.append(contest)
    return unique


def within_window(
    contest: CanonicalContest,
    now: datetime,
    lookahead: timedelta = DEFAULT_LOOKAHEAD,
) -> bool:
    """True when the contest starts strictly after now and no later than now + lookahead."""
    return now < contest.start_time <= now + lookahead


@dataclass
class AdapterOutcome:
    platform: str
    ok: bool
    contests: list[CanonicalContest] = field(default_factory=list)
    error: str | None = None

    @property
    def count(self) -> int:
        return len(self.contests)


@dataclass(frozen=True)
class PlatformAdapter:
    platform: str
    fetch_payload: Callable[..., Any]
    parse_payload: Callable[[Any], list[CanonicalContest]]
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    lookahead: timedelta = field(default=DEFAULT_LOOKAHEAD)

    def run(self, now: datetime | None = None) -> AdapterOutcome:
        now = now or utcnow()
        try:
            payload = self.fetch_payload(timeout=self.timeout)
            parsed = self.parse_payload(payload)
        except UpstreamFetchError as exc:
            logger.error(
                "Fetch error platform=%s url=%s status=%s error=%s",
                self.platform,
                exc.url,
                exc.status,
                exc,
            )
            return AdapterOutcome(platform=self.platform, ok=False, error=str(exc))
        except Exception as exc:
            logger.exception("Unexpected error fetching platform=%s", self.platform)
            return AdapterOutcome(
                platform=self.platform,
                ok=False,
                error=f"{type(exc).__name__}: {exc}",
            )

        contests = [c for c in dedupe_by_slug(parsed) if within_window(c, now, self.lookahead)]
        logger.info(
            "Parsed %s contests for platform=%s (%s inside window)",
            len(parsed),
            self.platform,
            len(contests),
        )
        return AdapterOutcome(platform=self.platform, ok=True, contests=contests)

    def fetch(self, now: datetime | None = None) -> list[CanonicalContest]:
        """Contests inside the window; an empty list on any upstream failure."""
        return self.run(now).contests
