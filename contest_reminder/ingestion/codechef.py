"""CodeChef contests via the contest listing API (future contests only)."""

from __future__ import annotations

import os
from typing import Any

from contest_reminder.ingestion.adapters import build_contest, parse_iso
from contest_reminder.ingestion.http_client import (
    DEFAULT_TIMEOUT_SECONDS,
    UpstreamFetchError,
    get_json,
)
from contest_reminder.ingestion.schema import CanonicalContest

CODECHEF_BASE_URL = os.getenv("CODECHEF_BASE_URL", "https://www.codechef.com").rstrip("/")
CONTEST_LIST_URL = f"{CODECHEF_BASE_URL}/api/list/contests/all"
CONTEST_LIST_PARAMS = {
    "sort_by": "START",
    "sorting_order": "asc",
    "offset": "0",
    "mode": "all",
}
SLUG_PREFIX = "cc"


def fetch_payload(timeout: float = DEFAULT_TIMEOUT_SECONDS) -> dict:
    return get_json(CONTEST_LIST_URL, CONTEST_LIST_PARAMS, timeout=timeout)


def contest_slug(contest_code: str) -> str:
    return f"{SLUG_PREFIX}-{contest_code}"


def contest_url(contest_code: str) -> str:
    return f"{CODECHEF_BASE_URL}/{contest_code}"


def parse_payload(payload: Any) -> list[CanonicalContest]:
    items = payload.get("future_contests") if isinstance(payload, dict) else None
    if not isinstance(items, list):
        raise UpstreamFetchError("CodeChef payload missing future_contests", url=CONTEST_LIST_URL)

    contests: list[CanonicalContest] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        code = item.get("contest_code")
        name = item.get("contest_name")
        start_time = parse_iso(item.get("contest_start_date_iso"))
        end_time = parse_iso(item.get("contest_end_date_iso"))
        if not code or not name or start_time is None or end_time is None:
            continue
        code = str(code).strip()
        contest = build_contest(
            name=str(name).strip(),
            slug=contest_slug(code),
            platform="CodeChef",
            start_time=start_time,
            end_time=end_time,
            url=contest_url(code),
        )
        if contest is not None:
            contests.append(contest)
    return contests
