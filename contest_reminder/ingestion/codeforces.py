"""Codeforces contests via the public REST API."""

from __future__ import annotations

import os
from datetime import timedelta
from typing import Any

from contest_reminder.ingestion.adapters import build_contest, epoch_to_utc, safe_int
from contest_reminder.ingestion.http_client import (
    DEFAULT_TIMEOUT_SECONDS,
    UpstreamFetchError,
    get_json,
)
from contest_reminder.ingestion.schema import CanonicalContest

CODEFORCES_BASE_URL = os.getenv("CODEFORCES_BASE_URL", "https://codeforces.com").rstrip("/")
CONTEST_LIST_URL = f"{CODEFORCES_BASE_URL}/api/contest.list"
SLUG_PREFIX = "cf"


def fetch_payload(timeout: float = DEFAULT_TIMEOUT_SECONDS) -> dict:
    return get_json(CONTEST_LIST_URL, {"gym": "false"}, timeout=timeout)


def contest_slug(contest_id: int) -> str:
    return f"{SLUG_PREFIX}-{contest_id}"


def contest_url(contest_id: int) -> str:
    return f"{CODEFORCES_BASE_URL}/contest/{contest_id}"


def parse_payload(payload: Any) -> list[CanonicalContest]:
    if not isinstance(payload, dict):
        raise UpstreamFetchError("Codeforces payload is not an object", url=CONTEST_LIST_URL)
    if payload.get("status") != "OK":
        raise UpstreamFetchError(
            f"Codeforces returned status={payload.get('status')} comment={payload.get('comment')}",
            url=CONTEST_LIST_URL,
        )
    items = payload.get("result")
    if not isinstance(items, list):
        raise UpstreamFetchError("Codeforces payload missing result list", url=CONTEST_LIST_URL)

    contests: list[CanonicalContest] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        contest_id = safe_int(item.get("id"))
        name = item.get("name")
        start_time = epoch_to_utc(item.get("startTimeSeconds"))
        if contest_id is None or not name or start_time is None:
            continue
        duration = safe_int(item.get("durationSeconds")) or 0
        contest = build_contest(
            name=str(name),
            slug=contest_slug(contest_id),
            platform="Codeforces",
            start_time=start_time,
            end_time=start_time + timedelta(seconds=duration),
            url=contest_url(contest_id),
        )
        if contest is not None:
            contests.append(contest)
    return contests
