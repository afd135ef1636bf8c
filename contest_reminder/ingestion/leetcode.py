"""LeetCode contests via the public GraphQL endpoint."""

from __future__ import annotations

import os
from datetime import timedelta
from typing import Any

from contest_reminder.ingestion.adapters import build_contest, epoch_to_utc, safe_int
from contest_reminder.ingestion.http_client import (
    DEFAULT_TIMEOUT_SECONDS,
    UpstreamFetchError,
    post_json,
)
from contest_reminder.ingestion.schema import CanonicalContest

LEETCODE_BASE_URL = os.getenv("LEETCODE_BASE_URL", "https://leetcode.com").rstrip("/")
GRAPHQL_URL = f"{LEETCODE_BASE_URL}/graphql"
ALL_CONTESTS_QUERY = """
query {
  allContests {
    title
    titleSlug
    startTime
    duration
  }
}
"""


def fetch_payload(timeout: float = DEFAULT_TIMEOUT_SECONDS) -> dict:
    return post_json(GRAPHQL_URL, {"query": ALL_CONTESTS_QUERY}, timeout=timeout)


def contest_url(title_slug: str) -> str:
    return f"{LEETCODE_BASE_URL}/contest/{title_slug}"


def parse_payload(payload: Any) -> list[CanonicalContest]:
    data = payload.get("data") if isinstance(payload, dict) else None
    items = data.get("allContests") if isinstance(data, dict) else None
    if not isinstance(items, list):
        raise UpstreamFetchError("LeetCode payload missing data.allContests", url=GRAPHQL_URL)

    contests: list[CanonicalContest] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        title = item.get("title")
        title_slug = item.get("titleSlug")
        start_time = epoch_to_utc(item.get("startTime"))
        if not title or not title_slug or start_time is None:
            continue
        end_time = start_time + timedelta(seconds=safe_int(item.get("duration")) or 0)
        contest = build_contest(
            name=str(title),
            slug=str(title_slug),
            platform="LeetCode",
            start_time=start_time,
            end_time=end_time,
            url=contest_url(str(title_slug)),
        )
        if contest is not None:
            contests.append(contest)
    return contests
