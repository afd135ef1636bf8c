"""Registered platform adapters, in aggregation order."""

from __future__ import annotations

from datetime import timedelta

from contest_reminder.ingestion import codechef, codeforces, leetcode
from contest_reminder.ingestion.adapters import DEFAULT_LOOKAHEAD, PlatformAdapter
from contest_reminder.ingestion.http_client import DEFAULT_TIMEOUT_SECONDS

PLATFORM_MODULES = {
    "LeetCode": leetcode,
    "Codeforces": codeforces,
    "CodeChef": codechef,
}


def normalize_platform(name: str) -> str | None:
    """Return the registered platform name for *name* (case-insensitive), or None."""

    lookup = {key.lower(): key for key in PLATFORM_MODULES}
    return lookup.get(name.strip().lower())


def build_adapters(
    platforms: list[str] | None = None,
    *,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    lookahead: timedelta = DEFAULT_LOOKAHEAD,
) -> list[PlatformAdapter]:
    names = platforms or list(PLATFORM_MODULES)
    adapters: list[PlatformAdapter] = []
    for name in names:
        platform = normalize_platform(name)
        if platform is None:
            raise ValueError(f"Unsupported platform: {name}")
        module = PLATFORM_MODULES[platform]
        adapters.append(
            PlatformAdapter(
                platform=platform,
                fetch_payload=module.fetch_payload,
                parse_payload=module.parse_payload,
                timeout=timeout,
                lookahead=lookahead,
            )
        )
    return adapters
