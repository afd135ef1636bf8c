"""Quick probe for one platform's contest feed."""

from __future__ import annotations

import argparse
import logging

from contest_reminder.ingestion.platforms import PLATFORM_MODULES, build_adapters, normalize_platform


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Fetch one platform's contests and print what falls inside the window.",
    )
    parser.add_argument(
        "--platform",
        type=str,
        default="Codeforces",
        help="Platform name (LeetCode, Codeforces, CodeChef).",
    )
    return parser.parse_args()


def _normalize(raw: str) -> str:
    platform = normalize_platform(raw)
    if platform is None:
        supported = ", ".join(PLATFORM_MODULES)
        raise SystemExit(f"Unsupported platform: {raw}. Supported platforms: {supported}")
    return platform


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    args = _parse_args()
    platform = _normalize(args.platform)

    (adapter,) = build_adapters([platform])
    outcome = adapter.run()
    if not outcome.ok:
        logging.error("%s error: %s", platform, outcome.error)
        raise SystemExit(1)

    logging.info("Fetched %s upcoming contests for platform=%s", outcome.count, platform)
    for contest in outcome.contests:
        logging.info("  %s  %s  %s", contest.start_time.isoformat(), contest.slug, contest.name)


if __name__ == "__main__":
    main()
