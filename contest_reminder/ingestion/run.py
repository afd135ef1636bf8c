"""CLI entrypoint for a single sync pass."""

from __future__ import annotations

import argparse
import asyncio
import logging
from datetime import timedelta

from contest_reminder.db import init_engine
from contest_reminder.ingestion.platforms import PLATFORM_MODULES, build_adapters, normalize_platform
from contest_reminder.ingestion.sync import PartialBatchError, run_sync_pass
from contest_reminder.settings import ConfigurationError, load_config


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Fetch contests from every platform and reconcile them into the database.",
    )
    parser.add_argument(
        "--platforms",
        type=str,
        default="",
        help="Comma-separated list of platforms (default: all).",
    )
    return parser.parse_args()


def _parse_platforms(raw: str) -> list[str]:
    names = [name.strip() for name in raw.split(",") if name.strip()]
    invalid = [name for name in names if normalize_platform(name) is None]
    if invalid:
        supported = ", ".join(PLATFORM_MODULES)
        raise SystemExit(
            f"Unsupported platforms: {', '.join(invalid)}. Supported: {supported}"
        )
    return [normalize_platform(name) for name in names]


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    args = _parse_args()
    platforms = _parse_platforms(args.platforms)
    try:
        config = load_config()
    except ConfigurationError as exc:
        raise SystemExit(f"Configuration error: {exc}") from exc

    init_engine(config.database_url)
    adapters = build_adapters(
        platforms or None,
        timeout=config.fetch_timeout_seconds,
        lookahead=timedelta(days=config.lookahead_days),
    )

    logging.info("Starting sync platforms=%s", ",".join(a.platform for a in adapters))
    try:
        result = asyncio.run(run_sync_pass(adapters))
    except PartialBatchError as exc:
        logging.error("Sync failed: %s", exc)
        raise SystemExit(1) from exc
    logging.info(
        "Done: fetched=%s inserted=%s updated=%s unchanged=%s errors=%s swept=%s",
        result.total_fetched,
        result.inserted,
        result.updated,
        result.unchanged,
        result.errors,
        result.swept,
    )


if __name__ == "__main__":
    main()
