"""Recent log records for /api/logs, tagged with the platform and slug they mention."""

from __future__ import annotations

import logging
import re
from collections import deque
from dataclasses import asdict, dataclass
from datetime import datetime, timezone

ROOT_LOGGER = "contest_reminder"
DEFAULT_CAPACITY = 200

_PLATFORM_RE = re.compile(r"\bplatform=([^\s,;]+)")
_SLUG_RE = re.compile(r"\bslug=([^\s,;]+)")


@dataclass(frozen=True)
class LogEntry:
    timestamp: str
    level: str
    levelno: int
    logger: str
    message: str
    platform: str | None = None
    slug: str | None = None


def _tag(record: logging.LogRecord, message: str, name: str, pattern: re.Pattern) -> str | None:
    value = getattr(record, name, None)
    if value:
        return str(value)
    match = pattern.search(message)
    return match.group(1) if match else None


def parse_level(level: str | None) -> int:
    """Numeric level for a name like "warning"; 0 when *level* is empty."""
    if not level:
        return logging.NOTSET
    value = logging.getLevelName(level.strip().upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {level}")
    return value


class BufferHandler(logging.Handler):
    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        super().__init__()
        self._records: deque[LogEntry] = deque(maxlen=capacity)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = self.format(record)
            self._records.append(
                LogEntry(
                    timestamp=datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
                    level=record.levelname,
                    levelno=record.levelno,
                    logger=record.name,
                    message=message,
                    platform=_tag(record, message, "platform", _PLATFORM_RE),
                    slug=_tag(record, message, "slug", _SLUG_RE),
                )
            )
        except Exception:
            self.handleError(record)

    def clear(self) -> None:
        self._records.clear()

    def entries(
        self,
        limit: int = 100,
        *,
        level: str | None = None,
        platform: str | None = None,
    ) -> list[dict]:
        """Newest first, at most *limit*, at or above *level*, about *platform* when given."""
        if limit <= 0:
            return []
        min_level = parse_level(level)
        wanted = platform.strip().lower() if platform else None

        selected: list[dict] = []
        for entry in reversed(self._records):
            if entry.levelno < min_level:
                continue
            if wanted and (entry.platform or "").lower() != wanted:
                continue
            selected.append(asdict(entry))
            if len(selected) == limit:
                break
        return selected


_handler: BufferHandler | None = None


def get_buffer_handler() -> BufferHandler:
    global _handler
    if _handler is None:
        _handler = BufferHandler()
        _handler.setFormatter(logging.Formatter("%(message)s"))
    return _handler


def install_buffer_handler(level: int = logging.INFO) -> BufferHandler:
    """Attach the buffer to the package root logger so every module logger feeds it."""
    handler = get_buffer_handler()
    root = logging.getLogger(ROOT_LOGGER)
    if handler not in root.handlers:
        root.addHandler(handler)
    root.setLevel(level)
    return handler
