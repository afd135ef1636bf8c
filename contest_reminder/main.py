from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict
from datetime import timedelta
from typing import Awaitable, Callable

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.responses import JSONResponse
from sqlalchemy import asc, desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from contest_reminder.db import get_db, init_engine
from contest_reminder.ingestion.platforms import build_adapters
from contest_reminder.ingestion.sync import PartialBatchError, SyncResult, run_sync_pass
from contest_reminder.log_buffer import get_buffer_handler, install_buffer_handler
from contest_reminder.models import Contest, Reminder
from contest_reminder.notifications.reminders import (
    ContestNotFound,
    InvalidReminder,
    create_reminder,
    run_reminder_pass,
)
from contest_reminder.notifications.scheduler import NotificationScheduler
from contest_reminder.notifications.sink import NotificationSink, build_sink
from contest_reminder.schemas import (
    ContestOut,
    ContestsResponse,
    ReminderIn,
    ReminderOut,
    SyncResultOut,
)
from contest_reminder.settings import AppConfig, load_config

app = FastAPI(title="Contest Reminder")
logger = logging.getLogger(__name__)

_config: AppConfig | None = None
_sink: NotificationSink | None = None
_scheduler: NotificationScheduler | None = None
_sync_lock = asyncio.Lock()
_notify_lock = asyncio.Lock()
_sync_task: asyncio.Task | None = None
_sync_stop: asyncio.Event | None = None
_notify_task: asyncio.Task | None = None
_notify_stop: asyncio.Event | None = None


def _build_adapters():
    if _config is None:
        return build_adapters()
    return build_adapters(
        timeout=_config.fetch_timeout_seconds,
        lookahead=timedelta(days=_config.lookahead_days),
    )


async def _run_sync_once() -> SyncResult | None:
    if _sync_lock.locked():
        logger.warning("Sync pass still running; skipping this trigger.")
        return None
    async with _sync_lock:
        result = await run_sync_pass(_build_adapters())
    logger.info(
        "Sync done: fetched=%s inserted=%s updated=%s unchanged=%s errors=%s swept=%s",
        result.total_fetched,
        result.inserted,
        result.updated,
        result.unchanged,
        result.errors,
        result.swept,
    )
    return result


async def _run_notify_once() -> None:
    if _scheduler is None or _sink is None:
        return
    if _notify_lock.locked():
        logger.warning("Notification pass still running; skipping this trigger.")
        return
    async with _notify_lock:
        report = await _scheduler.run_pass()
        reminders_sent = await run_reminder_pass(_sink)
    if report.sent or report.failed or reminders_sent:
        logger.info(
            "Notify done: sent=%s failed=%s reminders_sent=%s",
            len(report.sent),
            len(report.failed),
            reminders_sent,
        )


async def _periodic_loop(
    name: str,
    interval_minutes: int,
    job: Callable[[], Awaitable[object]],
    stop_event: asyncio.Event,
) -> None:
    logger.info("%s loop enabled: interval=%s minutes", name, interval_minutes)
    while not stop_event.is_set():
        try:
            await job()
        except Exception:
            logger.exception("%s pass failed.", name)
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval_minutes * 60)
        except asyncio.TimeoutError:
            continue
    logger.info("%s loop stopped.", name)


@app.on_event("startup")
async def start_background_jobs() -> None:
    global _config, _sink, _scheduler, _sync_task, _sync_stop, _notify_task, _notify_stop
    install_buffer_handler()
    logger.info("App starting up, initializing sync and notification loops")
    _config = load_config()
    init_engine(_config.database_url)
    _sink = build_sink(_config)
    _scheduler = NotificationScheduler(
        _sink,
        _config.notify_recipients,
        tolerance_minutes=_config.notify_tolerance_minutes,
    )

    if not _config.auto_sync_enabled:
        logger.warning("AUTO_SYNC_ENABLED=false; background loops are not started.")
        return
    _sync_stop = asyncio.Event()
    _sync_task = asyncio.create_task(
        _periodic_loop("Sync", _config.sync_interval_minutes, _run_sync_once, _sync_stop)
    )
    _notify_stop = asyncio.Event()
    _notify_task = asyncio.create_task(
        _periodic_loop("Notify", _config.notify_interval_minutes, _run_notify_once, _notify_stop)
    )


@app.on_event("shutdown")
async def stop_background_jobs() -> None:
    global _sync_task, _sync_stop, _notify_task, _notify_stop
    if _sync_stop:
        _sync_stop.set()
    if _notify_stop:
        _notify_stop.set()
    if _sync_task:
        await _sync_task
    if _notify_task:
        await _notify_task
    _sync_task = None
    _sync_stop = None
    _notify_task = None
    _notify_stop = None


@app.get("/contests", response_model=ContestsResponse, response_model_by_alias=True)
def list_contests(
    platform: str | None = None,
    status: str | None = None,
    sort: str = "asc",
    limit: int | None = Query(default=None, ge=0),
    db: Session = Depends(get_db),
):
    if sort not in ("asc", "desc"):
        raise HTTPException(status_code=400, detail="sort must be 'asc' or 'desc'")

    try:
        query = db.query(Contest)
        if platform:
            query = query.filter(Contest.platform == platform)
        if status:
            query = query.filter(Contest.status == status)
        order = asc(Contest.start_time) if sort == "asc" else desc(Contest.start_time)
        query = query.order_by(order)
        # limit=0 means no limit.
        if limit:
            query = query.limit(limit)
        contests = query.all()
    except SQLAlchemyError as exc:
        logger.exception("Error fetching contests")
        return JSONResponse(status_code=500, content={"error": str(exc)})

    grouped: dict[str, list[ContestOut]] = {}
    for contest in contests:
        grouped.setdefault(contest.platform or "unknown", []).append(ContestOut.model_validate(contest))

    return ContestsResponse(
        count=len(contests),
        platforms=list(grouped),
        contests=grouped,
    )


@app.post("/contests/refresh", response_model=SyncResultOut)
async def refresh_contests():
    if _sync_lock.locked():
        raise HTTPException(status_code=409, detail="A sync pass is already running")
    try:
        result = await _run_sync_once()
    except PartialBatchError as exc:
        return JSONResponse(
            status_code=500,
            content={"error": str(exc), **asdict(exc.result)},
        )
    if result is None:
        raise HTTPException(status_code=409, detail="A sync pass is already running")
    return SyncResultOut(**asdict(result))


@app.post("/reminders", response_model=ReminderOut, status_code=201)
def set_reminder(payload: ReminderIn, db: Session = Depends(get_db)):
    try:
        reminder = create_reminder(db, payload.user_ref, payload.contest_id, payload.reminder_time)
    except ContestNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except InvalidReminder as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return ReminderOut.model_validate(reminder)


@app.get("/reminders", response_model=list[ReminderOut])
def list_reminders(user_ref: str | None = None, db: Session = Depends(get_db)):
    query = db.query(Reminder).order_by(Reminder.reminder_time.asc())
    if user_ref:
        query = query.filter(Reminder.user_ref == user_ref.strip())
    return [ReminderOut.model_validate(reminder) for reminder in query.all()]


@app.get("/api/logs")
def api_logs(limit: int = 100, level: str | None = None, platform: str | None = None):
    handler = get_buffer_handler()
    try:
        entries = handler.entries(limit=limit, level=level, platform=platform)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"entries": entries}


def serve() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    config = load_config()
    uvicorn.run(app, host="0.0.0.0", port=config.port)


if __name__ == "__main__":
    serve()
