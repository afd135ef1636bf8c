"""Per-user reminders stored in the database."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from sqlalchemy.orm import Session

from contest_reminder.clock import ensure_utc, utcnow
from contest_reminder.db import SessionFactory, SessionLocal
from contest_reminder.models import Contest, Reminder
from contest_reminder.notifications.messages import reminder_message
from contest_reminder.notifications.sink import NotificationSink

logger = logging.getLogger(__name__)


class ContestNotFound(LookupError):
    pass


class InvalidReminder(ValueError):
    pass


def create_reminder(db: Session, user_ref: str, contest_id: int, reminder_time: datetime) -> Reminder:
    user_ref = user_ref.strip()
    if not user_ref:
        raise InvalidReminder("user_ref is required")
    contest = db.query(Contest).filter(Contest.id == contest_id).one_or_none()
    if contest is None:
        raise ContestNotFound(f"Contest {contest_id} not found")
    reminder_time = ensure_utc(reminder_time)
    if reminder_time >= ensure_utc(contest.start_time):
        raise InvalidReminder("reminder_time must be before the contest start time")

    reminder = Reminder(
        user_ref=user_ref,
        contest_id=contest.id,
        reminder_time=reminder_time,
        sent=False,
    )
    db.add(reminder)
    db.commit()
    db.refresh(reminder)
    logger.info("Reminder #%s set for contest=%s user_ref=%s", reminder.id, contest.slug, user_ref)
    return reminder


def send_due_reminders(
    sink: NotificationSink,
    now: datetime | None = None,
    session_factory: SessionFactory = SessionLocal,
) -> int:
    """Send reminders whose time has come and whose contest has not started."""

    now = ensure_utc(now) if now else utcnow()
    sent = 0
    with session_factory() as db:
        due = (
            db.query(Reminder)
            .join(Contest, Reminder.contest_id == Contest.id)
            .filter(
                Reminder.sent.is_(False),
                Reminder.reminder_time <= now,
                Contest.start_time > now,
            )
            .order_by(Reminder.reminder_time.asc())
            .all()
        )
        for reminder in due:
            contest = reminder.contest
            subject, text, html = reminder_message(contest.name, contest.url, contest.start_time)
            try:
                delivered = sink.send(reminder.user_ref, subject, text, html)
            except Exception:
                logger.exception("Sink raised for reminder #%s", reminder.id)
                delivered = False
            if not delivered:
                logger.warning("Reminder #%s not delivered; will retry next poll", reminder.id)
                continue
            reminder.sent = True
            reminder.sent_at = now
            db.commit()
            sent += 1
            logger.info("Reminder #%s sent to user_ref=%s", reminder.id, reminder.user_ref)
    return sent


async def run_reminder_pass(
    sink: NotificationSink,
    now: datetime | None = None,
    *,
    session_factory: SessionFactory | None = None,
) -> int:
    return await asyncio.to_thread(send_due_reminders, sink, now, session_factory or SessionLocal)
