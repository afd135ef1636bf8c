from __future__ import annotations

from datetime import datetime
from html import escape

from contest_reminder.clock import ensure_utc


def lead_time_label(minutes: int) -> str:
    if minutes % 60 == 0:
        hours = minutes // 60
        return "1 hour" if hours == 1 else f"{hours} hours"
    return f"{minutes} minutes"


def _format_start(start_time: datetime) -> str:
    return ensure_utc(start_time).strftime("%Y-%m-%d %H:%M UTC")


def contest_alert(
    name: str,
    platform: str,
    url: str | None,
    start_time: datetime,
    threshold_minutes: int,
) -> tuple[str, str, str]:
    """Return (subject, text, html) for a lead-time alert."""

    label = lead_time_label(threshold_minutes)
    start = _format_start(start_time)
    subject = f"⏰ {name} starts in {label}"
    text = (
        f"{name} ({platform}) starts in about {label}.\n"
        f"Start time: {start}\n"
        f"{url or ''}\n"
    )
    link = f'<a href="{escape(url)}" target="_blank">Open contest</a>' if url else ""
    html = (
        "<h2>Upcoming contest</h2>"
        f"<p><b>{escape(name)}</b> on {escape(platform)} starts in about {escape(label)}.</p>"
        f"<p><b>Start time:</b> {escape(start)}</p>"
        f"{link}"
    )
    return subject, text, html


def reminder_message(name: str, url: str | None, start_time: datetime) -> tuple[str, str, str]:
    start = _format_start(start_time)
    subject = f"⏰ {name} starts soon!"
    text = f"Your contest reminder: {name} is about to start.\nStart time: {start}\n{url or ''}\n"
    link = f'<a href="{escape(url)}" target="_blank">Click to visit contest</a>' if url else ""
    html = (
        "<h2>Your Contest Reminder</h2>"
        f"<p><b>{escape(name)}</b> is about to start.</p>"
        f"<p><b>Start Time:</b> {escape(start)}</p>"
        f"{link}"
    )
    return subject, text, html
