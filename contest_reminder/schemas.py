from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from contest_reminder.clock import ensure_utc


class ContestOut(BaseModel):
    id: int
    name: str
    slug: str
    url: Optional[str]
    start_time: datetime = Field(serialization_alias="startTime")
    end_time: datetime = Field(serialization_alias="endTime")
    status: str

    @field_validator("start_time", "end_time")
    @classmethod
    def as_utc(cls, value: datetime) -> datetime:
        # Rows read back from SQLite are naive; everything stored is UTC.
        return ensure_utc(value)

    class Config:
        from_attributes = True


class ContestsResponse(BaseModel):
    count: int
    platforms: list[str]
    contests: dict[str, list[ContestOut]]


class SyncResultOut(BaseModel):
    total_fetched: int
    inserted: int
    updated: int
    unchanged: int
    errors: int
    swept: int
    platform_counts: dict[str, int]
    failed_platforms: list[str]


class ReminderIn(BaseModel):
    user_ref: str
    contest_id: int
    reminder_time: datetime


class ReminderOut(BaseModel):
    id: int
    user_ref: str
    contest_id: int
    reminder_time: datetime
    sent: bool
    sent_at: Optional[datetime]
    created_at: Optional[datetime]

    @field_validator("reminder_time", "sent_at", "created_at")
    @classmethod
    def as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None

    class Config:
        from_attributes = True
