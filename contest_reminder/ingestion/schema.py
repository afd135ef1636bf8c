"""Internal data contract for contest ingestion."""

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, field_validator, model_validator

Platform = Literal["LeetCode", "Codeforces", "CodeChef"]


class CanonicalContest(BaseModel):
    """
    Normalized contest used across fetch -> parse -> reconcile.
    """

    name: str
    slug: str
    platform: Platform
    start_time: datetime
    end_time: datetime
    url: str

    @field_validator("start_time", "end_time")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @model_validator(mode="after")
    def _check_time_order(self) -> "CanonicalContest":
        if self.end_time < self.start_time:
            raise ValueError("end_time must not be before start_time")
        return self
