from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .db import Base

PLATFORMS = ("LeetCode", "Codeforces", "CodeChef")
CONTEST_STATUSES = ("upcoming", "running", "finished")


class Contest(Base):
    __tablename__ = "contests"
    __table_args__ = (
        UniqueConstraint("slug", name="uq_contests_slug"),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    platform = Column(String, nullable=False)
    slug = Column(String, nullable=False)
    start_time = Column(DateTime(timezone=True), nullable=False, index=True)
    end_time = Column(DateTime(timezone=True), nullable=False)
    status = Column(String, nullable=False, default="upcoming")    # upcoming | running | finished
    url = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    reminders = relationship("Reminder", back_populates="contest")


class Reminder(Base):
    __tablename__ = "reminders"
    __table_args__ = (
        Index("ix_reminders_sent_time", "sent", "reminder_time"),
    )

    id = Column(Integer, primary_key=True, index=True)
    # Users live outside this service; the reference is the recipient address.
    user_ref = Column(String, nullable=False, index=True)
    contest_id = Column(Integer, ForeignKey("contests.id"), nullable=False)
    reminder_time = Column(DateTime(timezone=True), nullable=False)
    sent = Column(Boolean, nullable=False, default=False)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    contest = relationship("Contest", back_populates="reminders")
