"""SQLAlchemy engine/session wiring."""

from __future__ import annotations

from typing import Callable

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

Base = declarative_base()
SessionLocal = sessionmaker(autocommit=False, autoflush=False)
engine: Engine | None = None

SessionFactory = Callable[[], Session]


def init_engine(database_url: str, *, create_tables: bool = True) -> Engine:
    """Bind SessionLocal to *database_url* and return the engine."""
    global engine
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(database_url, connect_args=connect_args, future=True)
    SessionLocal.configure(bind=engine)
    if create_tables:
        # Importing models registers the tables on Base.metadata.
        from contest_reminder import models  # noqa: F401

        Base.metadata.create_all(bind=engine)
    return engine


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
