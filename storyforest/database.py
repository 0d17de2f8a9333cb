"""
Database engine and session handling.

The engine is created lazily from ``Settings.database_url`` so that
importing the application never opens a connection. Route handlers
receive a session through the ``get_db`` dependency; tests swap it out
with ``app.dependency_overrides``.
"""

from __future__ import annotations

import logging
from typing import Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .config import get_settings
from .tables import Base


logger = logging.getLogger(__name__)

SessionLocal = sessionmaker(autoflush=False, expire_on_commit=False)
_engine: Optional[Engine] = None


def make_engine(url: str) -> Engine:
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, connect_args=connect_args)


def get_engine() -> Engine:
    """Return the process-wide engine, creating it on first use."""
    global _engine
    if _engine is None:
        url = get_settings().database_url
        _engine = make_engine(url)
        SessionLocal.configure(bind=_engine)
        logger.info("Database engine created for %s", _engine.url.render_as_string(hide_password=True))
    return _engine


def init_db(engine: Optional[Engine] = None) -> None:
    """Create all tables that do not exist yet."""
    Base.metadata.create_all(engine or get_engine())


def get_db() -> Iterator[Session]:
    get_engine()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
