"""Engine and session helpers shared by every package in the workspace.

Usage
-----
from db.client import session_scope

with session_scope() as s:
    s.execute(...)

The engine is created lazily from ``DATABASE_URL`` (or an explicit
``database_url=``) and reused for the life of the process. ``reset_engine``
drops it so a test can bind its own database.
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None
_bound_url: str | None = None


def _resolve_url(override: str | None) -> str:
    url = override or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL is not set; cannot initialize database client")
    return url


def _enable_sqlite_foreign_keys(engine: Engine) -> None:
    # SQLite only honours ON DELETE SET NULL with this pragma, per connection.
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_conn, _record):  # pragma: no cover - driver bridge
        cur = dbapi_conn.cursor()
        cur.execute("PRAGMA foreign_keys = ON")
        cur.close()


def get_engine(*, database_url: str | None = None) -> Engine:
    """Return the process-wide engine, creating it on first use.

    Asking for a different URL once an engine exists raises ``RuntimeError``.
    """

    global _engine, _session_factory, _bound_url
    url = _resolve_url(database_url)
    if _engine is not None:
        if url != _bound_url:
            raise RuntimeError(
                "get_engine() already initialized with a different DATABASE_URL; "
                "call reset_engine() first"
            )
        return _engine

    engine = create_engine(url, pool_pre_ping=True)
    if engine.dialect.name == "sqlite":
        _enable_sqlite_foreign_keys(engine)
    _engine = engine
    _session_factory = sessionmaker(bind=engine, expire_on_commit=False, class_=Session)
    _bound_url = url
    return engine


def get_session(*, database_url: str | None = None) -> Session:
    get_engine(database_url=database_url)
    assert _session_factory is not None
    return _session_factory()


@contextmanager
def session_scope(*, database_url: str | None = None) -> Iterator[Session]:
    """Commit on clean exit, roll back on any exception, always close."""

    session = get_session(database_url=database_url)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def reset_engine() -> None:
    global _engine, _session_factory, _bound_url
    if _engine is not None:
        _engine.dispose()
    _engine, _session_factory, _bound_url = None, None, None


__all__ = ["get_engine", "get_session", "session_scope", "reset_engine"]
