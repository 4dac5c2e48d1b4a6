"""Engine and session management for ``DatabaseProfileStore``.

One engine is built lazily per process from ``ROADMATE_DATABASE_URL``;
``dispose_engine()`` drops it so the next call re-reads the settings.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Generator, Optional

from sqlalchemy import Engine, create_engine, text
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import Settings, get_settings

logger = logging.getLogger(__name__)

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker[Session]] = None


def _is_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in url


def _engine_options(settings: Settings, url: str) -> Dict[str, Any]:
    options: Dict[str, Any] = {"echo": settings.database_echo, "pool_pre_ping": True}
    if not url.startswith("sqlite"):
        options["pool_size"] = settings.database_pool_size
        options["max_overflow"] = settings.database_max_overflow
        return options

    # SQLite connections are shared across request threads.
    options["connect_args"] = {"check_same_thread": False}
    if _is_memory_sqlite(url):
        # Every connection must see the same in-memory database.
        options["poolclass"] = StaticPool
    return options


def build_engine(settings: Settings) -> Engine:
    url = settings.database_url
    if not url:
        raise RuntimeError("ROADMATE_DATABASE_URL must be configured before using the database.")
    engine = create_engine(url, **_engine_options(settings, url))
    logger.info("Database engine ready (%s)", engine.url.render_as_string(hide_password=True))
    return engine


def get_engine() -> Engine:
    global _engine, _session_factory
    if _engine is None:
        _engine = build_engine(get_settings())
        _session_factory = sessionmaker(bind=_engine, autoflush=False, expire_on_commit=False)
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    if _session_factory is None:
        get_engine()
    assert _session_factory is not None
    return _session_factory


@contextmanager
def session_scope(*, commit: bool = True) -> Generator[Session, None, None]:
    """Yield a session; commit on success when ``commit`` is set, roll back on error."""
    session = get_session_factory()()
    try:
        yield session
        if commit:
            session.commit()
    except Exception:  # noqa: BLE001
        logger.debug("Rolling back profile session after error", exc_info=True)
        session.rollback()
        raise
    finally:
        session.close()


def init_database() -> None:
    """Create the profile tables if they do not exist yet."""
    from . import models  # noqa: F401
    from .base import Base

    Base.metadata.create_all(get_engine())


def ping_database() -> None:
    """Round-trip ``SELECT 1``; raises ``RuntimeError`` or ``SQLAlchemyError`` on failure."""
    with get_engine().connect() as connection:
        connection.execute(text("SELECT 1"))


def dispose_engine() -> None:
    global _engine, _session_factory
    engine, _engine, _session_factory = _engine, None, None
    if engine is not None:
        engine.dispose()


__all__ = [
    "build_engine",
    "dispose_engine",
    "get_engine",
    "get_session_factory",
    "init_database",
    "ping_database",
    "session_scope",
]
