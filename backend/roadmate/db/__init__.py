"""Database utilities for the profile store."""

from .session import (
    build_engine,
    dispose_engine,
    get_engine,
    get_session_factory,
    init_database,
    ping_database,
    session_scope,
)

__all__ = [
    "build_engine",
    "dispose_engine",
    "get_engine",
    "get_session_factory",
    "init_database",
    "ping_database",
    "session_scope",
]
