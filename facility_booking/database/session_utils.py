"""
Dialect helpers for code that holds only a Session.

Locking differs per backend (advisory and row locks on PostgreSQL, a single
writer on SQLite), so repositories ask the session which one they talk to.
"""

from __future__ import annotations

from sqlalchemy.exc import UnboundExecutionError
from sqlalchemy.orm import Session

POSTGRESQL = "postgresql"
SQLITE = "sqlite"


def get_dialect_name(session: Session, default: str = SQLITE) -> str:
    """Name of the dialect the session is bound to, or ``default`` when unbound."""
    try:
        bind = session.get_bind()
    except UnboundExecutionError:
        return default
    return getattr(getattr(bind, "dialect", None), "name", None) or default


def is_sqlite(session: Session) -> bool:
    return get_dialect_name(session) == SQLITE
