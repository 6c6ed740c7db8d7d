"""
Database engine, session factory, and metadata shared across the application.
"""

from __future__ import annotations

from datetime import datetime
import logging
import random
import time
from typing import Any, Callable, Generator, Optional, TypeVar

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import DeclarativeMeta, Session, declarative_base, sessionmaker

from ..core.config import settings

logger = logging.getLogger(__name__)

_POSTGRES_POOL_KWARGS: dict[str, Any] = {
    "pool_size": 5,
    "max_overflow": 10,
    # Fail fast when the pool is exhausted instead of queueing requests
    "pool_timeout": 5,
    "pool_recycle": 1800,
    "pool_pre_ping": True,
    "connect_args": {
        "connect_timeout": 5,
        # Cap runaway queries so requests recover quickly
        "options": "-c statement_timeout=15000",
        "application_name": "facility_booking",
    },
}

_SQLITE_KWARGS: dict[str, Any] = {
    "connect_args": {"check_same_thread": False, "timeout": 15},
}


def build_engine_kwargs(db_url: str) -> dict[str, Any]:
    """Pick engine options for the target dialect."""
    if db_url.startswith("sqlite"):
        kwargs = dict(_SQLITE_KWARGS)
    else:
        kwargs = dict(_POSTGRES_POOL_KWARGS)
    kwargs["echo"] = settings.database_echo
    kwargs["future"] = True
    return kwargs


def create_db_engine(db_url: Optional[str] = None) -> Engine:
    url = db_url or settings.database_url
    return create_engine(url, **build_engine_kwargs(url))


engine: Engine = create_db_engine()


@event.listens_for(engine, "connect")
def receive_connect(dbapi_connection: Any, connection_record: Any) -> None:
    connection_record.info["connect_time"] = datetime.now()
    logger.debug("Database connection established")


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


Base: DeclarativeMeta = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """Get database session with proper cleanup."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


T = TypeVar("T")

# PostgreSQL serialization_failure / deadlock_detected
_RETRYABLE_SQLSTATES = {"40001", "40P01"}
_RETRYABLE_ERROR_SNIPPETS = (
    "could not serialize access",
    "deadlock detected",
    "database is locked",
)


def sqlstate_of(exc: BaseException) -> Optional[str]:
    orig = getattr(exc, "orig", None)
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def is_retryable_db_error(exc: BaseException) -> bool:
    """True for transaction conflicts that succeed when the unit of work is replayed."""
    if not isinstance(exc, DBAPIError):
        return False
    if sqlstate_of(exc) in _RETRYABLE_SQLSTATES:
        return True
    message = str(exc).lower()
    return any(snippet in message for snippet in _RETRYABLE_ERROR_SNIPPETS)


def unwrap_db_error(exc: BaseException) -> Optional[DBAPIError]:
    """Find the driver error behind a wrapped service or repository exception."""
    seen = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        if isinstance(current, DBAPIError):
            return current
        seen.add(id(current))
        current = current.__cause__ or current.__context__
    return None


def _retry_delay(attempt: int) -> float:
    base = 0.05 * (2 ** (attempt - 1))
    return base + random.uniform(0, 0.025 * attempt)


def with_db_retry(
    op_name: str,
    func: Callable[[], T],
    *,
    max_attempts: int = 3,
    retry_on: Callable[[BaseException], bool] = is_retryable_db_error,
    sleep: Callable[[float], None] = time.sleep,
    on_retry: Optional[Callable[[int, BaseException], None]] = None,
) -> T:
    """
    Execute a unit of work, replaying it on transient transaction conflicts.

    `func` must own its transaction (commit or roll back before returning or
    raising) so each attempt starts clean. Non-retryable errors and the last
    retryable error are re-raised unchanged.
    """

    attempt = 1
    while True:
        try:
            return func()
        except Exception as exc:
            if attempt >= max_attempts or not retry_on(exc):
                raise

            delay = _retry_delay(attempt)
            logger.warning(
                "Transient DB failure detected, retrying",
                extra={
                    "event": "db_retry",
                    "op": op_name,
                    "attempt": attempt,
                    "delay": delay,
                    "error": str(exc),
                },
            )
            if on_retry is not None:
                on_retry(attempt, exc)
            sleep(delay)
            attempt += 1


__all__ = [
    "Base",
    "SessionLocal",
    "create_db_engine",
    "engine",
    "get_db",
    "is_retryable_db_error",
    "unwrap_db_error",
    "with_db_retry",
]
