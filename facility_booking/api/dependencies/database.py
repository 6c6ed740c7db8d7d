# facility_booking/api/dependencies/database.py
"""
Request-scoped database session.

Tests override this dependency to hand routes their own session.
"""

from typing import Generator

from sqlalchemy.orm import Session

from ...database import get_db as session_scope


def get_db() -> Generator[Session, None, None]:
    yield from session_scope()
