# facility_booking/repositories/base_repository.py
"""
Shared data access for the booking engine's tables.

Repositories translate SQLAlchemy failures into RepositoryException and never
commit: the calling service owns the unit of work and decides when a flush
becomes a commit.
"""

import logging
from typing import Any, Generic, Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..database.session_utils import get_dialect_name

# Facility, Booking or Payment
T = TypeVar("T")

logger = logging.getLogger(__name__)


class BaseRepository(Generic[T]):
    """
    Primary-key reads, inserts and simple equality lookups for one model.

    Attributes:
        db: Session shared with the owning service
        model: Mapped class this repository serves
    """

    def __init__(self, db: Session, model: Type[T]):
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    @property
    def dialect_name(self) -> str:
        return get_dialect_name(self.db)

    def _failure(self, action: str, exc: SQLAlchemyError) -> RepositoryException:
        self.logger.error("Failed to %s %s: %s", action, self.model.__name__, exc)
        return RepositoryException(f"Failed to {action} {self.model.__name__}: {exc}")

    def get_by_id(self, id: str) -> Optional[T]:
        try:
            return self.db.get(self.model, id)
        except SQLAlchemyError as e:
            raise self._failure("load", e) from e

    def create(self, **kwargs: Any) -> T:
        """
        Add a row and flush it so defaults and constraints apply immediately.

        Raises:
            RepositoryException: Insert rejected; an IntegrityError is kept as
                the cause so callers can inspect the violated constraint
        """
        entity = self.model(**kwargs)
        try:
            self.db.add(entity)
            self.db.flush()
        except IntegrityError as exc:
            self.logger.warning("Integrity error creating %s: %s", self.model.__name__, exc.orig)
            raise RepositoryException(f"Integrity constraint violated: {exc.orig}") from exc
        except SQLAlchemyError as e:
            raise self._failure("create", e) from e
        return entity

    def flush(self) -> None:
        try:
            self.db.flush()
        except SQLAlchemyError as e:
            raise self._failure("flush", e) from e

    def exists(self, **criteria: Any) -> bool:
        try:
            return self.db.query(self.model).filter_by(**criteria).first() is not None
        except SQLAlchemyError as e:
            raise self._failure("query", e) from e
