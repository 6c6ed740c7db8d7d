# facility_booking/tasks/booking_tasks.py
"""
Celery tasks for booking maintenance.
"""

from datetime import datetime, timezone
import logging
from typing import Any, Callable, Optional, ParamSpec, Protocol, TypedDict, TypeVar, cast

from celery.result import AsyncResult
from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..core.config import BookingConfig, get_booking_config
from ..events.publisher import EventPublisher
from ..services.booking_state_machine import BookingStateMachine
from .celery_app import celery_app

P = ParamSpec("P")
R = TypeVar("R", covariant=True)

logger = logging.getLogger(__name__)


class TaskWrapper(Protocol[P, R]):
    def __call__(self, *args: P.args, **kwargs: P.kwargs) -> R:
        ...

    delay: Callable[..., AsyncResult]
    apply_async: Callable[..., AsyncResult]


def typed_task(
    *task_args: Any, **task_kwargs: Any
) -> Callable[[Callable[P, R]], TaskWrapper[P, R]]:
    """Return a typed Celery task decorator for mypy."""

    return cast(
        Callable[[Callable[P, R]], TaskWrapper[P, R]],
        celery_app.task(*task_args, **task_kwargs),
    )


class ExpiryJobResults(TypedDict):
    expired: int
    processed_at: str


def run_pending_expiry(
    db: Session,
    config: BookingConfig,
    clock: Optional[Clock] = None,
    publisher: Optional[EventPublisher] = None,
) -> ExpiryJobResults:
    """Expire stale pending bookings with the given session and policy."""
    state_machine = BookingStateMachine(db, config, clock=clock, publisher=publisher)
    expired = state_machine.expire_stale_pending()
    processed_at = state_machine.clock.now().astimezone(timezone.utc)
    return {"expired": expired, "processed_at": processed_at.isoformat()}


@typed_task(
    bind=True,
    max_retries=3,
    name="facility_booking.tasks.booking_tasks.expire_stale_pending_bookings",
)
def expire_stale_pending_bookings(self: Any) -> ExpiryJobResults:
    """
    Cancel pending bookings whose payment did not complete in time.

    Runs every five minutes. Each booking is expired in its own transaction
    as the system actor, so a single failure only skips that booking.
    """
    from ..database import SessionLocal

    db: Session = SessionLocal()
    try:
        results = run_pending_expiry(db, get_booking_config())
        logger.info(f"Pending expiry job completed: {results['expired']} expired")
        return results
    except Exception as exc:
        logger.error(f"Pending expiry job failed at {datetime.now(timezone.utc)}: {exc}")
        raise self.retry(exc=exc, countdown=60)
    finally:
        db.close()
