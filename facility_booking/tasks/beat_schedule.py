# facility_booking/tasks/beat_schedule.py
"""
Celery Beat schedule for periodic booking maintenance.
"""

from datetime import timedelta
from typing import Any, Dict

from celery.schedules import crontab

EXPIRE_PENDING_TASK = "facility_booking.tasks.booking_tasks.expire_stale_pending_bookings"

CELERYBEAT_SCHEDULE: Dict[str, Dict[str, Any]] = {
    # Release slots held by bookings whose payment never completed
    "expire-stale-pending-bookings": {
        "task": EXPIRE_PENDING_TASK,
        "schedule": crontab(minute="*/5"),
        "options": {"queue": "bookings", "priority": 5},
    },
}

SCHEDULE_CONFIG: Dict[str, Dict[str, Dict[str, Any]]] = {
    "test": {
        "expire-stale-pending-bookings": {
            "task": EXPIRE_PENDING_TASK,
            "schedule": timedelta(seconds=30),
            "options": {"queue": "bookings", "priority": 5},
        },
    },
}


def get_beat_schedule(environment: str = "production") -> Dict[str, Dict[str, Any]]:
    """
    Beat schedule for an environment.

    Args:
        environment: The environment name (production, development, test)

    Returns:
        Mapping of schedule entry name to Celery beat configuration
    """
    schedule: Dict[str, Dict[str, Any]] = dict(CELERYBEAT_SCHEDULE)
    overrides = SCHEDULE_CONFIG.get(environment)
    if overrides:
        schedule.update(overrides)
    return schedule
