# facility_booking/tasks/celery_app.py
"""
Celery application for background booking maintenance.

Redis is the broker. Results are not stored: the only scheduled job is the
pending-booking expiry sweep, which reports through logs and metrics.
"""

import logging
import os
from typing import Any

from celery import Celery
from celery.signals import setup_logging

from ..core.config import settings


def create_celery_app() -> Celery:
    """
    Create and configure the Celery application.

    Returns:
        Celery: Configured Celery application instance
    """
    broker_url = os.getenv("CELERY_BROKER_URL") or settings.celery_broker_url

    celery_app = Celery("facility_booking", broker=broker_url)

    celery_app.conf.update(
        {
            "task_serializer": "json",
            "accept_content": ["json"],
            "result_serializer": "json",
            "timezone": settings.platform_timezone,
            "enable_utc": True,
            "task_ignore_result": True,
            "worker_prefetch_multiplier": 1,
            "worker_max_tasks_per_child": 1000,
            "task_soft_time_limit": 240,
            "task_time_limit": 300,
            "task_acks_late": True,
            "task_reject_on_worker_lost": True,
            "worker_hijack_root_logger": False,
        }
    )

    celery_app.conf.imports = ("facility_booking.tasks.booking_tasks",)
    celery_app.conf.task_routes = {
        "facility_booking.tasks.booking_tasks.*": {"queue": "bookings"},
    }

    from .beat_schedule import get_beat_schedule

    celery_app.conf.beat_schedule = get_beat_schedule(settings.environment)
    return celery_app


@setup_logging.connect  # type: ignore[misc]
def config_loggers(*args: Any, **kwargs: Any) -> None:
    """Use the application's log format instead of Celery's."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


celery_app = create_celery_app()
