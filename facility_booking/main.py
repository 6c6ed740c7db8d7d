# facility_booking/main.py
"""
FastAPI application for the facility booking engine.

Mounts the v1 routers under /api/v1 and exposes /health and /metrics.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging
from typing import AsyncIterator

from fastapi import APIRouter, FastAPI, Response
from pydantic import BaseModel

from . import __version__
from .core.config import get_booking_config, settings
from .errors import register_error_handlers
from .monitoring.prometheus_metrics import prometheus_metrics
from .routes.v1 import bookings as bookings_v1, facilities as facilities_v1, payments as payments_v1

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)

API_TITLE = "Facility Booking API"
API_DESCRIPTION = "Slot availability, atomic booking creation and booking lifecycle"


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
    environment: str
    timestamp: str


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncIterator[None]:
    config = get_booking_config()
    logger.info(
        "Starting %s (environment=%s, timezone=%s)",
        API_TITLE,
        settings.environment,
        config.platform_timezone,
    )
    yield
    logger.info("Shutting down %s", API_TITLE)


app = FastAPI(
    title=API_TITLE,
    description=API_DESCRIPTION,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=app_lifespan,
)

register_error_handlers(app)

# Create API v1 router
api_v1 = APIRouter(prefix="/api/v1")
api_v1.include_router(facilities_v1.router, prefix="/facilities")
api_v1.include_router(bookings_v1.router, prefix="/bookings")
api_v1.include_router(payments_v1.router, prefix="/payments")
app.include_router(api_v1)


@app.get("/health", response_model=HealthResponse, include_in_schema=False)
def health_check() -> HealthResponse:
    return HealthResponse(
        status="healthy",
        service="facility-booking-api",
        version=__version__,
        environment=settings.environment,
        timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
    )


@app.get("/metrics", include_in_schema=False)
def metrics() -> Response:
    return Response(
        content=prometheus_metrics.get_metrics(),
        media_type=prometheus_metrics.get_content_type(),
    )
