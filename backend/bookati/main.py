# backend/bookati/main.py
"""
FastAPI application for the booking core.

Routes are mounted under /api/v1. Domain exceptions become problem-details
responses through ``register_error_handlers``.
"""

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI

from .core.config import settings
from .errors import register_error_handlers
from .routes.v1 import (
    bookings as bookings_v1,
    health as health_v1,
    packages as packages_v1,
    prometheus as prometheus_v1,
    slots as slots_v1,
)

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)

API_TITLE = "Bookati Booking Core"
API_VERSION = "1.0.0"


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown without deprecated events."""
    logger.info("Booking core API starting up (environment=%s)", settings.environment)
    yield
    logger.info("Booking core API shutting down")


app = FastAPI(title=API_TITLE, version=API_VERSION, lifespan=app_lifespan)
register_error_handlers(app)

api_v1 = APIRouter(prefix="/api/v1")
api_v1.include_router(bookings_v1.router, prefix="/bookings")
api_v1.include_router(slots_v1.router, prefix="/slots")
api_v1.include_router(packages_v1.router, prefix="/packages")
api_v1.include_router(health_v1.router)

app.include_router(api_v1)
app.include_router(prometheus_v1.router, prefix="/metrics")
