# backend/bookati/routes/v1/health.py
"""
Health check endpoint for load balancer probes.
"""

from datetime import datetime, timezone
import logging

from fastapi import APIRouter

from bookati.core.config import settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check() -> dict:
    return {
        "status": "healthy",
        "environment": settings.environment,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
