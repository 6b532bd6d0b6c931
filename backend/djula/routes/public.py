# /djula/routes/public.py

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import PlainTextResponse
from prometheus_client import generate_latest
from datetime import datetime

from djula.config.settings import settings
from djula.utils.dependencies import verify_api_key
from djula.services.db_service import db_service
from djula.services.cache_service import cache_service
from djula.services.ai_service import ai_service
from djula.models.api import APIResponse

# This file defines public-facing endpoints that do not require authentication,
# such as health checks and the root endpoint. The /metrics endpoint is
# protected by the operator API key when one is configured.

router = APIRouter()


@router.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "Djula WhatsApp Commerce Assistant",
        "version": "1.0.0",
        "status": "operational",
        "environment": settings.environment
    }


@router.get("/health", summary="Basic Health Check")
async def health_check():
    """Basic health check for load balancers."""
    return {"status": "healthy", "timestamp": datetime.utcnow()}


@router.get("/health/ready", summary="Readiness Probe")
async def readiness_check():
    """Readiness check: MongoDB must answer. Redis is optional (delivery dedup falls back in-process)."""
    if not await db_service.health_check():
        raise HTTPException(status_code=503, detail="Service not ready: database unavailable")
    return {"status": "ready", "cache": "connected" if await cache_service.ping() else "degraded"}


@router.get("/health/live", summary="Liveness Probe")
async def liveness_check():
    return {"status": "alive"}


@router.get("/health/detailed", response_model=APIResponse, dependencies=[Depends(verify_api_key)])
async def comprehensive_health_check():
    """Detailed status of every dependency, for operators."""
    services = {
        "database": "connected" if await db_service.health_check() else "error",
        "cache": "connected" if await cache_service.ping() else "error",
        "whatsapp": "configured" if settings.whatsapp_access_token else "not_configured",
        "ai": "configured" if ai_service.is_configured else "not_configured",
        "commerce_api": "configured" if settings.commerce_api_url else "not_configured",
    }
    status = "healthy" if services["database"] == "connected" and services["cache"] == "connected" else "degraded"
    return APIResponse(
        success=True,
        message="Comprehensive health status retrieved.",
        data={"status": status, "services": services},
        version=settings.api_version
    )


@router.get("/metrics", tags=["Monitoring"], dependencies=[Depends(verify_api_key)])
async def metrics():
    """Prometheus metrics endpoint."""
    return PlainTextResponse(generate_latest(), media_type="text/plain")
