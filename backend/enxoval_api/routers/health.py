"""
Health check endpoints.
Provides basic and detailed health status of the service and its dependencies.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text

from enxoval_api.services.payments.circuit_breaker import get_all_breaker_stats
from shared.config.settings import settings
from shared.infrastructure.db import SessionLocal
from shared.utils.health import HealthStatus, aggregate_health_checks, health_check_with_timeout


router = APIRouter(prefix="/api", tags=["health"])

SERVICE_NAME = "enxoval-api"


@router.get("/health")
def health_check():
    """
    Basic health check endpoint.
    Returns service status without checking dependencies.
    """
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "environment": settings.environment,
    }


@health_check_with_timeout(timeout=3.0, component="database")
async def check_database_health() -> dict:
    with SessionLocal() as db:
        db.execute(text("SELECT 1"))
        dialect = db.get_bind().dialect.name
    return {"dialect": dialect}


@router.get("/health/detailed")
async def detailed_health_check():
    """
    Database connectivity plus circuit breaker states for the outbound
    integrations (Mercado Pago, Resend).

    Returns 503 Service Unavailable if the database is down.
    """
    health_results = await aggregate_health_checks([check_database_health()])

    checks = {
        "service": SERVICE_NAME,
        "environment": settings.environment,
        "status": health_results["status"],
        "dependencies": health_results["components"],
        "circuit_breakers": get_all_breaker_stats(),
    }

    if health_results["status"] != HealthStatus.HEALTHY.value:
        return JSONResponse(status_code=503, content=checks)
    return checks
