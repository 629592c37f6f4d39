"""
Health check endpoints.

Used for monitoring and load balancer health checks.
"""
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import async_sessionmaker
import logging
import platform

from api.dependencies import get_db_session_factory, get_orchestrator
from cukeflow_sdk.utils.datetime import utc_now
from orchestration import ExecutionOrchestrator


logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Health check endpoint.

    Returns system health status.
    """
    return {
        "status": "healthy",
        "timestamp": utc_now().isoformat(),
        "service": "cukeflow",
        "version": "1.0.0",
        "python_version": platform.python_version(),
    }


@router.get("/health/ready")
async def readiness_check(
    session_factory: async_sessionmaker = Depends(get_db_session_factory),
    orchestrator: ExecutionOrchestrator = Depends(get_orchestrator),
):
    """
    Readiness check endpoint.

    Returns whether the service is ready to accept traffic.
    """
    database = "ok"
    try:
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning(f"Database readiness check failed: {e}")
        database = "unavailable"

    return {
        "status": "ready" if database == "ok" else "not_ready",
        "timestamp": utc_now().isoformat(),
        "checks": {
            "api": "ok",
            "database": database,
        },
        "running_executions": len(orchestrator.running_executions),
    }
