"""
cukeflow - Main FastAPI Application.

REST API for running generated test suites, reconciling their results
and following executions live.
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
import time

from api.dependencies import get_orchestrator
from api.routes import executions, global_executions, health
from core.domain.exceptions import (
    ExecutionNotFoundError,
    InvalidExecutionRequestError,
    InvalidStatusTransitionError,
    ProjectNotFoundError,
)
from core.infrastructure.database.config import close_database, init_database
from core.settings import get_app_settings


# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


# =============================================================================
# CREATE FASTAPI APP
# =============================================================================

app = FastAPI(
    title="cukeflow - Test Execution API",
    description="""
    Test execution orchestration and result consolidation.

    Features:
    - Background execution of generated Cucumber suites
    - Result reconciliation into executions and test cases
    - Live execution events over SSE
    - Automatic bug reports for failed scenarios
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)


# =============================================================================
# CORS MIDDLEWARE
# =============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
    expose_headers=["*"],
)


# =============================================================================
# REQUEST LOGGING MIDDLEWARE
# =============================================================================

@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all requests with timing."""
    start_time = time.time()

    logger.info(f"→ {request.method} {request.url.path}")

    response = await call_next(request)

    duration = time.time() - start_time
    logger.info(
        f"← {request.method} {request.url.path} "
        f"[{response.status_code}] ({duration:.3f}s)"
    )

    return response


# =============================================================================
# EXCEPTION HANDLERS
# =============================================================================

def _error_response(request: Request, status_code: int, error: str, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "detail": str(exc),
            "path": request.url.path,
        },
    )


@app.exception_handler(ProjectNotFoundError)
@app.exception_handler(ExecutionNotFoundError)
async def not_found_handler(request: Request, exc: Exception):
    return _error_response(request, 404, "Not found", exc)


@app.exception_handler(InvalidExecutionRequestError)
async def invalid_request_handler(request: Request, exc: InvalidExecutionRequestError):
    return _error_response(request, 400, "Invalid execution request", exc)


@app.exception_handler(InvalidStatusTransitionError)
async def invalid_transition_handler(request: Request, exc: InvalidStatusTransitionError):
    logger.error(f"Invalid status transition: {exc}")
    return _error_response(request, 409, "Invalid status transition", exc)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all uncaught exceptions."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return _error_response(request, 500, "Internal server error", exc)


# =============================================================================
# STARTUP/SHUTDOWN EVENTS
# =============================================================================

@app.on_event("startup")
async def startup_event():
    """Run on application startup."""
    logger.info("🚀 cukeflow API starting up...")
    await init_database()
    logger.info("📚 Swagger UI available at: /docs")


@app.on_event("shutdown")
async def shutdown_event():
    """Run on application shutdown."""
    logger.info("👋 cukeflow API shutting down...")
    await get_orchestrator().shutdown()

    if get_app_settings().events.redis_enabled:
        from core.infrastructure.bus import get_redis_stream_publisher
        await get_redis_stream_publisher().disconnect()

    await close_database()


# =============================================================================
# INCLUDE ROUTERS
# =============================================================================

app.include_router(
    health.router,
    tags=["Health"]
)

app.include_router(
    executions.router,
    prefix="/api/v1",
    tags=["Test Execution"]
)

app.include_router(
    global_executions.router,
    prefix="/api/v1",
    tags=["Test Execution"]
)


# =============================================================================
# ROOT ENDPOINT
# =============================================================================

@app.get("/", tags=["Root"])
async def root():
    """API root endpoint."""
    return {
        "message": "cukeflow - Test Execution API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health"
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
