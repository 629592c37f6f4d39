"""
FastAPI Dependencies.

Provides dependency injection for the orchestrator and services.
"""
from __future__ import annotations

import logging
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables ONCE before any settings objects are created
_PROJECT_ROOT = Path(__file__).resolve().parents[1]
load_dotenv(dotenv_path=_PROJECT_ROOT / ".env")

from sqlalchemy.ext.asyncio import async_sessionmaker

from core.application.interfaces import IBugRegistry
from core.application.services import ExecutionQueryService
from core.infrastructure.adapters.bugs.mock_bug_registry import MockBugRegistry
from core.infrastructure.database.config import get_session_factory
from core.settings import get_app_settings
from orchestration import ExecutionOrchestrator, InMemoryExecutionEventBus

logger = logging.getLogger(__name__)


# =============================================================================
# SINGLETON INSTANCES
# =============================================================================

_event_bus = None
_bug_registry = None
_orchestrator = None
_query_service = None


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_db_session_factory() -> async_sessionmaker:
    return get_session_factory()


def get_event_bus() -> InMemoryExecutionEventBus:
    global _event_bus
    if _event_bus is None:
        settings = get_app_settings()
        _event_bus = InMemoryExecutionEventBus(queue_size=settings.events.subscriber_queue_size)

        if settings.events.redis_enabled:
            from core.infrastructure.bus.redis_stream_publisher import get_redis_stream_publisher
            _event_bus.add_handler(get_redis_stream_publisher(settings.events))
            logger.info(f"Mirroring execution events to Redis stream {settings.events.redis_stream}")

        logger.info("Created InMemoryExecutionEventBus instance")
    return _event_bus


def get_bug_registry() -> IBugRegistry:
    global _bug_registry

    if _bug_registry is None:
        settings = get_app_settings()

        if settings.bug_tracker.enabled:
            from core.infrastructure.adapters.bugs.http_bug_registry import HttpBugRegistry
            _bug_registry = HttpBugRegistry(settings.bug_tracker)
            logger.info("Created HttpBugRegistry instance")
        else:
            _bug_registry = MockBugRegistry()
            logger.info("Using MockBugRegistry (bug tracker disabled)")

    return _bug_registry


def get_orchestrator() -> ExecutionOrchestrator:
    global _orchestrator

    if _orchestrator is None:
        _orchestrator = ExecutionOrchestrator(
            session_factory=get_db_session_factory(),
            event_bus=get_event_bus(),
            bug_registry=get_bug_registry(),
            settings=get_app_settings().runner,
        )
        logger.info("Created ExecutionOrchestrator instance")

    return _orchestrator


def get_query_service() -> ExecutionQueryService:
    global _query_service

    if _query_service is None:
        _query_service = ExecutionQueryService(get_db_session_factory())
        logger.info("Created ExecutionQueryService instance")

    return _query_service


# =============================================================================
# RESET (for testing)
# =============================================================================

def reset_dependencies():
    global _event_bus, _bug_registry, _orchestrator, _query_service

    _event_bus = None
    _bug_registry = None
    _orchestrator = None
    _query_service = None

    logger.info("Dependencies reset")
