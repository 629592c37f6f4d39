"""Pytest configuration and fixtures for API integration tests."""

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from api.dependencies import (
    get_db_session_factory,
    get_event_bus,
    get_orchestrator,
    get_query_service,
    reset_dependencies,
)
from api.main import app
from core.application.services import ExecutionQueryService
from core.infrastructure.adapters.bugs.mock_bug_registry import MockBugRegistry
from orchestration import ExecutionOrchestrator, InMemoryExecutionEventBus


class ReportWritingRunner:
    """Stands in for cucumber-js: writes the configured report and exits cleanly."""

    def __init__(self):
        self.report = "[]"
        self.commands = []

    async def run(self, working_dir, command, on_line=None):
        self.commands.append(command)
        path = working_dir / command.report_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.report, encoding="utf-8")
        return ""


@pytest_asyncio.fixture
async def fake_runner():
    return ReportWritingRunner()


@pytest_asyncio.fixture
async def test_event_bus():
    return InMemoryExecutionEventBus()


@pytest_asyncio.fixture
async def test_orchestrator(test_session_factory, test_event_bus, runner_settings, fake_runner):
    orchestrator = ExecutionOrchestrator(
        session_factory=test_session_factory,
        event_bus=test_event_bus,
        bug_registry=MockBugRegistry(),
        settings=runner_settings,
        process_runner=fake_runner,
    )
    yield orchestrator
    await orchestrator.shutdown()


@pytest_asyncio.fixture
async def test_client(test_session_factory, test_event_bus, test_orchestrator):
    """Async client bound to the app with test database and fake runner."""
    query_service = ExecutionQueryService(test_session_factory)

    app.dependency_overrides[get_orchestrator] = lambda: test_orchestrator
    app.dependency_overrides[get_query_service] = lambda: query_service
    app.dependency_overrides[get_event_bus] = lambda: test_event_bus
    app.dependency_overrides[get_db_session_factory] = lambda: test_session_factory

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    # Cleanup
    app.dependency_overrides.clear()
    reset_dependencies()
