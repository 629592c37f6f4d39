"""Shared pytest fixtures: in-memory database and runner settings."""

from pathlib import Path
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from core.infrastructure.database import models
from core.settings import RunnerSettings


# File-backed SQLite per test, so each session gets its own connection
TEST_DATABASE_URL = "sqlite+aiosqlite:///{path}"

PROJECT_ID = "proj-ecommerce"


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path_factory):
    """Create test database engine."""
    db_path = tmp_path_factory.mktemp("db") / "test.db"
    engine = create_async_engine(
        TEST_DATABASE_URL.format(path=db_path),
        connect_args={"check_same_thread": False},
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(models.Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(models.Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def test_session_factory(test_engine):
    """Create test session factory."""
    session_factory = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )
    yield session_factory


@pytest_asyncio.fixture
async def test_session(test_session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with test_session_factory() as session:
        yield session


@pytest.fixture
def project_dir(tmp_path) -> Path:
    """Project working directory with a Product feature file."""
    feature = tmp_path / "src" / "features" / "ecommerce" / "product.feature"
    feature.parent.mkdir(parents=True)
    feature.write_text("Feature: Product\n", encoding="utf-8")
    return tmp_path


@pytest.fixture
def runner_settings() -> RunnerSettings:
    return RunnerSettings(
        report_dir="test-results",
        report_name="cucumber-report.json",
        process_timeout_seconds=None,
        forward_parallel=False,
    )


@pytest_asyncio.fixture
async def seeded_project(test_session_factory, project_dir):
    """
    Project with three Product test cases and one test plan.

    Returns the project id.
    """
    async with test_session_factory() as session:
        session.add(models.ProjectModel(id=PROJECT_ID, name="E-commerce API", path=str(project_dir)))
        session.add_all([
            models.TestCaseModel(
                test_case_id="TC-ecommerce-Product-1",
                project_id=PROJECT_ID,
                entity_name="Product",
                name="Create product with valid data",
            ),
            models.TestCaseModel(
                test_case_id="TC-ecommerce-Product-2",
                project_id=PROJECT_ID,
                entity_name="Product",
                name="Create product with invalid price",
            ),
            models.TestCaseModel(
                test_case_id="TC-ecommerce-Product-3",
                project_id=PROJECT_ID,
                entity_name="Product",
                name="Get product by id",
            ),
        ])
        session.add(
            models.TestSuiteModel(
                suite_id="PLAN-ECOMMERCE-001",
                project_id=PROJECT_ID,
                name="Product regression plan",
                test_sets=[
                    {"test_cases": ["TC-ecommerce-Product-1", "TC-ecommerce-Product-2"]},
                    {"test_cases": ["TC-ecommerce-Product-1", "TC-missing-9"]},
                ],
            )
        )
        await session.commit()
    return PROJECT_ID
