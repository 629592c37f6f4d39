"""Unit of Work pattern for atomic transactions."""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, AsyncSessionTransaction, async_sessionmaker

from core.infrastructure.database.repositories import (
    SQLAlchemyExecutionRepository,
    SQLAlchemyProjectRegistry,
    SQLAlchemyTestCaseRegistry,
    SQLAlchemyTestSuiteRegistry,
)


class UnitOfWork:
    """
    Unit of Work pattern for atomic transactions.

    Responsibilities:
    1. Manage SQLAlchemy session lifecycle
    2. Atomic commit/rollback of all repository operations
    3. Lazy initialization of repositories
    """

    def __init__(self, session_factory: async_sessionmaker) -> None:
        """Initialize Unit of Work.

        Args:
            session_factory: SQLAlchemy async session factory
        """
        self._session_factory = session_factory
        self._session: Optional[AsyncSession] = None

        # Lazy-loaded repositories
        self._executions: Optional[SQLAlchemyExecutionRepository] = None
        self._projects: Optional[SQLAlchemyProjectRegistry] = None
        self._test_cases: Optional[SQLAlchemyTestCaseRegistry] = None
        self._test_suites: Optional[SQLAlchemyTestSuiteRegistry] = None

    async def __aenter__(self) -> "UnitOfWork":
        """Start transaction scope."""
        self._session = self._session_factory()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Rollback on exception; uncommitted work is discarded on close."""
        if exc_type is not None:
            await self._session.rollback()
        await self._session.close()
        self._session = None
        self._executions = None
        self._projects = None
        self._test_cases = None
        self._test_suites = None

    @property
    def session(self) -> AsyncSession:
        if self._session is None:
            raise RuntimeError("UnitOfWork not initialized. Use async context manager.")
        return self._session

    @property
    def executions(self) -> SQLAlchemyExecutionRepository:
        """Lazy-load execution repository.

        Returns:
            SQLAlchemyExecutionRepository instance
        """
        if self._executions is None:
            self._executions = SQLAlchemyExecutionRepository(self.session)
        return self._executions

    @property
    def projects(self) -> SQLAlchemyProjectRegistry:
        if self._projects is None:
            self._projects = SQLAlchemyProjectRegistry(self.session)
        return self._projects

    @property
    def test_cases(self) -> SQLAlchemyTestCaseRegistry:
        if self._test_cases is None:
            self._test_cases = SQLAlchemyTestCaseRegistry(self.session)
        return self._test_cases

    @property
    def test_suites(self) -> SQLAlchemyTestSuiteRegistry:
        if self._test_suites is None:
            self._test_suites = SQLAlchemyTestSuiteRegistry(self.session)
        return self._test_suites

    async def commit(self) -> None:
        """Commit all pending changes."""
        await self.session.commit()

    async def rollback(self) -> None:
        """Rollback all pending changes."""
        await self.session.rollback()

    def savepoint(self) -> AsyncSessionTransaction:
        """SAVEPOINT scope: an error inside rolls back only the nested work.

        Usage:
            async with uow.savepoint():
                await uow.test_suites.update_execution_stats(...)
        """
        return self.session.begin_nested()


def create_uow(session_factory: async_sessionmaker) -> UnitOfWork:
    """Create a new Unit of Work instance.

    Args:
        session_factory: SQLAlchemy async session factory

    Returns:
        UnitOfWork instance
    """
    return UnitOfWork(session_factory)
