"""SQLAlchemy Test Suite Registry."""
from typing import Dict, Optional
import logging

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from cukeflow_sdk.utils.datetime import utc_now
from core.application.interfaces import ITestSuiteRegistry, TestSuiteRef
from core.infrastructure.database.models import TestSuiteModel


logger = logging.getLogger(__name__)


class SQLAlchemyTestSuiteRegistry(ITestSuiteRegistry):
    """SQLAlchemy implementation of ITestSuiteRegistry."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_test_suite(self, project_id: str, suite_id: str) -> Optional[TestSuiteRef]:
        model = await self._find(project_id, suite_id)
        if model is None:
            return None
        return TestSuiteRef(
            suite_id=model.suite_id,
            project_id=model.project_id,
            name=model.name,
            test_sets=list(model.test_sets or []),
        )

    async def update_execution_stats(
        self,
        project_id: str,
        suite_id: str,
        stats: Dict[str, int],
    ) -> None:
        model = await self._find(project_id, suite_id)
        if model is None:
            logger.warning(f"Test suite {suite_id} not found in project {project_id}")
            return

        model.total_scenarios = stats.get("total", 0)
        model.passed_scenarios = stats.get("passed", 0)
        model.failed_scenarios = stats.get("failed", 0)
        model.execution_time = stats.get("executionTime", 0)
        model.last_executed_at = utc_now()
        await self.session.flush()
        logger.info(f"Test suite {suite_id} statistics updated")

    async def _find(self, project_id: str, suite_id: str) -> Optional[TestSuiteModel]:
        result = await self.session.execute(
            select(TestSuiteModel)
            .where(
                and_(
                    TestSuiteModel.project_id == project_id,
                    TestSuiteModel.suite_id == suite_id,
                )
            )
            .limit(1)
        )
        return result.scalars().first()
