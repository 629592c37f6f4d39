"""
SQLAlchemy Test Case Registry.

Correlates scenarios with ``test_cases`` rows by display name.
"""
from datetime import datetime
from typing import Optional
import logging

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.application.interfaces import ITestCaseRegistry, TestCaseRef
from core.domain.enums import TestCaseStatus
from core.infrastructure.database.models import TestCaseModel


logger = logging.getLogger(__name__)


class SQLAlchemyTestCaseRegistry(ITestCaseRegistry):
    """SQLAlchemy implementation of ITestCaseRegistry."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_by_name(self, project_id: str, name: str) -> Optional[TestCaseRef]:
        result = await self.session.execute(
            select(TestCaseModel)
            .where(and_(TestCaseModel.project_id == project_id, TestCaseModel.name == name))
            .order_by(TestCaseModel.id)
            .limit(1)
        )
        model = result.scalars().first()
        return self._to_ref(model) if model else None

    async def find_by_test_case_id(self, project_id: str, test_case_id: str) -> Optional[TestCaseRef]:
        result = await self.session.execute(
            select(TestCaseModel)
            .where(
                and_(
                    TestCaseModel.project_id == project_id,
                    TestCaseModel.test_case_id == test_case_id,
                )
            )
            .limit(1)
        )
        model = result.scalars().first()
        return self._to_ref(model) if model else None

    async def update_last_run(
        self,
        test_case: TestCaseRef,
        status: str,
        timestamp: datetime,
    ) -> None:
        model = await self.session.get(TestCaseModel, test_case.id)
        if model is None:
            logger.warning(f"Test case row {test_case.id} disappeared before update")
            return

        model.last_run = timestamp
        model.last_run_status = status
        model.status = TestCaseStatus.ACTIVE.value
        await self.session.flush()

        test_case.last_run = timestamp
        test_case.last_run_status = status
        test_case.status = model.status

    async def count(self, project_id: str, entity_name: Optional[str] = None) -> int:
        query = select(func.count()).select_from(TestCaseModel).where(
            TestCaseModel.project_id == project_id
        )
        if entity_name:
            query = query.where(TestCaseModel.entity_name == entity_name)
        total = await self.session.scalar(query)
        return int(total or 0)

    @staticmethod
    def _to_ref(model: TestCaseModel) -> TestCaseRef:
        return TestCaseRef(
            id=model.id,
            test_case_id=model.test_case_id,
            project_id=model.project_id,
            name=model.name,
            entity_name=model.entity_name,
            status=model.status,
            last_run=model.last_run,
            last_run_status=model.last_run_status,
        )
