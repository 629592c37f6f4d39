"""
SQLAlchemy Execution Repository Implementation.

Implements ExecutionRepository using SQLAlchemy async sessions.
"""
from datetime import datetime
from typing import List, Optional, Tuple
import logging

from sqlalchemy import and_, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.domain.entities import Execution, ScenarioResult, StepResult
from core.domain.enums import ExecutionStatus, ScenarioStatus
from core.domain.repositories import ExecutionRepository
from core.domain.value_objects import ExecutionConfig, ExecutionID
from core.infrastructure.database.models import TestExecutionModel, TestResultModel


logger = logging.getLogger(__name__)


class SQLAlchemyExecutionRepository(ExecutionRepository):
    """
    SQLAlchemy implementation of ExecutionRepository.

    Does not commit; the caller's unit of work owns the transaction.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize repository with database session.

        Args:
            session: SQLAlchemy async session
        """
        self.session = session

    async def save(self, execution: Execution) -> Execution:
        """
        Insert or update an execution.

        Args:
            execution: Execution entity to persist

        Returns:
            The same entity with id and timestamps populated
        """
        execution_id = str(execution.execution_id)
        result = await self.session.execute(
            select(TestExecutionModel).where(TestExecutionModel.execution_id == execution_id)
        )
        model = result.scalar_one_or_none()

        if model is None:
            logger.debug(f"Creating execution row: {execution_id}")
            model = TestExecutionModel(execution_id=execution_id)
            self.session.add(model)
        else:
            logger.debug(f"Updating execution row: {execution_id} -> {execution.status.value}")

        self._apply(execution, model)
        await self.session.flush()

        execution.id = model.id
        execution.created_at = model.created_at
        execution.updated_at = model.updated_at
        return execution

    async def find_by_execution_id(self, execution_id: str) -> Optional[Execution]:
        result = await self.session.execute(
            select(TestExecutionModel).where(TestExecutionModel.execution_id == str(execution_id))
        )
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def add_results(self, execution_id: str, results: List[ScenarioResult]) -> None:
        for scenario in results:
            self.session.add(
                TestResultModel(
                    execution_id=str(execution_id),
                    scenario_name=scenario.scenario_name,
                    scenario_tags=list(scenario.scenario_tags),
                    status=scenario.status.value,
                    duration=scenario.duration,
                    steps=scenario.steps_as_dicts(),
                    error_message=scenario.error_message,
                    result_metadata=dict(scenario.metadata),
                )
            )
        await self.session.flush()

    async def get_results(self, execution_id: str) -> List[ScenarioResult]:
        result = await self.session.execute(
            select(TestResultModel)
            .where(TestResultModel.execution_id == str(execution_id))
            .order_by(TestResultModel.id)
        )
        return [self._result_to_entity(model) for model in result.scalars().all()]

    async def list_by_project(
        self,
        project_id: str,
        *,
        entity_name: Optional[str] = None,
        method: Optional[str] = None,
        test_type: Optional[str] = None,
        status: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Execution], int]:
        conditions = [TestExecutionModel.project_id == project_id]
        if entity_name:
            conditions.append(TestExecutionModel.entity_name == entity_name)
        if method:
            conditions.append(TestExecutionModel.method == method)
        if test_type:
            conditions.append(TestExecutionModel.test_type == test_type)
        if status:
            conditions.append(TestExecutionModel.status == status)
        if date_from:
            conditions.append(TestExecutionModel.started_at >= date_from)
        if date_to:
            conditions.append(TestExecutionModel.started_at <= date_to)

        total = await self.session.scalar(
            select(func.count()).select_from(TestExecutionModel).where(and_(*conditions))
        )
        result = await self.session.execute(
            select(TestExecutionModel)
            .where(and_(*conditions))
            .order_by(TestExecutionModel.started_at.desc(), TestExecutionModel.id.desc())
            .offset(offset)
            .limit(limit)
        )
        executions = [self._to_entity(model) for model in result.scalars().all()]
        return executions, int(total or 0)

    async def find_all(self, project_id: Optional[str] = None) -> List[Execution]:
        query = select(TestExecutionModel)
        if project_id is not None:
            query = query.where(TestExecutionModel.project_id == project_id)
        query = query.order_by(TestExecutionModel.started_at.desc(), TestExecutionModel.id.desc())
        result = await self.session.execute(query)
        return [self._to_entity(model) for model in result.scalars().all()]

    async def find_recent_by_entity(
        self, project_id: str, entity_name: str, limit: int = 10
    ) -> List[Execution]:
        result = await self.session.execute(
            select(TestExecutionModel)
            .where(
                and_(
                    TestExecutionModel.project_id == project_id,
                    TestExecutionModel.entity_name == entity_name,
                )
            )
            .order_by(TestExecutionModel.started_at.desc(), TestExecutionModel.id.desc())
            .limit(limit)
        )
        return [self._to_entity(model) for model in result.scalars().all()]

    async def find_last_by_test_suite(self, project_id: str, test_suite_id: str) -> Optional[Execution]:
        return await self._find_last(
            TestExecutionModel.project_id == project_id,
            TestExecutionModel.test_suite_id == test_suite_id,
        )

    async def find_last_by_test_case(self, project_id: str, test_case_id: str) -> Optional[Execution]:
        return await self._find_last(
            TestExecutionModel.project_id == project_id,
            TestExecutionModel.test_case_id == test_case_id,
        )

    async def find_failed_by_test_case(self, project_id: str, test_case_id: str) -> List[Execution]:
        result = await self.session.execute(
            select(TestExecutionModel)
            .where(
                and_(
                    TestExecutionModel.project_id == project_id,
                    TestExecutionModel.status == ExecutionStatus.FAILED.value,
                    TestExecutionModel.test_case_id == test_case_id,
                )
            )
            .order_by(TestExecutionModel.started_at.desc(), TestExecutionModel.id.desc())
        )
        return [self._to_entity(model) for model in result.scalars().all()]

    async def delete(self, execution_id: str) -> bool:
        await self.session.execute(
            delete(TestResultModel).where(TestResultModel.execution_id == str(execution_id))
        )
        result = await self.session.execute(
            delete(TestExecutionModel).where(TestExecutionModel.execution_id == str(execution_id))
        )
        deleted = (result.rowcount or 0) > 0
        if deleted:
            logger.info(f"Execution {execution_id} deleted")
        return deleted

    # =========================================================================
    # MAPPING
    # =========================================================================

    async def _find_last(self, *conditions) -> Optional[Execution]:
        result = await self.session.execute(
            select(TestExecutionModel)
            .where(and_(*conditions))
            .order_by(TestExecutionModel.started_at.desc(), TestExecutionModel.id.desc())
            .limit(1)
        )
        model = result.scalars().first()
        return self._to_entity(model) if model else None

    @staticmethod
    def _apply(execution: Execution, model: TestExecutionModel) -> None:
        model.project_id = execution.project_id
        model.entity_name = execution.entity_name
        model.method = execution.method
        model.test_type = execution.test_type
        model.tags = list(execution.tags)
        model.specific_scenario = execution.specific_scenario
        model.status = execution.status.value
        model.started_at = execution.started_at
        model.completed_at = execution.completed_at
        model.total_scenarios = execution.total_scenarios
        model.passed_scenarios = execution.passed_scenarios
        model.failed_scenarios = execution.failed_scenarios
        model.execution_time = execution.execution_time
        model.error_message = execution.error_message
        model.run_metadata = execution.config.to_dict()
        model.test_case_id = execution.test_case_id
        model.test_suite_id = execution.test_suite_id

    @staticmethod
    def _to_entity(model: TestExecutionModel) -> Execution:
        return Execution(
            id=model.id,
            project_id=model.project_id,
            execution_id=ExecutionID.parse(model.execution_id),
            entity_name=model.entity_name,
            method=model.method,
            test_type=model.test_type,
            tags=list(model.tags or []),
            specific_scenario=model.specific_scenario,
            test_case_id=model.test_case_id,
            test_suite_id=model.test_suite_id,
            config=ExecutionConfig.from_dict(model.run_metadata),
            status=ExecutionStatus(model.status),
            started_at=model.started_at,
            completed_at=model.completed_at,
            total_scenarios=model.total_scenarios or 0,
            passed_scenarios=model.passed_scenarios or 0,
            failed_scenarios=model.failed_scenarios or 0,
            execution_time=model.execution_time or 0,
            error_message=model.error_message,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    @staticmethod
    def _result_to_entity(model: TestResultModel) -> ScenarioResult:
        return ScenarioResult(
            id=model.id,
            scenario_name=model.scenario_name,
            scenario_tags=list(model.scenario_tags or []),
            status=ScenarioStatus(model.status),
            duration=model.duration or 0.0,
            steps=[StepResult.from_dict(step) for step in (model.steps or [])],
            error_message=model.error_message,
            metadata=dict(model.result_metadata or {}),
            created_at=model.created_at,
        )
