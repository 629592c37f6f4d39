"""
Execution query service.

Read side of the engine: execution details, listings, history and
summaries. Each call opens its own unit of work.
"""
import math
from collections import OrderedDict
from typing import Any, Dict, List, Optional
import logging

from sqlalchemy.ext.asyncio import async_sessionmaker

from core.application.dtos import ExecutionFilters
from core.data.uow import create_uow
from core.domain.entities import Execution, ScenarioResult
from core.domain.enums import StepStatus
from core.domain.exceptions import ExecutionNotFoundError


logger = logging.getLogger(__name__)

EXAMPLE_MARKER = "(Example"


def base_scenario_name(name: str) -> str:
    """Strip the ``(Example n)`` suffix of an outline instance name."""
    if EXAMPLE_MARKER in name:
        return name.split(EXAMPLE_MARKER)[0].strip()
    return name


def _percentage(part: int, whole: int) -> float:
    return (part / whole) * 100 if whole > 0 else 0.0


def calculate_summary(execution: Execution) -> Dict[str, Any]:
    """
    Summarize the counters of one execution.

    Args:
        execution: Execution entity

    Returns:
        Totals, success rate, average duration and start/end times
    """
    total = execution.total_scenarios
    return {
        "total_scenarios": total,
        "passed_scenarios": execution.passed_scenarios,
        "failed_scenarios": execution.failed_scenarios,
        "skipped_scenarios": total - execution.passed_scenarios - execution.failed_scenarios,
        "success_rate": execution.success_rate,
        "average_duration": execution.execution_time / total if total > 0 else 0,
        "total_duration": execution.execution_time,
        "start_time": execution.started_at,
        "end_time": execution.completed_at,
    }


def summarize_executions(executions: List[Execution]) -> Dict[str, Any]:
    """Aggregate counters over executions given newest first."""
    total_executions = len(executions)
    total_scenarios = sum(e.total_scenarios for e in executions)
    total_passed = sum(e.passed_scenarios for e in executions)
    total_failed = sum(e.failed_scenarios for e in executions)
    total_time = sum(e.execution_time for e in executions)

    status_distribution: Dict[str, int] = {}
    for execution in executions:
        key = execution.status.value
        status_distribution[key] = status_distribution.get(key, 0) + 1

    return {
        "total_executions": total_executions,
        "total_scenarios": total_scenarios,
        "total_passed": total_passed,
        "total_failed": total_failed,
        "success_rate": _percentage(total_passed, total_scenarios),
        "average_execution_time": total_time / total_executions if total_executions > 0 else 0,
        "status_distribution": status_distribution,
        "last_execution": executions[0].started_at if executions else None,
    }


def enrich_result(result: ScenarioResult) -> Dict[str, Any]:
    """Serialize a stored result with step statistics (hooks excluded in ``actual_*``)."""
    steps = result.steps
    actual = [step for step in steps if not step.is_hook]
    passed = sum(1 for step in steps if step.status == StepStatus.PASSED)
    passed_actual = sum(1 for step in actual if step.status == StepStatus.PASSED)

    return {
        "id": result.id,
        "scenario_name": result.scenario_name,
        "scenario_tags": result.scenario_tags,
        "status": result.status.value,
        "duration": result.duration,
        "steps": result.steps_as_dicts(),
        "error_message": result.error_message,
        "metadata": result.metadata,
        "created_at": result.created_at,
        "step_count": len(steps),
        "passed_steps": passed,
        "failed_steps": sum(1 for step in steps if step.status == StepStatus.FAILED),
        "skipped_steps": sum(1 for step in steps if step.status == StepStatus.SKIPPED),
        "actual_step_count": len(actual),
        "passed_actual_steps": passed_actual,
        "failed_actual_steps": sum(1 for step in actual if step.status == StepStatus.FAILED),
        "success_rate": _percentage(passed, len(steps)),
        "actual_success_rate": _percentage(passed_actual, len(actual)),
    }


def _execution_brief(execution: Execution) -> Dict[str, Any]:
    return {
        "execution_id": str(execution.execution_id),
        "status": execution.status.value,
        "started_at": execution.started_at,
        "completed_at": execution.completed_at,
        "execution_time": execution.execution_time,
        "total_scenarios": execution.total_scenarios,
        "passed_scenarios": execution.passed_scenarios,
        "failed_scenarios": execution.failed_scenarios,
        "entity_name": execution.entity_name,
    }


class ExecutionQueryService:
    """
    Application service for reading executions and their results.

    Responsibilities:
    - Look up executions and results via UoW
    - Derive summaries and step statistics
    - Raise ExecutionNotFoundError for unknown ids
    """

    def __init__(self, session_factory: async_sessionmaker) -> None:
        """Initialize query service.

        Args:
            session_factory: SQLAlchemy async session factory
        """
        self._session_factory = session_factory

    async def get_results(self, execution_id: str) -> Dict[str, Any]:
        """
        Get an execution with its summary and enriched results.

        Args:
            execution_id: Execution identifier

        Returns:
            Execution detail payload

        Raises:
            ExecutionNotFoundError: If the execution does not exist
        """
        async with create_uow(self._session_factory) as uow:
            execution = await uow.executions.find_by_execution_id(execution_id)
            if execution is None:
                raise ExecutionNotFoundError(f"Execution with ID {execution_id} not found")
            results = await uow.executions.get_results(execution_id)

        return {
            **_execution_brief(execution),
            "summary": calculate_summary(execution),
            "results": [enrich_result(result) for result in results],
            "metadata": execution.config.to_dict(),
            "error_message": execution.error_message,
            "method": execution.method,
            "test_type": execution.test_type,
            "tags": execution.tags,
            "specific_scenario": execution.specific_scenario,
            "test_case_id": execution.test_case_id,
            "test_suite_id": execution.test_suite_id,
            "created_at": execution.created_at,
            "updated_at": execution.updated_at,
        }

    async def list_results(self, project_id: str, filters: ExecutionFilters) -> Dict[str, Any]:
        """
        List executions of a project, newest first, with pagination.

        Args:
            project_id: Project identifier
            filters: Filter and pagination options

        Returns:
            {"executions": [...], "pagination": {page, limit, total, pages}}
        """
        async with create_uow(self._session_factory) as uow:
            executions, total = await uow.executions.list_by_project(
                project_id,
                entity_name=filters.entity_name,
                method=filters.method,
                test_type=filters.test_type.value if filters.test_type else None,
                status=filters.status,
                date_from=filters.date_from,
                date_to=filters.date_to,
                offset=filters.offset,
                limit=filters.limit,
            )

            enriched = []
            for execution in executions:
                results = await uow.executions.get_results(str(execution.execution_id))
                suite_name = None
                if execution.test_suite_id:
                    suite = await uow.test_suites.get_test_suite(project_id, execution.test_suite_id)
                    suite_name = suite.name if suite else None
                enriched.append(self._enrich_execution(execution, results, suite_name))

        return {
            "executions": enriched,
            "pagination": {
                "page": filters.page,
                "limit": filters.limit,
                "total": total,
                "pages": math.ceil(total / filters.limit),
            },
        }

    async def delete_results(self, execution_id: str) -> None:
        """
        Delete an execution and its results.

        Raises:
            ExecutionNotFoundError: If the execution does not exist
        """
        async with create_uow(self._session_factory) as uow:
            deleted = await uow.executions.delete(execution_id)
            if not deleted:
                raise ExecutionNotFoundError(f"Execution with ID {execution_id} not found")
            await uow.commit()

        logger.info(f"Execution {execution_id} deleted successfully")

    async def get_execution_history(self, project_id: str, entity_name: str) -> List[Dict[str, Any]]:
        """Last 10 executions of an entity with their success rate."""
        async with create_uow(self._session_factory) as uow:
            executions = await uow.executions.find_recent_by_entity(project_id, entity_name, limit=10)

        return [
            {**_execution_brief(execution), "success_rate": execution.success_rate}
            for execution in executions
        ]

    async def get_execution_summary(self, project_id: str) -> Dict[str, Any]:
        async with create_uow(self._session_factory) as uow:
            executions = await uow.executions.find_all(project_id)
        return summarize_executions(executions)

    async def get_global_execution_summary(self) -> Dict[str, Any]:
        async with create_uow(self._session_factory) as uow:
            executions = await uow.executions.find_all()
        return summarize_executions(executions)

    async def get_failed_executions_by_test_case(
        self, project_id: str, test_case_id: str
    ) -> List[Dict[str, Any]]:
        logger.info(f"Getting failed executions for test case: {test_case_id} in project: {project_id}")
        async with create_uow(self._session_factory) as uow:
            executions = await uow.executions.find_failed_by_test_case(project_id, test_case_id)

        return [
            {
                "execution_id": str(execution.execution_id),
                "test_case_id": test_case_id,
                "test_case_name": test_case_id,
                "entity_name": execution.entity_name,
                "section": "",
                "method": execution.method or "",
                "endpoint": "",
                "error_message": execution.error_message or "Test execution failed",
                "execution_date": execution.started_at,
            }
            for execution in executions
        ]

    async def get_last_execution_by_test_suite(self, project_id: str, test_suite_id: str) -> Dict[str, Any]:
        async with create_uow(self._session_factory) as uow:
            execution = await uow.executions.find_last_by_test_suite(project_id, test_suite_id)
        if execution is None:
            raise ExecutionNotFoundError(f"No execution found for test suite: {test_suite_id}")
        return _execution_brief(execution)

    async def get_last_execution_by_test_case(self, project_id: str, test_case_id: str) -> Dict[str, Any]:
        async with create_uow(self._session_factory) as uow:
            execution = await uow.executions.find_last_by_test_case(project_id, test_case_id)
        if execution is None:
            raise ExecutionNotFoundError(f"No execution found for test case: {test_case_id}")
        return _execution_brief(execution)

    # =========================================================================
    # LISTING ENRICHMENT
    # =========================================================================

    def _enrich_execution(
        self,
        execution: Execution,
        results: List[ScenarioResult],
        test_suite_name: Optional[str],
    ) -> Dict[str, Any]:
        first = results[0] if results else None
        feature = "N/A"
        tags: List[str] = []
        if first is not None:
            feature = first.metadata.get("feature") or "N/A"
            tags = _unique(list(first.metadata.get("tags") or []) + list(first.scenario_tags))

        total_steps = passed_steps = failed_steps = skipped_steps = 0
        total_step_duration = 0.0
        all_scenario_tags: List[str] = []
        all_error_messages: List[str] = []

        for result in results:
            all_scenario_tags = _unique(all_scenario_tags + list(result.scenario_tags))
            if result.error_message:
                all_error_messages.append(result.error_message)
            for step in result.steps:
                total_steps += 1
                total_step_duration += step.duration or 0
                if step.status == StepStatus.PASSED:
                    passed_steps += 1
                elif step.status == StepStatus.FAILED:
                    failed_steps += 1
                elif step.status == StepStatus.SKIPPED:
                    skipped_steps += 1

        structure = self._scenarios_structure(execution, results)
        logger.debug(
            f"Scenario structure for {execution.execution_id}: "
            f"{len(structure)} scenarios, {len(results)} total results"
        )

        return {
            **_execution_brief(execution),
            "specific_scenario": execution.specific_scenario,
            "scenario_name": first.scenario_name if first else (execution.specific_scenario or "N/A"),
            "feature": feature,
            "tags": tags,
            "error_message": execution.error_message,
            "metadata": execution.config.to_dict(),
            "test_case_id": execution.test_case_id or "N/A",
            "test_suite_id": execution.test_suite_id or "N/A",
            "test_suite_name": test_suite_name or "N/A",
            "total_steps": total_steps,
            "passed_steps": passed_steps,
            "failed_steps": failed_steps,
            "skipped_steps": skipped_steps,
            "total_step_duration": total_step_duration,
            "average_step_duration": round(total_step_duration / total_steps) if total_steps > 0 else 0,
            "step_success_rate": round(_percentage(passed_steps, total_steps)),
            "all_scenario_tags": all_scenario_tags,
            "all_error_messages": all_error_messages,
            "results_count": len(results),
            "scenarios_structure": structure,
        }

    @staticmethod
    def _scenarios_structure(execution: Execution, results: List[ScenarioResult]) -> List[Dict[str, Any]]:
        """Group stored example rows under their logical scenario name."""
        requested = execution.scenario_names if execution.test_suite_id else []
        groups: Dict[str, List[ScenarioResult]] = OrderedDict()

        for index, result in enumerate(results, start=1):
            base = base_scenario_name(result.scenario_name or "")
            if requested:
                match = next((name for name in requested if name in base or base in name), None)
                key = match or base or f"Scenario {len(groups) + 1}"
            else:
                key = base or f"Scenario {index}"
            groups.setdefault(key, []).append(result)

        return [
            {
                "scenario_name": name,
                "examples": [
                    {
                        "example_name": member.scenario_name or f"{name} (Example {position})",
                        "steps": member.steps_as_dicts(),
                        "status": member.status.value,
                        "duration": member.duration,
                        "error_message": member.error_message,
                    }
                    for position, member in enumerate(members, start=1)
                ],
            }
            for name, members in groups.items()
        ]


def _unique(items: List[str]) -> List[str]:
    return list(OrderedDict.fromkeys(item for item in items if item))
