"""Execution orchestrator - runs the external test runner in the background and reconciles its results."""

import asyncio
from dataclasses import replace
from pathlib import Path

from sqlalchemy.ext.asyncio import async_sessionmaker

from core.application.dtos import ExecuteTestsRequest, ExecutionReceipt
from core.application.interfaces import IBugRegistry, ProjectRef
from core.application.services import TestCaseExecutionResult, TestCaseUpdateService
from core.data.uow import UnitOfWork, create_uow
from core.domain.entities import ALL_ENTITIES, Execution, ScenarioResult
from core.domain.enums import ExecutionStatus
from core.domain.exceptions import InvalidExecutionRequestError, ProjectNotFoundError
from core.infrastructure.runner import (
    CommandBuilder,
    ProcessFailure,
    ProcessRunner,
    ReportParser,
    ResultsListener,
    ResultsSummary,
)
from core.infrastructure.runner.process_runner import is_scenario_line
from core.settings import RunnerSettings
from cukeflow_sdk.logging import get_logger

from .bus import ExecutionEventBusProtocol
from .events import ExecutionEvent

TEST_PLAN_PREFIX = "PLAN-"


def unroll_results(results: list[ScenarioResult]) -> list[ScenarioResult]:
    """One row per executed example; plain scenarios pass through unchanged."""
    rows: list[ScenarioResult] = []
    for result in results:
        if not result.has_multiple_executions:
            rows.append(result)
            continue

        total = len(result.individual_executions)
        for member in result.individual_executions:
            rows.append(
                replace(
                    member,
                    scenario_name=member.scenario_instance_name or member.scenario_name,
                    metadata={
                        **member.metadata,
                        "executionIndex": member.execution_index,
                        "isExampleExecution": True,
                        "originalScenarioName": result.scenario_name,
                        "totalExampleExecutions": total,
                    },
                    individual_executions=[],
                )
            )
    return rows


def failure_message(error: ProcessFailure, results: list[ScenarioResult]) -> str:
    """Error recorded when the runner failed; parsed failures take precedence."""
    if not results:
        return str(error)
    failed = [r for r in results if r.is_failed]
    details = "; ".join(r.error_message for r in failed if r.error_message)
    return f"Execution failed. {len(failed)} scenarios failed. Details: {details}"


class ExecutionOrchestrator:
    """
    Owns every Execution from creation to its terminal state.

    ``execute_tests`` records a pending execution and returns at once; the
    run itself happens in a background task that always leaves the record
    completed or failed and publishes exactly one terminal event.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        event_bus: ExecutionEventBusProtocol,
        bug_registry: IBugRegistry,
        settings: RunnerSettings,
        command_builder: CommandBuilder | None = None,
        process_runner: ProcessRunner | None = None,
        report_parser: ReportParser | None = None,
    ) -> None:
        """Initialize orchestrator.

        Args:
            session_factory: SQLAlchemy async session factory
            event_bus: Bus lifecycle events are published on
            bug_registry: Best-effort bug creation for failed scenarios
            settings: Runner settings
            command_builder: Optional override (defaults from settings)
            process_runner: Optional override (defaults from settings)
            report_parser: Optional override (defaults from settings)
        """
        self._session_factory = session_factory
        self._event_bus = event_bus
        self._bug_registry = bug_registry
        self._settings = settings
        self._command_builder = command_builder or CommandBuilder(settings)
        self._process_runner = process_runner or ProcessRunner(settings)
        self._report_parser = report_parser or ReportParser.from_settings(settings)

        self._tasks: set[asyncio.Task] = set()
        self._listeners: dict[str, ResultsListener] = {}
        self._workdir_locks: dict[str, asyncio.Lock] = {}
        self._logger = get_logger("orchestration.orchestrator")

    # =========================================================================
    # REQUEST SIDE
    # =========================================================================

    async def execute_tests(self, project_id: str, request: ExecuteTestsRequest) -> ExecutionReceipt:
        """Create a pending execution and start running it in the background.

        Args:
            project_id: Project whose generated suite is run
            request: Validated execution request

        Returns:
            ExecutionReceipt with the new execution id

        Raises:
            ProjectNotFoundError: If the project does not exist
            InvalidExecutionRequestError: If the entity has no feature file
        """
        explicit_entity = request.resolved_entity if request.resolved_entity != ALL_ENTITIES else None
        entity_name = request.resolved_entity
        self._logger.info(f"Starting test execution for entity: {entity_name}")

        async with create_uow(self._session_factory) as uow:
            project = await uow.projects.get_project(project_id)
            if project is None:
                raise ProjectNotFoundError(project_id)

            specific_scenario = request.specific_scenario
            if request.test_suite_id and request.test_suite_id.startswith(TEST_PLAN_PREFIX):
                names, plan_entity = await self._expand_test_plan(uow, project_id, request.test_suite_id)
                if names:
                    specific_scenario = ",".join(names)
                    if plan_entity:
                        entity_name = plan_entity
                        self._logger.info(f"Test plan {request.test_suite_id} uses entity: {entity_name}")

            if explicit_entity and not self._entity_feature_exists(project, explicit_entity):
                raise InvalidExecutionRequestError(
                    f"No test cases found for entity '{explicit_entity}'. "
                    f"Ensure it is registered and has generated test cases."
                )

            execution = Execution(
                project_id=project_id,
                entity_name=entity_name,
                method=request.method,
                test_type=request.test_type.value,
                tags=list(request.tags or []),
                specific_scenario=specific_scenario,
                test_case_id=request.test_case_id,
                test_suite_id=request.test_suite_id,
                config=request.to_config(),
            )
            await uow.executions.save(execution)
            await uow.commit()

            test_cases_to_update = await uow.test_cases.count(project_id, explicit_entity)

        await self._event_bus.publish(ExecutionEvent.started(execution))
        self._spawn(execution, project)

        if execution.targets_all_entities:
            message = "Test execution started for all project test cases"
        else:
            message = f"Test execution started for entity '{execution.entity_name}'"

        return ExecutionReceipt(
            execution_id=str(execution.execution_id),
            status=execution.status.value,
            message=message,
            started_at=execution.started_at,
            test_cases_to_update=test_cases_to_update,
            entity_name=execution.entity_name,
        )

    def listener(self, execution_id: str) -> ResultsListener | None:
        """Live listener of a running execution, if any."""
        return self._listeners.get(execution_id)

    @property
    def running_executions(self) -> list[str]:
        return list(self._listeners)

    async def wait_for_all(self) -> None:
        """Wait until every background execution has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel outstanding executions; each is still left terminal."""
        if not self._tasks:
            return
        self._logger.info(f"Cancelling {len(self._tasks)} running executions")
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _expand_test_plan(
        self, uow: UnitOfWork, project_id: str, suite_id: str
    ) -> tuple[list[str], str | None]:
        """Resolve a test plan to unique test case names and its entity."""
        self._logger.info(f"Detected test plan: {suite_id}")
        plan = await uow.test_suites.get_test_suite(project_id, suite_id)
        if plan is None or not plan.test_sets:
            self._logger.warning(f"Test plan {suite_id} not found or has no test sets")
            return [], None

        names: list[str] = []
        entity: str | None = None
        for test_case_id in plan.test_case_ids:
            try:
                test_case = await uow.test_cases.find_by_test_case_id(project_id, test_case_id)
            except Exception as e:
                self._logger.error(f"Error fetching test case {test_case_id}: {e}")
                names.append(test_case_id)
                continue

            if test_case is not None and test_case.name:
                names.append(test_case.name)
            else:
                self._logger.warning(f"Test case {test_case_id} not found or missing name")
                names.append(test_case_id)

            if entity is None and test_case is not None:
                entity = test_case.entity_name

        unique = list(dict.fromkeys(names))
        self._logger.info(f"Test plan {suite_id} contains {len(unique)} unique test cases")
        return unique, entity

    def _entity_feature_exists(self, project: ProjectRef, entity_name: str) -> bool:
        return (Path(project.path) / self._settings.entity_feature_path(entity_name)).exists()

    def _spawn(self, execution: Execution, project: ProjectRef) -> None:
        execution_id = str(execution.execution_id)
        self._listeners[execution_id] = ResultsListener(execution_id, execution.project_id)
        task = asyncio.create_task(
            self._run_in_background(execution, project),
            name=f"execution-{execution_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    # =========================================================================
    # BACKGROUND RUN
    # =========================================================================

    async def _run_in_background(self, execution: Execution, project: ProjectRef) -> None:
        execution_id = str(execution.execution_id)
        terminal_published = False
        try:
            working_dir = Path(project.path)
            async with self._lock_for(working_dir):
                await self._mark_running(execution)

                process_error: ProcessFailure | None = None
                command = self._command_builder.build(execution)
                try:
                    await self._process_runner.run(
                        working_dir, command, on_line=self._progress_handler(execution)
                    )
                except ProcessFailure as e:
                    process_error = e
                    self._logger.error(f"Error during test execution: {e}")

                # Parsed even after a failure; the report may hold partial results
                results = self._report_parser.parse(working_dir)
                if process_error is not None:
                    self._logger.info(f"Parsed {len(results)} results despite the execution error")

            await self._reconcile(execution, project, results, process_error)
            terminal_published = True

        except asyncio.CancelledError:
            self._logger.warning(f"Execution {execution_id} cancelled")
            if not terminal_published:
                await self._force_failed(execution, "Execution cancelled before completion")
            raise
        except Exception as e:
            self._logger.error(f"Error in execution {execution_id}: {e}", exc_info=True)
            if not terminal_published:
                await self._force_failed(execution, str(e))
        finally:
            listener = self._listeners.pop(execution_id, None)
            if listener is not None:
                listener.close()

    async def _mark_running(self, execution: Execution) -> None:
        execution.start()
        async with create_uow(self._session_factory) as uow:
            await uow.executions.save(execution)
            await uow.commit()

    async def _reconcile(
        self,
        execution: Execution,
        project: ProjectRef,
        results: list[ScenarioResult],
        process_error: ProcessFailure | None,
    ) -> None:
        """Single terminal step: persist, propagate, then publish."""
        summary = ResultsSummary.of(results)
        execution.record_counts(summary.total, summary.passed, summary.failed)
        if process_error is not None:
            execution.fail(failure_message(process_error, results))
        else:
            execution.complete()

        execution_id = str(execution.execution_id)
        async with create_uow(self._session_factory) as uow:
            await uow.executions.save(execution)

            rows = unroll_results(results)
            await uow.executions.add_results(execution_id, rows)
            if len(rows) != len(results):
                self._logger.info(f"Saved {len(rows)} result rows for {len(results)} scenarios")

            if results:
                updates = TestCaseUpdateService(uow.test_cases, savepoint=uow.savepoint)
                await updates.update_test_cases_with_execution_results(
                    project.id,
                    execution.entity_name,
                    [TestCaseExecutionResult.from_scenario(result) for result in results],
                )

            if execution.test_suite_id:
                self._logger.info(f"Updating test suite stats for test suite ID: {execution.test_suite_id}")
                try:
                    async with uow.savepoint():
                        await uow.test_suites.update_execution_stats(
                            project.id,
                            execution.test_suite_id,
                            {
                                "total": summary.total,
                                "passed": summary.passed,
                                "failed": summary.failed,
                                "executionTime": execution.execution_time,
                            },
                        )
                except Exception as e:
                    self._logger.warning(f"Error updating test suite stats: {e}")

            await uow.commit()

        if results:
            await self._create_bugs(execution, project, results)

        self._logger.info(
            f"Execution {execution_id} finished for entity {execution.entity_name} in project "
            f"{project.id}: {execution.status.value}, {summary.total} scenarios "
            f"({summary.passed} passed, {summary.failed} failed, {summary.skipped} skipped)"
        )

        if execution.status == ExecutionStatus.FAILED:
            await self._event_bus.publish(ExecutionEvent.failed(execution, execution.error_message or ""))
        else:
            await self._event_bus.publish(ExecutionEvent.completed(execution))

    async def _create_bugs(
        self, execution: Execution, project: ProjectRef, results: list[ScenarioResult]
    ) -> None:
        context = {
            "execution_id": str(execution.execution_id),
            "project_name": project.name,
            "entity_name": execution.entity_name,
            "method": execution.method,
            "environment": execution.config.environment,
            "started_at": execution.started_at.isoformat(),
        }
        try:
            bugs = await self._bug_registry.create_bugs_from_results(
                project.id, str(execution.execution_id), context, results
            )
            self._logger.info(f"Created {len(bugs)} bugs automatically from execution {execution.execution_id}")
        except Exception as e:
            self._logger.warning(f"Failed to create bugs automatically: {e}")

    async def _force_failed(self, execution: Execution, message: str) -> None:
        """
        Leave the stored execution failed and publish the failure.

        A row already committed as completed is overridden, since its
        terminal event has not been published yet.
        """
        target = execution
        try:
            async with create_uow(self._session_factory) as uow:
                stored = await uow.executions.find_by_execution_id(str(execution.execution_id))
                target = stored or execution
                if target.status != ExecutionStatus.FAILED:
                    target.fail(message, force=True)
                    await uow.executions.save(target)
                    await uow.commit()
        except Exception as e:
            self._logger.error(
                f"Could not record failure of execution {execution.execution_id}: {e}",
                exc_info=True,
            )

        await self._event_bus.publish(ExecutionEvent.failed(target, message))

    def _lock_for(self, working_dir: Path) -> asyncio.Lock:
        key = str(working_dir.resolve())
        lock = self._workdir_locks.get(key)
        if lock is None:
            lock = self._workdir_locks[key] = asyncio.Lock()
        if lock.locked():
            self._logger.info(f"Waiting for the running execution in {key} to finish")
        return lock

    def _progress_handler(self, execution: Execution):
        async def on_line(stream: str, line: str) -> None:
            if stream == "stdout" and is_scenario_line(line):
                await self._event_bus.publish(ExecutionEvent.progress_update(execution, line.strip()))

        return on_line
