"""
Tests for ExecutionOrchestrator.

The runner is faked: it writes a cucumber JSON report into the project
directory (or not) and exits the way each test needs. Everything else,
including the report parser and the database, is real.
"""

import asyncio
import json
from pathlib import Path
from typing import Optional

import pytest
from sqlalchemy import select

from core.application.dtos import ExecuteTestsRequest
from core.data.uow import create_uow
from core.domain.enums import ExecutionStatus
from core.domain.exceptions import InvalidExecutionRequestError, ProjectNotFoundError
from core.infrastructure.adapters.bugs.mock_bug_registry import MockBugRegistry
from core.infrastructure.database import models
from core.infrastructure.database.repositories import SQLAlchemyTestCaseRegistry, SQLAlchemyTestSuiteRegistry
from core.infrastructure.runner import CommandSpec, ProcessFailure
from orchestration import ExecutionEventType, ExecutionOrchestrator, InMemoryExecutionEventBus


# =============================================================================
# FAKES
# =============================================================================

def step(name, status="passed", error=None):
    result = {"status": status, "duration": 2_000_000}
    if error:
        result["error_message"] = error
    return {"name": name, "keyword": "Given ", "result": result}


def scenario(name, *steps):
    return {"name": name, "type": "scenario", "tags": [{"name": "@product"}], "steps": list(steps)}


def cucumber_report(*elements) -> str:
    return json.dumps([{"name": "Product API", "tags": [], "elements": list(elements)}])


class FakeProcessRunner:
    """Writes a prepared report, replays output lines and optionally fails."""

    def __init__(
        self,
        report: Optional[str] = None,
        lines: tuple = (),
        error: Optional[ProcessFailure] = None,
        delay: float = 0.0,
    ):
        self.report = report
        self.lines = lines
        self.error = error
        self.delay = delay
        self.commands: list[CommandSpec] = []
        self.active = 0
        self.max_active = 0
        self.on_run = None

    async def run(self, working_dir: Path, command: CommandSpec, on_line=None) -> str:
        self.commands.append(command)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.on_run is not None:
                self.on_run(command)
            if self.delay:
                await asyncio.sleep(self.delay)
            for line in self.lines:
                if on_line is not None:
                    await on_line("stdout", line)
            if self.report is not None:
                path = Path(working_dir) / command.report_path
                path.parent.mkdir(parents=True, exist_ok=True)
                path.write_text(self.report, encoding="utf-8")
            if self.error is not None:
                raise self.error
            return ""
        finally:
            self.active -= 1


class FailingBugRegistry(MockBugRegistry):
    async def create_bugs_from_results(self, project_id, execution_id, context, results):
        raise RuntimeError("bug tracker unavailable")


class BlockingBugRegistry(MockBugRegistry):
    """Hangs in the bug tracker call until cancelled."""

    def __init__(self):
        super().__init__()
        self.called = asyncio.Event()

    async def create_bugs_from_results(self, project_id, execution_id, context, results):
        self.called.set()
        await asyncio.sleep(30)
        return []


class BrokenReportParser:
    def parse(self, working_dir):
        raise RuntimeError("disk on fire")


PASSING_REPORT = cucumber_report(
    scenario("Create product with valid data", step("I post a product")),
    scenario("Get product by id", step("I get the product")),
)

MIXED_REPORT = cucumber_report(
    scenario("Create product with valid data", step("I post a product")),
    scenario(
        "Create product with invalid price",
        step("I post a product", status="failed", error="expected 400, got 201"),
    ),
)


@pytest.fixture
def event_bus() -> InMemoryExecutionEventBus:
    return InMemoryExecutionEventBus()


@pytest.fixture
def bug_registry() -> MockBugRegistry:
    return MockBugRegistry()


@pytest.fixture
def make_orchestrator(test_session_factory, event_bus, bug_registry, runner_settings):
    def factory(runner=None, **overrides) -> ExecutionOrchestrator:
        return ExecutionOrchestrator(
            session_factory=test_session_factory,
            event_bus=overrides.pop("event_bus", event_bus),
            bug_registry=overrides.pop("bug_registry", bug_registry),
            settings=runner_settings,
            process_runner=runner or FakeProcessRunner(report=PASSING_REPORT),
            **overrides,
        )

    return factory


async def stored_execution(session_factory, execution_id):
    async with create_uow(session_factory) as uow:
        return await uow.executions.find_by_execution_id(execution_id)


async def stored_results(session_factory, execution_id):
    async with create_uow(session_factory) as uow:
        return await uow.executions.get_results(execution_id)


async def stored_suite(session_factory, suite_id):
    async with session_factory() as session:
        return (
            await session.execute(select(models.TestSuiteModel).where(models.TestSuiteModel.suite_id == suite_id))
        ).scalars().one()


async def drain(subscription) -> list:
    events = []
    while True:
        event = await subscription.get(timeout=0.05)
        if event is None:
            return events
        events.append(event)


# =============================================================================
# REQUEST SIDE
# =============================================================================

@pytest.mark.asyncio
async def test_execute_returns_pending_receipt(make_orchestrator, seeded_project, test_session_factory):
    orchestrator = make_orchestrator()

    receipt = await orchestrator.execute_tests(
        seeded_project, ExecuteTestsRequest(entity_name="Product", tags=["@smoke"])
    )

    assert receipt.status == "pending"
    assert receipt.entity_name == "Product"
    assert receipt.test_cases_to_update == 3
    assert receipt.message == "Test execution started for entity 'Product'"

    await orchestrator.wait_for_all()


@pytest.mark.asyncio
async def test_execute_without_entity_targets_all(make_orchestrator, seeded_project):
    runner = FakeProcessRunner(report=PASSING_REPORT)
    orchestrator = make_orchestrator(runner)

    receipt = await orchestrator.execute_tests(seeded_project, ExecuteTestsRequest(entity_name="all"))
    await orchestrator.wait_for_all()

    assert receipt.entity_name == "all"
    assert receipt.message == "Test execution started for all project test cases"
    assert runner.commands[0].argv[2] == "src/features/**/*.feature"


@pytest.mark.asyncio
async def test_unknown_project_is_rejected(make_orchestrator, seeded_project, test_session_factory):
    orchestrator = make_orchestrator()

    with pytest.raises(ProjectNotFoundError):
        await orchestrator.execute_tests("missing-project", ExecuteTestsRequest())

    async with test_session_factory() as session:
        rows = (await session.execute(select(models.TestExecutionModel))).scalars().all()
    assert rows == []


@pytest.mark.asyncio
async def test_entity_without_feature_file_is_rejected(make_orchestrator, seeded_project):
    orchestrator = make_orchestrator()

    with pytest.raises(InvalidExecutionRequestError) as exc_info:
        await orchestrator.execute_tests(seeded_project, ExecuteTestsRequest(entity_name="Invoice"))

    assert "No test cases found for entity 'Invoice'" in str(exc_info.value)
    assert orchestrator.running_executions == []


# =============================================================================
# BACKGROUND RUN
# =============================================================================

@pytest.mark.asyncio
async def test_successful_run_is_reconciled(make_orchestrator, seeded_project, test_session_factory, event_bus):
    subscription = event_bus.subscribe(seeded_project)
    runner = FakeProcessRunner(
        report=PASSING_REPORT,
        lines=("✅ Scenario: Create product with valid data", "noise"),
    )
    orchestrator = make_orchestrator(runner)

    receipt = await orchestrator.execute_tests(seeded_project, ExecuteTestsRequest(entity_name="Product"))
    await orchestrator.wait_for_all()

    execution = await stored_execution(test_session_factory, receipt.execution_id)
    assert execution.status == ExecutionStatus.COMPLETED
    assert (execution.total_scenarios, execution.passed_scenarios, execution.failed_scenarios) == (2, 2, 0)
    assert execution.completed_at is not None
    assert execution.error_message is None

    results = await stored_results(test_session_factory, receipt.execution_id)
    assert [r.scenario_name for r in results] == ["Create product with valid data", "Get product by id"]

    events = await drain(subscription)
    assert [e.type for e in events] == [
        ExecutionEventType.STARTED,
        ExecutionEventType.PROGRESS,
        ExecutionEventType.COMPLETED,
    ]
    assert events[1].message == "✅ Scenario: Create product with valid data"
    assert events[-1].results["total_scenarios"] == 2


@pytest.mark.asyncio
async def test_matching_test_cases_are_updated(make_orchestrator, seeded_project, test_session_factory):
    orchestrator = make_orchestrator(FakeProcessRunner(report=MIXED_REPORT))

    await orchestrator.execute_tests(seeded_project, ExecuteTestsRequest(entity_name="Product"))
    await orchestrator.wait_for_all()

    async with create_uow(test_session_factory) as uow:
        valid = await uow.test_cases.find_by_name(seeded_project, "Create product with valid data")
        invalid = await uow.test_cases.find_by_name(seeded_project, "Create product with invalid price")
        untouched = await uow.test_cases.find_by_name(seeded_project, "Get product by id")

    assert valid.last_run_status == "passed"
    assert valid.status == "active"
    assert invalid.last_run_status == "failed"
    assert untouched.last_run is None


@pytest.mark.asyncio
async def test_runner_failure_keeps_parsed_results(
    make_orchestrator, seeded_project, test_session_factory, event_bus, bug_registry
):
    subscription = event_bus.subscribe(seeded_project)
    runner = FakeProcessRunner(
        report=MIXED_REPORT,
        error=ProcessFailure.from_exit(1, "1 scenario failed"),
    )
    orchestrator = make_orchestrator(runner)

    receipt = await orchestrator.execute_tests(seeded_project, ExecuteTestsRequest(entity_name="Product"))
    await orchestrator.wait_for_all()

    execution = await stored_execution(test_session_factory, receipt.execution_id)
    assert execution.status == ExecutionStatus.FAILED
    assert (execution.total_scenarios, execution.passed_scenarios, execution.failed_scenarios) == (2, 1, 1)
    assert execution.error_message == (
        "Execution failed. 1 scenarios failed. Details: I post a product: expected 400, got 201"
    )
    assert len(await stored_results(test_session_factory, receipt.execution_id)) == 2

    assert [bug["test_case_name"] for bug in bug_registry.bugs_created] == ["Create product with invalid price"]

    events = await drain(subscription)
    terminal = [e for e in events if e.type.is_terminal]
    assert len(terminal) == 1
    assert terminal[0].type == ExecutionEventType.FAILED


@pytest.mark.asyncio
async def test_runner_failure_without_report(make_orchestrator, seeded_project, test_session_factory):
    runner = FakeProcessRunner(report=None, error=ProcessFailure.from_exit(127, "npx: not found"))
    orchestrator = make_orchestrator(runner)

    receipt = await orchestrator.execute_tests(seeded_project, ExecuteTestsRequest(entity_name="Product"))
    await orchestrator.wait_for_all()

    execution = await stored_execution(test_session_factory, receipt.execution_id)
    assert execution.status == ExecutionStatus.FAILED
    assert execution.error_message == "Command failed with code 127: npx: not found"
    assert execution.total_scenarios == 0
    assert await stored_results(test_session_factory, receipt.execution_id) == []


@pytest.mark.asyncio
async def test_clean_exit_without_report_completes_empty(make_orchestrator, seeded_project, test_session_factory):
    orchestrator = make_orchestrator(FakeProcessRunner(report=None))

    receipt = await orchestrator.execute_tests(seeded_project, ExecuteTestsRequest())
    await orchestrator.wait_for_all()

    execution = await stored_execution(test_session_factory, receipt.execution_id)
    assert execution.status == ExecutionStatus.COMPLETED
    assert execution.total_scenarios == 0


@pytest.mark.asyncio
async def test_outline_examples_are_stored_one_row_each(make_orchestrator, seeded_project, test_session_factory):
    report = cucumber_report(
        scenario("Create product with price", step("I post")),
        scenario("Create product with price", step("I post", status="failed", error="boom")),
        scenario("Get product by id", step("I get")),
    )
    orchestrator = make_orchestrator(FakeProcessRunner(report=report))

    receipt = await orchestrator.execute_tests(seeded_project, ExecuteTestsRequest())
    await orchestrator.wait_for_all()

    execution = await stored_execution(test_session_factory, receipt.execution_id)
    # Counters are per logical scenario
    assert (execution.total_scenarios, execution.passed_scenarios, execution.failed_scenarios) == (2, 1, 1)

    rows = await stored_results(test_session_factory, receipt.execution_id)
    assert [r.scenario_name for r in rows] == [
        "Create product with price (Example 1)",
        "Create product with price (Example 2)",
        "Get product by id",
    ]
    assert rows[1].metadata["isExampleExecution"] is True
    assert rows[1].metadata["executionIndex"] == 2
    assert rows[1].metadata["originalScenarioName"] == "Create product with price"
    assert rows[1].metadata["totalExampleExecutions"] == 2
    assert "isExampleExecution" not in rows[2].metadata


@pytest.mark.asyncio
async def test_bug_tracker_failure_does_not_fail_the_execution(
    make_orchestrator, seeded_project, test_session_factory
):
    orchestrator = make_orchestrator(
        FakeProcessRunner(report=MIXED_REPORT), bug_registry=FailingBugRegistry()
    )

    receipt = await orchestrator.execute_tests(seeded_project, ExecuteTestsRequest())
    await orchestrator.wait_for_all()

    execution = await stored_execution(test_session_factory, receipt.execution_id)
    assert execution.status == ExecutionStatus.COMPLETED


@pytest.mark.asyncio
async def test_unexpected_error_forces_failure(
    make_orchestrator, seeded_project, test_session_factory, event_bus
):
    subscription = event_bus.subscribe(seeded_project)
    orchestrator = make_orchestrator(report_parser=BrokenReportParser())

    receipt = await orchestrator.execute_tests(seeded_project, ExecuteTestsRequest())
    await orchestrator.wait_for_all()

    execution = await stored_execution(test_session_factory, receipt.execution_id)
    assert execution.status == ExecutionStatus.FAILED
    assert execution.error_message == "disk on fire"

    events = await drain(subscription)
    assert [e.type for e in events] == [ExecutionEventType.STARTED, ExecutionEventType.FAILED]
    assert events[-1].message == "Execution failed: disk on fire"


@pytest.mark.asyncio
async def test_shutdown_leaves_running_execution_failed(make_orchestrator, seeded_project, test_session_factory):
    orchestrator = make_orchestrator(FakeProcessRunner(report=PASSING_REPORT, delay=30))

    receipt = await orchestrator.execute_tests(seeded_project, ExecuteTestsRequest())
    await asyncio.sleep(0.1)
    await orchestrator.shutdown()

    execution = await stored_execution(test_session_factory, receipt.execution_id)
    assert execution.status == ExecutionStatus.FAILED
    assert execution.error_message == "Execution cancelled before completion"
    assert orchestrator.running_executions == []


@pytest.mark.asyncio
async def test_shutdown_during_bug_creation_fails_the_stored_execution(
    make_orchestrator, seeded_project, test_session_factory, event_bus
):
    subscription = event_bus.subscribe(seeded_project)
    bug_registry = BlockingBugRegistry()
    orchestrator = make_orchestrator(FakeProcessRunner(report=MIXED_REPORT), bug_registry=bug_registry)

    receipt = await orchestrator.execute_tests(seeded_project, ExecuteTestsRequest())
    await asyncio.wait_for(bug_registry.called.wait(), timeout=5)
    await orchestrator.shutdown()

    execution = await stored_execution(test_session_factory, receipt.execution_id)
    assert execution.status == ExecutionStatus.FAILED
    assert execution.error_message == "Execution cancelled before completion"
    # Result rows were committed before the bug tracker was called
    assert len(await stored_results(test_session_factory, receipt.execution_id)) == 2

    events = await drain(subscription)
    terminal = [e for e in events if e.type.is_terminal]
    assert [e.type for e in terminal] == [ExecutionEventType.FAILED]
    assert terminal[0].status == "failed"


@pytest.mark.asyncio
async def test_runs_in_one_directory_are_serialized(make_orchestrator, seeded_project, test_session_factory):
    runner = FakeProcessRunner(report=PASSING_REPORT, delay=0.05)
    orchestrator = make_orchestrator(runner)

    receipts = [
        await orchestrator.execute_tests(seeded_project, ExecuteTestsRequest())
        for _ in range(3)
    ]
    await orchestrator.wait_for_all()

    assert runner.max_active == 1
    for receipt in receipts:
        execution = await stored_execution(test_session_factory, receipt.execution_id)
        assert execution.status == ExecutionStatus.COMPLETED


@pytest.mark.asyncio
async def test_listener_lives_while_the_runner_runs(make_orchestrator, seeded_project):
    runner = FakeProcessRunner(report=PASSING_REPORT)
    orchestrator = make_orchestrator(runner)
    seen = {}

    def on_run(command):
        execution_id = command.env["TEST_EXECUTION_ID"]
        seen["listener"] = orchestrator.listener(execution_id)

    runner.on_run = on_run
    receipt = await orchestrator.execute_tests(seeded_project, ExecuteTestsRequest())
    await orchestrator.wait_for_all()

    assert seen["listener"] is not None
    assert seen["listener"].closed
    assert orchestrator.listener(receipt.execution_id) is None


# =============================================================================
# TEST PLANS AND SUITES
# =============================================================================

@pytest.mark.asyncio
async def test_test_plan_expands_to_test_case_names(make_orchestrator, seeded_project, test_session_factory):
    runner = FakeProcessRunner(report=MIXED_REPORT)
    orchestrator = make_orchestrator(runner)

    receipt = await orchestrator.execute_tests(
        seeded_project, ExecuteTestsRequest(test_suite_id="PLAN-ECOMMERCE-001")
    )
    await orchestrator.wait_for_all()

    assert receipt.entity_name == "Product"
    execution = await stored_execution(test_session_factory, receipt.execution_id)
    assert execution.specific_scenario == (
        "Create product with valid data,Create product with invalid price,TC-missing-9"
    )

    argv = runner.commands[0].argv
    names = [argv[i + 1] for i, arg in enumerate(argv) if arg == "--name"]
    assert names == ["Create product with valid data", "Create product with invalid price", "TC-missing-9"]
    assert argv[2] == "src/features/ecommerce/product.feature"

    async with test_session_factory() as session:
        suite = (
            await session.execute(
                select(models.TestSuiteModel).where(models.TestSuiteModel.suite_id == "PLAN-ECOMMERCE-001")
            )
        ).scalars().one()
    assert (suite.total_scenarios, suite.passed_scenarios, suite.failed_scenarios) == (2, 1, 1)
    assert suite.last_executed_at is not None


@pytest.mark.asyncio
async def test_unknown_test_plan_runs_unfiltered(make_orchestrator, seeded_project, test_session_factory):
    runner = FakeProcessRunner(report=PASSING_REPORT)
    orchestrator = make_orchestrator(runner)

    receipt = await orchestrator.execute_tests(seeded_project, ExecuteTestsRequest(test_suite_id="PLAN-NOPE"))
    await orchestrator.wait_for_all()

    assert receipt.entity_name == "all"
    assert "--name" not in runner.commands[0].argv
    execution = await stored_execution(test_session_factory, receipt.execution_id)
    assert execution.status == ExecutionStatus.COMPLETED


@pytest.mark.asyncio
async def test_test_suite_statistics_are_recorded(make_orchestrator, seeded_project, test_session_factory):
    orchestrator = make_orchestrator(FakeProcessRunner(report=MIXED_REPORT, delay=0.02))

    receipt = await orchestrator.execute_tests(
        seeded_project, ExecuteTestsRequest(test_suite_id="PLAN-ECOMMERCE-001")
    )
    await orchestrator.wait_for_all()

    execution = await stored_execution(test_session_factory, receipt.execution_id)
    suite = await stored_suite(test_session_factory, "PLAN-ECOMMERCE-001")
    assert (suite.total_scenarios, suite.passed_scenarios, suite.failed_scenarios) == (2, 1, 1)
    assert suite.execution_time == execution.execution_time
    assert suite.execution_time > 0
    assert suite.last_executed_at is not None


@pytest.mark.asyncio
async def test_suite_stats_write_error_keeps_the_results(
    make_orchestrator, seeded_project, test_session_factory, event_bus, monkeypatch
):
    async def update_with_invalid_row(self, project_id, suite_id, stats):
        self.session.add(models.TestSuiteModel(suite_id="PLAN-BROKEN", project_id=project_id, name=None))
        await self.session.flush()

    monkeypatch.setattr(SQLAlchemyTestSuiteRegistry, "update_execution_stats", update_with_invalid_row)
    subscription = event_bus.subscribe(seeded_project)
    orchestrator = make_orchestrator(FakeProcessRunner(report=PASSING_REPORT))

    receipt = await orchestrator.execute_tests(
        seeded_project, ExecuteTestsRequest(test_suite_id="PLAN-ECOMMERCE-001")
    )
    await orchestrator.wait_for_all()

    execution = await stored_execution(test_session_factory, receipt.execution_id)
    assert execution.status == ExecutionStatus.COMPLETED
    assert len(await stored_results(test_session_factory, receipt.execution_id)) == 2

    async with create_uow(test_session_factory) as uow:
        valid = await uow.test_cases.find_by_name(seeded_project, "Create product with valid data")
    assert valid.last_run_status == "passed"

    suite = await stored_suite(test_session_factory, "PLAN-ECOMMERCE-001")
    assert suite.last_executed_at is None

    events = await drain(subscription)
    assert [e.type for e in events if e.type.is_terminal] == [ExecutionEventType.COMPLETED]


@pytest.mark.asyncio
async def test_test_case_write_error_skips_only_that_test_case(
    make_orchestrator, seeded_project, test_session_factory, monkeypatch
):
    update_last_run = SQLAlchemyTestCaseRegistry.update_last_run

    async def update_or_break(self, test_case, status, timestamp):
        if test_case.name == "Create product with valid data":
            self.session.add(
                models.TestCaseModel(test_case_id="TC-broken", project_id=test_case.project_id, name=None)
            )
            await self.session.flush()
        await update_last_run(self, test_case, status, timestamp)

    monkeypatch.setattr(SQLAlchemyTestCaseRegistry, "update_last_run", update_or_break)
    orchestrator = make_orchestrator(FakeProcessRunner(report=MIXED_REPORT))

    receipt = await orchestrator.execute_tests(seeded_project, ExecuteTestsRequest(entity_name="Product"))
    await orchestrator.wait_for_all()

    execution = await stored_execution(test_session_factory, receipt.execution_id)
    assert execution.status == ExecutionStatus.COMPLETED
    assert len(await stored_results(test_session_factory, receipt.execution_id)) == 2

    async with create_uow(test_session_factory) as uow:
        valid = await uow.test_cases.find_by_name(seeded_project, "Create product with valid data")
        invalid = await uow.test_cases.find_by_name(seeded_project, "Create product with invalid price")
    assert valid.last_run is None
    assert invalid.last_run_status == "failed"
