"""Tests for SQLAlchemyExecutionRepository and the collaborator registries."""

from datetime import timedelta

import pytest

from core.data.uow import create_uow
from core.domain.entities import Execution, ScenarioResult, StepResult
from core.domain.enums import ExecutionStatus, ScenarioStatus, StepStatus
from core.domain.value_objects import ExecutionConfig
from cukeflow_sdk.utils.datetime import utc_now


def make_execution(**overrides) -> Execution:
    fields = {"project_id": "proj-ecommerce", "entity_name": "Product"}
    fields.update(overrides)
    return Execution(**fields)


async def save(session_factory, *executions: Execution) -> None:
    async with create_uow(session_factory) as uow:
        for execution in executions:
            await uow.executions.save(execution)
        await uow.commit()


@pytest.mark.asyncio
async def test_save_and_reload_round_trips_fields(test_session_factory):
    execution = make_execution(
        method="POST",
        tags=["@smoke"],
        specific_scenario="A,B",
        test_case_id="TC-1",
        config=ExecutionConfig(environment="staging", parallel=True, workers=3, retries=1),
    )
    await save(test_session_factory, execution)

    async with create_uow(test_session_factory) as uow:
        loaded = await uow.executions.find_by_execution_id(str(execution.execution_id))

    assert loaded.execution_id == execution.execution_id
    assert loaded.status == ExecutionStatus.PENDING
    assert loaded.method == "POST"
    assert loaded.tags == ["@smoke"]
    assert loaded.scenario_names == ["A", "B"]
    assert loaded.config == execution.config
    assert loaded.id is not None
    assert loaded.created_at is not None


@pytest.mark.asyncio
async def test_save_updates_existing_row(test_session_factory):
    execution = make_execution()
    await save(test_session_factory, execution)

    execution.start()
    execution.record_counts(3, 2, 1)
    execution.complete()
    await save(test_session_factory, execution)

    async with create_uow(test_session_factory) as uow:
        loaded = await uow.executions.find_by_execution_id(str(execution.execution_id))
        everything = await uow.executions.find_all()

    assert len(everything) == 1
    assert loaded.status == ExecutionStatus.COMPLETED
    assert (loaded.total_scenarios, loaded.passed_scenarios, loaded.failed_scenarios) == (3, 2, 1)
    assert loaded.completed_at is not None


@pytest.mark.asyncio
async def test_results_keep_steps_and_metadata(test_session_factory):
    execution = make_execution()
    await save(test_session_factory, execution)
    result = ScenarioResult(
        scenario_name="Create product",
        status=ScenarioStatus.FAILED,
        duration=12.5,
        scenario_tags=["@smoke"],
        steps=[
            StepResult(step_name="Before Hook", status=StepStatus.PASSED, is_hook=True, hook_type="Before"),
            StepResult(step_name="I post", status=StepStatus.FAILED, duration=12.5, error_message="500"),
        ],
        error_message="I post: 500",
        metadata={"feature": "Product API", "line": 4},
    )

    async with create_uow(test_session_factory) as uow:
        await uow.executions.add_results(str(execution.execution_id), [result])
        await uow.commit()

    async with create_uow(test_session_factory) as uow:
        (loaded,) = await uow.executions.get_results(str(execution.execution_id))

    assert loaded.status == ScenarioStatus.FAILED
    assert loaded.duration == 12.5
    assert loaded.metadata == {"feature": "Product API", "line": 4}
    assert [s.step_name for s in loaded.steps] == ["Before Hook", "I post"]
    assert loaded.steps[0].is_hook is True
    assert loaded.steps[1].status == StepStatus.FAILED
    assert loaded.steps[1].error_message == "500"


@pytest.mark.asyncio
async def test_list_by_project_filters_and_paginates(test_session_factory):
    now = utc_now()
    executions = [
        make_execution(started_at=now - timedelta(minutes=3)),
        make_execution(started_at=now - timedelta(minutes=2), method="GET"),
        make_execution(started_at=now - timedelta(minutes=1), entity_name="Order"),
        make_execution(project_id="other-project"),
    ]
    await save(test_session_factory, *executions)

    async with create_uow(test_session_factory) as uow:
        page, total = await uow.executions.list_by_project("proj-ecommerce", offset=0, limit=2)
        products, product_total = await uow.executions.list_by_project("proj-ecommerce", entity_name="Product")
        gets, _ = await uow.executions.list_by_project("proj-ecommerce", method="GET")

    assert total == 3
    assert [e.execution_id for e in page] == [executions[2].execution_id, executions[1].execution_id]
    assert product_total == 2
    assert [e.execution_id for e in gets] == [executions[1].execution_id]


@pytest.mark.asyncio
async def test_last_and_failed_lookups(test_session_factory):
    now = utc_now()
    older = make_execution(test_suite_id="SUITE-1", test_case_id="TC-1", started_at=now - timedelta(minutes=5))
    newer = make_execution(test_suite_id="SUITE-1", test_case_id="TC-1", started_at=now)
    newer.fail("Command failed with code 1: boom")
    await save(test_session_factory, older, newer)

    async with create_uow(test_session_factory) as uow:
        last_suite = await uow.executions.find_last_by_test_suite("proj-ecommerce", "SUITE-1")
        last_case = await uow.executions.find_last_by_test_case("proj-ecommerce", "TC-1")
        failed = await uow.executions.find_failed_by_test_case("proj-ecommerce", "TC-1")
        missing = await uow.executions.find_last_by_test_suite("proj-ecommerce", "SUITE-2")

    assert last_suite.execution_id == newer.execution_id
    assert last_case.execution_id == newer.execution_id
    assert [e.execution_id for e in failed] == [newer.execution_id]
    assert missing is None


@pytest.mark.asyncio
async def test_delete_removes_execution_and_results(test_session_factory):
    execution = make_execution()
    await save(test_session_factory, execution)
    execution_id = str(execution.execution_id)

    async with create_uow(test_session_factory) as uow:
        await uow.executions.add_results(
            execution_id, [ScenarioResult(scenario_name="A", status=ScenarioStatus.PASSED)]
        )
        await uow.commit()

    async with create_uow(test_session_factory) as uow:
        assert await uow.executions.delete(execution_id) is True
        await uow.commit()

    async with create_uow(test_session_factory) as uow:
        assert await uow.executions.find_by_execution_id(execution_id) is None
        assert await uow.executions.get_results(execution_id) == []
        assert await uow.executions.delete(execution_id) is False


@pytest.mark.asyncio
async def test_uncommitted_work_is_discarded(test_session_factory):
    execution = make_execution()

    with pytest.raises(RuntimeError):
        async with create_uow(test_session_factory) as uow:
            await uow.executions.save(execution)
            raise RuntimeError("abort")

    async with create_uow(test_session_factory) as uow:
        assert await uow.executions.find_by_execution_id(str(execution.execution_id)) is None


# =============================================================================
# COLLABORATOR REGISTRIES
# =============================================================================

@pytest.mark.asyncio
async def test_project_registry(test_session_factory, seeded_project, project_dir):
    async with create_uow(test_session_factory) as uow:
        project = await uow.projects.get_project(seeded_project)
        missing = await uow.projects.get_project("nope")

    assert project.name == "E-commerce API"
    assert project.path == str(project_dir)
    assert missing is None


@pytest.mark.asyncio
async def test_test_case_registry(test_session_factory, seeded_project):
    async with create_uow(test_session_factory) as uow:
        by_name = await uow.test_cases.find_by_name(seeded_project, "Get product by id")
        by_id = await uow.test_cases.find_by_test_case_id(seeded_project, "TC-ecommerce-Product-2")
        product_count = await uow.test_cases.count(seeded_project, "Product")
        order_count = await uow.test_cases.count(seeded_project, "Order")

        stamp = utc_now()
        await uow.test_cases.update_last_run(by_name, "passed", stamp)
        await uow.commit()

    async with create_uow(test_session_factory) as uow:
        reloaded = await uow.test_cases.find_by_name(seeded_project, "Get product by id")

    assert by_id.name == "Create product with invalid price"
    assert product_count == 3
    assert order_count == 0
    assert reloaded.last_run_status == "passed"
    assert reloaded.status == "active"
    assert reloaded.last_run is not None


@pytest.mark.asyncio
async def test_test_suite_registry(test_session_factory, seeded_project):
    async with create_uow(test_session_factory) as uow:
        plan = await uow.test_suites.get_test_suite(seeded_project, "PLAN-ECOMMERCE-001")
        await uow.test_suites.update_execution_stats(seeded_project, "PLAN-NONE", {"total": 1})

    assert plan.name == "Product regression plan"
    assert plan.test_case_ids == [
        "TC-ecommerce-Product-1",
        "TC-ecommerce-Product-2",
        "TC-ecommerce-Product-1",
        "TC-missing-9",
    ]
