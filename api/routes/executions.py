"""
Test execution endpoints.

Starts executions of a project's generated suite, queries their stored
results, streams live lifecycle events and accepts live captures from
the runner while an execution is in progress.
"""
import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import StreamingResponse

from api.dependencies import get_event_bus, get_orchestrator, get_query_service
from core.application.dtos import (
    ErrorCapture,
    ExecuteTestsRequest,
    ExecutionFilters,
    ExecutionReceipt,
    ScenarioResultCapture,
    ScenarioStartCapture,
    StepResultCapture,
    StepStartCapture,
)
from core.application.services import ExecutionQueryService
from core.application.services.execution_query_service import enrich_result
from core.domain.enums import TestType
from core.domain.exceptions import (
    ExecutionNotFoundError,
    InvalidExecutionRequestError,
    ProjectNotFoundError,
)
from core.infrastructure.runner import ListenerClosedError, ResultsListener
from core.settings import get_app_settings
from orchestration import EventSubscription, ExecutionEvent, ExecutionOrchestrator, InMemoryExecutionEventBus


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/projects/{project_id}/test-execution")


def format_sse(event: ExecutionEvent) -> str:
    """One server-sent-events frame carrying the event as JSON."""
    return f"data: {json.dumps(event.to_dict())}\n\n"


async def stream_events(
    request: Request,
    subscription: EventSubscription,
    heartbeat_seconds: float,
):
    """
    Yield SSE frames until the client disconnects or the subscription closes.

    A comment frame is sent whenever no event arrived within
    ``heartbeat_seconds`` so idle proxies keep the connection open.
    """
    try:
        while True:
            event = await subscription.get(timeout=heartbeat_seconds)
            if await request.is_disconnected():
                break
            if event is not None:
                yield format_sse(event)
            elif subscription.closed:
                break
            else:
                yield ": heartbeat\n\n"
    finally:
        subscription.close()
        logger.info(f"SSE stream closed for project: {subscription.project_id}")


# =============================================================================
# EXECUTE
# =============================================================================

@router.post(
    "/execute",
    response_model=ExecutionReceipt,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Run generated tests",
    description="""
    Start a test execution for the project.

    The execution runs in the background; use the returned execution_id
    with the results endpoints or follow it on the execution-events stream.
    """,
)
async def execute_tests(
    project_id: str,
    request: ExecuteTestsRequest,
    orchestrator: ExecutionOrchestrator = Depends(get_orchestrator),
) -> ExecutionReceipt:
    try:
        return await orchestrator.execute_tests(project_id, request)
    except ProjectNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except InvalidExecutionRequestError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


# =============================================================================
# RESULTS
# =============================================================================

@router.get(
    "/results/{execution_id}",
    summary="Get execution results",
)
async def get_results(
    project_id: str,
    execution_id: str,
    query_service: ExecutionQueryService = Depends(get_query_service),
) -> Dict[str, Any]:
    """
    Get one execution with its per-scenario results and summary.

    Args:
        project_id: Owning project
        execution_id: Execution to load
        query_service: Query service instance

    Returns:
        Execution fields, results and summary
    """
    try:
        return await query_service.get_results(execution_id)
    except ExecutionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get(
    "/results",
    summary="List executions",
)
async def list_results(
    project_id: str,
    entity_name: Optional[str] = Query(None),
    method: Optional[str] = Query(None),
    test_type: Optional[TestType] = Query(None),
    status_filter: Optional[str] = Query(None, alias="status"),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    query_service: ExecutionQueryService = Depends(get_query_service),
) -> Dict[str, Any]:
    """List a project's executions, newest first, with pagination."""
    filters = ExecutionFilters(
        entity_name=entity_name,
        method=method,
        test_type=test_type,
        status=status_filter,
        date_from=date_from,
        date_to=date_to,
        page=page,
        limit=limit,
    )
    return await query_service.list_results(project_id, filters)


@router.delete(
    "/results/{execution_id}",
    summary="Delete execution results",
)
async def delete_results(
    project_id: str,
    execution_id: str,
    query_service: ExecutionQueryService = Depends(get_query_service),
) -> Dict[str, str]:
    try:
        await query_service.delete_results(execution_id)
    except ExecutionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    return {"message": f"Execution {execution_id} deleted successfully"}


@router.get(
    "/history/{entity_name}",
    summary="Recent executions of an entity",
)
async def get_execution_history(
    project_id: str,
    entity_name: str,
    query_service: ExecutionQueryService = Depends(get_query_service),
) -> List[Dict[str, Any]]:
    return await query_service.get_execution_history(project_id, entity_name)


@router.get(
    "/summary",
    summary="Project execution summary",
)
async def get_execution_summary(
    project_id: str,
    query_service: ExecutionQueryService = Depends(get_query_service),
) -> Dict[str, Any]:
    return await query_service.get_execution_summary(project_id)


@router.get(
    "/last-execution/test-suite/{test_suite_id}",
    summary="Last execution of a test suite",
)
async def get_last_execution_by_test_suite(
    project_id: str,
    test_suite_id: str,
    query_service: ExecutionQueryService = Depends(get_query_service),
) -> Dict[str, Any]:
    try:
        return await query_service.get_last_execution_by_test_suite(project_id, test_suite_id)
    except ExecutionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get(
    "/last-execution/test-case/{test_case_id}",
    summary="Last execution of a test case",
)
async def get_last_execution_by_test_case(
    project_id: str,
    test_case_id: str,
    query_service: ExecutionQueryService = Depends(get_query_service),
) -> Dict[str, Any]:
    try:
        return await query_service.get_last_execution_by_test_case(project_id, test_case_id)
    except ExecutionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get(
    "/failed-executions/{test_case_id}",
    summary="Failed executions of a test case",
)
async def get_failed_executions(
    project_id: str,
    test_case_id: str,
    query_service: ExecutionQueryService = Depends(get_query_service),
) -> List[Dict[str, Any]]:
    return await query_service.get_failed_executions_by_test_case(project_id, test_case_id)


# =============================================================================
# LIVE EVENTS
# =============================================================================

@router.get(
    "/execution-events",
    summary="Live execution events",
    description="Server-sent events for every execution of the project started after connecting.",
)
async def execution_events(
    project_id: str,
    request: Request,
    event_bus: InMemoryExecutionEventBus = Depends(get_event_bus),
) -> StreamingResponse:
    subscription = event_bus.subscribe(project_id)
    heartbeat = get_app_settings().events.sse_heartbeat_seconds
    return StreamingResponse(
        stream_events(request, subscription, heartbeat),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


# =============================================================================
# LIVE CAPTURE
# =============================================================================

def _running_listener(
    orchestrator: ExecutionOrchestrator, project_id: str, execution_id: str
) -> ResultsListener:
    listener = orchestrator.listener(execution_id)
    # Executions of another project are invisible here
    if listener is None or listener.project_id != project_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No running execution with ID {execution_id}",
        )
    return listener


def _closed(e: ListenerClosedError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.get("/listener/{execution_id}", summary="Live capture status")
async def listener_status(
    project_id: str,
    execution_id: str,
    orchestrator: ExecutionOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    return _running_listener(orchestrator, project_id, execution_id).status()


@router.get("/listener/{execution_id}/results", summary="Live captured results")
async def listener_results(
    project_id: str,
    execution_id: str,
    orchestrator: ExecutionOrchestrator = Depends(get_orchestrator),
) -> List[Dict[str, Any]]:
    """Scenarios captured so far; unfinished ones are reported as skipped."""
    listener = _running_listener(orchestrator, project_id, execution_id)
    return [enrich_result(result) for result in listener.results()]


@router.post("/listener/{execution_id}/scenario-start", summary="Capture scenario start")
async def capture_scenario_start(
    project_id: str,
    execution_id: str,
    capture: ScenarioStartCapture,
    orchestrator: ExecutionOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    listener = _running_listener(orchestrator, project_id, execution_id)
    try:
        listener.capture_scenario_start(capture.scenario_name, capture.tags)
    except ListenerClosedError as e:
        raise _closed(e)
    return listener.status()


@router.post("/listener/{execution_id}/scenario-result", summary="Capture scenario result")
async def capture_scenario_result(
    project_id: str,
    execution_id: str,
    capture: ScenarioResultCapture,
    orchestrator: ExecutionOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    listener = _running_listener(orchestrator, project_id, execution_id)
    try:
        listener.capture_scenario_result(
            capture.scenario_name, capture.status, capture.duration, capture.error_message
        )
    except ListenerClosedError as e:
        raise _closed(e)
    return listener.status()


@router.post("/listener/{execution_id}/step-start", summary="Capture step start")
async def capture_step_start(
    project_id: str,
    execution_id: str,
    capture: StepStartCapture,
    orchestrator: ExecutionOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    listener = _running_listener(orchestrator, project_id, execution_id)
    try:
        listener.capture_step_start(capture.step_name)
    except ListenerClosedError as e:
        raise _closed(e)
    return listener.status()


@router.post("/listener/{execution_id}/step-result", summary="Capture step result")
async def capture_step_result(
    project_id: str,
    execution_id: str,
    capture: StepResultCapture,
    orchestrator: ExecutionOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    listener = _running_listener(orchestrator, project_id, execution_id)
    try:
        listener.capture_step_result(
            capture.step_name, capture.status, capture.duration, capture.error_message
        )
    except ListenerClosedError as e:
        raise _closed(e)
    return listener.status()


@router.post("/listener/{execution_id}/error", summary="Capture runner error")
async def capture_error(
    project_id: str,
    execution_id: str,
    capture: ErrorCapture,
    orchestrator: ExecutionOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    listener = _running_listener(orchestrator, project_id, execution_id)
    try:
        listener.capture_error(capture.message, capture.context)
    except ListenerClosedError as e:
        raise _closed(e)
    return listener.status()
