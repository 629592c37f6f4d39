"""Orchestration events - ExecutionEventType, ExecutionEvent."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from cukeflow_sdk.utils.datetime import utc_now
from core.domain.entities import Execution


class ExecutionEventType(str, Enum):
    """Lifecycle event types of an execution."""

    STARTED = "started"
    PROGRESS = "progress"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ExecutionEventType.COMPLETED, ExecutionEventType.FAILED)


@dataclass
class ExecutionEvent:
    """Transient lifecycle notification for one execution. Never persisted."""

    execution_id: str
    type: ExecutionEventType
    status: str
    message: str
    project_id: str | None = None
    entity_name: str | None = None
    test_suite_id: str | None = None
    test_case_id: str | None = None
    progress: float | None = None
    results: dict[str, object] | None = None
    timestamp: datetime = field(default_factory=utc_now)

    @classmethod
    def started(cls, execution: Execution) -> "ExecutionEvent":
        return cls(
            type=ExecutionEventType.STARTED,
            status="running",
            message=f"Execution started for {execution.entity_name}",
            **_identity(execution),
        )

    @classmethod
    def progress_update(
        cls, execution: Execution, message: str, progress: float | None = None
    ) -> "ExecutionEvent":
        return cls(
            type=ExecutionEventType.PROGRESS,
            status="running",
            message=message,
            progress=progress,
            **_identity(execution),
        )

    @classmethod
    def completed(cls, execution: Execution) -> "ExecutionEvent":
        return cls(
            type=ExecutionEventType.COMPLETED,
            status=execution.status.value,
            message="Execution completed successfully",
            progress=100.0,
            results={
                "total_scenarios": execution.total_scenarios,
                "passed_scenarios": execution.passed_scenarios,
                "failed_scenarios": execution.failed_scenarios,
                "execution_time": execution.execution_time,
            },
            **_identity(execution),
        )

    @classmethod
    def failed(cls, execution: Execution, error: str) -> "ExecutionEvent":
        return cls(
            type=ExecutionEventType.FAILED,
            status="failed",
            message=f"Execution failed: {error}",
            **_identity(execution),
        )

    def to_dict(self) -> dict[str, object]:
        """JSON-serialisable payload."""
        payload: dict[str, object] = {
            "execution_id": self.execution_id,
            "type": self.type.value,
            "status": self.status,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
            "project_id": self.project_id,
            "entity_name": self.entity_name,
            "test_suite_id": self.test_suite_id,
            "test_case_id": self.test_case_id,
        }
        if self.progress is not None:
            payload["progress"] = self.progress
        if self.results is not None:
            payload["results"] = self.results
        return payload


def _identity(execution: Execution) -> dict[str, object]:
    return {
        "execution_id": str(execution.execution_id),
        "project_id": execution.project_id,
        "entity_name": execution.entity_name,
        "test_suite_id": execution.test_suite_id,
        "test_case_id": execution.test_case_id,
    }
