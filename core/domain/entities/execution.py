"""
Execution aggregate root.

CRITICAL: This file must contain ZERO imports from:
- sqlalchemy
- pydantic
- fastapi
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from cukeflow_sdk.utils.datetime import elapsed_ms, utc_now

from ..enums import ExecutionStatus
from ..exceptions import InvalidStatusTransitionError
from ..value_objects import ExecutionConfig, ExecutionID

ALL_ENTITIES = "all"


@dataclass
class Execution:
    """
    One invocation of the external test runner, tracked as a stateful record.

    Lifecycle: PENDING -> RUNNING -> {COMPLETED | FAILED | CANCELLED}.
    FAILED may also be entered straight from PENDING when the run never
    got as far as spawning the runner.
    """
    project_id: str
    execution_id: ExecutionID = field(default_factory=ExecutionID.generate)
    entity_name: str = ALL_ENTITIES
    method: Optional[str] = None
    test_type: str = "all"
    tags: List[str] = field(default_factory=list)
    specific_scenario: Optional[str] = None
    test_case_id: Optional[str] = None
    test_suite_id: Optional[str] = None
    config: ExecutionConfig = field(default_factory=ExecutionConfig)

    status: ExecutionStatus = ExecutionStatus.PENDING
    started_at: datetime = field(default_factory=utc_now)
    completed_at: Optional[datetime] = None

    # Aggregate counters
    total_scenarios: int = 0
    passed_scenarios: int = 0
    failed_scenarios: int = 0
    execution_time: int = 0  # ms
    error_message: Optional[str] = None

    # Storage bookkeeping
    id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def targets_all_entities(self) -> bool:
        return not self.entity_name or self.entity_name == ALL_ENTITIES

    @property
    def scenario_names(self) -> List[str]:
        """Specific scenario names, split from the comma-separated form."""
        if not self.specific_scenario:
            return []
        return [name.strip() for name in self.specific_scenario.split(",") if name.strip()]

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def success_rate(self) -> float:
        if self.total_scenarios <= 0:
            return 0.0
        return (self.passed_scenarios / self.total_scenarios) * 100

    def start(self) -> None:
        """Business rule: only a pending execution can start running."""
        if self.status != ExecutionStatus.PENDING:
            raise InvalidStatusTransitionError(
                str(self.execution_id), self.status.value, ExecutionStatus.RUNNING.value
            )
        self.status = ExecutionStatus.RUNNING

    def record_counts(self, total: int, passed: int, failed: int) -> None:
        self.total_scenarios = total
        self.passed_scenarios = passed
        self.failed_scenarios = failed

    def complete(self) -> None:
        """Mark a running execution as completed."""
        if self.status != ExecutionStatus.RUNNING:
            raise InvalidStatusTransitionError(
                str(self.execution_id), self.status.value, ExecutionStatus.COMPLETED.value
            )
        self.status = ExecutionStatus.COMPLETED
        self._stamp_completion()

    def fail(self, error_message: str, force: bool = False) -> None:
        """
        Mark a non-terminal execution as failed with a readable reason.

        ``force`` also lets a completed execution become failed, for wrap-up
        errors that land after the results were committed.
        """
        overridable = force and self.status == ExecutionStatus.COMPLETED
        if self.is_terminal and not overridable:
            raise InvalidStatusTransitionError(
                str(self.execution_id), self.status.value, ExecutionStatus.FAILED.value
            )
        self.status = ExecutionStatus.FAILED
        self.error_message = error_message
        self._stamp_completion()

    def _stamp_completion(self) -> None:
        self.completed_at = utc_now()
        self.execution_time = elapsed_ms(self.started_at, self.completed_at)
