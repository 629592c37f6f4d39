"""Domain layer - pure domain models and interfaces."""

from .entities import ALL_ENTITIES, Execution, ScenarioResult, StepResult
from .enums import ExecutionStatus, ScenarioStatus, StepStatus
from .repositories import ExecutionRepository
from .value_objects import ExecutionConfig, ExecutionID

__all__ = [
    "ALL_ENTITIES",
    "Execution",
    "ExecutionConfig",
    "ExecutionID",
    "ExecutionRepository",
    "ExecutionStatus",
    "ScenarioResult",
    "ScenarioStatus",
    "StepResult",
    "StepStatus",
]
