"""Application DTOs."""

from .execution_dto import ExecuteTestsRequest, ExecutionFilters, ExecutionReceipt
from .listener_dto import (
    ErrorCapture,
    ScenarioResultCapture,
    ScenarioStartCapture,
    StepResultCapture,
    StepStartCapture,
)

__all__ = [
    "ExecuteTestsRequest",
    "ExecutionFilters",
    "ExecutionReceipt",
    "ErrorCapture",
    "ScenarioResultCapture",
    "ScenarioStartCapture",
    "StepResultCapture",
    "StepStartCapture",
]
