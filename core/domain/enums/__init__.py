"""Domain enumerations."""

from .execution_status import ExecutionStatus
from .result_status import HookType, ScenarioStatus, StepStatus
from .test_options import HttpMethod, TestCaseStatus, TestEnvironment, TestType

__all__ = [
    "ExecutionStatus",
    "HookType",
    "HttpMethod",
    "ScenarioStatus",
    "StepStatus",
    "TestCaseStatus",
    "TestEnvironment",
    "TestType",
]
