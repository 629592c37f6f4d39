"""Application services."""
from .execution_query_service import ExecutionQueryService, calculate_summary
from .test_case_update_service import TestCaseExecutionResult, TestCaseUpdateService

__all__ = [
    "ExecutionQueryService",
    "TestCaseExecutionResult",
    "TestCaseUpdateService",
    "calculate_summary",
]
