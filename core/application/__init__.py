"""Application layer - services, interfaces, and DTOs."""

from .dtos import ExecuteTestsRequest, ExecutionFilters, ExecutionReceipt
from .interfaces import (
    IBugRegistry,
    IProjectRegistry,
    ITestCaseRegistry,
    ITestSuiteRegistry,
    ProjectRef,
)

__all__ = [
    # DTOs
    "ExecuteTestsRequest",
    "ExecutionFilters",
    "ExecutionReceipt",
    # Interfaces
    "IBugRegistry",
    "IProjectRegistry",
    "ITestCaseRegistry",
    "ITestSuiteRegistry",
    "ProjectRef",
]
