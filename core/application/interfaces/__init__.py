"""Application layer interfaces."""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from core.domain.entities import ScenarioResult


@dataclass(frozen=True)
class ProjectRef:
    """Project the runner executes in; ``path`` is its working directory."""
    id: str
    name: str
    path: str


@dataclass
class TestCaseRef:
    """Registry view of a test case, correlated with scenarios by name."""
    id: int
    test_case_id: str
    project_id: str
    name: str
    entity_name: Optional[str] = None
    status: str = "draft"
    last_run: Optional[datetime] = None
    last_run_status: Optional[str] = None


@dataclass
class TestSuiteRef:
    """Registry view of a test suite or plan."""
    suite_id: str
    project_id: str
    name: str
    test_sets: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def test_case_ids(self) -> List[str]:
        """Every test case id referenced by the suite's test sets, in order."""
        ids: List[str] = []
        for test_set in self.test_sets:
            ids.extend(test_set.get("test_cases") or [])
        return ids


class IProjectRegistry(ABC):
    """
    Interface for project lookups.

    Project CRUD lives elsewhere; the engine only needs the working directory.
    """

    @abstractmethod
    async def get_project(self, project_id: str) -> Optional[ProjectRef]:
        """
        Get project by ID.

        Args:
            project_id: Project identifier

        Returns:
            ProjectRef if found, None otherwise
        """
        pass


class ITestCaseRegistry(ABC):
    """
    Interface for the test-case registry.

    Scenarios are correlated with test cases by display name, so names
    are expected to be unique per project.
    """

    @abstractmethod
    async def find_by_name(self, project_id: str, name: str) -> Optional[TestCaseRef]:
        pass

    @abstractmethod
    async def find_by_test_case_id(self, project_id: str, test_case_id: str) -> Optional[TestCaseRef]:
        pass

    @abstractmethod
    async def update_last_run(
        self,
        test_case: TestCaseRef,
        status: str,
        timestamp: datetime,
    ) -> None:
        """
        Record the outcome of the latest run and mark the test case active.

        Args:
            test_case: Test case to update
            status: Scenario status of the latest run
            timestamp: When the run finished
        """
        pass

    @abstractmethod
    async def count(self, project_id: str, entity_name: Optional[str] = None) -> int:
        pass


class ITestSuiteRegistry(ABC):
    """Interface for test suite lookups and statistics."""

    @abstractmethod
    async def get_test_suite(self, project_id: str, suite_id: str) -> Optional[TestSuiteRef]:
        pass

    @abstractmethod
    async def update_execution_stats(
        self,
        project_id: str,
        suite_id: str,
        stats: Dict[str, int],
    ) -> None:
        """
        Store the latest execution statistics of a suite.

        Args:
            project_id: Project identifier
            suite_id: Suite identifier
            stats: {total, passed, failed, executionTime}
        """
        pass


class IBugRegistry(ABC):
    """
    Interface for bug creation from failed scenarios.

    Callers treat this as best effort: failures are logged, never raised.
    """

    @abstractmethod
    async def create_bugs_from_results(
        self,
        project_id: str,
        execution_id: str,
        context: Dict[str, Any],
        results: List[ScenarioResult],
    ) -> List[Dict[str, Any]]:
        """
        Create bugs for the failed scenarios of an execution.

        Args:
            project_id: Project identifier
            execution_id: Execution the results belong to
            context: Execution filters (entity, method, test type, environment)
            results: Consolidated scenario results

        Returns:
            Created bug records
        """
        pass


__all__ = [
    "ProjectRef",
    "TestCaseRef",
    "TestSuiteRef",
    "IProjectRegistry",
    "ITestCaseRegistry",
    "ITestSuiteRegistry",
    "IBugRegistry",
]
