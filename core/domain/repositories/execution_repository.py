"""Repository interface for the Execution aggregate."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional, Tuple

from ..entities import Execution, ScenarioResult


class ExecutionRepository(ABC):
    """Abstract repository for executions and their scenario result rows."""

    @abstractmethod
    async def save(self, execution: Execution) -> Execution:
        """Insert or update an execution, keyed by its execution id.

        Args:
            execution: Execution aggregate to persist

        Returns:
            The execution with storage bookkeeping fields filled in
        """
        pass

    @abstractmethod
    async def find_by_execution_id(self, execution_id: str) -> Optional[Execution]:
        """Retrieve an execution by its external identifier."""
        pass

    @abstractmethod
    async def add_results(self, execution_id: str, results: List[ScenarioResult]) -> None:
        """Persist result rows, one per element of ``results``."""
        pass

    @abstractmethod
    async def get_results(self, execution_id: str) -> List[ScenarioResult]:
        """Result rows of an execution in insertion order."""
        pass

    @abstractmethod
    async def list_by_project(
        self,
        project_id: str,
        *,
        entity_name: Optional[str] = None,
        method: Optional[str] = None,
        test_type: Optional[str] = None,
        status: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Execution], int]:
        """Filtered page of a project's executions, newest first.

        Returns:
            (page of executions, total number matching the filters)
        """
        pass

    @abstractmethod
    async def find_all(self, project_id: Optional[str] = None) -> List[Execution]:
        """All executions (optionally of one project), newest first."""
        pass

    @abstractmethod
    async def find_recent_by_entity(
        self, project_id: str, entity_name: str, limit: int = 10
    ) -> List[Execution]:
        """Most recent executions for an entity."""
        pass

    @abstractmethod
    async def find_last_by_test_suite(self, project_id: str, test_suite_id: str) -> Optional[Execution]:
        pass

    @abstractmethod
    async def find_last_by_test_case(self, project_id: str, test_case_id: str) -> Optional[Execution]:
        pass

    @abstractmethod
    async def find_failed_by_test_case(self, project_id: str, test_case_id: str) -> List[Execution]:
        pass

    @abstractmethod
    async def delete(self, execution_id: str) -> bool:
        """Delete an execution and its result rows.

        Returns:
            True if something was deleted
        """
        pass
