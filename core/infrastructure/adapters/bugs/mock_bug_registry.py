"""
Mock Bug Registry Implementation.

Logs bugs instead of sending them anywhere. Used when no bug tracker is
configured, and in tests.
"""
from typing import Any, Dict, List
import logging

from core.application.interfaces import IBugRegistry
from core.domain.entities import ScenarioResult

from .bug_payload import build_bug_payload, failed_with_error


logger = logging.getLogger(__name__)


class MockBugRegistry(IBugRegistry):
    """Records created bugs in ``bugs_created``."""

    def __init__(self):
        self.bugs_created: List[Dict[str, Any]] = []
        logger.info("MockBugRegistry initialized (console logging)")

    async def create_bugs_from_results(
        self,
        project_id: str,
        execution_id: str,
        context: Dict[str, Any],
        results: List[ScenarioResult],
    ) -> List[Dict[str, Any]]:
        created = []
        for result in failed_with_error(results):
            bug = build_bug_payload(project_id, execution_id, context, result)
            created.append(bug)
            logger.info(
                f"🐞 BUG RECORDED:\n"
                f"   Execution: {execution_id}\n"
                f"   Title: {bug['title']}\n"
                f"   Severity: {bug['severity']}"
            )

        self.bugs_created.extend(created)
        return created

    def clear(self):
        self.bugs_created.clear()
