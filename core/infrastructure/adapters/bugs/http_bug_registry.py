"""
HTTP Bug Registry Implementation.

Posts one bug per failed scenario to the bug tracker's REST API.
"""
from typing import Any, Dict, List
import asyncio
import logging
import aiohttp

from core.application.interfaces import IBugRegistry
from core.domain.entities import ScenarioResult
from core.settings.modules.bug_tracker_settings import BugTrackerSettings

from .bug_payload import build_bug_payload, failed_with_error


logger = logging.getLogger(__name__)


class HttpBugRegistry(IBugRegistry):
    """
    HTTP implementation of the bug registry.

    A bug that cannot be created is logged and skipped.
    """

    def __init__(self, settings: BugTrackerSettings):
        """
        Initialize HTTP bug registry.

        Args:
            settings: Bug tracker settings with URL and token
        """
        self.settings = settings
        self.url = settings.url
        logger.info("HttpBugRegistry initialized")

    async def create_bugs_from_results(
        self,
        project_id: str,
        execution_id: str,
        context: Dict[str, Any],
        results: List[ScenarioResult],
    ) -> List[Dict[str, Any]]:
        logger.info(f"Creating bugs from execution results: {execution_id}")

        failed = failed_with_error(results)
        if not failed:
            return []

        created: List[Dict[str, Any]] = []
        timeout = aiohttp.ClientTimeout(total=self.settings.timeout_seconds)
        async with aiohttp.ClientSession(timeout=timeout, headers=self._headers()) as session:
            for result in failed:
                payload = build_bug_payload(project_id, execution_id, context, result)
                try:
                    async with session.post(self.url, json=payload) as response:
                        if response.status >= 300:
                            error_text = await response.text()
                            logger.warning(
                                f"Bug tracker error for {result.scenario_name}: "
                                f"{response.status} - {error_text}"
                            )
                            continue
                        created.append(await response.json())
                        logger.info(f"Bug created for failed test: {result.scenario_name}")
                except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                    logger.warning(f"Failed to create bug for test {result.scenario_name}: {e}")

        logger.info(f"Created {len(created)} bugs from execution {execution_id}")
        return created

    def _headers(self) -> Dict[str, str]:
        if not self.settings.token:
            return {}
        return {"Authorization": f"Bearer {self.settings.token}"}
