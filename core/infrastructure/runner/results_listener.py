"""
Results Listener.

Mutable scratchpad for one execution that accumulates scenario and step
events pushed while the runner is still going. One listener belongs to
one execution; it is closed and discarded when that execution ends.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from cukeflow_sdk.utils.datetime import utc_now
from core.domain.entities import ScenarioResult, StepResult
from core.domain.enums import ScenarioStatus, StepStatus

from .exceptions import ListenerClosedError


logger = logging.getLogger(__name__)

NANOSECONDS_PER_MS = 1_000_000
RUNNING = "running"


@dataclass
class _ScenarioCapture:
    scenario_name: str
    scenario_tags: List[str]
    status: str = RUNNING
    started_at: datetime = field(default_factory=utc_now)
    finished_at: Optional[datetime] = None
    duration: float = 0.0
    error_message: Optional[str] = None
    steps: List[StepResult] = field(default_factory=list)


def _to_ms(duration_ns: Optional[float]) -> float:
    return duration_ns / NANOSECONDS_PER_MS if duration_ns else 0.0


class ResultsListener:
    """Accumulates live results for a single execution."""

    def __init__(self, execution_id: str, project_id: Optional[str] = None):
        self.execution_id = execution_id
        self.project_id = project_id
        self._scenarios: Dict[str, _ScenarioCapture] = {}
        self._current_scenario: Optional[str] = None
        self._closed = False
        logger.info(f"Listener initialized for execution: {execution_id}")

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def current_scenario(self) -> Optional[str]:
        return self._current_scenario

    def capture_scenario_start(self, scenario_name: str, tags: Optional[List[str]] = None) -> None:
        self._ensure_open()
        self._current_scenario = scenario_name
        self._scenarios[scenario_name] = _ScenarioCapture(
            scenario_name=scenario_name,
            scenario_tags=list(tags or []),
        )
        logger.debug(f"Scenario started: {scenario_name}")

    def capture_scenario_result(
        self,
        scenario_name: str,
        status: str,
        duration_ns: Optional[float] = None,
        error_message: Optional[str] = None,
    ) -> None:
        self._ensure_open()
        capture = self._scenarios.get(scenario_name)
        if capture is None:
            logger.warning(f"Result for unknown scenario ignored: {scenario_name}")
            return
        capture.status = status
        capture.finished_at = utc_now()
        capture.duration = _to_ms(duration_ns)
        capture.error_message = error_message
        logger.debug(f"Scenario completed: {scenario_name} - {status}")

    def capture_step_start(self, step_name: str) -> None:
        self._ensure_open()
        capture = self._active_capture()
        if capture is None:
            logger.warning("Attempted to capture step without active scenario")
            return
        # Passed until a result says otherwise
        capture.steps.append(StepResult(step_name=step_name, status=StepStatus.PASSED))
        logger.debug(f"Step started: {step_name}")

    def capture_step_result(
        self,
        step_name: str,
        status: Optional[str] = None,
        duration_ns: Optional[float] = None,
        error_message: Optional[str] = None,
    ) -> None:
        self._ensure_open()
        capture = self._active_capture()
        if capture is None:
            logger.warning("Attempted to capture step result without active scenario")
            return
        for step in capture.steps:
            if step.step_name == step_name:
                step.status = StepStatus.from_report(status) if status else StepStatus.PASSED
                step.duration = _to_ms(duration_ns)
                step.error_message = error_message
                logger.debug(f"Step completed: {step_name} - {step.status.value}")
                return
        logger.warning(f"Result for unknown step ignored: {step_name}")

    def capture_error(self, message: str, context: Optional[str] = None) -> None:
        """Record an error; the active scenario, if any, is marked failed."""
        self._ensure_open()
        where = f" in {context}" if context else ""
        logger.error(f"Captured error{where}: {message}")
        capture = self._active_capture()
        if capture is not None:
            capture.status = ScenarioStatus.FAILED.value
            capture.error_message = message

    def results(self) -> List[ScenarioResult]:
        """Captured scenarios in start order; unfinished ones are reported as skipped."""
        results = []
        for capture in self._scenarios.values():
            try:
                status = ScenarioStatus(capture.status)
            except ValueError:
                status = ScenarioStatus.SKIPPED
            results.append(
                ScenarioResult(
                    scenario_name=capture.scenario_name,
                    scenario_tags=list(capture.scenario_tags),
                    status=status,
                    duration=capture.duration,
                    steps=list(capture.steps),
                    error_message=capture.error_message,
                    metadata={
                        "tags": list(capture.scenario_tags),
                        "startTime": capture.started_at.isoformat(),
                        "running": capture.status == RUNNING,
                    },
                )
            )
        return results

    def status(self) -> Dict[str, Any]:
        return {
            "execution_id": self.execution_id,
            "project_id": self.project_id,
            "current_scenario": self._current_scenario,
            "total_scenarios": len(self._scenarios),
            "total_steps": sum(len(c.steps) for c in self._scenarios.values()),
            "closed": self._closed,
        }

    def close(self) -> None:
        """Release captured state; later captures raise ListenerClosedError."""
        self._closed = True
        self._current_scenario = None
        self._scenarios.clear()
        logger.debug(f"Listener closed for execution: {self.execution_id}")

    def _active_capture(self) -> Optional[_ScenarioCapture]:
        if self._current_scenario is None:
            return None
        return self._scenarios.get(self._current_scenario)

    def _ensure_open(self) -> None:
        if self._closed:
            raise ListenerClosedError(f"Listener for execution {self.execution_id} is closed")
