"""
Scenario and step results parsed from a runner report.

Durations are milliseconds everywhere in this module.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from cukeflow_sdk.utils.datetime import utc_now

from ..enums import ScenarioStatus, StepStatus


@dataclass
class StepResult:
    """Outcome of one step (or hook) inside a scenario."""
    step_name: str
    status: StepStatus
    duration: float = 0.0
    error_message: Optional[str] = None
    timestamp: datetime = field(default_factory=utc_now)
    is_hook: bool = False
    hook_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stepName": self.step_name,
            "status": self.status.value,
            "duration": self.duration,
            "errorMessage": self.error_message,
            "timestamp": self.timestamp.isoformat(),
            "isHook": self.is_hook,
            "hookType": self.hook_type,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StepResult":
        timestamp = data.get("timestamp")
        return cls(
            step_name=data.get("stepName") or "",
            status=StepStatus.from_report(data.get("status")),
            duration=float(data.get("duration") or 0),
            error_message=data.get("errorMessage"),
            timestamp=datetime.fromisoformat(timestamp) if timestamp else utc_now(),
            is_hook=bool(data.get("isHook")),
            hook_type=data.get("hookType"),
        )


@dataclass
class ScenarioResult:
    """
    Outcome of one scenario.

    For a scenario outline executed once per example, the consolidated
    result carries every member in ``individual_executions``; each member
    keeps its own status, duration, error and steps.
    """
    scenario_name: str
    status: ScenarioStatus
    duration: float = 0.0
    scenario_tags: List[str] = field(default_factory=list)
    steps: List[StepResult] = field(default_factory=list)
    error_message: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    # Set on members of a consolidated outline
    execution_index: Optional[int] = None
    scenario_instance_name: Optional[str] = None
    individual_executions: List["ScenarioResult"] = field(default_factory=list)

    # Storage bookkeeping
    id: Optional[int] = None
    created_at: Optional[datetime] = None

    @property
    def has_multiple_executions(self) -> bool:
        return len(self.individual_executions) > 0

    @property
    def is_failed(self) -> bool:
        return self.status == ScenarioStatus.FAILED

    def steps_as_dicts(self) -> List[Dict[str, Any]]:
        return [step.to_dict() for step in self.steps]
