"""Domain entities."""

from .execution import ALL_ENTITIES, Execution
from .scenario_result import ScenarioResult, StepResult

__all__ = [
    "ALL_ENTITIES",
    "Execution",
    "ScenarioResult",
    "StepResult",
]
