"""Turns failed scenario results into bug records."""
import re
from typing import Any, Dict, List

from core.domain.entities import ScenarioResult


CRITICAL_MARKERS = ("timeout", "network", "connection refused", "ECONNREFUSED")
HIGH_RISK_FLOWS = ("critical", "payment", "authentication", "login")
MAX_ERROR_LENGTH = 500


def failed_with_error(results: List[ScenarioResult]) -> List[ScenarioResult]:
    """Only failed scenarios carrying an error message become bugs."""
    return [result for result in results if result.is_failed and result.error_message]


def determine_severity(result: ScenarioResult) -> str:
    error = result.error_message or ""
    name = result.scenario_name.lower()

    if any(marker in error for marker in CRITICAL_MARKERS):
        return "critical"
    if any(flow in name for flow in HIGH_RISK_FLOWS):
        return "high"
    if re.search(r"Received:\s*5\d{2}", error):
        return "high"
    if "expect(" in error or "AssertionError" in error or re.search(r"Received:\s*4\d{2}", error):
        return "medium"
    return "low"


def build_bug_payload(
    project_id: str,
    execution_id: str,
    context: Dict[str, Any],
    result: ScenarioResult,
) -> Dict[str, Any]:
    error = (result.error_message or "")[:MAX_ERROR_LENGTH]
    return {
        "project_id": project_id,
        "execution_id": execution_id,
        "title": f"Test Failure: {result.scenario_name}",
        "description": (
            f"Scenario '{result.scenario_name}' failed during execution {execution_id} "
            f"({context.get('environment', 'local')})."
        ),
        "type": "test_failure",
        "priority": "medium",
        "severity": determine_severity(result),
        "entity": context.get("entity_name") or "Unknown",
        "method": context.get("method"),
        "test_case_name": result.scenario_name,
        "error_message": error,
        "execution_time": result.duration,
        "environment": context.get("environment") or "default",
        "failed_steps": [step.step_name for step in result.steps if step.status.value == "failed"],
    }
