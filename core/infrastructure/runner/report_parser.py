"""
Report Parser.

Reads the cucumber JSON report after the runner exits and turns it into
ScenarioResult objects, consolidating scenario-outline executions.

Parsing fails open: a missing, empty or malformed report yields an
empty list and a warning, never an exception.
"""
import json
import logging
from collections import OrderedDict
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Dict, List, Optional

from pydantic import ValidationError

from core.domain.entities import ScenarioResult, StepResult
from core.domain.enums import HookType, ScenarioStatus, StepStatus
from core.settings import RunnerSettings

from .report_models import CucumberReport, ReportElement, ReportFeature, ReportStep


logger = logging.getLogger(__name__)

NANOSECONDS_PER_MS = 1_000_000


@dataclass(frozen=True)
class ResultsSummary:
    """Scenario counters over a list of (consolidated) results."""
    total: int
    passed: int
    failed: int
    skipped: int

    @classmethod
    def of(cls, results: List[ScenarioResult]) -> "ResultsSummary":
        passed = sum(1 for r in results if r.status == ScenarioStatus.PASSED)
        failed = sum(1 for r in results if r.status == ScenarioStatus.FAILED)
        return cls(
            total=len(results),
            passed=passed,
            failed=failed,
            skipped=len(results) - passed - failed,
        )


class ReportParser:
    """Parses the runner report of a working directory."""

    def __init__(self, report_path: PurePosixPath):
        self.report_path = PurePosixPath(report_path)

    @classmethod
    def from_settings(cls, settings: RunnerSettings) -> "ReportParser":
        return cls(settings.report_path)

    def report_file(self, working_dir: Path) -> Path:
        return Path(working_dir) / self.report_path

    def parse(self, working_dir: Path) -> List[ScenarioResult]:
        """
        Parse the report written under ``working_dir``.

        Args:
            working_dir: Project directory the runner executed in

        Returns:
            Consolidated scenario results, or [] if the report is unusable
        """
        path = self.report_file(working_dir)
        try:
            content = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.warning(f"Cucumber JSON report not found at: {path}")
            return []
        except OSError as e:
            logger.warning(f"Could not read Cucumber JSON report: {e}")
            return []

        return self.parse_content(content)

    def parse_content(self, content: str) -> List[ScenarioResult]:
        """Parse report text. Same fail-open contract as ``parse``."""
        if not content.strip():
            logger.warning("Cucumber JSON report is empty")
            return []

        try:
            raw = json.loads(content)
        except json.JSONDecodeError as e:
            logger.warning(f"Cucumber JSON report is corrupted: {e}")
            return []

        if not isinstance(raw, list):
            logger.warning("Cucumber JSON report does not contain a valid array")
            return []

        try:
            features = CucumberReport.validate_python(raw)
        except ValidationError as e:
            logger.warning(f"Cucumber JSON report has an unexpected shape: {e.error_count()} errors")
            return []

        all_results = [
            self._parse_scenario(element, feature)
            for feature in features
            for element in feature.elements
            if element.is_scenario
        ]
        consolidated = consolidate(all_results)

        logger.info(
            f"Parsed {len(all_results)} total scenarios, "
            f"{len(consolidated)} unique scenario groups from JSON report"
        )
        failed = [r for r in consolidated if r.is_failed]
        if failed:
            logger.error(f"Found {len(failed)} failed scenarios:")
            for result in failed:
                logger.error(f"  - {result.scenario_name}: {result.error_message or 'No error message'}")

        return consolidated

    # =========================================================================
    # SCENARIO / STEP DERIVATION
    # =========================================================================

    def _parse_scenario(self, element: ReportElement, feature: ReportFeature) -> ScenarioResult:
        return ScenarioResult(
            scenario_name=element.name,
            scenario_tags=[tag.name for tag in element.tags],
            status=scenario_status(element.steps),
            duration=scenario_duration(element.steps),
            steps=[parse_step(step) for step in element.steps],
            error_message=scenario_error_message(element.steps),
            metadata={
                "feature": feature.name,
                "tags": [tag.name for tag in feature.tags],
                "scenarioId": element.id,
                "line": element.line,
            },
        )


def _step_status(step: ReportStep) -> StepStatus:
    return StepStatus.from_report(step.result.status if step.result else None)


def _step_duration_ms(step: ReportStep) -> float:
    if step.result and step.result.duration:
        return step.result.duration / NANOSECONDS_PER_MS
    return 0.0


def scenario_status(steps: List[ReportStep]) -> ScenarioStatus:
    """failed if any step failed; skipped if every step was skipped; else passed."""
    statuses = [_step_status(step) for step in steps]
    if any(status == StepStatus.FAILED for status in statuses):
        return ScenarioStatus.FAILED
    if all(status == StepStatus.SKIPPED for status in statuses):
        return ScenarioStatus.SKIPPED
    return ScenarioStatus.PASSED


def scenario_duration(steps: List[ReportStep]) -> float:
    return sum(_step_duration_ms(step) for step in steps)


def parse_step(step: ReportStep) -> StepResult:
    hook = HookType.from_keyword(step.keyword)
    name = step.name
    if not name or not name.strip():
        if hook is not None:
            name = hook.display_name
        else:
            name = f"{(step.keyword or '').strip()} Step"

    return StepResult(
        step_name=name,
        status=_step_status(step),
        duration=_step_duration_ms(step),
        error_message=step.result.error_message if step.result else None,
        is_hook=hook is not None,
        hook_type=hook.value if hook is not None else None,
    )


def scenario_error_message(steps: List[ReportStep]) -> Optional[str]:
    messages = []
    for step in steps:
        if _step_status(step) != StepStatus.FAILED:
            continue
        step_name = step.name or (step.keyword or "").strip() or "Unknown Step"
        error = step.result.error_message if step.result and step.result.error_message else "Unknown error"
        messages.append(f"{step_name}: {error}")
    return "; ".join(messages) if messages else None


# =============================================================================
# CONSOLIDATION
# =============================================================================

def instance_name(scenario_name: str, index: int) -> str:
    return f"{scenario_name} (Example {index})"


def consolidate(results: List[ScenarioResult]) -> List[ScenarioResult]:
    """
    Group results by scenario name, preserving first-seen order.

    Groups of one are returned unchanged; larger groups (outline examples)
    become one consolidated result carrying every member.
    """
    groups: Dict[str, List[ScenarioResult]] = OrderedDict()
    for result in results:
        groups.setdefault(result.scenario_name, []).append(result)

    consolidated: List[ScenarioResult] = []
    for name, members in groups.items():
        if len(members) == 1:
            consolidated.append(members[0])
            continue

        logger.info(f"Scenario with Examples: {name} - {len(members)} executions")
        consolidated.append(consolidate_group(name, members))
    return consolidated


def consolidate_group(name: str, members: List[ScenarioResult]) -> ScenarioResult:
    first = members[0]
    any_failed = any(member.is_failed for member in members)
    error_messages = [member.error_message for member in members if member.error_message]

    metadata = dict(first.metadata)
    metadata["totalExecutions"] = len(members)
    metadata["executionDetails"] = [
        {
            "status": member.status.value,
            "duration": member.duration,
            "errorMessage": member.error_message,
            "scenarioId": member.metadata.get("scenarioId"),
            "line": member.metadata.get("line"),
        }
        for member in members
    ]

    for index, member in enumerate(members, start=1):
        member.execution_index = index
        member.scenario_instance_name = instance_name(name, index)
        logger.debug(f"   Execution {index}: Status={member.status.value}, Duration={member.duration}ms")

    return ScenarioResult(
        scenario_name=name,
        scenario_tags=list(first.scenario_tags),
        status=ScenarioStatus.FAILED if any_failed else ScenarioStatus.PASSED,
        duration=sum(member.duration for member in members),
        steps=first.steps,
        error_message="; ".join(error_messages) if error_messages else None,
        metadata=metadata,
        individual_executions=list(members),
    )
