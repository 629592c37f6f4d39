"""Scenario and step outcome values reported by the test runner."""
from enum import Enum


class ScenarioStatus(str, Enum):
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


class StepStatus(str, Enum):
    """Step status values as written in the cucumber JSON report."""

    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"
    PENDING = "pending"
    UNDEFINED = "undefined"
    AMBIGUOUS = "ambiguous"

    @classmethod
    def from_report(cls, value: str | None) -> "StepStatus":
        """Map a raw report status, defaulting to SKIPPED when absent or unknown."""
        if not value:
            return cls.SKIPPED
        try:
            return cls(value.lower())
        except ValueError:
            return cls.SKIPPED


class HookType(str, Enum):
    BEFORE = "Before"
    AFTER = "After"
    BEFORE_STEP = "BeforeStep"
    AFTER_STEP = "AfterStep"

    @property
    def display_name(self) -> str:
        return {
            HookType.BEFORE: "Before Hook",
            HookType.AFTER: "After Hook",
            HookType.BEFORE_STEP: "Before Step Hook",
            HookType.AFTER_STEP: "After Step Hook",
        }[self]

    @classmethod
    def from_keyword(cls, keyword: str | None) -> "HookType | None":
        if not keyword:
            return None
        try:
            return cls(keyword.strip())
        except ValueError:
            return None
