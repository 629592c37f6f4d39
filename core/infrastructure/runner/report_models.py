"""
Cucumber JSON report records.

Every field is optional so partially written reports still validate;
unknown fields are ignored. A structural mismatch (e.g. ``steps`` not
being a list) fails validation and the report is treated as malformed.
"""
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


def _none_as_empty(value: Any) -> Any:
    return [] if value is None else value


class ReportRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")


class ReportTag(ReportRecord):
    name: str = ""
    line: Optional[int] = None


class ReportStepResult(ReportRecord):
    status: Optional[str] = None
    # nanoseconds
    duration: Optional[Union[int, float]] = None
    error_message: Optional[str] = None


class ReportStep(ReportRecord):
    name: Optional[str] = None
    keyword: Optional[str] = None
    line: Optional[int] = None
    hidden: Optional[bool] = None
    result: Optional[ReportStepResult] = None


class ReportElement(ReportRecord):
    id: Optional[str] = None
    name: str = ""
    type: Optional[str] = None
    keyword: Optional[str] = None
    line: Optional[int] = None
    tags: List[ReportTag] = Field(default_factory=list)
    steps: List[ReportStep] = Field(default_factory=list)

    @field_validator("tags", "steps", mode="before")
    @classmethod
    def _lists_may_be_null(cls, value: Any) -> Any:
        return _none_as_empty(value)

    @property
    def is_scenario(self) -> bool:
        return self.type in (None, "scenario")


class ReportFeature(ReportRecord):
    id: Optional[str] = None
    name: str = ""
    uri: Optional[str] = None
    tags: List[ReportTag] = Field(default_factory=list)
    elements: List[ReportElement] = Field(default_factory=list)

    @field_validator("tags", "elements", mode="before")
    @classmethod
    def _lists_may_be_null(cls, value: Any) -> Any:
        return _none_as_empty(value)


CucumberReport = TypeAdapter(List[ReportFeature])
