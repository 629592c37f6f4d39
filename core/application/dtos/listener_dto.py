"""DTOs for pushing live results into a running execution's listener."""
from typing import List, Optional

from pydantic import BaseModel, Field


class ScenarioStartCapture(BaseModel):
    scenario_name: str = Field(..., min_length=1)
    tags: List[str] = Field(default_factory=list)


class ScenarioResultCapture(BaseModel):
    scenario_name: str = Field(..., min_length=1)
    status: str
    duration: Optional[float] = Field(default=None, ge=0, description="Duration in nanoseconds")
    error_message: Optional[str] = None


class StepStartCapture(BaseModel):
    step_name: str = Field(..., min_length=1)


class StepResultCapture(BaseModel):
    step_name: str = Field(..., min_length=1)
    status: Optional[str] = None
    duration: Optional[float] = Field(default=None, ge=0, description="Duration in nanoseconds")
    error_message: Optional[str] = None


class ErrorCapture(BaseModel):
    message: str
    context: Optional[str] = None
