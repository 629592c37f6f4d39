"""
DTOs for test execution requests, receipts and listing filters.

Pydantic V2 models; validation failures surface as 422 responses.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.domain.entities import ALL_ENTITIES
from core.domain.enums import HttpMethod, TestEnvironment, TestType
from core.domain.value_objects import ExecutionConfig


# =============================================================================
# REQUEST DTOs
# =============================================================================

class ExecuteTestsRequest(BaseModel):
    """Request DTO for running the generated test suite of a project."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "entity_name": "Product",
                "method": "POST",
                "test_type": "positive",
                "tags": ["@smoke"],
                "environment": "local",
            }
        }
    )

    entity_name: Optional[str] = Field(
        default=None,
        description="Entity to run; omitted or 'all' runs every feature",
        examples=["Product"],
    )
    method: Optional[str] = Field(default=None, description="HTTP method filter")
    test_type: TestType = Field(default=TestType.ALL, description="Type of tests to execute")
    tags: Optional[List[str]] = Field(default=None, description="Tags, each starting with @")
    specific_scenario: Optional[str] = Field(
        default=None,
        description="Scenario name, or comma separated names",
    )
    parallel: bool = Field(default=False, description="Run scenarios in parallel")
    timeout: int = Field(default=30000, ge=1000, le=300000, description="Per-test timeout in ms")
    retries: int = Field(default=0, ge=0, le=5, description="Retries on failure")
    environment: TestEnvironment = Field(default=TestEnvironment.LOCAL, description="Target environment")
    verbose: bool = Field(default=False, description="Show verbose logs")
    save_logs: bool = Field(default=True, description="Persist request/response logs")
    save_payloads: bool = Field(default=True, description="Persist request/response payloads")
    workers: int = Field(default=1, ge=1, le=10, description="Workers for parallel execution")
    test_case_id: Optional[str] = Field(default=None, examples=["TC-ecommerce-Product-2"])
    test_suite_id: Optional[str] = Field(default=None, examples=["SUITE-ECOMMERCE-PRODUCT-001"])

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        """Tags must start with @."""
        if v is None:
            return v
        for tag in v:
            if not tag.startswith("@"):
                raise ValueError(f"Tags must start with @: {tag}")
        return v

    @field_validator("method")
    @classmethod
    def validate_method(cls, v: Optional[str]) -> Optional[str]:
        """Upper-case and check the HTTP method."""
        if v is None or not v.strip():
            return None
        method = v.strip().upper()
        if method not in {m.value for m in HttpMethod}:
            raise ValueError(f"Invalid HTTP method: {v}")
        return method

    @property
    def resolved_entity(self) -> str:
        return self.entity_name.strip() if self.entity_name and self.entity_name.strip() else ALL_ENTITIES

    def to_config(self) -> ExecutionConfig:
        return ExecutionConfig(
            environment=self.environment.value,
            verbose=self.verbose,
            save_logs=self.save_logs,
            save_payloads=self.save_payloads,
            parallel=self.parallel,
            workers=self.workers,
            timeout=self.timeout,
            retries=self.retries,
        )


class ExecutionFilters(BaseModel):
    """Filters and pagination for listing executions."""

    entity_name: Optional[str] = None
    method: Optional[str] = None
    test_type: Optional[TestType] = None
    status: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


# =============================================================================
# RESPONSE DTOs
# =============================================================================

class ExecutionReceipt(BaseModel):
    """Returned as soon as an execution has been queued."""

    execution_id: str = Field(..., description="Execution ID for tracking")
    status: str = Field(..., description="Initial execution status")
    message: str
    started_at: datetime
    test_cases_to_update: int = Field(..., ge=0)
    entity_name: str

    model_config = {"frozen": True}
