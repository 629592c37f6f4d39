"""
SQLAlchemy ORM Models.

Maps executions, scenario results and the collaborator records they
reference (projects, test cases, test suites) to database tables.
"""
from sqlalchemy import (
    Column, String, DateTime, Integer, Float, Text, Index, ForeignKey, JSON
)
from sqlalchemy.orm import declarative_base, relationship

from cukeflow_sdk.utils.datetime import utc_now


Base = declarative_base()


# =============================================================================
# TEST EXECUTION MODEL
# =============================================================================

class TestExecutionModel(Base):
    """
    Test execution database model.

    One row per runner invocation; ``metadata`` holds the run configuration.
    """

    __tablename__ = "test_executions"

    # Primary key
    id = Column(Integer, primary_key=True, autoincrement=True)

    # Identifiers
    execution_id = Column(String(36), unique=True, nullable=False, index=True)
    project_id = Column(String(255), nullable=False, index=True)

    # Filters
    entity_name = Column(String(255), nullable=False, default="all")
    method = Column(String(10), nullable=True)
    test_type = Column(String(20), nullable=False, default="all")
    tags = Column(JSON, nullable=True)
    specific_scenario = Column(Text, nullable=True)

    # Lifecycle
    status = Column(String(20), nullable=False, default="pending", index=True)
    started_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    # Counters
    total_scenarios = Column(Integer, nullable=False, default=0)
    passed_scenarios = Column(Integer, nullable=False, default=0)
    failed_scenarios = Column(Integer, nullable=False, default=0)
    execution_time = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)

    # Configuration bag ("metadata" is reserved by declarative base)
    run_metadata = Column("metadata", JSON, nullable=True)

    # Correlation
    test_case_id = Column(String(255), nullable=True, index=True)
    test_suite_id = Column(String(255), nullable=True, index=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)

    results = relationship(
        "TestResultModel",
        back_populates="execution",
        cascade="all, delete-orphan",
        order_by="TestResultModel.id",
    )

    __table_args__ = (
        Index("ix_test_executions_project_started", "project_id", "started_at"),
        Index("ix_test_executions_project_entity", "project_id", "entity_name"),
    )

    def __repr__(self):
        return f"<TestExecution(execution_id={self.execution_id}, status={self.status})>"


# =============================================================================
# TEST RESULT MODEL
# =============================================================================

class TestResultModel(Base):
    """
    Scenario result database model.

    Outline scenarios are stored one row per example instance.
    """

    __tablename__ = "test_results"

    id = Column(Integer, primary_key=True, autoincrement=True)
    execution_id = Column(
        String(36),
        ForeignKey("test_executions.execution_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    scenario_name = Column(String(500), nullable=False)
    scenario_tags = Column(JSON, nullable=True)
    status = Column(String(20), nullable=False)
    duration = Column(Float, nullable=False, default=0.0)  # ms
    steps = Column(JSON, nullable=True)
    error_message = Column(Text, nullable=True)
    result_metadata = Column("metadata", JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    execution = relationship("TestExecutionModel", back_populates="results")

    def __repr__(self):
        return f"<TestResult(scenario={self.scenario_name}, status={self.status})>"


# =============================================================================
# COLLABORATOR RECORDS
# =============================================================================

class ProjectModel(Base):
    """Project whose generated test suite is executed."""

    __tablename__ = "projects"

    id = Column(String(255), primary_key=True)
    name = Column(String(255), nullable=False)
    path = Column(Text, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)


class TestCaseModel(Base):
    """Test case registry row, correlated with scenarios by name."""

    __tablename__ = "test_cases"

    id = Column(Integer, primary_key=True, autoincrement=True)
    test_case_id = Column(String(255), nullable=False, index=True)
    project_id = Column(String(255), nullable=False, index=True)
    entity_name = Column(String(255), nullable=True, index=True)
    name = Column(String(500), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="draft")
    last_run = Column(DateTime(timezone=True), nullable=True)
    last_run_status = Column(String(20), nullable=True)

    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)


class TestSuiteModel(Base):
    """Test suite / plan with its last execution statistics."""

    __tablename__ = "test_suites"

    id = Column(Integer, primary_key=True, autoincrement=True)
    suite_id = Column(String(255), nullable=False, index=True)
    project_id = Column(String(255), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    # [{"test_cases": ["TC-..."]}]
    test_sets = Column(JSON, nullable=True)

    total_scenarios = Column(Integer, nullable=False, default=0)
    passed_scenarios = Column(Integer, nullable=False, default=0)
    failed_scenarios = Column(Integer, nullable=False, default=0)
    execution_time = Column(Integer, nullable=False, default=0)
    last_executed_at = Column(DateTime(timezone=True), nullable=True)
