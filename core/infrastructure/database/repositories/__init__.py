"""SQLAlchemy repositories and registries."""

from .sqlalchemy_execution_repository import SQLAlchemyExecutionRepository
from .sqlalchemy_project_registry import SQLAlchemyProjectRegistry
from .sqlalchemy_test_case_registry import SQLAlchemyTestCaseRegistry
from .sqlalchemy_test_suite_registry import SQLAlchemyTestSuiteRegistry

__all__ = [
    "SQLAlchemyExecutionRepository",
    "SQLAlchemyProjectRegistry",
    "SQLAlchemyTestCaseRegistry",
    "SQLAlchemyTestSuiteRegistry",
]
