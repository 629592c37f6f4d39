"""Domain repository interfaces."""

from .execution_repository import ExecutionRepository

__all__ = ["ExecutionRepository"]
