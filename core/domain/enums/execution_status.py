"""
Execution Status Enum.

Status values for execution tracking.
"""
from enum import Enum


class ExecutionStatus(str, Enum):
    """Execution lifecycle status values."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (
            ExecutionStatus.COMPLETED,
            ExecutionStatus.FAILED,
            ExecutionStatus.CANCELLED,
        )
