"""Domain value objects."""

from .value_objects import ExecutionConfig, ExecutionID

__all__ = [
    "ExecutionConfig",
    "ExecutionID",
]
