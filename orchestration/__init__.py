"""Orchestration layer - execution lifecycle with eventing."""

from .bus import (
    EventSubscription,
    ExecutionEventBusProtocol,
    InMemoryExecutionEventBus,
    get_event_bus,
)
from .events import ExecutionEvent, ExecutionEventType
from .orchestrator import ExecutionOrchestrator, unroll_results

__all__ = [
    "EventSubscription",
    "ExecutionEvent",
    "ExecutionEventBusProtocol",
    "ExecutionEventType",
    "ExecutionOrchestrator",
    "InMemoryExecutionEventBus",
    "get_event_bus",
    "unroll_results",
]
