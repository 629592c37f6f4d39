"""Event bus - ExecutionEventBusProtocol, EventSubscription and InMemoryExecutionEventBus."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Protocol

from cukeflow_sdk.logging import get_logger

from .events import ExecutionEvent

EventHandler = Callable[[ExecutionEvent], Awaitable[None]]

DEFAULT_QUEUE_SIZE = 100


class ExecutionEventBusProtocol(Protocol):
    """Protocol for execution event bus implementations."""

    async def publish(self, event: ExecutionEvent) -> None:
        """Publish an event.

        Args:
            event: Event to publish
        """
        ...

    def subscribe(self, project_id: str) -> "EventSubscription":
        """Open a live subscription to the events of one project.

        Args:
            project_id: Project whose events are delivered
        """
        ...


class EventSubscription:
    """
    One subscriber's view of the bus.

    Events are buffered in a bounded queue; when it is full the oldest
    buffered event is dropped so a slow consumer never blocks publishers.
    Iterate with ``async for``; iteration ends once the subscription is closed.
    """

    _CLOSED = object()

    def __init__(
        self,
        bus: "InMemoryExecutionEventBus",
        project_id: str,
        maxsize: int = DEFAULT_QUEUE_SIZE,
    ) -> None:
        self.project_id = project_id
        self._bus = bus
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def offer(self, event: ExecutionEvent) -> None:
        """Buffer an event without waiting."""
        if self._closed:
            return
        if self._queue.full():
            self._queue.get_nowait()
            self.dropped += 1
        self._queue.put_nowait(event)

    async def get(self, timeout: float | None = None) -> ExecutionEvent | None:
        """Next event, or None when closed or when ``timeout`` elapses first."""
        if self._closed and self._queue.empty():
            return None
        try:
            item = await asyncio.wait_for(self._queue.get(), timeout)
        except asyncio.TimeoutError:
            return None
        if item is self._CLOSED:
            return None
        return item

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._bus._unsubscribe(self)
        # Wake a pending get()
        if self._queue.full():
            self._queue.get_nowait()
        self._queue.put_nowait(self._CLOSED)

    def __aiter__(self) -> "EventSubscription":
        return self

    async def __anext__(self) -> ExecutionEvent:
        event = await self.get()
        if event is None:
            raise StopAsyncIteration
        return event

    async def __aenter__(self) -> "EventSubscription":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class InMemoryExecutionEventBus(ExecutionEventBusProtocol):
    """
    In-memory broadcast bus.

    Subscribers only see events published after they subscribed, filtered
    by exact project id. Handlers added with ``add_handler`` receive every
    event (e.g. the Redis Stream mirror).
    """

    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE) -> None:
        """Initialize in-memory event bus.

        Args:
            queue_size: Buffer size of each subscription
        """
        self._queue_size = queue_size
        self._subscriptions: dict[str, set[EventSubscription]] = {}
        self._handlers: list[EventHandler] = []
        self._logger = get_logger("orchestration.event_bus")

    def subscribe(self, project_id: str) -> EventSubscription:
        subscription = EventSubscription(self, project_id, maxsize=self._queue_size)
        self._subscriptions.setdefault(project_id, set()).add(subscription)
        self._logger.info(f"SSE subscriber added for project: {project_id}")
        return subscription

    def add_handler(self, handler: EventHandler) -> None:
        """Register a handler called for every published event.

        Args:
            handler: Async handler function
        """
        self._handlers.append(handler)

    def subscriber_count(self, project_id: str | None = None) -> int:
        if project_id is not None:
            return len(self._subscriptions.get(project_id, ()))
        return sum(len(subs) for subs in self._subscriptions.values())

    async def publish(self, event: ExecutionEvent) -> None:
        """Deliver an event to the project's subscribers and to every handler.

        Args:
            event: Event to publish
        """
        subscriptions = list(self._subscriptions.get(event.project_id or "", ()))
        self._logger.info(
            f"Publishing {event.type.value} event for execution {event.execution_id} "
            f"({len(subscriptions)} subscribers)"
        )

        for subscription in subscriptions:
            subscription.offer(event)

        for handler in self._handlers:
            try:
                await handler(event)
            except Exception as exc:
                self._logger.error(
                    f"Event handler {handler!r} failed for {event.type.value}: {exc}",
                    exc_info=True,
                )

    def _unsubscribe(self, subscription: EventSubscription) -> None:
        subs = self._subscriptions.get(subscription.project_id)
        if not subs:
            return
        subs.discard(subscription)
        if not subs:
            del self._subscriptions[subscription.project_id]
        self._logger.info(f"SSE subscriber removed for project: {subscription.project_id}")


_event_bus: InMemoryExecutionEventBus | None = None


def get_event_bus(queue_size: int = DEFAULT_QUEUE_SIZE) -> InMemoryExecutionEventBus:
    """Get or create the process-wide event bus."""
    global _event_bus
    if _event_bus is None:
        _event_bus = InMemoryExecutionEventBus(queue_size=queue_size)
    return _event_bus


def reset_event_bus() -> None:
    global _event_bus
    _event_bus = None
