"""
Event system for the discrete-event scenario simulator.

Provides event types, the event dataclass, and a time-ordered queue with
lazy per-node cancellation.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
import heapq

from .distributions import Seconds


class EventType(Enum):
    """Types of events the simulator processes or logs."""

    NODE_FAILURE = "node_failure"  # Node goes to FAILED
    NODE_RECOVERY = "node_recovery"  # Node returns to HEALTHY
    NODE_DEGRADED = "node_degraded"  # Node slows down but stays available
    RECOVERY_ACTION = "recovery_action"  # RecoveryCoordinator executed an event


@dataclass(order=True)
class Event:
    """A simulation event scheduled at a specific time.

    Events are ordered by time only.

    Attributes:
        time: When the event occurs (in seconds).
        event_type: Type of event (not used for ordering).
        target_id: Node the event applies to.
        metadata: Additional event-specific data (not used for ordering).

    Metadata conventions:
        - NODE_FAILURE: {"failure_type": FailureType}
        - RECOVERY_ACTION: {"result": RecoveryResult}
    """

    time: Seconds
    event_type: EventType = field(compare=False)
    target_id: int = field(compare=False)
    metadata: dict[str, Any] = field(default_factory=dict, compare=False)

    def __repr__(self) -> str:
        return f"Event({self.time:.2f}s, {self.event_type.value}, node={self.target_id})"


class EventQueue:
    """Min-heap of events ordered by time, FIFO among equal times.

    Each pushed event is stamped with an incrementing generation counter.
    Cancelling a node records the current counter as a threshold; events
    for that node with a lower generation are dropped on ``pop``/``peek``.
    Events pushed after the cancellation are unaffected.
    """

    def __init__(self) -> None:
        # Heap entries: (event.time, gen, event)
        self._heap: list[tuple[float, int, Event]] = []
        self._counter = 0
        self._cancel_target: dict[int, int] = {}

    def _is_cancelled(self, gen: int, event: Event) -> bool:
        return gen < self._cancel_target.get(event.target_id, 0)

    def push(self, event: Event) -> None:
        gen = self._counter
        self._counter += 1
        heapq.heappush(self._heap, (event.time, gen, event))

    def pop(self) -> Event | None:
        """Remove and return the next live event, or None if empty."""
        while self._heap:
            _time, gen, event = heapq.heappop(self._heap)
            if self._is_cancelled(gen, event):
                continue
            return event
        return None

    def peek(self) -> Event | None:
        """Return the next live event without removing it."""
        while self._heap:
            _time, gen, event = self._heap[0]
            if self._is_cancelled(gen, event):
                heapq.heappop(self._heap)
                continue
            return event
        return None

    def cancel_events_for(self, target_id: int) -> None:
        """Cancel every pending event for ``target_id``."""
        self._cancel_target[target_id] = max(
            self._cancel_target.get(target_id, 0), self._counter
        )

    def is_empty(self) -> bool:
        return self.peek() is None

    def __len__(self) -> int:
        """Number of heap entries (may include cancelled events)."""
        return len(self._heap)

    def __repr__(self) -> str:
        return f"EventQueue({len(self._heap)} events)"
