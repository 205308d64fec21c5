"""
Failure pattern generation.

Produces time-stamped failure events without touching a cluster; the
simulator decides when and whether to apply them.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Sequence

import numpy as np

from .distributions import Seconds, milliseconds, minutes, hours

# Schedules are evaluated in fixed ticks.
TIME_STEP_MS = 100

# Cascades never push the per-tick failure probability above this.
MAX_FAILURE_RATE = 0.5

# Per-tick decay of an elevated failure rate back toward the base rate.
RATE_DECAY = 0.99


class FailureType(Enum):
    """Kinds of node failure."""

    HARDWARE_FAILURE = "hardware_failure"  # Node goes offline
    NETWORK_TIMEOUT = "network_timeout"  # Timeouts, packet loss
    DISK_FULL = "disk_full"
    POWER_OUTAGE = "power_outage"
    SOFTWARE_FAILURE = "software_failure"  # Crash or corruption

    def __str__(self) -> str:
        return self.value.replace("_", " ").title()


@dataclass(frozen=True)
class FailureEvent:
    """A scheduled node failure.

    Attributes:
        node_id: The node that will fail.
        timestamp: Offset from the start of the schedule.
        failure_type: What goes wrong.
    """

    node_id: int
    timestamp: Seconds
    failure_type: FailureType

    def __repr__(self) -> str:
        return f"FailureEvent(node={self.node_id}, {self.timestamp:.2f}s, {self.failure_type})"


# Expected time to recover from each failure type.
RECOVERY_TIME: dict[FailureType, Seconds] = {
    FailureType.NETWORK_TIMEOUT: Seconds(30.0),
    FailureType.SOFTWARE_FAILURE: minutes(2),
    FailureType.DISK_FULL: minutes(5),
    FailureType.POWER_OUTAGE: minutes(30),
    FailureType.HARDWARE_FAILURE: hours(1),
}


def estimate_recovery_time(failure_type: FailureType) -> Seconds:
    """Expected recovery duration for a failure type."""
    return RECOVERY_TIME[failure_type]


def _sorted_by_time(events: list[FailureEvent]) -> list[FailureEvent]:
    return sorted(events, key=lambda e: e.timestamp)


class FailureGenerator:
    """Random failure schedules with cascade and correlation effects.

    Args:
        base_failure_rate: Per-tick, per-node failure probability at rest.
        cascade_factor: Multiplier applied to the current rate after each
            failure, modelling contagion.
        seed: Seed for a fresh generator (ignored when ``rng`` is given).
        rng: Random number generator to draw from.
    """

    def __init__(
        self,
        base_failure_rate: float = 0.01,
        cascade_factor: float = 1.5,
        seed: int | None = None,
        rng: np.random.Generator | None = None,
    ):
        if not 0.0 <= base_failure_rate <= 1.0:
            raise ValueError(
                f"base_failure_rate must be in [0, 1], got {base_failure_rate}"
            )
        if cascade_factor < 1.0:
            raise ValueError(f"cascade_factor must be >= 1, got {cascade_factor}")
        self.base_failure_rate = base_failure_rate
        self.cascade_factor = cascade_factor
        self.rng = rng if rng is not None else np.random.default_rng(seed)

    def generate_failure_schedule(
        self, node_ids: Sequence[int], duration: Seconds
    ) -> list[FailureEvent]:
        """Step through ``duration`` in 100 ms ticks and draw failures.

        Every node is tried independently on every tick, so a node can
        appear more than once.

        Args:
            node_ids: Candidate nodes.
            duration: Length of the schedule in seconds.

        Returns:
            Failure events sorted by timestamp.
        """
        events = []
        steps = int(round(duration * 1000)) // TIME_STEP_MS
        current_rate = self.base_failure_rate

        for step in range(steps):
            timestamp = milliseconds(step * TIME_STEP_MS)

            for node_id in node_ids:
                if self.rng.random() < current_rate:
                    events.append(
                        FailureEvent(node_id, timestamp, self.generate_failure_type())
                    )
                    current_rate = min(current_rate * self.cascade_factor, MAX_FAILURE_RATE)

            current_rate = max(current_rate * RATE_DECAY, self.base_failure_rate)

        return _sorted_by_time(events)

    def generate_failure_type(self) -> FailureType:
        """Draw a failure type: 60% hardware, 20% network, 10% disk, 10% power."""
        r = self.rng.random()
        if r < 0.6:
            return FailureType.HARDWARE_FAILURE
        if r < 0.8:
            return FailureType.NETWORK_TIMEOUT
        if r < 0.9:
            return FailureType.DISK_FULL
        return FailureType.POWER_OUTAGE

    def generate_correlated_failures(
        self, node_groups: Iterable[Sequence[int]], correlation: float
    ) -> list[FailureEvent]:
        """Fail whole groups together.

        Each group fails with probability ``correlation``. A failing group
        shares one failure type and a base time in [0, 10 s); each member is
        jittered by up to 1 s.
        """
        events = []
        for group in node_groups:
            if self.rng.random() >= correlation:
                continue

            base_ms = int(self.rng.integers(0, 10_000))
            failure_type = self.generate_failure_type()
            for node_id in group:
                jitter_ms = int(self.rng.integers(0, 1_000))
                events.append(
                    FailureEvent(node_id, milliseconds(base_ms + jitter_ms), failure_type)
                )

        return _sorted_by_time(events)


class FailureScenarios:
    """Canned failure patterns."""

    @staticmethod
    def rack_failure(rack_nodes: Sequence[int]) -> list[FailureEvent]:
        """Power outage across a rack, 5 s in, staggered by 50 ms."""
        return [
            FailureEvent(node_id, Seconds(5.0 + milliseconds(i * 50)), FailureType.POWER_OUTAGE)
            for i, node_id in enumerate(rack_nodes)
        ]

    @staticmethod
    def rolling_failure(node_ids: Sequence[int], interval: Seconds) -> list[FailureEvent]:
        """Hardware failures one after another, ``interval`` apart."""
        return [
            FailureEvent(node_id, Seconds(i * interval), FailureType.HARDWARE_FAILURE)
            for i, node_id in enumerate(node_ids)
        ]

    @staticmethod
    def byzantine_failure(
        node_ids: Sequence[int], rng: np.random.Generator | None = None
    ) -> list[FailureEvent]:
        """Each node independently fails (40%) at a random time in [0, 30 s)."""
        if rng is None:
            rng = np.random.default_rng()
        kinds = (
            FailureType.SOFTWARE_FAILURE,
            FailureType.NETWORK_TIMEOUT,
            FailureType.HARDWARE_FAILURE,
        )

        events = []
        for node_id in node_ids:
            if rng.random() < 0.4:
                timestamp = milliseconds(int(rng.integers(0, 30_000)))
                events.append(
                    FailureEvent(node_id, timestamp, kinds[int(rng.integers(0, len(kinds)))])
                )

        return _sorted_by_time(events)
