"""
Scenario simulator for an erasure-coded storage cluster.

The simulator owns a cluster and a virtual clock. Scenario pacing delays
advance the clock instead of sleeping, so runs are instant and
deterministic for a given seed. Scheduled failures and recoveries are
processed in time order by ``run_until``.
"""

import dataclasses
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Sequence

import numpy as np

from ..errors import InsufficientNodesError, NoAvailableNodesError, NodeNotFoundError
from ..storage import Cluster, NodeState
from .distributions import Seconds, milliseconds
from .events import Event, EventQueue, EventType
from .failure import FailureEvent
from .recovery import RecoveryCoordinator, RecoveryEvent, RecoveryResult

logger = logging.getLogger(__name__)

MIN_SPEED = 0.1

# Pacing delays, before speed scaling.
FAIL_DELAY = milliseconds(500)
CASCADE_BASE_DELAY = milliseconds(200)
CASCADE_DELAY_STEP = milliseconds(300)
RANDOM_FAIL_DELAY = milliseconds(100)
PARTITION_FAIL_DELAY = milliseconds(50)
RECOVER_ONE_DELAY = Seconds(1.0)
RECOVER_ALL_DELAY = milliseconds(500)


class ScenarioType(Enum):
    """Failure scenarios the simulator can run."""

    SINGLE_NODE_FAILURE = "single_node_failure"
    CASCADING_FAILURES = "cascading_failures"
    RANDOM_FAILURES = "random_failures"
    NETWORK_PARTITION = "network_partition"


@dataclass(frozen=True)
class FailureScenario:
    """A failure scenario and its parameter.

    Attributes:
        scenario_type: Which scenario to run.
        count: Failures for CASCADING_FAILURES, partition size for
            NETWORK_PARTITION.
        probability: Per-node failure probability for RANDOM_FAILURES.
    """

    scenario_type: ScenarioType
    count: int = 1
    probability: float = 0.0

    def __post_init__(self) -> None:
        if self.count < 0:
            raise ValueError(f"count must be non-negative, got {self.count}")
        if not 0.0 <= self.probability <= 1.0:
            raise ValueError(f"probability must be in [0, 1], got {self.probability}")

    @classmethod
    def single_node_failure(cls) -> "FailureScenario":
        return cls(ScenarioType.SINGLE_NODE_FAILURE)

    @classmethod
    def cascading_failures(cls, count: int) -> "FailureScenario":
        return cls(ScenarioType.CASCADING_FAILURES, count=count)

    @classmethod
    def random_failures(cls, probability: float) -> "FailureScenario":
        return cls(ScenarioType.RANDOM_FAILURES, probability=probability)

    @classmethod
    def network_partition(cls, partition_size: int) -> "FailureScenario":
        return cls(ScenarioType.NETWORK_PARTITION, count=partition_size)

    def __str__(self) -> str:
        if self.scenario_type == ScenarioType.SINGLE_NODE_FAILURE:
            return "Single Node Failure"
        if self.scenario_type == ScenarioType.CASCADING_FAILURES:
            return f"Cascading Failures ({self.count})"
        if self.scenario_type == ScenarioType.RANDOM_FAILURES:
            return f"Random Failures ({self.probability * 100:.1f}%)"
        return f"Network Partition ({self.count})"


@dataclass(frozen=True)
class SimulationStatus:
    """Flat snapshot of cluster health and storage for display layers."""

    total_nodes: int
    healthy_nodes: int
    degraded_nodes: int
    failed_nodes: int
    can_recover: bool
    failure_tolerance: int
    is_critical: bool
    total_chunks: int
    total_bytes: int

    def health_percentage(self) -> float:
        if self.total_nodes == 0:
            return 100.0
        return self.healthy_nodes / self.total_nodes * 100.0

    def health_description(self) -> str:
        pct = self.health_percentage()
        if pct >= 90.0:
            return "Excellent"
        if pct >= 70.0:
            return "Good"
        if pct >= 50.0:
            return "Fair"
        if pct >= 30.0:
            return "Poor"
        return "Critical"


class Simulator:
    """Drives a cluster through failure and recovery scenarios.

    The simulator maintains:
    - The cluster under test
    - A virtual clock advanced by scaled pacing delays and by events
    - A queue of scheduled failures
    - A recovery coordinator with its own schedule

    Args:
        cluster: Cluster to drive. The simulator takes exclusive ownership.
        seed: Random seed for node selection.
        speed: Speed multiplier; pacing delays are divided by it.
        recovery: Recovery coordinator (a fresh one by default).
        log_events: Whether to keep a log of processed events.
    """

    def __init__(
        self,
        cluster: Cluster,
        seed: int | None = None,
        speed: float = 1.0,
        recovery: RecoveryCoordinator | None = None,
        log_events: bool = False,
    ):
        self.cluster = cluster
        self.rng = np.random.default_rng(seed)
        self.recovery = recovery if recovery is not None else RecoveryCoordinator()
        self.event_queue = EventQueue()
        self.current_time = Seconds(0.0)
        self.log_events = log_events
        self.event_log: list[Event] = []
        self._failure_listeners: list[Callable[[Event], None]] = []
        self._speed = 1.0
        self.set_speed(speed)

    # -- pacing ----------------------------------------------------------

    @property
    def speed(self) -> float:
        return self._speed

    def set_speed(self, multiplier: float) -> None:
        """Set the speed multiplier (higher is faster, floored at 0.1)."""
        self._speed = max(multiplier, MIN_SPEED)

    def _sleep_scaled(self, delay: Seconds) -> None:
        self.current_time = Seconds(self.current_time + delay / self._speed)

    def _record(self, event_type: EventType, node_id: int, **metadata) -> None:
        if self.log_events:
            self.event_log.append(Event(self.current_time, event_type, node_id, metadata))

    # -- data ------------------------------------------------------------

    def store_test_data(self, key: str, data: bytes) -> list[int]:
        return self.cluster.store_data(key, data)

    def retrieve_test_data(self, key: str) -> bytes:
        return self.cluster.retrieve_data(key)

    # -- scenarios -------------------------------------------------------

    def run_failure_scenario(self, scenario: FailureScenario) -> list[int]:
        """Run a scenario against the cluster.

        Returns:
            Ids of the nodes that were failed, in order.

        Raises:
            NoAvailableNodesError: A single failure found nothing to fail.
            InsufficientNodesError: A partition is larger than the number of
                available nodes.
        """
        logger.info("Running scenario: %s", scenario)
        if scenario.scenario_type == ScenarioType.SINGLE_NODE_FAILURE:
            failed = [self._simulate_single_failure()]
        elif scenario.scenario_type == ScenarioType.CASCADING_FAILURES:
            failed = self._simulate_cascading_failures(scenario.count)
        elif scenario.scenario_type == ScenarioType.RANDOM_FAILURES:
            failed = self._simulate_random_failures(scenario.probability)
        else:
            failed = self._simulate_network_partition(scenario.count)

        logger.info("%s failed nodes %s", scenario, failed)
        return failed

    def _fail(self, node_id: int, **metadata) -> None:
        self.cluster.fail_node(node_id)
        self._record(EventType.NODE_FAILURE, node_id, **metadata)

    def _simulate_single_failure(self) -> int:
        candidates = self.cluster.available_node_ids()
        if not candidates:
            raise NoAvailableNodesError()

        node_id = candidates[int(self.rng.integers(0, len(candidates)))]
        self._sleep_scaled(FAIL_DELAY)
        self._fail(node_id)
        return node_id

    def _simulate_cascading_failures(self, count: int) -> list[int]:
        failed = []
        for i in range(count):
            if self.cluster.available_node_count() == 0:
                break
            # Delay grows with each failure (system stress)
            self._sleep_scaled(Seconds(CASCADE_BASE_DELAY + i * CASCADE_DELAY_STEP))
            failed.append(self._simulate_single_failure())
        return failed

    def _simulate_random_failures(self, probability: float) -> list[int]:
        failed = []
        for node_id in self.cluster.node_ids():
            if self.rng.random() >= probability:
                continue
            node = self.cluster.get_node(node_id)
            if node is not None and node.is_available:
                self._sleep_scaled(RANDOM_FAIL_DELAY)
                self._fail(node_id)
                failed.append(node_id)
        return failed

    def _simulate_network_partition(self, partition_size: int) -> list[int]:
        available = self.cluster.available_node_ids()
        if len(available) < partition_size:
            raise InsufficientNodesError(partition_size, len(available))

        chosen = [int(i) for i in self.rng.permutation(available)[:partition_size]]
        for node_id in chosen:
            self._sleep_scaled(PARTITION_FAIL_DELAY)
            self._fail(node_id, partition=True)
        return chosen

    def recover_random_node(self) -> bool:
        """Recover one randomly chosen failed node.

        Returns:
            False if no node was failed.
        """
        failed = self.cluster.failed_node_ids()
        if not failed:
            return False

        node_id = failed[int(self.rng.integers(0, len(failed)))]
        self._sleep_scaled(RECOVER_ONE_DELAY)
        self.cluster.recover_node(node_id)
        self._record(EventType.NODE_RECOVERY, node_id)
        logger.info("Recovered node %d", node_id)
        return True

    def recover_all_nodes(self) -> int:
        """Recover every failed node. Returns how many were recovered."""
        failed = self.cluster.failed_node_ids()
        for node_id in failed:
            self._sleep_scaled(RECOVER_ALL_DELAY)
            self.cluster.recover_node(node_id)
            self._record(EventType.NODE_RECOVERY, node_id)
        if failed:
            logger.info("Recovered %d nodes", len(failed))
        return len(failed)

    def degrade_node(self, node_id: int) -> bool:
        """Degrade a healthy node.

        Returns:
            False if the node was not healthy and nothing changed.
        """
        node = self.cluster.get_node(node_id)
        if node is None:
            raise NodeNotFoundError(node_id)
        if node.state != NodeState.HEALTHY:
            return False
        self.cluster.degrade_node(node_id)
        self._record(EventType.NODE_DEGRADED, node_id)
        logger.info("Degraded node %d", node_id)
        return True

    # -- status ----------------------------------------------------------

    def can_serve_data(self) -> bool:
        return self.cluster.can_recover_data()

    def status(self) -> SimulationStatus:
        health = self.cluster.health_status()
        stats = self.cluster.get_statistics()
        return SimulationStatus(
            total_nodes=health.total_nodes,
            healthy_nodes=health.healthy_nodes,
            degraded_nodes=health.degraded_nodes,
            failed_nodes=health.failed_nodes,
            can_recover=health.can_recover,
            failure_tolerance=health.failure_tolerance,
            is_critical=health.is_critical,
            total_chunks=stats.total_chunks,
            total_bytes=stats.total_bytes,
        )

    # -- event scheduling ------------------------------------------------

    def schedule_failures(
        self, events: Iterable[FailureEvent], offset: Seconds | None = None
    ) -> None:
        """Queue failure events, timestamps taken relative to ``offset``.

        Args:
            events: Failures from a FailureGenerator or FailureScenarios.
            offset: Absolute time the schedule starts at (default: now).
        """
        base = self.current_time if offset is None else offset
        for failure in events:
            self.event_queue.push(
                Event(
                    time=Seconds(base + failure.timestamp),
                    event_type=EventType.NODE_FAILURE,
                    target_id=failure.node_id,
                    metadata={"failure_type": failure.failure_type},
                )
            )

    def add_failure_listener(self, listener: Callable[[Event], None]) -> None:
        """Call ``listener`` after each scheduled failure is applied.

        Listeners may schedule further failures or recoveries.
        """
        self._failure_listeners.append(listener)

    def cancel_pending_failures(self, node_id: int) -> None:
        self.event_queue.cancel_events_for(node_id)

    def schedule_recovery(self, event: RecoveryEvent) -> RecoveryEvent:
        """Schedule a recovery whose time is an offset from now."""
        scheduled = dataclasses.replace(event, time=Seconds(self.current_time + event.time))
        self.recovery.schedule_recovery(scheduled)
        return scheduled

    def plan_recovery(self, failed_nodes: Sequence[int] | None = None) -> list[RecoveryEvent]:
        """Plan and schedule restarts for ``failed_nodes`` (default: all failed)."""
        if failed_nodes is None:
            failed_nodes = self.cluster.failed_node_ids()
        plan = self.recovery.plan_recovery_strategy(self.cluster, failed_nodes)
        return [self.schedule_recovery(event) for event in plan]

    def next_event_time(self) -> Seconds | None:
        """Time of the next queued failure or recovery, or None."""
        times = []
        failure = self.event_queue.peek()
        if failure is not None:
            times.append(failure.time)
        recovery_time = self.recovery.next_event_time()
        if recovery_time is not None:
            times.append(recovery_time)
        return min(times) if times else None

    def step(self) -> list[RecoveryResult]:
        """Process the next event time.

        A failure due at that time is applied first. Otherwise every recovery
        due at that time runs.

        Returns:
            Results of any recoveries executed.
        """
        next_time = self.next_event_time()
        if next_time is None:
            return []
        self.current_time = Seconds(max(self.current_time, next_time))

        failure = self.event_queue.peek()
        if failure is not None and failure.time <= next_time:
            self.event_queue.pop()
            self._apply_failure(failure)
            return []

        results = self.recovery.process_recovery_events(self.cluster, self.current_time)
        for result in results:
            self._record(EventType.RECOVERY_ACTION, result.node_id, result=result)
        return results

    def _apply_failure(self, event: Event) -> None:
        node = self.cluster.get_node(event.target_id)
        if node is None:
            logger.warning("Skipping failure of unknown node %d", event.target_id)
            return
        if not node.is_available:
            logger.debug("Node %d already failed, ignoring %r", event.target_id, event)
            return

        self._fail(event.target_id, **event.metadata)
        logger.debug(
            "t=%.2fs node %d failed (%s)",
            self.current_time, event.target_id, event.metadata.get("failure_type"),
        )
        for listener in self._failure_listeners:
            listener(event)

    def run_until(self, end_time: Seconds) -> list[RecoveryResult]:
        """Process every scheduled event up to ``end_time``.

        The clock ends at ``end_time`` (or later, if pacing already moved it
        past that point).
        """
        results: list[RecoveryResult] = []
        while True:
            next_time = self.next_event_time()
            if next_time is None or next_time > end_time:
                break
            results.extend(self.step())

        self.current_time = Seconds(max(self.current_time, end_time))
        return results

    def __repr__(self) -> str:
        return f"Simulator(t={self.current_time:.2f}s, speed={self._speed}, {self.cluster!r})"
