"""
Recovery coordination.

The coordinator keeps a private time-ordered schedule of recovery events
and executes the ones that are due against a cluster, tracking how many
succeed and how long they take.
"""

from __future__ import annotations

import heapq
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Sequence

from ..errors import ErasureSimError
from ..storage import Cluster, NodeState
from .distributions import Seconds, milliseconds
from .metrics import RecoveryStats

logger = logging.getLogger(__name__)

# Virtual time each recovery operation takes.
RESTART_DURATION = milliseconds(500)
REBUILD_DURATION_PER_KEY = milliseconds(100)
HOT_SPARE_DURATION = milliseconds(200)
NETWORK_REPAIR_DURATION = Seconds(2.0)

# Planning constants
PLAN_BASE_DELAY = Seconds(1.0)
IMMEDIATE_SPACING = milliseconds(100)
GRADUAL_SPACING = Seconds(2.0)
BASE_RECOVERY_TIME_PER_NODE = Seconds(30.0)
PARALLELISM_FACTOR = 0.7


class RecoveryType(Enum):
    """Kinds of recovery operation."""

    NODE_RESTART = "node_restart"  # Bring a failed node back
    DATA_REBUILD = "data_rebuild"  # Re-encode keys onto a node
    HOT_SPARE_ACTIVATION = "hot_spare_activation"  # Standby takes over
    NETWORK_REPAIR = "network_repair"  # Reconnect a set of nodes


class RecoveryStrategy(Enum):
    """Recovery strategies with different trade-offs."""

    IMMEDIATE_RESTART = "immediate_restart"  # Fastest, may be unstable
    GRADUAL_RECOVERY = "gradual_recovery"  # Slower, more stable
    HOT_SPARE = "hot_spare"
    NETWORK_AWARE = "network_aware"

    def __str__(self) -> str:
        return self.value.replace("_", " ").title()


@dataclass(order=True)
class RecoveryEvent:
    """A scheduled recovery operation.

    Events are ordered by time only.

    Attributes:
        time: When the recovery should run.
        recovery_type: Operation to perform.
        node_ids: Nodes involved. For HOT_SPARE_ACTIVATION this is
            ``(spare_id, failed_id)``.
        strategy: Strategy the event was planned under.
        keys: Logical keys to rebuild (DATA_REBUILD only).
    """

    time: Seconds
    recovery_type: RecoveryType = field(compare=False)
    node_ids: tuple[int, ...] = field(compare=False)
    strategy: RecoveryStrategy = field(compare=False)
    keys: tuple[str, ...] = field(default=(), compare=False)

    @classmethod
    def node_restart(
        cls, node_id: int, time: Seconds, strategy: RecoveryStrategy = RecoveryStrategy.IMMEDIATE_RESTART
    ) -> RecoveryEvent:
        return cls(time, RecoveryType.NODE_RESTART, (node_id,), strategy)

    @classmethod
    def data_rebuild(
        cls,
        node_id: int,
        keys: Sequence[str],
        time: Seconds,
        strategy: RecoveryStrategy = RecoveryStrategy.GRADUAL_RECOVERY,
    ) -> RecoveryEvent:
        return cls(time, RecoveryType.DATA_REBUILD, (node_id,), strategy, tuple(keys))

    @classmethod
    def hot_spare_activation(
        cls, spare_id: int, failed_id: int, time: Seconds
    ) -> RecoveryEvent:
        return cls(
            time, RecoveryType.HOT_SPARE_ACTIVATION, (spare_id, failed_id), RecoveryStrategy.HOT_SPARE
        )

    @classmethod
    def network_repair(cls, node_ids: Sequence[int], time: Seconds) -> RecoveryEvent:
        return cls(time, RecoveryType.NETWORK_REPAIR, tuple(node_ids), RecoveryStrategy.NETWORK_AWARE)

    @property
    def primary_node_id(self) -> int:
        """Main node of the operation (the spare for hot-spare activation)."""
        return self.node_ids[0] if self.node_ids else 0

    def describe(self) -> str:
        if self.recovery_type == RecoveryType.NODE_RESTART:
            return f"Node Restart ({self.primary_node_id})"
        if self.recovery_type == RecoveryType.DATA_REBUILD:
            return f"Data Rebuild ({self.primary_node_id}, {len(self.keys)} keys)"
        if self.recovery_type == RecoveryType.HOT_SPARE_ACTIVATION:
            spare, failed = self.node_ids
            return f"Hot Spare Activation ({spare} -> {failed})"
        return f"Network Repair ({len(self.node_ids)} nodes)"


@dataclass
class RecoveryResult:
    """Outcome of one executed recovery event."""

    node_id: int
    recovery_type: RecoveryType
    success: bool
    duration: Seconds
    strategy_used: RecoveryStrategy


class RecoveryCoordinator:
    """Schedules and executes recovery events against a cluster."""

    def __init__(self) -> None:
        # Heap entries: (event.time, seq, event)
        self._schedule: list[tuple[float, int, RecoveryEvent]] = []
        self._counter = 0
        self.stats = RecoveryStats()

    # -- scheduling ------------------------------------------------------

    def schedule_recovery(self, event: RecoveryEvent) -> None:
        heapq.heappush(self._schedule, (event.time, self._counter, event))
        self._counter += 1

    def pending_events(self) -> list[RecoveryEvent]:
        """Scheduled events in execution order."""
        return [event for _time, _seq, event in sorted(self._schedule)]

    def next_event_time(self) -> Seconds | None:
        if not self._schedule:
            return None
        return Seconds(self._schedule[0][0])

    def cancel_recoveries_for(self, node_id: int) -> int:
        """Drop scheduled events whose primary node is ``node_id``.

        Returns:
            Number of events removed.
        """
        kept = [entry for entry in self._schedule if entry[2].primary_node_id != node_id]
        removed = len(self._schedule) - len(kept)
        heapq.heapify(kept)
        self._schedule = kept
        return removed

    # -- execution -------------------------------------------------------

    def process_recovery_events(
        self, cluster: Cluster, current_time: Seconds
    ) -> list[RecoveryResult]:
        """Execute every event due at or before ``current_time``.

        Events that are not yet due stay scheduled.
        """
        due = []
        while self._schedule and self._schedule[0][0] <= current_time:
            due.append(heapq.heappop(self._schedule)[2])

        return [self._execute_recovery(cluster, event) for event in due]

    def _execute_recovery(self, cluster: Cluster, event: RecoveryEvent) -> RecoveryResult:
        handlers = {
            RecoveryType.NODE_RESTART: self._restart_node,
            RecoveryType.DATA_REBUILD: self._rebuild_data,
            RecoveryType.HOT_SPARE_ACTIVATION: self._activate_hot_spare,
            RecoveryType.NETWORK_REPAIR: self._repair_network,
        }
        try:
            success, duration = handlers[event.recovery_type](cluster, event)
        except ErasureSimError as exc:
            logger.warning("%s aborted: %s", event.describe(), exc)
            success, duration = False, Seconds(0.0)

        self.stats.record(success, duration, event.strategy.value)
        if success:
            logger.info("%s succeeded in %.2fs", event.describe(), duration)
        else:
            logger.warning("%s did not succeed", event.describe())

        return RecoveryResult(
            node_id=event.primary_node_id,
            recovery_type=event.recovery_type,
            success=success,
            duration=duration,
            strategy_used=event.strategy,
        )

    def _restart_node(self, cluster: Cluster, event: RecoveryEvent) -> tuple[bool, Seconds]:
        node_id = event.primary_node_id
        node = cluster.get_node(node_id)
        if node is None or node.state != NodeState.FAILED:
            return False, RESTART_DURATION
        cluster.recover_node(node_id)
        return True, RESTART_DURATION

    def _rebuild_data(self, cluster: Cluster, event: RecoveryEvent) -> tuple[bool, Seconds]:
        node = cluster.get_node(event.primary_node_id)
        if node is not None and not node.is_available:
            cluster.recover_node(node.node_id)

        rebuilt = 0
        for key in event.keys:
            try:
                data = cluster.retrieve_data(key)
                cluster.store_data(key, data)
            except ErasureSimError as exc:
                logger.debug("Rebuild of %r on node %d failed: %s", key, event.primary_node_id, exc)
                continue
            rebuilt += 1

        duration = Seconds(REBUILD_DURATION_PER_KEY * len(event.keys))
        return rebuilt == len(event.keys), duration

    def _activate_hot_spare(self, cluster: Cluster, event: RecoveryEvent) -> tuple[bool, Seconds]:
        spare_id, failed_id = event.node_ids
        spare = cluster.get_node(spare_id)
        if spare is None or cluster.get_node(failed_id) is None:
            return False, HOT_SPARE_DURATION
        # No data is copied; activation only checks the spare is usable.
        return spare.state == NodeState.HEALTHY, HOT_SPARE_DURATION

    def _repair_network(self, cluster: Cluster, event: RecoveryEvent) -> tuple[bool, Seconds]:
        repaired = 0
        for node_id in event.node_ids:
            try:
                cluster.recover_node(node_id)
            except ErasureSimError as exc:
                logger.debug("Network repair skipped node %d: %s", node_id, exc)
                continue
            repaired += 1
        return repaired == len(event.node_ids), NETWORK_REPAIR_DURATION

    # -- planning --------------------------------------------------------

    def plan_recovery_strategy(
        self, cluster: Cluster, failed_nodes: Sequence[int]
    ) -> list[RecoveryEvent]:
        """Plan a restart for each failed node.

        A critical cluster gets tightly spaced immediate restarts; otherwise
        restarts are spread out. Event times are offsets from now.
        """
        if cluster.health_status().is_critical:
            strategy, spacing = RecoveryStrategy.IMMEDIATE_RESTART, IMMEDIATE_SPACING
        else:
            strategy, spacing = RecoveryStrategy.GRADUAL_RECOVERY, GRADUAL_SPACING

        return [
            RecoveryEvent.node_restart(node_id, Seconds(PLAN_BASE_DELAY + i * spacing), strategy)
            for i, node_id in enumerate(failed_nodes)
        ]

    def estimate_recovery_time(self, failed_nodes: Sequence[int]) -> Seconds:
        """Flat per-node cost with a 30% discount for parallel recovery."""
        return Seconds(BASE_RECOVERY_TIME_PER_NODE * len(failed_nodes) * PARALLELISM_FACTOR)

    def reset_stats(self) -> None:
        self.stats = RecoveryStats()

    def __repr__(self) -> str:
        return f"RecoveryCoordinator({len(self._schedule)} pending, {self.stats!r})"
