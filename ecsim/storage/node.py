"""
Storage node model.

A node holds named chunks in memory and moves between health states.
Latency is synthetic metadata for display; nothing waits on it.
"""

import copy
import logging
from dataclasses import dataclass, field
from enum import Enum

from ..errors import NodeUnavailableError

logger = logging.getLogger(__name__)


class NodeState(Enum):
    """Health state of a storage node."""

    HEALTHY = "healthy"  # Operating normally
    DEGRADED = "degraded"  # Functional but slow
    FAILED = "failed"  # Not accessible

    def __str__(self) -> str:
        return self.name.capitalize()


# Simulated response latency per state, in milliseconds.
LATENCY_MS: dict[NodeState, int] = {
    NodeState.HEALTHY: 10,
    NodeState.DEGRADED: 100,
    NodeState.FAILED: 0,
}


@dataclass
class StorageStats:
    """Per-node storage counters.

    Attributes:
        total_chunks: Number of chunks currently stored.
        total_bytes: Bytes currently stored.
        reads: Number of retrieve operations served.
        writes: Number of store operations served.
        deletes: Number of chunks removed.
    """

    total_chunks: int = 0
    total_bytes: int = 0
    reads: int = 0
    writes: int = 0
    deletes: int = 0

    def record_read(self) -> None:
        self.reads += 1

    def record_write(self, size: int, replaced: int | None = None) -> None:
        """Record a write of ``size`` bytes.

        Args:
            size: Bytes written.
            replaced: Size of the chunk this write overwrote, if any.
        """
        self.writes += 1
        self.total_bytes += size
        if replaced is None:
            self.total_chunks += 1
        else:
            self.total_bytes -= replaced

    def record_delete(self, size: int) -> None:
        self.deletes += 1
        self.total_bytes = max(0, self.total_bytes - size)
        self.total_chunks = max(0, self.total_chunks - 1)


@dataclass
class Node:
    """A single storage unit.

    Attributes:
        node_id: Unique identifier within the cluster.
        state: Current health state.
        latency_ms: Simulated latency for the current state.
    """

    node_id: int
    state: NodeState = NodeState.HEALTHY
    latency_ms: int = LATENCY_MS[NodeState.HEALTHY]
    _chunks: dict[str, bytes] = field(default_factory=dict, repr=False)
    _stats: StorageStats = field(default_factory=StorageStats, repr=False)

    def __post_init__(self) -> None:
        self.set_state(self.state)

    @classmethod
    def with_state(cls, node_id: int, state: NodeState) -> "Node":
        """Create a node that starts in ``state``."""
        return cls(node_id, state)

    def set_state(self, state: NodeState) -> None:
        """Move to ``state`` and reset latency from the state table."""
        if state != self.state:
            logger.debug("Node %d: %s -> %s", self.node_id, self.state, state)
        self.state = state
        self.latency_ms = LATENCY_MS[state]

    @property
    def is_available(self) -> bool:
        """Whether the node accepts storage operations (not failed)."""
        return self.state != NodeState.FAILED

    @property
    def chunk_count(self) -> int:
        return len(self._chunks)

    @property
    def bytes_stored(self) -> int:
        return sum(len(chunk) for chunk in self._chunks.values())

    def fail(self) -> None:
        self.set_state(NodeState.FAILED)

    def recover(self) -> None:
        """Return to HEALTHY from any state."""
        self.set_state(NodeState.HEALTHY)

    def degrade(self) -> None:
        """Degrade a healthy node. No effect in any other state."""
        if self.state == NodeState.HEALTHY:
            self.set_state(NodeState.DEGRADED)

    def _require_available(self, operation: str) -> None:
        if self.state == NodeState.FAILED:
            raise NodeUnavailableError(self.node_id, operation)

    def store(self, key: str, data: bytes) -> None:
        """Store or overwrite the chunk under ``key``.

        Raises:
            NodeUnavailableError: If the node has failed.
        """
        self._require_available("store")
        replaced = self._chunks.get(key)
        self._chunks[key] = bytes(data)
        self._stats.record_write(len(data), None if replaced is None else len(replaced))

    def retrieve(self, key: str) -> bytes | None:
        """Return the chunk under ``key``, or None if it is not stored here.

        Raises:
            NodeUnavailableError: If the node has failed.
        """
        self._require_available("retrieve")
        self._stats.record_read()
        return self._chunks.get(key)

    def delete(self, key: str) -> None:
        """Remove the chunk under ``key``. Absent keys are ignored.

        Raises:
            NodeUnavailableError: If the node has failed.
        """
        self._require_available("delete")
        removed = self._chunks.pop(key, None)
        if removed is not None:
            self._stats.record_delete(len(removed))

    def list_keys(self) -> list[str]:
        """Keys stored on this node; empty while the node is failed."""
        if self.state == NodeState.FAILED:
            return []
        return list(self._chunks)

    def clear_data(self) -> None:
        """Drop every chunk and reset counters (simulated disk loss)."""
        self._chunks.clear()
        self._stats = StorageStats()

    def stats(self) -> StorageStats:
        """Copy of the current storage counters."""
        return copy.copy(self._stats)

    def __repr__(self) -> str:
        return f"Node({self.node_id}, {self.state}, chunks={self.chunk_count}, {self.latency_ms}ms)"
