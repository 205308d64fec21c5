"""
Exception hierarchy for the erasure-coding cluster simulator.

Every error carries a short machine-readable ``code`` alongside the
human-readable message so callers can branch without string matching.
"""


class ErasureSimError(Exception):
    """Base class for all simulator errors."""

    def __init__(self, message: str, code: str = "InternalError"):
        super().__init__(message)
        self.message = message
        self.code = code


class SchemeNotConfiguredError(ErasureSimError):
    """The cluster has no erasure coding scheme."""

    def __init__(self) -> None:
        super().__init__("No erasure coding scheme configured", "SchemeNotConfigured")


class NodeNotFoundError(ErasureSimError):
    """Node id is not registered in the cluster."""

    def __init__(self, node_id: int):
        super().__init__(f"Node {node_id} not found in cluster", "NodeNotFound")
        self.node_id = node_id


class NodeUnavailableError(ErasureSimError):
    """Storage operation attempted against a failed node."""

    def __init__(self, node_id: int, operation: str):
        super().__init__(
            f"Node {node_id} is failed and cannot {operation} data", "NodeUnavailable"
        )
        self.node_id = node_id
        self.operation = operation


class InsufficientNodesError(ErasureSimError):
    """Fewer nodes than the operation requires."""

    def __init__(self, needed: int, available: int):
        super().__init__(
            f"Not enough nodes: need {needed}, have {available}", "InsufficientNodes"
        )
        self.needed = needed
        self.available = available


class InsufficientChunksError(ErasureSimError):
    """Fewer than ``k`` chunks were available at decode time."""

    def __init__(self, needed: int, available: int):
        super().__init__(
            f"Cannot recover: need at least {needed} chunks, have {available}",
            "InsufficientChunks",
        )
        self.needed = needed
        self.available = available


class ChunkMismatchError(ErasureSimError):
    """Chunks handed to decode do not belong to one encoding."""

    def __init__(self, lengths: set[int]):
        super().__init__(
            f"Chunks of one payload must share the same length, got {sorted(lengths)}",
            "ChunkMismatch",
        )
        self.lengths = lengths


class UnsupportedRecoveryError(ErasureSimError):
    """The parity layout cannot rebuild the missing data chunks."""

    def __init__(self, message: str = "Multiple chunk recovery not supported by simple scheme"):
        super().__init__(message, "UnsupportedRecovery")


class NoAvailableNodesError(ErasureSimError):
    """A scenario needed an available node and found none."""

    def __init__(self) -> None:
        super().__init__("No healthy nodes available to fail", "NoAvailableNodes")
