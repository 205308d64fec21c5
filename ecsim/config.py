"""
Cluster configuration.
"""

from dataclasses import dataclass

from .erasure import ErasureScheme, create_simple_parity
from .storage import Cluster


@dataclass
class ClusterConfig:
    """Shape of an erasure-coded cluster.

    Attributes:
        data_chunks: Number of data chunks per payload (k).
        parity_chunks: Number of parity chunks per payload (m).
        total_nodes: Number of storage nodes. Must hold every chunk.
        chunk_size: Nominal chunk size in bytes. Durability trials store a
            payload of ``payload_size`` bytes unless told otherwise.
    """

    data_chunks: int = 4
    parity_chunks: int = 2
    total_nodes: int = 6
    chunk_size: int = 1024

    def __post_init__(self) -> None:
        if self.data_chunks <= 0:
            raise ValueError("Data chunks must be greater than 0")
        if self.parity_chunks <= 0:
            raise ValueError("Parity chunks must be greater than 0")
        if self.total_nodes < self.total_chunks:
            raise ValueError(
                f"Total nodes ({self.total_nodes}) must be at least "
                f"data_chunks + parity_chunks ({self.total_chunks})"
            )
        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")

    @classmethod
    def for_scheme(cls, data_chunks: int, parity_chunks: int) -> "ClusterConfig":
        """One node per chunk."""
        return cls(
            data_chunks=data_chunks,
            parity_chunks=parity_chunks,
            total_nodes=data_chunks + parity_chunks,
        )

    @property
    def total_chunks(self) -> int:
        return self.data_chunks + self.parity_chunks

    @property
    def payload_size(self) -> int:
        """Payload length that encodes to chunks of ``chunk_size`` bytes."""
        return self.chunk_size * self.data_chunks

    @property
    def max_failures(self) -> int:
        """Nominal number of node failures the layout is meant to absorb."""
        return self.parity_chunks

    def build_scheme(self) -> ErasureScheme:
        return create_simple_parity(self.data_chunks, self.parity_chunks)

    def build_cluster(self) -> Cluster:
        """Create a healthy cluster with the configured scheme."""
        return Cluster.with_nodes(self.total_nodes, self.build_scheme())
