"""
Base interface for erasure coding schemes.
"""

from abc import ABC, abstractmethod
from typing import Sequence


class ErasureScheme(ABC):
    """Abstract base class for erasure coding schemes."""

    @abstractmethod
    def encode(self, data: bytes) -> list[bytes]:
        """Split data into data chunks plus parity chunks.

        Args:
            data: Payload to protect.

        Returns:
            Exactly ``total_chunks`` chunks of identical length, data
            chunks first.
        """
        pass

    @abstractmethod
    def decode(
        self, chunks: Sequence[bytes | None], original_length: int | None = None
    ) -> bytes:
        """Rebuild the payload from the available chunks.

        Args:
            chunks: One entry per chunk position; ``None`` marks a lost chunk.
            original_length: Payload length recorded at encode time. When
                given, padding is removed by truncation instead of stripping
                trailing zero bytes.

        Returns:
            The reconstructed payload.
        """
        pass

    @abstractmethod
    def chunk_size(self, payload_length: int) -> int:
        """Size of every chunk produced for a payload of this length."""
        pass

    @abstractmethod
    def can_recover(self, available_chunks: int) -> bool:
        """Check whether this many chunks are enough to attempt a decode."""
        pass

    @property
    @abstractmethod
    def data_chunks(self) -> int:
        """Number of data chunks (k)."""
        pass

    @property
    @abstractmethod
    def parity_chunks(self) -> int:
        """Number of parity chunks (m)."""
        pass

    @property
    def total_chunks(self) -> int:
        """Total number of chunks produced per payload (k + m)."""
        return self.data_chunks + self.parity_chunks
