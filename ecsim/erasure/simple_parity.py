"""
Simple XOR parity erasure coding.

Splits a payload into ``k`` equal chunks and derives ``m`` parity chunks by
XOR-ing fixed subsets of the data chunks. This is not an MDS code: it can
rebuild at most one missing data chunk, regardless of ``m``.
"""

from typing import Sequence

import numpy as np

from ..errors import ChunkMismatchError, InsufficientChunksError, UnsupportedRecoveryError
from .base import ErasureScheme


class SimpleParityScheme(ErasureScheme):
    """XOR parity scheme.

    Parity chunk 0 is the XOR of every data chunk. Parity chunk ``p >= 1``
    is the XOR of the data chunks ``i`` with ``(i + p) % (p + 1) == 0``.

    Args:
        data_chunks: Number of data chunks (k). Must be at least 1.
        parity_chunks: Number of parity chunks (m). Must be non-negative.
    """

    def __init__(self, data_chunks: int, parity_chunks: int):
        if data_chunks < 1:
            raise ValueError(f"data_chunks must be at least 1, got {data_chunks}")
        if parity_chunks < 0:
            raise ValueError(f"parity_chunks must be non-negative, got {parity_chunks}")
        self._data_chunks = data_chunks
        self._parity_chunks = parity_chunks

    @property
    def data_chunks(self) -> int:
        return self._data_chunks

    @property
    def parity_chunks(self) -> int:
        return self._parity_chunks

    def parity_membership(self, parity_index: int) -> tuple[int, ...]:
        """Data chunk indices XOR-ed into the given parity chunk."""
        if not 0 <= parity_index < self._parity_chunks:
            raise ValueError(
                f"parity_index must be in [0, {self._parity_chunks}), got {parity_index}"
            )
        if parity_index == 0:
            return tuple(range(self._data_chunks))
        p = parity_index
        return tuple(i for i in range(self._data_chunks) if (i + p) % (p + 1) == 0)

    def chunk_size(self, payload_length: int) -> int:
        return -(-payload_length // self._data_chunks)

    def _split_data(self, data: bytes) -> list[bytes]:
        """Split data into k chunks, zero-padding the tail."""
        if not data:
            return [b""] * self._data_chunks

        size = self.chunk_size(len(data))
        padded = data.ljust(size * self._data_chunks, b"\x00")
        return [padded[i * size:(i + 1) * size] for i in range(self._data_chunks)]

    def _create_parity_chunks(self, data_chunks: list[bytes]) -> list[bytes]:
        size = len(data_chunks[0])
        blocks = np.frombuffer(b"".join(data_chunks), dtype=np.uint8).reshape(
            self._data_chunks, size
        )

        parity = []
        for p in range(self._parity_chunks):
            members = list(self.parity_membership(p))
            if members:
                combined = np.bitwise_xor.reduce(blocks[members], axis=0)
            else:
                combined = np.zeros(size, dtype=np.uint8)
            parity.append(combined.tobytes())
        return parity

    def encode(self, data: bytes) -> list[bytes]:
        data_chunks = self._split_data(bytes(data))
        return data_chunks + self._create_parity_chunks(data_chunks)

    def _rebuild_chunk(self, chunks: Sequence[bytes | None], missing: int) -> bytes:
        """Rebuild one data chunk from a parity chunk that covers it."""
        for p in range(self._parity_chunks):
            parity = chunks[self._data_chunks + p]
            if parity is None:
                continue
            members = self.parity_membership(p)
            if missing not in members:
                continue

            rebuilt = np.frombuffer(parity, dtype=np.uint8).copy()
            for i in members:
                if i != missing:
                    rebuilt ^= np.frombuffer(chunks[i], dtype=np.uint8)
            return rebuilt.tobytes()

        raise UnsupportedRecoveryError(
            f"No available parity chunk covers data chunk {missing}"
        )

    def decode(
        self, chunks: Sequence[bytes | None], original_length: int | None = None
    ) -> bytes:
        if len(chunks) != self.total_chunks:
            raise ValueError(f"Expected {self.total_chunks} chunks, got {len(chunks)}")

        present = [c for c in chunks if c is not None]
        if not self.can_recover(len(present)):
            raise InsufficientChunksError(self._data_chunks, len(present))
        lengths = {len(c) for c in present}
        if len(lengths) > 1:
            raise ChunkMismatchError(lengths)

        data = list(chunks[:self._data_chunks])
        missing = [i for i, chunk in enumerate(data) if chunk is None]
        if len(missing) > 1:
            raise UnsupportedRecoveryError()
        if missing:
            data[missing[0]] = self._rebuild_chunk(chunks, missing[0])

        payload = b"".join(data)
        if original_length is not None:
            return payload[:original_length]
        # Without a recorded length, padding is indistinguishable from
        # trailing zero bytes in the payload itself.
        return payload.rstrip(b"\x00")

    def can_recover(self, available_chunks: int) -> bool:
        return available_chunks >= self._data_chunks

    def __repr__(self) -> str:
        return f"SimpleParityScheme(k={self._data_chunks}, m={self._parity_chunks})"
