"""
Erasure coding schemes.

A scheme turns a byte payload into ``data + parity`` chunks that can be
spread across storage nodes, and rebuilds the payload from whichever
chunks survive.
"""

from .base import ErasureScheme
from .simple_parity import SimpleParityScheme


def create_simple_parity(data_chunks: int, parity_chunks: int) -> ErasureScheme:
    """Create an XOR parity scheme with ``data_chunks`` + ``parity_chunks``."""
    return SimpleParityScheme(data_chunks, parity_chunks)


__all__ = [
    "ErasureScheme",
    "SimpleParityScheme",
    "create_simple_parity",
]
