"""
Domain-separated Merkle hashing.

Leaf nodes are prefixed with 0x00 and internal nodes with 0x01 so that a leaf
can never be reinterpreted as an internal node (second-preimage attacks).
"""

from __future__ import annotations

import hashlib

LEAF_PREFIX = b"\x00"
NODE_PREFIX = b"\x01"

# Merkle roots are published as 32-byte values.
DIGEST_SIZE = 32


class TreeHasher:
    """
    Hash primitives for one digest algorithm.

    Only algorithms producing 32-byte digests are accepted, matching the
    ``pkd-mr-v1`` root encoding.
    """

    def __init__(self, algorithm: str = "sha256"):
        try:
            probe = hashlib.new(algorithm)
        except ValueError as e:
            raise ValueError(f"Unsupported hash algorithm: {algorithm}") from e
        if probe.digest_size != DIGEST_SIZE:
            raise ValueError(
                f"Hash algorithm {algorithm} has digest size {probe.digest_size}, "
                f"expected {DIGEST_SIZE}"
            )
        self._algorithm = algorithm

    @property
    def algorithm(self) -> str:
        return self._algorithm

    @property
    def digest_size(self) -> int:
        return DIGEST_SIZE

    def empty_root(self) -> bytes:
        return hashlib.new(self._algorithm).digest()

    def hash_leaf(self, data: bytes) -> bytes:
        hasher = hashlib.new(self._algorithm)
        hasher.update(LEAF_PREFIX)
        hasher.update(data)
        return hasher.digest()

    def hash_children(self, left: bytes, right: bytes) -> bytes:
        hasher = hashlib.new(self._algorithm)
        hasher.update(NODE_PREFIX)
        hasher.update(left)
        hasher.update(right)
        return hasher.digest()

    def __repr__(self) -> str:
        return f"TreeHasher({self._algorithm!r})"


DEFAULT_HASHER = TreeHasher()


def hash_leaf(data: bytes) -> bytes:
    return DEFAULT_HASHER.hash_leaf(data)


def hash_children(left: bytes, right: bytes) -> bytes:
    return DEFAULT_HASHER.hash_children(left, right)


def largest_power_of_two_below(n: int) -> int:
    """Largest power of two strictly less than ``n`` (n > 1)."""
    if n < 2:
        raise ValueError("n must be greater than 1")
    return 1 << ((n - 1).bit_length() - 1)
