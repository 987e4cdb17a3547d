"""
Merkle Tree Implementation

Append-only Merkle tree stored as an arena of node hashes.

Key features:
- Level-indexed storage: ``levels[k][i]`` is the root of the complete
  subtree covering leaves ``[i * 2**k, (i + 1) * 2**k)``
- RFC 6962 shape: the right-most node of an unbalanced level is carried up
  unchanged, never duplicated
- Roots, inclusion proofs and consistency proofs for any historical size

Clients use this to rebuild roots and to produce proofs in tests and
monitors. It is not a directory implementation.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

from .hashing import DEFAULT_HASHER, TreeHasher, largest_power_of_two_below


class MerkleTree:
    """
    Append-only Merkle tree over leaf hashes.

    Proof generation uses only complete subtrees from the arena plus the
    RFC 6962 split rule, so proofs for older sizes stay available after
    further appends.
    """

    def __init__(self, hasher: Optional[TreeHasher] = None):
        self._hasher = hasher or DEFAULT_HASHER
        self._levels: List[List[bytes]] = [[]]

    @property
    def hasher(self) -> TreeHasher:
        return self._hasher

    @property
    def size(self) -> int:
        return len(self._levels[0])

    def append(self, data: bytes) -> int:
        """
        Hash ``data`` as a leaf and append it.

        Returns the index of the added leaf.
        """
        return self.append_leaf_hash(self._hasher.hash_leaf(data))

    def extend(self, items: Iterable[bytes]) -> None:
        for data in items:
            self.append(data)

    def append_leaf_hash(self, leaf_hash: bytes) -> int:
        if len(leaf_hash) != self._hasher.digest_size:
            raise ValueError(
                f"Leaf hash must be {self._hasher.digest_size} bytes, got {len(leaf_hash)}"
            )
        index = self.size
        self._levels[0].append(bytes(leaf_hash))

        # Complete every subtree that this leaf closes.
        level = 0
        while len(self._levels[level]) % 2 == 0:
            nodes = self._levels[level]
            parent = self._hasher.hash_children(nodes[-2], nodes[-1])
            if level + 1 == len(self._levels):
                self._levels.append([])
            self._levels[level + 1].append(parent)
            level += 1

        return index

    def leaf_hash(self, index: int) -> bytes:
        if index < 0 or index >= self.size:
            raise ValueError(f"Invalid leaf index: {index}")
        return self._levels[0][index]

    def root(self, size: Optional[int] = None) -> bytes:
        """Root hash of the first ``size`` leaves (default: all)."""
        size = self._check_size(size)
        if size == 0:
            return self._hasher.empty_root()
        return self._subtree_hash(0, size)

    def inclusion_proof(self, index: int, size: Optional[int] = None) -> List[bytes]:
        """
        Audit path for leaf ``index`` in the tree of ``size`` leaves.

        Hashes are ordered from the leaf level up to the root.
        """
        size = self._check_size(size)
        if index < 0 or index >= size:
            raise ValueError(f"Invalid leaf index {index} for tree size {size}")
        return self._path(index, 0, size)

    def consistency_proof(self, old_size: int, new_size: Optional[int] = None) -> List[bytes]:
        """
        Hashes proving the tree of ``old_size`` is a prefix of ``new_size``.
        """
        new_size = self._check_size(new_size)
        if old_size < 0 or old_size > new_size:
            raise ValueError(f"Invalid consistency range {old_size}..{new_size}")
        if old_size == 0 or old_size == new_size:
            return []
        return self._subproof(old_size, 0, new_size, True)

    def _check_size(self, size: Optional[int]) -> int:
        if size is None:
            return self.size
        if size < 0 or size > self.size:
            raise ValueError(f"Invalid tree size {size} (current size {self.size})")
        return size

    def _subtree_hash(self, start: int, end: int) -> bytes:
        n = end - start
        if n & (n - 1) == 0 and start % n == 0:
            level = n.bit_length() - 1
            return self._levels[level][start >> level]
        k = largest_power_of_two_below(n)
        return self._hasher.hash_children(
            self._subtree_hash(start, start + k),
            self._subtree_hash(start + k, end),
        )

    def _path(self, index: int, start: int, end: int) -> List[bytes]:
        n = end - start
        if n == 1:
            return []
        k = largest_power_of_two_below(n)
        if index < start + k:
            return self._path(index, start, start + k) + [self._subtree_hash(start + k, end)]
        return self._path(index, start + k, end) + [self._subtree_hash(start, start + k)]

    def _subproof(self, m: int, start: int, end: int, complete: bool) -> List[bytes]:
        n = end - start
        if m == n:
            return [] if complete else [self._subtree_hash(start, end)]
        k = largest_power_of_two_below(n)
        if m <= k:
            return self._subproof(m, start, start + k, complete) + [
                self._subtree_hash(start + k, end)
            ]
        return self._subproof(m - k, start + k, end, False) + [
            self._subtree_hash(start, start + k)
        ]


def compute_merkle_root(leaf_hashes: List[bytes], hasher: Optional[TreeHasher] = None) -> bytes:
    """
    Compute the root from already-hashed leaves without keeping a tree.
    """
    tree = MerkleTree(hasher)
    for leaf_hash in leaf_hashes:
        tree.append_leaf_hash(leaf_hash)
    return tree.root()
