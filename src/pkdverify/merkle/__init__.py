"""
Merkle primitives for the key transparency log.

Key concepts:
- Domain-separated leaf and node hashing
- Arena-backed append-only tree with RFC 6962 shape
- Pure inclusion and consistency proof verification
"""

from pkdverify.merkle.hashing import (
    TreeHasher,
    DEFAULT_HASHER,
    hash_leaf,
    hash_children,
)

from pkdverify.merkle.tree import (
    MerkleTree,
    compute_merkle_root,
)

from pkdverify.merkle.proofs import (
    verify_inclusion,
    verify_consistency,
    root_from_inclusion_proof,
    expected_inclusion_path_length,
    expected_consistency_path_length,
)

__all__ = [
    # Hashing
    "TreeHasher",
    "DEFAULT_HASHER",
    "hash_leaf",
    "hash_children",
    # Tree
    "MerkleTree",
    "compute_merkle_root",
    # Verification
    "verify_inclusion",
    "verify_consistency",
    "root_from_inclusion_proof",
    "expected_inclusion_path_length",
    "expected_consistency_path_length",
]
