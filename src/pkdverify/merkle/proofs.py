"""
Merkle proof verification.

Inclusion and consistency checks follow RFC 9162 section 2.1. Every function
is a pure function of its arguments, so independent proofs can be verified
concurrently.

Structural problems (index outside the tree, wrong path length, hashes of
the wrong size) raise ProofMalformed before any hashing is done. A proof that
is well formed but does not reproduce the expected root raises ProofInvalid.
"""

from __future__ import annotations

import hmac
from typing import Optional, Sequence, Union

from pkdverify.protocol.errors import ProofInvalid, ProofMalformed
from pkdverify.protocol.models import ConsistencyProof, InclusionProof, LogEntry

from .hashing import DEFAULT_HASHER, TreeHasher, largest_power_of_two_below


# ===========================================================================
# Expected path lengths
# ===========================================================================


def expected_inclusion_path_length(leaf_index: int, tree_size: int) -> int:
    """Number of audit path hashes for ``leaf_index`` in a tree of ``tree_size``."""
    if tree_size < 1 or leaf_index < 0 or leaf_index >= tree_size:
        raise ProofMalformed(f"Leaf index {leaf_index} outside tree of size {tree_size}")
    length = 0
    index, size = leaf_index, tree_size
    while size > 1:
        k = largest_power_of_two_below(size)
        if index < k:
            size = k
        else:
            index -= k
            size -= k
        length += 1
    return length


def expected_consistency_path_length(old_size: int, new_size: int) -> int:
    """Number of hashes in a consistency proof from ``old_size`` to ``new_size``."""
    if old_size < 0 or old_size > new_size:
        raise ProofMalformed(f"Invalid consistency range {old_size}..{new_size}")
    if old_size == 0 or old_size == new_size:
        return 0
    length = 0
    m, n, complete = old_size, new_size, True
    while m != n:
        k = largest_power_of_two_below(n)
        if m <= k:
            n = k
        else:
            m -= k
            n -= k
            complete = False
        length += 1
    return length if complete else length + 1


def _check_hashes(hashes: Sequence[bytes], hasher: TreeHasher, what: str) -> None:
    for position, node in enumerate(hashes):
        if not isinstance(node, (bytes, bytearray)) or len(node) != hasher.digest_size:
            raise ProofMalformed(
                f"{what} hash {position} is not a {hasher.digest_size}-byte digest"
            )


# ===========================================================================
# Inclusion
# ===========================================================================


def root_from_inclusion_proof(
    leaf_hash: bytes,
    leaf_index: int,
    tree_size: int,
    audit_path: Sequence[bytes],
    hasher: Optional[TreeHasher] = None,
) -> bytes:
    """
    Recompute the root implied by ``leaf_hash`` and its audit path.

    Raises:
        ProofMalformed: If the path length does not fit the index and size
    """
    hasher = hasher or DEFAULT_HASHER
    expected = expected_inclusion_path_length(leaf_index, tree_size)
    if len(audit_path) != expected:
        raise ProofMalformed(
            f"Audit path for leaf {leaf_index} in tree of size {tree_size} "
            f"must have {expected} hashes, got {len(audit_path)}"
        )
    _check_hashes([leaf_hash], hasher, "Leaf")
    _check_hashes(audit_path, hasher, "Audit path")

    fn, sn = leaf_index, tree_size - 1
    node = bytes(leaf_hash)
    for sibling in audit_path:
        if fn & 1 or fn == sn:
            node = hasher.hash_children(sibling, node)
            # Skip levels where this node is carried up without a sibling.
            while not fn & 1 and fn != 0:
                fn >>= 1
                sn >>= 1
        else:
            node = hasher.hash_children(node, sibling)
        fn >>= 1
        sn >>= 1

    if sn != 0:
        raise ProofMalformed("Audit path ended before reaching the root")
    return node


def verify_inclusion(
    leaf: Union[bytes, LogEntry],
    proof: InclusionProof,
    root_hash: bytes,
    tree_size: int,
    hasher: Optional[TreeHasher] = None,
) -> None:
    """
    Verify that ``leaf`` is present at ``proof.leaf_index`` under ``root_hash``.

    Args:
        leaf: Raw leaf bytes or the LogEntry whose canonical bytes are hashed
        proof: Inclusion proof from the directory
        root_hash: Root of the tree the proof is checked against
        tree_size: Size of that tree

    Raises:
        ProofMalformed: Structurally invalid proof
        ProofInvalid: Recomputed root differs from ``root_hash``
    """
    hasher = hasher or DEFAULT_HASHER
    if proof.tree_size is not None and proof.tree_size != tree_size:
        raise ProofMalformed(
            f"Proof was generated for tree size {proof.tree_size}, not {tree_size}"
        )
    data = leaf.leaf_bytes() if isinstance(leaf, LogEntry) else leaf
    computed = root_from_inclusion_proof(
        hasher.hash_leaf(data),
        proof.leaf_index,
        tree_size,
        proof.audit_path,
        hasher,
    )
    if not hmac.compare_digest(computed, root_hash):
        raise ProofInvalid(
            f"Inclusion proof for leaf {proof.leaf_index} does not match root "
            f"of tree size {tree_size}"
        )


# ===========================================================================
# Consistency
# ===========================================================================


def verify_consistency(
    old_root: bytes,
    old_size: int,
    new_root: bytes,
    new_size: int,
    proof: ConsistencyProof,
    hasher: Optional[TreeHasher] = None,
) -> None:
    """
    Verify that the tree at ``old_size`` is a prefix of the tree at ``new_size``.

    Raises:
        ProofMalformed: ``old_size > new_size``, sizes disagreeing with the
            proof, or a path of the wrong length
        ProofInvalid: Path does not reproduce both roots
    """
    hasher = hasher or DEFAULT_HASHER
    if old_size > new_size:
        raise ProofMalformed(f"Old size {old_size} is larger than new size {new_size}")
    if proof.old_size != old_size or proof.new_size != new_size:
        raise ProofMalformed(
            f"Proof covers {proof.old_size}..{proof.new_size}, expected {old_size}..{new_size}"
        )

    path = list(proof.path)
    expected = expected_consistency_path_length(old_size, new_size)
    if len(path) != expected:
        raise ProofMalformed(
            f"Consistency path {old_size}..{new_size} must have {expected} hashes, "
            f"got {len(path)}"
        )
    _check_hashes(path, hasher, "Consistency path")

    if old_size == 0:
        # Every tree extends the empty tree.
        return
    if old_size == new_size:
        if not hmac.compare_digest(old_root, new_root):
            raise ProofInvalid(f"Roots differ for equal tree size {old_size}")
        return

    # A complete old tree is its own first node.
    if old_size & (old_size - 1) == 0:
        path.insert(0, bytes(old_root))

    fn, sn = old_size - 1, new_size - 1
    while fn & 1:
        fn >>= 1
        sn >>= 1

    old_node = new_node = path[0]
    for node in path[1:]:
        if sn == 0:
            raise ProofMalformed("Consistency path is longer than the tree height")
        if fn & 1 or fn == sn:
            old_node = hasher.hash_children(node, old_node)
            new_node = hasher.hash_children(node, new_node)
            while not fn & 1 and fn != 0:
                fn >>= 1
                sn >>= 1
        else:
            new_node = hasher.hash_children(new_node, node)
        fn >>= 1
        sn >>= 1

    if sn != 0:
        raise ProofMalformed("Consistency path ended before reaching the root")
    if not hmac.compare_digest(old_node, old_root):
        raise ProofInvalid(f"Consistency proof does not reproduce root of size {old_size}")
    if not hmac.compare_digest(new_node, new_root):
        raise ProofInvalid(f"Consistency proof does not reproduce root of size {new_size}")
