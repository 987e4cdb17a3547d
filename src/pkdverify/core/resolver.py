"""
Key lookup resolution.

Folds inclusion-verified log entries for an identity, in log index order,
into a single IdentityKeyStatus:

- Enrollment sets the active key
- Revocation clears it (revoked)
- Pruning marks the identity forgotten and drops key material from the
  result; the pruning leaf itself stays in the log and remains provable

Only VerifiedEntry objects are folded. They are produced by verify_entry,
which checks the entry against the trusted tree head and ties its claimed
log index to the proven leaf position.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Mapping, Optional

from pkdverify.merkle.hashing import TreeHasher
from pkdverify.merkle.proofs import verify_inclusion
from pkdverify.protocol.enums import EntryKind, KeyState
from pkdverify.protocol.errors import ProofMalformed
from pkdverify.protocol.models import (
    IdentityKeyStatus,
    InclusionProof,
    LogEntry,
    SignedTreeHead,
    VerifiedEntry,
)

logger = logging.getLogger(__name__)


def verify_entry(
    entry: LogEntry,
    proof: InclusionProof,
    sth: SignedTreeHead,
    hasher: Optional[TreeHasher] = None,
) -> VerifiedEntry:
    """
    Prove ``entry`` is in the tree committed to by ``sth``.

    Raises:
        ProofMalformed: Proof is for another position or tree size, or has
            the wrong shape
        ProofInvalid: Proof does not reproduce the tree head's root
    """
    if proof.leaf_index != entry.log_index:
        raise ProofMalformed(
            f"Entry claims log index {entry.log_index} but proof is for leaf {proof.leaf_index}"
        )
    if entry.log_index >= sth.tree_size:
        raise ProofMalformed(
            f"Entry index {entry.log_index} is not covered by tree size {sth.tree_size}"
        )
    verify_inclusion(entry, proof, sth.root_hash, sth.tree_size, hasher)
    return VerifiedEntry(entry=entry, tree_size=sth.tree_size, root_hash=sth.root_hash)


class KeyLookupResolver:
    """
    Turns verified log entries into per-identity key status.

    Stateless: the previous status, if any, is passed in as ``prior`` so
    resolution can continue incrementally from an earlier tree head.
    """

    def resolve(
        self,
        identity: str,
        entries: Iterable[VerifiedEntry],
        up_to_index: int,
        prior: Optional[IdentityKeyStatus] = None,
    ) -> IdentityKeyStatus:
        """
        Resolve the status of ``identity`` considering entries up to and
        including ``up_to_index``.

        Raises:
            TypeError: If an entry was not inclusion-verified
            ValueError: If two different entries claim the same index
        """
        status = prior if prior is not None else IdentityKeyStatus.unknown(identity)
        if status.identity != identity:
            raise ValueError(f"Prior status is for {status.identity}, not {identity}")

        floor = status.as_of_index if status.as_of_index is not None else -1
        for verified in self._ordered(entries, identity, floor, up_to_index):
            status = self._fold(status, verified.entry)

        return status

    def resolve_all(
        self,
        entries: Iterable[VerifiedEntry],
        up_to_index: int,
        prior_map: Optional[Mapping[str, IdentityKeyStatus]] = None,
    ) -> Dict[str, IdentityKeyStatus]:
        """
        Resolve every identity touched by ``entries``.

        Returns statuses for touched identities only; untouched identities
        keep whatever status the caller already holds.
        """
        prior_map = prior_map or {}
        grouped: Dict[str, List[VerifiedEntry]] = defaultdict(list)
        for verified in entries:
            self._check_verified(verified)
            grouped[verified.identity].append(verified)

        return {
            identity: self.resolve(identity, group, up_to_index, prior_map.get(identity))
            for identity, group in grouped.items()
        }

    @staticmethod
    def _check_verified(verified: object) -> None:
        if not isinstance(verified, VerifiedEntry):
            raise TypeError(
                f"Resolver only accepts inclusion-verified entries, got {type(verified).__name__}"
            )

    def _ordered(
        self,
        entries: Iterable[VerifiedEntry],
        identity: str,
        floor: int,
        up_to_index: int,
    ) -> List[VerifiedEntry]:
        by_index: Dict[int, VerifiedEntry] = {}
        for verified in entries:
            self._check_verified(verified)
            index = verified.log_index
            if verified.identity != identity or index <= floor or index > up_to_index:
                continue
            existing = by_index.get(index)
            if existing is not None and existing.entry != verified.entry:
                raise ValueError(f"Conflicting entries at log index {index}")
            by_index[index] = verified
        return [by_index[index] for index in sorted(by_index)]

    @staticmethod
    def _fold(status: IdentityKeyStatus, entry: LogEntry) -> IdentityKeyStatus:
        if entry.kind is EntryKind.ENROLLMENT:
            new_status = IdentityKeyStatus(
                identity=entry.identity,
                state=KeyState.ACTIVE,
                active_key=entry.key_material,
                as_of_index=entry.log_index,
            )
        elif entry.kind is EntryKind.REVOCATION:
            new_status = IdentityKeyStatus(
                identity=entry.identity,
                state=KeyState.REVOKED,
                as_of_index=entry.log_index,
            )
        else:
            new_status = IdentityKeyStatus(
                identity=entry.identity,
                state=KeyState.FORGOTTEN,
                as_of_index=entry.log_index,
            )
        logger.debug(
            "%s: %s -> %s at index %d",
            entry.identity,
            status.state.value,
            new_status.state.value,
            entry.log_index,
        )
        return new_status
