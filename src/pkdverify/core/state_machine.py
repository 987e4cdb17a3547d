"""
Consistency state machine for trusted tree heads.

States:
    Uninitialized -> Trusted(sth0) -> Trusted(sth1) -> ...

The first tree head is accepted on signature alone (trust on first use,
bound to the caller's trust anchor). Every later candidate must pass
signature and monotonicity validation and a consistency proof against the
trusted head.

CRITICAL INVARIANTS:
1. At most one transition is applied at a time
2. A failed candidate never changes the trusted head
3. A valid, correctly signed candidate that is not an append-only
   extension is a fork: ForkDetected is raised with evidence and the
   trusted head is kept
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import List, Optional

from pkdverify.merkle.hashing import TreeHasher
from pkdverify.merkle.proofs import verify_consistency
from pkdverify.protocol.encoding import PublicKey
from pkdverify.protocol.errors import (
    ForkDetected,
    ProofInvalid,
    ProofMalformed,
    SignatureInvalid,
    StaleState,
)
from pkdverify.protocol.models import ConsistencyProof, ForkEvidence, SignedTreeHead

from .validator import STHValidation, STHValidator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Transition:
    """
    An admissible move from ``previous`` to ``current``.

    Attributes:
        previous: Trusted head before the move (None when uninitialized)
        current: Candidate that passed validation
        validation: Validator result, including stale warnings
    """
    previous: Optional[SignedTreeHead]
    current: SignedTreeHead
    validation: STHValidation

    @property
    def first_use(self) -> bool:
        return self.previous is None

    @property
    def old_size(self) -> int:
        return self.previous.tree_size if self.previous is not None else 0

    @property
    def new_size(self) -> int:
        return self.current.tree_size


class ConsistencyStateMachine:
    """
    Tracks the trusted tree head and admits only consistent successors.

    ``evaluate`` checks a candidate without changing state; ``apply`` commits
    an evaluated transition; ``admit`` does both under the transition lock.
    """

    def __init__(
        self,
        trust_anchor_key: PublicKey,
        validator: Optional[STHValidator] = None,
        hasher: Optional[TreeHasher] = None,
        initial: Optional[SignedTreeHead] = None,
    ):
        self._anchor = trust_anchor_key
        self._validator = validator or STHValidator()
        self._hasher = hasher
        self._current = initial
        self._forks: List[ForkEvidence] = []
        self._lock = threading.Lock()

    @property
    def current(self) -> Optional[SignedTreeHead]:
        return self._current

    @property
    def is_initialized(self) -> bool:
        return self._current is not None

    @property
    def fork_events(self) -> List[ForkEvidence]:
        return list(self._forks)

    @property
    def transition_lock(self) -> threading.Lock:
        return self._lock

    def evaluate(
        self,
        candidate: SignedTreeHead,
        proof: Optional[ConsistencyProof] = None,
    ) -> Transition:
        """
        Decide whether ``candidate`` may follow the trusted head.

        Raises:
            SignatureInvalid, StaleState: Candidate failed validation
            ProofMalformed: Proof missing or structurally invalid
            ForkDetected: Candidate is signed but diverges from the trusted head
        """
        trusted = self._current

        if trusted is None:
            validation = self._validator.validate(candidate, self._anchor, None)
            logger.info("Trusting first tree head of size %d", candidate.tree_size)
            return Transition(previous=None, current=candidate, validation=validation)

        try:
            self._validator.verify_signature(candidate, self._anchor)
        except SignatureInvalid as e:
            logger.warning("Rejected tree head: %s", e)
            raise

        # Two signed roots for one size are equivocation whatever their timestamps.
        if candidate.tree_size == trusted.tree_size and candidate.root_hash != trusted.root_hash:
            raise self._fork(trusted, candidate, proof, "Equal tree sizes with differing roots")

        validation = self._validator.check_ordering(candidate, trusted)

        if candidate.tree_size == trusted.tree_size:
            return Transition(previous=trusted, current=candidate, validation=validation)

        if proof is None:
            raise ProofMalformed(
                f"Consistency proof required to move from {trusted.tree_size} "
                f"to {candidate.tree_size}"
            )

        try:
            verify_consistency(
                trusted.root_hash,
                trusted.tree_size,
                candidate.root_hash,
                candidate.tree_size,
                proof,
                self._hasher,
            )
        except ProofMalformed as e:
            logger.warning("Discarding candidate of size %d: %s", candidate.tree_size, e)
            raise
        except ProofInvalid as e:
            raise self._fork(trusted, candidate, proof, str(e)) from e

        return Transition(previous=trusted, current=candidate, validation=validation)

    def apply(self, transition: Transition) -> SignedTreeHead:
        """
        Commit an evaluated transition.

        Caller must hold ``transition_lock``.

        Raises:
            StaleState: If the trusted head changed since evaluation
        """
        if self._current is not transition.previous:
            raise StaleState("Trusted tree head changed since the transition was evaluated")
        self._current = transition.current
        logger.debug(
            "Trusted tree head advanced %d -> %d", transition.old_size, transition.new_size
        )
        return transition.current

    def admit(
        self,
        candidate: SignedTreeHead,
        proof: Optional[ConsistencyProof] = None,
    ) -> Transition:
        """Evaluate and apply ``candidate`` as one serialized step."""
        with self._lock:
            transition = self.evaluate(candidate, proof)
            self.apply(transition)
            return transition

    def _fork(
        self,
        trusted: SignedTreeHead,
        candidate: SignedTreeHead,
        proof: Optional[ConsistencyProof],
        reason: str,
    ) -> ForkDetected:
        evidence = ForkEvidence(
            trusted_sth=trusted,
            candidate_sth=candidate,
            consistency_proof=proof,
        )
        self._forks.append(evidence)
        logger.critical(
            "Fork detected between trusted size %d and candidate size %d: %s",
            trusted.tree_size,
            candidate.tree_size,
            reason,
        )
        return ForkDetected(
            f"Directory presented a divergent tree head at size {candidate.tree_size}: {reason}",
            evidence,
        )
