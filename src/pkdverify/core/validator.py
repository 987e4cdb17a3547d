"""
Signed tree head validation.

Checks, in order:
1. The directory signature over (tree_size, root_hash, timestamp)
2. Monotonicity against the previously accepted tree head (rollback)
3. Freshness policy: future timestamps beyond the allowed clock skew are
   rejected, old timestamps only produce a StaleWarning

Validation is stateless; the caller passes the previous tree head in.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from pkdverify.protocol.encoding import MERKLE_ROOT_LEN, PublicKey
from pkdverify.protocol.errors import SignatureInvalid, StaleState
from pkdverify.protocol.models import SignedTreeHead
from pkdverify.security.signing import SchemeRegistry, SignatureScheme, key_id_for
from pkdverify.utils.timestamps import now_epoch

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FreshnessPolicy:
    """
    Caller-supplied freshness bounds.

    Attributes:
        max_staleness_seconds: Age beyond which a StaleWarning is reported
            (None disables the check)
        max_clock_skew_seconds: How far a timestamp may lie in the future
            (None disables the check)
        clock: Returns the current time in seconds since epoch
    """
    max_staleness_seconds: Optional[int] = 86400
    max_clock_skew_seconds: Optional[int] = 300
    clock: Callable[[], int] = now_epoch


@dataclass(frozen=True)
class StaleWarning:
    """Non-fatal report that an otherwise valid tree head is old."""
    tree_size: int
    timestamp: int
    age_seconds: int
    max_staleness_seconds: int

    @property
    def message(self) -> str:
        return (
            f"Tree head of size {self.tree_size} is {self.age_seconds}s old "
            f"(limit {self.max_staleness_seconds}s)"
        )


@dataclass
class STHValidation:
    """Outcome of a successful validation."""
    sth: SignedTreeHead
    warnings: List[StaleWarning] = field(default_factory=list)

    @property
    def is_stale(self) -> bool:
        return bool(self.warnings)


class STHValidator:
    """
    Validates signed tree heads against a trust anchor.

    The signature primitive is injected; by default every scheme in a
    fresh SchemeRegistry (Ed25519) is accepted.
    """

    def __init__(
        self,
        scheme: Optional[SignatureScheme] = None,
        policy: Optional[FreshnessPolicy] = None,
    ):
        self._scheme = scheme or SchemeRegistry()
        self._policy = policy or FreshnessPolicy()

    @property
    def policy(self) -> FreshnessPolicy:
        return self._policy

    def verify_signature(self, sth: SignedTreeHead, trust_anchor_key: PublicKey) -> None:
        """
        Raises:
            SignatureInvalid: If the signature is missing or does not verify
        """
        if not sth.signature:
            raise SignatureInvalid(f"Tree head of size {sth.tree_size} is unsigned")
        if len(sth.root_hash) != MERKLE_ROOT_LEN:
            raise SignatureInvalid(
                f"Tree head root is {len(sth.root_hash)} bytes, expected {MERKLE_ROOT_LEN}"
            )
        if sth.key_id is not None and sth.key_id != key_id_for(trust_anchor_key):
            raise SignatureInvalid(
                f"Tree head signed by key {sth.key_id}, expected {key_id_for(trust_anchor_key)}"
            )
        if not self._scheme.verify(trust_anchor_key, sth.signing_payload(), sth.signature):
            raise SignatureInvalid(
                f"Signature on tree head of size {sth.tree_size} does not verify"
            )

    def validate(
        self,
        sth: SignedTreeHead,
        trust_anchor_key: PublicKey,
        previous_sth: Optional[SignedTreeHead] = None,
    ) -> STHValidation:
        """
        Validate ``sth``.

        Raises:
            SignatureInvalid: Bad or missing signature
            StaleState: Tree head older or smaller than ``previous_sth``, or
                dated beyond the allowed clock skew
        """
        try:
            self.verify_signature(sth, trust_anchor_key)
        except SignatureInvalid as e:
            logger.warning("Rejected tree head: %s", e)
            raise
        return self.check_ordering(sth, previous_sth)

    def check_ordering(
        self,
        sth: SignedTreeHead,
        previous_sth: Optional[SignedTreeHead] = None,
    ) -> STHValidation:
        """
        Monotonicity and freshness checks for a tree head whose signature
        has already been verified.

        Raises:
            StaleState: Tree head older or smaller than ``previous_sth``, or
                dated beyond the allowed clock skew
        """
        if previous_sth is not None:
            if sth.tree_size < previous_sth.tree_size:
                logger.warning(
                    "Rollback: tree size %d < trusted %d", sth.tree_size, previous_sth.tree_size
                )
                raise StaleState(
                    f"Tree size {sth.tree_size} is smaller than trusted size "
                    f"{previous_sth.tree_size}"
                )
            if sth.timestamp < previous_sth.timestamp:
                logger.warning(
                    "Rollback: timestamp %d < trusted %d", sth.timestamp, previous_sth.timestamp
                )
                raise StaleState(
                    f"Tree head timestamp {sth.timestamp} is earlier than trusted "
                    f"timestamp {previous_sth.timestamp}"
                )

        result = STHValidation(sth=sth)
        now = self._policy.clock()

        skew = self._policy.max_clock_skew_seconds
        if skew is not None and sth.timestamp > now + skew:
            logger.warning("Tree head timestamp %d is in the future (now %d)", sth.timestamp, now)
            raise StaleState(
                f"Tree head timestamp {sth.timestamp} is more than {skew}s ahead of local time"
            )

        max_age = self._policy.max_staleness_seconds
        age = now - sth.timestamp
        if max_age is not None and age > max_age:
            warning = StaleWarning(
                tree_size=sth.tree_size,
                timestamp=sth.timestamp,
                age_seconds=age,
                max_staleness_seconds=max_age,
            )
            logger.warning("Stale tree head: %s", warning.message)
            result.warnings.append(warning)

        return result
