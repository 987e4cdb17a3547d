"""
Public client API for the key transparency verification core.

    client = TransparencyClient(TrustStore(JsonFileStateHook("trust.json")))
    client.initialize("ed25519:...")
    client.sync_to_latest(connector)
    status = client.lookup("https://example.social/users/alice")

The connector performs all network I/O and hands fully materialized tree
heads and proofs to the client. Nothing is retried inside the client: any
verification failure is raised to the caller and leaves both the in-memory
and persisted state untouched.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Protocol, Tuple, Union

from pkdverify.merkle.hashing import TreeHasher
from pkdverify.protocol.encoding import PublicKey
from pkdverify.protocol.errors import NotInitialized, ProofError, ProofMalformed
from pkdverify.protocol.models import (
    ConsistencyProof,
    ForkEvidence,
    IdentityKeyStatus,
    InclusionProof,
    LogEntry,
    SignedTreeHead,
    TrustedState,
    VerifiedEntry,
)
from pkdverify.store.hooks import InMemoryStateHook, JsonFileStateHook
from pkdverify.store.trust_store import TrustStore

from .resolver import KeyLookupResolver, verify_entry
from .settings import PKDSettings, get_settings
from .state_machine import ConsistencyStateMachine, Transition
from .validator import FreshnessPolicy, StaleWarning, STHValidator

logger = logging.getLogger(__name__)


class DirectoryConnector(Protocol):
    """
    Data source for tree heads and proofs (transport lives outside the core).
    """

    def fetch_sth(self) -> SignedTreeHead:
        ...

    def fetch_inclusion_proof(
        self, identity_or_index: Union[str, int]
    ) -> Tuple[LogEntry, InclusionProof]:
        """Latest entry for an identity, or the entry at a log index, with its proof."""
        ...

    def fetch_consistency_proof(self, old_size: int, new_size: int) -> ConsistencyProof:
        ...


class TransparencyClient:
    """
    Verifies a key transparency directory and answers key lookups.

    Thread-safe: syncs are serialized by the state machine's transition
    lock, lookups read immutable snapshots.
    """

    def __init__(
        self,
        store: Optional[TrustStore] = None,
        *,
        validator: Optional[STHValidator] = None,
        hasher: Optional[TreeHasher] = None,
        resolver: Optional[KeyLookupResolver] = None,
    ) -> None:
        self._store = store or TrustStore()
        self._validator = validator or STHValidator()
        self._hasher = hasher
        self._resolver = resolver or KeyLookupResolver()
        self._machine: Optional[ConsistencyStateMachine] = None
        self._last_warnings: List[StaleWarning] = []

    @classmethod
    def from_settings(cls, settings: Optional[PKDSettings] = None) -> "TransparencyClient":
        """
        Build a client from PKD_* settings, initializing it when a trust
        anchor is configured.
        """
        settings = settings or get_settings()
        hook = (
            JsonFileStateHook(settings.state_path)
            if settings.state_path
            else InMemoryStateHook()
        )
        policy = FreshnessPolicy(
            max_staleness_seconds=settings.max_staleness_seconds,
            max_clock_skew_seconds=settings.max_clock_skew_seconds,
        )
        client = cls(
            TrustStore(hook),
            validator=STHValidator(policy=policy),
            hasher=TreeHasher(settings.hash_algorithm),
        )
        anchor = settings.anchor_public_key()
        if anchor is not None:
            client.initialize(anchor)
        return client

    @property
    def store(self) -> TrustStore:
        return self._store

    @property
    def is_initialized(self) -> bool:
        return self._machine is not None

    @property
    def last_warnings(self) -> List[StaleWarning]:
        """Stale warnings reported by the most recent successful sync."""
        return list(self._last_warnings)

    @property
    def fork_events(self) -> List[ForkEvidence]:
        if self._machine is None:
            return []
        return self._machine.fork_events

    def initialize(self, trust_anchor_key: Union[PublicKey, str]) -> Optional[TrustedState]:
        """
        Bind the client to the directory's public key and load stored state.

        Returns the stored TrustedState, or None if nothing is trusted yet.

        Raises:
            SignatureInvalid: Stored tree head was not signed by this anchor
            PersistenceError: Stored state could not be read
        """
        anchor = (
            PublicKey.decode(trust_anchor_key)
            if isinstance(trust_anchor_key, str)
            else trust_anchor_key
        )
        state = self._store.load()
        if state is not None:
            self._validator.verify_signature(state.last_sth, anchor)

        self._machine = ConsistencyStateMachine(
            anchor,
            validator=self._validator,
            hasher=self._hasher,
            initial=state.last_sth if state is not None else None,
        )
        logger.info(
            "Initialized with anchor %s at tree size %d",
            anchor.encode(),
            state.tree_size if state is not None else 0,
        )
        return state

    def sync_to_latest(self, connector: DirectoryConnector) -> TrustedState:
        """
        Fetch the directory's latest tree head, verify it and every new entry,
        and commit the updated state.

        Raises:
            SignatureInvalid, StaleState: Tree head rejected
            ProofMalformed, ProofInvalid: A proof failed
            ForkDetected: Directory presented a divergent view
            PersistenceError: State could not be saved
        """
        machine = self._require_machine()

        with machine.transition_lock:
            trusted = machine.current
            candidate = connector.fetch_sth()

            proof = None
            if trusted is not None and candidate.tree_size > trusted.tree_size:
                proof = connector.fetch_consistency_proof(trusted.tree_size, candidate.tree_size)

            transition = machine.evaluate(candidate, proof)
            verified = self._collect_entries(connector, transition)

            current_state = self._store.snapshot()
            prior_map = current_state.identity_map if current_state is not None else {}
            updates = self._resolver.resolve_all(
                verified,
                up_to_index=candidate.tree_size - 1,
                prior_map=prior_map,
            )

            if current_state is None:
                new_state = TrustedState(last_sth=candidate, identity_map=updates)
            else:
                new_state = current_state.with_updates(candidate, updates)

            self._store.commit(new_state)
            machine.apply(transition)
            self._last_warnings = list(transition.validation.warnings)

        logger.info(
            "Synced tree size %d -> %d (%d entries, %d identities updated)",
            transition.old_size,
            transition.new_size,
            len(verified),
            len(updates),
        )
        return new_state

    def lookup(self, identity: str) -> IdentityKeyStatus:
        """
        Current trusted status for ``identity``.

        An identity with no enrollment resolves to an ``unknown`` status.
        """
        self._require_machine()
        state = self._store.snapshot()
        if state is None:
            return IdentityKeyStatus.unknown(identity)
        return state.status_for(identity)

    def current_tree_size(self) -> int:
        machine = self._require_machine()
        current = machine.current
        return current.tree_size if current is not None else 0

    def verify_identity_entry(
        self,
        connector: DirectoryConnector,
        identity_or_index: Union[str, int],
    ) -> VerifiedEntry:
        """
        Fetch one entry with its inclusion proof and verify it against the
        trusted tree head. Does not change trusted state.

        Raises:
            NotInitialized: No tree head is trusted yet
            ProofMalformed: Entry does not match the request
            ProofInvalid: Entry is not in the trusted tree
        """
        machine = self._require_machine()
        sth = machine.current
        if sth is None:
            raise NotInitialized("No trusted tree head; call sync_to_latest first")

        entry, proof = connector.fetch_inclusion_proof(identity_or_index)
        if isinstance(identity_or_index, str) and entry.identity != identity_or_index:
            raise ProofMalformed(
                f"Requested {identity_or_index} but directory returned {entry.identity}"
            )
        if isinstance(identity_or_index, int) and entry.log_index != identity_or_index:
            raise ProofMalformed(
                f"Requested index {identity_or_index} but directory returned {entry.log_index}"
            )
        return verify_entry(entry, proof, sth, self._hasher)

    def close(self) -> None:
        self._store.close()

    def __enter__(self) -> "TransparencyClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _require_machine(self) -> ConsistencyStateMachine:
        if self._machine is None:
            raise NotInitialized("Client has no trust anchor; call initialize() first")
        return self._machine

    def _collect_entries(
        self,
        connector: DirectoryConnector,
        transition: Transition,
    ) -> List[VerifiedEntry]:
        verified: List[VerifiedEntry] = []
        for index in range(transition.old_size, transition.new_size):
            entry, proof = connector.fetch_inclusion_proof(index)
            if entry.log_index != index:
                raise ProofMalformed(
                    f"Requested log index {index} but directory returned {entry.log_index}"
                )
            try:
                verified.append(verify_entry(entry, proof, transition.current, self._hasher))
            except ProofError as e:
                logger.warning("Inclusion check failed for log index %d: %s", index, e)
                raise
        return verified
