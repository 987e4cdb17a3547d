"""
Shared fixtures: an in-process directory that publishes signed tree heads
and serves proofs through the DirectoryConnector interface.
"""

import os
from typing import List, Optional, Tuple, Union

import pytest
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from pkdverify.core.validator import FreshnessPolicy, STHValidator
from pkdverify.merkle.tree import MerkleTree
from pkdverify.protocol.encoding import PublicKey
from pkdverify.protocol.enums import EntryKind
from pkdverify.protocol.models import (
    ConsistencyProof,
    InclusionProof,
    LogEntry,
    SignedTreeHead,
)
from pkdverify.security.signing import Ed25519TreeHeadSigner

NOW = 1_760_000_000


def fixed_clock() -> int:
    return NOW


def new_user_key() -> PublicKey:
    return PublicKey.ed25519(os.urandom(32))


class FakeDirectory:
    """
    Minimal honest directory: appends entries, publishes signed tree heads
    and answers proof requests for the last published size.
    """

    def __init__(self, signer: Optional[Ed25519TreeHeadSigner] = None, start_time: int = NOW - 3600):
        self.signer = signer or Ed25519TreeHeadSigner.generate()
        self.tree = MerkleTree()
        self.entries: List[LogEntry] = []
        self.clock = start_time
        self.published: Optional[SignedTreeHead] = None
        self.calls: List[str] = []

    def _append(self, kind: EntryKind, identity: str, key: Optional[PublicKey]) -> LogEntry:
        self.clock += 1
        entry = LogEntry(
            kind=kind,
            identity=identity,
            log_index=len(self.entries),
            timestamp=self.clock,
            key_material=key,
        )
        self.entries.append(entry)
        self.tree.append(entry.leaf_bytes())
        return entry

    def enroll(self, identity: str, key: Optional[PublicKey] = None) -> LogEntry:
        return self._append(EntryKind.ENROLLMENT, identity, key or new_user_key())

    def revoke(self, identity: str, key: Optional[PublicKey] = None) -> LogEntry:
        return self._append(EntryKind.REVOCATION, identity, key)

    def prune(self, identity: str) -> LogEntry:
        return self._append(EntryKind.PRUNING, identity, None)

    def filler(self, count: int) -> None:
        for i in range(count):
            self.enroll(f"https://filler.example/users/{len(self.entries)}-{i}")

    def sign(self, size: Optional[int] = None, timestamp: Optional[int] = None) -> SignedTreeHead:
        size = self.tree.size if size is None else size
        self.clock += 1
        return self.signer.sign_tree_head(
            size, self.tree.root(size), self.clock if timestamp is None else timestamp
        )

    def publish(self) -> SignedTreeHead:
        self.published = self.sign()
        return self.published

    # DirectoryConnector

    def fetch_sth(self) -> SignedTreeHead:
        self.calls.append("sth")
        assert self.published is not None
        return self.published

    def fetch_inclusion_proof(
        self, identity_or_index: Union[str, int]
    ) -> Tuple[LogEntry, InclusionProof]:
        self.calls.append(f"inclusion:{identity_or_index}")
        size = self.published.tree_size
        if isinstance(identity_or_index, int):
            entry = self.entries[identity_or_index]
        else:
            entry = [
                e for e in self.entries[:size] if e.identity == identity_or_index
            ][-1]
        path = self.tree.inclusion_proof(entry.log_index, size)
        return entry, InclusionProof(leaf_index=entry.log_index, audit_path=path, tree_size=size)

    def fetch_consistency_proof(self, old_size: int, new_size: int) -> ConsistencyProof:
        self.calls.append(f"consistency:{old_size}:{new_size}")
        return ConsistencyProof(
            old_size=old_size,
            new_size=new_size,
            path=self.tree.consistency_proof(old_size, new_size),
        )


class ForkedDirectory(FakeDirectory):
    """
    Serves a second tree that shares the anchor key but rewrites history.
    """

    def __init__(self, honest: FakeDirectory, rewrite_index: int):
        super().__init__(signer=honest.signer, start_time=honest.clock)
        for entry in honest.entries:
            if entry.log_index == rewrite_index:
                entry = LogEntry(
                    kind=entry.kind,
                    identity=entry.identity,
                    log_index=entry.log_index,
                    timestamp=entry.timestamp,
                    key_material=new_user_key() if entry.key_material else None,
                )
            self.entries.append(entry)
            self.tree.append(entry.leaf_bytes())


@pytest.fixture
def signer():
    """Directory signing key."""
    return Ed25519TreeHeadSigner(Ed25519PrivateKey.generate())


@pytest.fixture
def directory(signer):
    return FakeDirectory(signer)


@pytest.fixture
def anchor(signer):
    return signer.public_key


@pytest.fixture
def policy():
    return FreshnessPolicy(
        max_staleness_seconds=86400,
        max_clock_skew_seconds=300,
        clock=fixed_clock,
    )


@pytest.fixture
def validator(policy):
    return STHValidator(policy=policy)


@pytest.fixture
def tmp_state_path(tmp_path):
    return str(tmp_path / "state" / "trusted.json")
