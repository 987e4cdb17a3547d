"""
Protocol data model for the key transparency client.

All records are immutable once constructed. ``to_dict``/``from_dict`` use the
directory's camelCase field names with keys, roots, signatures and proof
hashes in their prefixed or plain base64url forms.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from pkdverify.utils.json import canonical_json_bytes
from pkdverify.utils.timestamps import now_epoch, parse_epoch

from .encoding import (
    PublicKey,
    b64url_decode,
    b64url_encode,
    decode_merkle_root,
    encode_merkle_root,
)
from .enums import EntryKind, KeyState
from .errors import EncodingError


def _require(data: Dict[str, Any], key: str) -> Any:
    try:
        return data[key]
    except KeyError:
        raise EncodingError(f"missing field: {key}") from None


def _non_negative_int(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise EncodingError(f"{name} must be a non-negative integer, got {value!r}")
    return value


# ===========================================================================
# Log Entry
# ===========================================================================


@dataclass(frozen=True)
class LogEntry:
    """
    A single directory event for an identity.

    Attributes:
        kind: Enrollment, Revocation or Pruning
        identity: Canonical actor ID the event applies to
        log_index: Position of the leaf in the log (0-indexed)
        timestamp: Seconds since epoch when the directory accepted it
        key_material: Public key (required for Enrollment, optional for
            Revocation, never present for Pruning)
    """
    kind: EntryKind
    identity: str
    log_index: int
    timestamp: int
    key_material: Optional[PublicKey] = None

    def __post_init__(self) -> None:
        if not isinstance(self.kind, EntryKind):
            object.__setattr__(self, "kind", EntryKind(self.kind))
        if not self.identity:
            raise ValueError("identity must be non-empty")
        if isinstance(self.log_index, bool) or self.log_index < 0:
            raise ValueError(f"log_index must be non-negative, got {self.log_index}")
        if self.kind is EntryKind.ENROLLMENT and self.key_material is None:
            raise ValueError("enrollment entries require key_material")
        if self.kind is EntryKind.PRUNING and self.key_material is not None:
            raise ValueError("pruning entries must not carry key_material")

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "kind": self.kind.value,
            "identity": self.identity,
            "logIndex": self.log_index,
            "timestamp": self.timestamp,
        }
        if self.key_material is not None:
            data["keyMaterial"] = self.key_material.encode()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LogEntry":
        key = data.get("keyMaterial")
        try:
            return cls(
                kind=EntryKind(_require(data, "kind")),
                identity=_require(data, "identity"),
                log_index=_non_negative_int(_require(data, "logIndex"), "logIndex"),
                timestamp=parse_epoch(_require(data, "timestamp")),
                key_material=PublicKey.decode(key) if key is not None else None,
            )
        except ValueError as e:
            if isinstance(e, EncodingError):
                raise
            raise EncodingError(f"invalid log entry: {e}") from e

    def leaf_bytes(self) -> bytes:
        """Canonical serialization hashed into the Merkle leaf."""
        return canonical_json_bytes(self.to_dict())


# ===========================================================================
# Signed Tree Head
# ===========================================================================


@dataclass(frozen=True)
class SignedTreeHead:
    """
    Directory-signed commitment to the log's size and root.

    Attributes:
        tree_size: Number of committed leaves
        root_hash: Raw Merkle root digest
        timestamp: Seconds since epoch
        signature: Raw signature over ``signing_payload()``
        key_id: Optional identifier of the directory key that signed
    """
    tree_size: int
    root_hash: bytes
    timestamp: int
    signature: bytes = b""
    key_id: Optional[str] = None

    def signing_payload(self) -> bytes:
        """Bytes covered by the directory signature."""
        return canonical_json_bytes({
            "rootHash": encode_merkle_root(self.root_hash),
            "timestamp": self.timestamp,
            "treeSize": self.tree_size,
        })

    def to_dict(self) -> Dict[str, Any]:
        return {
            "treeSize": self.tree_size,
            "rootHash": encode_merkle_root(self.root_hash),
            "timestamp": self.timestamp,
            "signature": b64url_encode(self.signature),
            "keyId": self.key_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SignedTreeHead":
        try:
            timestamp = parse_epoch(_require(data, "timestamp"))
        except ValueError as e:
            if isinstance(e, EncodingError):
                raise
            raise EncodingError(str(e)) from e
        return cls(
            tree_size=_non_negative_int(_require(data, "treeSize"), "treeSize"),
            root_hash=decode_merkle_root(_require(data, "rootHash")),
            timestamp=timestamp,
            signature=b64url_decode(data.get("signature") or ""),
            key_id=data.get("keyId"),
        )


# ===========================================================================
# Proofs
# ===========================================================================


@dataclass(frozen=True)
class InclusionProof:
    """
    Audit path proving a leaf is present under a root.

    Attributes:
        leaf_index: Index of the proven leaf
        audit_path: Sibling hashes ordered from the leaf up to the root
        tree_size: Size of the tree the path was generated for, if the
            directory states it
    """
    leaf_index: int
    audit_path: Tuple[bytes, ...]
    tree_size: Optional[int] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "audit_path", tuple(self.audit_path))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "leafIndex": self.leaf_index,
            "treeSize": self.tree_size,
            "auditPath": [b64url_encode(h) for h in self.audit_path],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InclusionProof":
        tree_size = data.get("treeSize")
        return cls(
            leaf_index=_non_negative_int(_require(data, "leafIndex"), "leafIndex"),
            audit_path=tuple(b64url_decode(h) for h in _require(data, "auditPath")),
            tree_size=_non_negative_int(tree_size, "treeSize") if tree_size is not None else None,
        )


@dataclass(frozen=True)
class ConsistencyProof:
    """
    Proof that the tree at ``new_size`` extends the tree at ``old_size``.
    """
    old_size: int
    new_size: int
    path: Tuple[bytes, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "path", tuple(self.path))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "oldSize": self.old_size,
            "newSize": self.new_size,
            "path": [b64url_encode(h) for h in self.path],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConsistencyProof":
        return cls(
            old_size=_non_negative_int(_require(data, "oldSize"), "oldSize"),
            new_size=_non_negative_int(_require(data, "newSize"), "newSize"),
            path=tuple(b64url_decode(h) for h in data.get("path", [])),
        )


# ===========================================================================
# Verified entries and resolved status
# ===========================================================================


@dataclass(frozen=True)
class VerifiedEntry:
    """
    A log entry whose inclusion has been proven under a specific tree head.

    Built by ``pkdverify.core.resolver.verify_entry``; the resolver only
    folds entries of this type.
    """
    entry: LogEntry
    tree_size: int
    root_hash: bytes

    @property
    def log_index(self) -> int:
        return self.entry.log_index

    @property
    def identity(self) -> str:
        return self.entry.identity


@dataclass(frozen=True)
class IdentityKeyStatus:
    """
    Authoritative key state for one identity.

    Attributes:
        identity: Actor ID
        state: active, revoked, forgotten or unknown
        active_key: Current key when state is active, else None
        as_of_index: Log index of the last entry folded into this status
    """
    identity: str
    state: KeyState
    active_key: Optional[PublicKey] = None
    as_of_index: Optional[int] = None

    def __post_init__(self) -> None:
        if self.state is KeyState.ACTIVE and self.active_key is None:
            raise ValueError("active status requires active_key")
        if self.state is not KeyState.ACTIVE and self.active_key is not None:
            raise ValueError(f"{self.state.value} status cannot carry key material")

    @classmethod
    def unknown(cls, identity: str) -> "IdentityKeyStatus":
        return cls(identity=identity, state=KeyState.UNKNOWN)

    @property
    def is_active(self) -> bool:
        return self.state is KeyState.ACTIVE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identity": self.identity,
            "state": self.state.value,
            "activeKey": self.active_key.encode() if self.active_key else None,
            "asOfIndex": self.as_of_index,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IdentityKeyStatus":
        key = data.get("activeKey")
        as_of_index = data.get("asOfIndex")
        try:
            return cls(
                identity=_require(data, "identity"),
                state=KeyState(_require(data, "state")),
                active_key=PublicKey.decode(key) if key else None,
                as_of_index=(
                    _non_negative_int(as_of_index, "asOfIndex")
                    if as_of_index is not None
                    else None
                ),
            )
        except ValueError as e:
            if isinstance(e, EncodingError):
                raise
            raise EncodingError(f"invalid identity status: {e}") from e


# ===========================================================================
# Trusted State
# ===========================================================================


@dataclass(frozen=True)
class TrustedState:
    """
    Snapshot of what the client currently trusts.

    The identity map is exposed read-only; a new snapshot is built for every
    commit.
    """
    last_sth: SignedTreeHead
    identity_map: Mapping[str, IdentityKeyStatus] = field(default_factory=dict)

    STATE_VERSION = 1

    def __post_init__(self) -> None:
        object.__setattr__(self, "identity_map", MappingProxyType(dict(self.identity_map)))

    @property
    def tree_size(self) -> int:
        return self.last_sth.tree_size

    def status_for(self, identity: str) -> IdentityKeyStatus:
        return self.identity_map.get(identity) or IdentityKeyStatus.unknown(identity)

    def with_updates(
        self,
        last_sth: SignedTreeHead,
        updates: Mapping[str, IdentityKeyStatus],
    ) -> "TrustedState":
        """Return a new snapshot with ``updates`` applied over this one."""
        merged = dict(self.identity_map)
        merged.update(updates)
        return TrustedState(last_sth=last_sth, identity_map=merged)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.STATE_VERSION,
            "lastSth": self.last_sth.to_dict(),
            "identityMap": {
                identity: status.to_dict()
                for identity, status in sorted(self.identity_map.items())
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TrustedState":
        version = data.get("version", cls.STATE_VERSION)
        if version != cls.STATE_VERSION:
            raise EncodingError(f"unsupported trusted state version: {version}")
        identity_map = {
            identity: IdentityKeyStatus.from_dict(status)
            for identity, status in _require(data, "identityMap").items()
        }
        return cls(
            last_sth=SignedTreeHead.from_dict(_require(data, "lastSth")),
            identity_map=identity_map,
        )


# ===========================================================================
# Fork Evidence
# ===========================================================================


@dataclass(frozen=True)
class ForkEvidence:
    """
    Two signed tree heads that cannot both be honest views of one log.

    Serialisable so callers can gossip it to third-party monitors or other
    directories.
    """
    trusted_sth: SignedTreeHead
    candidate_sth: SignedTreeHead
    consistency_proof: Optional[ConsistencyProof] = None
    detected_at: int = field(default_factory=now_epoch)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trustedSth": self.trusted_sth.to_dict(),
            "candidateSth": self.candidate_sth.to_dict(),
            "consistencyProof": (
                self.consistency_proof.to_dict() if self.consistency_proof else None
            ),
            "detectedAt": self.detected_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ForkEvidence":
        proof = data.get("consistencyProof")
        return cls(
            trusted_sth=SignedTreeHead.from_dict(_require(data, "trustedSth")),
            candidate_sth=SignedTreeHead.from_dict(_require(data, "candidateSth")),
            consistency_proof=ConsistencyProof.from_dict(proof) if proof else None,
            detected_at=data.get("detectedAt", now_epoch()),
        )
