from .core.client import TransparencyClient, DirectoryConnector
from .core.state_machine import ConsistencyStateMachine
from .core.resolver import KeyLookupResolver, verify_entry
from .core.validator import STHValidator, FreshnessPolicy, StaleWarning
from .merkle import MerkleTree, verify_inclusion, verify_consistency
from .store import TrustStore, JsonFileStateHook, InMemoryStateHook
from .protocol import (
    EntryKind,
    KeyState,
    LogEntry,
    SignedTreeHead,
    InclusionProof,
    ConsistencyProof,
    IdentityKeyStatus,
    TrustedState,
    PublicKey,
    PKDError,
    ProofMalformed,
    ProofInvalid,
    SignatureInvalid,
    StaleState,
    ForkDetected,
)

__all__ = [
    "TransparencyClient",
    "DirectoryConnector",
    "ConsistencyStateMachine",
    "KeyLookupResolver",
    "verify_entry",
    "STHValidator",
    "FreshnessPolicy",
    "StaleWarning",
    "MerkleTree",
    "verify_inclusion",
    "verify_consistency",
    "TrustStore",
    "JsonFileStateHook",
    "InMemoryStateHook",
    "EntryKind",
    "KeyState",
    "LogEntry",
    "SignedTreeHead",
    "InclusionProof",
    "ConsistencyProof",
    "IdentityKeyStatus",
    "TrustedState",
    "PublicKey",
    "PKDError",
    "ProofMalformed",
    "ProofInvalid",
    "SignatureInvalid",
    "StaleState",
    "ForkDetected",
]
