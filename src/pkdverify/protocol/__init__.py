from .enums import ErrorCode, EntryKind, KeyState
from .errors import (
    PKDError,
    ProofError,
    ProofMalformed,
    ProofInvalid,
    SignatureInvalid,
    StaleState,
    ForkDetected,
    EncodingError,
    NotInitialized,
    PersistenceError,
)
from .encoding import PublicKey, encode_merkle_root, decode_merkle_root
from .models import (
    LogEntry,
    SignedTreeHead,
    InclusionProof,
    ConsistencyProof,
    VerifiedEntry,
    IdentityKeyStatus,
    TrustedState,
    ForkEvidence,
)

__all__ = [
    "ErrorCode",
    "EntryKind",
    "KeyState",
    "PKDError",
    "ProofError",
    "ProofMalformed",
    "ProofInvalid",
    "SignatureInvalid",
    "StaleState",
    "ForkDetected",
    "EncodingError",
    "NotInitialized",
    "PersistenceError",
    "PublicKey",
    "encode_merkle_root",
    "decode_merkle_root",
    "LogEntry",
    "SignedTreeHead",
    "InclusionProof",
    "ConsistencyProof",
    "VerifiedEntry",
    "IdentityKeyStatus",
    "TrustedState",
    "ForkEvidence",
]
