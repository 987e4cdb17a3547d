from enum import Enum


class ErrorCode(str, Enum):
    PROOF_MALFORMED = "proof_malformed"
    PROOF_INVALID = "proof_invalid"
    SIGNATURE_INVALID = "signature_invalid"
    STALE_STATE = "stale_state"
    FORK_DETECTED = "fork_detected"
    ENCODING_ERROR = "encoding_error"
    NOT_INITIALIZED = "not_initialized"
    PERSISTENCE_ERROR = "persistence_error"
    INTERNAL_ERROR = "internal_error"


class EntryKind(str, Enum):
    ENROLLMENT = "enrollment"
    REVOCATION = "revocation"
    PRUNING = "pruning"


class KeyState(str, Enum):
    ACTIVE = "active"
    REVOKED = "revoked"
    FORGOTTEN = "forgotten"
    UNKNOWN = "unknown"
