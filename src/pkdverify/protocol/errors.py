from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from .enums import ErrorCode

if TYPE_CHECKING:
    from .models import ForkEvidence


class PKDError(Exception):
    def __init__(self, message: str, code: Optional[ErrorCode] = None):
        super().__init__(message)
        self.code = code or ErrorCode.INTERNAL_ERROR


class ProofError(PKDError):
    """Base for Merkle proof failures."""


class ProofMalformed(ProofError):
    """Raised when a proof is structurally invalid for the claimed index and size."""

    def __init__(self, message: str):
        super().__init__(message, ErrorCode.PROOF_MALFORMED)


class ProofInvalid(ProofError):
    """Raised when a well-formed proof does not hash to the expected root."""

    def __init__(self, message: str):
        super().__init__(message, ErrorCode.PROOF_INVALID)


class SignatureInvalid(PKDError):
    """Raised when a signed tree head does not verify against the trust anchor."""

    def __init__(self, message: str):
        super().__init__(message, ErrorCode.SIGNATURE_INVALID)


class StaleState(PKDError):
    """Raised when a tree head moves backwards in size or time."""

    def __init__(self, message: str):
        super().__init__(message, ErrorCode.STALE_STATE)


class ForkDetected(PKDError):
    """
    Raised when a correctly signed tree head is not an append-only extension
    of the trusted one. The directory has presented a split view; callers
    should escalate out of band using ``evidence``.
    """

    def __init__(self, message: str, evidence: "ForkEvidence"):
        super().__init__(message, ErrorCode.FORK_DETECTED)
        self.evidence = evidence


class EncodingError(PKDError, ValueError):
    """Raised when a prefixed base64url value or serialized record cannot be decoded."""

    def __init__(self, message: str):
        super().__init__(message, ErrorCode.ENCODING_ERROR)


class NotInitialized(PKDError):
    """Raised when the client is used before a trust anchor is configured."""

    def __init__(self, message: str):
        super().__init__(message, ErrorCode.NOT_INITIALIZED)


class PersistenceError(PKDError):
    """Raised when the persistence hook fails to load or save trusted state."""

    def __init__(self, message: str):
        super().__init__(message, ErrorCode.PERSISTENCE_ERROR)
