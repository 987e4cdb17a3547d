"""
Tree head signing and verification.

The validator depends on the SignatureScheme protocol rather than a concrete
primitive, so new directory key algorithms can be registered without
touching verification logic. Ed25519 is the only scheme the directory
protocol currently defines.

KEY MANAGEMENT ASSUMPTIONS:
- The directory's public key (trust anchor) is provisioned out of band
- Verification is offline (no network required)
- Ed25519TreeHeadSigner exists for monitors, fixtures and test directories;
  clients never hold the directory's private key
"""

from __future__ import annotations

import hashlib
from typing import Dict, Iterable, Optional, Protocol

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from pkdverify.protocol.encoding import PublicKey
from pkdverify.protocol.models import SignedTreeHead
from pkdverify.utils.timestamps import now_epoch


# ===========================================================================
# Capability protocol
# ===========================================================================


class SignatureScheme(Protocol):
    """
    Protocol for verifying directory signatures.

    Implementations MUST:
    - Be side-effect free and safe to call concurrently
    - Return False (never raise) for a well-formed but wrong signature
    """

    @property
    def algorithm(self) -> str:
        """Key algorithm tag this scheme verifies (e.g. ``ed25519``)."""
        ...

    def verify(self, public_key: PublicKey, data: bytes, signature: bytes) -> bool:
        """Verify signature. Returns True if valid, False if invalid."""
        ...


def key_id_for(public_key: PublicKey) -> str:
    """Key ID is SHA256 of the raw public key bytes (first 16 hex chars)."""
    return hashlib.sha256(public_key.key_bytes).hexdigest()[:16]


# ===========================================================================
# Ed25519
# ===========================================================================


class Ed25519Scheme:
    """Ed25519 signature verification (RFC 8032)."""

    algorithm = "ed25519"

    def verify(self, public_key: PublicKey, data: bytes, signature: bytes) -> bool:
        if public_key.algorithm != self.algorithm:
            return False
        if len(signature) != 64:
            return False
        try:
            Ed25519PublicKey.from_public_bytes(public_key.key_bytes).verify(signature, data)
            return True
        except (InvalidSignature, ValueError):
            return False


class SchemeRegistry:
    """
    Dispatches verification to the scheme matching the key's algorithm tag.

    Usage:
        registry = SchemeRegistry([Ed25519Scheme()])
        registry.verify(anchor_key, payload, signature)
    """

    def __init__(self, schemes: Optional[Iterable[SignatureScheme]] = None):
        self._schemes: Dict[str, SignatureScheme] = {}
        for scheme in schemes if schemes is not None else [Ed25519Scheme()]:
            self.register(scheme)

    @property
    def algorithm(self) -> str:
        return ",".join(sorted(self._schemes))

    def register(self, scheme: SignatureScheme) -> None:
        self._schemes[scheme.algorithm] = scheme

    def supports(self, algorithm: str) -> bool:
        return algorithm in self._schemes

    def verify(self, public_key: PublicKey, data: bytes, signature: bytes) -> bool:
        scheme = self._schemes.get(public_key.algorithm)
        if scheme is None:
            return False
        return scheme.verify(public_key, data, signature)


class Ed25519TreeHeadSigner:
    """
    Ed25519 signer producing SignedTreeHeads.

    Usage:
        # From raw key bytes (32 bytes)
        signer = Ed25519TreeHeadSigner.from_private_bytes(key_bytes)

        # From PEM file
        signer = Ed25519TreeHeadSigner.from_pem_file("/path/to/key.pem")

        # Generate new key (for testing only)
        signer = Ed25519TreeHeadSigner.generate()
    """

    def __init__(self, private_key: Ed25519PrivateKey):
        self._private_key = private_key
        raw = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )
        self._public_key = PublicKey.ed25519(raw)
        self._key_id = key_id_for(self._public_key)

    @property
    def key_id(self) -> str:
        return self._key_id

    @property
    def public_key(self) -> PublicKey:
        return self._public_key

    def sign(self, data: bytes) -> bytes:
        """Sign data using Ed25519. Returns 64-byte signature."""
        return self._private_key.sign(data)

    def sign_tree_head(
        self,
        tree_size: int,
        root_hash: bytes,
        timestamp: Optional[int] = None,
    ) -> SignedTreeHead:
        unsigned = SignedTreeHead(
            tree_size=tree_size,
            root_hash=root_hash,
            timestamp=now_epoch() if timestamp is None else timestamp,
        )
        return SignedTreeHead(
            tree_size=unsigned.tree_size,
            root_hash=unsigned.root_hash,
            timestamp=unsigned.timestamp,
            signature=self.sign(unsigned.signing_payload()),
            key_id=self._key_id,
        )

    @classmethod
    def generate(cls) -> "Ed25519TreeHeadSigner":
        """
        Generate a new Ed25519 key pair.

        WARNING: Use only for testing.
        """
        return cls(Ed25519PrivateKey.generate())

    @classmethod
    def from_private_bytes(cls, key_bytes: bytes) -> "Ed25519TreeHeadSigner":
        """Create signer from raw 32-byte private key."""
        return cls(Ed25519PrivateKey.from_private_bytes(key_bytes))

    @classmethod
    def from_pem_file(cls, path: str, password: Optional[bytes] = None) -> "Ed25519TreeHeadSigner":
        """Load signer from PEM-encoded private key file."""
        with open(path, "rb") as f:
            private_key = serialization.load_pem_private_key(f.read(), password=password)
        if not isinstance(private_key, Ed25519PrivateKey):
            raise TypeError(f"Expected Ed25519 private key, got {type(private_key)}")
        return cls(private_key)


def load_public_key_pem(pem_data: bytes) -> PublicKey:
    """Convert a PEM-encoded Ed25519 public key into a directory PublicKey."""
    public_key = serialization.load_pem_public_key(pem_data)
    if not isinstance(public_key, Ed25519PublicKey):
        raise TypeError(f"Expected Ed25519 public key, got {type(public_key)}")
    return PublicKey.ed25519(
        public_key.public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )
    )
