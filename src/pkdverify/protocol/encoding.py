"""
Prefixed base64url encodings used by the directory protocol.

Public keys are ``<algorithm>:<base64url>`` (currently only ``ed25519``) and
Merkle roots are ``pkd-mr-v1:<base64url>``. Base64url is always unpadded.
"""

from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass
from typing import Dict

from .errors import EncodingError

_B64URL_RE = re.compile(r"[A-Za-z0-9_-]*")

MERKLE_ROOT_PREFIX = "pkd-mr-v1"
MERKLE_ROOT_LEN = 32

# algorithm tag -> raw key length
KEY_ALGORITHMS: Dict[str, int] = {
    "ed25519": 32,
}


def b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(text: str) -> bytes:
    if not isinstance(text, str):
        raise EncodingError(f"expected base64url string, got {type(text).__name__}")
    if "=" in text:
        raise EncodingError("base64url value must be unpadded")
    if not _B64URL_RE.fullmatch(text):
        raise EncodingError("value contains characters outside the base64url alphabet")
    padded = text + "=" * (-len(text) % 4)
    try:
        return base64.b64decode(padded, altchars=b"-_", validate=True)
    except (binascii.Error, ValueError) as e:
        raise EncodingError(f"failed to decode base64url: {e}") from e


def _encoded_len(raw_len: int) -> int:
    return (raw_len * 4 + 2) // 3


def _decode_prefixed(value: str, expected_prefix: str, raw_len: int) -> bytes:
    rest = value[len(expected_prefix) + 1:]
    if len(rest) != _encoded_len(raw_len):
        raise EncodingError(
            f"invalid encoded length, expected {_encoded_len(raw_len)} found {len(rest)}"
        )
    raw = b64url_decode(rest)
    if len(raw) != raw_len:
        raise EncodingError(f"invalid length, expected {raw_len} found {len(raw)}")
    return raw


def _split_tag(value: str) -> tuple:
    if not isinstance(value, str) or ":" not in value:
        raise EncodingError("expected ':' separated tagged value")
    tag, _, rest = value.partition(":")
    return tag, rest


@dataclass(frozen=True)
class PublicKey:
    """
    A tagged public key as published in the directory.

    Attributes:
        algorithm: Algorithm tag (e.g. ``ed25519``)
        key_bytes: Raw public key bytes
    """
    algorithm: str
    key_bytes: bytes

    def __post_init__(self) -> None:
        expected = KEY_ALGORITHMS.get(self.algorithm)
        if expected is None:
            raise EncodingError(f"unknown tag found: {self.algorithm}")
        if len(self.key_bytes) != expected:
            raise EncodingError(
                f"invalid key length, expected {expected} found {len(self.key_bytes)}"
            )

    @classmethod
    def ed25519(cls, key_bytes: bytes) -> "PublicKey":
        return cls("ed25519", bytes(key_bytes))

    def encode(self) -> str:
        return f"{self.algorithm}:{b64url_encode(self.key_bytes)}"

    @classmethod
    def decode(cls, value: str) -> "PublicKey":
        tag, _ = _split_tag(value)
        raw_len = KEY_ALGORITHMS.get(tag)
        if raw_len is None:
            raise EncodingError(f"unknown tag found: {tag}")
        return cls(tag, _decode_prefixed(value, tag, raw_len))

    def __str__(self) -> str:
        return self.encode()


def encode_merkle_root(root_hash: bytes) -> str:
    if len(root_hash) != MERKLE_ROOT_LEN:
        raise EncodingError(
            f"invalid root length, expected {MERKLE_ROOT_LEN} found {len(root_hash)}"
        )
    return f"{MERKLE_ROOT_PREFIX}:{b64url_encode(root_hash)}"


def decode_merkle_root(value: str) -> bytes:
    tag, _ = _split_tag(value)
    if tag != MERKLE_ROOT_PREFIX:
        raise EncodingError(f"unknown tag found: {tag}")
    return _decode_prefixed(value, MERKLE_ROOT_PREFIX, MERKLE_ROOT_LEN)
