"""
Central configuration for pkdverify.

This module provides a single, typed configuration object that reads from
environment variables (12-factor style) using pydantic-settings.

Usage:

    from pkdverify.core.settings import get_settings

    settings = get_settings()
    if settings.trust_anchor_key:
        ...

Every variable is prefixed with ``PKD_`` (e.g. ``PKD_MAX_STALENESS_SECONDS``).
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from pkdverify.merkle.hashing import TreeHasher
from pkdverify.protocol.encoding import PublicKey


class PKDSettings(BaseSettings):
    """
    Root configuration object for the verification core.
    """

    model_config = SettingsConfigDict(env_prefix="PKD_")

    trust_anchor_key: Optional[str] = Field(
        default=None,
        description="Directory public key, encoded as 'ed25519:<base64url>'.",
    )
    state_path: Optional[str] = Field(
        default=None,
        description="JSON file holding the trusted state. In-memory if unset.",
    )
    max_staleness_seconds: Optional[int] = Field(
        default=86400,
        ge=0,
        description="Age after which a tree head is reported stale (non-fatal).",
    )
    max_clock_skew_seconds: int = Field(
        default=300,
        ge=0,
        description="How far in the future a tree head timestamp may be.",
    )
    hash_algorithm: str = Field(
        default="sha256",
        description="hashlib algorithm used for Merkle hashing (32-byte digests).",
    )
    log_level: str = Field(
        default="INFO",
        description="Package log level (DEBUG/INFO/WARNING/ERROR).",
    )

    @field_validator("trust_anchor_key")
    @classmethod
    def _validate_anchor(cls, v: Optional[str]) -> Optional[str]:
        if v:
            PublicKey.decode(v)
        return v or None

    @field_validator("hash_algorithm")
    @classmethod
    def _validate_hash(cls, v: str) -> str:
        TreeHasher(v)
        return v

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, v: str) -> str:
        v = (v or "INFO").upper()
        if v not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            return "INFO"
        return v

    def anchor_public_key(self) -> Optional[PublicKey]:
        if not self.trust_anchor_key:
            return None
        return PublicKey.decode(self.trust_anchor_key)


@lru_cache(maxsize=1)
def get_settings() -> PKDSettings:
    """
    Cached accessor for PKDSettings.
    """
    return PKDSettings()
