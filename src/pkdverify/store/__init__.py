"""
Trusted state persistence.
"""

from .hooks import (
    PersistenceHook,
    InMemoryStateHook,
    JsonFileStateHook,
    serialize_state,
    deserialize_state,
)
from .trust_store import TrustStore

__all__ = [
    "PersistenceHook",
    "InMemoryStateHook",
    "JsonFileStateHook",
    "serialize_state",
    "deserialize_state",
    "TrustStore",
]
