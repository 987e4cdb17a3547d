"""
Persistence hooks for trusted state.

The verification core never touches storage directly; it calls a
PersistenceHook supplied by the application. Two hooks are provided:

- InMemoryStateHook: process-local, for tests and ephemeral clients
- JsonFileStateHook: single JSON file, written atomically (temp file,
  fsync, rename)

Both serialize with canonical JSON so a load/save round-trip reproduces the
stored bytes exactly.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional, Protocol

from pkdverify.protocol.errors import PersistenceError
from pkdverify.protocol.models import TrustedState
from pkdverify.utils.json import canonical_json_bytes, json_loads

logger = logging.getLogger(__name__)


class PersistenceHook(Protocol):
    """
    Protocol for loading and saving the trusted state.

    Implementations MUST:
    - Preserve ``last_sth`` and ``identity_map`` exactly across a round-trip
    - Either fully replace the stored state or leave it untouched
    """

    def load_trusted_state(self) -> Optional[TrustedState]:
        """Return the stored state, or None if nothing has been stored yet."""
        ...

    def save_trusted_state(self, state: TrustedState) -> None:
        """Persist ``state``, replacing any previous one."""
        ...


def serialize_state(state: TrustedState) -> bytes:
    return canonical_json_bytes(state.to_dict())


def deserialize_state(raw: bytes) -> TrustedState:
    try:
        return TrustedState.from_dict(json_loads(raw.decode("utf-8")))
    except (ValueError, AttributeError, TypeError) as e:
        raise PersistenceError(f"Stored trusted state is corrupted: {e}") from e


class InMemoryStateHook:
    """Keeps the serialized state in memory."""

    def __init__(self) -> None:
        self._raw: Optional[bytes] = None

    @property
    def raw(self) -> Optional[bytes]:
        return self._raw

    def load_trusted_state(self) -> Optional[TrustedState]:
        if self._raw is None:
            return None
        return deserialize_state(self._raw)

    def save_trusted_state(self, state: TrustedState) -> None:
        self._raw = serialize_state(state)


class JsonFileStateHook:
    """
    Stores the trusted state as one JSON file.

    A corrupted file is reported as PersistenceError rather than treated as
    empty: silently starting over would re-enable trust on first use.
    """

    def __init__(self, path: str, *, sync: bool = True) -> None:
        self._path = Path(path)
        self._sync = sync

    @property
    def path(self) -> Path:
        return self._path

    def load_trusted_state(self) -> Optional[TrustedState]:
        if not self._path.exists():
            return None
        try:
            with open(self._path, "rb") as f:
                raw = f.read()
        except OSError as e:
            raise PersistenceError(f"Failed to read {self._path}: {e}") from e
        return deserialize_state(raw)

    def save_trusted_state(self, state: TrustedState) -> None:
        """Persist state to disk atomically."""
        raw = serialize_state(state)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "wb") as f:
                f.write(raw)
                f.flush()
                if self._sync:
                    os.fsync(f.fileno())
            # Atomic rename
            os.replace(str(tmp_path), str(self._path))
        except OSError as e:
            logger.error("Failed to persist trusted state to %s: %s", self._path, e)
            raise PersistenceError(f"Failed to write {self._path}: {e}") from e
        logger.debug("Persisted trusted state (tree size %d)", state.tree_size)
