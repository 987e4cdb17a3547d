"""
Trust Store: owner of the persisted TrustedState.

Readers get immutable snapshots and never see a half-applied update.
Writers are serialized; a commit persists through the hook first and only
then swaps the in-memory snapshot, so a failed save changes nothing.

The store is an explicit context object with an owner-defined lifecycle:

    with TrustStore(JsonFileStateHook(path)) as store:
        state = store.load()
        ...
        store.commit(new_state)
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from pkdverify.protocol.errors import PersistenceError, StaleState
from pkdverify.protocol.models import TrustedState

from .hooks import InMemoryStateHook, PersistenceHook

logger = logging.getLogger(__name__)


class TrustStore:
    """
    Holds the last accepted tree head and resolved identity states.
    """

    def __init__(self, hook: Optional[PersistenceHook] = None) -> None:
        self._hook = hook if hook is not None else InMemoryStateHook()
        self._state: Optional[TrustedState] = None
        self._lock = threading.Lock()
        self._closed = False

    @property
    def hook(self) -> PersistenceHook:
        return self._hook

    @property
    def closed(self) -> bool:
        return self._closed

    def load(self) -> Optional[TrustedState]:
        """
        Load the persisted state.

        Returns None when nothing has been trusted yet (uninitialized).
        """
        with self._lock:
            self._ensure_open()
            self._state = self._hook.load_trusted_state()
            if self._state is not None:
                logger.info("Loaded trusted state at tree size %d", self._state.tree_size)
            return self._state

    def snapshot(self) -> Optional[TrustedState]:
        """Current state without touching storage."""
        return self._state

    def commit(self, new_state: TrustedState) -> None:
        """
        Persist and publish ``new_state``.

        Raises:
            StaleState: If ``new_state`` is older than the current state
            PersistenceError: If the hook fails; nothing is changed
        """
        with self._lock:
            self._ensure_open()
            current = self._state
            if current is not None and new_state.tree_size < current.tree_size:
                raise StaleState(
                    f"Refusing to commit tree size {new_state.tree_size} over "
                    f"{current.tree_size}"
                )
            self._hook.save_trusted_state(new_state)
            self._state = new_state
            logger.debug(
                "Committed trusted state: tree size %d, %d identities",
                new_state.tree_size,
                len(new_state.identity_map),
            )

    def close(self) -> None:
        with self._lock:
            self._closed = True

    def _ensure_open(self) -> None:
        if self._closed:
            raise PersistenceError("Trust store is closed")

    def __enter__(self) -> "TrustStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
