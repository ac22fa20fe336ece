"""
Health Check - Hysteresis State Store.

============================================================
PER-TARGET STATE PERSISTENCE
============================================================

Key-value abstraction for HysteresisState records, keyed by
"{target_type}:{target_id}". The evaluation engine never touches
a store; the caller loads the prior state before an evaluation
and writes the new one back afterwards.

InMemoryHysteresisStore is a thread-safe implementation for
single-process deployments and tests. Records are long-lived:
nothing expires them.

============================================================
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from .models import HysteresisState, TargetType


logger = logging.getLogger(__name__)


def make_target_key(target_type: TargetType, target_id: str) -> str:
    """Build the store key for a target."""
    return f"{TargetType(target_type).value}:{target_id}"


class HysteresisStore(ABC):
    """
    Interface for hysteresis state persistence.

    Implementations backed by an external service raise their own
    errors; HealthCheckManager wraps them in StateStoreError.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[HysteresisState]:
        """Load the state for a target, None if never evaluated."""

    @abstractmethod
    def put(self, key: str, state: HysteresisState) -> None:
        """Persist the state for a target."""

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove a target's state; True if it existed."""

    @abstractmethod
    def keys(self) -> List[str]:
        """All stored target keys."""


class InMemoryHysteresisStore(HysteresisStore):
    """
    Dictionary-backed store.

    All operations are thread-safe.
    """

    def __init__(self, initial: Optional[Dict[str, HysteresisState]] = None) -> None:
        self._states: Dict[str, HysteresisState] = dict(initial or {})
        self._lock = threading.RLock()

    def get(self, key: str) -> Optional[HysteresisState]:
        with self._lock:
            return self._states.get(key)

    def put(self, key: str, state: HysteresisState) -> None:
        with self._lock:
            self._states[key] = state

    def delete(self, key: str) -> bool:
        with self._lock:
            if key in self._states:
                del self._states[key]
                logger.info(f"Deleted hysteresis state: {key}")
                return True
            return False

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._states.keys())

    def __len__(self) -> int:
        with self._lock:
            return len(self._states)
