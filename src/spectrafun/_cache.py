"""Process-wide cache for transform and change-of-basis operators.

Operators depend only on ``(kind, size)``, never on data, so they are built
once and shared by every construction and factorization in the process.
"""

from __future__ import annotations

import threading
from typing import Callable, Hashable

import numpy as np


class OperatorCache:
    """Thread-safe, insert-once mapping from ``(kind, size)`` to ndarrays.

    Lookups of an existing key take no lock. On a miss the factory runs
    outside the lock, so two threads racing on the same key may both
    compute the operator; only the first result is stored and both callers
    receive that stored array. Stored arrays are read-only and entries are
    never evicted. :meth:`clear` exists for test isolation.
    """

    def __init__(self):
        self._store: dict = {}
        self._lock = threading.Lock()
        self.n_builds = 0

    def get(self, key: Hashable, factory: Callable[[], np.ndarray]) -> np.ndarray:
        """Return the operator for *key*, building it with *factory* on a miss."""
        try:
            return self._store[key]
        except KeyError:
            pass

        operator = np.array(factory())
        operator.flags.writeable = False
        with self._lock:
            self.n_builds += 1
            return self._store.setdefault(key, operator)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._store

    def __len__(self) -> int:
        return len(self._store)

    def keys(self) -> list:
        with self._lock:
            return list(self._store)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()
            self.n_builds = 0


OPERATOR_CACHE = OperatorCache()
