"""
Identifier Allocator - single authority for entity ids

Every entity kind (opportunity, activity, agent_instance, ...) gets its own
monotonically increasing integer sequence starting at 1. Scan tasks complete
concurrently and all of them append opportunities and activities, so the
increment is guarded by a mutex: two callers never receive the same id.
"""

import threading
from typing import Dict


class IdAllocator:
    """Per-kind monotonic id sequences"""

    def __init__(self):
        self._next: Dict[str, int] = {}
        self._lock = threading.Lock()

    def next(self, kind: str) -> int:
        """Consume and return the next id for `kind`."""
        with self._lock:
            value = self._next.get(kind, 1)
            self._next[kind] = value + 1
            return value

    def peek(self, kind: str) -> int:
        """Return the id `next(kind)` would hand out, without consuming it."""
        with self._lock:
            return self._next.get(kind, 1)

    def get_stats(self) -> Dict[str, int]:
        with self._lock:
            return {kind: value - 1 for kind, value in self._next.items()}
