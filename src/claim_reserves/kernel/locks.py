"""
Per-claim serialization of adjustment batches

Balance reads and movement-number allocation for one claim are not safe
under interleaving, so two batches for the same claim never run at once.
Batches for different claims take different locks and run in parallel.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class ClaimLockRegistry:
    """Hands out one re-entrant lock per claim id"""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}

    def lock_for(self, claim_id: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(claim_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[claim_id] = lock
            return lock

    @contextmanager
    def hold(self, claim_id: str) -> Iterator[None]:
        """Block until the claim is free, then keep it for the duration of the block"""
        lock = self.lock_for(claim_id)
        with lock:
            yield

    def __len__(self) -> int:
        return len(self._locks)
