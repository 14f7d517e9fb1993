from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class OutpassLocks:
    """
    Per-outpass mutexes for one process.

    Contenders on the same outpass id queue up; different ids never block
    each other. Cross-process exclusion comes from the conditional update in
    the store, so this only has to be shared by engines in the same process.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[int, threading.Lock] = {}
        self._holders: dict[int, int] = {}

    @contextmanager
    def hold(self, outpass_id: int) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(outpass_id, threading.Lock())
            self._holders[outpass_id] = self._holders.get(outpass_id, 0) + 1
        try:
            with lock:
                yield
        finally:
            with self._guard:
                remaining = self._holders[outpass_id] - 1
                if remaining:
                    self._holders[outpass_id] = remaining
                else:
                    del self._holders[outpass_id]
                    del self._locks[outpass_id]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
