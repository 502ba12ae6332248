# slots.py
from __future__ import annotations

import logging
import queue
import threading
from contextlib import contextmanager
from typing import Iterator

logger = logging.getLogger(__name__)


class SlotPool:
    """
    Fixed set of numbered builder slots (0..size-1).

    With one worker thread per slot the pool is never empty when a worker
    asks for a slot. If the accounting is ever wrong, acquire() waits for a
    release instead of handing out an index that is already in use.
    """

    def __init__(self, size: int):
        if size < 1:
            raise ValueError("slot pool size must be >= 1")
        self.size = size
        self._free: "queue.Queue[int]" = queue.Queue()
        self._taken: set[int] = set()
        self._lock = threading.Lock()
        for i in range(size):
            self._free.put(i)

    def acquire(self) -> int:
        try:
            slot = self._free.get_nowait()
        except queue.Empty:
            logger.warning("no free builder slot out of %d; waiting for a release", self.size)
            slot = self._free.get()
        with self._lock:
            self._taken.add(slot)
        return slot

    def release(self, slot: int) -> None:
        with self._lock:
            if slot not in self._taken:
                logger.warning("ignoring release of slot %r which is not taken", slot)
                return
            self._taken.discard(slot)
        self._free.put(slot)

    def free_count(self) -> int:
        return self._free.qsize()

    @contextmanager
    def slot(self) -> Iterator[int]:
        index = self.acquire()
        try:
            yield index
        finally:
            self.release(index)
