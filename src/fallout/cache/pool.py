import logging
from collections import defaultdict
from contextlib import contextmanager
from threading import Lock
from typing import Dict, Iterator, List

logger = logging.getLogger(__name__)

# Smallest capacity class, 64KiB
MIN_CLASS_BITS = 16
# Buffers above 64MiB are not kept around
MAX_CLASS_BITS = 26
# Idle buffers kept per capacity class
MAX_IDLE = 8


class BufferPool:
    """
    Pool of reusable bytearrays keyed by capacity class.

    Capacity classes are powers of two, a request for n bytes is served from
    the smallest class that fits. A checked out buffer is owned exclusively
    by its borrower until it is put back.
    """

    def __init__(self, max_idle: int = MAX_IDLE):
        self._mu = Lock()
        self._idle: Dict[int, List[bytearray]] = defaultdict(list)
        self.max_idle = max_idle

    @staticmethod
    def size_class(size: int) -> int:
        bits = max(MIN_CLASS_BITS, (max(size, 1) - 1).bit_length())
        return 1 << bits

    def get(self, size: int) -> bytearray:
        """Borrow a buffer at least size bytes long"""
        cap = self.size_class(size)
        with self._mu:
            idle = self._idle.get(cap)
            if idle:
                return idle.pop()
        return bytearray(cap)

    def put(self, buf: bytearray) -> None:
        """Return a borrowed buffer"""
        cap = len(buf)
        if cap != self.size_class(cap) or cap > 1 << MAX_CLASS_BITS:
            return
        with self._mu:
            idle = self._idle[cap]
            if len(idle) < self.max_idle:
                idle.append(buf)

    @contextmanager
    def checkout(self, size: int) -> Iterator[bytearray]:
        """Borrow a buffer for the duration of the with block"""
        buf = self.get(size)
        try:
            yield buf
        finally:
            self.put(buf)

    def idle_count(self) -> int:
        with self._mu:
            return sum(len(v) for v in self._idle.values())


# Shared by every cache entry in the process
buffer_pool = BufferPool()
