# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
import logging
import threading

_logger = logging.getLogger(__name__)


class ConcurrencyLimiter:
    """Counting limiter for install jobs.

    Every acquire() must be followed by exactly one release(),
    on success and on failure alike. Counters are kept to show
    how many slots were taken at once.
    """

    def __init__(self, max_parallel: int):
        if max_parallel < 1:
            raise ValueError(f"At least one slot is required, got {max_parallel}")
        self._max_parallel = max_parallel
        self._semaphore = threading.BoundedSemaphore(max_parallel)
        self._lock = threading.Lock()
        self._active = 0
        self._peak = 0
        self._acquired_total = 0

    def __repr__(self):
        return f'<{self.__class__.__name__} {self._active}/{self._max_parallel}>'

    @property
    def max_parallel(self) -> int:
        return self._max_parallel

    def acquire(self):
        self._semaphore.acquire()
        with self._lock:
            self._active += 1
            self._acquired_total += 1
            self._peak = max(self._peak, self._active)
            _logger.debug("Slot acquired: %d/%d active", self._active, self._max_parallel)

    def release(self):
        with self._lock:
            if self._active == 0:
                raise RuntimeError(f"{self!r}: release without acquire")
            self._active -= 1
            _logger.debug("Slot released: %d/%d active", self._active, self._max_parallel)
        self._semaphore.release()

    def active(self) -> int:
        with self._lock:
            return self._active

    def peak(self) -> int:
        with self._lock:
            return self._peak

    def acquired_total(self) -> int:
        with self._lock:
            return self._acquired_total
