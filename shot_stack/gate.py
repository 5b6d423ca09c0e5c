from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from typing import Iterator

logger = logging.getLogger(__name__)


class AnalysisGate:
    """Counting admission gate bounding how many analyses run at once."""

    def __init__(self, max_concurrent: int = 2):
        if max_concurrent < 1:
            raise ValueError(f"max_concurrent must be >= 1, got {max_concurrent}")
        self.max_concurrent = max_concurrent
        self._cond = threading.Condition()
        self._active = 0
        self._waiting = 0

    def acquire(self, timeout: float | None = None) -> bool:
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            self._waiting += 1
            try:
                while self._active >= self.max_concurrent:
                    remaining = None if deadline is None else deadline - time.monotonic()
                    if remaining is not None and remaining <= 0:
                        return False
                    self._cond.wait(remaining)
                self._active += 1
                return True
            finally:
                self._waiting -= 1

    def release(self) -> None:
        with self._cond:
            if self._active <= 0:
                raise RuntimeError("AnalysisGate.release() called without a matching acquire()")
            self._active -= 1
            self._cond.notify()

    @contextmanager
    def slot(self) -> Iterator[None]:
        self.acquire()
        try:
            yield
        finally:
            self.release()

    def status(self) -> tuple[int, int]:
        """(active, waiting)"""
        with self._cond:
            return self._active, self._waiting
