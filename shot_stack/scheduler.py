from __future__ import annotations

import logging
import threading
from typing import Any, Callable

logger = logging.getLogger(__name__)


class ReanalysisScheduler:
    """Debounces re-analysis requests: only the latest request survives the delay."""

    def __init__(self, callback: Callable[..., Any], delay: float = 1.5):
        self.callback = callback
        self.delay = delay
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._generation = 0

    def schedule(self, *args: Any, **kwargs: Any) -> int:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            token = self._generation
            timer = threading.Timer(self.delay, self._fire, args=(token, args, kwargs))
            timer.daemon = True
            self._timer = timer
            timer.start()
            return token

    def _fire(self, token: int, args: tuple[Any, ...], kwargs: dict[str, Any]) -> None:
        with self._lock:
            if token != self._generation:
                return
            self._timer = None
        try:
            self.callback(*args, **kwargs)
        except Exception as exc:
            logger.error(f"Scheduled re-analysis failed: {exc}")

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._generation += 1

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None
