"""Recurring background task built on ``threading.Timer``."""

import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Runs ``callback`` every ``interval`` seconds until stopped.

    The timer is re-armed after each run, so a slow callback never overlaps
    with itself. ``stop`` is idempotent.
    """

    def __init__(self, interval: float, callback: Callable[[], object], name: str = "periodic-task"):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.interval = interval
        self.name = name
        self._callback = callback
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._stopped = False
        self._started = False

    @property
    def running(self) -> bool:
        return self._started and not self._stopped

    def start(self) -> None:
        with self._lock:
            if self._started:
                return
            self._started = True
        self._schedule()

    def _schedule(self) -> None:
        with self._lock:
            if self._stopped:
                return
            self._timer = threading.Timer(self.interval, self._run)
            self._timer.name = self.name
            self._timer.daemon = True
            self._timer.start()

    def _run(self) -> None:
        try:
            self._callback()
        except Exception:
            logger.exception(f"{self.name} failed")
        finally:
            self._schedule()

    def stop(self) -> None:
        with self._lock:
            self._stopped = True
            if self._timer:
                self._timer.cancel()
                self._timer = None
