"""Periodic refresh scheduling."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable


class RefreshScheduler:
    """Runs ``task`` every ``interval_seconds`` on a background thread until stopped.

    The stop event doubles as the cancellation token: ``stop()`` wakes the
    worker immediately instead of waiting out the interval. An exception in
    ``task`` is logged and does not end the loop.
    """

    def __init__(self, task: Callable[[], object], interval_seconds: float, name: str = 'QuoteRefresh') -> None:
        if interval_seconds <= 0:
            raise ValueError('interval_seconds must be positive')
        self._task = task
        self._interval = interval_seconds
        self._name = name
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self.logger = logging.getLogger(__name__)

    @property
    def running(self) -> bool:
        with self._lock:
            return self._thread is not None and self._thread.is_alive()

    @property
    def cancelled(self) -> bool:
        return self._stop_event.is_set()

    def start(self) -> None:
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                return
            self._stop_event.clear()
            self._thread = threading.Thread(target=self._run, daemon=True, name=self._name)
            self._thread.start()
        self.logger.info(f'{self._name} started (every {self._interval}s)')

    def stop(self, timeout: float = 5.0) -> None:
        """Cancel the timer and wait for the worker to exit."""
        self._stop_event.set()
        with self._lock:
            thread = self._thread
            self._thread = None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)
            if thread.is_alive():
                self.logger.warning(f'{self._name} did not stop within {timeout}s')
        self.logger.info(f'{self._name} stopped')

    def _run(self) -> None:
        # wait() returns True once stop() is called
        while not self._stop_event.wait(self._interval):
            try:
                self._task()
            except Exception as exc:
                self.logger.error(f'{self._name} tick failed: {exc}', exc_info=True)
