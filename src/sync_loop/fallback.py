from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from sync_loop.contracts import InputValidationError

logger = logging.getLogger(__name__)


class FallbackHandle:
    """Handle for one pending fallback callback."""

    def __init__(self, duration_s: float, callback: Callable[[], None]) -> None:
        self.duration_s = duration_s
        self._callback = callback
        self._lock = threading.Lock()
        self._settled = False
        self._fired = threading.Event()
        self._timer = threading.Timer(duration_s, self._run)
        self._timer.daemon = True

    @property
    def fired(self) -> bool:
        return self._fired.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        return self._fired.wait(timeout)

    def cancel(self) -> bool:
        """Cancel a pending callback; False when it already ran."""
        with self._lock:
            if self._settled:
                return False
            self._settled = True
        self._timer.cancel()
        return True

    def _start(self) -> None:
        self._timer.start()

    def _run(self) -> None:
        with self._lock:
            if self._settled:
                return
            self._settled = True
        logger.info("fallback timer complete after %ss", self.duration_s)
        try:
            self._callback()
        finally:
            self._fired.set()


class FallbackTimer:
    """
    Single-shot in-process delay for platforms without durable scheduling.

    Not durable: a suspended or restarted process loses the pending callback.
    Completion is best-effort only.
    """

    def after(self, duration_s: float, callback: Callable[[], None]) -> FallbackHandle:
        if duration_s < 0:
            raise InputValidationError("duration_s must be non-negative")
        logger.info("starting fallback timer for %ss", duration_s)
        handle = FallbackHandle(duration_s, callback)
        handle._start()
        return handle
