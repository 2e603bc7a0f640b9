"""CycleTicker — fires a callback at a fixed wall-clock interval.

Runs on a single background thread, so a callback can never overlap the
previous one.  If a callback overruns the interval, the ticks it missed
are dropped and the ticker resumes on the next interval boundary.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable

logger = logging.getLogger(__name__)


class CycleTicker:
    """Background scheduler for recurring simulation cycles.

    Attributes:
        interval: Seconds between callback invocations.
    """

    def __init__(self, interval: float, callback: Callable[[], None]) -> None:
        """Initialise a stopped ticker.

        Args:
            interval: Seconds between ticks (must be > 0).
            callback: Called once per tick on the ticker thread.

        Raises:
            ValueError: If ``interval`` is not positive.
        """
        if interval <= 0:
            msg = f"interval must be positive, got {interval}"
            raise ValueError(msg)
        self.interval = interval
        self._callback = callback
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self.skipped_ticks = 0

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start ticking.  The first tick fires one interval from now."""
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run,
            name="garden-cycle-ticker",
            daemon=True,
        )
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        """Stop scheduling further ticks.

        A tick already in progress runs to completion.  When called from
        outside the ticker thread, waits for that tick to finish.
        """
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None

    def _run(self) -> None:
        next_due = time.monotonic() + self.interval
        while not self._stop_event.wait(max(0.0, next_due - time.monotonic())):
            try:
                self._callback()
            except Exception:
                logger.exception("Scheduled cycle failed")

            next_due += self.interval
            now = time.monotonic()
            if next_due <= now:
                missed = int((now - next_due) // self.interval) + 1
                self.skipped_ticks += missed
                next_due += missed * self.interval
                logger.warning("Cycle overran its interval; skipped %d tick(s)", missed)
