"""
Framework-agnostic scenario lifecycle management.

Runs the expiry sweep once on start and then on a fixed interval in a
background daemon thread. A failed sweep is logged and retried on the next
tick; it never stops the timer or propagates to the caller.
"""

from datetime import datetime
from typing import Optional
import logging
import threading

from ..timeutils import Clock, utc_now
from .store import ScenarioStore

logger = logging.getLogger(__name__)

DEFAULT_SWEEP_INTERVAL_SECONDS = 60 * 60


class ScenarioLifecycleManager:
    """Purges expired scenarios from a `ScenarioStore`."""

    def __init__(self, store: ScenarioStore, clock: Clock = utc_now,
                 interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS):
        self.store = store
        self.clock = clock
        self.interval_seconds = interval_seconds
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def sweep(self, now: Optional[datetime] = None) -> int:
        """Remove expired scenarios. Returns how many were removed (0 on failure)."""
        try:
            removed = self.store.purge_expired(now or self.clock())
        except Exception as e:
            logger.error(f"Scenario expiry sweep failed: {e}")
            return 0
        if removed:
            logger.info(f"Expiry sweep removed {len(removed)} scenario(s): {[s.name for s in removed]}")
        return len(removed)

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Sweep now, then every `interval_seconds` until `stop()`."""
        if self.is_running:
            logger.debug("Lifecycle manager already running")
            return
        self.sweep()
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="scenario-expiry-sweep", daemon=True)
        self._thread.start()
        logger.info(f"Started scenario expiry sweep every {self.interval_seconds}s")

    def _run(self) -> None:
        while not self._stop_event.wait(self.interval_seconds):
            self.sweep()

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None
