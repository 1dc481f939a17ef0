"""
Timer thread driving periodic refresh cycles.
Manual triggers run on the same thread, so timer and manual cycles never overlap.
"""

import threading
import time

from scholar.core import logger


class RefreshScheduler(threading.Thread):
    """
    FLOW: Waits for the interval or a wake-up -> Runs a cycle on timeout or manual
    trigger -> Re-arms the timer -> Exits after stop(), never in the middle of a cycle.
    """

    def __init__(self, orchestrator, interval_seconds, run_immediately=False, name="RefreshScheduler"):
        super().__init__(name=name, daemon=True)
        self.orchestrator = orchestrator
        self._interval = float(interval_seconds)
        self._run_immediately = run_immediately
        self._stop_event = threading.Event()
        self._wake = threading.Event()
        self._lock = threading.Lock()
        self._manual_requested = False
        self._rearm = False
        self.cycles_run = 0

    @property
    def interval_seconds(self):
        return self._interval

    def run(self):
        logger.info(f"[SCHEDULER] started (interval {self._interval:.0f}s)", extra={'context': self.name})
        if self._run_immediately:
            self._run_cycle()
        deadline = time.monotonic() + self._interval

        while not self._stop_event.is_set():
            woken = self._wake.wait(max(0.0, deadline - time.monotonic()))
            if self._stop_event.is_set():
                break

            if woken:
                self._wake.clear()
                with self._lock:
                    manual, self._manual_requested = self._manual_requested, False
                    rearm, self._rearm = self._rearm, False
                if rearm:
                    deadline = time.monotonic() + self._interval
                if manual:
                    self._run_cycle()
                continue

            self._run_cycle()
            deadline = time.monotonic() + self._interval

        logger.info("[SCHEDULER] stopped", extra={'context': self.name})

    def _run_cycle(self):
        try:
            self.orchestrator.run_cycle()
        except Exception:
            # keep the timer alive; the next interval gets another chance
            logger.exception("[SCHEDULER] refresh cycle crashed", extra={'context': self.name})
        self.cycles_run += 1

    def trigger_now(self):
        """Queue a manual refresh on the scheduler thread."""
        with self._lock:
            self._manual_requested = True
        self._wake.set()

    def set_interval(self, interval_seconds):
        """Change the interval and restart the countdown."""
        with self._lock:
            self._interval = float(interval_seconds)
            self._rearm = True
        self._wake.set()
        logger.info(f"[SCHEDULER] interval set to {self._interval:.0f}s", extra={'context': self.name})

    def stop(self, timeout=None):
        self._stop_event.set()
        self._wake.set()
        if self.is_alive() and threading.current_thread() is not self:
            self.join(timeout)
