"""Long-lived background tasks: the admission pump and the retention sweep.

Each task is a daemon thread that calls its tick function, then waits on a
stop event for the configured interval.  :meth:`TaskSupervisor.ensure_running`
is the single guarded entry point that makes sure exactly one thread per
task is alive.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Run *tick* every *interval_seconds* on a dedicated daemon thread.

    A tick that raises is logged and the loop carries on with the next one.
    Each thread watches its own stop event, and a thread that is still
    finishing a tick after :meth:`stop` keeps the task from starting another.
    """

    def __init__(self, name: str, tick: Callable[[], object], interval_seconds: float) -> None:
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}.")
        self.name = name
        self._tick = tick
        self._interval = interval_seconds
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._ticks = 0

    @property
    def alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def ticks(self) -> int:
        """Number of completed ticks, successful or not."""
        return self._ticks

    def start(self) -> bool:
        """Start the thread unless one is already alive.

        Returns ``True`` if a new thread was started.
        """
        if self.alive:
            if self._stop_event.is_set():
                logger.warning("Background task %s is still stopping; not starting another thread", self.name)
            return False
        if self._thread is not None and not self._stop_event.is_set():
            logger.warning("Background task %s had stopped; restarting it", self.name)
        self._stop_event = threading.Event()
        self._thread = threading.Thread(target=self._run, args=(self._stop_event,), name=self.name, daemon=True)
        self._thread.start()
        logger.info("Background task %s started (interval=%.1fs)", self.name, self._interval)
        return True

    def stop(self, timeout: float | None = 5.0) -> None:
        """Signal the thread and wait up to *timeout* seconds for it to exit."""
        self._stop_event.set()
        if self._thread is None:
            return
        self._thread.join(timeout=timeout)
        if self._thread.is_alive():
            logger.warning("Background task %s did not stop within %ss", self.name, timeout)
            return
        self._thread = None

    def _run(self, stop_event: threading.Event) -> None:
        while True:
            try:
                self._tick()
            except Exception:
                logger.error("Background task %s failed", self.name, exc_info=True)
            self._ticks += 1
            if stop_event.wait(self._interval):
                break


class TaskSupervisor:
    """Keep the pump and sweep tasks running exactly once each.

    Parameters
    ----------
    pump:
        Admission tick, normally :meth:`ReportScheduler.run_queued_reports`.
    sweep:
        Retention tick, normally
        :meth:`RetentionManager.delete_old_report_requests`.
    pump_interval_seconds, sweep_interval_seconds:
        Delay between ticks of each task.
    startup_check:
        Called once before the first start; any exception it raises
        propagates to the caller of :meth:`ensure_running` and no task is
        started.
    """

    def __init__(
        self,
        pump: Callable[[], object],
        sweep: Callable[[], object],
        pump_interval_seconds: float,
        sweep_interval_seconds: float,
        startup_check: Callable[[], object] | None = None,
    ) -> None:
        self._pump = PeriodicTask("report-queue-pump", pump, pump_interval_seconds)
        self._sweep = PeriodicTask("report-retention-sweep", sweep, sweep_interval_seconds)
        self._startup_check = startup_check
        self._checked = False
        self._lock = threading.Lock()

    @property
    def tasks(self) -> tuple[PeriodicTask, PeriodicTask]:
        return (self._pump, self._sweep)

    @property
    def running(self) -> bool:
        return self._pump.alive and self._sweep.alive

    def ensure_running(self) -> int:
        """Start any task that is not alive; safe to call repeatedly.

        Returns the number of threads started by this call.
        """
        with self._lock:
            if not self._checked:
                if self._startup_check is not None:
                    self._startup_check()
                self._checked = True
            started = sum(1 for task in self.tasks if task.start())
        if started:
            logger.info("Started %d background task(s)", started)
        return started

    def stop(self, timeout: float | None = 5.0) -> None:
        with self._lock:
            for task in self.tasks:
                task.stop(timeout=timeout)
        logger.info("Background tasks stopped")
