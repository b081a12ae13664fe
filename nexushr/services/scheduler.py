"""
Background Scheduler

Periodic work that runs while the application is open:

- auto-approval of leave requests pending longer than the dwell time
- refresh of every collection from the backend
- the outbox retry worker (entries whose backoff has elapsed)
- a connectivity probe that flushes the outbox when the backend comes back

Each job runs on its own daemon thread. A failing tick is logged and the
loop keeps going; ``stop()`` wakes every thread and joins it.
"""

from typing import Callable, List, Optional
import logging
import threading

from nexushr.core.config import SchedulerSettings
from nexushr.core.logging import correlation_scope
from nexushr.services.leave_service import LeaveService
from nexushr.services.sync_coordinator import SyncCoordinator

logger = logging.getLogger(__name__)


class PeriodicTask:
    def __init__(self, name: str, interval: float, tick: Callable[[], object], run_immediately: bool = False):
        self.name = name
        self.interval = interval
        self.tick = tick
        self.run_immediately = run_immediately
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self) -> bool:
        """Run one tick. Returns False when it raised."""
        try:
            with correlation_scope():
                self.tick()
            return True
        except Exception:
            logger.exception(f"Scheduled task '{self.name}' failed")
            return False

    def _loop(self):
        if self.run_immediately:
            self.run_once()
        while not self._stop.wait(self.interval):
            self.run_once()

    def start(self):
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name=f"nexushr-{self.name}", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = 5.0):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None


class BackgroundScheduler:
    def __init__(self, sync: SyncCoordinator, leaves: LeaveService, settings: SchedulerSettings):
        self.sync = sync
        self.leaves = leaves
        self.settings = settings
        self.tasks: List[PeriodicTask] = [
            PeriodicTask("auto-approve", settings.auto_approve_interval, self.auto_approve_tick, run_immediately=True),
            PeriodicTask("retry", settings.retry_interval, self.retry_tick),
        ]
        if sync.remote is not None:
            self.tasks += [
                PeriodicTask("refresh", settings.refresh_interval, self.refresh_tick, run_immediately=True),
                PeriodicTask("connectivity", settings.connectivity_interval, self.connectivity_tick),
            ]

    # --- Ticks ---

    def auto_approve_tick(self):
        approved = self.leaves.auto_approve_due()
        if approved:
            logger.info(f"Auto-approved {len(approved)} leave requests")
        return approved

    def refresh_tick(self):
        return self.sync.refresh_all()

    def retry_tick(self):
        return self.sync.retry_due()

    def connectivity_tick(self) -> bool:
        online = self.sync.remote.health()
        self.sync.notify_connectivity(online)
        return online

    # --- Lifecycle ---

    def start(self):
        for task in self.tasks:
            task.start()
        logger.info(f"Scheduler started: {', '.join(task.name for task in self.tasks)}")

    def stop(self):
        for task in self.tasks:
            task.stop()
        logger.info("Scheduler stopped")
