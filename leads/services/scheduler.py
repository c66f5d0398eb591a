"""
Recurring task scheduler for the lead monitor.

All tasks run sequentially on the calling thread: the loop sleeps until the
earliest task is due, runs it, and schedules its next tick. The sleep is an
Event wait, so stop() takes effect immediately between tasks.
"""
import logging
import random
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class RecurringTask:
    name: str
    interval_seconds: float
    func: Callable[[], object]
    jitter_seconds: float = 0.0
    run_immediately: bool = True
    next_run_at: float = field(default=0.0, compare=False)

    def schedule_next(self, now: float, rng: random.Random) -> None:
        jitter = rng.uniform(0, self.jitter_seconds) if self.jitter_seconds > 0 else 0.0
        self.next_run_at = now + self.interval_seconds + jitter


class RecurringScheduler:
    """Runs registered tasks at their interval until stopped."""

    def __init__(self, clock: Callable[[], float] = time.monotonic,
                 rng: Optional[random.Random] = None):
        self.tasks: List[RecurringTask] = []
        self._clock = clock
        self._rng = rng or random.Random()
        self._stop_event = threading.Event()

    def add(self, task: RecurringTask) -> RecurringTask:
        if task.interval_seconds <= 0:
            raise ValueError(f"Task {task.name} needs a positive interval")
        self.tasks.append(task)
        return task

    def stop(self) -> None:
        self._stop_event.set()

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def run_task(self, task: RecurringTask) -> None:
        """Run one tick of a task; exceptions are logged, never propagated."""
        try:
            task.func()
        except Exception as e:
            logger.error(f"Scheduled task {task.name} failed: {e}", exc_info=True)

    def run(self) -> None:
        """Block, running tasks as they become due, until stop() is called."""
        if not self.tasks:
            logger.warning("Scheduler started with no tasks")
            return

        now = self._clock()
        for task in self.tasks:
            if task.run_immediately:
                task.next_run_at = now
            else:
                task.schedule_next(now, self._rng)

        logger.info(f"Scheduler running {len(self.tasks)} tasks: {[t.name for t in self.tasks]}")

        while not self._stop_event.is_set():
            task = min(self.tasks, key=lambda t: t.next_run_at)
            delay = task.next_run_at - self._clock()
            if delay > 0 and self._stop_event.wait(delay):
                break

            self.run_task(task)
            task.schedule_next(self._clock(), self._rng)

        logger.info("Scheduler stopped")
