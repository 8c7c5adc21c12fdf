# scheduler/timers.py
"""
Cancellable one-shot timers.

Anything that needs to run later (reminders, the draft prune sweep, the daily
summary) goes through a Scheduler:

    handle = scheduler.schedule(at, action)
    handle.cancel()

ThreadingScheduler is the production implementation: one daemon worker thread
sleeps until the earliest pending job, so the thread count stays flat however
many reminders are armed. Tests swap in a manual one and move the clock
themselves.
"""

from __future__ import annotations

import heapq
import itertools
import logging
import threading
from datetime import datetime as _dt
from typing import Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)

Clock = Callable[[], _dt]

# upper bound on one sleep, so wall-clock jumps are noticed
MAX_WAIT_SECONDS = 60.0


class Job:
    """Handle returned by ThreadingScheduler.schedule."""

    def __init__(self, at: _dt, action: Callable[[], None]):
        self.at = at
        self.action = action
        self.cancelled = False

    def cancel(self) -> None:
        # the worker drops cancelled jobs when they reach the top of the heap
        self.cancelled = True


class ThreadingScheduler:
    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or _dt.now
        self._heap: List[Tuple[_dt, int, Job]] = []
        self._seq = itertools.count()
        self._cond = threading.Condition()
        self._worker: Optional[threading.Thread] = None
        self._stopped = False

    def schedule(self, at: _dt, action: Callable[[], None]) -> Job:
        job = Job(at, action)
        with self._cond:
            heapq.heappush(self._heap, (at, next(self._seq), job))
            if self._worker is None:
                self._worker = threading.Thread(target=self._loop, name="schedule-timers", daemon=True)
                self._worker.start()
            self._cond.notify()
        return job

    def pending(self) -> int:
        with self._cond:
            return sum(1 for _, _, job in self._heap if not job.cancelled)

    def shutdown(self) -> None:
        """Stop the worker; jobs still queued never run."""
        with self._cond:
            self._stopped = True
            self._cond.notify()
        if self._worker is not None:
            self._worker.join(timeout=5)

    def _next_due(self) -> Optional[Job]:
        """Block until a job is due (returned) or the scheduler stops (None)."""
        with self._cond:
            while not self._stopped:
                while self._heap and self._heap[0][2].cancelled:
                    heapq.heappop(self._heap)
                if not self._heap:
                    self._cond.wait()
                    continue
                delay = (self._heap[0][0] - self.clock()).total_seconds()
                if delay <= 0:
                    return heapq.heappop(self._heap)[2]
                self._cond.wait(min(delay, MAX_WAIT_SECONDS))
            return None

    def _loop(self) -> None:
        while True:
            job = self._next_due()
            if job is None:
                return
            # run outside the lock; actions may schedule follow-up jobs
            try:
                job.action()
            except Exception:
                logger.exception("scheduled job failed")
