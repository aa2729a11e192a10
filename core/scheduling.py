"""
Chunk schedulers.

Visit tracking processes sessions in fixed-size chunks and hands control to a
scheduler between chunks. A scheduler can report progress, give a host loop a
chance to run, or stop the run. Results never depend on the scheduler.
"""

import logging
import threading
from core.errors import PipelineCancelled

logger = logging.getLogger(__name__)


class SynchronousScheduler:
    """Runs every chunk back to back"""

    def checkpoint(self, done: int, total: int) -> None:
        pass


class LoggingScheduler(SynchronousScheduler):
    """Logs progress every `every` chunks and at the end"""

    def __init__(self, every: int = 10):
        self.every = max(1, every)

    def checkpoint(self, done: int, total: int) -> None:
        if done % self.every == 0 or done == total:
            logger.info(f"[PROGRESS] {done}/{total} chunks processed")


class CancellableScheduler(LoggingScheduler):
    """Stops the run at the next chunk boundary once the event is set"""

    def __init__(self, cancel_event: threading.Event | None = None, every: int = 10):
        super().__init__(every=every)
        self.cancel_event = cancel_event or threading.Event()

    def cancel(self):
        self.cancel_event.set()

    def checkpoint(self, done: int, total: int) -> None:
        super().checkpoint(done, total)
        if self.cancel_event.is_set() and done < total:
            raise PipelineCancelled(f"Cancelled after {done}/{total} chunks")
