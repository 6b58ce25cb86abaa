"""Bounded worker pool for crawl tasks with first-error reporting."""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Callable, List, Optional

from exporters.resource_manager import ExportCancelled
from logger import ProgressTracker

Task = Callable[[threading.Event], object]


class WorkerPool:
    """
    Runs crawl tasks on at most ``max_workers`` threads.

    A slot is acquired before each submit and released when the task
    completes, so the walker blocks while the pool is full. Tasks only
    report failure: the first error (by completion time) is kept and
    re-raised by ``join``; later errors are logged. With
    ``cancel_on_error`` the first failure sets ``cancel_event`` and tasks
    that have not started yet are skipped.
    """

    def __init__(
        self,
        max_workers: int = 10,
        cancel_on_error: bool = True,
        tracker: Optional[ProgressTracker] = None,
        logger: Optional[logging.Logger] = None
    ):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")

        self.max_workers = max_workers
        self.cancel_on_error = cancel_on_error
        self.tracker = tracker
        self.logger = logger or logging.getLogger('feishu_docs_exporter.orchestrator.pool')

        self.cancel_event = threading.Event()
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix='crawl')
        self._slots = threading.BoundedSemaphore(max_workers)
        self._lock = threading.Lock()
        self._futures: List[Future] = []
        self._first_error: Optional[BaseException] = None

        self.stats = {
            'submitted': 0,
            'succeeded': 0,
            'failed': 0,
            'skipped': 0
        }

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    @property
    def first_error(self) -> Optional[BaseException]:
        with self._lock:
            return self._first_error

    def submit(self, task: Task, label: str = '') -> None:
        """
        Schedule a task, blocking until a worker slot is free.

        Args:
            task: Callable receiving the cancellation event
            label: Name used in log messages
        """
        self._slots.acquire()
        try:
            future = self._executor.submit(self._run, task, label)
        except BaseException:
            self._slots.release()
            raise
        future.add_done_callback(lambda _: self._slots.release())

        with self._lock:
            self._futures.append(future)
            self.stats['submitted'] += 1
        if self.tracker is not None:
            self.tracker.add_items(1)

    def _run(self, task: Task, label: str) -> None:
        if self.cancel_event.is_set():
            self._record_skip(label)
            return

        try:
            task(self.cancel_event)
        except ExportCancelled:
            self._record_skip(label)
            return
        except Exception as e:
            self._record_error(e, label)
            return

        with self._lock:
            self.stats['succeeded'] += 1
        if self.tracker is not None:
            self.tracker.increment(success=True)

    def _record_skip(self, label: str) -> None:
        self.logger.debug(f"Skipped cancelled task: {label}")
        with self._lock:
            self.stats['skipped'] += 1
        if self.tracker is not None:
            self.tracker.skip()

    def _record_error(self, error: Exception, label: str) -> None:
        with self._lock:
            self.stats['failed'] += 1
            is_first = self._first_error is None
            if is_first:
                self._first_error = error

        if self.tracker is not None:
            self.tracker.increment(success=False)

        if is_first:
            self.logger.error(f"Task failed: {label}: {error}")
            if self.cancel_on_error:
                self.cancel_event.set()
        else:
            self.logger.warning(f"Additional task failure discarded: {label}: {error}")

    def cancel(self) -> None:
        """Skip every task that has not started yet."""
        self.cancel_event.set()

    def shutdown(self) -> None:
        """Wait for every dispatched task without raising."""
        with self._lock:
            futures = list(self._futures)
        wait(futures)
        self._executor.shutdown(wait=True)

    def join(self) -> None:
        """
        Wait for every dispatched task, then re-raise the first task error.

        Raises:
            Exception: The first error observed among the tasks
        """
        self.shutdown()
        error = self.first_error
        if error is not None:
            raise error

    def __enter__(self) -> 'WorkerPool':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None:
            self.cancel()
            self.shutdown()
            return False
        self.join()
        return False
