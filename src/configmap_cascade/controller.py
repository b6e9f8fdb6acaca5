"""Worker pool draining the work queue into the reconciler."""

from __future__ import annotations

import logging
import time
from threading import Event, Thread
from typing import List, Optional

from .errors import RetryableError
from .model import ReconcileKey
from .reconciler import Reconciler
from .workqueue import RateLimitingQueue

LOG = logging.getLogger(__name__)


class Controller:
    """Run ``workers`` threads, each looping on ``queue.get()``.

    Failed keys are re-added with backoff until they have been requeued
    ``max_retries`` times, after which they are dropped until the next
    notification for the same resource.
    """

    def __init__(
        self,
        queue: RateLimitingQueue,
        reconciler: Reconciler,
        *,
        workers: int = 2,
        max_retries: int = 15,
        reconcile_timeout: float = 30.0,
    ) -> None:
        if workers < 1:
            raise ValueError("controller needs at least one worker")
        self._queue = queue
        self._reconciler = reconciler
        self._workers = workers
        self._max_retries = max_retries
        self._reconcile_timeout = reconcile_timeout
        self._stop_event = Event()
        self._threads: List[Thread] = []

    @property
    def queue(self) -> RateLimitingQueue:
        return self._queue

    def start(self, stop_event: Optional[Event] = None) -> None:
        if stop_event is not None:
            self._stop_event = stop_event
        for index in range(self._workers):
            thread = Thread(
                target=self._run_worker, name=f"cascade-worker-{index}", daemon=True
            )
            thread.start()
            self._threads.append(thread)
        LOG.info("Started %d cascade worker(s)", self._workers)

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        self._queue.shut_down()
        for thread in self._threads:
            thread.join(timeout)
        self._threads.clear()
        LOG.info("Cascade workers stopped")

    def run(self, stop_event: Event) -> None:
        """Start the workers and block until ``stop_event`` is set."""

        self.start(stop_event)
        try:
            while not stop_event.is_set():
                stop_event.wait(1.0)
        finally:
            self.stop()

    def _run_worker(self) -> None:
        while self.process_next_item():
            pass

    def process_next_item(self) -> bool:
        """Process one key; return ``False`` once the queue is shut down."""

        key, shutdown = self._queue.get()
        if shutdown:
            return False
        if key is None:
            return True

        try:
            self._reconcile(key)
        finally:
            self._queue.done(key)
        return True

    def _reconcile(self, key: ReconcileKey) -> None:
        deadline = time.monotonic() + self._reconcile_timeout
        try:
            self._reconciler.reconcile(key, stop_event=self._stop_event, deadline=deadline)
        except RetryableError as exc:
            self._handle_error(key, exc)
        except Exception as exc:
            LOG.exception("Unexpected error reconciling %s", key)
            self._handle_error(key, exc)
        else:
            self._queue.forget(key)

    def _handle_error(self, key: ReconcileKey, exc: Exception) -> None:
        requeues = self._queue.num_requeues(key)
        if requeues < self._max_retries:
            LOG.warning(
                "Error reconciling %s (attempt %d): %s", key, requeues + 1, exc
            )
            self._queue.add_rate_limited(key)
            return

        LOG.error(
            "Dropping %s out of the queue after %d retries: %s",
            key,
            requeues,
            exc,
        )
        self._queue.forget(key)
