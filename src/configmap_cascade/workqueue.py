"""Deduplicating, rate limited work queue.

The queue tracks two sets besides the FIFO itself:

* ``dirty`` holds every key that needs processing.  Adding a key that is
  already dirty is a no-op, so bursts of notifications collapse into one
  pending entry.
* ``processing`` holds keys currently handed out to a worker.  A key added
  while it is being processed is only re-queued once :meth:`WorkQueue.done`
  is called, so no two workers ever handle the same key concurrently.
"""

from __future__ import annotations

import heapq
import itertools
import logging
from collections import deque
from threading import Condition, Lock, Thread
from time import monotonic
from typing import Deque, Dict, Hashable, List, Optional, Set, Tuple

LOG = logging.getLogger(__name__)


class ExponentialBackoff:
    """Per-item exponential backoff: ``base_delay * 2**failures``, capped."""

    def __init__(self, base_delay: float = 0.005, max_delay: float = 1000.0) -> None:
        if base_delay <= 0 or max_delay < base_delay:
            raise ValueError("backoff requires 0 < base_delay <= max_delay")
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._failures: Dict[Hashable, int] = {}
        self._lock = Lock()

    def when(self, item: Hashable) -> float:
        with self._lock:
            exponent = self._failures.get(item, 0)
            self._failures[item] = exponent + 1

        # 2**64 times any sane base is far beyond max_delay already
        if exponent >= 64:
            return self._max_delay
        return min(self._base_delay * (2 ** exponent), self._max_delay)

    def num_requeues(self, item: Hashable) -> int:
        with self._lock:
            return self._failures.get(item, 0)

    def forget(self, item: Hashable) -> None:
        with self._lock:
            self._failures.pop(item, None)


class WorkQueue:
    """Thread-safe FIFO with dedup and single-worker-per-key semantics."""

    def __init__(self) -> None:
        self._cond = Condition()
        self._queue: Deque[Hashable] = deque()
        self._dirty: Set[Hashable] = set()
        self._processing: Set[Hashable] = set()
        self._shutting_down = False

    def add(self, item: Hashable) -> None:
        with self._cond:
            if self._shutting_down:
                LOG.debug("queue shutting down, dropping %s", item)
                return
            if item in self._dirty:
                return
            self._dirty.add(item)
            if item in self._processing:
                return
            self._queue.append(item)
            self._cond.notify()

    def get(self, timeout: Optional[float] = None) -> Tuple[Optional[Hashable], bool]:
        """Block until an item is available.

        Returns ``(item, False)`` for work, ``(None, True)`` once the queue has
        been shut down and drained, and ``(None, False)`` if ``timeout``
        elapsed with nothing to do.
        """

        with self._cond:
            self._cond.wait_for(
                lambda: self._queue or self._shutting_down, timeout=timeout
            )
            if not self._queue:
                return None, self._shutting_down

            item = self._queue.popleft()
            self._processing.add(item)
            self._dirty.discard(item)
            return item, False

    def done(self, item: Hashable) -> None:
        with self._cond:
            self._processing.discard(item)
            if item in self._dirty:
                self._queue.append(item)
                self._cond.notify()

    def shut_down(self) -> None:
        with self._cond:
            self._shutting_down = True
            self._cond.notify_all()

    @property
    def shutting_down(self) -> bool:
        with self._cond:
            return self._shutting_down

    def __len__(self) -> int:
        with self._cond:
            return len(self._queue)


class DelayingQueue(WorkQueue):
    """Work queue that can hold items back for a while before adding them."""

    def __init__(self) -> None:
        super().__init__()
        self._delay_cond = Condition()
        self._heap: List[Tuple[float, int, Hashable]] = []
        self._waiting: Dict[Hashable, float] = {}
        self._counter = itertools.count()
        self._stopped = False
        self._waiter = Thread(
            target=self._wait_loop, name="workqueue-delay", daemon=True
        )
        self._waiter.start()

    def add_after(self, item: Hashable, delay: float) -> None:
        if self.shutting_down:
            return
        if delay <= 0:
            self.add(item)
            return

        ready_at = monotonic() + delay
        with self._delay_cond:
            existing = self._waiting.get(item)
            # keep the earliest deadline for an item that is already waiting
            if existing is not None and existing <= ready_at:
                return
            self._waiting[item] = ready_at
            heapq.heappush(self._heap, (ready_at, next(self._counter), item))
            self._delay_cond.notify()

    def _wait_loop(self) -> None:
        while True:
            with self._delay_cond:
                if self._stopped:
                    return
                if not self._heap:
                    self._delay_cond.wait()
                    continue
                ready_at, _, item = self._heap[0]
                remaining = ready_at - monotonic()
                if remaining > 0:
                    self._delay_cond.wait(remaining)
                    continue
                heapq.heappop(self._heap)
                if self._waiting.get(item) != ready_at:
                    # superseded by an earlier deadline
                    continue
                del self._waiting[item]
            self.add(item)

    def shut_down(self) -> None:
        super().shut_down()
        with self._delay_cond:
            self._stopped = True
            self._heap.clear()
            self._waiting.clear()
            self._delay_cond.notify_all()


class RateLimitingQueue(DelayingQueue):
    """Delaying queue whose re-adds are spaced by a backoff policy."""

    def __init__(self, rate_limiter: Optional[ExponentialBackoff] = None) -> None:
        super().__init__()
        self._rate_limiter = rate_limiter or ExponentialBackoff()

    def add_rate_limited(self, item: Hashable) -> None:
        self.add_after(item, self._rate_limiter.when(item))

    def forget(self, item: Hashable) -> None:
        self._rate_limiter.forget(item)

    def num_requeues(self, item: Hashable) -> int:
        return self._rate_limiter.num_requeues(item)
