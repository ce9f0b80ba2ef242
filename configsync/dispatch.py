"""Keyed work queue and worker pool that decide when reconcile passes run.

The queue gives the guarantees the reconcilers rely on:

- a key is handed to at most one worker at a time;
- adding a key that is already waiting is a no-op, and adding one that is
  being processed marks it dirty so it runs again once the current pass ends;
- of several delayed adds for one key only the earliest is kept;
- failures back off exponentially per key until the key succeeds.
"""

from __future__ import annotations

import heapq
import itertools
import logging
import threading
import time
from collections import deque
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from configsync.cancel import CancelToken
from configsync.exceptions import ConfigSyncError

if TYPE_CHECKING:
    from collections.abc import Callable, Hashable

logger = logging.getLogger(__name__)


@runtime_checkable
class Scheduler(Protocol):
    """Asks the dispatcher to run another pass for a key later."""

    def requeue_after(self, key: Hashable, seconds: float) -> None: ...


class WorkQueue:
    """Thread-safe deduplicating delay queue with per-key backoff."""

    def __init__(
        self,
        backoff_base: float = 1.0,
        backoff_max: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self._clock = clock
        self._cond = threading.Condition()
        self._ready: deque[Hashable] = deque()
        self._queued: set[Hashable] = set()
        self._processing: set[Hashable] = set()
        self._dirty: set[Hashable] = set()
        self._due: dict[Hashable, float] = {}
        self._heap: list[tuple[float, int, Hashable]] = []
        self._seq = itertools.count()
        self._failures: dict[Hashable, int] = {}
        self._shutting_down = False

    def __len__(self) -> int:
        with self._cond:
            return len(self._ready)

    @property
    def shutting_down(self) -> bool:
        return self._shutting_down

    def _add_locked(self, key: Hashable) -> None:
        if key in self._processing:
            self._dirty.add(key)
            return
        if key in self._queued:
            return
        self._queued.add(key)
        self._ready.append(key)
        self._cond.notify()

    def add(self, key: Hashable) -> None:
        """Make key ready for processing now."""
        with self._cond:
            if self._shutting_down:
                return
            self._add_locked(key)

    def add_after(self, key: Hashable, seconds: float) -> None:
        """Make key ready after seconds, unless an earlier add is already pending."""
        if seconds <= 0:
            self.add(key)
            return
        with self._cond:
            if self._shutting_down:
                return
            due = self._clock() + seconds
            current = self._due.get(key)
            if current is not None and current <= due:
                return
            self._due[key] = due
            heapq.heappush(self._heap, (due, next(self._seq), key))
            self._cond.notify()

    def requeue_after(self, key: Hashable, seconds: float) -> None:
        self.add_after(key, seconds)

    def when(self, key: Hashable) -> float | None:
        """Return the clock time a delayed add for key fires, if one is pending."""
        with self._cond:
            return self._due.get(key)

    def backoff_delay(self, key: Hashable) -> float:
        """Return the delay the next failure of key will be retried after."""
        with self._cond:
            failures = self._failures.get(key, 0)
        return min(self.backoff_base * (2**failures), self.backoff_max)

    def add_rate_limited(self, key: Hashable) -> float:
        """Requeue key after its backoff delay and record one more failure."""
        delay = self.backoff_delay(key)
        with self._cond:
            self._failures[key] = self._failures.get(key, 0) + 1
        self.add_after(key, delay)
        return delay

    def forget(self, key: Hashable) -> None:
        """Reset the failure count of key."""
        with self._cond:
            self._failures.pop(key, None)

    def failures(self, key: Hashable) -> int:
        with self._cond:
            return self._failures.get(key, 0)

    def _promote_due_locked(self) -> float | None:
        """Move delayed keys whose time has come; return the next due time."""
        now = self._clock()
        while self._heap:
            due, _, key = self._heap[0]
            if self._due.get(key) != due:
                # Superseded by an earlier add
                heapq.heappop(self._heap)
                continue
            if due > now:
                return due
            heapq.heappop(self._heap)
            del self._due[key]
            self._add_locked(key)
        return None

    def get(self, timeout: float | None = None) -> Hashable | None:
        """Block until a key is ready and mark it as processing.

        Returns None on shutdown or when timeout seconds pass without work.
        Every key returned must be handed back with done().
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            while True:
                if self._shutting_down:
                    return None
                next_due = self._promote_due_locked()
                if self._ready:
                    key = self._ready.popleft()
                    self._queued.discard(key)
                    self._processing.add(key)
                    return key

                wait: float | None = None
                if next_due is not None:
                    wait = max(next_due - self._clock(), 0.0)
                if deadline is not None:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        return None
                    wait = remaining if wait is None else min(wait, remaining)
                self._cond.wait(wait)

    def done(self, key: Hashable) -> None:
        """Finish processing key, re-adding it if it was added meanwhile."""
        with self._cond:
            self._processing.discard(key)
            if key in self._dirty:
                self._dirty.discard(key)
                self._add_locked(key)

    def shutdown(self) -> None:
        """Wake every waiting worker and refuse new work."""
        with self._cond:
            self._shutting_down = True
            self._cond.notify_all()


class Dispatcher:
    """Runs a reconcile function for keys from a WorkQueue on worker threads.

    Every pass gets a fresh CancelToken that trips on stop() or when the
    optional per-pass deadline expires.
    """

    def __init__(
        self,
        name: str,
        queue: WorkQueue,
        reconcile: Callable[[Hashable, CancelToken], None],
        workers: int = 1,
        pass_timeout: float | None = None,
    ) -> None:
        self.name = name
        self.queue = queue
        self.reconcile = reconcile
        self.workers = workers
        self.pass_timeout = pass_timeout or None
        self._stop = threading.Event()
        self._threads: list[threading.Thread] = []

    def enqueue(self, key: Hashable) -> None:
        self.queue.add(key)

    def start(self) -> None:
        for i in range(self.workers):
            thread = threading.Thread(
                target=self._worker, name=f"{self.name}-worker-{i}", daemon=True
            )
            thread.start()
            self._threads.append(thread)
        logger.info("Started %d %s workers", self.workers, self.name)

    def stop(self, timeout: float | None = None) -> None:
        """Cancel in-flight passes, stop the workers and wait for them."""
        self._stop.set()
        self.queue.shutdown()
        for thread in self._threads:
            thread.join(timeout)
        self._threads.clear()
        logger.info("Stopped %s workers", self.name)

    def _worker(self) -> None:
        while True:
            key = self.queue.get()
            if key is None:
                return
            self._process(key)

    def process_next(self, timeout: float | None = 0) -> bool:
        """Process one ready key on the calling thread. Returns False if none was ready."""
        key = self.queue.get(timeout)
        if key is None:
            return False
        self._process(key)
        return True

    def _process(self, key: Hashable) -> None:
        cancel = CancelToken(self._stop, self.pass_timeout)
        try:
            self.reconcile(key, cancel)
        except ConfigSyncError as exc:
            if exc.retryable:
                delay = self.queue.add_rate_limited(key)
                logger.error(
                    "Reconcile of %s %s failed, retrying in %ss: %s", self.name, key, delay, exc
                )
            else:
                self.queue.forget(key)
                logger.error("Reconcile of %s %s failed, not retrying: %s", self.name, key, exc)
        except Exception:
            delay = self.queue.add_rate_limited(key)
            logger.exception(
                "Unexpected error reconciling %s %s, retrying in %ss", self.name, key, delay
            )
        else:
            self.queue.forget(key)
        finally:
            self.queue.done(key)
