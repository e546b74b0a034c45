""" Keyed work queue and reconcile workers.

A key is handed to at most one worker at a time. Adding a key that is
already pending is a no-op; adding a key that is being processed marks it
dirty so it is queued again once the worker calls ``done``.
"""

import heapq
import itertools
import logging
import threading
import time
from collections import deque

from nodeset_operator.errors import StatusConflictError

logger = logging.getLogger(__name__)


class ShutDown(Exception):
    """Raised by ``get`` once the queue has been shut down."""


class WorkQueue:
    """De-duplicating FIFO with delayed and rate limited adds."""

    def __init__(self, backoff_base=1.0, backoff_max=300.0, clock=time.monotonic):
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self._clock = clock
        self._cond = threading.Condition()
        self._queue = deque()
        self._dirty = set()
        self._processing = set()
        self._waiting = []
        self._seq = itertools.count()
        self._failures = {}
        self._shutting_down = False

    def __len__(self):
        with self._cond:
            return len(self._queue)

    def _add_locked(self, key):
        if self._shutting_down or key in self._dirty:
            return
        self._dirty.add(key)
        if key in self._processing:
            return
        self._queue.append(key)
        self._cond.notify()

    def add(self, key):
        with self._cond:
            self._add_locked(key)

    def add_after(self, key, delay):
        if delay is None or delay <= 0:
            self.add(key)
            return
        with self._cond:
            if self._shutting_down:
                return
            heapq.heappush(self._waiting, (self._clock() + delay, next(self._seq), key))
            self._cond.notify()

    def backoff(self, key):
        """Delay the next rate limited add of ``key`` would use."""
        failures = self._failures.get(key, 0)
        return min(self.backoff_base * (2 ** failures), self.backoff_max)

    def add_rate_limited(self, key):
        with self._cond:
            delay = self.backoff(key)
            self._failures[key] = self._failures.get(key, 0) + 1
        logger.debug(f"Requeueing {key} in {delay}s")
        self.add_after(key, delay)

    def forget(self, key):
        with self._cond:
            self._failures.pop(key, None)

    def num_requeues(self, key):
        with self._cond:
            return self._failures.get(key, 0)

    def _promote_ready_locked(self):
        now = self._clock()
        while self._waiting and self._waiting[0][0] <= now:
            _, _, key = heapq.heappop(self._waiting)
            self._add_locked(key)

    def get(self, timeout=None):
        """Block until a key is available and mark it as being processed.

        Returns:
            The key, or None when ``timeout`` expires first

        Raises:
            ShutDown: the queue has been shut down
        """
        deadline = None if timeout is None else self._clock() + timeout
        with self._cond:
            while True:
                if self._shutting_down:
                    raise ShutDown()
                self._promote_ready_locked()
                if self._queue:
                    key = self._queue.popleft()
                    self._processing.add(key)
                    self._dirty.discard(key)
                    return key

                wait = None
                if self._waiting:
                    wait = max(self._waiting[0][0] - self._clock(), 0)
                if deadline is not None:
                    remaining = deadline - self._clock()
                    if remaining <= 0:
                        return None
                    wait = remaining if wait is None else min(wait, remaining)
                self._cond.wait(wait)

    def done(self, key):
        with self._cond:
            self._processing.discard(key)
            if key in self._dirty:
                self._queue.append(key)
                self._cond.notify()

    def shutdown(self):
        with self._cond:
            self._shutting_down = True
            self._cond.notify_all()


class WorkerPool:
    """Threads draining a WorkQueue into the reconciler."""

    def __init__(self, queue: WorkQueue, reconciler, workers=2):
        self.queue = queue
        self.reconciler = reconciler
        self.workers = workers
        self._threads = []

    def start(self):
        for i in range(self.workers):
            thread = threading.Thread(
                target=self._run, name=f"nodeset-worker-{i}", daemon=True
            )
            thread.start()
            self._threads.append(thread)
        logger.info(f"Started {self.workers} reconcile workers")

    def stop(self, timeout=5.0):
        self.queue.shutdown()
        for thread in self._threads:
            thread.join(timeout)
        self._threads = []
        logger.info("Reconcile workers stopped")

    def _run(self):
        while True:
            try:
                key = self.queue.get()
            except ShutDown:
                return
            try:
                self.process(key)
            finally:
                self.queue.done(key)

    def process(self, key):
        """Reconcile one key and schedule its next attempt."""
        namespace, name = key
        try:
            result = self.reconciler.reconcile(namespace, name)
        except StatusConflictError as e:
            logger.info(f"{e}, requeueing {namespace}/{name}")
            self.queue.add(key)
            return
        except Exception as e:
            logger.error(f"Reconcile of {namespace}/{name} failed: {e}")
            self.queue.add_rate_limited(key)
            return

        self.queue.forget(key)
        if result is not None and result.requeue_after is not None:
            self.queue.add_after(key, result.requeue_after)
