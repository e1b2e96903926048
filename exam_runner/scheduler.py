import heapq
import itertools
import logging
import threading
import time

logger = logging.getLogger(__name__)


class ManualClock:
    """A clock that only moves when told to. Used for tests and replays."""

    def __init__(self, start=0.0):
        self._now = float(start)

    def __call__(self):
        return self._now

    def set(self, value):
        if value < self._now:
            raise ValueError("ManualClock cannot go backwards")
        self._now = float(value)

    def advance(self, seconds):
        self.set(self._now + seconds)


class ScheduledTask:
    def __init__(self, when, sequence, callback):
        self.when = when
        self.sequence = sequence
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True

    def __lt__(self, other):
        return (self.when, self.sequence) < (other.when, other.sequence)


class TaskScheduler:
    """
    Cancellable delayed callbacks on an injectable clock.

    With the default monotonic clock, ``run_until`` sleeps between tasks.
    With a ManualClock, ``advance`` replays every task due in the window in
    time order, moving the clock to each task's due time before running it.
    """

    def __init__(self, clock=time.monotonic):
        self.clock = clock
        self._queue = []
        self._sequence = itertools.count()
        self._lock = threading.Lock()

    def now(self):
        return self.clock()

    def call_later(self, delay, callback):
        task = ScheduledTask(self.now() + max(0, delay), next(self._sequence), callback)
        with self._lock:
            heapq.heappush(self._queue, task)
        return task

    def pending(self):
        with self._lock:
            return sum(1 for task in self._queue if not task.cancelled)

    def _pop_due(self, until):
        with self._lock:
            while self._queue and self._queue[0].cancelled:
                heapq.heappop(self._queue)
            if self._queue and self._queue[0].when <= until:
                return heapq.heappop(self._queue)
        return None

    def _run(self, task):
        try:
            task.callback()
        except Exception:
            # One failing callback must not stop the timers behind it
            logger.exception("Scheduled task %s failed", task.callback)

    def run_pending(self):
        """Run every task that is due now. Returns how many ran."""
        ran = 0
        while True:
            task = self._pop_due(self.now())
            if task is None:
                return ran
            self._run(task)
            ran += 1

    def advance(self, seconds):
        """ManualClock only: move time forward, firing tasks as their time comes."""
        if not isinstance(self.clock, ManualClock):
            raise TypeError("advance() needs a ManualClock")
        target = self.now() + seconds
        ran = 0
        while True:
            task = self._pop_due(target)
            if task is None:
                break
            self.clock.set(max(self.now(), task.when))
            self._run(task)
            ran += 1
        self.clock.set(target)
        return ran

    def run_until(self, predicate, poll_interval=0.25):
        """Real-time loop: keep firing tasks until ``predicate()`` is true or nothing is left."""
        while not predicate():
            self.run_pending()
            with self._lock:
                upcoming = [task.when for task in self._queue if not task.cancelled]
            if not upcoming:
                return
            time.sleep(max(0, min(poll_interval, min(upcoming) - self.now())))
