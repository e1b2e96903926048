import logging
import math

logger = logging.getLogger(__name__)


class CountdownTimer:
    """
    Ticks once a second until ``time_remaining`` reaches zero, then calls
    ``on_expire`` exactly once.
    """

    def __init__(self, scheduler, duration_seconds, on_expire=None, on_tick=None, tick_seconds=1):
        self.scheduler = scheduler
        self.on_expire = on_expire
        self.on_tick = on_tick
        self.tick_seconds = tick_seconds
        self._remaining = max(0, duration_seconds)
        self._deadline = None
        self._task = None
        self._expired = False

    @property
    def running(self):
        return self._deadline is not None

    @property
    def is_expired(self):
        return self._expired

    @property
    def time_remaining(self):
        if self._deadline is None:
            return int(math.ceil(self._remaining))
        return max(0, int(math.ceil(self._deadline - self.scheduler.now())))

    def start(self):
        if self.running or self._expired:
            return
        if self._remaining <= 0:
            self._expire()
            return
        self._deadline = self.scheduler.now() + self._remaining
        self._schedule()

    def stop(self):
        """Pause; ``start`` resumes from what is left."""
        if self._task is not None:
            self._task.cancel()
            self._task = None
        if self._deadline is not None:
            self._remaining = max(0, self._deadline - self.scheduler.now())
            self._deadline = None

    def _schedule(self):
        delay = min(self.tick_seconds, self._deadline - self.scheduler.now())
        self._task = self.scheduler.call_later(delay, self._tick)

    def _tick(self):
        self._task = None
        if self._deadline is None:
            return
        remaining = self.time_remaining
        if self.on_tick:
            self.on_tick(remaining)
        if remaining <= 0:
            self._deadline = None
            self._remaining = 0
            self._expire()
        else:
            self._schedule()

    def _expire(self):
        if self._expired:
            return
        self._expired = True
        logger.debug("Timer expired")
        if self.on_expire:
            self.on_expire()
