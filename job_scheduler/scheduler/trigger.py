"""
Cron trigger for Job Scheduler.

Validates cron expressions and arms one background timer per job. Accepted
forms:

    min hour dom month dow          (5 fields)
    sec min hour dom month dow      (6 fields, leading seconds)

croniter places an optional seconds field last, so 6-field expressions are
rotated before being handed to it.
"""

import logging
import threading
from datetime import datetime
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from croniter import croniter

from .entities import utc_now


logger = logging.getLogger(__name__)


def to_croniter_expression(expression: str) -> str:
    """
    Normalize a 5/6-field expression to croniter's field order.

    Raises:
        ValueError: If the field count is not 5 or 6
    """
    fields = expression.split()
    if len(fields) == 5:
        return " ".join(fields)
    if len(fields) == 6:
        return " ".join(fields[1:] + fields[:1])
    raise ValueError(f"expected 5 or 6 fields, got {len(fields)}")


def is_valid_cron(expression: str) -> bool:
    try:
        normalized = to_croniter_expression(expression)
    except ValueError:
        return False
    return croniter.is_valid(normalized)


def next_fire_time(expression: str, tz: ZoneInfo, after: datetime) -> datetime:
    """First fire time strictly after ``after``, as an aware datetime in ``tz``."""
    iterator = croniter(to_croniter_expression(expression), after.astimezone(tz))
    nxt = iterator.get_next(datetime)
    if nxt.tzinfo is None:
        nxt = nxt.replace(tzinfo=tz)
    return nxt


class CronTrigger:
    """
    Background timer firing ``callback(fire_time)`` on a cron cadence.

    The timer thread only waits and calls back; the callback is expected to
    hand real work off to another thread so a slow job never delays the
    next tick.
    """

    def __init__(
        self,
        name: str,
        expression: str,
        timezone: ZoneInfo,
        callback: Callable[[datetime], None],
        clock: Callable = utc_now,
    ):
        self.name = name
        self.expression = expression
        self.timezone = timezone
        self.callback = callback
        self.clock = clock

        self.next_fire_at: Optional[datetime] = None
        self._last_fire_at: Optional[datetime] = None
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def compute_next(self, after: Optional[datetime] = None) -> datetime:
        after = after or self.clock()
        if self._last_fire_at is not None and self._last_fire_at > after:
            after = self._last_fire_at
        return next_fire_time(self.expression, self.timezone, after)

    def start(self) -> None:
        """Arm the timer. No-op if already armed."""
        if self.running:
            return

        self._stop_event.clear()
        self.next_fire_at = self.compute_next()
        self._thread = threading.Thread(
            target=self._loop,
            name=f"cron-{self.name}",
            daemon=True,
        )
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        """Disarm the timer. A firing already handed off keeps running."""
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)
            if thread.is_alive():
                logger.warning(f"Timer for job '{self.name}' did not stop within {timeout}s")
        self._thread = None

    def _loop(self) -> None:
        while not self._stop_event.is_set():
            fire_at = self.next_fire_at or self.compute_next()
            delay = (fire_at - self.clock()).total_seconds()

            if self._stop_event.wait(max(delay, 0.0)):
                break

            self._last_fire_at = fire_at
            try:
                self.callback(fire_at)
            except Exception as e:
                logger.error(f"Error in trigger callback for job '{self.name}': {e}", exc_info=True)

            self.next_fire_at = self.compute_next()
