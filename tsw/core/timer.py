"""Countdown timer engine.

Remaining time is derived from a wall-clock deadline (``end_time``) while
running.  Reaching zero expires the run: the engine stops ticking, writes
the cleared state and raises the expiry signal exactly once for that run.
"""

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from tsw.common.logger import log
from tsw.core.engine import BaseEngine, DEFAULT_TICK_INTERVAL_MS
from tsw.core.store import TIMER, DEFAULT_TIMER_REMAINING_MS, TimerSnapshot
from tsw.util.misc import clamp, compose_ms, format_ms

MAX_HOURS = 99
MAX_DURATION_MS = compose_ms(MAX_HOURS, 59, 59)
NEAR_EXPIRY_MS = 10000


class TimerPhase(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    EXPIRED = "expired"


@dataclass(frozen=True)
class TimerView:
    """Read-only copy of the timer handed to the presentation layer."""
    remaining_ms: int
    is_running: bool
    end_time: int
    configured_duration_ms: int
    phase: TimerPhase
    near_expiry: bool

    @property
    def formatted(self):
        return format_ms(self.remaining_ms)


class TimerEngine(BaseEngine):

    name = "timer"

    def __init__(
            self,
            store,
            clock=None,
            ticker=None,
            tick_interval_ms=DEFAULT_TICK_INTERVAL_MS,
            default_duration_ms=DEFAULT_TIMER_REMAINING_MS,
            near_expiry_ms=NEAR_EXPIRY_MS,
    ):
        super().__init__(store, clock, ticker, tick_interval_ms)
        duration = clamp(int(default_duration_ms), 0, MAX_DURATION_MS)
        self._configured_ms = duration
        self._remaining_ms = duration
        self._running = False
        self._end_time = 0
        self._phase = TimerPhase.IDLE
        self._near_expiry_ms = near_expiry_ms
        self._expiry_subscribers: list[Callable] = []
        self._expiry_raised = False

    # ------------------------------------------------------------------ #
    #  Accessors                                                           #
    # ------------------------------------------------------------------ #

    @property
    def remaining_ms(self):
        return self._remaining_ms

    @property
    def configured_duration_ms(self):
        return self._configured_ms

    @property
    def is_running(self):
        return self._running

    @property
    def end_time(self):
        return self._end_time

    @property
    def phase(self):
        return self._phase

    def is_near_expiry(self):
        """True in the last stretch of a running countdown (highlight hint)."""
        return self._running and 0 < self._remaining_ms <= self._near_expiry_ms

    def snapshot(self):
        with self._lock:
            return TimerView(
                remaining_ms=self._remaining_ms,
                is_running=self._running,
                end_time=self._end_time,
                configured_duration_ms=self._configured_ms,
                phase=self._phase,
                near_expiry=self.is_near_expiry(),
            )

    def _persisted(self):
        """Idle is stored as the cleared group, so the next launch uses its own configured default."""
        if self._phase is TimerPhase.IDLE:
            return TimerSnapshot()
        return TimerSnapshot(
            remaining_ms=self._remaining_ms,
            is_running=self._running,
            end_time=self._end_time if self._running else 0,
        )

    def subscribe_expired(self, callback: Callable) -> Callable[[], None]:
        """Register ``callback(view)`` for expiry.  This is the alarm hook."""
        with self._lock:
            self._expiry_subscribers.append(callback)

        def unsubscribe():
            with self._lock:
                if callback in self._expiry_subscribers:
                    self._expiry_subscribers.remove(callback)

        return unsubscribe

    # ------------------------------------------------------------------ #
    #  Transitions                                                         #
    # ------------------------------------------------------------------ #

    def configure(self, hours, minutes, seconds):
        """Set the countdown duration.  Only honoured while idle."""
        with self._lock:
            if self._phase is not TimerPhase.IDLE:
                log.debug(f"Ignored timer configure() while {self._phase.value}")
                return False
            hours = clamp(int(hours), 0, MAX_HOURS)
            minutes = clamp(int(minutes), 0, 59)
            seconds = clamp(int(seconds), 0, 59)
            self._configured_ms = compose_ms(hours, minutes, seconds)
            self._remaining_ms = self._configured_ms
            log.debug(f"Configured timer for {hours:02d}:{minutes:02d}:{seconds:02d}")
            self._emit()
            return True

    def apply_preset(self, minutes):
        return self.configure(0, minutes, 0)

    def start(self):
        with self._lock:
            if self._running:
                log.debug("Ignored timer start(), already running")
                return False
            if self._remaining_ms <= 0:
                log.debug("Ignored timer start(), nothing left to count down")
                return False
            self._end_time = self._clock.now() + self._remaining_ms
            self._running = True
            self._phase = TimerPhase.RUNNING
            self._expiry_raised = False
            self._start_ticking()
            self._persist()
            log.debug(f"Started timer with {self._remaining_ms}ms left, deadline {self._end_time}")
            self._emit()
            return True

    def tick(self):
        with self._lock:
            if not self._running:
                return False
            remaining = self._end_time - self._clock.now()
            if remaining <= 0:
                self._expire()
                return True
            self._remaining_ms = remaining
            self._persist()
            self._emit()
            return True

    def pause(self):
        """Freeze the countdown.  The deadline is dropped; start() computes a fresh one."""
        with self._lock:
            if not self._running:
                log.debug("Ignored timer pause(), not running")
                return False
            remaining = self._end_time - self._clock.now()
            if remaining <= 0:
                self._expire()
                return True
            self._remaining_ms = remaining
            self._running = False
            self._end_time = 0
            self._phase = TimerPhase.PAUSED
            self._stop_ticking()
            self._persist()
            log.debug(f"Paused timer with {self._remaining_ms}ms left")
            self._emit()
            return True

    def reset(self):
        with self._lock:
            self._stop_ticking()
            self._running = False
            self._end_time = 0
            self._remaining_ms = self._configured_ms
            self._phase = TimerPhase.IDLE
            self._purge(TIMER)
            log.debug(f"Reset timer to {self._configured_ms}ms")
            self._emit()
            return True

    def _expire(self):
        self._stop_ticking()
        self._remaining_ms = 0
        self._running = False
        self._end_time = 0
        self._phase = TimerPhase.EXPIRED
        self._persist()
        log.info("Timer expired")
        self._emit()
        if not self._expiry_raised:
            self._expiry_raised = True
            self._notify(self._expiry_subscribers, self.snapshot())

    # ------------------------------------------------------------------ #
    #  Reconciliation                                                      #
    # ------------------------------------------------------------------ #

    def restore(self):
        """Rebuild state from the persisted copy at cold start.

        A timer whose deadline passed while the process was gone comes back
        expired, without raising the expiry signal.  A paused timer keeps its
        persisted remaining time, only bounded to the valid duration range.
        A cleared group comes back idle at the configured duration.
        """
        persisted = self._store.load(TIMER)
        with self._lock:
            now = self._clock.now()
            self._expiry_raised = False
            if persisted.is_running and persisted.end_time > now:
                remaining = persisted.end_time - now
                if remaining > MAX_DURATION_MS:
                    log.warning(f"Persisted timer deadline {persisted.end_time} is {remaining}ms away, clamping to {MAX_DURATION_MS}ms")
                    remaining = MAX_DURATION_MS
                self._remaining_ms = remaining
                self._end_time = now + remaining
                self._running = True
                self._phase = TimerPhase.RUNNING
                self._start_ticking()
            elif persisted.is_running:
                log.info(f"Persisted timer deadline {persisted.end_time} passed {now - persisted.end_time}ms ago, restoring as expired")
                self._remaining_ms = 0
                self._end_time = 0
                self._running = False
                self._phase = TimerPhase.EXPIRED
                # Don't re-raise for a run that ended while we were gone
                self._expiry_raised = True
                self._persist()
            elif persisted == TimerSnapshot():
                # Fresh install or a cleared group, nothing was ever paused
                self._remaining_ms = self._configured_ms
                self._end_time = 0
                self._running = False
                self._phase = TimerPhase.IDLE
            else:
                remaining = clamp(persisted.remaining_ms, 0, MAX_DURATION_MS)
                if remaining != persisted.remaining_ms:
                    log.warning(f"Persisted timer remaining {persisted.remaining_ms}ms is out of range, clamping to {remaining}ms")
                self._remaining_ms = remaining
                self._end_time = 0
                self._running = False
                if remaining == 0:
                    self._phase = TimerPhase.EXPIRED
                elif remaining == self._configured_ms:
                    self._phase = TimerPhase.IDLE
                else:
                    self._phase = TimerPhase.PAUSED
            log.info(f"Restored timer: remaining={self._remaining_ms}ms running={self._running} phase={self._phase.value}")
            self._emit()
            return self.snapshot()
