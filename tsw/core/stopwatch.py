from dataclasses import dataclass
from tsw.common.logger import log
from tsw.core.engine import BaseEngine, DEFAULT_TICK_INTERVAL_MS
from tsw.core.store import STOPWATCH, StopwatchSnapshot
from tsw.util.misc import format_ms


@dataclass(frozen=True)
class Lap:
    number: int
    split: str


# Read-only copy of the stopwatch handed to the presentation layer.
@dataclass(frozen=True)
class StopwatchView:
    elapsed_ms: int
    is_running: bool
    start_time: int
    laps: tuple

    @property
    def formatted(self):
        return format_ms(self.elapsed_ms)


# Count-up stopwatch with laps. Elapsed time is always derived from the wall clock: while running,
# elapsed == now - start_time, and start_time is shifted back by the already accumulated time on every start so a
# resume simply continues counting.
class StopwatchEngine(BaseEngine):

    name = "stopwatch"

    def __init__(self, store, clock=None, ticker=None, tick_interval_ms=DEFAULT_TICK_INTERVAL_MS):
        super().__init__(store, clock, ticker, tick_interval_ms)
        self._elapsed_ms = 0
        self._running = False
        self._start_time = 0
        self._laps = []
        self._lap_counter = 0

    #region === Accessors ===

    @property
    def elapsed_ms(self):
        return self._elapsed_ms

    @property
    def is_running(self):
        return self._running

    @property
    def start_time(self):
        return self._start_time

    @property
    def laps(self):
        return tuple(self._laps)

    def snapshot(self):
        with self._lock:
            return StopwatchView(
                elapsed_ms=self._elapsed_ms,
                is_running=self._running,
                start_time=self._start_time,
                laps=tuple(self._laps),
            )

    def _persisted(self):
        return StopwatchSnapshot(
            elapsed_ms=self._elapsed_ms,
            is_running=self._running,
            start_time=self._start_time,
        )

    #endregion === Accessors ===

    #region === Transitions ===

    def start(self):
        with self._lock:
            if self._running:
                log.debug("Ignored stopwatch start(), already running")
                return False
            self._start_time = self._clock.now() - self._elapsed_ms
            self._running = True
            self._start_ticking()
            self._persist()
            log.debug(f"Started stopwatch at {self._start_time} with {self._elapsed_ms}ms already accumulated")
            self._emit()
            return True

    # Refreshes elapsed from the wall clock. Never moves start_time.
    def tick(self):
        with self._lock:
            if not self._running:
                return False
            self._elapsed_ms = max(0, self._clock.now() - self._start_time)
            self._persist()
            self._emit()
            return True

    def pause(self):
        with self._lock:
            if not self._running:
                log.debug("Ignored stopwatch pause(), not running")
                return False
            self._elapsed_ms = max(0, self._clock.now() - self._start_time)
            self._running = False
            self._stop_ticking()
            self._persist()
            log.debug(f"Paused stopwatch at {self._elapsed_ms}ms")
            self._emit()
            return True

    # Records a lap with the current split. Returns the new Lap, or None if no time has accumulated yet.
    def add_lap(self):
        with self._lock:
            if self._elapsed_ms <= 0:
                log.debug("Ignored stopwatch add_lap(), no time accumulated")
                return None
            self._lap_counter += 1
            lap = Lap(self._lap_counter, format_ms(self._elapsed_ms))
            self._laps.append(lap)
            log.debug(f"Recorded lap {lap.number} at {lap.split}")
            self._emit()
            return lap

    def clear_laps(self):
        with self._lock:
            self._laps.clear()
            self._lap_counter = 0
            log.debug("Cleared stopwatch laps")
            self._emit()
            return True

    def reset(self):
        with self._lock:
            self._stop_ticking()
            self._running = False
            self._elapsed_ms = 0
            self._start_time = 0
            self._laps.clear()
            self._lap_counter = 0
            self._purge(STOPWATCH)
            log.debug("Reset stopwatch to 0")
            self._emit()
            return True

    #endregion === Transitions ===

    #region === Reconciliation ===

    # Rebuilds in-memory state from the persisted copy at cold start. A stopwatch that was running when the process
    # died keeps running, with everything that passed in the meantime counted. A running flag with nothing to anchor
    # it (no elapsed time and no start time) is treated as stopped at zero.
    def restore(self):
        persisted = self._store.load(STOPWATCH)
        with self._lock:
            now = self._clock.now()
            self._laps.clear()
            self._lap_counter = 0
            if persisted.is_running and persisted.elapsed_ms <= 0 and persisted.start_time <= 0:
                log.warning("Persisted stopwatch claims to be running with no time recorded, restoring as stopped")
                self._elapsed_ms = 0
                self._start_time = 0
                self._running = False
                self._persist()
            elif persisted.is_running:
                if 0 < persisted.start_time <= now:
                    self._start_time = persisted.start_time
                    self._elapsed_ms = now - persisted.start_time
                else:
                    log.warning(f"Persisted stopwatch start time {persisted.start_time} is unusable at {now}, resuming from {persisted.elapsed_ms}ms instead")
                    self._elapsed_ms = max(0, persisted.elapsed_ms)
                    self._start_time = now - self._elapsed_ms
                self._running = True
                self._start_ticking()
                self._persist()
            else:
                if persisted.elapsed_ms < 0:
                    log.warning(f"Persisted stopwatch elapsed {persisted.elapsed_ms}ms is negative, clamping to 0")
                self._elapsed_ms = max(0, persisted.elapsed_ms)
                self._start_time = persisted.start_time
                self._running = False
            log.info(f"Restored stopwatch: elapsed={self._elapsed_ms}ms running={self._running}")
            self._emit()
            return self.snapshot()

    #endregion === Reconciliation ===
