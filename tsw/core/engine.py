"""Shared plumbing for the stopwatch and timer engines.

An engine is the single writer of its own state.  Every transition holds
``self._lock``; the periodic tick is a ticker handle owned by the engine
and is revoked inside the same locked transition that leaves the running
state.  Persistence is fire-and-forget and observers get a fresh,
immutable view after every change.
"""

import threading
from collections.abc import Callable

from tsw.common.logger import log
from tsw.core.clock import SystemClock

DEFAULT_TICK_INTERVAL_MS = 10


class BaseEngine:

    name = "engine"

    def __init__(self, store, clock=None, ticker=None, tick_interval_ms=DEFAULT_TICK_INTERVAL_MS):
        if ticker is None:
            from tsw.core.ticker import QtTicker
            ticker = QtTicker()
        self._store = store
        self._clock = clock or SystemClock()
        self._ticker = ticker
        self._tick_interval_ms = max(1, int(tick_interval_ms))
        self._lock = threading.RLock()
        self._subscribers: list[Callable] = []
        # Bumped every time ticking starts or stops; ticks carrying an older value are stale.
        self._generation = 0

    # ------------------------------------------------------------------ #
    #  Observers                                                           #
    # ------------------------------------------------------------------ #

    def subscribe(self, callback: Callable) -> Callable[[], None]:
        """Register ``callback(view)``.  Returns a function that unsubscribes it."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe():
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def _emit(self):
        view = self.snapshot()
        self._notify(self._subscribers, view)

    def _notify(self, callbacks, *args):
        for callback in list(callbacks):
            try:
                callback(*args)
            except Exception:
                log.exception(f"[{self.name}] subscriber {callback!r} raised")

    def snapshot(self):
        raise NotImplementedError

    # ------------------------------------------------------------------ #
    #  Ticking                                                             #
    # ------------------------------------------------------------------ #

    @property
    def ticking(self):
        return self._ticker.active

    def _start_ticking(self):
        self._generation += 1
        generation = self._generation
        self._ticker.start(self._tick_interval_ms, lambda: self._on_tick(generation))

    def _stop_ticking(self):
        self._generation += 1
        self._ticker.stop()

    def _on_tick(self, generation):
        with self._lock:
            if generation != self._generation:
                log.debug(f"[{self.name}] dropped stale tick from generation {generation}")
                return
            self.tick()

    def tick(self):
        raise NotImplementedError

    # ------------------------------------------------------------------ #
    #  Persistence                                                         #
    # ------------------------------------------------------------------ #

    def _persisted(self):
        raise NotImplementedError

    def _persist(self):
        try:
            self._store.save(self._persisted())
        except Exception:
            log.warning(f"[{self.name}] could not queue state write", exc_info=True)

    def _purge(self, group):
        try:
            self._store.clear(group)
        except Exception:
            log.warning(f"[{self.name}] could not queue state purge", exc_info=True)

    def shutdown(self, timeout=2.0):
        """Stop ticking, write the current state and wait for the store to drain.

        A running engine stays running in the persisted copy, so the next
        process picks it back up through reconciliation.
        """
        with self._lock:
            self._stop_ticking()
            self._persist()
        try:
            drained = self._store.flush(timeout)
        except Exception:
            log.warning(f"[{self.name}] flush on shutdown failed", exc_info=True)
            return False
        if not drained:
            log.warning(f"[{self.name}] store did not drain within {timeout}s on shutdown")
        log.info(f"[{self.name}] shut down")
        return drained
