"""Cancellable periodic tasks that drive engine ticks.

A ticker is a handle owned by exactly one engine.  ``start()`` begins
calling the callback every ``interval_ms``; ``stop()`` revokes it
synchronously, so no callback is delivered after ``stop()`` returns when
both run on the same thread.
"""

from PySide6.QtCore import QObject, Qt, QTimer


class QtTicker:
    """Ticks on the Qt event loop of the thread that created it."""

    def __init__(self, parent: QObject | None = None):
        self._callback = None
        self._timer = QTimer(parent)
        self._timer.setTimerType(Qt.TimerType.PreciseTimer)
        self._timer.timeout.connect(self._on_timeout)

    @property
    def active(self):
        return self._timer.isActive()

    def start(self, interval_ms, callback):
        self._callback = callback
        self._timer.start(int(interval_ms))

    def stop(self):
        self._timer.stop()
        self._callback = None

    def _on_timeout(self):
        callback = self._callback
        if callback is not None:
            callback()


class ManualTicker:
    """Ticker that only fires when told to.  Used by tests."""

    def __init__(self):
        self._callback = None
        self.interval_ms = None
        self.starts = 0
        self.stops = 0

    @property
    def active(self):
        return self._callback is not None

    def start(self, interval_ms, callback):
        self.interval_ms = interval_ms
        self._callback = callback
        self.starts += 1

    def stop(self):
        if self._callback is not None:
            self.stops += 1
        self._callback = None

    def fire(self, times=1):
        """Deliver up to ``times`` callbacks, stopping early if cancelled."""
        fired = 0
        for _ in range(times):
            callback = self._callback
            if callback is None:
                break
            callback()
            fired += 1
        return fired
