import time


# Wall-clock source for both engines. Returns integer milliseconds since the Unix epoch. Must not be swapped for
# time.monotonic(), persisted start/end times get compared against it by a later process, possibly after a reboot.
class SystemClock:

    def now(self) -> int:
        return time.time_ns() // 1_000_000


# Hand-driven clock, used by tests and anything else that wants deterministic time.
class ManualClock:

    def __init__(self, start_ms: int = 0):
        self._now = int(start_ms)

    def now(self) -> int:
        return self._now

    def set(self, ms: int) -> None:
        self._now = int(ms)

    def advance(self, ms: int) -> int:
        self._now += int(ms)
        return self._now
