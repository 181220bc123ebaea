import json
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar
from tsw.common.logger import log
from tsw.common.setup import PATHS
from tsw.util.misc import now_iso


_SCHEMA_VERSION = 1
LOAD_FLUSH_TIMEOUT = 5.0

STOPWATCH = "stopwatch"
TIMER = "timer"

DEFAULT_TIMER_REMAINING_MS = 300000

#region === Snapshots ===

# Each persisted group is three named values. The on-disk key names stay identical to the keys the engines have
# always used, booleans are stored as 0/1.
@dataclass(frozen=True)
class StopwatchSnapshot:
    GROUP: ClassVar[str] = STOPWATCH
    FIELDS: ClassVar[tuple] = (
        ("elapsedMs", "elapsed_ms", 0),
        ("isRunning", "is_running", False),
        ("startTime", "start_time", 0),
    )

    elapsed_ms: int = 0
    is_running: bool = False
    start_time: int = 0


@dataclass(frozen=True)
class TimerSnapshot:
    GROUP: ClassVar[str] = TIMER
    FIELDS: ClassVar[tuple] = (
        ("remainingMs", "remaining_ms", DEFAULT_TIMER_REMAINING_MS),
        ("isRunning", "is_running", False),
        ("endTime", "end_time", 0),
    )

    remaining_ms: int = DEFAULT_TIMER_REMAINING_MS
    is_running: bool = False
    end_time: int = 0


SNAPSHOT_TYPES = {
    STOPWATCH: StopwatchSnapshot,
    TIMER: TimerSnapshot,
}

# Converts a snapshot into its persisted key/value form.
def encode_snapshot(snapshot):
    values = {}
    for key, attr, default in snapshot.FIELDS:
        value = getattr(snapshot, attr)
        values[key] = (1 if value else 0) if isinstance(default, bool) else int(value)
    return values

# Builds a snapshot out of persisted values. Anything missing or of the wrong type falls back to its default; the
# names of those keys are returned alongside so the caller can log them.
def decode_snapshot(snapshot_type, values):
    kwargs = {}
    defaulted = set()
    for key, attr, default in snapshot_type.FIELDS:
        raw = values.get(key) if isinstance(values, dict) else None
        # bool is an int subclass, but a stored bool means someone hand-edited the file
        if not isinstance(raw, int) or isinstance(raw, bool):
            defaulted.add(f"{snapshot_type.GROUP}.{key}")
            kwargs[attr] = default
        elif isinstance(default, bool):
            if raw not in (0, 1):
                defaulted.add(f"{snapshot_type.GROUP}.{key}")
                kwargs[attr] = default
            else:
                kwargs[attr] = raw == 1
        else:
            kwargs[attr] = raw
    return snapshot_type(**kwargs), defaulted

#endregion === Snapshots ===

#region === Writer ===

# Writes the given data as JSON to path, going through a temp file so a kill mid-write never leaves a half file behind.
def _write_json_atomic(path: Path, data):
    tmp_path = path.with_name(path.name + ".tmp")
    with open(tmp_path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)
        f.flush()
        os.fsync(f.fileno())
    os.replace(tmp_path, path)

# One background writer per group. Submissions are coalesced: only the newest pending payload is kept, and payloads
# are written strictly in submission order, so an older snapshot can never land after a newer one.
class _GroupWriter:

    def __init__(self, group, path: Path):
        self.group = group
        self.path = path
        self._cond = threading.Condition()
        self._pending = None
        self._busy = False
        self._closed = False
        self._thread = None
        self.failures = 0

    def submit(self, payload):
        with self._cond:
            if self._closed:
                log.warning(f"Dropped '{self.group}' write submitted after the store was closed")
                return False
            self._pending = payload
            if self._thread is None or not self._thread.is_alive():
                if self._thread is not None:
                    log.warning(f"Writer thread for '{self.group}' had stopped, starting a new one")
                self._thread = threading.Thread(
                    target=self._run,
                    daemon=True,
                    name=f"tsw-store-{self.group}",
                )
                self._thread.start()
            self._cond.notify_all()
            return True

    def _run(self):
        while True:
            with self._cond:
                while self._pending is None and not self._closed:
                    self._cond.wait()
                if self._pending is None:
                    return
                payload = self._pending
                self._pending = None
                self._busy = True
            try:
                _write_json_atomic(self.path, payload)
            except (OSError, TypeError, ValueError):
                self.failures += 1
                log.warning(f"Failed to write '{self.group}' state to '{self.path}'", exc_info=True)
            except Exception:
                self.failures += 1
                log.exception(f"Unexpected error while writing '{self.group}' state to '{self.path}'")
            finally:
                with self._cond:
                    self._busy = False
                    self._cond.notify_all()

    # Blocks until nothing is pending or being written. Returns False on timeout.
    def flush(self, timeout=None):
        with self._cond:
            return self._cond.wait_for(lambda: self._pending is None and not self._busy, timeout)

    def close(self, timeout=None):
        drained = self.flush(timeout)
        with self._cond:
            self._closed = True
            self._cond.notify_all()
            thread = self._thread
        if thread is not None:
            thread.join(timeout)
        return drained

#endregion === Writer ===

#region === Store ===

# Durable key/value store for the stopwatch and timer groups. Each group lives in its own file and has its own
# writer, so the two never block each other.
class PersistenceStore:

    def __init__(self, directory: Path | None = None):
        self.directory = Path(directory) if directory is not None else PATHS.current
        self.directory.mkdir(parents=True, exist_ok=True)
        self._writers = {
            group: _GroupWriter(group, self.path_for(group))
            for group in SNAPSHOT_TYPES
        }

    def path_for(self, group):
        return self.directory / f"{group}.json"

    def _writer(self, group):
        try:
            return self._writers[group]
        except KeyError:
            raise ValueError(f"Unknown persistence group '{group}'") from None

    # Returns the last written snapshot for the group, or defaults if nothing usable is on disk.
    def load(self, group):
        writer = self._writer(group)
        snapshot_type = SNAPSHOT_TYPES[group]
        # Reads see our own in-flight writes
        if not writer.flush(LOAD_FLUSH_TIMEOUT):
            log.warning(f"Pending '{group}' write did not land within {LOAD_FLUSH_TIMEOUT}s, reading what is on disk")
        path = writer.path
        if not path.exists():
            log.info(f"No persisted '{group}' state found at '{path}', using defaults.")
            return snapshot_type()
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError, UnicodeDecodeError):
            log.warning(f"Ran into an error while loading '{path}', falling back to default '{group}' state.", exc_info=True)
            return snapshot_type()

        if not isinstance(data, dict):
            log.warning(f"Persisted '{group}' state at '{path}' is not an object, falling back to defaults.")
            return snapshot_type()
        meta = data.get("meta")
        if isinstance(meta, dict) and meta.get("schema_version") not in (None, _SCHEMA_VERSION):
            log.warning(f"Persisted '{group}' state has schema version {meta.get('schema_version')}, expected {_SCHEMA_VERSION}.")

        snapshot, defaulted = decode_snapshot(snapshot_type, data.get("values"))
        if defaulted:
            log.warning(f"Loaded '{group}' state from '{path}', but with missing values that were defaulted: {', '.join(sorted(defaulted))}")
        else:
            log.info(f"Successfully loaded '{group}' state from '{path}'.")
        return snapshot

    # Fire-and-forget write of a full group snapshot. Returns once the write is queued.
    def save(self, snapshot):
        payload = {
            "meta": {
                "schema_version": _SCHEMA_VERSION,
                "saved_at": now_iso(),
            },
            "values": encode_snapshot(snapshot),
        }
        return self._writer(snapshot.GROUP).submit(payload)

    # Resets a group back to its defaults.
    def clear(self, group):
        self._writer(group)
        log.debug(f"Clearing persisted '{group}' state")
        return self.save(SNAPSHOT_TYPES[group]())

    def failures(self, group):
        return self._writer(group).failures

    def flush(self, timeout=None):
        results = [writer.flush(timeout) for writer in self._writers.values()]
        return all(results)

    def close(self, timeout=None):
        results = [writer.close(timeout) for writer in self._writers.values()]
        log.info(f"Closed persistence store at '{self.directory}'")
        return all(results)

#endregion === Store ===
