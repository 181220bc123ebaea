"""Tests for the persistence store and the settings loader.

Covers: tsw.core.store, tsw.core.settings
"""

import json
import shutil
import tempfile
import unittest
from pathlib import Path


# ──────────────────────────────────────────────────────────────────────────
# store.py tests
# ──────────────────────────────────────────────────────────────────────────

class TestPersistenceStore(unittest.TestCase):

    def setUp(self):
        from tsw.core.store import PersistenceStore
        self.tmpdir = tempfile.mkdtemp()
        self._tmppath = Path(self.tmpdir)
        self.store = PersistenceStore(self._tmppath)

    def tearDown(self):
        self.store.close(timeout=2.0)
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def test_load_without_files_returns_defaults(self):
        from tsw.core.store import STOPWATCH, TIMER
        sw = self.store.load(STOPWATCH)
        tm = self.store.load(TIMER)
        self.assertEqual((sw.elapsed_ms, sw.is_running, sw.start_time), (0, False, 0))
        self.assertEqual((tm.remaining_ms, tm.is_running, tm.end_time), (300000, False, 0))

    def test_save_and_load_roundtrip_per_group(self):
        """Every field comes back as written, for both groups independently."""
        from tsw.core.store import STOPWATCH, TIMER, StopwatchSnapshot, TimerSnapshot
        sw = StopwatchSnapshot(elapsed_ms=12345, is_running=True, start_time=1_700_000_000_000)
        tm = TimerSnapshot(remaining_ms=42000, is_running=False, end_time=0)
        self.store.save(sw)
        self.assertEqual(self.store.load(STOPWATCH), sw)
        # Timer group untouched by the stopwatch write
        self.assertEqual(self.store.load(TIMER), TimerSnapshot())

        self.store.save(tm)
        self.assertEqual(self.store.load(TIMER), tm)
        self.assertEqual(self.store.load(STOPWATCH), sw)

    def test_booleans_are_stored_as_integers(self):
        from tsw.core.store import StopwatchSnapshot
        self.store.save(StopwatchSnapshot(elapsed_ms=5, is_running=True, start_time=7))
        self.assertTrue(self.store.flush(timeout=2.0))
        with open(self.store.path_for("stopwatch"), "r", encoding="utf-8") as f:
            data = json.load(f)
        self.assertEqual(data["values"], {"elapsedMs": 5, "isRunning": 1, "startTime": 7})
        self.assertEqual(data["meta"]["schema_version"], 1)

    def test_last_write_wins(self):
        """A burst of writes lands as the newest one."""
        from tsw.core.store import TIMER, TimerSnapshot
        for remaining in range(1000, 0, -10):
            self.store.save(TimerSnapshot(remaining_ms=remaining, is_running=True, end_time=remaining + 5))
        loaded = self.store.load(TIMER)
        self.assertEqual(loaded, TimerSnapshot(remaining_ms=10, is_running=True, end_time=15))

    def test_clear_resets_only_that_group(self):
        from tsw.core.store import STOPWATCH, TIMER, StopwatchSnapshot, TimerSnapshot
        self.store.save(StopwatchSnapshot(elapsed_ms=900, is_running=False, start_time=100))
        self.store.save(TimerSnapshot(remaining_ms=1000, is_running=True, end_time=5000))
        self.store.clear(STOPWATCH)
        self.assertEqual(self.store.load(STOPWATCH), StopwatchSnapshot())
        self.assertEqual(self.store.load(TIMER), TimerSnapshot(remaining_ms=1000, is_running=True, end_time=5000))

    def test_corrupted_file_falls_back_to_defaults(self):
        from tsw.core.store import TIMER, TimerSnapshot
        with open(self.store.path_for(TIMER), "w", encoding="utf-8") as f:
            f.write("{invalid json!!")
        self.assertEqual(self.store.load(TIMER), TimerSnapshot())

    def test_missing_and_mistyped_values_default_individually(self):
        from tsw.core.store import STOPWATCH
        with open(self.store.path_for(STOPWATCH), "w", encoding="utf-8") as f:
            json.dump({"values": {"elapsedMs": 777, "isRunning": "yes"}}, f)
        with self.assertLogs("timerstopwatch", level="WARNING") as logs:
            loaded = self.store.load(STOPWATCH)
        self.assertEqual(loaded.elapsed_ms, 777)
        self.assertFalse(loaded.is_running)
        self.assertEqual(loaded.start_time, 0)
        self.assertIn("stopwatch.isRunning", logs.output[0])
        self.assertIn("stopwatch.startTime", logs.output[0])

    def test_unknown_group_is_rejected(self):
        with self.assertRaises(ValueError):
            self.store.load("alarm")

    def test_write_failure_is_logged_not_raised(self):
        """A failing write is swallowed by the writer thread and counted."""
        from tsw.core.store import STOPWATCH, StopwatchSnapshot
        # A directory where the file should be makes os.replace fail
        self.store.path_for(STOPWATCH).mkdir()
        with self.assertLogs("timerstopwatch", level="WARNING"):
            self.assertTrue(self.store.save(StopwatchSnapshot(elapsed_ms=1, is_running=False, start_time=0)))
            self.assertTrue(self.store.flush(timeout=2.0))
        self.assertEqual(self.store.failures(STOPWATCH), 1)
        self.assertEqual(self.store.failures("timer"), 0)

    def test_unexpected_write_error_keeps_writer_alive(self):
        from unittest.mock import patch
        from tsw.core import store as store_module
        from tsw.core.store import STOPWATCH, StopwatchSnapshot
        real_write = store_module._write_json_atomic
        calls = []

        def flaky_write(path, payload):
            calls.append(path)
            if len(calls) == 1:
                raise RuntimeError("disk went away")
            real_write(path, payload)

        with patch.object(store_module, "_write_json_atomic", side_effect=flaky_write):
            with self.assertLogs("timerstopwatch", level="ERROR"):
                self.store.save(StopwatchSnapshot(elapsed_ms=1, is_running=False, start_time=0))
                self.assertTrue(self.store.flush(timeout=2.0))
            self.assertEqual(self.store.failures(STOPWATCH), 1)
            self.assertTrue(self.store._writers[STOPWATCH]._thread.is_alive())

            self.store.save(StopwatchSnapshot(elapsed_ms=7, is_running=False, start_time=0))
            self.assertEqual(self.store.load(STOPWATCH).elapsed_ms, 7)
        self.assertEqual(len(calls), 2)

    def test_dead_writer_thread_is_replaced(self):
        import threading
        from tsw.core.store import STOPWATCH, StopwatchSnapshot
        writer = self.store._writers[STOPWATCH]
        dead = threading.Thread(target=lambda: None)
        dead.start()
        dead.join()
        writer._thread = dead

        with self.assertLogs("timerstopwatch", level="WARNING"):
            self.assertTrue(self.store.save(StopwatchSnapshot(elapsed_ms=5, is_running=False, start_time=0)))
        self.assertIsNot(writer._thread, dead)
        self.assertEqual(self.store.load(STOPWATCH).elapsed_ms, 5)

    def test_load_does_not_hang_on_a_stuck_write(self):
        from unittest.mock import patch
        from tsw.core import store as store_module
        from tsw.core.store import STOPWATCH, StopwatchSnapshot
        writer = self.store._writers[STOPWATCH]
        with writer._cond:
            writer._pending = {"values": {}}
        with patch.object(store_module, "LOAD_FLUSH_TIMEOUT", 0.05):
            with self.assertLogs("timerstopwatch", level="WARNING"):
                self.assertEqual(self.store.load(STOPWATCH), StopwatchSnapshot())
        with writer._cond:
            writer._pending = None

    def test_save_after_close_is_dropped(self):
        from tsw.core.store import StopwatchSnapshot
        self.assertTrue(self.store.close(timeout=2.0))
        self.assertFalse(self.store.save(StopwatchSnapshot(elapsed_ms=1)))


# ──────────────────────────────────────────────────────────────────────────
# settings.py tests
# ──────────────────────────────────────────────────────────────────────────

class TestSettings(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.path = Path(self.tmpdir) / "settings.json"

    def tearDown(self):
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def test_missing_file_gives_defaults(self):
        from tsw.core.settings import load_settings
        settings = load_settings(self.path)
        self.assertEqual(settings["tick_interval_ms"], 10)
        self.assertEqual(settings["timer_default_ms"], 300000)
        self.assertEqual(settings["near_expiry_ms"], 10000)
        self.assertEqual(settings["timer_presets"], [1, 5, 10, 15, 25])
        self.assertFalse(settings["console_log"])

    def test_save_and_load_roundtrip(self):
        from tsw.core.settings import build_default_settings, load_settings, save_settings
        settings = build_default_settings()
        settings["tick_interval_ms"] = 50
        settings["timer_presets"] = [2, 3]
        save_settings(settings, self.path)
        self.assertEqual(load_settings(self.path), settings)

    def test_invalid_values_are_defaulted(self):
        from tsw.core.settings import load_settings
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump({
                "tick_interval_ms": 0,
                "timer_default_ms": "five minutes",
                "near_expiry_ms": 5000,
                "timer_presets": [1, 90],
                "console_log": 1,
            }, f)
        with self.assertLogs("timerstopwatch", level="WARNING") as logs:
            settings = load_settings(self.path)
        self.assertEqual(settings["tick_interval_ms"], 10)
        self.assertEqual(settings["timer_default_ms"], 300000)
        self.assertEqual(settings["near_expiry_ms"], 5000)
        self.assertEqual(settings["timer_presets"], [1, 5, 10, 15, 25])
        self.assertFalse(settings["console_log"])
        self.assertIn("console_log", logs.output[0])

    def test_corrupted_file_gives_defaults(self):
        from tsw.core.settings import build_default_settings, load_settings
        with open(self.path, "w", encoding="utf-8") as f:
            f.write("[not, valid")
        self.assertEqual(load_settings(self.path), build_default_settings())

    def test_defaults_are_fresh_copies(self):
        from tsw.core.settings import build_default_settings
        first = build_default_settings()
        first["timer_presets"].append(45)
        self.assertEqual(build_default_settings()["timer_presets"], [1, 5, 10, 15, 25])


if __name__ == "__main__":
    unittest.main()
