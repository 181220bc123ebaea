import sys
from PySide6.QtWidgets import (
    QApplication,
    QMainWindow,
    QTabWidget,
)
from tsw.common.logger import log
from tsw.core.settings import load_settings
from tsw.core.stopwatch import StopwatchEngine
from tsw.core.store import PersistenceStore
from tsw.core.ticker import QtTicker
from tsw.core.timer import TimerEngine, TimerPhase
from tsw.ui.widgets import NEAR_EXPIRY_STYLE, build_stopwatch_panel, build_timer_panel
from tsw.util.misc import split_ms


# ---------------------------------------------------------------------------
# Main window
# ---------------------------------------------------------------------------

# Main window of the app. Holds no time state of its own: it renders whatever the engines hand it and forwards
# button presses back to them.
class MainWindow(QMainWindow):

    def __init__(self, settings=None, store=None):
        super().__init__()
        self.setWindowTitle("Timer & Stopwatch")

        # -- Settings and persistence --
        self.settings = settings or load_settings()
        self.store = store or PersistenceStore()

        # -- Engines, each with its own tick handle --
        tick_ms = self.settings["tick_interval_ms"]
        self.stopwatch = StopwatchEngine(self.store, ticker=QtTicker(self), tick_interval_ms=tick_ms)
        self.timer = TimerEngine(
            self.store,
            ticker=QtTicker(self),
            tick_interval_ms=tick_ms,
            default_duration_ms=self.settings["timer_default_ms"],
            near_expiry_ms=self.settings["near_expiry_ms"],
        )

        # -- Build UI skeleton --
        self._tabs = QTabWidget()
        self.setCentralWidget(self._tabs)
        sw_panel, self._sw = build_stopwatch_panel()
        tm_panel, self._tm = build_timer_panel(self.settings["timer_presets"])
        self._tabs.addTab(sw_panel, "Stopwatch")
        self._tabs.addTab(tm_panel, "Timer")
        self._last_lap_count = -1
        self._wire_stopwatch()
        self._wire_timer()

        # -- Subscribe, then reconcile so the first render is the restored state --
        self.stopwatch.subscribe(self._render_stopwatch)
        self.timer.subscribe(self._render_timer)
        self.timer.subscribe_expired(self._on_timer_expired)
        self.stopwatch.restore()
        self.timer.restore()

    # ------------------------------------------------------------------ #
    #  Stopwatch tab                                                       #
    # ------------------------------------------------------------------ #

    def _wire_stopwatch(self):
        self._sw["start"].clicked.connect(self._on_stopwatch_toggle)
        self._sw["lap"].clicked.connect(self.stopwatch.add_lap)
        self._sw["reset"].clicked.connect(self.stopwatch.reset)

    def _on_stopwatch_toggle(self):
        if self.stopwatch.is_running:
            self.stopwatch.pause()
        else:
            self.stopwatch.start()

    def _render_stopwatch(self, view):
        self._sw["time"].setText(view.formatted)
        self._sw["start"].setText("Pause" if view.is_running else "Start")
        self._sw["lap"].setEnabled(view.elapsed_ms > 0)

        # Newest lap on top; only rebuilt when the lap list actually changed
        if len(view.laps) != self._last_lap_count:
            self._last_lap_count = len(view.laps)
            laps = self._sw["laps"]
            laps.clear()
            for lap in reversed(view.laps):
                laps.addItem(f"Lap {lap.number}\t{lap.split}")
            self._sw["laps_title"].setVisible(bool(view.laps))
            laps.setVisible(bool(view.laps))

    # ------------------------------------------------------------------ #
    #  Timer tab                                                           #
    # ------------------------------------------------------------------ #

    def _wire_timer(self):
        for spin in self._tm["spins"].values():
            spin.valueChanged.connect(self._on_timer_input)
        for minutes, btn in self._tm["preset_buttons"].items():
            btn.clicked.connect(lambda _checked=False, m=minutes: self.timer.apply_preset(m))
        self._tm["start"].clicked.connect(self.timer.start)
        self._tm["pause"].clicked.connect(self.timer.pause)
        self._tm["reset"].clicked.connect(self.timer.reset)

    def _on_timer_input(self, _value=None):
        spins = self._tm["spins"]
        self.timer.configure(spins["hours"].value(), spins["minutes"].value(), spins["seconds"].value())

    def _render_timer(self, view):
        idle = view.phase is TimerPhase.IDLE
        self._tm["time"].setText(view.formatted)
        self._tm["time"].setStyleSheet(NEAR_EXPIRY_STYLE if view.near_expiry else "")
        self._tm["inputs"].setVisible(idle)
        self._tm["presets"].setVisible(idle)
        self._tm["start"].setEnabled(not view.is_running and view.remaining_ms > 0)
        self._tm["pause"].setEnabled(view.is_running)
        if view.phase is not TimerPhase.EXPIRED:
            self._tm["status"].setText("")

        # Keep the inputs showing the configured duration without feeding it back into configure()
        if idle:
            for spin, value in zip(self._tm["spins"].values(), split_ms(view.configured_duration_ms)):
                if spin.value() != value:
                    spin.blockSignals(True)
                    spin.setValue(value)
                    spin.blockSignals(False)

    # Alarm hook. Sound playback isn't implemented, the user just gets a beep and a status line.
    def _on_timer_expired(self, view):
        log.info("Timer expired, notifying user")
        self._tm["status"].setText("Time's up!")
        QApplication.beep()

    # ------------------------------------------------------------------ #
    #  Window close                                                        #
    # ------------------------------------------------------------------ #

    def closeEvent(self, event):
        self.stopwatch.shutdown()
        self.timer.shutdown()
        self.store.close(timeout=2.0)
        event.accept()


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main(settings=None):
    app = QApplication(sys.argv)
    window = MainWindow(settings)
    window.show()
    sys.exit(app.exec())
