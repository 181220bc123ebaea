"""Panel builders for the stopwatch and timer tabs.

Each builder returns a (container, widget_dict) tuple.  The widget_dict
maps logical names to sub-widgets so the window can update them on every
engine notification without rebuilding anything.
"""

from PySide6.QtCore import Qt
from PySide6.QtGui import QFont
from PySide6.QtWidgets import (
    QHBoxLayout,
    QLabel,
    QListWidget,
    QPushButton,
    QSpinBox,
    QVBoxLayout,
    QWidget,
)

from tsw.core.timer import MAX_HOURS

NEAR_EXPIRY_STYLE = "color: #c62828;"


def _time_label():
    label = QLabel("00:00:00.00")
    label.setAlignment(Qt.AlignmentFlag.AlignCenter)
    font = QFont("Monospace", 32)
    font.setStyleHint(QFont.StyleHint.Monospace)
    font.setBold(True)
    label.setFont(font)
    return label


def build_stopwatch_panel():
    container = QWidget()
    lay = QVBoxLayout(container)

    time_label = _time_label()
    lay.addWidget(time_label)

    buttons = QHBoxLayout()
    start_btn = QPushButton("Start")
    lap_btn = QPushButton("Lap")
    reset_btn = QPushButton("Reset")
    for btn in (start_btn, lap_btn, reset_btn):
        buttons.addWidget(btn)
    lay.addLayout(buttons)

    laps_title = QLabel("Laps")
    lay.addWidget(laps_title)
    laps = QListWidget()
    lay.addWidget(laps, 1)

    return container, {
        "time": time_label,
        "start": start_btn,
        "lap": lap_btn,
        "reset": reset_btn,
        "laps_title": laps_title,
        "laps": laps,
    }


def build_timer_panel(presets):
    container = QWidget()
    lay = QVBoxLayout(container)

    # Duration inputs, only shown while the timer is idle
    inputs = QWidget()
    inputs_lay = QHBoxLayout(inputs)
    inputs_lay.setContentsMargins(0, 0, 0, 0)
    spins = {}
    for key, label, maximum in (("hours", "Hours", MAX_HOURS), ("minutes", "Minutes", 59), ("seconds", "Seconds", 59)):
        spin = QSpinBox()
        spin.setRange(0, maximum)
        spin.setSuffix(f" {label[0].lower()}")
        spin.setToolTip(label)
        inputs_lay.addWidget(spin)
        spins[key] = spin
    lay.addWidget(inputs)

    time_label = _time_label()
    lay.addWidget(time_label)

    buttons = QHBoxLayout()
    start_btn = QPushButton("Start")
    pause_btn = QPushButton("Pause")
    reset_btn = QPushButton("Reset")
    for btn in (start_btn, pause_btn, reset_btn):
        buttons.addWidget(btn)
    lay.addLayout(buttons)

    presets_box = QWidget()
    presets_lay = QHBoxLayout(presets_box)
    presets_lay.setContentsMargins(0, 0, 0, 0)
    preset_buttons = {}
    for minutes in presets:
        btn = QPushButton(f"{minutes}m")
        presets_lay.addWidget(btn)
        preset_buttons[minutes] = btn
    lay.addWidget(presets_box)

    status = QLabel("")
    status.setAlignment(Qt.AlignmentFlag.AlignCenter)
    lay.addWidget(status)
    lay.addStretch(1)

    return container, {
        "inputs": inputs,
        "spins": spins,
        "time": time_label,
        "start": start_btn,
        "pause": pause_btn,
        "reset": reset_btn,
        "presets": presets_box,
        "preset_buttons": preset_buttons,
        "status": status,
    }
