import json
from pathlib import Path
from tsw.common.logger import log
from tsw.common.setup import PATHS


# Default values for every user setting. Anything missing from settings.json is filled from here.
_SETTINGS_DEFAULTS = {
    "tick_interval_ms": 10,
    "timer_default_ms": 300000,
    "near_expiry_ms": 10000,
    "timer_presets": [1, 5, 10, 15, 25],
    "console_log": False,
}

_MIN_TICK_INTERVAL_MS = 1

def build_default_settings():
    settings = dict(_SETTINGS_DEFAULTS)
    settings["timer_presets"] = list(_SETTINGS_DEFAULTS["timer_presets"])
    return settings

def _is_int(value):
    return isinstance(value, int) and not isinstance(value, bool)

# Each validator returns True if the value is usable as-is.
_VALIDATORS = {
    "tick_interval_ms": lambda v: _is_int(v) and v >= _MIN_TICK_INTERVAL_MS,
    "timer_default_ms": lambda v: _is_int(v) and v >= 0,
    "near_expiry_ms": lambda v: _is_int(v) and v >= 0,
    "timer_presets": lambda v: isinstance(v, list) and all(_is_int(m) and 0 < m <= 59 for m in v),
    "console_log": lambda v: isinstance(v, bool),
}

# Loads settings.json, making sure every key exists and has a usable value. Bad or missing values get defaulted, and
# a corrupted file falls back to a fully default settings dict.
def load_settings(path: Path | None = None):
    path = path or PATHS.settings_file
    if not path.exists():
        log.info(f"No existing settings found at '{path}', loading default settings.")
        return build_default_settings()
    try:
        with open(path, "r", encoding="utf-8") as f:
            loaded = json.load(f)
    except (json.JSONDecodeError, OSError, UnicodeDecodeError):
        log.warning(f"Ran into an error while trying to load '{path}', falling back to default settings.", exc_info=True)
        return build_default_settings()
    if not isinstance(loaded, dict):
        log.warning(f"Settings file '{path}' does not hold an object, falling back to default settings.")
        return build_default_settings()

    settings = build_default_settings()
    defaulted_values = set()
    for key, default in _SETTINGS_DEFAULTS.items():
        if key in loaded and _VALIDATORS[key](loaded[key]):
            settings[key] = loaded[key]
        else:
            defaulted_values.add(key)

    if defaulted_values:
        log.warning(f"Successfully loaded settings from '{path}', but with missing values that were defaulted: {', '.join(sorted(defaulted_values))}")
    else:
        log.info(f"Successfully loaded settings from '{path}'.")
    return settings

# Write the given settings to disk.
def save_settings(settings, path: Path | None = None):
    path = path or PATHS.settings_file
    with open(path, "w", encoding="utf-8") as f:
        json.dump(settings, f, indent=2)
    log.info(f"Successfully saved settings to '{path}'")
