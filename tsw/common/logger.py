import logging
import os
from pathlib import Path
from logging.handlers import RotatingFileHandler
from tsw.common.setup import PATHS

LOGGER_NAME = "timerstopwatch"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(threadName)s %(filename)s:%(lineno)d] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Handlers are tagged with "<logger>:<role>" so repeated setup calls find and reuse them instead of stacking copies.
def _find_handler(logger: logging.Logger, role):
    handler_name = f"{logger.name}:{role}"
    for handler in logger.handlers:
        if handler.get_name() == handler_name:
            return handler
    return None

def _attach(logger: logging.Logger, handler: logging.Handler, role):
    handler.setLevel(logger.level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT))
    handler.set_name(f"{logger.name}:{role}")
    logger.addHandler(handler)
    return handler

# Builds (or returns) the shared logger. Engine ticks log at DEBUG, so the rotating file keeps a few sessions
# of history and latest.log only ever holds the current run.
def get_logger(
        name = LOGGER_NAME,
        level = logging.INFO,
        log_dir: Path | None = None,
        max_bytes = 5 * 1024 * 1024,
        backup_count = 5,
        persistent = True,
) -> logging.Logger:
    logger = logging.getLogger(name)
    logger.propagate = False
    logger.setLevel(level)

    log_dir = log_dir or PATHS.logs
    log_dir.mkdir(parents=True, exist_ok=True)

    if persistent and _find_handler(logger, "persistent") is None:
        _attach(logger, RotatingFileHandler(
            filename=log_dir / f"{name}.log",
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        ), "persistent")

    if _find_handler(logger, "latest") is None:
        _attach(logger, logging.FileHandler(
            filename=log_dir / "latest.log",
            mode="w",
            encoding="utf-8",
        ), "latest")

    return logger

# Mirrors the log to a stream (stderr by default) while enabled. Returns True if a handler was added or removed.
def set_console_logging(enabled, name = LOGGER_NAME, stream = None) -> bool:
    logger = logging.getLogger(name)
    existing = _find_handler(logger, "console")
    if enabled and existing is None:
        _attach(logger, logging.StreamHandler(stream), "console")
        return True
    if not enabled and existing is not None:
        logger.removeHandler(existing)
        existing.close()
        return True
    return False

# Applies the logging-related keys of a loaded settings dict.
def apply_log_settings(settings, name = LOGGER_NAME):
    if set_console_logging(bool(settings.get("console_log", False)), name=name):
        logging.getLogger(name).debug(f"Console logging {'enabled' if settings.get('console_log') else 'disabled'}")

log = get_logger(level=logging.DEBUG)
log.info(f"=== INITIALIZED NEW SESSION (pid {os.getpid()}, data in '{PATHS.data}') ===")
