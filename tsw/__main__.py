import sys
from tsw.common.logger import apply_log_settings, log
from tsw.core.settings import load_settings
from tsw.ui.app import main

# Entry point for `python -m tsw`
def run() -> None:
    try:
        settings = load_settings()
        apply_log_settings(settings)
        main(settings)
    except SystemExit:
        raise
    except Exception:
        # Full stack trace, always
        log.exception("Uncaught exception in entrypoint, exiting")
        sys.exit(1)

if __name__ == "__main__":
    run()
