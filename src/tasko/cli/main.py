# src/tasko/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then:
- starts the notification scanner in a background thread (optional),
- serves the REST API in the main thread.
"""

from __future__ import annotations

import logging

from ..api.app import create_app
from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..logging_setup import setup_logging
from ..tasks.notification_scanner import ScannerRunner

logger = logging.getLogger(__name__)


def _shutdown(state) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    # Stores use short-lived sqlite connections per call; close() is a no-op hook.
    for name in ("task_store", "schedule_store"):
        try:
            store = getattr(state, name, None)
            if store is not None and hasattr(store, "close"):
                store.close()
        except Exception:
            logger.debug("%s close failed.", name, exc_info=True)


def main() -> None:
    settings = get_settings()

    # choose console log level from settings.log_level
    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)

    log_dir = getattr(settings, "data_dir", ".local/tasko")
    setup_logging(log_dir=log_dir, console_level=console_level)

    # keep noisy libs readable
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)

    logger.info("Starting %s...", getattr(settings, "app_name", "tasko"))

    # IMPORTANT: reuse same settings object
    state = create_initial_state(settings=settings)
    state.scanner.prime()

    runner: ScannerRunner | None = None
    if settings.scanner_enabled:
        runner = ScannerRunner(state.scanner, interval_seconds=settings.scan_interval_seconds)
        runner.start()

    app = create_app(state)
    logger.info("Serving API on http://%s:%s/api", settings.host, settings.port)

    try:
        # reloader would fork a second scanner
        app.run(host=settings.host, port=settings.port, debug=settings.debug, use_reloader=False)
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down...")
    finally:
        if runner is not None:
            runner.stop()
            runner.join(timeout=10.0)

        _shutdown(state)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
