# src/mmkrate/app.py
"""
Application Entry Point - Bot Initialization and Startup

This module serves as the composition root for the MMK rate bot.
It wires the store, collectors, orchestrator and health tracker, shares
them with handlers and jobs through bot_data, and starts polling.

Files that USE this module:
- mmkrate.__main__ (python -m mmkrate)
- the "mmkrate" console script

Files that this module USES:
- mmkrate.shared.logging_conf (setup_logging for logging configuration)
- mmkrate.config (settings for configuration management)
- mmkrate.adapters.persistence (build_store)
- mmkrate.adapters.collectors (default_collectors)
- mmkrate.application (CollectionOrchestrator, HealthTracker)
- mmkrate.adapters.telegram.handlers (build_handlers for command handlers)
- mmkrate.adapters.telegram.jobs (collection and health jobs)
"""

from __future__ import annotations

import atexit
import logging
import os
import sys
from datetime import timedelta
from pathlib import Path

from telegram.error import Conflict, NetworkError, TimedOut
from telegram.ext import Application

from mmkrate.adapters.collectors import default_collectors
from mmkrate.adapters.persistence import build_store
from mmkrate.adapters.telegram.handlers import HEALTH_TRACKER_KEY, ORCHESTRATOR_KEY, build_handlers
from mmkrate.adapters.telegram.jobs import collect_rates_job, health_monitor_job
from mmkrate.application.health import HealthTracker
from mmkrate.application.orchestrator import CollectionOrchestrator
from mmkrate.config import settings
from mmkrate.shared.logging_conf import setup_logging


# PID file path for preventing multiple instances
# Can be overridden via MMKRATE_PID_FILE environment variable
def _get_pid_file() -> Path:
    """Get PID file path from environment or the data directory."""
    pid_file = os.environ.get("MMKRATE_PID_FILE")
    if pid_file:
        return Path(pid_file)
    return settings.data_file.parent / "bot.pid"


def _check_existing_instance() -> None:
    """
    Check if another bot instance is already running.

    Raises RuntimeError if PID file exists and process is still running.
    """
    pid_file = _get_pid_file()
    if not pid_file.exists():
        return
    try:
        old_pid = int(pid_file.read_text().strip())
    except (ValueError, OSError):
        # Invalid PID file, remove it
        pid_file.unlink(missing_ok=True)
        return

    try:
        os.kill(old_pid, 0)  # Signal 0 doesn't kill, just checks if process exists
    except ProcessLookupError:
        # Stale PID file
        pid_file.unlink(missing_ok=True)
        return
    except PermissionError:
        pass  # Process exists but belongs to another user
    raise RuntimeError(
        f"Another bot instance is already running (PID: {old_pid}).\n"
        f"Please stop it first with: kill {old_pid}"
    )


def _create_pid_file() -> None:
    """Create PID file with current process ID."""
    pid_file = _get_pid_file()
    pid_file.parent.mkdir(parents=True, exist_ok=True)
    pid_file.write_text(str(os.getpid()))


def _remove_pid_file() -> None:
    """Remove PID file on exit."""
    try:
        _get_pid_file().unlink(missing_ok=True)
    except OSError:
        pass


def build_application() -> Application:
    """
    Build the Telegram application with every collaborator wired in.

    Returns:
        Application with handlers, jobs and bot_data populated
    """
    logger = logging.getLogger(__name__)

    store = build_store(settings.store_backend, settings.data_file)
    orchestrator = CollectionOrchestrator(default_collectors(), store)
    health_tracker = HealthTracker(store, orchestrator.sources)
    logger.info("Collectors: %s (store=%s)", ", ".join(orchestrator.sources), settings.store_backend)

    app = Application.builder().token(settings.bot_token).build()
    app.bot_data[ORCHESTRATOR_KEY] = orchestrator
    app.bot_data[HEALTH_TRACKER_KEY] = health_tracker

    for h in build_handlers():
        app.add_handler(h)

    # Scheduled collection (interval from .env)
    app.job_queue.run_repeating(
        callback=collect_rates_job,
        interval=timedelta(minutes=settings.collection_interval_minutes),
        first=0,  # start immediately at boot
        name="rate_collection",
    )
    app.job_queue.run_repeating(
        callback=health_monitor_job,
        interval=timedelta(minutes=settings.health_check_interval_minutes),
        first=timedelta(minutes=1),  # after the first collection had a chance to run
        name="health_monitor",
    )
    return app


def main() -> None:
    """
    Initialize and start the Telegram bot application.

    This function:
    1. Sets up logging and validates configuration
    2. Acquires the single-instance PID lock
    3. Builds the application (store, collectors, orchestrator, handlers, jobs)
    4. Starts the bot polling loop
    """
    setup_logging(
        level=logging.DEBUG if settings.enable_debug_logs else logging.INFO,
        log_file=settings.log_file,
        log_dir=settings.log_dir,
        max_bytes=settings.log_max_bytes,
        backup_count=settings.log_backup_count,
        log_to_stdout=settings.log_stdout,
    )
    logger = logging.getLogger(__name__)
    logger.info("Working directory: %s", os.getcwd())
    logger.info("PID file location: %s", _get_pid_file())

    if not settings.bot_token:
        raise RuntimeError("BOT_TOKEN missing")

    # Check for existing bot instance (prevent multiple instances)
    try:
        _check_existing_instance()
        _create_pid_file()
        atexit.register(_remove_pid_file)
        logger.info("Bot instance lock acquired (PID: %d)", os.getpid())
    except RuntimeError as e:
        logger.error(str(e))
        sys.exit(1)

    app = build_application()

    logger.info(
        "Starting bot polling… collection interval=%d minutes, health check=%d minutes",
        settings.collection_interval_minutes,
        settings.health_check_interval_minutes,
    )

    try:
        app.run_polling(close_loop=False, drop_pending_updates=False)
    except Conflict as e:
        logger.error("Telegram Conflict error: %s", e, exc_info=True)
        logger.error(
            "Another bot instance is already polling for updates. "
            "Telegram only allows ONE bot instance to poll at a time."
        )
        raise
    except (TimedOut, NetworkError) as e:
        logger.error(
            "Network error during bot operation (timeout connecting to Telegram API): %s (type: %s)",
            e,
            type(e).__name__,
            exc_info=True,
        )
        raise
    except KeyboardInterrupt:
        logger.info("Bot stopped by user (KeyboardInterrupt)")
        raise
    except Exception as e:
        logger.exception("Unexpected error during bot operation: %s (type: %s)", e, type(e).__name__)
        raise
    finally:
        _remove_pid_file()


if __name__ == "__main__":
    main()
