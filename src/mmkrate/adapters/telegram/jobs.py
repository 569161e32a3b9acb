# src/mmkrate/adapters/telegram/jobs.py
"""
Telegram Jobs - Scheduled Tasks and Background Processing

This module holds the scheduled jobs registered on the PTB JobQueue:
- collect_rates_job: runs every collector and persists the results
- health_monitor_job: computes collector health, stores it and alerts admins

Each job is guarded by its own lock so a slow run is never overlapped by the
next scheduled one.

Files that USE this module:
- mmkrate.app (jobs are registered as repeating tasks)
- tests.test_telegram (unit tests)

Files that this module USES:
- mmkrate.adapters.telegram.handlers (bot_data keys)
- mmkrate.application.orchestrator (collect_all via bot_data)
- mmkrate.application.health (HealthTracker via bot_data)
- mmkrate.config (settings for admin ids)
"""
from __future__ import annotations

import asyncio
import logging
from typing import Iterable

from telegram.error import TelegramError
from telegram.ext import ContextTypes

from mmkrate.adapters.telegram.handlers import HEALTH_TRACKER_KEY, ORCHESTRATOR_KEY
from mmkrate.config import settings
from mmkrate.domain.errors import CollectionError, PersistenceError

logger = logging.getLogger(__name__)

# Re-entrancy protection: ensure only one run of each job at a time
_collect_job_lock = asyncio.Lock()
_health_job_lock = asyncio.Lock()


async def notify_admins(context: ContextTypes.DEFAULT_TYPE, text: str, admin_ids: Iterable[int] = None) -> int:
    """
    Send a plain-text message to every admin.

    Returns:
        Number of admins that received the message
    """
    sent = 0
    for admin_id in sorted(admin_ids if admin_ids is not None else settings.admin_ids):
        try:
            await context.bot.send_message(chat_id=admin_id, text=text)
            sent += 1
        except TelegramError as e:
            logger.error("Failed to notify admin %s: %s", admin_id, e)
    if sent == 0:
        logger.warning("No admin received the alert: %s", text.splitlines()[0] if text else "")
    return sent


async def collect_rates_job(context: ContextTypes.DEFAULT_TYPE) -> None:
    """
    Scheduled collection run.

    Admins are alerted when more collectors failed than succeeded.
    """
    if _collect_job_lock.locked():
        logger.warning("Previous collection still running, skipping this run")
        return

    async with _collect_job_lock:
        orchestrator = context.bot_data[ORCHESTRATOR_KEY]
        try:
            summary = await orchestrator.collect_all()
        except (CollectionError, PersistenceError) as e:
            logger.exception("Scheduled collection failed")
            await notify_admins(context, f"🚨 Scheduled collection failed: {e}")
            return

        logger.info(
            "Scheduled collection: %d success, %d failures, %d rates",
            summary.success_count,
            summary.failure_count,
            summary.total_rates,
        )

        if summary.failure_count > summary.success_count:
            lines = [
                f"⚠️ Collection degraded: {summary.failure_count} of "
                f"{summary.success_count + summary.failure_count} sources failed",
            ]
            lines.extend(f"• {source}: {error}" for source, error in summary.errors.items())
            await notify_admins(context, "\n".join(lines))


async def health_monitor_job(context: ContextTypes.DEFAULT_TYPE) -> None:
    """
    Scheduled health check.

    Stores the report in the health document and alerts admins about down
    collectors.
    """
    if _health_job_lock.locked():
        logger.warning("Previous health check still running, skipping this run")
        return

    async with _health_job_lock:
        tracker = context.bot_data[HEALTH_TRACKER_KEY]
        report = await tracker.get_report()
        try:
            await tracker.record_report(report)
        except PersistenceError:
            logger.exception("Failed to store collector health")

        down = tracker.down_sources(report)
        if down:
            logger.warning("Collectors down: %s", ", ".join(down))
            await notify_admins(context, f"🚨 Collectors down: {', '.join(down)}")
        else:
            logger.info("Collector health: no collector down")
