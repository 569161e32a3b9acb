# src/mmkrate/adapters/telegram/handlers.py
"""
Telegram Handlers - Command Processing and User Interaction

This module contains the Telegram bot command handlers:
- /start, /help: usage text
- /rates [CUR]: latest rates grouped by currency
- /history CUR [days] [source]: rate history from the rate log
- /compare [CUR ...]: up to 5 currencies side by side per source
- /predict [CUR] [days]: trend of the official rate and a short projection
- /collect [source]: run a collection now (admin only)
- /health: collector health report (admin only)

Handlers never talk to collectors or the store directly; they use the
orchestrator and health tracker stored in bot_data by mmkrate.app. Users see
"no data available" style messages, never raw collector errors.

Files that USE this module:
- mmkrate.app (build_handlers function creates handler instances)
- tests.test_telegram (unit tests)

Files that this module USES:
- mmkrate.application.orchestrator (CollectionOrchestrator via bot_data)
- mmkrate.application.health (HealthTracker via bot_data)
- mmkrate.application.trends (analyze_trend for /predict)
- mmkrate.adapters.formatting.formatter (message formatting)
- mmkrate.shared.rate_limiter (rate limiting functionality)
- mmkrate.config (settings for admin ids and limits)
"""
from __future__ import annotations

import asyncio
import logging
import re
from datetime import timedelta
from typing import List, Optional

from telegram import Update
from telegram.ext import CommandHandler, ContextTypes

from mmkrate.adapters.formatting.formatter import (
    format_collection_summary,
    format_comparison,
    format_forecast,
    format_health_report,
    format_history,
    format_rates,
)
from mmkrate.application.health import HealthTracker
from mmkrate.application.orchestrator import CollectionOrchestrator
from mmkrate.application.trends import MAX_DAYS as MAX_PREDICT_DAYS, analyze_trend
from mmkrate.config import settings
from mmkrate.domain.errors import CollectionError, PersistenceError
from mmkrate.domain.models import utc_now
from mmkrate.shared.rate_limiter import RATE_LIMITS, RateLimitConfig, rate_limiter

logger = logging.getLogger(__name__)

ORCHESTRATOR_KEY = "orchestrator"
HEALTH_TRACKER_KEY = "health_tracker"

DEFAULT_HISTORY_DAYS = 7
MAX_HISTORY_DAYS = 90

DEFAULT_COMPARE_CURRENCIES = ("USD", "EUR", "SGD")
MAX_COMPARE_CURRENCIES = 5
CURRENCY_ARG = re.compile(r"[A-Za-z]{3}")

DEFAULT_PREDICT_CURRENCY = "USD"
DEFAULT_PREDICT_DAYS = 7
PREDICT_HISTORY_DAYS = 30
OFFICIAL_SOURCE = "CBM"

HELP_TEXT = (
    "💱 MMK Exchange Rates\n\n"
    "/rates [CUR] - latest rates (e.g. /rates USD)\n"
    "/history CUR [days] [source] - rate history (e.g. /history USD 7 CBM)\n"
    "/compare [CUR ...] - compare up to 5 currencies (e.g. /compare USD EUR SGD)\n"
    "/predict [CUR] [days] - trend and projection (e.g. /predict USD 7)\n"
    "/help - this message"
)
ADMIN_HELP_TEXT = (
    "\n\nAdmin:\n"
    "/collect [source] - collect rates now\n"
    "/health - collector health"
)

ADMIN_ONLY_TEXT = "⚠️ This command is only available to admins."
RATE_LIMIT_TEXT = "⏰ Rate limit exceeded. Please try again later."
UNAVAILABLE_TEXT = "❌ Exchange rate data is not available right now. Please try again later."


def _orchestrator(context: ContextTypes.DEFAULT_TYPE) -> CollectionOrchestrator:
    return context.bot_data[ORCHESTRATOR_KEY]


def _health_tracker(context: ContextTypes.DEFAULT_TYPE) -> HealthTracker:
    return context.bot_data[HEALTH_TRACKER_KEY]


def _is_admin(update: Update) -> bool:
    """
    Check if the user sending the update is an admin.

    Returns:
        True if the user id is listed in ADMIN_TELEGRAM_IDS, False otherwise
    """
    user = update.effective_user
    return user is not None and user.id in settings.admin_ids


def _limit_config(limit_type: str) -> Optional[RateLimitConfig]:
    if limit_type == "user_command":
        return RateLimitConfig(max_requests=settings.rate_limit_per_user_per_minute, time_window=60)
    return RATE_LIMITS.get(limit_type)


def _check_rate_limit(update: Update, limit_type: str) -> bool:
    """
    Check if user is within configured rate limits.

    Uses namespaced buckets so admin commands don't share a bucket with
    public commands:
    - public:user:123 for user commands
    - admin:user:123 for admin commands

    Returns:
        True if allowed, False if rate limit exceeded
    """
    config = _limit_config(limit_type)
    if not config:
        return True  # No rate limit configured

    user_id = str(update.effective_user.id)
    prefix = "admin" if limit_type == "admin_command" else "public"
    identifier = f"{prefix}:user:{user_id}"

    if not rate_limiter.is_allowed(identifier, config):
        logger.warning(
            "Rate limit exceeded for %s (type=%s, remaining=%s, reset_time=%s)",
            identifier,
            limit_type,
            rate_limiter.get_remaining_requests(identifier, config),
            rate_limiter.get_reset_time(identifier, config),
        )
        return False
    return True


def _parse_history_args(args: List[str]):
    """
    Parse "/history CUR [days] [source]".

    The source may contain spaces ("CB Bank"), so everything after the days
    argument is joined.

    Returns:
        (currency, days, source)

    Raises:
        ValueError: If the currency is missing or days is not a positive number
    """
    if not args:
        raise ValueError("Usage: /history CUR [days] [source]")
    currency = args[0].upper()
    days = DEFAULT_HISTORY_DAYS
    rest = args[1:]
    if rest and rest[0].isdigit():
        days = int(rest[0])
        rest = rest[1:]
    if days < 1 or days > MAX_HISTORY_DAYS:
        raise ValueError(f"Days must be between 1 and {MAX_HISTORY_DAYS}")
    source = " ".join(rest) or None
    return currency, days, source


def _parse_compare_args(args: List[str]) -> List[str]:
    """
    Parse "/compare [CUR ...]".

    Arguments that are not 3-letter codes are ignored. With no currency the
    default set is used; a single currency is compared with USD (or EUR
    when it is USD).

    Raises:
        ValueError: If more than MAX_COMPARE_CURRENCIES currencies are given
    """
    currencies = list(dict.fromkeys(a.upper() for a in args if CURRENCY_ARG.fullmatch(a)))
    if not currencies:
        return list(DEFAULT_COMPARE_CURRENCIES)
    if len(currencies) == 1:
        currencies.append("EUR" if currencies[0] == "USD" else "USD")
    if len(currencies) > MAX_COMPARE_CURRENCIES:
        raise ValueError(
            f"Please compare up to {MAX_COMPARE_CURRENCIES} currencies at a time.\n"
            "Usage: /compare USD EUR SGD"
        )
    return currencies


def _parse_predict_args(args: List[str]):
    """
    Parse "/predict [CUR] [days]".

    Returns:
        (currency, days)

    Raises:
        ValueError: If days is not a number between 1 and MAX_PREDICT_DAYS
    """
    currency = args[0].upper() if args else DEFAULT_PREDICT_CURRENCY
    days = DEFAULT_PREDICT_DAYS
    if len(args) > 1:
        if not args[1].isdigit():
            raise ValueError("Usage: /predict [CUR] [days]")
        days = int(args[1])
    if days < 1 or days > MAX_PREDICT_DAYS:
        raise ValueError(f"Days must be between 1 and {MAX_PREDICT_DAYS}")
    return currency, days


async def start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start and /help."""
    text = HELP_TEXT + (ADMIN_HELP_TEXT if _is_admin(update) else "")
    await update.message.reply_text(text)


# --- /rates: Latest rates ---
async def rates_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /rates [CUR] - latest rates per source, optionally for one currency."""
    if not _check_rate_limit(update, "user_command"):
        await update.message.reply_text(RATE_LIMIT_TEXT)
        return

    currency = context.args[0] if context.args else None
    try:
        latest = await _orchestrator(context).get_latest_rates(currency)
    except Exception:
        logger.exception("Failed to load latest rates")
        await update.message.reply_text(UNAVAILABLE_TEXT)
        return

    await update.message.reply_text(format_rates(latest))


# --- /history: Rate log for one currency ---
async def history_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /history CUR [days] [source]."""
    if not _check_rate_limit(update, "user_command"):
        await update.message.reply_text(RATE_LIMIT_TEXT)
        return

    try:
        currency, days, source = _parse_history_args(context.args or [])
    except ValueError as e:
        await update.message.reply_text(str(e))
        return

    end = utc_now()
    start_at = end - timedelta(days=days)
    try:
        docs = await _orchestrator(context).get_historical_rates(currency, start_at, end, source)
    except Exception:
        logger.exception("Failed to load %s history", currency)
        await update.message.reply_text(UNAVAILABLE_TEXT)
        return

    await update.message.reply_text(format_history(currency, docs, days))


# --- /compare: Currencies side by side ---
async def compare_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /compare [CUR ...] - latest rates of several currencies per source."""
    if not _check_rate_limit(update, "user_command"):
        await update.message.reply_text(RATE_LIMIT_TEXT)
        return

    try:
        currencies = _parse_compare_args(context.args or [])
    except ValueError as e:
        await update.message.reply_text(f"❌ {e}")
        return

    orchestrator = _orchestrator(context)
    try:
        per_currency = await asyncio.gather(*(orchestrator.get_latest_rates(c) for c in currencies))
    except Exception:
        logger.exception("Failed to load rates for comparison")
        await update.message.reply_text(UNAVAILABLE_TEXT)
        return

    rates = [rate for batch in per_currency for rate in batch]
    await update.message.reply_text(format_comparison(currencies, rates))


# --- /predict: Trend of the official rate ---
async def predict_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /predict [CUR] [days] - trend and projection from recent CBM rates."""
    if not _check_rate_limit(update, "user_command"):
        await update.message.reply_text(RATE_LIMIT_TEXT)
        return

    try:
        currency, days = _parse_predict_args(context.args or [])
    except ValueError as e:
        await update.message.reply_text(f"❌ {e}")
        return

    end = utc_now()
    start_at = end - timedelta(days=PREDICT_HISTORY_DAYS)
    try:
        docs = await _orchestrator(context).get_historical_rates(currency, start_at, end, OFFICIAL_SOURCE)
    except Exception:
        logger.exception("Failed to load %s history for projection", currency)
        await update.message.reply_text(UNAVAILABLE_TEXT)
        return

    try:
        forecast = analyze_trend(currency, docs, days)
    except ValueError:
        await update.message.reply_text(f"❌ Not enough {OFFICIAL_SOURCE} data for {currency} to make a projection.")
        return

    await update.message.reply_text(format_forecast(forecast))


# --- /collect: Manual collection (admin only) ---
async def collect_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /collect [source] - run every collector, or just one (admin only)."""
    if not _is_admin(update):
        await update.message.reply_text(ADMIN_ONLY_TEXT)
        return

    if not _check_rate_limit(update, "admin_command"):
        await update.message.reply_text(RATE_LIMIT_TEXT)
        return

    orchestrator = _orchestrator(context)
    source = " ".join(context.args) if context.args else None
    await update.message.reply_text(f"⏳ Collecting rates from {source or 'all sources'}...")

    try:
        if source:
            summary = await orchestrator.collect_source(source)
        else:
            summary = await orchestrator.collect_all()
    except CollectionError as e:
        known = ", ".join(orchestrator.sources)
        await update.message.reply_text(f"❌ {e}\nKnown sources: {known}")
        return
    except PersistenceError as e:
        logger.exception("Manual collection could not be recorded")
        await update.message.reply_text(f"❌ Collection ran but could not be recorded: {e}")
        return

    await update.message.reply_text(format_collection_summary(summary))


# --- /health: Collector health (admin only) ---
async def health_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /health - collector health and last run status (admin only, read-only)."""
    if not _is_admin(update):
        await update.message.reply_text(ADMIN_ONLY_TEXT)
        return

    if not _check_rate_limit(update, "admin_command"):
        await update.message.reply_text(RATE_LIMIT_TEXT)
        return

    try:
        report = await _health_tracker(context).get_report()
        statuses = await _orchestrator(context).get_collection_status()
    except Exception as e:
        logger.exception("Health check failed")
        await update.message.reply_text(f"Health check failed: {e}")
        return

    await update.message.reply_text(format_health_report(report, statuses))


def build_handlers():
    """
    Build and return list of Telegram bot handlers.

    Returns:
        List of handler instances for registration with bot
    """
    return [
        CommandHandler(["start", "help"], start),
        CommandHandler("rates", rates_cmd),
        CommandHandler("history", history_cmd),
        CommandHandler("compare", compare_cmd),
        CommandHandler("predict", predict_cmd),
        CommandHandler("collect", collect_cmd),  # Admin only - manual collection
        CommandHandler("health", health_cmd),  # Admin only - collector health
    ]
