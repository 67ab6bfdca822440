"""Application configuration: environment variables and derived constants.

Loads ``BOT_TOKEN`` and the polling settings from the environment via
``python-dotenv``.  All values are resolved at import time so the
application can ``from config import …`` without repeated lookups; the
library itself never reads them and gets everything passed explicitly.
"""

# ── stdlib ───────────────────────────────────────────────────────────────────
import logging
import os

# ── third-party ──────────────────────────────────────────────────────────────
from dotenv import load_dotenv

# ── core ─────────────────────────────────────────────────────────────────────
from core.logger import BotLogger

# ── Environment bootstrap ────────────────────────────────────────────────────
load_dotenv()


# ── Helper functions (private) ───────────────────────────────────────────────


def _parse_float(raw: str | None, default: float) -> float:
    """Parse a non-negative number, falling back to *default* on bad input."""
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value >= 0 else default


def _parse_int(raw: str | None, default: int) -> int:
    return int(_parse_float(raw, default))


def _parse_log_level(raw: str | None) -> int:
    level = logging.getLevelName((raw or "INFO").strip().upper())
    return level if isinstance(level, int) else logging.INFO


# ── Public constants ─────────────────────────────────────────────────────────

BOT_TOKEN: str | None = os.environ.get("BOT_TOKEN")
API_HOST: str = os.environ.get("API_HOST") or "api.telegram.org"
UPDATE_INTERVAL: float = _parse_float(os.environ.get("UPDATE_INTERVAL"), 1.0)
POLLING_TIMEOUT: int = _parse_int(os.environ.get("POLLING_TIMEOUT"), 30)
REQUEST_TIMEOUT: float = _parse_float(os.environ.get("REQUEST_TIMEOUT"), 10.0)
LOG_LEVEL: int = _parse_log_level(os.environ.get("LOG_LEVEL"))

# ── Logger (used for startup diagnostics below) ──────────────────────────────
logger = BotLogger.get_logger("app", level=LOG_LEVEL)


# ── Startup diagnostics ─────────────────────────────────────────────────────

if BOT_TOKEN:
    logger.info("Config loaded, BOT_TOKEN is set", extra={"api_host": API_HOST})
else:
    logger.warning("Config loaded, BOT_TOKEN is NOT set")

logger.info(
    "Polling settings resolved",
    extra={"update_interval": UPDATE_INTERVAL, "polling_timeout": POLLING_TIMEOUT, "request_timeout": REQUEST_TIMEOUT},
)
