"""Centralized configuration for the portfolio tracker.

Settings come from environment variables so that the same code runs locally
(SQLite file in the working directory) and in a deployment (any SQLAlchemy
URL). Values are read on each call so tests can override them with
``monkeypatch.setenv``.
"""

import logging
import os

# =============================================================================
# PERSISTENCE
# =============================================================================

DEFAULT_DATABASE_URL = "sqlite:///p2p_portfolio.sqlite3"

# Portfolio key used by the command-line interface
DEFAULT_PORTFOLIO_KEY = "default"

# =============================================================================
# DISPLAY
# =============================================================================

DEFAULT_CURRENCY = "EUR"

# Date format for display (e.g. "05 Mar 2024")
DATE_FORMAT_DISPLAY = "%d %b %Y"

# =============================================================================
# NOTIFICATIONS
# =============================================================================

# Loans whose last payment is at most this many days away count as "due"
UPCOMING_PAYMENT_WINDOW_DAYS = 30

# =============================================================================
# LOGGING
# =============================================================================

DEFAULT_LOG_LEVEL = "WARNING"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def database_url() -> str:
    return os.environ.get("P2P_TRACKER_DATABASE_URL", DEFAULT_DATABASE_URL)


def currency() -> str:
    return os.environ.get("P2P_TRACKER_CURRENCY", DEFAULT_CURRENCY).upper()


def secret_key() -> str:
    return os.environ.get("FLASK_SECRET_KEY", "dev-secret-key")


def log_level() -> str:
    return os.environ.get("P2P_TRACKER_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper()


def configure_logging(verbose: bool = False) -> None:
    """Configure root logging once for CLI and web entry points."""
    level = logging.DEBUG if verbose else getattr(logging, log_level(), logging.WARNING)
    logging.basicConfig(level=level, format=LOG_FORMAT)
