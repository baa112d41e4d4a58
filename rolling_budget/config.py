"""Configuration management for the rolling budget ledger.

This module centralizes all configuration values including paths,
tunables, and environment variable overrides.
"""

from __future__ import annotations

import logging
import os
from decimal import Decimal
from pathlib import Path

# Base project root - assumes this file is in rolling_budget/
_PROJECT_ROOT = Path(__file__).parent.parent.resolve()

# Data directories
DATA_DIR = Path(os.getenv("ROLLBUDGET_DATA_DIR", _PROJECT_ROOT / "data"))

# Database
DB_PATH = Path(
    os.getenv("ROLLBUDGET_DB_PATH", DATA_DIR / "ledger.db")
).resolve()

# Seconds SQLite waits on a locked database before reporting a conflict
BUSY_TIMEOUT = float(os.getenv("ROLLBUDGET_BUSY_TIMEOUT", "5.0"))

# Status and carry-over tunables
WARNING_THRESHOLD = Decimal(os.getenv("ROLLBUDGET_WARNING_THRESHOLD", "0.2"))
REMAINDER_DAY = os.getenv("ROLLBUDGET_REMAINDER_DAY", "first")
MAX_CASCADE_DEPTH = int(os.getenv("ROLLBUDGET_MAX_CASCADE_DEPTH", "52"))
CONFLICT_RETRIES = int(os.getenv("ROLLBUDGET_CONFLICT_RETRIES", "3"))

LOG_LEVEL = os.getenv("ROLLBUDGET_LOG_LEVEL", "WARNING")

# Money
MONEY_QUANTUM = Decimal("0.01")
MAX_DAILY_BASE = Decimal("100000")
MAX_EXPENSE_AMOUNT = Decimal("1000000")

DEFAULT_CATEGORY = "Other"
DEFAULT_CYCLE_LENGTH_DAYS = 7
# 0=Monday ... 6=Sunday, matching date.weekday()
DEFAULT_WEEK_START_DAY = 0


def ensure_data_directories() -> None:
    """Create all required data directories if they don't exist."""
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)


def get_db_path() -> str:
    """Get the database path as a string."""
    return str(DB_PATH)


def configure_logging(level: str | None = None) -> None:
    """Attach a stream handler to the package logger.

    Library code only logs; scripts and the dashboard call this once at
    start-up.
    """
    package_logger = logging.getLogger("rolling_budget")
    package_logger.setLevel((level or LOG_LEVEL).upper())
    if not any(isinstance(h, logging.StreamHandler) and not isinstance(h, logging.NullHandler)
               for h in package_logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        package_logger.addHandler(handler)
