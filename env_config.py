"""
Environment Configuration Helper - v2.3
=======================================
Centralized env var loading with fallbacks.
Values are read once at import; tests override by patching Config attributes.
"""

import os
import logging
from typing import Optional, Any

logger = logging.getLogger(__name__)


def get_env(*names: str, default: Any = None) -> Optional[str]:
    """
    Get environment variable with fallback names.

    Tries each name in order, returns first non-empty value.

    Example:
        get_env("GRAPH_STORE_URL", "NEO4J_URL")
    """
    for name in names:
        value = os.getenv(name)
        if value and str(value).strip():
            return value.strip()
    return default


def get_env_bool(name: str, default: bool = False) -> bool:
    """Get boolean env var (true/false/1/0/yes/no/on/off)."""
    value = os.getenv(name, "").lower().strip()
    if value in ("true", "1", "yes", "on"):
        return True
    if value in ("false", "0", "no", "off"):
        return False
    return default


def get_env_int(name: str, default: int) -> int:
    value = get_env(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning("%s=%r is not an integer, using %s", name, value, default)
        return default


# ============================================================================
# CENTRALIZED CONFIG (loaded once at import)
# ============================================================================

class Config:
    """Centralized configuration from env vars."""

    ENGINE_VERSION = "2.3"
    TIMEZONE = get_env("SLATE_TIMEZONE", default="America/New_York")

    # Database (SQLite file fallback when unset)
    DATABASE_URL = get_env("DATABASE_URL")

    # Graph data store (team + regime metrics)
    GRAPH_STORE_URL = get_env("GRAPH_STORE_URL", "NEO4J_URL")
    GRAPH_STORE_USER = get_env("GRAPH_STORE_USER", "NEO4J_USER", default="neo4j")
    GRAPH_STORE_PASSWORD = get_env("GRAPH_STORE_PASSWORD", "NEO4J_PASSWORD")
    GRAPH_STORE_DATABASE = get_env("GRAPH_STORE_DATABASE", default="neo4j")

    # Trigger detection inputs
    ADVANCED_STATS_PATH = get_env("ADVANCED_STATS_PATH", default="./data/advanced_stats.json")

    # Reports
    REPORT_DIR = get_env("REPORT_DIR", default="./reports/edge")

    # Jobs
    SCHEDULER_ENABLED = get_env_bool("SCHEDULER_ENABLED", True)
    RECALIBRATION_WINDOW_DAYS = get_env_int("RECALIBRATION_WINDOW_DAYS", 28)
    RECALIBRATION_MIN_SAMPLES = get_env_int("RECALIBRATION_MIN_SAMPLES", 20)

    # Auth
    API_AUTH_ENABLED = get_env_bool("API_AUTH_ENABLED", False)
    API_AUTH_KEY = get_env("API_AUTH_KEY")

    # Logging
    LOG_LEVEL = get_env("LOG_LEVEL", default="INFO").upper()
    LOG_FORMAT = get_env("LOG_FORMAT", default="json")

    @classmethod
    def log_status(cls):
        """Log config status at boot (no secrets, just availability)."""
        status = {
            "db": bool(cls.DATABASE_URL),
            "graph_store": bool(cls.GRAPH_STORE_URL),
            "graph_store_auth": bool(cls.GRAPH_STORE_PASSWORD),
            "advanced_stats": bool(cls.ADVANCED_STATS_PATH and os.path.exists(cls.ADVANCED_STATS_PATH)),
            "scheduler": cls.SCHEDULER_ENABLED,
            "auth": cls.API_AUTH_ENABLED,
        }
        logger.info("Config status: %s", status)
        return status
