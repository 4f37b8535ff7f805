"""Configuration management for the Quire workspace core."""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Load environment variables
load_dotenv()


def get_env(key: str, default: str | None = None) -> str | None:
    """Get environment variable with optional default."""
    return os.getenv(key, default)


def get_env_int(key: str, default: int) -> int:
    """Get environment variable as integer."""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning("%s=%r is not a valid integer, using %s", key, value, default)
        return default


def get_env_bool(key: str, default: bool = False) -> bool:
    """Get environment variable as boolean."""
    raw = os.getenv(key)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in ("true", "1", "yes", "on"):
        return True
    if value in ("false", "0", "no", "off"):
        return False
    logger.warning("%s=%r is not a valid boolean, using %s", key, raw, default)
    return default


# Quire data directory (defaults to ~/.quire)
QUIRE_DATA_DIR = Path(
    get_env("QUIRE_DATA_DIR", os.path.expanduser("~/.quire"))
    or os.path.expanduser("~/.quire")
)

# Database path for the key-value store (vaults, tabs, settings, templates)
DATABASE_PATH = QUIRE_DATA_DIR / "quire.db"

# Store names inside the key-value database
VAULTS_STORE = "vaults"
TABS_STORE = "tabs"
SETTINGS_STORE = "settings"
TEMPLATES_STORE = "templates"

# Tabs
MAX_TABS = max(1, get_env_int("QUIRE_MAX_TABS", 5))

# Timings (milliseconds in the environment, seconds in code)
WATCH_DEBOUNCE_SECONDS = get_env_int("QUIRE_WATCH_DEBOUNCE_MS", 300) / 1000
WATCH_POLL_SECONDS = get_env_int("QUIRE_WATCH_POLL_MS", 500) / 1000
TAB_SAVE_DEBOUNCE_SECONDS = get_env_int("QUIRE_TAB_SAVE_DEBOUNCE_MS", 500) / 1000
SYNC_RELEASE_SECONDS = get_env_int("QUIRE_SYNC_RELEASE_MS", 100) / 1000

# Live reconciliation with external changes
WATCH_ENABLED = get_env_bool("QUIRE_WATCH_ENABLED", True)

# File tree
SUPPORTED_NOTE_EXTENSIONS = ("md", "MD")
IMAGE_EXTENSIONS = ("png", "jpg", "jpeg", "gif", "svg", "webp")

# Logging
LOG_LEVEL = get_env("LOG_LEVEL", "INFO")


def setup_logging() -> logging.Logger:
    """Configure and return logger."""
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=getattr(logging, (LOG_LEVEL or "INFO").upper(), logging.INFO),
    )
    return logging.getLogger(__name__)
