"""
FILE DESCRIPTION: Foundational module for global configuration and logging.
KEY FUNCTIONS/CLASSES: setup_logger, TrackerFormatter, configuration constants
"""

import logging
import sys
import os
from datetime import datetime, timezone
from pathlib import Path
from dotenv import load_dotenv

# === CONFIGURATION SECTION ===

# Load .env from the working directory, then from the repository root
load_dotenv()
load_dotenv(Path(__file__).resolve().parents[2] / '.env')

# Profile page; {user} is the Scholar profile id
PROFILE_URL_TEMPLATE = os.getenv(
    "TRACKER_PROFILE_URL_TEMPLATE",
    "https://scholar.google.com/citations?user={user}&hl=en",
)

# Network timeout for HTTP requests (seconds)
REQUEST_TIMEOUT = float(os.getenv("TRACKER_REQUEST_TIMEOUT", 30))

# Pause between two profiles of the same cycle (seconds)
REQUEST_PACING = float(os.getenv("TRACKER_REQUEST_PACING", 2.0))

USER_AGENT = "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8"
ACCEPT_LANGUAGE = "en-US,en;q=0.5"

# History limits
GROWTH_WINDOW_DAYS = int(os.getenv("TRACKER_GROWTH_WINDOW_DAYS", 30))
RETENTION_DAYS = int(os.getenv("TRACKER_RETENTION_DAYS", 365))
MAX_RECORDS_PER_PROFILE = int(os.getenv("TRACKER_MAX_RECORDS_PER_PROFILE", 1000))

# canonical data directory for history and settings
DATA_DIR = Path(os.getenv("TRACKER_DATA_DIR", Path.home() / ".citation-tracker")).expanduser()
HISTORY_FILE = DATA_DIR / "citation_history.json"
SETTINGS_FILE = DATA_DIR / "settings.json"

LOG_FILE = os.getenv("TRACKER_LOG_FILE") or None
LOG_LEVEL = os.getenv("TRACKER_LOG_LEVEL", "INFO").upper()


# === LOGGING SECTION ===

class TrackerFormatter(logging.Formatter):
    """
    FLOW: Receives a log record -> Stamps it in UTC, the same clock observations use ->
    Resolves the component (extra 'context', else the logger name below 'tracker') ->
    Tags the profile id when one is attached -> Appends the traceback if any.

    Example: [ 2025-06-01 12:00:00.123 UTC ] : WARNING : cycle : profile=_5pgNWgAAAAJ : ...
    """
    def format(self, record):
        dt = datetime.fromtimestamp(record.created, timezone.utc)
        timestamp = f"{dt:%Y-%m-%d %H:%M:%S}.{dt.microsecond // 1000:03d} UTC"
        context = getattr(record, 'context', None) or record.name.rpartition("tracker.")[2] or "tracker"
        parts = [f"[ {timestamp} ]", record.levelname, context]
        profile_id = getattr(record, 'profile', None)
        if profile_id:
            parts.append(f"profile={profile_id}")
        parts.append(record.getMessage())
        line = " : ".join(parts)
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def resolve_level(level):
    """Accepts a logging level number or a name such as 'debug'; unknown names fall back to INFO."""
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).strip().upper())
    return value if isinstance(value, int) else logging.INFO


def setup_logger(name="tracker", log_file=None, level=logging.INFO):
    """
    FLOW: Resolves the level -> Child names (tracker.*) propagate to the 'tracker' logger,
    which is configured once -> Console handler on stderr (stdout is reserved for CLI output) ->
    Optional UTF-8 file handler, creating its directory.
    """
    level = resolve_level(level)
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if name != "tracker":
        logger.propagate = True
        setup_logger("tracker", log_file=log_file, level=level)
        return logger

    if logger.handlers:
        return logger
    logger.propagate = False

    formatter = TrackerFormatter()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger

# Global logger instance
logger = setup_logger(log_file=LOG_FILE, level=LOG_LEVEL)

# --- Environment Checks ---
try:
    import brotli  # noqa: F401
    BROTLI_AVAILABLE = True
except ImportError:
    BROTLI_AVAILABLE = False
    logger.debug("[SYSTEM] Brotli library NOT found. Brotli encoding will not be requested.")
