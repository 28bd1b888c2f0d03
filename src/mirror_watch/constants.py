"""Global constants and default locations for Mirror Watch.

This module defines application identifiers, the default source repository,
the on-disk layout used between runs, and the remote API endpoints the tool
talks to.
"""

from datetime import datetime, timezone
from pathlib import Path

# --- Identity ---
APP_NAME = "mirror-watch"
"""str: The human-readable application name (also the logger name)."""

# --- Source Repository ---
DEFAULT_OWNER = "cmliu"
"""str: The owner of the watched repository."""

DEFAULT_REPO = "edgetunnel"
"""str: The name of the watched repository."""

DEFAULT_HOST = "github.com"
"""str: The host serving the watched repository."""

BRANCH_PREFIX = "refs/heads/"
"""str: The reference namespace advertised for branches."""

# --- Paths ---
CONFIG_FILE = Path("mirror-watch.toml")
"""Path: The configuration file looked up in the working directory."""

DEFAULT_MIRROR_DIR = Path(DEFAULT_REPO)
"""Path: Where the bare mirror clone is written."""

DEFAULT_STATE_FILE = Path("last_commit.txt")
"""Path: The file holding the raw reference listing of the last sync."""

# --- Remote APIs ---
GITHUB_API = "https://api.github.com"
"""str: Base URL of the commit metadata API."""

TELEGRAM_API = "https://api.telegram.org"
"""str: Base URL of the chat-bot API."""

# --- Report ---
DEFAULT_TIMEZONE = "Asia/Shanghai"
"""str: The zone used to localize commit times in reports."""

EPOCH_SENTINEL = datetime.fromtimestamp(0, tz=timezone.utc)
"""datetime: Stand-in commit time when the real one cannot be resolved."""

SHORT_SHA_LENGTH = 7
"""int: Number of hex digits shown for abbreviated commit ids."""

# --- Environment ---
ENV_BOT_TOKEN = "TELEGRAM_BOT_TOKEN"
ENV_CHAT_ID = "TELEGRAM_CHAT_ID"
ENV_REPO_TOKEN = "GH_TOKEN"
