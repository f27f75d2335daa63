"""File path resolution using platformdirs.

The default SQLite database lives in the platform user data directory:
  macOS: ~/Library/Application Support/standup-bot/
  Linux: ~/.local/share/standup-bot/
  Windows: %LOCALAPPDATA%/standup-bot/
"""

from pathlib import Path

import platformdirs

APP_NAME = "standup-bot"


def get_data_dir() -> Path:
    """Return the directory for persistent data (SQLite database)."""
    return Path(platformdirs.user_data_dir(APP_NAME, appauthor=False))


def get_default_db_path() -> Path:
    """Return the default SQLite database file path."""
    return get_data_dir() / "standup.db"
