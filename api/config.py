"""Application configuration and constants."""
import os
from pathlib import Path


def _parse_int_env(name: str, default: int) -> int:
    """Parse integer from environment variable."""
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


# Backend collaborator
ATTEMPT_API_BASE_URL = os.environ.get("ATTEMPT_API_BASE_URL", "http://localhost:8080")
ATTEMPT_API_TIMEOUT_SECONDS = _parse_int_env("ATTEMPT_API_TIMEOUT_SECONDS", 15)

# Autosave
AUTOSAVE_QUIET_PERIOD_MS = _parse_int_env("AUTOSAVE_QUIET_PERIOD_MS", 2000)

# Session storage
ATTEMPT_STORAGE_PREFIX = os.environ.get("ATTEMPT_STORAGE_PREFIX", "attempt:")
SESSION_STORAGE_TTL_MINUTES = _parse_int_env("SESSION_STORAGE_TTL_MINUTES", 12 * 60)
SESSION_CLEANUP_INTERVAL_SECONDS = _parse_int_env(
    "SESSION_CLEANUP_INTERVAL_SECONDS", 60 * 60
)

# Database
DB_DIR = Path(os.environ.get("DB_DIR", Path.cwd() / "data"))
DATABASE_URL = os.environ.get(
    "DATABASE_URL", f"sqlite:///{DB_DIR / 'session_storage.db'}"
)
