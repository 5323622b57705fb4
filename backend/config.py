"""
Configuration helpers for the hosted inspection backend.

Values are sourced from environment variables so deployments can inject
their own project URL and keys without hard-coding sensitive data.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path


def _env(name: str, default: str | None = None) -> str | None:
    val = os.getenv(name)
    if val is None or val == "":
        return default
    return val


API_URL: str | None = _env("INSPECTION_API_URL", None)
API_KEY: str | None = _env("INSPECTION_API_KEY", None)
ACCESS_TOKEN: str | None = _env("INSPECTION_ACCESS_TOKEN", None)
TABLE: str = _env("INSPECTION_TABLE", "inspections") or "inspections"
STORAGE_BUCKET: str = _env("STORAGE_BUCKET", "inspection-photos") or "inspection-photos"
STORAGE_FALLBACK_BUCKET: str = _env("STORAGE_FALLBACK_BUCKET", "inspection-images") or "inspection-images"
REQUEST_TIMEOUT: float = float(_env("REQUEST_TIMEOUT", "10") or "10")
LIST_LIMIT: int = int(_env("INSPECTION_LIST_LIMIT", "50") or "50")
LOG_LEVEL: str = (_env("LOG_LEVEL", "INFO") or "INFO").upper()


def _default_cache_root() -> Path:
    """Return a user-writable data directory for this app.

    - On Windows: %LocalAppData%/Vehicle Inspection
    - On macOS: ~/Library/Caches/Vehicle Inspection
    - On Linux: $XDG_CACHE_HOME/vehicle-inspection or ~/.cache/vehicle-inspection
    """
    app_dir_name_win = "Vehicle Inspection"
    app_dir_name_unix = "vehicle-inspection"

    if os.name == "nt":
        base = os.getenv("LOCALAPPDATA") or os.getenv("APPDATA") or str(Path.home() / "AppData" / "Local")
        return Path(base) / app_dir_name_win
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Caches" / app_dir_name_win
    xdg = os.getenv("XDG_CACHE_HOME")
    if xdg:
        return Path(xdg) / app_dir_name_unix
    return Path.home() / ".cache" / app_dir_name_unix


# Base cache directory (override with APP_CACHE_DIR if set)
CACHE_ROOT: Path = Path(_env("APP_CACHE_DIR", "") or _default_cache_root())

# Where saved inspections live when no hosted backend is configured
LOCAL_STORE_DIR: Path = Path(_env("LOCAL_STORE_DIR", str(CACHE_ROOT / "inspections")) or CACHE_ROOT / "inspections")


def validate_config() -> list[str]:
    """Return a list of missing configuration variables for the hosted backend."""
    missing = []
    if not API_URL:
        missing.append("INSPECTION_API_URL")
    if not API_KEY:
        missing.append("INSPECTION_API_KEY")
    return missing
