"""
Inspection rules that deployments may tune.

Values are sourced from environment variables so a deployment can adapt
regional conventions (plate format, currency scale) without code changes.
"""

from __future__ import annotations

import os
import re


def _env(name: str, default: str) -> str:
    val = os.getenv(name)
    if val is None or val == "":
        return default
    return val


def _env_int(name: str, default: int) -> int:
    try:
        return int(_env(name, str(default)))
    except ValueError:
        return default


MIN_SCORE: int = 0
MAX_SCORE: int = 10

MIN_VEHICLE_YEAR: int = _env_int("INSPECTION_MIN_YEAR", 1900)
HIGH_MILEAGE_KM: int = _env_int("INSPECTION_HIGH_MILEAGE_KM", 500_000)

# Colombian plates: ABC123 (cars) or ABC12D (motorcycles)
PLATE_PATTERN: re.Pattern[str] = re.compile(_env("INSPECTION_PLATE_PATTERN", r"^[A-Z]{3}[0-9]{2}[0-9A-Z]$"))
PLATE_MIN_LENGTH: int = 3
PLATE_MAX_LENGTH: int = 8

MAX_IMAGES_PER_ITEM: int = _env_int("INSPECTION_MAX_IMAGES_PER_ITEM", 10)
MAX_IMAGE_BYTES: int = _env_int("INSPECTION_MAX_IMAGE_BYTES", 5 * 1024 * 1024)
ALLOWED_IMAGE_TYPES: tuple[str, ...] = ("image/jpeg", "image/png", "image/webp", "image/gif")

# Report thresholds
CRITICAL_SCORE: int = 3
LOW_AVERAGE_SCORE: float = 5.0
LOW_CATEGORY_SCORE: float = 4.0
MIN_COMPLETION_PERCENT: float = 80.0
HIGH_REPAIR_COST: float = float(_env_int("INSPECTION_HIGH_REPAIR_COST", 5_000_000))
