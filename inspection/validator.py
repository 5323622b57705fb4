from __future__ import annotations

import datetime
import math
import re
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional

from . import config
from .state import InspectionState, VehicleInfo

_MILEAGE_SUFFIX = re.compile(r"\s*(km|kms|kilometers|kilometres)\.?$", re.IGNORECASE)


@dataclass
class VehicleValidation:
    is_valid: bool
    can_save: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


@dataclass
class InspectionValidation:
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def _text(value: Any) -> str:
    if value is None:
        return ''
    return value.strip() if isinstance(value, str) else str(value).strip()


def normalize_plate(plate: Any) -> str:
    return re.sub(r"[^A-Z0-9]", "", _text(plate).upper())


def _parse_year(value: str) -> Optional[int]:
    try:
        return int(value)
    except ValueError:
        pass
    try:
        num = float(value)
    except ValueError:
        return None
    return int(num) if num.is_integer() else None


def _parse_mileage(value: str) -> Optional[float]:
    cleaned = _MILEAGE_SUFFIX.sub('', value).replace(' ', '')
    # 85.000 and 85,000 are both thousands-grouped
    if re.fullmatch(r"-?\d{1,3}([.,]\d{3})+", cleaned):
        cleaned = cleaned.replace('.', '').replace(',', '')
    else:
        cleaned = cleaned.replace(',', '.')
    try:
        num = float(cleaned)
    except ValueError:
        return None
    return num if math.isfinite(num) else None


def _as_vehicle(vehicle_info: Any) -> Optional[VehicleInfo]:
    if isinstance(vehicle_info, VehicleInfo):
        return vehicle_info
    if isinstance(vehicle_info, Mapping):
        return VehicleInfo.from_dict(vehicle_info)
    return None


def validate_vehicle_info(vehicle_info: Any, today: Optional[datetime.date] = None) -> VehicleValidation:
    """Check the identification fields that gate saving.

    Missing brand, model or plate and impossible year or mileage values are
    errors. Doubtful but possible values are warnings and never block a save.
    """
    errors: List[str] = []
    warnings: List[str] = []
    info = _as_vehicle(vehicle_info)
    if info is None:
        errors.append('Vehicle information is required')
        return VehicleValidation(is_valid=False, can_save=False, errors=errors, warnings=warnings)

    if not _text(info.brand):
        errors.append('Brand is required')
    if not _text(info.model):
        errors.append('Model is required')

    plate = _text(info.plate)
    if not plate:
        errors.append('Plate is required')
    else:
        normalized = normalize_plate(plate)
        if len(normalized) < config.PLATE_MIN_LENGTH:
            warnings.append(f"Plate should have at least {config.PLATE_MIN_LENGTH} characters")
        elif len(normalized) > config.PLATE_MAX_LENGTH:
            warnings.append('Plate looks too long, check that it is correct')
        elif not config.PLATE_PATTERN.match(normalized):
            warnings.append(f"Plate '{plate}' does not match the usual format (e.g. ABC123)")

    current_year = (today or datetime.date.today()).year
    year_text = _text(info.year)
    if year_text:
        year = _parse_year(year_text)
        if year is None:
            errors.append('Year must be a whole number')
        elif year < config.MIN_VEHICLE_YEAR or year > current_year + 1:
            errors.append(f"Year must be between {config.MIN_VEHICLE_YEAR} and {current_year + 1}")
    else:
        warnings.append('Specifying the vehicle year is recommended')

    mileage_text = _text(info.mileage)
    if mileage_text:
        mileage = _parse_mileage(mileage_text)
        if mileage is None:
            errors.append('Mileage must be a valid number')
        elif mileage < 0:
            errors.append('Mileage cannot be negative')
        elif mileage > config.HIGH_MILEAGE_KM:
            warnings.append('Mileage is very high, check that it is correct')
    else:
        warnings.append('Specifying the mileage is recommended')

    ok = not errors
    return VehicleValidation(is_valid=ok, can_save=ok, errors=errors, warnings=warnings)


def validate_inspection_data(state: Any, today: Optional[datetime.date] = None) -> InspectionValidation:
    """Vehicle checks plus the requirement that something was evaluated."""
    if not isinstance(state, InspectionState):
        return InspectionValidation(is_valid=False, errors=['No inspection data to save'])
    vehicle = validate_vehicle_info(state.vehicle_info, today=today)
    errors = list(vehicle.errors)
    if state.evaluated_count == 0:
        errors.append('Evaluate at least one component before saving')
    return InspectionValidation(is_valid=not errors, errors=errors, warnings=list(vehicle.warnings))
