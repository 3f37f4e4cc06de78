from __future__ import annotations

from typing import Any, Optional

from ..core.exceptions import ValidationError


def require_non_empty(value: str, field_name: str) -> str:
    if not value or not str(value).strip():
        raise ValidationError(f"{field_name} is required")
    return str(value).strip()


def optional_float(value: Any, field_name: str) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field_name}")


def require_latitude(value: Optional[float]) -> Optional[float]:
    if value is not None and not -90.0 <= value <= 90.0:
        raise ValidationError("latitude must be between -90 and 90")
    return value


def require_longitude(value: Optional[float]) -> Optional[float]:
    if value is not None and not -180.0 <= value <= 180.0:
        raise ValidationError("longitude must be between -180 and 180")
    return value


def require_non_negative(value: Optional[float], field_name: str) -> Optional[float]:
    if value is not None and value < 0:
        raise ValidationError(f"{field_name} must not be negative")
    return value
