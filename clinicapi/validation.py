"""
Field checks shared by the entity services.
"""

import math
from typing import Any, Optional

from clinicapi.errors import ValidationError


def require_text(value: Any, field_name: str, max_len: Optional[int] = None) -> str:
    """Return *value* trimmed, or raise if it is missing, blank or too long."""
    if value is None or not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} is required")
    value = value.strip()
    if max_len is not None and len(value) > max_len:
        raise ValidationError(f"{field_name} must not exceed {max_len} characters")
    return value


def optional_text(value: Any, field_name: str, max_len: Optional[int] = None) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a string")
    value = value.strip()
    if max_len is not None and len(value) > max_len:
        raise ValidationError(f"{field_name} must not exceed {max_len} characters")
    return value


def require_non_negative(value: Any, field_name: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a number")
    if not math.isfinite(number):
        raise ValidationError(f"{field_name} must be a finite number")
    if number < 0:
        raise ValidationError(f"{field_name} must not be negative")
    return number


def require_clinic(clinic_id: Any) -> str:
    if clinic_id is None or not str(clinic_id).strip():
        raise ValidationError("clinicId is required")
    return str(clinic_id).strip()
