from __future__ import annotations

from ..core.exceptions import ValidationError


def require_positive_id(value, field_name: str) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} is invalid")
    if parsed <= 0:
        raise ValidationError(f"{field_name} is invalid")
    return parsed
