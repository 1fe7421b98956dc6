"""Reusable validation helpers for ticket fields.

Each helper returns the (possibly coerced) value to enable inline usage and
raises ``ValidationError`` with a ``<field> invalid`` style message otherwise.
"""
from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Iterable, Optional
from fieldservice.lifecycle.errors import ValidationError


def validate_status(new_status: str, allowed: Iterable[str], field_name: str = 'status') -> str:
    """Validate that new_status is inside allowed."""
    if new_status not in allowed:
        raise ValidationError(f"{field_name} invalid")
    return new_status


def require_text(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} required")
    return value.strip()


def optional_text(value: Any, field_name: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} invalid")
    return value


def validate_range(value: Any, low: float, high: float, field_name: str) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{field_name} invalid")
    if not low <= value <= high:
        raise ValidationError(f"{field_name} out of range")
    return float(value)


def validate_non_negative(value: Any, field_name: str) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        raise ValidationError(f"{field_name} invalid")
    return float(value)


def coerce_datetime(value: Any, field_name: str) -> Optional[datetime]:
    """Accept a datetime or an ISO 8601 string; return a UTC tz-aware datetime."""
    if value is None:
        return None
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace('Z', '+00:00'))
        except ValueError:
            raise ValidationError(f"{field_name} invalid")
    if not isinstance(value, datetime):
        raise ValidationError(f"{field_name} invalid")
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)

__all__ = [
    'validate_status', 'require_text', 'optional_text', 'validate_range',
    'validate_non_negative', 'coerce_datetime',
]
