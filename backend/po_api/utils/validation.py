from __future__ import annotations
"""Reusable request-body validation helpers.

All helpers raise ``ValidationError`` (400, code ``validation_error``) with a per-field
``details`` mapping so clients can highlight the offending inputs.
"""
import re
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional
from flask import request

from po_api.errors import ValidationError

EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
CURRENCY_RE = re.compile(r'^[A-Z]{3}$')
_MISSING = object()


def json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError('JSON object body required')
    return data


def validate_status(new_status: str, allowed: Iterable[str], field_name: str = 'status') -> str:
    """Validate that new_status is inside allowed.

    Returns the status (to enable inline usage) or raises 400.
    """
    if new_status not in allowed:
        raise ValidationError.for_field(field_name, 'invalid')
    return new_status


def string_field(data: Dict[str, Any], field: str, *, required: bool = False, max_len: Optional[int] = None,
                 min_len: int = 0, default: Any = None) -> Optional[str]:
    value = data.get(field, _MISSING)
    if value is _MISSING or value is None:
        if required:
            raise ValidationError.missing([field])
        return default
    if not isinstance(value, str):
        raise ValidationError.for_field(field, 'must be a string')
    value = value.strip()
    if required and not value:
        raise ValidationError.missing([field])
    if len(value) < min_len:
        raise ValidationError.for_field(field, f'must be at least {min_len} characters')
    if max_len is not None and len(value) > max_len:
        raise ValidationError.for_field(field, f'must be at most {max_len} characters')
    return value


def int_field(data: Dict[str, Any], field: str, *, required: bool = False, minimum: Optional[int] = None,
              default: Any = None) -> Optional[int]:
    value = data.get(field, _MISSING)
    if value is _MISSING or value is None:
        if required:
            raise ValidationError.missing([field])
        return default
    if isinstance(value, bool):
        raise ValidationError.for_field(field, 'must be an integer')
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError.for_field(field, 'must be an integer')
    if isinstance(value, float) and number != value:
        raise ValidationError.for_field(field, 'must be an integer')
    if minimum is not None and number < minimum:
        raise ValidationError.for_field(field, f'must be >= {minimum}')
    return number


def number_field(data: Dict[str, Any], field: str, *, minimum: Optional[float] = None) -> float:
    value = data.get(field)
    if value is None:
        raise ValidationError.missing([field])
    if isinstance(value, bool):
        raise ValidationError.for_field(field, 'must be a number')
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError.for_field(field, 'must be a number')
    if minimum is not None and number < minimum:
        raise ValidationError.for_field(field, f'must be >= {minimum}')
    return number


def bool_field(data: Dict[str, Any], field: str, default: Any = None) -> Optional[bool]:
    value = data.get(field, _MISSING)
    if value is _MISSING or value is None:
        return default
    if not isinstance(value, bool):
        raise ValidationError.for_field(field, 'must be a boolean')
    return value


def email_field(data: Dict[str, Any], field: str = 'email', *, required: bool = False) -> Optional[str]:
    value = string_field(data, field, required=required, max_len=255)
    if value is None:
        return None
    if not EMAIL_RE.match(value):
        raise ValidationError.for_field(field, 'invalid email')
    return value.lower()


def choice_field(data: Dict[str, Any], field: str, allowed: Iterable[str], *, default: Any = None) -> Optional[str]:
    value = data.get(field)
    if value is None:
        return default
    return validate_status(value, tuple(allowed), field)


def parse_datetime(value: Any, field: str) -> datetime:
    """Accept ISO-8601 dates or datetimes; naive values are treated as UTC."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError.for_field(field, 'must be an ISO-8601 date')
    try:
        parsed = datetime.fromisoformat(value.strip().replace('Z', '+00:00'))
    except ValueError:
        raise ValidationError.for_field(field, 'must be an ISO-8601 date')
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def date_field(data: Dict[str, Any], field: str, *, required: bool = False) -> Optional[datetime]:
    value = data.get(field)
    if value is None or value == '':
        if required:
            raise ValidationError.missing([field])
        return None
    return parse_datetime(value, field)


def currency_field(data: Dict[str, Any], field: str = 'currency', default: str = 'USD') -> str:
    value = data.get(field)
    if value is None:
        return default
    if not isinstance(value, str) or not CURRENCY_RE.match(value.upper()):
        raise ValidationError.for_field(field, 'must be a 3-letter currency code')
    return value.upper()


def id_list_field(data: Dict[str, Any], field: str) -> Optional[list]:
    value = data.get(field)
    if value is None:
        return None
    if not isinstance(value, list) or any(isinstance(v, bool) or not isinstance(v, int) for v in value):
        raise ValidationError.for_field(field, 'must be a list of integer ids')
    return sorted(set(value))


__all__ = [
    'json_body', 'validate_status', 'string_field', 'int_field', 'number_field',
    'bool_field', 'email_field', 'choice_field', 'parse_datetime', 'date_field', 'currency_field',
    'id_list_field',
]
