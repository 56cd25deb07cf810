from __future__ import annotations
"""HTTP error types shared by services, decorators and routes.

Each carries a machine readable ``error_code`` plus optional extra fields; the app-wide
error handler renders them as ``{'error': {status, title, detail, code, ...}}``.
"""
from typing import Any, Dict, Iterable, Optional
from werkzeug.exceptions import HTTPException


class ApiError(HTTPException):
    code = 400
    error_code: str = 'bad_request'

    def __init__(self, description: Optional[str] = None, **extra: Any):
        super().__init__(description=description)
        self.extra: Dict[str, Any] = extra


class Unauthenticated(ApiError):
    code = 401
    error_code = 'unauthenticated'
    description = 'Authentication required'


class Forbidden(ApiError):
    code = 403
    error_code = 'forbidden'
    description = 'Forbidden'

    def __init__(self, reason: str, description: Optional[str] = None, **extra: Any):
        super().__init__(description, **extra)
        self.error_code = reason


class NotFound(ApiError):
    code = 404
    error_code = 'not_found'
    description = 'Resource not found'


class Conflict(ApiError):
    code = 409
    error_code = 'conflict'
    description = 'Conflict'


class InvalidTransition(ApiError):
    code = 409
    error_code = 'invalid_transition'

    def __init__(self, current: Optional[str], requested: Optional[str], field_name: str = 'status'):
        super().__init__(
            f'Invalid {field_name} transition {current} -> {requested}',
            current_status=current,
            requested_status=requested,
        )
        self.current = current
        self.requested = requested


class ValidationError(ApiError):
    code = 400
    error_code = 'validation_error'
    description = 'Validation failed'

    def __init__(self, description: Optional[str] = None, details: Optional[Dict[str, str]] = None):
        super().__init__(description, details=details or {})

    @classmethod
    def for_field(cls, field: str, message: str) -> 'ValidationError':
        return cls(f'{field}: {message}', {field: message})

    @classmethod
    def missing(cls, fields: Iterable[str]) -> 'ValidationError':
        fields = list(fields)
        return cls(f"Missing required fields: {', '.join(fields)}", {f: 'required' for f in fields})


def unauthenticated_payload(detail: str) -> Dict[str, Any]:
    """Body used by the JWT loader callbacks (they bypass the error handler)."""
    return {
        'error': {
            'status': 401,
            'title': 'Unauthorized',
            'detail': detail,
            'code': Unauthenticated.error_code,
        }
    }


__all__ = [
    'ApiError', 'Unauthenticated', 'Forbidden', 'NotFound', 'Conflict', 'InvalidTransition',
    'ValidationError', 'unauthenticated_payload',
]
