from __future__ import annotations
"""Environment backed settings.

Every key can be overridden by the dict passed to ``create_app``.
"""
import os
from datetime import timedelta
from typing import Any, Dict, List

DEFAULT_CORS_ORIGINS = 'http://localhost:3001'


def _split_origins(raw: str) -> List[str]:
    return [o.strip() for o in raw.split(',') if o.strip()]


def load_settings() -> Dict[str, Any]:
    hours = int(os.getenv('JWT_ACCESS_TOKEN_EXPIRES_HOURS', '24'))
    return {
        'JWT_SECRET_KEY': os.getenv('JWT_SECRET_KEY', 'dev-secret'),
        'JWT_ACCESS_TOKEN_EXPIRES': timedelta(hours=hours),
        'DATABASE_URL': os.getenv('DATABASE_URL', 'sqlite:///dev.db'),
        'LOG_LEVEL': os.getenv('LOG_LEVEL', 'INFO').upper(),
        'CORS_ORIGINS': _split_origins(os.getenv('CORS_ORIGINS', DEFAULT_CORS_ORIGINS)),
    }
