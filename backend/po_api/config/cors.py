from __future__ import annotations
from flask import Flask, request

ALLOWED_METHODS = 'GET, POST, PUT, PATCH, DELETE, OPTIONS'
ALLOWED_HEADERS = 'Authorization, Content-Type'


def origin_allowed(origin: str, allowed) -> bool:
    return '*' in allowed or origin in allowed


def register_cors(app: Flask):
    """Echo back allowed origins from CORS_ORIGINS; Flask answers OPTIONS itself."""

    @app.after_request
    def _cors_headers(resp):
        origin = request.headers.get('Origin')
        if origin and origin_allowed(origin, app.config.get('CORS_ORIGINS') or []):
            resp.headers['Access-Control-Allow-Origin'] = origin
            resp.headers['Access-Control-Allow-Credentials'] = 'true'
            resp.headers['Access-Control-Allow-Methods'] = ALLOWED_METHODS
            resp.headers['Access-Control-Allow-Headers'] = ALLOWED_HEADERS
            resp.headers.add('Vary', 'Origin')
        return resp
