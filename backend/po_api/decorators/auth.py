from __future__ import annotations
from functools import wraps
from po_api import get_db
from po_api.services.auth import current_principal
from po_api.services.authorization import (
    authorize, enforce, resolve_permissions, PermissionRequirement, RoleRequirement,
)


def require_auth(fn):
    """Any live, active, authenticated user."""
    @wraps(fn)
    def wrapper(*args, **kwargs):
        current_principal()
        return fn(*args, **kwargs)
    return wrapper


def require_roles(*roles: str):
    requirement = RoleRequirement.of(*roles)

    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            principal = current_principal()
            enforce(authorize(principal, requirement), principal)
            return fn(*args, **kwargs)
        return wrapper
    return outer


def require_permissions(*names: str):
    requirements = [PermissionRequirement(n) for n in names]

    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            principal = current_principal()
            perms = resolve_permissions(get_db(), principal.id)
            for req in requirements:
                enforce(authorize(principal, req, perms), principal)
            return fn(*args, **kwargs)
        return wrapper
    return outer
