"""Test seeding utilities to reduce duplication.

These helpers centralize creation of users, roles, permissions, divisions and suppliers
while preserving the project authorization invariants. All of them are idempotent on
their natural key so tests can call them freely.
"""
from typing import Iterable, Dict, Optional, Tuple
from po_api import get_db
from po_api.models.authz import User, Role, Permission, RolePermission, UserRole
from po_api.models.division import Division
from po_api.models.supplier import Supplier
from po_api.services.auth import issue_token

DEFAULT_PASSWORD = 'secret123'


def ensure_permissions(names: Iterable[str]) -> Dict[str, Permission]:
    """Ensure each ``resource:action`` permission exists; return dict name->Permission."""
    session = get_db()
    out: Dict[str, Permission] = {}
    for name in names:
        obj = session.query(Permission).filter_by(name=name).one_or_none()
        if not obj:
            if ':' not in name:
                raise ValueError(f"Permission name '{name}' missing resource:action pattern")
            resource, action = name.split(':', 1)
            obj = Permission(name=name, resource=resource, action=action, description=name)
            session.add(obj); session.flush()
        out[name] = obj
    session.commit()
    return out


def ensure_division(name: str) -> Division:
    session = get_db()
    d = session.query(Division).filter_by(name=name, deleted_at=None).one_or_none()
    if not d:
        d = Division(name=name)
        session.add(d); session.commit(); session.refresh(d)
    return d


def ensure_user(email: str, role: str = 'basic', spending_limit_cents: int = 0, division_id: Optional[int] = None,
                name: Optional[str] = None, password: str = DEFAULT_PASSWORD, is_active: bool = True) -> User:
    session = get_db()
    u = session.query(User).filter_by(email=email, deleted_at=None).one_or_none()
    if not u:
        u = User(name=name or email.split('@')[0], email=email, role=role, password_hash='',
                 spending_limit_cents=spending_limit_cents, division_id=division_id, is_active=is_active)
        u.set_password(password)
        session.add(u); session.commit(); session.refresh(u)
    return u


def ensure_role(name: str, perm_names: Iterable[str] = (), is_system: bool = False) -> Role:
    session = get_db()
    role = session.query(Role).filter_by(name=name, deleted_at=None).one_or_none()
    perms = ensure_permissions(perm_names) if perm_names else {}
    if not role:
        role = Role(name=name, is_system_role=is_system, description=name)
        session.add(role); session.flush()
    # attach any missing permissions
    existing_perm_ids = {
        rp.permission_id for rp in session.query(RolePermission).filter_by(role_id=role.id, deleted_at=None)
    }
    for p in perms.values():
        if p.id not in existing_perm_ids:
            session.add(RolePermission(role_id=role.id, permission_id=p.id))
    session.commit()
    return role


def ensure_user_role_assignment(user: User, role: Role):
    session = get_db()
    if not session.query(UserRole).filter_by(user_id=user.id, role_id=role.id, deleted_at=None).one_or_none():
        session.add(UserRole(user_id=user.id, role_id=role.id)); session.commit()


def ensure_supplier(name: str, is_active: bool = True) -> Supplier:
    session = get_db()
    s = session.query(Supplier).filter_by(name=name, deleted_at=None).one_or_none()
    if not s:
        s = Supplier(name=name, is_active=is_active, city='Springfield', country='USA')
        session.add(s); session.commit(); session.refresh(s)
    return s


def auth_headers(user: User) -> Dict[str, str]:
    return {'Authorization': f'Bearer {issue_token(user)}'}


def seed_principal(email: str, role: str = 'manager', perm_names: Iterable[str] = (), role_name: Optional[str] = None,
                   spending_limit_cents: int = 0, division_id: Optional[int] = None) -> Tuple[User, Dict[str, str]]:
    """High level convenience: user (+ optional role with permissions) and bearer headers."""
    user = ensure_user(email, role=role, spending_limit_cents=spending_limit_cents, division_id=division_id)
    perm_names = list(perm_names)
    if perm_names or role_name:
        r = ensure_role(role_name or f'{email} role', perm_names)
        ensure_user_role_assignment(user, r)
    return user, auth_headers(user)


__all__ = [
    'ensure_permissions', 'ensure_division', 'ensure_user', 'ensure_role', 'ensure_user_role_assignment',
    'ensure_supplier', 'auth_headers', 'seed_principal', 'DEFAULT_PASSWORD',
]
