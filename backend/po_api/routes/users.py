from __future__ import annotations
from flask import Blueprint, request
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from po_api import get_db
from po_api.decorators.audit import audit_log
from po_api.decorators.auth import require_auth, require_roles
from po_api.errors import Conflict, Forbidden
from po_api.models.authz import User, UserRole
from po_api.models.base import isoformat
from po_api.models.division import Division
from po_api.services.assignments import live_role_names, set_user_roles
from po_api.services.auth import current_principal, find_live_user_by_email
from po_api.services.authorization import (
    ROLE_ADMIN, ROLE_MANAGER, can_access_division, can_manage_roles, can_manage_users, resolve_permissions,
)
from po_api.utils.filters import apply_filters, get_live, ilike_any, live, parse_bool
from po_api.utils.listing import list_response
from po_api.utils.sorting import apply_multi_sort
from po_api.utils.validation import (
    json_body, email_field, string_field, int_field, bool_field, choice_field, id_list_field,
)

users_bp = Blueprint('users', __name__)

USER_FIELDS = ['email', 'name', 'role', 'division_id', 'spending_limit_cents', 'is_active']
# Fields a non-admin may change on their own account
PROFILE_FIELDS = {'email', 'name', 'password'}


def _require_self_or_user_manager(principal, user_id: int):
    if principal.id != user_id and not can_manage_users(principal):
        roles = [ROLE_ADMIN, ROLE_MANAGER]
        raise Forbidden('forbidden_role', f"Requires one of roles: {', '.join(roles)}", required_roles=roles)


def _require_admin(principal, detail: str):
    if not can_manage_roles(principal):
        raise Forbidden('forbidden_role', detail, required_roles=[ROLE_ADMIN])


@users_bp.get('')
@require_roles(ROLE_ADMIN, ROLE_MANAGER)
def list_users():
    session = get_db()
    q = live(session.query(User), User)
    filter_specs = {
        'role': {'op': lambda qu, v: qu.filter(User.role == v), 'validate': lambda v: v in User.ALL_ROLES},
        'division_id': {'coerce': int, 'op': lambda qu, v: qu.filter(User.division_id == v)},
        'active': {'coerce': parse_bool, 'op': lambda qu, v: qu.filter(User.is_active.is_(v))},
        'search': {'op': ilike_any(User.name, User.email)},
    }
    q = apply_filters(q, filter_specs, request.args)
    allowed = {
        'email': User.email,
        'name': User.name,
        'role': User.role,
        'created_at': User.created_at,
        'id': User.id,
    }
    q = apply_multi_sort(q, request.args.get('sort'), allowed, User.id, default=[User.created_at.desc()])
    return list_response(q, _user_json)


@users_bp.get('/<int:user_id>')
@require_auth
def get_user(user_id: int):
    principal = current_principal()
    _require_self_or_user_manager(principal, user_id)
    session = get_db()
    user = get_live(session, User, user_id, 'User')
    return {**_user_json(user), 'roles': live_role_names(session, user.id)}


@users_bp.post('')
@require_roles(ROLE_ADMIN, ROLE_MANAGER)
@audit_log('INSERT', table='users', value_keys=USER_FIELDS)
def create_user():
    principal = current_principal()
    data = json_body()
    email = email_field(data, required=True)
    password = string_field(data, 'password', required=True, min_len=6)
    name = string_field(data, 'name', required=True, max_len=255)
    role = choice_field(data, 'role', User.ALL_ROLES, default=User.ROLE_BASIC)
    division_id = int_field(data, 'division_id', default=principal.division_id)
    spending_limit = int_field(data, 'spending_limit_cents', minimum=0, default=0)
    is_active = bool_field(data, 'is_active', default=True)
    if role == ROLE_ADMIN:
        _require_admin(principal, 'Only admins can create admin users')
    if not can_access_division(principal, division_id):
        raise Forbidden('forbidden_role', 'Managers can only create users in their own division',
                        required_roles=[ROLE_ADMIN])
    session = get_db()
    if division_id is not None:
        get_live(session, Division, division_id, 'Division')
    if find_live_user_by_email(email):
        raise Conflict('User with this email already exists')
    user = User(email=email, name=name, role=role, division_id=division_id,
                spending_limit_cents=spending_limit, is_active=is_active)
    user.set_password(password)
    user.stamp(principal.id, created=True)
    session.add(user)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise Conflict('User with this email already exists')
    return _user_json(user), 201


@users_bp.put('/<int:user_id>')
@require_auth
@audit_log('UPDATE', table='users', value_keys=USER_FIELDS,
           pre_fetch=lambda a, kw: _prefetch_user(kw.get('user_id')))
def update_user(user_id: int):
    principal = current_principal()
    _require_self_or_user_manager(principal, user_id)
    session = get_db()
    user = get_live(session, User, user_id, 'User')
    data = json_body()
    privileged = set(data) - PROFILE_FIELDS
    if principal.role != ROLE_ADMIN:
        if principal.id == user_id and privileged & set(USER_FIELDS):
            raise Forbidden('forbidden_role', 'Only admins can change role, limit, division or status of their own account',
                            required_roles=[ROLE_ADMIN])
        if principal.id != user_id:
            if user.role == ROLE_ADMIN or not can_access_division(principal, user.division_id):
                raise Forbidden('forbidden_role', 'Managers can only update non-admin users in their own division',
                                required_roles=[ROLE_ADMIN])
            if 'division_id' in data and not can_access_division(principal, int_field(data, 'division_id')):
                raise Forbidden('forbidden_role', 'Managers can only move users into their own division',
                                required_roles=[ROLE_ADMIN])
            if data.get('role') == ROLE_ADMIN:
                _require_admin(principal, 'Only admins can grant the admin role')

    email = email_field(data)
    if email and email != user.email:
        if find_live_user_by_email(email):
            raise Conflict('User with this email already exists')
        user.email = email
    name = string_field(data, 'name', max_len=255)
    if name:
        user.name = name
    password = string_field(data, 'password', min_len=6)
    if password:
        user.set_password(password)
    role = choice_field(data, 'role', User.ALL_ROLES)
    if role:
        user.role = role
    if 'division_id' in data:
        division_id = int_field(data, 'division_id')
        if division_id is not None:
            get_live(session, Division, division_id, 'Division')
        user.division_id = division_id
    spending_limit = int_field(data, 'spending_limit_cents', minimum=0)
    if spending_limit is not None:
        user.spending_limit_cents = spending_limit
    is_active = bool_field(data, 'is_active')
    if is_active is not None:
        user.is_active = is_active
    user.stamp(principal.id)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise Conflict('User with this email already exists')
    return _user_json(user)


@users_bp.delete('/<int:user_id>')
@require_roles(ROLE_ADMIN)
@audit_log('DELETE', table='users', record_id_arg='user_id', value_keys=USER_FIELDS,
           pre_fetch=lambda a, kw: _prefetch_user(kw.get('user_id')))
def delete_user(user_id: int):
    principal = current_principal()
    if principal.id == user_id:
        raise Conflict('You cannot delete your own account')
    session = get_db()
    user = get_live(session, User, user_id, 'User')
    user.soft_delete(principal.id)
    user.is_active = False
    for link in session.execute(
        select(UserRole).where(UserRole.user_id == user.id, UserRole.deleted_at.is_(None))
    ).scalars():
        link.soft_delete(principal.id)
    session.commit()
    return '', 204


@users_bp.put('/<int:user_id>/roles')
@require_roles(ROLE_ADMIN)
@audit_log('UPDATE', table='user_roles', record_id_key='user_id', value_keys=['role_ids'],
           pre_fetch=lambda a, kw: {'role_ids': _live_role_ids(kw.get('user_id'))})
def replace_user_roles(user_id: int):
    principal = current_principal()
    session = get_db()
    user = get_live(session, User, user_id, 'User')
    role_ids = id_list_field(json_body(), 'role_ids')
    if role_ids is None:
        role_ids = []
    set_user_roles(session, user.id, role_ids, principal.id)
    session.commit()
    return {'user_id': user.id, 'role_ids': role_ids, 'roles': live_role_names(session, user.id)}


@users_bp.get('/<int:user_id>/permissions')
@require_auth
def get_user_permissions(user_id: int):
    principal = current_principal()
    _require_self_or_user_manager(principal, user_id)
    session = get_db()
    user = get_live(session, User, user_id, 'User')
    return {
        'user_id': user.id,
        'roles': live_role_names(session, user.id),
        'permissions': sorted(resolve_permissions(session, user.id)),
    }


def _user_json(u: User):
    return {
        'id': u.id,
        'email': u.email,
        'name': u.name,
        'role': u.role,
        'division_id': u.division_id,
        'spending_limit_cents': u.spending_limit_cents,
        'is_active': u.is_active,
        'created_at': isoformat(u.created_at),
        'updated_at': isoformat(u.updated_at),
    }


def _prefetch_user(user_id: int):
    session = get_db()
    u = session.execute(select(User).where(User.id == user_id)).scalar_one_or_none()
    if not u:
        return {}
    return _user_json(u)


def _live_role_ids(user_id: int):
    session = get_db()
    return sorted(session.execute(
        select(UserRole.role_id).where(UserRole.user_id == user_id, UserRole.deleted_at.is_(None))
    ).scalars().all())
