from __future__ import annotations
from flask import Blueprint, request
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from po_api import get_db
from po_api.decorators.audit import audit_log
from po_api.decorators.auth import require_roles
from po_api.errors import Conflict
from po_api.models.authz import Role, RolePermission
from po_api.models.base import isoformat
from po_api.services.assignments import count_live_role_users, live_permission_names, set_role_permissions
from po_api.services.auth import current_principal
from po_api.services.authorization import ROLE_ADMIN, ROLE_MANAGER
from po_api.utils.filters import apply_filters, get_live, ilike_any, live, parse_bool
from po_api.utils.listing import list_response
from po_api.utils.sorting import apply_multi_sort
from po_api.utils.validation import json_body, string_field, bool_field, id_list_field

roles_bp = Blueprint('roles', __name__)

ROLE_FIELDS = ['name', 'description', 'is_system_role', 'permissions']


def _name_taken(session, name: str, exclude_id: int = None) -> bool:
    q = select(Role.id).where(Role.name == name, Role.deleted_at.is_(None))
    if exclude_id is not None:
        q = q.where(Role.id != exclude_id)
    return session.execute(q).first() is not None


@roles_bp.get('')
@require_roles(ROLE_ADMIN, ROLE_MANAGER)
def list_roles():
    session = get_db()
    q = live(session.query(Role), Role)
    filter_specs = {
        'search': {'op': ilike_any(Role.name, Role.description)},
        'is_system_role': {'coerce': parse_bool, 'op': lambda qu, v: qu.filter(Role.is_system_role.is_(v))},
    }
    q = apply_filters(q, filter_specs, request.args)
    allowed = {'name': Role.name, 'created_at': Role.created_at, 'id': Role.id}
    q = apply_multi_sort(q, request.args.get('sort'), allowed, Role.id, default=[Role.name.asc()])
    return list_response(q, lambda r: _role_json(r, session))


@roles_bp.get('/<int:role_id>')
@require_roles(ROLE_ADMIN, ROLE_MANAGER)
def get_role(role_id: int):
    session = get_db()
    role = get_live(session, Role, role_id, 'Role')
    return _role_json(role, session)


@roles_bp.post('')
@require_roles(ROLE_ADMIN)
@audit_log('INSERT', table='roles', value_keys=ROLE_FIELDS)
def create_role():
    principal = current_principal()
    data = json_body()
    name = string_field(data, 'name', required=True, max_len=100)
    description = string_field(data, 'description')
    is_system = bool_field(data, 'is_system_role', default=False)
    permission_ids = id_list_field(data, 'permissions') or []
    session = get_db()
    if _name_taken(session, name):
        raise Conflict('Role with this name already exists')
    role = Role(name=name, description=description, is_system_role=is_system)
    role.stamp(principal.id, created=True)
    session.add(role)
    try:
        session.flush()
        set_role_permissions(session, role.id, permission_ids, principal.id)
        session.commit()
    except IntegrityError:
        session.rollback()
        raise Conflict('Role with this name already exists')
    except Exception:
        session.rollback()
        raise
    return _role_json(role, session), 201


@roles_bp.put('/<int:role_id>')
@require_roles(ROLE_ADMIN)
@audit_log('UPDATE', table='roles', value_keys=ROLE_FIELDS,
           pre_fetch=lambda a, kw: _prefetch_role(kw.get('role_id')))
def update_role(role_id: int):
    principal = current_principal()
    session = get_db()
    role = get_live(session, Role, role_id, 'Role')
    data = json_body()
    name = string_field(data, 'name', max_len=100)
    if name and name != role.name:
        if _name_taken(session, name, exclude_id=role.id):
            raise Conflict('Role with this name already exists')
        role.name = name
    if 'description' in data:
        role.description = string_field(data, 'description')
    permission_ids = id_list_field(data, 'permissions')
    if permission_ids is not None:
        set_role_permissions(session, role.id, permission_ids, principal.id)
    role.stamp(principal.id)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise Conflict('Role with this name already exists')
    return _role_json(role, session)


@roles_bp.delete('/<int:role_id>')
@require_roles(ROLE_ADMIN)
@audit_log('DELETE', table='roles', record_id_arg='role_id', value_keys=ROLE_FIELDS,
           pre_fetch=lambda a, kw: _prefetch_role(kw.get('role_id')))
def delete_role(role_id: int):
    principal = current_principal()
    session = get_db()
    role = get_live(session, Role, role_id, 'Role')
    if role.is_system_role:
        raise Conflict('Cannot delete system roles')
    assigned = count_live_role_users(session, role.id)
    if assigned:
        raise Conflict(f'Cannot delete role that is assigned to {assigned} user(s)', assigned_users=assigned)
    role.soft_delete(principal.id)
    for link in session.execute(
        select(RolePermission).where(RolePermission.role_id == role.id, RolePermission.deleted_at.is_(None))
    ).scalars():
        link.soft_delete(principal.id)
    session.commit()
    return '', 204


def _role_json(r: Role, session):
    return {
        'id': r.id,
        'name': r.name,
        'description': r.description,
        'is_system_role': r.is_system_role,
        'permissions': live_permission_names(session, r.id),
        'user_count': count_live_role_users(session, r.id),
        'created_at': isoformat(r.created_at),
        'updated_at': isoformat(r.updated_at),
    }


def _prefetch_role(role_id: int):
    session = get_db()
    r = session.execute(select(Role).where(Role.id == role_id)).scalar_one_or_none()
    if not r:
        return {}
    return _role_json(r, session)
