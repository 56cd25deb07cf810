from __future__ import annotations
import re
from flask import Blueprint, request
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError

from po_api import get_db
from po_api.constants.permissions import STANDARD_ACTIONS, permission_name
from po_api.decorators.audit import audit_log
from po_api.decorators.auth import require_roles
from po_api.errors import Conflict, ValidationError
from po_api.models.authz import Permission, Role, RolePermission
from po_api.models.base import isoformat
from po_api.services.auth import current_principal
from po_api.services.authorization import ROLE_ADMIN, ROLE_MANAGER
from po_api.utils.filters import apply_filters, get_live, ilike_any, live
from po_api.utils.listing import list_response
from po_api.utils.sorting import apply_multi_sort
from po_api.utils.validation import json_body, string_field

permissions_bp = Blueprint('permissions', __name__)

TOKEN_RE = re.compile(r'^[a-z][a-z0-9_]*$')
PERMISSION_FIELDS = ['name', 'resource', 'action', 'description']


def _token(data, field: str, required: bool = False):
    value = string_field(data, field, required=required, max_len=50)
    if value is not None and not TOKEN_RE.match(value):
        raise ValidationError.for_field(field, 'must be lowercase letters, digits or underscores')
    return value


def _assigned_role_count(session, permission_id: int) -> int:
    return session.execute(
        select(func.count(RolePermission.id))
        .join(Role, Role.id == RolePermission.role_id)
        .where(
            RolePermission.permission_id == permission_id,
            RolePermission.deleted_at.is_(None),
            Role.deleted_at.is_(None),
        )
    ).scalar_one()


def _ensure_unique(session, name: str, resource: str, action: str, exclude_id: int = None):
    # names are globally unique, soft-deleted rows included
    q = select(Permission.id).where((Permission.name == name) | ((Permission.resource == resource) & (Permission.action == action)))
    if exclude_id is not None:
        q = q.where(Permission.id != exclude_id)
    if session.execute(q).first() is not None:
        raise Conflict('Permission with this name or resource/action already exists')


@permissions_bp.get('')
@require_roles(ROLE_ADMIN, ROLE_MANAGER)
def list_permissions():
    session = get_db()
    q = live(session.query(Permission), Permission)
    filter_specs = {
        'resource': {'op': lambda qu, v: qu.filter(Permission.resource == v)},
        'action': {'op': lambda qu, v: qu.filter(Permission.action == v)},
        'search': {'op': ilike_any(Permission.name, Permission.description)},
    }
    q = apply_filters(q, filter_specs, request.args)
    allowed = {'name': Permission.name, 'resource': Permission.resource, 'action': Permission.action, 'id': Permission.id}
    q = apply_multi_sort(q, request.args.get('sort'), allowed, Permission.id,
                         default=[Permission.resource.asc(), Permission.action.asc()])
    return list_response(q, _permission_json)


@permissions_bp.get('/resources')
@require_roles(ROLE_ADMIN, ROLE_MANAGER)
def list_resources():
    session = get_db()
    rows = session.execute(
        select(Permission.resource, func.count(Permission.id))
        .where(Permission.deleted_at.is_(None))
        .group_by(Permission.resource)
        .order_by(Permission.resource)
    ).all()
    return {'data': [{'resource': r, 'permission_count': c} for r, c in rows]}


@permissions_bp.get('/actions')
@require_roles(ROLE_ADMIN, ROLE_MANAGER)
def list_actions():
    session = get_db()
    in_use = set(session.execute(
        select(Permission.action).where(Permission.deleted_at.is_(None)).distinct()
    ).scalars().all())
    return {'data': sorted(in_use | set(STANDARD_ACTIONS))}


@permissions_bp.get('/<int:permission_id>')
@require_roles(ROLE_ADMIN, ROLE_MANAGER)
def get_permission(permission_id: int):
    session = get_db()
    perm = get_live(session, Permission, permission_id, 'Permission')
    return {**_permission_json(perm), 'role_count': _assigned_role_count(session, perm.id)}


@permissions_bp.post('')
@require_roles(ROLE_ADMIN)
@audit_log('INSERT', table='permissions', value_keys=PERMISSION_FIELDS)
def create_permission():
    principal = current_principal()
    data = json_body()
    resource = _token(data, 'resource', required=True)
    action = _token(data, 'action', required=True)
    name = string_field(data, 'name', max_len=100) or permission_name(resource, action)
    description = string_field(data, 'description')
    session = get_db()
    _ensure_unique(session, name, resource, action)
    perm = Permission(name=name, resource=resource, action=action, description=description)
    perm.stamp(principal.id, created=True)
    session.add(perm)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise Conflict('Permission with this name or resource/action already exists')
    return _permission_json(perm), 201


@permissions_bp.put('/<int:permission_id>')
@require_roles(ROLE_ADMIN)
@audit_log('UPDATE', table='permissions', value_keys=PERMISSION_FIELDS,
           pre_fetch=lambda a, kw: _prefetch_permission(kw.get('permission_id')))
def update_permission(permission_id: int):
    principal = current_principal()
    session = get_db()
    perm = get_live(session, Permission, permission_id, 'Permission')
    data = json_body()
    name = string_field(data, 'name', max_len=100)
    resource = _token(data, 'resource')
    action = _token(data, 'action')
    identity_change = any(
        v is not None and v != getattr(perm, f)
        for f, v in (('name', name), ('resource', resource), ('action', action))
    )
    if identity_change:
        if _assigned_role_count(session, perm.id):
            raise Conflict('Only the description of a permission assigned to roles can change')
        new_resource = resource or perm.resource
        new_action = action or perm.action
        new_name = name or permission_name(new_resource, new_action)
        _ensure_unique(session, new_name, new_resource, new_action, exclude_id=perm.id)
        perm.name, perm.resource, perm.action = new_name, new_resource, new_action
    if 'description' in data:
        perm.description = string_field(data, 'description')
    perm.stamp(principal.id)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise Conflict('Permission with this name or resource/action already exists')
    return _permission_json(perm)


@permissions_bp.delete('/<int:permission_id>')
@require_roles(ROLE_ADMIN)
@audit_log('DELETE', table='permissions', record_id_arg='permission_id', value_keys=PERMISSION_FIELDS,
           pre_fetch=lambda a, kw: _prefetch_permission(kw.get('permission_id')))
def delete_permission(permission_id: int):
    principal = current_principal()
    session = get_db()
    perm = get_live(session, Permission, permission_id, 'Permission')
    assigned = _assigned_role_count(session, perm.id)
    if assigned:
        raise Conflict(f'Cannot delete permission assigned to {assigned} role(s)', assigned_roles=assigned)
    perm.soft_delete(principal.id)
    session.commit()
    return '', 204


def _permission_json(p: Permission):
    return {
        'id': p.id,
        'name': p.name,
        'resource': p.resource,
        'action': p.action,
        'description': p.description,
        'created_at': isoformat(p.created_at),
        'updated_at': isoformat(p.updated_at),
    }


def _prefetch_permission(permission_id: int):
    session = get_db()
    p = session.execute(select(Permission).where(Permission.id == permission_id)).scalar_one_or_none()
    if not p:
        return {}
    return _permission_json(p)
