from __future__ import annotations
from flask import Blueprint, request
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError

from po_api import get_db
from po_api.decorators.audit import audit_log
from po_api.decorators.auth import require_auth, require_roles
from po_api.errors import Conflict
from po_api.models.authz import User
from po_api.models.base import isoformat
from po_api.models.division import Division
from po_api.services.auth import current_principal
from po_api.services.authorization import ROLE_ADMIN
from po_api.utils.filters import apply_filters, get_live, ilike_any, live
from po_api.utils.listing import list_response
from po_api.utils.sorting import apply_multi_sort
from po_api.utils.validation import json_body, string_field

divisions_bp = Blueprint('divisions', __name__)


def _name_taken(session, name: str, exclude_id: int = None) -> bool:
    q = select(Division.id).where(Division.name == name, Division.deleted_at.is_(None))
    if exclude_id is not None:
        q = q.where(Division.id != exclude_id)
    return session.execute(q).first() is not None


@divisions_bp.get('')
@require_auth
def list_divisions():
    session = get_db()
    q = live(session.query(Division), Division)
    q = apply_filters(q, {'search': {'op': ilike_any(Division.name, Division.description)}}, request.args)
    allowed = {'name': Division.name, 'created_at': Division.created_at, 'id': Division.id}
    q = apply_multi_sort(q, request.args.get('sort'), allowed, Division.id, default=[Division.name.asc()])
    return list_response(q, _division_json)


@divisions_bp.get('/<int:division_id>')
@require_auth
def get_division(division_id: int):
    session = get_db()
    return _division_json(get_live(session, Division, division_id, 'Division'))


@divisions_bp.post('')
@require_roles(ROLE_ADMIN)
@audit_log('INSERT', table='divisions', value_keys=['name', 'description'])
def create_division():
    principal = current_principal()
    data = json_body()
    name = string_field(data, 'name', required=True, max_len=255)
    session = get_db()
    if _name_taken(session, name):
        raise Conflict('Division with this name already exists')
    division = Division(name=name, description=string_field(data, 'description'))
    division.stamp(principal.id, created=True)
    session.add(division)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise Conflict('Division with this name already exists')
    return _division_json(division), 201


@divisions_bp.put('/<int:division_id>')
@require_roles(ROLE_ADMIN)
@audit_log('UPDATE', table='divisions', value_keys=['name', 'description'],
           pre_fetch=lambda a, kw: _prefetch_division(kw.get('division_id')))
def update_division(division_id: int):
    principal = current_principal()
    session = get_db()
    division = get_live(session, Division, division_id, 'Division')
    data = json_body()
    name = string_field(data, 'name', max_len=255)
    if name and name != division.name:
        if _name_taken(session, name, exclude_id=division.id):
            raise Conflict('Division with this name already exists')
        division.name = name
    if 'description' in data:
        division.description = string_field(data, 'description')
    division.stamp(principal.id)
    session.commit()
    return _division_json(division)


@divisions_bp.delete('/<int:division_id>')
@require_roles(ROLE_ADMIN)
@audit_log('DELETE', table='divisions', record_id_arg='division_id',
           pre_fetch=lambda a, kw: _prefetch_division(kw.get('division_id')))
def delete_division(division_id: int):
    principal = current_principal()
    session = get_db()
    division = get_live(session, Division, division_id, 'Division')
    members = session.execute(
        select(func.count(User.id)).where(User.division_id == division.id, User.deleted_at.is_(None))
    ).scalar_one()
    if members:
        raise Conflict(f'Cannot delete division with {members} user(s)', assigned_users=members)
    division.soft_delete(principal.id)
    session.commit()
    return '', 204


def _division_json(d: Division):
    return {
        'id': d.id,
        'name': d.name,
        'description': d.description,
        'created_at': isoformat(d.created_at),
        'updated_at': isoformat(d.updated_at),
    }


def _prefetch_division(division_id: int):
    session = get_db()
    d = session.execute(select(Division).where(Division.id == division_id)).scalar_one_or_none()
    return _division_json(d) if d else {}
