from __future__ import annotations
from flask import Blueprint, request
from sqlalchemy import select

from po_api import get_db
from po_api.decorators.audit import audit_log
from po_api.decorators.auth import require_auth, require_roles
from po_api.models.base import isoformat
from po_api.models.delivery_address import DeliveryAddress
from po_api.services.auth import current_principal
from po_api.services.authorization import ROLE_ADMIN, ROLE_MANAGER
from po_api.utils.filters import apply_filters, get_live, ilike_any, live, parse_bool
from po_api.utils.listing import list_response
from po_api.utils.sorting import apply_multi_sort
from po_api.utils.validation import json_body, string_field, bool_field

addresses_bp = Blueprint('delivery_addresses', __name__)

# field -> (max length, required on create)
ADDRESS_FIELDS = {
    'name': (255, True),
    'address_line_1': (255, True),
    'address_line_2': (255, False),
    'city': (100, True),
    'state': (100, True),
    'postal_code': (20, True),
    'country': (100, False),
    'contact_name': (255, False),
    'contact_phone': (50, False),
    'notes': (None, False),
}
AUDIT_KEYS = [*ADDRESS_FIELDS, 'is_active']


def _apply_fields(address: DeliveryAddress, data: dict, creating: bool):
    for field, (max_len, required) in ADDRESS_FIELDS.items():
        if field in data or (creating and required):
            value = string_field(data, field, required=creating and required, max_len=max_len)
            if value is not None or DeliveryAddress.__table__.c[field].nullable:
                setattr(address, field, value)
    is_active = bool_field(data, 'is_active')
    if is_active is not None:
        address.is_active = is_active


@addresses_bp.get('')
@require_auth
def list_addresses():
    session = get_db()
    q = live(session.query(DeliveryAddress), DeliveryAddress)
    filter_specs = {
        'active': {'coerce': parse_bool, 'op': lambda qu, v: qu.filter(DeliveryAddress.is_active.is_(v))},
        'search': {'op': ilike_any(DeliveryAddress.name, DeliveryAddress.city, DeliveryAddress.address_line_1)},
    }
    q = apply_filters(q, filter_specs, request.args)
    allowed = {'name': DeliveryAddress.name, 'city': DeliveryAddress.city, 'id': DeliveryAddress.id}
    q = apply_multi_sort(q, request.args.get('sort'), allowed, DeliveryAddress.id, default=[DeliveryAddress.name.asc()])
    return list_response(q, _address_json)


@addresses_bp.get('/<int:address_id>')
@require_auth
def get_address(address_id: int):
    session = get_db()
    return _address_json(get_live(session, DeliveryAddress, address_id, 'Delivery address'))


@addresses_bp.post('')
@require_roles(ROLE_ADMIN, ROLE_MANAGER)
@audit_log('INSERT', table='delivery_addresses', value_keys=AUDIT_KEYS)
def create_address():
    principal = current_principal()
    address = DeliveryAddress(country='USA', is_active=True)
    _apply_fields(address, json_body(), creating=True)
    if not address.country:
        address.country = 'USA'
    address.stamp(principal.id, created=True)
    session = get_db()
    session.add(address)
    session.commit()
    return _address_json(address), 201


@addresses_bp.put('/<int:address_id>')
@require_roles(ROLE_ADMIN, ROLE_MANAGER)
@audit_log('UPDATE', table='delivery_addresses', value_keys=AUDIT_KEYS,
           pre_fetch=lambda a, kw: _prefetch_address(kw.get('address_id')))
def update_address(address_id: int):
    principal = current_principal()
    session = get_db()
    address = get_live(session, DeliveryAddress, address_id, 'Delivery address')
    _apply_fields(address, json_body(), creating=False)
    address.stamp(principal.id)
    session.commit()
    return _address_json(address)


@addresses_bp.delete('/<int:address_id>')
@require_roles(ROLE_ADMIN)
@audit_log('DELETE', table='delivery_addresses', record_id_arg='address_id',
           pre_fetch=lambda a, kw: _prefetch_address(kw.get('address_id')))
def delete_address(address_id: int):
    principal = current_principal()
    session = get_db()
    address = get_live(session, DeliveryAddress, address_id, 'Delivery address')
    address.soft_delete(principal.id)
    session.commit()
    return '', 204


def _address_json(a: DeliveryAddress):
    body = {field: getattr(a, field) for field in ADDRESS_FIELDS}
    body.update({
        'id': a.id,
        'is_active': a.is_active,
        'created_at': isoformat(a.created_at),
        'updated_at': isoformat(a.updated_at),
    })
    return body


def _prefetch_address(address_id: int):
    session = get_db()
    a = session.execute(select(DeliveryAddress).where(DeliveryAddress.id == address_id)).scalar_one_or_none()
    return _address_json(a) if a else {}
