from __future__ import annotations
from flask import Blueprint, request
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError

from po_api import get_db
from po_api.decorators.audit import audit_log
from po_api.decorators.auth import require_roles
from po_api.errors import Conflict
from po_api.models.base import isoformat
from po_api.models.purchase_order import PurchaseOrder
from po_api.models.supplier import Supplier
from po_api.services.auth import current_principal
from po_api.services.authorization import ROLE_ADMIN, ROLE_MANAGER, ROLE_BASIC
from po_api.utils.filters import apply_filters, get_live, ilike_any, live, parse_bool
from po_api.utils.listing import list_response
from po_api.utils.sorting import apply_multi_sort
from po_api.utils.validation import json_body, string_field, email_field, bool_field

suppliers_bp = Blueprint('suppliers', __name__)

# field -> max length (None = unbounded text)
TEXT_FIELDS = {
    'contact_name': 255,
    'contact_phone': 50,
    'address': None,
    'city': 100,
    'state': 100,
    'zip_code': 20,
    'country': 100,
    'tax_id': 50,
    'payment_terms': 100,
    'notes': None,
}
SUPPLIER_FIELDS = ['name', 'contact_email', 'is_active', *TEXT_FIELDS]


def _name_taken(session, name: str, exclude_id: int = None) -> bool:
    q = select(Supplier.id).where(func.lower(Supplier.name) == name.lower(), Supplier.deleted_at.is_(None))
    if exclude_id is not None:
        q = q.where(Supplier.id != exclude_id)
    return session.execute(q).first() is not None


def _apply_fields(supplier: Supplier, data: dict):
    for field, max_len in TEXT_FIELDS.items():
        if field in data:
            setattr(supplier, field, string_field(data, field, max_len=max_len))
    if 'contact_email' in data:
        supplier.contact_email = email_field(data, 'contact_email')
    is_active = bool_field(data, 'is_active')
    if is_active is not None:
        supplier.is_active = is_active


@suppliers_bp.get('')
@require_roles(ROLE_ADMIN, ROLE_MANAGER, ROLE_BASIC)
def list_suppliers():
    session = get_db()
    q = live(session.query(Supplier), Supplier)
    filter_specs = {
        'active': {'coerce': parse_bool, 'op': lambda qu, v: qu.filter(Supplier.is_active.is_(v))},
        'search': {'op': ilike_any(Supplier.name, Supplier.contact_name, Supplier.contact_email)},
        'city': {'op': lambda qu, v: qu.filter(Supplier.city.ilike(f'%{v}%'))},
        'state': {'op': lambda qu, v: qu.filter(Supplier.state.ilike(f'%{v}%'))},
        'country': {'op': lambda qu, v: qu.filter(Supplier.country.ilike(f'%{v}%'))},
    }
    q = apply_filters(q, filter_specs, request.args)
    allowed = {
        'name': Supplier.name,
        'city': Supplier.city,
        'country': Supplier.country,
        'created_at': Supplier.created_at,
        'id': Supplier.id,
    }
    q = apply_multi_sort(q, request.args.get('sort'), allowed, Supplier.id, default=[Supplier.name.asc()])
    return list_response(q, _supplier_json)


@suppliers_bp.get('/<int:supplier_id>')
@require_roles(ROLE_ADMIN, ROLE_MANAGER, ROLE_BASIC)
def get_supplier(supplier_id: int):
    session = get_db()
    supplier = get_live(session, Supplier, supplier_id, 'Supplier')
    count, total = session.execute(
        select(func.count(PurchaseOrder.id), func.coalesce(func.sum(PurchaseOrder.total_value_cents), 0))
        .where(PurchaseOrder.supplier_id == supplier.id, PurchaseOrder.deleted_at.is_(None))
    ).one()
    return {**_supplier_json(supplier), 'purchase_order_count': count, 'total_purchase_value_cents': int(total)}


@suppliers_bp.post('')
@require_roles(ROLE_ADMIN, ROLE_MANAGER)
@audit_log('INSERT', table='suppliers', value_keys=SUPPLIER_FIELDS)
def create_supplier():
    principal = current_principal()
    data = json_body()
    name = string_field(data, 'name', required=True, max_len=255)
    session = get_db()
    if _name_taken(session, name):
        raise Conflict('Supplier with this name already exists')
    supplier = Supplier(name=name, is_active=True)
    _apply_fields(supplier, data)
    supplier.stamp(principal.id, created=True)
    session.add(supplier)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise Conflict('Supplier with this name already exists')
    return _supplier_json(supplier), 201


@suppliers_bp.put('/<int:supplier_id>')
@require_roles(ROLE_ADMIN, ROLE_MANAGER)
@audit_log('UPDATE', table='suppliers', value_keys=SUPPLIER_FIELDS,
           pre_fetch=lambda a, kw: _prefetch_supplier(kw.get('supplier_id')))
def update_supplier(supplier_id: int):
    principal = current_principal()
    session = get_db()
    supplier = get_live(session, Supplier, supplier_id, 'Supplier')
    data = json_body()
    name = string_field(data, 'name', max_len=255)
    if name and name != supplier.name:
        if _name_taken(session, name, exclude_id=supplier.id):
            raise Conflict('Supplier with this name already exists')
        supplier.name = name
    _apply_fields(supplier, data)
    supplier.stamp(principal.id)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise Conflict('Supplier with this name already exists')
    return _supplier_json(supplier)


@suppliers_bp.patch('/<int:supplier_id>/toggle-active')
@require_roles(ROLE_ADMIN, ROLE_MANAGER)
@audit_log('UPDATE', table='suppliers', value_keys=['is_active'],
           pre_fetch=lambda a, kw: _prefetch_supplier(kw.get('supplier_id')))
def toggle_supplier_active(supplier_id: int):
    principal = current_principal()
    session = get_db()
    supplier = get_live(session, Supplier, supplier_id, 'Supplier')
    supplier.is_active = not supplier.is_active
    supplier.stamp(principal.id)
    session.commit()
    return _supplier_json(supplier)


@suppliers_bp.delete('/<int:supplier_id>')
@require_roles(ROLE_ADMIN, ROLE_MANAGER)
@audit_log('DELETE', table='suppliers', record_id_arg='supplier_id', value_keys=SUPPLIER_FIELDS,
           pre_fetch=lambda a, kw: _prefetch_supplier(kw.get('supplier_id')))
def delete_supplier(supplier_id: int):
    principal = current_principal()
    session = get_db()
    supplier = get_live(session, Supplier, supplier_id, 'Supplier')
    open_count = session.execute(
        select(func.count(PurchaseOrder.id)).where(
            PurchaseOrder.supplier_id == supplier.id,
            PurchaseOrder.status.in_(PurchaseOrder.OPEN_STATUSES),
            PurchaseOrder.deleted_at.is_(None),
        )
    ).scalar_one()
    if open_count:
        raise Conflict(f'Cannot delete supplier with {open_count} active purchase order(s)', open_purchase_orders=open_count)
    supplier.soft_delete(principal.id)
    session.commit()
    return '', 204


def _supplier_json(s: Supplier):
    return {
        'id': s.id,
        'name': s.name,
        'contact_name': s.contact_name,
        'contact_email': s.contact_email,
        'contact_phone': s.contact_phone,
        'address': s.address,
        'city': s.city,
        'state': s.state,
        'zip_code': s.zip_code,
        'country': s.country,
        'tax_id': s.tax_id,
        'payment_terms': s.payment_terms,
        'notes': s.notes,
        'is_active': s.is_active,
        'created_at': isoformat(s.created_at),
        'updated_at': isoformat(s.updated_at),
    }


def _prefetch_supplier(supplier_id: int):
    session = get_db()
    s = session.execute(select(Supplier).where(Supplier.id == supplier_id)).scalar_one_or_none()
    if not s:
        return {}
    return _supplier_json(s)
