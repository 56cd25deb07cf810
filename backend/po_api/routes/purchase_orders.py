from __future__ import annotations
from datetime import datetime, timezone
from flask import Blueprint, request
from sqlalchemy import select, or_
from sqlalchemy.exc import IntegrityError

from po_api import get_db
from po_api.constants.permissions import PO_STATUS_PERMISSIONS
from po_api.decorators.audit import audit_log
from po_api.decorators.auth import require_permissions, require_roles
from po_api.errors import Conflict, ValidationError
from po_api.models.base import isoformat
from po_api.models.delivery_address import DeliveryAddress
from po_api.models.division import Division
from po_api.models.purchase_order import PurchaseOrder, PurchaseOrderItem
from po_api.models.supplier import Supplier
from po_api.services.auth import current_principal
from po_api.services.authorization import (
    ROLE_ADMIN, ROLE_MANAGER, ROLE_BASIC, PermissionRequirement, SpendingLimitRequirement,
    authorize, enforce, resolve_permissions,
)
from po_api.services.lifecycle import apply_transition
from po_api.utils.filters import apply_filters, get_live, live
from po_api.utils.listing import list_response
from po_api.utils.sorting import apply_multi_sort
from po_api.utils.validation import (
    json_body, string_field, int_field, number_field, date_field, currency_field,
)

po_bp = Blueprint('po', __name__)

PO_FIELDS = ['po_number', 'supplier_id', 'division_id', 'status', 'total_value_cents', 'currency']


def _to_datetime(raw: str) -> datetime:
    parsed = datetime.fromisoformat(raw.replace('Z', '+00:00'))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _search(qu, v):
    pattern = f'%{v}%'
    return qu.filter(or_(
        PurchaseOrder.po_number.ilike(pattern),
        PurchaseOrder.notes.ilike(pattern),
        PurchaseOrder.supplier.has(Supplier.name.ilike(pattern)),
    ))


@po_bp.get('')
@require_roles(ROLE_ADMIN, ROLE_MANAGER, ROLE_BASIC)
@require_permissions('pos:read')
def list_purchase_orders():
    session = get_db()
    q = live(session.query(PurchaseOrder), PurchaseOrder)
    filter_specs = {
        'status': {'op': lambda qu, v: qu.filter(PurchaseOrder.status == v), 'validate': lambda v: v in PurchaseOrder.ALL_STATUSES},
        'supplier_id': {'coerce': int, 'op': lambda qu, v: qu.filter(PurchaseOrder.supplier_id == v)},
        'division_id': {'coerce': int, 'op': lambda qu, v: qu.filter(PurchaseOrder.division_id == v)},
        'from_date': {'coerce': _to_datetime, 'op': lambda qu, v: qu.filter(PurchaseOrder.order_date >= v)},
        'to_date': {'coerce': _to_datetime, 'op': lambda qu, v: qu.filter(PurchaseOrder.order_date <= v)},
        'search': {'op': _search},
    }
    q = apply_filters(q, filter_specs, request.args)
    allowed = {
        'po_number': PurchaseOrder.po_number,
        'status': PurchaseOrder.status,
        'order_date': PurchaseOrder.order_date,
        'total_value_cents': PurchaseOrder.total_value_cents,
        'created_at': PurchaseOrder.created_at,
        'updated_at': PurchaseOrder.updated_at,
        'id': PurchaseOrder.id,
    }
    q = apply_multi_sort(q, request.args.get('sort'), allowed, PurchaseOrder.id, default=[PurchaseOrder.created_at.desc()])
    return list_response(q, _po_json)


@po_bp.get('/<int:po_id>')
@require_roles(ROLE_ADMIN, ROLE_MANAGER, ROLE_BASIC)
@require_permissions('pos:read')
def get_purchase_order(po_id: int):
    session = get_db()
    po = get_live(session, PurchaseOrder, po_id, 'Purchase order')
    return _po_json(po, with_items=True)


@po_bp.post('')
@require_roles(ROLE_ADMIN, ROLE_MANAGER)
@require_permissions('pos:write')
@audit_log('INSERT', table='purchase_orders', value_keys=PO_FIELDS, po_id_key='id')
def create_purchase_order():
    principal = current_principal()
    data = json_body()
    po_number = string_field(data, 'po_number', required=True, max_len=100)
    supplier_id = int_field(data, 'supplier_id', required=True)
    order_date = date_field(data, 'order_date', required=True)
    expected_delivery_date = date_field(data, 'expected_delivery_date')
    total_value_cents = int_field(data, 'total_value_cents', required=True, minimum=0)
    currency = currency_field(data)
    notes = string_field(data, 'notes')
    division_id = int_field(data, 'division_id', default=principal.division_id)
    delivery_address_id = int_field(data, 'delivery_address_id')
    if data.get('status') not in (None, PurchaseOrder.STATUS_DRAFT):
        raise ValidationError.for_field('status', 'new purchase orders always start as draft')
    items = _parse_items(data.get('items'))

    enforce(authorize(principal, SpendingLimitRequirement(total_value_cents)), principal)

    session = get_db()
    if _po_number_taken(session, po_number):
        raise Conflict(f'Purchase order number {po_number} already exists')
    get_live(session, Supplier, supplier_id, 'Supplier')
    if division_id is not None:
        get_live(session, Division, division_id, 'Division')
    if delivery_address_id is not None:
        get_live(session, DeliveryAddress, delivery_address_id, 'Delivery address')

    po = PurchaseOrder(
        po_number=po_number,
        supplier_id=supplier_id,
        division_id=division_id,
        delivery_address_id=delivery_address_id,
        status=PurchaseOrder.STATUS_DRAFT,
        order_date=order_date,
        expected_delivery_date=expected_delivery_date,
        total_value_cents=total_value_cents,
        currency=currency,
        notes=notes,
    )
    po.stamp(principal.id, created=True)
    session.add(po)
    try:
        session.flush()
        for line_no, item in enumerate(items, start=1):
            row = PurchaseOrderItem(purchase_order_id=po.id, line_no=line_no, **item)
            row.stamp(principal.id, created=True)
            session.add(row)
        session.commit()
    except IntegrityError:
        # lost a race against a concurrent insert of the same po_number
        session.rollback()
        raise Conflict(f'Purchase order number {po_number} already exists')
    return _po_json(po, with_items=True), 201


@po_bp.patch('/<int:po_id>/status')
@require_roles(ROLE_ADMIN, ROLE_MANAGER)
@audit_log(
    'UPDATE',
    table='purchase_orders',
    value_keys=['status'],
    pre_fetch=lambda a, kw: _prefetch_po(kw.get('po_id')),
    po_id_key='id',
)
def update_purchase_order_status(po_id: int):
    principal = current_principal()
    data = json_body()
    requested = data.get('status')
    if not isinstance(requested, str) or not requested:
        raise ValidationError.missing(['status'])
    session = get_db()
    required = PO_STATUS_PERMISSIONS.get(requested)
    if required:
        perms = resolve_permissions(session, principal.id)
        enforce(authorize(principal, PermissionRequirement(required), perms), principal)
    po = apply_transition(session, po_id, requested, principal.id)
    return _po_json(po, with_items=True)


@po_bp.delete('/<int:po_id>')
@require_roles(ROLE_ADMIN)
@require_permissions('pos:delete')
@audit_log('DELETE', table='purchase_orders', record_id_arg='po_id', po_id_arg='po_id', value_keys=PO_FIELDS,
           pre_fetch=lambda a, kw: _prefetch_po(kw.get('po_id')))
def delete_purchase_order(po_id: int):
    principal = current_principal()
    session = get_db()
    po = get_live(session, PurchaseOrder, po_id, 'Purchase order')
    po.soft_delete(principal.id)
    for item in po.items:
        if item.deleted_at is None:
            item.soft_delete(principal.id)
    session.commit()
    return '', 204


def _parse_items(raw):
    if not isinstance(raw, list) or not raw:
        raise ValidationError('At least one item is required', {'items': 'at least one item is required'})
    items = []
    for idx, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise ValidationError.for_field(f'items[{idx}]', 'must be an object')
        try:
            items.append({
                'description': string_field(entry, 'description', required=True),
                'quantity': number_field(entry, 'quantity', minimum=1),
                'unit_price_cents': int_field(entry, 'unit_price_cents', required=True, minimum=0),
                # caller supplied, never derived from quantity * unit price
                'total_price_cents': int_field(entry, 'total_price_cents', required=True, minimum=0),
                'notes': string_field(entry, 'notes'),
            })
        except ValidationError as e:
            details = {f'items[{idx}].{k}': v for k, v in e.extra.get('details', {}).items()}
            raise ValidationError(f'items[{idx}]: {e.description}', details)
    return items


def _po_number_taken(session, po_number: str) -> bool:
    return session.execute(
        select(PurchaseOrder.id).where(PurchaseOrder.po_number == po_number, PurchaseOrder.deleted_at.is_(None))
    ).first() is not None


def _item_json(i: PurchaseOrderItem):
    return {
        'id': i.id,
        'line_no': i.line_no,
        'description': i.description,
        'quantity': i.quantity,
        'unit_price_cents': i.unit_price_cents,
        'total_price_cents': i.total_price_cents,
        'notes': i.notes,
    }


def _po_json(po: PurchaseOrder, with_items: bool = False):
    body = {
        'id': po.id,
        'po_number': po.po_number,
        'supplier_id': po.supplier_id,
        'supplier_name': po.supplier.name if po.supplier else None,
        'division_id': po.division_id,
        'delivery_address_id': po.delivery_address_id,
        'status': po.status,
        'order_date': isoformat(po.order_date),
        'expected_delivery_date': isoformat(po.expected_delivery_date),
        'total_value_cents': po.total_value_cents,
        'currency': po.currency,
        'notes': po.notes,
        'created_by': po.created_by,
        'updated_by': po.updated_by,
        'created_at': isoformat(po.created_at),
        'updated_at': isoformat(po.updated_at),
    }
    if with_items:
        body['items'] = [_item_json(i) for i in _live_items(po)]
    return body


def _live_items(po: PurchaseOrder):
    session = get_db()
    return session.execute(
        select(PurchaseOrderItem)
        .where(PurchaseOrderItem.purchase_order_id == po.id, PurchaseOrderItem.deleted_at.is_(None))
        .order_by(PurchaseOrderItem.line_no)
    ).scalars().all()


def _prefetch_po(po_id: int):
    session = get_db()
    po = session.execute(select(PurchaseOrder).where(PurchaseOrder.id == po_id)).scalar_one_or_none()
    if not po:
        return {}
    return {k: getattr(po, k) for k in PO_FIELDS}
