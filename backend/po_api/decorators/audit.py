from __future__ import annotations
"""Audit logging decorator to keep add_audit() calls out of route handlers.

Usage examples:

@audit_log('INSERT', table='suppliers')
def create_supplier():
    ... return _supplier_json(s), 201

@audit_log('UPDATE', table='purchase_orders', record_id_arg='po_id', po_id_arg='po_id',
           value_keys=['status'], pre_fetch=lambda a, kw: _prefetch_po(kw.get('po_id')))
def change_status(po_id): ...

Parameters:
  action: INSERT, UPDATE or DELETE
  table: audited table name
  record_id_key: key in the returned JSON object whose value becomes record_id (default 'id').
  record_id_arg: path parameter used for record_id when the response has no such key (e.g. 204).
  value_keys: keys projected from the response (new_values) and the pre_fetch snapshot (old_values).
  pre_fetch: callable(args, kwargs) -> dict snapshot taken before the handler runs.
  po_id_key / po_id_arg: where to read the purchase order id for PO-scoped entries.

Return handling:
  Flask view functions commonly return one of:
    dict
    (dict, status)
    (body, status) for 204 responses
  The decorator extracts the first element as the JSON payload while preserving the original return value.
  A handler that raises is not audited.
"""

import logging
from functools import wraps
from typing import Any, Callable, Dict, Iterable, Optional

from po_api import get_db
from po_api.services.audit import add_audit

logger = logging.getLogger(__name__)


def _extract_payload(rv: Any):
    """Return (data, original_rv) where data is the JSON-able dict for inspection."""
    if isinstance(rv, tuple) and rv:
        data = rv[0]
        return data, rv
    return rv, rv


def _project(values: Optional[Dict[str, Any]], keys: Optional[Iterable[str]]):
    if values is None:
        return None
    if keys is None:
        return dict(values)
    return {k: values.get(k) for k in keys if k in values}


def audit_log(
    action: str,
    *,
    table: str,
    record_id_key: str = 'id',
    record_id_arg: Optional[str] = None,
    value_keys: Optional[Iterable[str]] = None,
    pre_fetch: Optional[Callable[[tuple, dict], Dict[str, Any]]] = None,
    po_id_key: Optional[str] = None,
    po_id_arg: Optional[str] = None,
):
    value_keys = list(value_keys) if value_keys is not None else None

    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            before_snapshot = None
            if pre_fetch:
                try:
                    before_snapshot = pre_fetch(args, kwargs)
                except Exception:
                    logger.exception('audit pre-fetch failed for %s %s', action, table)
            rv = fn(*args, **kwargs)
            try:
                data, _ = _extract_payload(rv)
                data = data if isinstance(data, dict) else None
                record_id = None
                if data is not None and record_id_key in data:
                    record_id = data.get(record_id_key)
                elif record_id_arg and record_id_arg in kwargs:
                    record_id = kwargs.get(record_id_arg)
                po_id = None
                if po_id_key and data is not None:
                    po_id = data.get(po_id_key)
                elif po_id_arg:
                    po_id = kwargs.get(po_id_arg)
                add_audit(
                    action,
                    table,
                    record_id,
                    old_values=_project(before_snapshot, value_keys),
                    new_values=_project(data, value_keys) if action != 'DELETE' else None,
                    po_id=po_id,
                )
                get_db().commit()
            except Exception:
                # audit must not interfere with the main response
                logger.exception('audit write failed for %s %s', action, table)
                get_db().rollback()
            return rv
        return wrapper
    return outer
