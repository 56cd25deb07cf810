from __future__ import annotations
from typing import Any, Dict, Optional
from flask_jwt_extended import get_jwt_identity
from po_api import get_db
from po_api.models.audit import AuditLog


def _actor_id() -> Optional[int]:
    try:
        ident = get_jwt_identity()
    except RuntimeError:
        # no verified JWT in this request (e.g. public registration)
        return None
    try:
        return int(ident) if ident is not None else None
    except (TypeError, ValueError):
        return None


def add_audit(action: str, table_name: str, record_id: Any = None,
              old_values: Optional[Dict[str, Any]] = None, new_values: Optional[Dict[str, Any]] = None,
              po_id: Optional[int] = None, user_id: Optional[int] = None):
    """Persist an audit log entry within the current DB session.

    Parameters:
      action: INSERT, UPDATE or DELETE
      table_name: audited table e.g. purchase_orders
      record_id: primary key of the audited row
      old_values / new_values: JSON-safe snapshots before / after the change
      po_id: purchase order the change belongs to, when there is one
      user_id: acting user; defaults to the JWT identity of the current request
    """
    session = get_db()
    log = AuditLog(
        table_name=table_name,
        record_id=str(record_id) if record_id is not None else None,
        action=action,
        old_values=old_values,
        new_values=new_values,
        user_id=user_id if user_id is not None else _actor_id(),
        po_id=po_id,
    )
    session.add(log)
    # No commit here; caller's transaction boundary controls durability.
    return log
