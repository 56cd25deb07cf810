from __future__ import annotations
"""Purchase-order lifecycle controller.

Every live status has exactly one advance edge plus ``cancelled``; ``received`` and
``cancelled`` are terminal. Persisting a transition is a conditional UPDATE keyed on the
status that was validated, so a concurrent writer that got there first turns the slower
request into an ``InvalidTransition`` instead of a lost update.
"""
import logging
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from po_api.errors import InvalidTransition, NotFound
from po_api.models.base import utcnow
from po_api.models.purchase_order import PurchaseOrder
from po_api.services.decision import Decision
from po_api.utils.fsm import TransitionValidator

logger = logging.getLogger(__name__)

PO_LIFECYCLE = TransitionValidator({
    PurchaseOrder.STATUS_DRAFT: {PurchaseOrder.STATUS_PENDING, PurchaseOrder.STATUS_CANCELLED},
    PurchaseOrder.STATUS_PENDING: {PurchaseOrder.STATUS_APPROVED, PurchaseOrder.STATUS_CANCELLED},
    PurchaseOrder.STATUS_APPROVED: {PurchaseOrder.STATUS_ORDERED, PurchaseOrder.STATUS_CANCELLED},
    PurchaseOrder.STATUS_ORDERED: {PurchaseOrder.STATUS_RECEIVED, PurchaseOrder.STATUS_CANCELLED},
    PurchaseOrder.STATUS_RECEIVED: set(),
    PurchaseOrder.STATUS_CANCELLED: set(),
})


def transition(current: str, requested: str) -> Decision:
    return PO_LIFECYCLE.check(current, requested)


def _load_live(session: Session, po_id: int) -> PurchaseOrder:
    po = session.execute(
        select(PurchaseOrder).where(PurchaseOrder.id == po_id, PurchaseOrder.deleted_at.is_(None))
    ).scalar_one_or_none()
    if not po:
        raise NotFound('Purchase order not found')
    return po


def apply_transition(session: Session, po_id: int, requested: str, actor_id: Optional[int]) -> PurchaseOrder:
    """Validate and persist a status change; only status and update stamps are written."""
    po = _load_live(session, po_id)
    current = po.status
    try:
        PO_LIFECYCLE.assert_can_transition(current, requested)
    except InvalidTransition:
        logger.info('transition rejected: po=%s %s -> %s', po_id, current, requested)
        raise
    result = session.execute(
        update(PurchaseOrder)
        .where(
            PurchaseOrder.id == po_id,
            PurchaseOrder.status == current,
            PurchaseOrder.deleted_at.is_(None),
        )
        .values(status=requested, updated_at=utcnow(), updated_by=actor_id)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        session.rollback()
        latest = session.execute(
            select(PurchaseOrder.status).where(PurchaseOrder.id == po_id, PurchaseOrder.deleted_at.is_(None))
        ).scalar_one_or_none()
        if latest is None:
            raise NotFound('Purchase order not found')
        logger.info('transition lost race: po=%s expected %s, now %s', po_id, current, latest)
        raise InvalidTransition(latest, requested)
    session.commit()
    session.refresh(po)
    return po


__all__ = ['PO_LIFECYCLE', 'transition', 'apply_transition']
