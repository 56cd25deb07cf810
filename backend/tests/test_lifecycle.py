from datetime import datetime, timezone

import pytest
from sqlalchemy import update

from po_api import get_db
from po_api.errors import InvalidTransition, NotFound
from po_api.models.purchase_order import PurchaseOrder
from po_api.models.base import utcnow
from po_api.services.lifecycle import PO_LIFECYCLE, transition, apply_transition
from tests.test_utils_seed import ensure_supplier, ensure_user

STATUSES = PurchaseOrder.ALL_STATUSES
EXPECTED_EDGES = {
    ('draft', 'pending'), ('draft', 'cancelled'),
    ('pending', 'approved'), ('pending', 'cancelled'),
    ('approved', 'ordered'), ('approved', 'cancelled'),
    ('ordered', 'received'), ('ordered', 'cancelled'),
}


def _make_po(po_number: str, status: str = 'draft') -> PurchaseOrder:
    session = get_db()
    supplier = ensure_supplier('Lifecycle Supplier')
    po = PurchaseOrder(
        po_number=po_number,
        supplier_id=supplier.id,
        status=status,
        order_date=datetime(2024, 1, 15, tzinfo=timezone.utc),
        total_value_cents=500,
        currency='USD',
    )
    session.add(po)
    session.commit()
    return po


def test_exhaustive_transition_table():
    allowed = {(a, b) for a in STATUSES for b in STATUSES if transition(a, b).allowed}
    assert allowed == EXPECTED_EDGES
    assert set(PO_LIFECYCLE.edges()) == EXPECTED_EDGES


@pytest.mark.parametrize('status', STATUSES)
def test_same_state_transition_rejected(status):
    decision = transition(status, status)
    assert not decision.allowed
    assert decision.reason == 'invalid_transition'


@pytest.mark.parametrize('terminal', ['received', 'cancelled'])
def test_terminal_states_are_closed(terminal):
    assert PO_LIFECYCLE.is_terminal(terminal)
    assert not any(transition(terminal, s).allowed for s in STATUSES)


def test_unknown_status_rejected():
    assert not transition('draft', 'archived').allowed
    assert not transition('archived', 'pending').allowed
    assert not transition('DRAFT', 'pending').allowed


def test_apply_transition_persists_status_and_actor():
    actor = ensure_user('lifecycle-actor@example.com', role='manager')
    po = _make_po('LC-0001')
    out = apply_transition(get_db(), po.id, 'pending', actor.id)
    assert out.status == 'pending'
    assert out.updated_by == actor.id
    assert get_db().get(PurchaseOrder, po.id).status == 'pending'


def test_apply_transition_rejects_invalid_edge_without_writing():
    po = _make_po('LC-0002')
    with pytest.raises(InvalidTransition) as exc:
        apply_transition(get_db(), po.id, 'approved', None)
    assert exc.value.current == 'draft'
    assert exc.value.requested == 'approved'
    assert exc.value.extra == {'current_status': 'draft', 'requested_status': 'approved'}
    get_db().expire_all()
    assert get_db().get(PurchaseOrder, po.id).status == 'draft'


def test_apply_transition_loses_race_to_concurrent_writer():
    session = get_db()
    po = _make_po('LC-0003')
    # loaded object keeps 'draft' while another writer cancels the row
    session.execute(
        update(PurchaseOrder)
        .where(PurchaseOrder.id == po.id)
        .values(status='cancelled')
        .execution_options(synchronize_session=False)
    )
    session.commit()
    assert po.status == 'draft'
    with pytest.raises(InvalidTransition) as exc:
        apply_transition(session, po.id, 'pending', None)
    assert exc.value.current == 'cancelled'
    assert exc.value.requested == 'pending'
    session.expire_all()
    assert session.get(PurchaseOrder, po.id).status == 'cancelled'


def test_apply_transition_on_soft_deleted_po_is_not_found():
    session = get_db()
    po = _make_po('LC-0004')
    po.deleted_at = utcnow()
    session.commit()
    with pytest.raises(NotFound):
        apply_transition(session, po.id, 'pending', None)


def test_apply_transition_on_missing_po_is_not_found():
    with pytest.raises(NotFound):
        apply_transition(get_db(), 999999, 'pending', None)
