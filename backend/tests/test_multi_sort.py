from tests.test_utils_seed import seed_principal, ensure_supplier
from tests.test_lifecycle_helpers import PO_URL, po_payload, create_resource_and_assert

PERMS = ['pos:read', 'pos:write']


def test_purchase_orders_multi_sort(client):
    _, headers = seed_principal('po_sort@example.com', perm_names=PERMS, role_name='PO Sort Role',
                                spending_limit_cents=10**6)
    supplier = ensure_supplier('Sort Supplier')
    for number, total in (('SORT-C', 500), ('SORT-B', 500), ('SORT-A', 900)):
        create_resource_and_assert(client, PO_URL, po_payload(number, supplier.id, total), headers)
    resp = client.get(f'{PO_URL}?supplier_id={supplier.id}&sort=total_value_cents,-po_number', headers=headers)
    assert resp.status_code == 200
    assert [p['po_number'] for p in resp.get_json()['data']] == ['SORT-C', 'SORT-B', 'SORT-A']


def test_suppliers_multi_sort(client):
    _, headers = seed_principal('supplier_sort@example.com', role='manager')
    for name in ('Sortable Gamma', 'Sortable Beta', 'Sortable Alpha'):
        client.post('/api/v1/suppliers', json={'name': name}, headers=headers)
    resp = client.get('/api/v1/suppliers?search=Sortable&sort=-name', headers=headers)
    assert resp.status_code == 200
    names = [s['name'] for s in resp.get_json()['data']]
    assert names == ['Sortable Gamma', 'Sortable Beta', 'Sortable Alpha']
    default = client.get('/api/v1/suppliers?search=Sortable', headers=headers).get_json()
    assert [s['name'] for s in default['data']] == sorted(names)


def test_unknown_sort_field_rejected(client):
    _, headers = seed_principal('bad_sort@example.com', role='manager')
    resp = client.get('/api/v1/suppliers?sort=password', headers=headers)
    assert resp.status_code == 400
    assert 'sort' in resp.get_json()['error']['details']
