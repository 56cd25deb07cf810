from tests.test_utils_seed import seed_principal, ensure_user, ensure_division

DIVISIONS = '/api/v1/divisions'
ADDRESSES = '/api/v1/delivery-addresses'


def test_division_crud(client):
    _, admin = seed_principal('div-admin@example.com', role='admin')
    _, basic = seed_principal('div-basic@example.com', role='basic')
    resp = client.post(DIVISIONS, json={'name': 'Engineering', 'description': 'R&D'}, headers=admin)
    assert resp.status_code == 201
    division = resp.get_json()
    assert client.post(DIVISIONS, json={'name': 'Engineering'}, headers=admin).status_code == 409
    assert client.post(DIVISIONS, json={'name': 'Ops'}, headers=basic).status_code == 403

    assert client.get(f"{DIVISIONS}/{division['id']}", headers=basic).status_code == 200
    listed = client.get(f'{DIVISIONS}?search=Engineer', headers=basic).get_json()
    assert [d['name'] for d in listed['data']] == ['Engineering']

    resp = client.put(f"{DIVISIONS}/{division['id']}", json={'description': 'Research'}, headers=admin)
    assert resp.get_json()['description'] == 'Research'

    assert client.delete(f"{DIVISIONS}/{division['id']}", headers=admin).status_code == 204
    assert client.get(f"{DIVISIONS}/{division['id']}", headers=basic).status_code == 404


def test_division_with_users_cannot_be_deleted(client):
    _, admin = seed_principal('div-members-admin@example.com', role='admin')
    division = ensure_division('Staffed Division')
    ensure_user('div-member@example.com', division_id=division.id)
    resp = client.delete(f'{DIVISIONS}/{division.id}', headers=admin)
    assert resp.status_code == 409
    assert resp.get_json()['error']['assigned_users'] == 1


def test_delivery_address_lifecycle(client):
    _, manager = seed_principal('addr-manager@example.com', role='manager')
    _, admin = seed_principal('addr-admin@example.com', role='admin')
    payload = {'name': 'Main Dock', 'address_line_1': '1 Harbor Way', 'city': 'Oakland', 'state': 'CA',
               'postal_code': '94607'}
    resp = client.post(ADDRESSES, json=payload, headers=manager)
    assert resp.status_code == 201, resp.get_json()
    address = resp.get_json()
    assert address['country'] == 'USA'
    assert address['is_active'] is True

    resp = client.put(f"{ADDRESSES}/{address['id']}", json={'address_line_2': 'Bay 4', 'is_active': False},
                      headers=manager)
    assert resp.status_code == 200
    assert resp.get_json()['address_line_2'] == 'Bay 4'
    inactive = client.get(f'{ADDRESSES}?active=false&search=Main%20Dock', headers=manager).get_json()
    assert [a['id'] for a in inactive['data']] == [address['id']]

    assert client.delete(f"{ADDRESSES}/{address['id']}", headers=manager).status_code == 403
    assert client.delete(f"{ADDRESSES}/{address['id']}", headers=admin).status_code == 204
    assert client.get(f"{ADDRESSES}/{address['id']}", headers=admin).status_code == 404


def test_delivery_address_requires_fields(client):
    _, manager = seed_principal('addr-invalid@example.com', role='manager')
    resp = client.post(ADDRESSES, json={'name': 'Partial'}, headers=manager)
    assert resp.status_code == 400
    assert resp.get_json()['error']['details'] == {'address_line_1': 'required'}
