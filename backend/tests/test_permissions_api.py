from tests.test_utils_seed import seed_principal, ensure_role

PERMS = '/api/v1/permissions'


def test_create_permission_defaults_name(client):
    _, admin = seed_principal('perms-admin@example.com', role='admin')
    resp = client.post(PERMS, json={'resource': 'contracts', 'action': 'sign', 'description': 'Sign contracts'},
                       headers=admin)
    assert resp.status_code == 201, resp.get_json()
    body = resp.get_json()
    assert body['name'] == 'contracts:sign'

    dup = client.post(PERMS, json={'resource': 'contracts', 'action': 'sign'}, headers=admin)
    assert dup.status_code == 409

    bad = client.post(PERMS, json={'resource': 'Contracts!', 'action': 'sign'}, headers=admin)
    assert bad.status_code == 400

    fetched = client.get(f"{PERMS}/{body['id']}", headers=admin).get_json()
    assert fetched['role_count'] == 0


def test_list_filters_resources_and_actions(client):
    _, admin = seed_principal('perms-list-admin@example.com', role='admin')
    client.post(PERMS, json={'resource': 'ledgers', 'action': 'read'}, headers=admin)
    client.post(PERMS, json={'resource': 'ledgers', 'action': 'close'}, headers=admin)
    listed = client.get(f'{PERMS}?resource=ledgers', headers=admin).get_json()
    assert [p['name'] for p in listed['data']] == ['ledgers:close', 'ledgers:read']
    only_close = client.get(f'{PERMS}?resource=ledgers&action=close', headers=admin).get_json()
    assert only_close['pagination']['total'] == 1

    resources = client.get(f'{PERMS}/resources', headers=admin).get_json()['data']
    assert {'resource': 'ledgers', 'permission_count': 2} in resources
    actions = client.get(f'{PERMS}/actions', headers=admin).get_json()['data']
    assert 'close' in actions and 'read' in actions


def test_assigned_permission_is_protected(client):
    _, admin = seed_principal('perms-assigned-admin@example.com', role='admin')
    body = client.post(PERMS, json={'resource': 'budgets', 'action': 'lock'}, headers=admin).get_json()
    ensure_role('Budget Lockers', ['budgets:lock'])

    resp = client.put(f"{PERMS}/{body['id']}", json={'action': 'unlock'}, headers=admin)
    assert resp.status_code == 409
    resp = client.put(f"{PERMS}/{body['id']}", json={'description': 'Lock budgets'}, headers=admin)
    assert resp.status_code == 200
    assert resp.get_json()['description'] == 'Lock budgets'

    resp = client.delete(f"{PERMS}/{body['id']}", headers=admin)
    assert resp.status_code == 409
    assert resp.get_json()['error']['assigned_roles'] == 1


def test_unassigned_permission_update_and_delete(client):
    _, admin = seed_principal('perms-free-admin@example.com', role='admin')
    body = client.post(PERMS, json={'resource': 'memos', 'action': 'draft'}, headers=admin).get_json()
    resp = client.put(f"{PERMS}/{body['id']}", json={'action': 'send'}, headers=admin)
    assert resp.status_code == 200
    assert resp.get_json()['name'] == 'memos:send'
    assert client.delete(f"{PERMS}/{body['id']}", headers=admin).status_code == 204
    assert client.get(f"{PERMS}/{body['id']}", headers=admin).status_code == 404
    # names stay reserved after soft delete
    resp = client.post(PERMS, json={'resource': 'memos', 'action': 'send'}, headers=admin)
    assert resp.status_code == 409


def test_basic_user_cannot_list_permissions(client):
    _, basic = seed_principal('perms-basic@example.com', role='basic')
    assert client.get(PERMS, headers=basic).status_code == 403
