from po_api import get_db
from po_api.models.authz import Permission
from tests.test_utils_seed import seed_principal, ensure_permissions, ensure_user, ensure_role, ensure_user_role_assignment

ROLES = '/api/v1/roles'


def _perm_ids(*names):
    return [p.id for p in ensure_permissions(names).values()]


def test_create_update_and_read_role(client):
    _, admin = seed_principal('roles-admin@example.com', role='admin')
    ids = _perm_ids('vendors:read', 'vendors:write')
    resp = client.post(ROLES, json={'name': 'Vendor Desk', 'description': 'vendors', 'permissions': ids}, headers=admin)
    assert resp.status_code == 201, resp.get_json()
    role = resp.get_json()
    assert role['permissions'] == ['vendors:read', 'vendors:write']
    assert role['user_count'] == 0
    assert role['is_system_role'] is False

    read_only = _perm_ids('vendors:read')
    resp = client.put(f"{ROLES}/{role['id']}", json={'permissions': read_only, 'description': 'narrowed'}, headers=admin)
    assert resp.status_code == 200
    assert resp.get_json()['permissions'] == ['vendors:read']
    assert resp.get_json()['description'] == 'narrowed'

    fetched = client.get(f"{ROLES}/{role['id']}", headers=admin).get_json()
    assert fetched['permissions'] == ['vendors:read']

    listed = client.get(f'{ROLES}?search=Vendor%20Desk', headers=admin).get_json()
    assert [r['name'] for r in listed['data']] == ['Vendor Desk']


def test_duplicate_role_name_conflicts(client):
    _, admin = seed_principal('roles-dup-admin@example.com', role='admin')
    assert client.post(ROLES, json={'name': 'Dup Role'}, headers=admin).status_code == 201
    resp = client.post(ROLES, json={'name': 'Dup Role'}, headers=admin)
    assert resp.status_code == 409


def test_unknown_permission_id_rejected(client):
    _, admin = seed_principal('roles-badperm-admin@example.com', role='admin')
    resp = client.post(ROLES, json={'name': 'Bad Perm Role', 'permissions': [987654]}, headers=admin)
    assert resp.status_code == 400
    assert 'permissions' in resp.get_json()['error']['details']


def test_manager_reads_but_cannot_write_roles(client):
    _, manager = seed_principal('roles-manager@example.com', role='manager')
    assert client.get(ROLES, headers=manager).status_code == 200
    resp = client.post(ROLES, json={'name': 'Manager Made'}, headers=manager)
    assert resp.status_code == 403
    assert resp.get_json()['error']['required_roles'] == ['admin']


def test_cannot_delete_system_or_assigned_role(client):
    _, admin = seed_principal('roles-del-admin@example.com', role='admin')
    system = ensure_role('Roles System Role', is_system=True)
    assert client.delete(f'{ROLES}/{system.id}', headers=admin).status_code == 409

    assigned = ensure_role('Roles Assigned Role', ['pos:read'])
    holder = ensure_user('roles-holder@example.com')
    ensure_user_role_assignment(holder, assigned)
    resp = client.delete(f'{ROLES}/{assigned.id}', headers=admin)
    assert resp.status_code == 409
    assert resp.get_json()['error']['assigned_users'] == 1


def test_delete_role_frees_name_and_drops_links(client):
    _, admin = seed_principal('roles-free-admin@example.com', role='admin')
    ids = _perm_ids('quotes:read')
    role = client.post(ROLES, json={'name': 'Ephemeral Role', 'permissions': ids}, headers=admin).get_json()
    assert client.delete(f"{ROLES}/{role['id']}", headers=admin).status_code == 204
    assert client.get(f"{ROLES}/{role['id']}", headers=admin).status_code == 404
    again = client.post(ROLES, json={'name': 'Ephemeral Role'}, headers=admin)
    assert again.status_code == 201
    assert again.get_json()['permissions'] == []
    # permission row is untouched
    assert get_db().query(Permission).filter_by(name='quotes:read', deleted_at=None).count() == 1
