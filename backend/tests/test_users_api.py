from tests.test_utils_seed import seed_principal, ensure_user, ensure_role, ensure_division, auth_headers

USERS = '/api/v1/users'


def test_admin_creates_and_lists_users(client):
    _, admin = seed_principal('users-admin@example.com', role='admin')
    resp = client.post(USERS, json={'email': 'created@example.com', 'password': 'secret99', 'name': 'Created',
                                    'role': 'manager', 'spending_limit_cents': 25000}, headers=admin)
    assert resp.status_code == 201, resp.get_json()
    body = resp.get_json()
    assert body['role'] == 'manager'
    assert body['spending_limit_cents'] == 25000

    listed = client.get(f'{USERS}?search=created@example.com', headers=admin).get_json()
    assert [u['email'] for u in listed['data']] == ['created@example.com']
    by_role = client.get(f'{USERS}?role=manager&search=created', headers=admin).get_json()
    assert by_role['pagination']['total'] >= 1
    assert client.get(f'{USERS}?role=superuser', headers=admin).status_code == 400

    dup = client.post(USERS, json={'email': 'created@example.com', 'password': 'secret99', 'name': 'Again'}, headers=admin)
    assert dup.status_code == 409


def test_basic_user_cannot_list_users(client):
    _, basic = seed_principal('users-basic@example.com', role='basic')
    resp = client.get(USERS, headers=basic)
    assert resp.status_code == 403
    assert resp.get_json()['error']['code'] == 'forbidden_role'


def test_manager_cannot_create_admin_or_cross_division(client):
    home = ensure_division('Users Home Division')
    other = ensure_division('Users Other Division')
    _, manager = seed_principal('users-manager@example.com', role='manager', division_id=home.id)
    resp = client.post(USERS, json={'email': 'would-be-admin@example.com', 'password': 'secret99', 'name': 'X',
                                    'role': 'admin'}, headers=manager)
    assert resp.status_code == 403
    assert resp.get_json()['error']['required_roles'] == ['admin']
    resp = client.post(USERS, json={'email': 'elsewhere@example.com', 'password': 'secret99', 'name': 'Y',
                                    'division_id': other.id}, headers=manager)
    assert resp.status_code == 403
    resp = client.post(USERS, json={'email': 'teammate@example.com', 'password': 'secret99', 'name': 'Z'},
                       headers=manager)
    assert resp.status_code == 201
    assert resp.get_json()['division_id'] == home.id


def test_self_service_profile_update(client):
    user, headers = seed_principal('users-self@example.com', role='basic')
    resp = client.put(f'{USERS}/{user.id}', json={'name': 'Renamed'}, headers=headers)
    assert resp.status_code == 200
    assert resp.get_json()['name'] == 'Renamed'
    resp = client.put(f'{USERS}/{user.id}', json={'spending_limit_cents': 10**9}, headers=headers)
    assert resp.status_code == 403
    resp = client.put(f'{USERS}/{user.id}', json={'role': 'admin'}, headers=headers)
    assert resp.status_code == 403
    me = client.get(f'{USERS}/{user.id}', headers=headers).get_json()
    assert me['role'] == 'basic'
    assert me['roles'] == []


def test_basic_user_cannot_read_other_users(client):
    _, basic = seed_principal('users-nosy@example.com', role='basic')
    other = ensure_user('users-target@example.com')
    resp = client.get(f'{USERS}/{other.id}', headers=basic)
    assert resp.status_code == 403
    assert resp.get_json()['error']['required_roles'] == ['admin', 'manager']


def test_manager_cannot_grant_admin(client):
    division = ensure_division('Users Grant Division')
    _, manager = seed_principal('users-granter@example.com', role='manager', division_id=division.id)
    target = ensure_user('users-grantee@example.com', division_id=division.id)
    resp = client.put(f'{USERS}/{target.id}', json={'role': 'admin'}, headers=manager)
    assert resp.status_code == 403
    resp = client.put(f'{USERS}/{target.id}', json={'role': 'manager', 'spending_limit_cents': 500}, headers=manager)
    assert resp.status_code == 200
    assert resp.get_json()['role'] == 'manager'


def test_manager_cannot_move_user_out_of_division(client):
    home = ensure_division('Users Home Division')
    other = ensure_division('Users Other Division')
    _, manager = seed_principal('users-mover@example.com', role='manager', division_id=home.id)
    target = ensure_user('users-moved@example.com', division_id=home.id)
    resp = client.put(f'{USERS}/{target.id}', json={'division_id': other.id, 'spending_limit_cents': 9_999_999},
                      headers=manager)
    assert resp.status_code == 403
    assert resp.get_json()['error']['code'] == 'forbidden_role'
    body = client.get(f'{USERS}/{target.id}', headers=manager).get_json()
    assert body['division_id'] == home.id
    assert body['spending_limit_cents'] == 0
    resp = client.put(f'{USERS}/{target.id}', json={'division_id': home.id, 'spending_limit_cents': 700},
                      headers=manager)
    assert resp.status_code == 200
    assert resp.get_json()['spending_limit_cents'] == 700


def test_admin_deletes_user_and_token_stops_working(client):
    admin_user, admin = seed_principal('users-deleter@example.com', role='admin')
    victim = ensure_user('users-victim@example.com')
    victim_headers = auth_headers(victim)
    assert client.delete(f'{USERS}/{admin_user.id}', headers=admin).status_code == 409
    assert client.delete(f'{USERS}/{victim.id}', headers=admin).status_code == 204
    assert client.get(f'{USERS}/{victim.id}', headers=admin).status_code == 404
    assert client.get('/api/v1/auth/me', headers=victim_headers).status_code == 401
    # email is free for a new live account
    resp = client.post(USERS, json={'email': 'users-victim@example.com', 'password': 'secret99', 'name': 'Back'},
                       headers=admin)
    assert resp.status_code == 201


def test_replace_user_roles_and_effective_permissions(client):
    _, admin = seed_principal('users-roles-admin@example.com', role='admin')
    target = ensure_user('users-roles-target@example.com')
    r1 = ensure_role('Users Roles A', ['pos:read'])
    r2 = ensure_role('Users Roles B', ['suppliers:read'])
    resp = client.put(f'{USERS}/{target.id}/roles', json={'role_ids': [r1.id, r2.id]}, headers=admin)
    assert resp.status_code == 200
    assert set(resp.get_json()['roles']) == {'Users Roles A', 'Users Roles B'}
    perms = client.get(f'{USERS}/{target.id}/permissions', headers=admin).get_json()
    assert {'pos:read', 'suppliers:read'} <= set(perms['permissions'])

    resp = client.put(f'{USERS}/{target.id}/roles', json={'role_ids': [r2.id]}, headers=admin)
    assert resp.get_json()['roles'] == ['Users Roles B']
    perms = client.get(f'{USERS}/{target.id}/permissions', headers=admin).get_json()
    assert 'pos:read' not in perms['permissions']

    # re-adding revives the soft-deleted link
    resp = client.put(f'{USERS}/{target.id}/roles', json={'role_ids': [r1.id, r2.id]}, headers=admin)
    assert set(resp.get_json()['roles']) == {'Users Roles A', 'Users Roles B'}

    resp = client.put(f'{USERS}/{target.id}/roles', json={'role_ids': [999999]}, headers=admin)
    assert resp.status_code == 400
