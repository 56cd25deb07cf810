def test_unknown_path_returns_error_json(client):
    resp = client.get('/non-existent-path')
    # Flask default 404 should be wrapped by error handler
    assert resp.status_code == 404
    body = resp.get_json()
    assert body['error']['status'] == 404
    assert body['error']['code'] == 'not_found'
    assert 'detail' in body['error']


def test_health(client):
    resp = client.get('/health')
    assert resp.status_code == 200
    assert resp.get_json()['status'] == 'ok'


def test_internal_error_shape(client, monkeypatch):
    from tests.test_utils_seed import seed_principal
    import po_api.routes.suppliers as suppliers_mod
    _, headers = seed_principal('err@example.com', role='manager')

    class BoomSession:
        def query(self, *a, **k):
            raise RuntimeError('explode')

    monkeypatch.setattr(suppliers_mod, 'get_db', lambda: BoomSession())
    resp = client.get('/api/v1/suppliers', headers=headers)
    assert resp.status_code == 500
    body = resp.get_json()
    assert body['error']['status'] == 500
    # internals never leak into the response
    assert 'explode' not in body['error']['detail']


def test_validation_error_shape(client):
    resp = client.post('/api/v1/auth/login', json={'email': 'not-an-email', 'password': 'x'})
    assert resp.status_code == 400
    err = resp.get_json()['error']
    assert err['code'] == 'validation_error'
    assert err['details'] == {'email': 'invalid email'}


def test_non_object_body_rejected(client):
    resp = client.post('/api/v1/auth/login', json=['a', 'b'])
    assert resp.status_code == 400
    assert resp.get_json()['error']['code'] == 'validation_error'


def test_cors_headers_for_allowed_origin(client):
    resp = client.get('/health', headers={'Origin': 'http://localhost:3001'})
    assert resp.headers['Access-Control-Allow-Origin'] == 'http://localhost:3001'
    assert 'Origin' in resp.headers.get('Vary', '')


def test_cors_headers_absent_for_other_origin(client):
    resp = client.get('/health', headers={'Origin': 'http://evil.example.com'})
    assert 'Access-Control-Allow-Origin' not in resp.headers
