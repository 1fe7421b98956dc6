from tests.test_utils_seed import ensure_profile
from tests.test_lifecycle_helpers import assert_error


def test_login_and_me(client, app_instance):
    with app_instance.app_context():
        ensure_profile('t@example.com', 'supervisor', user_id='auth-t', password='pw', full_name='T User')

    resp = client.post('/auth/login', json={'email': 't@example.com', 'password': 'pw'})
    assert resp.status_code == 200, resp.get_json()
    token = resp.get_json()['access_token']

    me = client.get('/auth/me', headers={'Authorization': f'Bearer {token}'})
    assert me.status_code == 200
    body = me.get_json()
    assert body['email'] == 't@example.com'
    assert body['role'] == 'supervisor'
    assert 'TKT.ASSIGN' in body['perms']
    assert 'TKT.DELETE' not in body['perms']


def test_login_token_drives_ticket_api(client, app_instance):
    with app_instance.app_context():
        ensure_profile('flow@example.com', 'field_engineer', user_id='auth-flow', password='pw')
    token = client.post('/auth/login', json={'email': 'flow@example.com', 'password': 'pw'}).get_json()['access_token']
    headers = {'Authorization': f'Bearer {token}'}
    created = client.post('/tickets', json={'title': 'A', 'location': 'B'}, headers=headers)
    assert created.status_code == 201
    assert created.get_json()['data']['created_by'] == 'auth-flow'


def test_login_rejections(client, app_instance):
    with app_instance.app_context():
        ensure_profile('off@example.com', 'field_engineer', user_id='auth-off', password='pw', is_active=False)
    assert_error(client.post('/auth/login', json={'email': 'off@example.com'}), 400)
    assert_error(client.post('/auth/login', json={'email': 'nobody@example.com', 'password': 'pw'}), 401)
    assert_error(client.post('/auth/login', json={'email': 'off@example.com', 'password': 'bad'}), 401)
    assert_error(client.post('/auth/login', json={'email': 'off@example.com', 'password': 'pw'}), 403)


def test_missing_token_is_rejected(client):
    resp = client.get('/tickets')
    assert resp.status_code == 401
