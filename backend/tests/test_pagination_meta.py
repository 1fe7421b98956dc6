from tests.test_lifecycle_helpers import seed_user, create_ticket, assert_error


def test_tickets_pagination(client, app_instance):
    with app_instance.app_context():
        _, headers = seed_user('field_engineer', 'pag')
    ids = [create_ticket(client, headers, title=f'Pag {i}')['id'] for i in range(5)]

    page = client.get('/tickets?limit=2&offset=0', headers=headers).get_json()
    assert page['pagination'] == {'total': 5, 'limit': 2, 'offset': 0, 'returned': 2}
    # newest created first
    assert [t['id'] for t in page['data']] == ids[::-1][:2]

    tail = client.get('/tickets?limit=2&offset=4', headers=headers).get_json()
    assert tail['pagination']['returned'] == 1
    assert tail['data'][0]['id'] == ids[0]

    clamped = client.get('/tickets?limit=0&offset=-3', headers=headers).get_json()
    assert clamped['pagination']['limit'] == 1
    assert clamped['pagination']['offset'] == 0

    assert_error(client.get('/tickets?limit=abc', headers=headers), 400)


def test_pagination_limits():
    from fieldservice.config.pagination import normalize_pagination, DEFAULT_LIMIT, MAX_LIMIT
    assert normalize_pagination(None, None) == (DEFAULT_LIMIT, 0)
    assert normalize_pagination('1000', '3') == (MAX_LIMIT, 3)
    assert normalize_pagination(None, None, 10, 20) == (10, 0)
    assert normalize_pagination('50', None, 10, 20) == (20, 0)


def test_default_page_size(client, app_instance):
    from fieldservice.config.pagination import DEFAULT_LIMIT
    with app_instance.app_context():
        _, headers = seed_user('field_engineer', 'pag')
    create_ticket(client, headers)
    page = client.get('/tickets', headers=headers).get_json()
    assert page['pagination']['limit'] == DEFAULT_LIMIT
    assert client.get('/tickets?limit=5000', headers=headers).get_json()['pagination']['limit'] == 100
