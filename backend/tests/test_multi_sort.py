from datetime import datetime, timedelta, timezone
import pytest
from fieldservice.lifecycle.errors import ValidationError
from fieldservice.utils.sorting import apply_multi_sort, parse_sort_expr
from tests.test_lifecycle_helpers import seed_user, create_ticket, assert_error


def test_parse_sort_expr():
    assert parse_sort_expr('a,-b', {'a', 'b'}) == [('a', False), ('b', True)]
    assert parse_sort_expr(None, {'a'}) == []
    with pytest.raises(ValidationError):
        parse_sort_expr('c', {'a'})


def test_apply_multi_sort_is_stable_and_multi_key():
    rows = [('b', 2), ('a', 2), ('c', 1), ('d', 3)]
    allowed = {'name': lambda r: r[0], 'rank': lambda r: r[1]}
    assert apply_multi_sort(rows, '-rank,name', allowed, lambda r: 0) == [('d', 3), ('a', 2), ('b', 2), ('c', 1)]
    assert apply_multi_sort(rows, None, allowed, lambda r: r[0]) == sorted(rows)


def test_tickets_multi_sort(client, app_instance):
    with app_instance.app_context():
        _, headers = seed_user('field_engineer', 'srt')
    create_ticket(client, headers, title='Charlie', priority='high')
    create_ticket(client, headers, title='Bravo', priority='low')
    create_ticket(client, headers, title='Alpha', priority='high')
    create_ticket(client, headers, title='Delta', priority='critical')
    resp = client.get('/tickets?sort=-priority,title', headers=headers)
    assert resp.status_code == 200
    assert [t['title'] for t in resp.get_json()['data']] == ['Delta', 'Alpha', 'Charlie', 'Bravo']
    # equal priority keeps newest-created first when no secondary key is given
    resp = client.get('/tickets?sort=-priority', headers=headers)
    assert [t['title'] for t in resp.get_json()['data']] == ['Delta', 'Alpha', 'Charlie', 'Bravo']
    assert_error(client.get('/tickets?sort=color', headers=headers), 400, 'Invalid sort field color')
