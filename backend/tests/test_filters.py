import pytest
from fieldservice.lifecycle.errors import ValidationError
from fieldservice.utils.filters import apply_filters, parse_bool
from tests.test_lifecycle_helpers import seed_user, create_ticket, assert_error


def test_apply_filters_helper():
    specs = {
        'min': {'coerce': int, 'op': lambda rows, v: [r for r in rows if r >= v], 'validate': lambda v: v >= 0},
    }
    assert apply_filters([1, 5, 9], specs, {'min': '5'}) == [5, 9]
    assert apply_filters([1, 5, 9], specs, {}) == [1, 5, 9]
    with pytest.raises(ValidationError):
        apply_filters([1], specs, {'min': 'x'})
    with pytest.raises(ValidationError):
        apply_filters([1], specs, {'min': '-1'})
    assert parse_bool('Yes') is True and parse_bool('0') is False


def test_ticket_list_filters(client, app_instance):
    with app_instance.app_context():
        engineer, headers = seed_user('field_engineer', 'flt')
    low = create_ticket(client, headers, title='Low one', priority='low', type='inspection')
    late = create_ticket(client, headers, title='Late one', priority='critical', due_date='2020-01-01T00:00:00Z')
    done = create_ticket(client, headers, title='Done one', due_date='2020-01-01T00:00:00Z')
    client.post(f"/tickets/{done['id']}/status", json={'status': 'resolved'}, headers=headers)

    def ids(query):
        resp = client.get(f'/tickets?{query}', headers=headers)
        assert resp.status_code == 200, resp.get_json()
        return {t['id'] for t in resp.get_json()['data']}

    assert ids('priority=low') == {low['id']}
    assert ids('type=inspection') == {low['id']}
    assert ids('status=resolved') == {done['id']}
    assert ids('overdue=true') == {late['id']}
    assert ids('overdue=false') == {low['id'], done['id']}
    assert ids(f'assigned_to={engineer.id}') == set()

    assert_error(client.get('/tickets?status=archived', headers=headers), 400, 'status invalid')
    assert_error(client.get('/tickets?overdue=maybe', headers=headers), 400)
