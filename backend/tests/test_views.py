from datetime import datetime, timedelta, timezone
import pytest

from fieldservice.lifecycle import views
from fieldservice.lifecycle.errors import ValidationError
from fieldservice.lifecycle.records import Activity, Ticket

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def _t(tid, created_by, assigned_to=None, priority='medium', status='open', hours_ago=0, due=None):
    at = NOW - timedelta(hours=hours_ago)
    return Ticket(id=tid, title=f'T{tid}', location='Site', created_by=created_by, assigned_to=assigned_to,
                  priority=priority, status=status, created_at=at, updated_at=at, due_date=due)


@pytest.fixture()
def five_tickets():
    # three users: alice, bob, carol
    return [
        _t('1', 'alice', hours_ago=5),
        _t('2', 'bob', assigned_to='alice', hours_ago=4),
        _t('3', 'bob', hours_ago=3),
        _t('4', 'carol', assigned_to='bob', hours_ago=2),
        _t('5', 'carol', hours_ago=1),
    ]


def test_visible_to_field_engineer(five_tickets):
    assert [t.id for t in views.visible_to(five_tickets, 'field_engineer', 'alice')] == ['1', '2']
    assert [t.id for t in views.visible_to(five_tickets, 'field_engineer', 'bob')] == ['2', '3', '4']
    assert [t.id for t in views.visible_to(five_tickets, 'supervisor', 'carol')] == ['4', '5']


def test_visible_to_admin_sees_all(five_tickets):
    assert views.visible_to(five_tickets, 'admin', 'alice') == five_tickets


def test_visible_to_without_user_is_empty(five_tickets):
    assert views.visible_to(five_tickets, 'field_engineer', None) == []


def test_sorted_by_priority():
    tickets = [_t('1', 'a', priority='low'), _t('2', 'a', priority='critical'),
               _t('3', 'a', priority='medium'), _t('4', 'a', priority='high')]
    assert [t.priority for t in views.sorted_by(tickets, 'priority')] == ['critical', 'high', 'medium', 'low']


def test_sorted_by_created_and_updated(five_tickets):
    assert [t.id for t in views.sorted_by(five_tickets, 'created')] == ['5', '4', '3', '2', '1']
    assert [t.id for t in views.newest_first(five_tickets)] == ['5', '4', '3', '2', '1']
    with pytest.raises(ValidationError):
        views.sorted_by(five_tickets, 'title')


def test_overdue_excludes_completed():
    past = NOW - timedelta(days=1)
    tickets = [
        _t('1', 'a', due=past),
        _t('2', 'a', status='resolved', due=past),
        _t('3', 'a', status='closed', due=past),
        _t('4', 'a', due=NOW + timedelta(days=1)),
        _t('5', 'a'),
    ]
    assert [t.id for t in views.overdue(tickets, NOW)] == ['1']


def test_filters_by_status_and_priority(five_tickets):
    tickets = five_tickets + [_t('6', 'a', status='resolved', priority='high')]
    assert [t.id for t in views.by_status(tickets, 'resolved')] == ['6']
    assert [t.id for t in views.by_priority(tickets, 'high')] == ['6']


def test_activities_newest_first():
    acts = [
        Activity(id='a', ticket_id='1', type='comment', description='x', performed_by='u', timestamp=NOW),
        Activity(id='b', ticket_id='1', type='comment', description='y', performed_by='u', timestamp=NOW + timedelta(minutes=5)),
        Activity(id='c', ticket_id='2', type='comment', description='z', performed_by='u', timestamp=NOW),
    ]
    assert [a.id for a in views.activities_for(acts, '1')] == ['b', 'a']
    assert views.activities_for(acts, '9') == []
