from datetime import datetime, timedelta, timezone

from fieldservice.lifecycle.fixtures import DemoFixtures
from fieldservice.lifecycle.stats import dashboard_stats, user_stats
from tests.test_lifecycle_helpers import seed_user, create_ticket

NOW = datetime(2024, 1, 16, 12, 0, tzinfo=timezone.utc)


def test_user_stats_over_demo_fixtures():
    seed = DemoFixtures().seed()
    stats = user_stats(seed.tickets, seed.activities, '3', actor='Field Engineer')
    assert stats['total_tickets'] == 3
    assert stats['completed_tickets'] == 1
    # TKT-003: created 01-10 14:00, resolved 01-12 15:00
    assert stats['avg_resolution_hours'] == 49.0
    assert stats['last_activity'] == '2024-01-15T08:15:00+00:00'

    supervisor = user_stats(seed.tickets, seed.activities, '2')
    assert supervisor == {'total_tickets': 1, 'completed_tickets': 0, 'avg_resolution_hours': 0.0, 'last_activity': None}


def test_dashboard_stats_counts_overdue():
    seed = DemoFixtures().seed()
    stats = dashboard_stats(seed.tickets, NOW)
    assert stats['total_tickets'] == 3
    assert stats['by_status']['open'] == 1
    assert stats['by_status']['in_progress'] == 1
    assert stats['by_status']['resolved'] == 1
    assert stats['by_status']['closed'] == 0
    assert stats['by_priority']['high'] == 2
    # TKT-002 due 01-16 15:00 is not yet late; TKT-003 is resolved
    assert stats['overdue_tickets'] == 0
    assert dashboard_stats(seed.tickets, NOW + timedelta(days=2))['overdue_tickets'] == 2


def test_stats_endpoints(client, app_instance):
    with app_instance.app_context():
        _, headers = seed_user('field_engineer', 'stat')
    t = create_ticket(client, headers)
    create_ticket(client, headers, priority='low')
    client.post(f"/tickets/{t['id']}/status", json={'status': 'closed'}, headers=headers)

    mine = client.get('/stats/me', headers=headers)
    assert mine.status_code == 200
    data = mine.get_json()['data']
    assert data['total_tickets'] == 2
    assert data['completed_tickets'] == 1
    assert data['last_activity'] is not None

    dash = client.get('/stats/dashboard', headers=headers).get_json()['data']
    assert dash['total_tickets'] == 2
    assert dash['by_status']['closed'] == 1
    assert dash['by_priority'] == {'low': 1, 'medium': 0, 'high': 1, 'critical': 0}
