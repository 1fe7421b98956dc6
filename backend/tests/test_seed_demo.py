import os, sys
from sqlalchemy import create_engine, select, func
from sqlalchemy.orm import Session

from fieldservice import get_db
from fieldservice.lifecycle.fixtures import DEMO_PROFILES, DemoFixtures
from fieldservice.models.base import Base
from fieldservice.models.profile import ProfileModel
from fieldservice.models.ticket import ActivityModel, TicketModel

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'scripts')))
import seed_demo  # noqa: E402

DEMO_EMAILS = [p.email for p in DEMO_PROFILES]


def test_profiles_are_seeded_once(app_instance):
    with app_instance.app_context():
        session = get_db()
        before = session.execute(select(func.count()).select_from(ProfileModel).where(ProfileModel.email.in_(DEMO_EMAILS))).scalar_one()
        first = seed_demo.ensure_profiles(session)
        session.commit()
        again = seed_demo.ensure_profiles(session)
        session.commit()
        admin = session.execute(select(ProfileModel).where(ProfileModel.email == 'admin@test.com')).scalar_one()
    assert first == 3 - before
    assert again == 0
    assert admin.role == 'admin'
    assert admin.verify_password('admin123')


def test_demo_profile_can_log_in(client, app_instance):
    with app_instance.app_context():
        session = get_db()
        seed_demo.ensure_profiles(session)
        session.commit()
    resp = client.post('/auth/login', json={'email': 'engineer@test.com', 'password': 'engineer123'})
    assert resp.status_code == 200
    me = client.get('/auth/me', headers={'Authorization': f"Bearer {resp.get_json()['access_token']}"}).get_json()
    assert me['role'] == 'field_engineer'


def test_tickets_only_seed_empty_table():
    engine = create_engine('sqlite+pysqlite:///:memory:', future=True)
    Base.metadata.create_all(engine)
    with Session(engine) as session:
        assert seed_demo.ensure_tickets(session, DemoFixtures()) == 3
        session.commit()
        assert seed_demo.ensure_tickets(session, DemoFixtures()) == 0
        numbers = session.execute(select(TicketModel.ticket_number).order_by(TicketModel.ticket_number)).scalars().all()
        assert numbers == ['TKT-001', 'TKT-002', 'TKT-003']
        assert session.execute(select(func.count()).select_from(ActivityModel)).scalar_one() == 3


def test_parse_args_flags():
    args = seed_demo.parse_args(['--with-tickets', '--dry-run'])
    assert args.with_tickets and args.dry_run and not args.show
