#!/usr/bin/env python
"""Idempotent seed script for demo profiles & tickets.

Usage:
    python backend/scripts/seed_demo.py                  # profiles only
    python backend/scripts/seed_demo.py --with-tickets   # profiles + demo tickets (when none exist)
    python backend/scripts/seed_demo.py --dry-run        # run logic then rollback (no DB changes)
    python backend/scripts/seed_demo.py --show           # print profiles after seeding
"""
from __future__ import annotations
import os, sys, argparse, textwrap
from typing import Dict, Iterable
from sqlalchemy import select, func

# Allow running from repo root
sys.path.append(os.path.abspath('backend'))

from fieldservice import create_app, get_db  # type: ignore
from fieldservice.lifecycle.fixtures import DEMO_PROFILES, DemoFixtures, FixtureProvider
from fieldservice.lifecycle.records import UserProfile
from fieldservice.models.base import Base
from fieldservice.models.profile import ProfileModel
from fieldservice.models.ticket import TicketModel, ActivityModel

DEMO_PASSWORDS: Dict[str, str] = {
    'admin@test.com': 'admin123',
    'supervisor@test.com': 'supervisor123',
    'engineer@test.com': 'engineer123',
}


def ensure_profiles(session, profiles: Iterable[UserProfile] = DEMO_PROFILES, passwords: Dict[str, str] = DEMO_PASSWORDS) -> int:
    """Create missing profiles; existing rows (matched by email) are left untouched."""
    existing = {p.email for p in session.execute(select(ProfileModel)).scalars()}
    created = 0
    for profile in profiles:
        if profile.email in existing:
            continue
        row = ProfileModel(id=profile.id, email=profile.email, full_name=profile.full_name,
                           role=profile.role, is_active=profile.is_active)
        row.set_password(passwords.get(profile.email, 'ChangeMe123!'))
        session.add(row)
        created += 1
    session.flush()
    return created


def ensure_tickets(session, fixtures: FixtureProvider) -> int:
    """Insert fixture tickets and activities, only into an empty tickets table."""
    if session.execute(select(func.count(TicketModel.id))).scalar_one():
        return 0
    seed = fixtures.seed()
    for ticket in seed.tickets:
        session.add(TicketModel().apply_record(ticket))
    session.flush()
    for activity in seed.activities:
        session.add(ActivityModel.from_record(activity))
    session.flush()
    return len(seed.tickets)


def print_profiles(session):
    rows = session.execute(select(ProfileModel).order_by(ProfileModel.id)).scalars().all()
    if not rows:
        print("[INFO] No profiles present.")
        return
    email_w = max(len(r.email) for r in rows)
    print(f"{'Email'.ljust(email_w)} | Role           | Active")
    print('-' * (email_w + 30))
    for r in rows:
        print(f"{r.email.ljust(email_w)} | {r.role.ljust(14)} | {'yes' if r.is_active else 'no'}")


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        description="Seed demo profiles & tickets",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""Examples:\n  seed profiles: seed_demo.py\n  with tickets: seed_demo.py --with-tickets\n  dry run: seed_demo.py --dry-run\n""")
    )
    p.add_argument('--with-tickets', action='store_true', help='Also insert demo tickets when the tickets table is empty')
    p.add_argument('--dry-run', action='store_true', help='Rollback after operations (no commit)')
    p.add_argument('--show', action='store_true', help='Print profiles after seeding')
    return p.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    app = create_app()
    with app.app_context():
        session = get_db()
        # bootstrap schema when migrations have not been run; prefer alembic upgrade
        Base.metadata.create_all(session.get_bind(), checkfirst=True)
        created_p = ensure_profiles(session)
        created_t = ensure_tickets(session, DemoFixtures()) if args.with_tickets else 0
        if args.show:
            print_profiles(session)
        if args.dry_run:
            session.rollback()
            print(f"[DRY-RUN] (rolled back) Profiles would create: {created_p}, Tickets would create: {created_t}")
        else:
            session.commit()
            print(f"[DONE] Profiles created: {created_p}, Tickets created: {created_t}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
