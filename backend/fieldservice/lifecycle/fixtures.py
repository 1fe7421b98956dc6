"""Fixture providers used when no durable data exists yet.

A provider is anything with ``seed() -> FixtureSet``. Stores receive one
explicitly, so tests can substitute fixtures without touching module state.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List

from fieldservice.lifecycle.records import Activity, Ticket, UserProfile


@dataclass
class FixtureSet:
    tickets: List[Ticket] = field(default_factory=list)
    activities: List[Activity] = field(default_factory=list)


class FixtureProvider:
    def seed(self) -> FixtureSet:
        raise NotImplementedError


class EmptyFixtures(FixtureProvider):
    def seed(self) -> FixtureSet:
        return FixtureSet()


class StaticFixtures(FixtureProvider):
    def __init__(self, tickets=(), activities=()):
        self.tickets = list(tickets)
        self.activities = list(activities)

    def seed(self) -> FixtureSet:
        return FixtureSet(list(self.tickets), list(self.activities))


def _at(raw: str) -> datetime:
    return datetime.fromisoformat(raw).replace(tzinfo=timezone.utc)


DEMO_PROFILES = [
    UserProfile(id='1', email='admin@test.com', full_name='Admin User', role='admin'),
    UserProfile(id='2', email='supervisor@test.com', full_name='Supervisor User', role='supervisor'),
    UserProfile(id='3', email='engineer@test.com', full_name='Field Engineer', role='field_engineer'),
]


class DemoFixtures(FixtureProvider):
    """Three tickets across the demo admin, supervisor and field engineer."""

    def seed(self) -> FixtureSet:
        tickets = [
            Ticket(
                id='1', ticket_number='TKT-001', title='Air Conditioning Unit Repair',
                description='HVAC unit in Building A is not cooling properly.',
                type='maintenance', priority='high', status='open',
                created_by='1', assigned_to='3', equipment_id='1', equipment_name='HVAC Unit A-2',
                location='Building A - Floor 2',
                created_at=_at('2024-01-15T09:00:00'), updated_at=_at('2024-01-15T09:00:00'),
                assigned_at=_at('2024-01-15T09:00:00'), due_date=_at('2024-01-17T17:00:00'),
                estimated_hours=4, actual_hours=0,
            ),
            Ticket(
                id='2', ticket_number='TKT-002', title='Elevator Inspection',
                description='Monthly safety inspection for elevator in Building B',
                type='inspection', priority='medium', status='in_progress',
                created_by='2', assigned_to='3', equipment_id='2', equipment_name='Elevator B-1',
                location='Building B - Lobby',
                created_at=_at('2024-01-14T10:30:00'), updated_at=_at('2024-01-15T08:30:00'),
                assigned_at=_at('2024-01-14T11:00:00'), due_date=_at('2024-01-16T15:00:00'),
                estimated_hours=2, actual_hours=1.5,
            ),
            Ticket(
                id='3', ticket_number='TKT-003', title='Fire Safety System Check',
                description='Quarterly fire safety system inspection and testing',
                type='inspection', priority='high', status='resolved',
                created_by='1', assigned_to='3', equipment_id='3', equipment_name='Fire Safety System C',
                location='Building C - All Floors',
                created_at=_at('2024-01-10T14:00:00'), updated_at=_at('2024-01-12T16:30:00'),
                assigned_at=_at('2024-01-10T14:30:00'), resolved_at=_at('2024-01-12T15:00:00'),
                due_date=_at('2024-01-15T17:00:00'), estimated_hours=6, actual_hours=5.5,
            ),
        ]
        activities = [
            Activity(id='1', ticket_id='2', type='status_change', description='Status changed from open to in_progress',
                     performed_by='Field Engineer', timestamp=_at('2024-01-15T08:00:00')),
            Activity(id='2', ticket_id='2', type='comment',
                     description='Started inspection. Elevator taken out of service for the morning.',
                     performed_by='Field Engineer', timestamp=_at('2024-01-15T08:15:00')),
            Activity(id='3', ticket_id='3', type='status_change', description='Status changed from in_progress to resolved',
                     performed_by='Field Engineer', timestamp=_at('2024-01-12T15:00:00')),
        ]
        return FixtureSet(tickets, activities)
