"""Derived views over a ticket collection. Pure functions, no side effects."""
from __future__ import annotations
from datetime import datetime
from typing import Iterable, List, Optional

from fieldservice.lifecycle.errors import ValidationError
from fieldservice.lifecycle.records import (
    Activity, Ticket, PRIORITY_RANK, COMPLETED_STATUSES, ROLE_ADMIN,
)
from fieldservice.utils.sorting import apply_multi_sort

SORT_KEYS = {
    'created': lambda t: t.created_at,
    'updated': lambda t: t.updated_at,
    'priority': lambda t: PRIORITY_RANK.get(t.priority, 0),
}


def is_visible(ticket: Ticket, role: Optional[str], user_id: Optional[str]) -> bool:
    if role == ROLE_ADMIN:
        return True
    if user_id is None:
        return False
    return ticket.created_by == user_id or ticket.assigned_to == user_id


def visible_to(tickets: Iterable[Ticket], role: Optional[str], user_id: Optional[str]) -> List[Ticket]:
    return [t for t in tickets if is_visible(t, role, user_id)]


def by_status(tickets: Iterable[Ticket], status: str) -> List[Ticket]:
    return [t for t in tickets if t.status == status]


def by_priority(tickets: Iterable[Ticket], priority: str) -> List[Ticket]:
    return [t for t in tickets if t.priority == priority]


def is_overdue(ticket: Ticket, now: datetime) -> bool:
    return ticket.due_date is not None and ticket.due_date < now and ticket.status not in COMPLETED_STATUSES


def overdue(tickets: Iterable[Ticket], now: datetime) -> List[Ticket]:
    return [t for t in tickets if is_overdue(t, now)]


def sorted_by(tickets: Iterable[Ticket], key: str) -> List[Ticket]:
    """Descending by created/updated timestamp or by priority rank; ties keep collection order."""
    if key not in SORT_KEYS:
        raise ValidationError(f'Invalid sort field {key}')
    return apply_multi_sort(tickets, f'-{key}', SORT_KEYS, tie_breaker=lambda t: 0)


def newest_first(tickets: Iterable[Ticket]) -> List[Ticket]:
    return sorted_by(tickets, 'created')


def activities_for(activities: Iterable[Activity], ticket_id: str) -> List[Activity]:
    return sorted((a for a in activities if a.ticket_id == ticket_id), key=lambda a: a.timestamp, reverse=True)
