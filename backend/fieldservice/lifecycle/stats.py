from __future__ import annotations
from datetime import datetime
from typing import Any, Dict, Iterable, Optional

from fieldservice.lifecycle.records import (
    Activity, Ticket, ALL_STATUSES, ALL_PRIORITIES, COMPLETED_STATUSES,
)
from fieldservice.lifecycle.views import is_overdue


def user_stats(tickets: Iterable[Ticket], activities: Iterable[Activity], user_id: str, actor: Optional[str] = None) -> Dict[str, Any]:
    """Workload summary for tickets a user created or is assigned to.

    avg_resolution_hours averages created_at -> resolved_at over resolved tickets.
    last_activity is the newest activity performed by the user (matched on id or
    display name), or None.
    """
    mine = [t for t in tickets if user_id in (t.created_by, t.assigned_to)]
    completed = [t for t in mine if t.status in COMPLETED_STATUSES]
    resolved = [t for t in mine if t.resolved_at is not None]
    avg_hours = 0.0
    if resolved:
        total = sum((t.resolved_at - t.created_at).total_seconds() for t in resolved)
        avg_hours = round(total / len(resolved) / 3600, 2)
    performers = {user_id, actor} - {None}
    stamps = [a.timestamp for a in activities if a.performed_by in performers]
    return {
        'total_tickets': len(mine),
        'completed_tickets': len(completed),
        'avg_resolution_hours': avg_hours,
        'last_activity': max(stamps).isoformat() if stamps else None,
    }


def dashboard_stats(tickets: Iterable[Ticket], now: datetime) -> Dict[str, Any]:
    rows = list(tickets)
    by_status = {s: 0 for s in ALL_STATUSES}
    by_priority = {p: 0 for p in ALL_PRIORITIES}
    for t in rows:
        by_status[t.status] = by_status.get(t.status, 0) + 1
        by_priority[t.priority] = by_priority.get(t.priority, 0) + 1
    return {
        'total_tickets': len(rows),
        'by_status': by_status,
        'by_priority': by_priority,
        'overdue_tickets': sum(1 for t in rows if is_overdue(t, now)),
    }
