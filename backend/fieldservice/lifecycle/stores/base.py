"""Durable store contract shared by the local JSON and SQL backends.

Subclasses implement the blocking ``_``-prefixed methods; the public
coroutines run them in a worker thread and publish a change event once the
write is durable. Blocking methods raise ``PersistenceError`` (write failed),
``LoadError`` (read failed or malformed data) or ``NotFoundError``.
"""
from __future__ import annotations
import asyncio
from typing import Callable, Iterable, List, Optional

from fieldservice.lifecycle.feed import ChangeEvent, ChangeFeed, Subscription, INSERT, UPDATE, DELETE, RECONNECT
from fieldservice.lifecycle.records import Activity, Notification, Ticket, TicketMedia, ROLE_ADMIN

TICKETS = 'tickets'


def _audience(*tickets: Optional[Ticket]) -> frozenset:
    ids = set()
    for t in tickets:
        if t is None:
            continue
        ids.update(i for i in (t.created_by, t.assigned_to) if i)
    return frozenset(ids)


class TicketStore:
    def __init__(self, feed: Optional[ChangeFeed] = None):
        self.feed = feed or ChangeFeed()

    # ---------- change feed ---------- #

    def subscribe(self, callback: Callable[[ChangeEvent], None], role: Optional[str], user_id: Optional[str]) -> Subscription:
        """Subscribe to ticket changes the caller is allowed to see."""
        predicate = None
        if role != ROLE_ADMIN:
            predicate = lambda e: e.kind == RECONNECT or (user_id is not None and user_id in e.audience)
        return self.feed.subscribe(TICKETS, callback, predicate)

    def _publish(self, kind: str, ticket_id: str, audience: frozenset):
        self.feed.publish(ChangeEvent(resource=TICKETS, kind=kind, ticket_id=ticket_id, audience=audience))

    # ---------- reads ---------- #

    async def fetch_tickets(self, role: Optional[str], user_id: Optional[str]) -> List[Ticket]:
        """Tickets visible to the caller, newest-created first."""
        return await asyncio.to_thread(self._fetch_tickets, role, user_id)

    async def fetch_activities(self, ticket_ids: Iterable[str]) -> List[Activity]:
        return await asyncio.to_thread(self._fetch_activities, list(ticket_ids))

    async def fetch_media(self, ticket_id: str) -> List[TicketMedia]:
        return await asyncio.to_thread(self._fetch_media, ticket_id)

    async def fetch_notifications(self, user_id: str, limit: int = 50) -> List[Notification]:
        return await asyncio.to_thread(self._fetch_notifications, user_id, limit)

    # ---------- writes ---------- #

    async def insert_ticket(self, ticket: Ticket, activity: Activity) -> Ticket:
        """Insert ticket and its creation activity together; returns the stored ticket."""
        stored = await asyncio.to_thread(self._insert_ticket, ticket, activity)
        self._publish(INSERT, stored.id, _audience(stored))
        return stored

    async def update_ticket(self, ticket: Ticket, activity: Optional[Activity] = None,
                            notification: Optional[Notification] = None) -> Ticket:
        previous = await asyncio.to_thread(self._update_ticket, ticket, activity, notification)
        self._publish(UPDATE, ticket.id, _audience(ticket, previous))
        return ticket

    async def insert_activity(self, activity: Activity) -> Activity:
        await asyncio.to_thread(self._insert_activity, activity)
        return activity

    async def insert_media(self, media: TicketMedia, activity: Activity) -> TicketMedia:
        await asyncio.to_thread(self._insert_media, media, activity)
        return media

    async def delete_ticket(self, ticket_id: str) -> bool:
        """Delete a ticket and everything hanging off it. False when already absent."""
        deleted = await asyncio.to_thread(self._delete_ticket, ticket_id)
        if deleted is None:
            return False
        self._publish(DELETE, ticket_id, _audience(deleted))
        return True

    # ---------- backend hooks ---------- #

    def _fetch_tickets(self, role, user_id) -> List[Ticket]:
        raise NotImplementedError

    def _fetch_activities(self, ticket_ids: List[str]) -> List[Activity]:
        raise NotImplementedError

    def _fetch_media(self, ticket_id: str) -> List[TicketMedia]:
        raise NotImplementedError

    def _fetch_notifications(self, user_id: str, limit: int) -> List[Notification]:
        raise NotImplementedError

    def _insert_ticket(self, ticket: Ticket, activity: Activity) -> Ticket:
        raise NotImplementedError

    def _update_ticket(self, ticket: Ticket, activity, notification) -> Ticket:
        """Persist the new version; return the version it replaced."""
        raise NotImplementedError

    def _insert_activity(self, activity: Activity):
        raise NotImplementedError

    def _insert_media(self, media: TicketMedia, activity: Activity):
        raise NotImplementedError

    def _delete_ticket(self, ticket_id: str) -> Optional[Ticket]:
        """Return the deleted ticket, or None if it did not exist."""
        raise NotImplementedError


def format_ticket_number(seq: int) -> str:
    return f"TKT-{seq:03d}"


def next_ticket_seq(numbers: Iterable[Optional[str]]) -> int:
    """One past the highest numeric suffix among existing ticket numbers."""
    highest = 0
    for number in numbers:
        suffix = (number or '').rpartition('-')[2]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return highest + 1
