"""Ticket lifecycle manager.

One instance per signed-in session. It owns the in-memory, newest-first
ticket collection and the activity trail for the tickets the session can
see, applies mutations optimistically, persists them through a
``TicketStore`` and rolls the local change back when the write fails.

Typical use::

    async with TicketManager(store, identity) as manager:
        await manager.load_all()
        ticket = await manager.create({'title': 'Pump leak', 'location': 'Plant 2'})
        await manager.change_status(ticket.id, 'resolved')

Leaving the ``async with`` block releases the live subscription.
"""
from __future__ import annotations
import asyncio
import logging
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from fieldservice.lifecycle import stats, views
from fieldservice.lifecycle.errors import (
    AuthenticationError, LifecycleError, LoadError, NotFoundError, PersistenceError,
)
from fieldservice.lifecycle.feed import ChangeEvent, Subscription, RECONNECT
from fieldservice.lifecycle.notifier import Notifier, LoggingNotifier
from fieldservice.lifecycle.records import (
    Activity, Identity, Notification, Ticket, TicketMedia, TicketPatch,
    ACTIVITY_ASSIGNMENT, ACTIVITY_COMMENT, ACTIVITY_MEDIA_UPLOAD, ACTIVITY_STATUS_CHANGE,
    ALL_STATUSES, STATUS_IN_PROGRESS, STATUS_OPEN,
    build_ticket, derive_timestamps, new_id, utcnow,
)
from fieldservice.lifecycle.stores.base import TicketStore
from fieldservice.lifecycle.transitions import status_guard as build_status_guard
from fieldservice.utils.fsm import TransitionValidator
from fieldservice.utils.validation import require_text, optional_text, validate_status

log = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.25


class TicketManager:
    def __init__(
        self,
        store: TicketStore,
        identity: Identity,
        *,
        notifier: Optional[Notifier] = None,
        clock: Callable[[], datetime] = utcnow,
        status_guard: Optional[TransitionValidator] = None,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
    ):
        self.store = store
        self.identity = identity
        self.notifier = notifier or LoggingNotifier()
        self.clock = clock
        self.status_guard = status_guard or build_status_guard()
        self.debounce_seconds = debounce_seconds
        self._tickets: List[Ticket] = []
        self._activities: List[Activity] = []
        self._subscription: Optional[Subscription] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._reload_task: Optional[asyncio.Task] = None
        self._dirty = False
        self._immediate = False
        self._writes_in_flight = 0
        self._write_generation = 0

    # ---------- scope ---------- #

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.close()

    async def close(self):
        """Release the live subscription and cancel any pending background reload."""
        if self._subscription is not None:
            self._subscription.release()
            self._subscription = None
        task, self._reload_task = self._reload_task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    @property
    def subscribed(self) -> bool:
        return self._subscription is not None and self._subscription.active

    # ---------- state ---------- #

    @property
    def tickets(self) -> List[Ticket]:
        return list(self._tickets)

    @property
    def activities(self) -> List[Activity]:
        return list(self._activities)

    def get(self, ticket_id: str) -> Ticket:
        for t in self._tickets:
            if t.id == ticket_id:
                return t
        raise NotFoundError(f'ticket {ticket_id} not found')

    def get_ticket_activities(self, ticket_id: str) -> List[Activity]:
        return views.activities_for(self._activities, ticket_id)

    # ---------- loading ---------- #

    async def load_all(self) -> List[Ticket]:
        """Load every ticket the session may see and start following remote changes."""
        if not self.identity.authenticated:
            self._tickets, self._activities = [], []
            return []
        self._ensure_subscribed()
        try:
            await self._reload()
        except LoadError as e:
            log.warning('ticket load failed, keeping %d cached tickets: %s', len(self._tickets), e.detail)
            self.notifier.warning('Offline', 'Could not refresh tickets; showing last known data')
            raise
        return self.tickets

    async def _reload(self) -> bool:
        role, user_id = self.identity.role, self.identity.user_id
        generation = self._write_generation
        fetched = await self.store.fetch_tickets(role, user_id)
        # the store filters too; cached or offline data must not leak
        tickets = views.newest_first(views.visible_to(fetched, role, user_id))
        activities = await self.store.fetch_activities(t.id for t in tickets)
        if self._writes_in_flight or generation != self._write_generation:
            # a local write overlapped the fetch, so the snapshot may predate it
            self._invalidate()
            return False
        self._tickets, self._activities = tickets, list(activities)
        return True

    def _ensure_subscribed(self):
        if self.subscribed:
            return
        self._loop = asyncio.get_running_loop()
        self._subscription = self.store.subscribe(self._on_change, self.identity.role, self.identity.user_id)

    def _on_change(self, event: ChangeEvent):
        # may run on a foreign thread
        loop = self._loop
        if loop is None or loop.is_closed() or not self.subscribed:
            return
        loop.call_soon_threadsafe(self._invalidate, event.kind == RECONNECT)

    def _invalidate(self, immediate: bool = False):
        if not self.subscribed:
            return
        self._dirty = True
        self._immediate = self._immediate or immediate
        if self._reload_task is None or self._reload_task.done():
            self._reload_task = asyncio.get_running_loop().create_task(self._background_reload())

    async def _background_reload(self):
        while self._dirty:
            if not self._immediate:
                await asyncio.sleep(self.debounce_seconds)
            self._dirty = False
            self._immediate = False
            try:
                await self._reload()
            except LoadError as e:
                log.warning('background ticket refresh failed: %s', e.detail)

    async def drain(self):
        """Wait until no background reload is pending."""
        while self._reload_task is not None and not self._reload_task.done():
            await asyncio.shield(self._reload_task)

    # ---------- mutations ---------- #

    async def create(self, data: Mapping[str, Any]) -> Ticket:
        with self._reporting('Create failed'):
            self._require_auth()
            now = self.clock()
            ticket = build_ticket(data, created_by=self.identity.user_id, now=now)
            activity = self._activity(ticket.id, ACTIVITY_COMMENT, f'New {ticket.type} ticket created: {ticket.title}', now)
            self._tickets.insert(0, ticket)
            self._activities.append(activity)
            try:
                with self._writing():
                    stored = await self.store.insert_ticket(ticket, activity)
            except PersistenceError:
                self._forget(ticket.id)
                raise
            self._upsert(stored, activity)
        log.info('ticket %s created by %s', stored.id, self.identity.user_id)
        self.notifier.success('Success', 'Ticket created successfully')
        return stored

    async def update(self, ticket_id: str, changes: Union[TicketPatch, Mapping[str, Any]]) -> Ticket:
        with self._reporting('Update failed'):
            self._require_auth()
            patch = changes.validated() if isinstance(changes, TicketPatch) else TicketPatch.from_mapping(changes)
            current = self.get(ticket_id)
            if 'status' in patch.changes() and patch.status != current.status:
                self.status_guard.assert_can_transition(current.status, patch.status)
            ticket = derive_timestamps(patch.apply(current), self.clock(), self.identity.user_id)
            ticket = await self._commit(current, ticket)
        self.notifier.success('Success', 'Ticket updated successfully')
        return ticket

    async def change_status(self, ticket_id: str, new_status: str) -> Ticket:
        with self._reporting('Status update failed'):
            self._require_auth()
            validate_status(new_status, ALL_STATUSES)
            current = self.get(ticket_id)
            if new_status != current.status:
                self.status_guard.assert_can_transition(current.status, new_status)
            now = self.clock()
            ticket = derive_timestamps(replace(current, status=new_status), now, self.identity.user_id)
            activity = self._activity(ticket_id, ACTIVITY_STATUS_CHANGE, f'Status changed from {current.status} to {new_status}', now)
            ticket = await self._commit(current, ticket, activity)
        log.info('ticket %s status %s -> %s', ticket_id, current.status, new_status)
        self.notifier.success('Status Updated', f"Ticket status changed to {new_status.replace('_', ' ')}")
        return ticket

    async def assign(self, ticket_id: str, assignee: Optional[str]) -> Ticket:
        with self._reporting('Assignment failed'):
            self._require_auth()
            assignee = optional_text(assignee, 'assigned_to')
            assignee = assignee.strip() if assignee else None
            current = self.get(ticket_id)
            now = self.clock()
            notification = None
            if assignee:
                status = STATUS_IN_PROGRESS if current.status == STATUS_OPEN else current.status
                description = f'Ticket assigned to {assignee}'
                if assignee != self.identity.user_id:
                    notification = Notification(
                        id=new_id(), user_id=assignee, ticket_id=ticket_id, created_at=now,
                        title='Ticket assigned', message=f'{current.title} has been assigned to you',
                    )
            else:
                status = STATUS_OPEN
                description = 'Ticket unassigned'
            if status != current.status:
                self.status_guard.assert_can_transition(current.status, status)
            ticket = derive_timestamps(replace(current, assigned_to=assignee, status=status), now, self.identity.user_id)
            activity = self._activity(ticket_id, ACTIVITY_ASSIGNMENT, description, now)
            ticket = await self._commit(current, ticket, activity, notification)
        self.notifier.success('Ticket Assigned' if assignee else 'Ticket Unassigned', description)
        return ticket

    async def add_comment(self, ticket_id: str, text: str) -> Activity:
        """Append a comment. Comments never touch the ticket's updated_at."""
        with self._reporting('Note not added'):
            self._require_auth()
            text = require_text(text, 'comment')
            self.get(ticket_id)
            activity = self._activity(ticket_id, ACTIVITY_COMMENT, text, self.clock())
            await self._append_activity(activity, self.store.insert_activity(activity))
        self.notifier.success('Note Added', 'Your note has been added to the ticket')
        return activity

    async def add_media(self, ticket_id: str, file_name: str, url: str, content_type: Optional[str] = None) -> TicketMedia:
        with self._reporting('Upload failed'):
            self._require_auth()
            file_name = require_text(file_name, 'file_name')
            url = require_text(url, 'url')
            content_type = optional_text(content_type, 'content_type')
            self.get(ticket_id)
            now = self.clock()
            media = TicketMedia(id=new_id(), ticket_id=ticket_id, file_name=file_name, url=url,
                                uploaded_by=self.identity.user_id, created_at=now, content_type=content_type)
            activity = self._activity(ticket_id, ACTIVITY_MEDIA_UPLOAD, f'Uploaded {file_name}', now)
            await self._append_activity(activity, self.store.insert_media(media, activity))
        self.notifier.success('Media Uploaded', f'{file_name} attached to the ticket')
        return media

    async def delete(self, ticket_id: str) -> bool:
        """Delete a ticket with its activities. Deleting an absent ticket only warns."""
        with self._reporting('Delete failed'):
            self._require_auth()
            index = next((i for i, t in enumerate(self._tickets) if t.id == ticket_id), None)
            if index is None:
                self._warn_already_deleted(ticket_id)
                return False
            ticket = self._tickets.pop(index)
            kept, removed = [], []
            for a in self._activities:
                (removed if a.ticket_id == ticket_id else kept).append(a)
            self._activities = kept
            try:
                with self._writing():
                    existed = await self.store.delete_ticket(ticket_id)
            except PersistenceError:
                self._tickets.insert(min(index, len(self._tickets)), ticket)
                self._activities.extend(removed)
                raise
        if not existed:
            self._warn_already_deleted(ticket_id)
            return False
        log.info('ticket %s deleted by %s', ticket_id, self.identity.user_id)
        self.notifier.success('Ticket Deleted', 'The ticket has been permanently deleted')
        return True

    # ---------- remote reads ---------- #

    async def get_ticket_media(self, ticket_id: str) -> List[TicketMedia]:
        self.get(ticket_id)
        return await self.store.fetch_media(ticket_id)

    async def get_notifications(self, limit: int = 50) -> List[Notification]:
        if not self.identity.authenticated:
            return []
        return await self.store.fetch_notifications(self.identity.user_id, limit)

    # ---------- derived views ---------- #

    def visible_to(self, role: Optional[str], user_id: Optional[str]) -> List[Ticket]:
        return views.visible_to(self._tickets, role, user_id)

    def by_status(self, status: str) -> List[Ticket]:
        return views.by_status(self._tickets, status)

    def by_priority(self, priority: str) -> List[Ticket]:
        return views.by_priority(self._tickets, priority)

    def overdue(self, now: Optional[datetime] = None) -> List[Ticket]:
        return views.overdue(self._tickets, now or self.clock())

    def sorted_by(self, key: str) -> List[Ticket]:
        return views.sorted_by(self._tickets, key)

    def user_stats(self) -> Dict[str, Any]:
        return stats.user_stats(self._tickets, self._activities, self.identity.user_id, self.identity.actor)

    def dashboard_stats(self) -> Dict[str, Any]:
        return stats.dashboard_stats(self._tickets, self.clock())

    # ---------- internals ---------- #

    def _require_auth(self):
        if not self.identity.authenticated:
            raise AuthenticationError('an active signed-in profile is required')

    @contextmanager
    def _reporting(self, title: str):
        try:
            yield
        except LifecycleError as e:
            self.notifier.error(title, e.detail)
            raise

    def _activity(self, ticket_id: str, kind: str, description: str, when: datetime) -> Activity:
        return Activity(id=new_id(), ticket_id=ticket_id, type=kind, description=description,
                        performed_by=self.identity.actor, timestamp=when)

    def _swap(self, ticket: Ticket) -> bool:
        for i, t in enumerate(self._tickets):
            if t.id == ticket.id:
                self._tickets[i] = ticket
                return True
        return False

    def _upsert(self, ticket: Ticket, activity: Optional[Activity] = None):
        if not self._swap(ticket):
            self._tickets.insert(0, ticket)
        if activity is not None and all(a.id != activity.id for a in self._activities):
            self._activities.append(activity)

    @contextmanager
    def _writing(self):
        self._writes_in_flight += 1
        try:
            yield
        finally:
            self._writes_in_flight -= 1
            self._write_generation += 1

    def _forget(self, ticket_id: str):
        self._tickets = [t for t in self._tickets if t.id != ticket_id]
        self._activities = [a for a in self._activities if a.ticket_id != ticket_id]

    def _discard_activity(self, activity: Activity):
        self._activities = [a for a in self._activities if a.id != activity.id]

    async def _commit(self, previous: Ticket, ticket: Ticket, activity: Optional[Activity] = None,
                      notification: Optional[Notification] = None) -> Ticket:
        self._swap(ticket)
        if activity is not None:
            self._activities.append(activity)
        try:
            with self._writing():
                await self.store.update_ticket(ticket, activity, notification)
        except NotFoundError:
            # deleted by someone else since the last load
            self._forget(ticket.id)
            raise
        except PersistenceError:
            self._swap(previous)
            if activity is not None:
                self._discard_activity(activity)
            raise
        self._upsert(ticket, activity)
        return ticket

    async def _append_activity(self, activity: Activity, write):
        self._activities.append(activity)
        try:
            with self._writing():
                await write
        except NotFoundError:
            self._forget(activity.ticket_id)
            raise
        except PersistenceError:
            self._discard_activity(activity)
            raise
        if all(a.id != activity.id for a in self._activities):
            self._activities.append(activity)

    def _warn_already_deleted(self, ticket_id: str):
        log.warning('delete of missing ticket %s treated as success', ticket_id)
        self.notifier.warning('Ticket Deleted', 'The ticket was already deleted')
