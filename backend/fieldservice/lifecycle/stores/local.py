"""Offline-first store: one JSON document in directory-backed local storage."""
from __future__ import annotations
import json
import logging
import os
import threading
from dataclasses import replace
from typing import List, Optional

from fieldservice.lifecycle.errors import LoadError, NotFoundError, PersistenceError
from fieldservice.lifecycle.feed import ChangeFeed
from fieldservice.lifecycle.fixtures import EmptyFixtures, FixtureProvider
from fieldservice.lifecycle.records import Activity, Notification, Ticket, TicketMedia
from fieldservice.lifecycle.stores.base import TicketStore, format_ticket_number, next_ticket_seq
from fieldservice.lifecycle.views import newest_first, visible_to

log = logging.getLogger(__name__)

STORAGE_KEY = 'ticketing_app_data'
MEDIA_KEY = 'ticketing_app_media'
NOTIFICATIONS_KEY = 'ticketing_app_notifications'


class LocalStorage:
    """String key/value storage persisted as one file per key."""

    def __init__(self, directory: str):
        self.directory = directory

    def _path(self, key: str) -> str:
        return os.path.join(self.directory, f'{key}.json')

    def get_item(self, key: str) -> Optional[str]:
        try:
            with open(self._path(key), encoding='utf-8') as fh:
                return fh.read()
        except FileNotFoundError:
            return None

    def set_item(self, key: str, value: str):
        os.makedirs(self.directory, exist_ok=True)
        path = self._path(key)
        tmp = f'{path}.tmp'
        with open(tmp, 'w', encoding='utf-8') as fh:
            fh.write(value)
        os.replace(tmp, path)

    def remove_item(self, key: str):
        try:
            os.remove(self._path(key))
        except FileNotFoundError:
            pass


def dump_document(tickets: List[Ticket], activities: List[Activity]) -> str:
    return json.dumps({
        'tickets': [t.to_dict() for t in tickets],
        'activities': [a.to_dict() for a in activities],
    })


def load_document(raw: str):
    """Parse the stored document, reviving date fields. Raises LoadError when malformed."""
    try:
        data = json.loads(raw)
        tickets = [Ticket.from_dict(t) for t in data['tickets']]
        activities = [Activity.from_dict(a) for a in data['activities']]
    except (ValueError, KeyError, TypeError, AttributeError) as e:
        raise LoadError(f'stored ticket data is malformed: {e}')
    return tickets, activities


class LocalJsonStore(TicketStore):
    def __init__(self, storage: LocalStorage, fixtures: Optional[FixtureProvider] = None,
                 feed: Optional[ChangeFeed] = None, key: str = STORAGE_KEY):
        super().__init__(feed)
        self.storage = storage
        self.fixtures = fixtures or EmptyFixtures()
        self.key = key
        self._lock = threading.RLock()

    # ---------- document access ---------- #

    def _read(self):
        try:
            raw = self.storage.get_item(self.key)
        except OSError as e:
            raise LoadError(f'local storage unreadable: {e}')
        if raw is None:
            seed = self.fixtures.seed()
            log.info('no stored ticket data; seeding %d fixture tickets', len(seed.tickets))
            self._write(seed.tickets, seed.activities)
            return list(seed.tickets), list(seed.activities)
        return load_document(raw)

    def _write(self, tickets: List[Ticket], activities: List[Activity]):
        try:
            self.storage.set_item(self.key, dump_document(tickets, activities))
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(f'failed to save data: {e}')

    def _read_list(self, key: str, record_cls) -> list:
        try:
            raw = self.storage.get_item(key)
            return [record_cls.from_dict(r) for r in json.loads(raw)] if raw else []
        except OSError as e:
            raise LoadError(f'local storage unreadable: {e}')
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise LoadError(f'stored {key} is malformed: {e}')

    def _write_list(self, key: str, records: list):
        try:
            self.storage.set_item(key, json.dumps([r.to_dict() for r in records]))
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(f'failed to save data: {e}')

    def _mutate_list(self, key: str, record_cls, fn):
        records = [r for r in self._read_list(key, record_cls) if fn(r)]
        self._write_list(key, records)

    # ---------- hooks ---------- #

    def _fetch_tickets(self, role, user_id) -> List[Ticket]:
        with self._lock:
            tickets, _ = self._read()
        return newest_first(visible_to(tickets, role, user_id))

    def _fetch_activities(self, ticket_ids: List[str]) -> List[Activity]:
        wanted = set(ticket_ids)
        with self._lock:
            _, activities = self._read()
        return [a for a in activities if a.ticket_id in wanted]

    def _fetch_media(self, ticket_id: str) -> List[TicketMedia]:
        with self._lock:
            media = self._read_list(MEDIA_KEY, TicketMedia)
        return sorted((m for m in media if m.ticket_id == ticket_id), key=lambda m: m.created_at, reverse=True)

    def _fetch_notifications(self, user_id: str, limit: int) -> List[Notification]:
        with self._lock:
            rows = self._read_list(NOTIFICATIONS_KEY, Notification)
        rows = sorted((n for n in rows if n.user_id == user_id), key=lambda n: n.created_at, reverse=True)
        return rows[:limit]

    def _insert_ticket(self, ticket: Ticket, activity: Activity) -> Ticket:
        with self._lock:
            tickets, activities = self._read()
            if ticket.ticket_number is None:
                ticket = replace(ticket, ticket_number=format_ticket_number(next_ticket_seq(t.ticket_number for t in tickets)))
            self._write([ticket] + tickets, activities + [activity])
        return ticket

    def _update_ticket(self, ticket: Ticket, activity, notification) -> Ticket:
        with self._lock:
            tickets, activities = self._read()
            for i, existing in enumerate(tickets):
                if existing.id == ticket.id:
                    break
            else:
                raise NotFoundError(f'ticket {ticket.id} not found')
            tickets[i] = ticket
            if activity is not None:
                activities.append(activity)
            self._write(tickets, activities)
            if notification is not None:
                self._write_list(NOTIFICATIONS_KEY, self._read_list(NOTIFICATIONS_KEY, Notification) + [notification])
        return existing

    def _insert_activity(self, activity: Activity):
        with self._lock:
            tickets, activities = self._read()
            if not any(t.id == activity.ticket_id for t in tickets):
                raise NotFoundError(f'ticket {activity.ticket_id} not found')
            self._write(tickets, activities + [activity])

    def _insert_media(self, media: TicketMedia, activity: Activity):
        with self._lock:
            self._insert_activity(activity)
            self._write_list(MEDIA_KEY, self._read_list(MEDIA_KEY, TicketMedia) + [media])

    def _delete_ticket(self, ticket_id: str) -> Optional[Ticket]:
        with self._lock:
            tickets, activities = self._read()
            doomed = next((t for t in tickets if t.id == ticket_id), None)
            if doomed is None:
                return None
            self._write(
                [t for t in tickets if t.id != ticket_id],
                [a for a in activities if a.ticket_id != ticket_id],
            )
            self._mutate_list(MEDIA_KEY, TicketMedia, lambda m: m.ticket_id != ticket_id)
            self._mutate_list(NOTIFICATIONS_KEY, Notification, lambda n: n.ticket_id != ticket_id)
        return doomed

