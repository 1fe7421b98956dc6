"""Remote relational store backed by SQLAlchemy."""
from __future__ import annotations
import logging
from contextlib import contextmanager
from dataclasses import replace
from typing import List, Optional

from sqlalchemy import select, or_, false
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from fieldservice.lifecycle.errors import LoadError, NotFoundError, PersistenceError
from fieldservice.lifecycle.feed import ChangeFeed
from fieldservice.lifecycle.records import Activity, Notification, Ticket, TicketMedia, ROLE_ADMIN
from fieldservice.lifecycle.stores.base import TicketStore, format_ticket_number, next_ticket_seq
from fieldservice.models.ticket import TicketModel, ActivityModel, MediaModel, NotificationModel

log = logging.getLogger(__name__)


def filter_query_by_visibility(query, role: Optional[str], user_id: Optional[str]):
    """Restrict a ticket query to rows the caller created or is assigned to (admins see all)."""
    if role == ROLE_ADMIN:
        return query
    if user_id is None:
        return query.where(false())
    return query.where(or_(TicketModel.created_by == user_id, TicketModel.assigned_to == user_id))


class SqlTicketStore(TicketStore):
    def __init__(self, session_factory: sessionmaker, feed: Optional[ChangeFeed] = None):
        super().__init__(feed)
        self.session_factory = session_factory

    @contextmanager
    def _reading(self):
        try:
            with self.session_factory() as session:
                yield session
        except SQLAlchemyError as e:
            log.warning('ticket store read failed: %s', e)
            raise LoadError('remote store unreachable')

    @contextmanager
    def _writing(self):
        session = self.session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            log.warning('ticket store write failed: %s', e)
            raise PersistenceError('failed to save data')
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def _fetch_tickets(self, role, user_id) -> List[Ticket]:
        with self._reading() as session:
            q = filter_query_by_visibility(select(TicketModel), role, user_id)
            q = q.order_by(TicketModel.created_at.desc(), TicketModel.id.asc())
            return [row.to_record() for row in session.execute(q).scalars()]

    def _fetch_activities(self, ticket_ids: List[str]) -> List[Activity]:
        if not ticket_ids:
            return []
        with self._reading() as session:
            q = select(ActivityModel).where(ActivityModel.ticket_id.in_(ticket_ids)).order_by(ActivityModel.timestamp.desc())
            return [row.to_record() for row in session.execute(q).scalars()]

    def _fetch_media(self, ticket_id: str) -> List[TicketMedia]:
        with self._reading() as session:
            q = select(MediaModel).where(MediaModel.ticket_id == ticket_id).order_by(MediaModel.created_at.desc())
            return [row.to_record() for row in session.execute(q).scalars()]

    def _fetch_notifications(self, user_id: str, limit: int) -> List[Notification]:
        with self._reading() as session:
            q = (select(NotificationModel).where(NotificationModel.user_id == user_id)
                 .order_by(NotificationModel.created_at.desc()).limit(limit))
            return [row.to_record() for row in session.execute(q).scalars()]

    def _insert_ticket(self, ticket: Ticket, activity: Activity) -> Ticket:
        with self._writing() as session:
            if ticket.ticket_number is None:
                numbers = session.execute(select(TicketModel.ticket_number)).scalars()
                ticket = replace(ticket, ticket_number=format_ticket_number(next_ticket_seq(numbers)))
            session.add(TicketModel().apply_record(ticket))
            session.flush()
            session.add(ActivityModel.from_record(activity))
        return ticket

    def _update_ticket(self, ticket: Ticket, activity, notification) -> Ticket:
        with self._writing() as session:
            row = session.get(TicketModel, ticket.id)
            if row is None:
                raise NotFoundError(f'ticket {ticket.id} not found')
            previous = row.to_record()
            row.apply_record(ticket)
            if activity is not None:
                session.add(ActivityModel.from_record(activity))
            if notification is not None:
                session.add(NotificationModel.from_record(notification))
        return previous

    def _insert_activity(self, activity: Activity):
        with self._writing() as session:
            if session.get(TicketModel, activity.ticket_id) is None:
                raise NotFoundError(f'ticket {activity.ticket_id} not found')
            session.add(ActivityModel.from_record(activity))

    def _insert_media(self, media: TicketMedia, activity: Activity):
        with self._writing() as session:
            if session.get(TicketModel, media.ticket_id) is None:
                raise NotFoundError(f'ticket {media.ticket_id} not found')
            session.add(MediaModel.from_record(media))
            session.add(ActivityModel.from_record(activity))

    def _delete_ticket(self, ticket_id: str) -> Optional[Ticket]:
        with self._writing() as session:
            row = session.get(TicketModel, ticket_id)
            if row is None:
                return None
            doomed = row.to_record()
            session.delete(row)
        return doomed
