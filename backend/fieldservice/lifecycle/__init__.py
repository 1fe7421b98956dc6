"""Ticket lifecycle: records, views, stores, change feed and the manager."""
from fieldservice.lifecycle.errors import (
    LifecycleError, ValidationError, AuthenticationError, NotFoundError,
    PersistenceError, LoadError,
)
from fieldservice.lifecycle.feed import ChangeFeed, ChangeEvent, Subscription
from fieldservice.lifecycle.manager import TicketManager
from fieldservice.lifecycle.records import (
    Activity, CurrentUser, Identity, Notification, Ticket, TicketMedia, TicketPatch, UserProfile,
)

__all__ = [
    'LifecycleError', 'ValidationError', 'AuthenticationError', 'NotFoundError',
    'PersistenceError', 'LoadError',
    'ChangeFeed', 'ChangeEvent', 'Subscription', 'TicketManager',
    'Activity', 'CurrentUser', 'Identity', 'Notification', 'Ticket', 'TicketMedia',
    'TicketPatch', 'UserProfile',
]
