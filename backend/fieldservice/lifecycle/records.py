"""In-memory records owned by the ticket lifecycle manager.

Records are frozen dataclasses; a mutation builds a new version with
``dataclasses.replace`` and swaps it into the collection. ``to_dict`` and
``from_dict`` give the JSON-safe form used by the local store and the HTTP
surface (datetimes as ISO 8601 strings).
"""
from __future__ import annotations
import uuid
from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from fieldservice.lifecycle.errors import ValidationError
from fieldservice.utils.validation import (
    validate_status, require_text, optional_text, validate_range,
    validate_non_negative, coerce_datetime,
)

# Status constants
STATUS_OPEN = 'open'
STATUS_IN_PROGRESS = 'in_progress'
STATUS_RESOLVED = 'resolved'
STATUS_VERIFIED = 'verified'
STATUS_CLOSED = 'closed'
ALL_STATUSES = (STATUS_OPEN, STATUS_IN_PROGRESS, STATUS_RESOLVED, STATUS_VERIFIED, STATUS_CLOSED)
COMPLETED_STATUSES = (STATUS_RESOLVED, STATUS_VERIFIED, STATUS_CLOSED)

PRIORITY_LOW = 'low'
PRIORITY_MEDIUM = 'medium'
PRIORITY_HIGH = 'high'
PRIORITY_CRITICAL = 'critical'
ALL_PRIORITIES = (PRIORITY_LOW, PRIORITY_MEDIUM, PRIORITY_HIGH, PRIORITY_CRITICAL)
PRIORITY_RANK = {PRIORITY_LOW: 1, PRIORITY_MEDIUM: 2, PRIORITY_HIGH: 3, PRIORITY_CRITICAL: 4}

TYPE_FAULT = 'fault'
TYPE_MAINTENANCE = 'maintenance'
TYPE_INSPECTION = 'inspection'
TYPE_UPGRADE = 'upgrade'
ALL_TYPES = (TYPE_FAULT, TYPE_MAINTENANCE, TYPE_INSPECTION, TYPE_UPGRADE)

ACTIVITY_COMMENT = 'comment'
ACTIVITY_STATUS_CHANGE = 'status_change'
ACTIVITY_ASSIGNMENT = 'assignment'
ACTIVITY_MEDIA_UPLOAD = 'media_upload'
ALL_ACTIVITY_TYPES = (ACTIVITY_COMMENT, ACTIVITY_STATUS_CHANGE, ACTIVITY_ASSIGNMENT, ACTIVITY_MEDIA_UPLOAD)

ROLE_ADMIN = 'admin'
ROLE_SUPERVISOR = 'supervisor'
ROLE_FIELD_ENGINEER = 'field_engineer'
ALL_ROLES = (ROLE_ADMIN, ROLE_SUPERVISOR, ROLE_FIELD_ENGINEER)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


def _dt_out(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _dt_in(value: Any) -> Optional[datetime]:
    """Revive a stored date. Values without an offset are UTC. Raises ValueError when unparseable."""
    if value is None:
        return None
    if not isinstance(value, datetime):
        value = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


class _Record:
    DATETIME_FIELDS: tuple = ()

    def to_dict(self) -> Dict[str, Any]:
        out = {}
        for f in fields(self):
            value = getattr(self, f.name)
            out[f.name] = _dt_out(value) if f.name in self.DATETIME_FIELDS else value
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]):
        """Revive a record from its JSON form. Unknown keys are ignored."""
        kwargs = {}
        for f in fields(cls):
            if f.name not in data:
                continue
            value = data[f.name]
            kwargs[f.name] = _dt_in(value) if f.name in cls.DATETIME_FIELDS else value
        return cls(**kwargs)


@dataclass(frozen=True)
class Ticket(_Record):
    id: str
    title: str
    location: str
    created_by: str
    created_at: datetime
    updated_at: datetime
    description: str = ''
    type: str = TYPE_FAULT
    priority: str = PRIORITY_MEDIUM
    status: str = STATUS_OPEN
    ticket_number: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    assigned_to: Optional[str] = None
    verified_by: Optional[str] = None
    equipment_id: Optional[str] = None
    equipment_name: Optional[str] = None
    assigned_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    verified_at: Optional[datetime] = None
    due_date: Optional[datetime] = None
    estimated_hours: Optional[float] = None
    actual_hours: Optional[float] = None

    DATETIME_FIELDS = ('created_at', 'updated_at', 'assigned_at', 'resolved_at', 'verified_at', 'due_date')


@dataclass(frozen=True)
class Activity(_Record):
    id: str
    ticket_id: str
    type: str
    description: str
    performed_by: str
    timestamp: datetime

    DATETIME_FIELDS = ('timestamp',)


@dataclass(frozen=True)
class TicketMedia(_Record):
    id: str
    ticket_id: str
    file_name: str
    url: str
    uploaded_by: str
    created_at: datetime
    content_type: Optional[str] = None

    DATETIME_FIELDS = ('created_at',)


@dataclass(frozen=True)
class Notification(_Record):
    id: str
    user_id: str
    title: str
    message: str
    created_at: datetime
    ticket_id: Optional[str] = None
    is_read: bool = False

    DATETIME_FIELDS = ('created_at',)


@dataclass(frozen=True)
class CurrentUser:
    id: str
    email: Optional[str] = None


@dataclass(frozen=True)
class UserProfile:
    id: str
    role: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    is_active: bool = True


@dataclass(frozen=True)
class Identity:
    """What the identity provider hands the manager for one session."""
    user: Optional[CurrentUser] = None
    profile: Optional[UserProfile] = None

    @property
    def authenticated(self) -> bool:
        return self.user is not None and self.profile is not None and self.profile.is_active

    @property
    def user_id(self) -> Optional[str]:
        return self.user.id if self.user else None

    @property
    def role(self) -> Optional[str]:
        return self.profile.role if self.profile else None

    @property
    def actor(self) -> str:
        """Display name recorded as performed_by on activities."""
        if self.profile and self.profile.full_name:
            return self.profile.full_name
        if self.user and self.user.email:
            return self.user.email
        return self.user_id or 'system'


class _Unset:
    def __repr__(self):
        return 'UNSET'

    def __bool__(self):
        return False


UNSET: Any = _Unset()

# field -> validator(value) returning the coerced value
_PATCH_VALIDATORS = {
    'title': lambda v: require_text(v, 'title'),
    'description': lambda v: optional_text(v, 'description') or '',
    'type': lambda v: validate_status(v, ALL_TYPES, 'type'),
    'priority': lambda v: validate_status(v, ALL_PRIORITIES, 'priority'),
    'status': lambda v: validate_status(v, ALL_STATUSES, 'status'),
    'location': lambda v: require_text(v, 'location'),
    'latitude': lambda v: validate_range(v, -90, 90, 'latitude'),
    'longitude': lambda v: validate_range(v, -180, 180, 'longitude'),
    'assigned_to': lambda v: optional_text(v, 'assigned_to') or None,
    'equipment_id': lambda v: optional_text(v, 'equipment_id'),
    'equipment_name': lambda v: optional_text(v, 'equipment_name'),
    'due_date': lambda v: coerce_datetime(v, 'due_date'),
    'estimated_hours': lambda v: validate_non_negative(v, 'estimated_hours'),
    'actual_hours': lambda v: validate_non_negative(v, 'actual_hours'),
}


@dataclass(frozen=True)
class TicketPatch:
    """Sparse set of field changes. Fields left at UNSET are not touched."""
    title: Any = UNSET
    description: Any = UNSET
    type: Any = UNSET
    priority: Any = UNSET
    status: Any = UNSET
    location: Any = UNSET
    latitude: Any = UNSET
    longitude: Any = UNSET
    assigned_to: Any = UNSET
    equipment_id: Any = UNSET
    equipment_name: Any = UNSET
    due_date: Any = UNSET
    estimated_hours: Any = UNSET
    actual_hours: Any = UNSET

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> 'TicketPatch':
        unknown = sorted(set(data) - set(_PATCH_VALIDATORS))
        if unknown:
            raise ValidationError(f"fields not updatable: {', '.join(unknown)}")
        return cls(**dict(data)).validated()

    def validated(self) -> 'TicketPatch':
        return replace(self, **{name: _PATCH_VALIDATORS[name](value) for name, value in self.changes().items()})

    def changes(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not UNSET}

    def apply(self, ticket: Ticket) -> Ticket:
        return replace(ticket, **self.changes())


def derive_timestamps(ticket: Ticket, now: datetime, actor_id: Optional[str]) -> Ticket:
    """Refresh updated_at and fill bookkeeping stamps from the resulting state.

    Stamps already set are kept; nothing here ever clears one.
    """
    changes: Dict[str, Any] = {'updated_at': max(now, ticket.created_at)}
    if ticket.assigned_to and ticket.assigned_at is None:
        changes['assigned_at'] = now
    if ticket.status == STATUS_RESOLVED and ticket.resolved_at is None:
        changes['resolved_at'] = now
    if ticket.status == STATUS_VERIFIED and ticket.verified_at is None:
        changes['verified_at'] = now
        changes['verified_by'] = actor_id
    return replace(ticket, **changes)


def build_ticket(data: Mapping[str, Any], created_by: str, now: datetime) -> Ticket:
    """Validate create input and build a fresh open ticket."""
    allowed = set(_PATCH_VALIDATORS) - {'status', 'assigned_to', 'actual_hours'}
    unknown = sorted(set(data) - allowed)
    if unknown:
        raise ValidationError(f"unexpected fields: {', '.join(unknown)}")
    values = {
        'title': require_text(data.get('title'), 'title'),
        'location': require_text(data.get('location'), 'location'),
    }
    for name in allowed - {'title', 'location'}:
        value = data.get(name)
        if value is not None:
            values[name] = _PATCH_VALIDATORS[name](value)
    return Ticket(
        id=new_id(),
        created_by=created_by,
        created_at=now,
        updated_at=now,
        status=STATUS_OPEN,
        **values,
    )
