from __future__ import annotations
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import String, Text, Float, Boolean, DateTime, ForeignKey
from fieldservice.models.base import Base, aware
from fieldservice.lifecycle.records import Activity, Notification, Ticket, TicketMedia, STATUS_OPEN, PRIORITY_MEDIUM, TYPE_FAULT


class TicketModel(Base):
    __tablename__ = 'tickets'
    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    ticket_number: Mapped[Optional[str]] = mapped_column(String(16), unique=True, nullable=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default='')
    type: Mapped[str] = mapped_column(String(16), nullable=False, default=TYPE_FAULT)
    priority: Mapped[str] = mapped_column(String(16), nullable=False, default=PRIORITY_MEDIUM, index=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_OPEN, index=True)
    location: Mapped[str] = mapped_column(String(255), nullable=False)
    latitude: Mapped[Optional[float]] = mapped_column(Float)
    longitude: Mapped[Optional[float]] = mapped_column(Float)
    created_by: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    assigned_to: Mapped[Optional[str]] = mapped_column(String(36), index=True)
    verified_by: Mapped[Optional[str]] = mapped_column(String(36))
    equipment_id: Mapped[Optional[str]] = mapped_column(String(64))
    equipment_name: Mapped[Optional[str]] = mapped_column(String(128))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    assigned_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    due_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    estimated_hours: Mapped[Optional[float]] = mapped_column(Float)
    actual_hours: Mapped[Optional[float]] = mapped_column(Float)

    activities = relationship('ActivityModel', back_populates='ticket', cascade='all, delete-orphan')
    media = relationship('MediaModel', cascade='all, delete-orphan')
    notifications = relationship('NotificationModel', cascade='all, delete-orphan')

    # Columns copied verbatim between the row and the Ticket record
    COPY_FIELDS = (
        'id', 'ticket_number', 'title', 'description', 'type', 'priority', 'status', 'location',
        'latitude', 'longitude', 'created_by', 'assigned_to', 'verified_by', 'equipment_id',
        'equipment_name', 'created_at', 'updated_at', 'assigned_at', 'resolved_at', 'verified_at',
        'due_date', 'estimated_hours', 'actual_hours',
    )

    def apply_record(self, ticket: Ticket):
        for name in self.COPY_FIELDS:
            setattr(self, name, getattr(ticket, name))
        return self

    def to_record(self) -> Ticket:
        values = {name: getattr(self, name) for name in self.COPY_FIELDS}
        for name in Ticket.DATETIME_FIELDS:
            values[name] = aware(values[name])
        return Ticket(**values)


class ActivityModel(Base):
    __tablename__ = 'ticket_activities'
    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    ticket_id: Mapped[str] = mapped_column(ForeignKey('tickets.id', ondelete='CASCADE'), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    performed_by: Mapped[str] = mapped_column(String(128), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)

    ticket = relationship('TicketModel', back_populates='activities')

    @classmethod
    def from_record(cls, a: Activity) -> 'ActivityModel':
        return cls(id=a.id, ticket_id=a.ticket_id, type=a.type, description=a.description,
                   performed_by=a.performed_by, timestamp=a.timestamp)

    def to_record(self) -> Activity:
        return Activity(id=self.id, ticket_id=self.ticket_id, type=self.type, description=self.description,
                        performed_by=self.performed_by, timestamp=aware(self.timestamp))


class MediaModel(Base):
    __tablename__ = 'ticket_media'
    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    ticket_id: Mapped[str] = mapped_column(ForeignKey('tickets.id', ondelete='CASCADE'), nullable=False, index=True)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    content_type: Mapped[Optional[str]] = mapped_column(String(64))
    url: Mapped[str] = mapped_column(String(512), nullable=False)
    uploaded_by: Mapped[str] = mapped_column(String(36), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    @classmethod
    def from_record(cls, m: TicketMedia) -> 'MediaModel':
        return cls(id=m.id, ticket_id=m.ticket_id, file_name=m.file_name, content_type=m.content_type,
                   url=m.url, uploaded_by=m.uploaded_by, created_at=m.created_at)

    def to_record(self) -> TicketMedia:
        return TicketMedia(id=self.id, ticket_id=self.ticket_id, file_name=self.file_name, url=self.url,
                           uploaded_by=self.uploaded_by, created_at=aware(self.created_at), content_type=self.content_type)


class NotificationModel(Base):
    __tablename__ = 'notifications'
    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    ticket_id: Mapped[Optional[str]] = mapped_column(ForeignKey('tickets.id', ondelete='CASCADE'), nullable=True)
    title: Mapped[str] = mapped_column(String(128), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    @classmethod
    def from_record(cls, n: Notification) -> 'NotificationModel':
        return cls(id=n.id, user_id=n.user_id, ticket_id=n.ticket_id, title=n.title, message=n.message,
                   is_read=n.is_read, created_at=n.created_at)

    def to_record(self) -> Notification:
        return Notification(id=self.id, user_id=self.user_id, title=self.title, message=self.message,
                            created_at=aware(self.created_at), ticket_id=self.ticket_id, is_read=bool(self.is_read))

# Status flow is unguarded by default: any status may follow any other (see TICKET_STATUS_GUARD).
