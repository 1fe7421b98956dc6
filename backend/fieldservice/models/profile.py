from __future__ import annotations
from typing import Optional
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Boolean, DateTime, text
from fieldservice.models.base import Base
from fieldservice.lifecycle.records import UserProfile, ROLE_FIELD_ENGINEER


class ProfileModel(Base):
    __tablename__ = 'user_profiles'
    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    email: Mapped[str] = mapped_column(String(128), unique=True, index=True, nullable=False)
    full_name: Mapped[Optional[str]] = mapped_column(String(128))
    role: Mapped[str] = mapped_column(String(32), nullable=False, default=ROLE_FIELD_ENGINEER, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False, default='')
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=text('CURRENT_TIMESTAMP'), server_onupdate=text('CURRENT_TIMESTAMP'))

    def set_password(self, raw: str):
        from werkzeug.security import generate_password_hash
        self.password_hash = generate_password_hash(raw)

    def verify_password(self, raw: str) -> bool:
        from werkzeug.security import check_password_hash
        return bool(self.password_hash) and check_password_hash(self.password_hash, raw)

    def to_record(self) -> UserProfile:
        return UserProfile(id=self.id, email=self.email, full_name=self.full_name, role=self.role, is_active=bool(self.is_active))

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'email': self.email,
            'full_name': self.full_name,
            'role': self.role,
            'is_active': bool(self.is_active),
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
