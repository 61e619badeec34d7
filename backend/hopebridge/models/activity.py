"""Activity trail: role changes, logins, and other dashboard mutations."""
from __future__ import annotations

import datetime
import uuid

from sqlalchemy import JSON, DateTime, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from hopebridge.database import Base
from hopebridge.models.base import UUIDPrimaryKeyMixin, isoformat, utcnow


class ActivityLog(UUIDPrimaryKeyMixin, Base):
    """Immutable audit trail of dashboard mutations."""
    __tablename__ = "activity_log"

    user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid)
    username: Mapped[str | None] = mapped_column(String(200))
    user_role: Mapped[str | None] = mapped_column(String(50))
    action: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    entity_type: Mapped[str | None] = mapped_column(String(100))
    entity_id: Mapped[str | None] = mapped_column(String(200), index=True)
    description: Mapped[str | None] = mapped_column(Text)
    details: Mapped[dict | None] = mapped_column(JSON)
    ip_address: Mapped[str | None] = mapped_column(String(45))
    user_agent: Mapped[str | None] = mapped_column(String(300))
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "user_id": str(self.user_id) if self.user_id else None,
            "username": self.username,
            "user_role": self.user_role,
            "action": self.action,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "ip_address": self.ip_address,
            "created_at": isoformat(self.created_at),
        }

    def __repr__(self) -> str:
        return f"<ActivityLog {self.action!r} by {self.username!r}>"
