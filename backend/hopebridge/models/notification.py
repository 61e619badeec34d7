"""Task notifications shown in the dashboard bell."""
from __future__ import annotations

import uuid

from sqlalchemy import JSON, Boolean, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from hopebridge.database import Base
from hopebridge.models.base import TimestampMixin, UUIDPrimaryKeyMixin, isoformat

NOTIFICATION_TYPES = (
    "new_task_assigned",
    "task_updated",
    "task_completed",
    "task_overdue",
    "task_cancelled",
)


class Notification(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "notifications"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    task_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("tasks.id", ondelete="CASCADE"), index=True
    )
    type: Mapped[str] = mapped_column(String(30), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    priority: Mapped[str] = mapped_column(String(10), nullable=False, default="medium")
    action_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    details: Mapped[dict | None] = mapped_column(JSON)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "user_id": str(self.user_id),
            "task_id": str(self.task_id) if self.task_id else None,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "priority": self.priority,
            "action_required": self.action_required,
            "is_read": self.is_read,
            "archived": self.archived,
            "details": self.details,
            "created_at": isoformat(self.created_at),
        }

    def __repr__(self) -> str:
        return f"<Notification {self.type!r} for {self.user_id}>"
