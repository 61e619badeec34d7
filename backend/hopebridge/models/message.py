"""Direct messages between dashboard users."""
from __future__ import annotations

import uuid

from sqlalchemy import JSON, Boolean, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from hopebridge.database import Base
from hopebridge.models.base import TimestampMixin, UUIDPrimaryKeyMixin, isoformat

MESSAGE_PRIORITIES = ("low", "medium", "high", "urgent")


class Message(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "messages"

    from_user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    from_user_role: Mapped[str] = mapped_column(String(50), nullable=False)
    to_user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    to_user_role: Mapped[str] = mapped_column(String(50), nullable=False)
    subject: Mapped[str] = mapped_column(String(200), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    attachments: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    priority: Mapped[str] = mapped_column(String(10), nullable=False, default="medium")
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "from_user_id": str(self.from_user_id),
            "from_user_role": self.from_user_role,
            "to_user_id": str(self.to_user_id),
            "to_user_role": self.to_user_role,
            "subject": self.subject,
            "content": self.content,
            "attachments": self.attachments,
            "priority": self.priority,
            "is_read": self.is_read,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }

    def __repr__(self) -> str:
        return f"<Message {self.subject!r} {self.from_user_role}->{self.to_user_role}>"
