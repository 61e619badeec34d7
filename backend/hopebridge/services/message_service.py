"""Direct messaging between dashboard users, gated by the role matrix."""
from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from hopebridge.models.base import utcnow
from hopebridge.models.message import Message
from hopebridge.models.user import User
from hopebridge.rbac import can_send_message

MESSAGE_FILTERS = ("all", "sent", "received", "unread")


class MessageError(Exception):
    pass


class MessageNotFoundError(MessageError):
    pass


class MessagePermissionError(MessageError):
    """Sender's role may not message the recipient's role."""


class MessageService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def send(
        self,
        sender: dict[str, Any],
        to_user_id: uuid.UUID,
        subject: str,
        content: str,
        priority: str = "medium",
        attachments: list[str] | None = None,
    ) -> Message:
        result = await self.db.execute(
            select(User).where(User.id == to_user_id, User.is_active.is_(True))
        )
        recipient = result.scalar_one_or_none()
        if recipient is None:
            raise MessageNotFoundError("Recipient not found or inactive")

        if not can_send_message(sender["role"], recipient.role):
            raise MessagePermissionError(
                f"Role '{sender['role']}' cannot send messages to role '{recipient.role}'"
            )

        message = Message(
            from_user_id=sender["user_id"],
            from_user_role=sender["role"],
            to_user_id=recipient.id,
            to_user_role=recipient.role,
            subject=subject,
            content=content,
            attachments=attachments or [],
            priority=priority,
            is_read=False,
        )
        self.db.add(message)
        await self.db.flush()
        return message

    @staticmethod
    def _filter_conditions(user_id: uuid.UUID, message_filter: str) -> list:
        if message_filter == "sent":
            return [Message.from_user_id == user_id]
        if message_filter == "received":
            return [Message.to_user_id == user_id]
        if message_filter == "unread":
            return [Message.to_user_id == user_id, Message.is_read.is_(False)]
        return [or_(Message.from_user_id == user_id, Message.to_user_id == user_id)]

    async def list_for_user(
        self,
        user_id: uuid.UUID,
        message_filter: str = "all",
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Message], int]:
        conditions = self._filter_conditions(user_id, message_filter)

        total = (
            await self.db.execute(select(func.count()).select_from(Message).where(*conditions))
        ).scalar_one()
        result = await self.db.execute(
            select(Message)
            .where(*conditions)
            .order_by(Message.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def conversations(self, user_id: uuid.UUID) -> list[dict[str, Any]]:
        """One summary per conversation partner, most recent first."""
        result = await self.db.execute(
            select(Message)
            .where(or_(Message.from_user_id == user_id, Message.to_user_id == user_id))
            .order_by(Message.created_at.desc())
        )

        summaries: dict[uuid.UUID, dict[str, Any]] = {}
        for message in result.scalars().all():
            outgoing = message.from_user_id == user_id
            partner_id = message.to_user_id if outgoing else message.from_user_id
            summary = summaries.get(partner_id)
            if summary is None:
                summary = summaries[partner_id] = {
                    "user_id": str(partner_id),
                    "user_role": message.to_user_role if outgoing else message.from_user_role,
                    "last_message": message.to_dict(),
                    "unread_count": 0,
                }
            if not outgoing and not message.is_read:
                summary["unread_count"] += 1
        return list(summaries.values())

    async def mark_read(self, message_id: uuid.UUID, user_id: uuid.UUID) -> Message:
        result = await self.db.execute(
            select(Message).where(Message.id == message_id, Message.to_user_id == user_id)
        )
        message = result.scalar_one_or_none()
        if message is None:
            raise MessageNotFoundError("Message not found or access denied")
        message.is_read = True
        message.updated_at = utcnow()
        await self.db.flush()
        return message

    async def delete(self, message_id: uuid.UUID, user_id: uuid.UUID) -> None:
        result = await self.db.execute(
            delete(Message).where(
                Message.id == message_id,
                or_(Message.from_user_id == user_id, Message.to_user_id == user_id),
            )
        )
        if not result.rowcount:
            raise MessageNotFoundError("Message not found or access denied")

    async def unread_count(self, user_id: uuid.UUID) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(Message).where(
                Message.to_user_id == user_id,
                Message.is_read.is_(False),
            )
        )
        return result.scalar_one()

    async def available_recipients(self, sender_role: str, exclude_user_id: uuid.UUID | None = None) -> list[dict]:
        conditions = [User.is_active.is_(True)]
        if exclude_user_id is not None:
            conditions.append(User.id != exclude_user_id)
        result = await self.db.execute(select(User).where(*conditions).order_by(User.name))
        return [
            {
                "user_id": str(u.id),
                "name": u.name,
                "user_role": u.role,
                "role_display_name": u.role_display_name,
                "can_receive": can_send_message(sender_role, u.role),
            }
            for u in result.scalars().all()
        ]
