"""Direct message routes."""
from __future__ import annotations

import uuid
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from hopebridge.database import get_db
from hopebridge.middleware.auth import get_current_user, require_permission
from hopebridge.rbac import Permission
from hopebridge.services.message_service import (
    MessageNotFoundError,
    MessagePermissionError,
    MessageService,
)

router = APIRouter(prefix="/api/messages", tags=["messages"])


class MessageCreate(BaseModel):
    to_user_id: uuid.UUID
    subject: str = Field(min_length=1, max_length=200)
    content: str = Field(min_length=1)
    priority: Literal["low", "medium", "high", "urgent"] = "medium"
    attachments: list[str] = []


@router.get("")
async def list_messages(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    filter: Literal["all", "sent", "received", "unread"] = Query("all"),
    conversations: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(require_permission(Permission.RECEIVE_MESSAGES)),
):
    service = MessageService(db)
    if conversations:
        return {"conversations": await service.conversations(user["user_id"])}

    messages, total = await service.list_for_user(user["user_id"], filter, page, limit)
    return {
        "messages": [m.to_dict() for m in messages],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": (total + limit - 1) // limit,
        },
    }


@router.post("", status_code=201)
async def send_message(
    body: MessageCreate,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(require_permission(Permission.SEND_MESSAGES)),
):
    try:
        message = await MessageService(db).send(
            user,
            body.to_user_id,
            body.subject,
            body.content,
            priority=body.priority,
            attachments=body.attachments,
        )
    except MessageNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except MessagePermissionError as exc:
        raise HTTPException(status_code=403, detail=str(exc))

    await db.commit()
    return message.to_dict()


@router.get("/unread-count")
async def unread_count(
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    return {"unread_count": await MessageService(db).unread_count(user["user_id"])}


@router.get("/recipients")
async def recipients(
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(require_permission(Permission.SEND_MESSAGES)),
):
    """Active users, each flagged with whether the caller may message them."""
    items = await MessageService(db).available_recipients(user["role"], exclude_user_id=user["user_id"])
    return {"recipients": items}


@router.patch("/{message_id}/read")
async def mark_read(
    message_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    try:
        message = await MessageService(db).mark_read(message_id, user["user_id"])
    except MessageNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    await db.commit()
    return message.to_dict()


@router.delete("/{message_id}")
async def delete_message(
    message_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    try:
        await MessageService(db).delete(message_id, user["user_id"])
    except MessageNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    await db.commit()
    return {"status": "deleted"}
