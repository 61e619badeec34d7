"""Notification bell routes."""
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from hopebridge.database import get_db
from hopebridge.middleware.auth import get_current_user
from hopebridge.services.notification_service import NotificationNotFoundError, NotificationService

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("")
async def list_notifications(
    unread_only: bool = Query(False),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    service = NotificationService(db)
    items, total = await service.list_for_user(user["user_id"], unread_only, page, limit)
    return {
        "notifications": [n.to_dict() for n in items],
        "total": total,
        "unread_count": await service.unread_count(user["user_id"]),
        "page": page,
        "limit": limit,
    }


@router.get("/stats")
async def notification_stats(
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    return await NotificationService(db).get_stats(user["user_id"])


@router.post("/read-all")
async def mark_all_read(
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    updated = await NotificationService(db).mark_all_read(user["user_id"])
    await db.commit()
    return {"updated": updated}


@router.patch("/{notification_id}/read")
async def mark_read(
    notification_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    try:
        notification = await NotificationService(db).mark_read(notification_id, user["user_id"])
    except NotificationNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    await db.commit()
    return notification.to_dict()
