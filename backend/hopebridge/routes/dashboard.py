"""Dashboard routes — per-user overview counters."""
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hopebridge.database import get_db
from hopebridge.middleware.auth import get_current_user
from hopebridge.models.user import User
from hopebridge.rbac import ROLE_DISPLAY_NAMES, Permission, get_role_permissions, has_permission, parse_role
from hopebridge.services.message_service import MessageService
from hopebridge.services.notification_service import NotificationService
from hopebridge.services.task_service import TaskService

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


@router.get("/stats")
async def get_dashboard_stats(
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    """Task counts, unread counters, and the caller's role flags."""
    role = parse_role(user["role"])

    stats = {
        "user": {
            "id": str(user["user_id"]),
            "name": user["name"],
            "role": user["role"],
            "role_display_name": ROLE_DISPLAY_NAMES[role] if role else user["role"],
            "permissions": get_role_permissions(user["role"]).as_flags(),
        },
        "tasks": await TaskService(db).get_statistics(user),
        "unread_messages": await MessageService(db).unread_count(user["user_id"]),
        "unread_notifications": await NotificationService(db).unread_count(user["user_id"]),
    }

    if has_permission(user["role"], Permission.MANAGE_USERS):
        rows = await db.execute(
            select(User.role, func.count()).where(User.is_active.is_(True)).group_by(User.role)
        )
        by_role = {r: n for r, n in rows.all()}
        stats["users"] = {"active": sum(by_role.values()), "by_role": by_role}

    return stats
