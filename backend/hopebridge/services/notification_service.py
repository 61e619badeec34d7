"""Task notifications: assignment, completion and cancellation events, plus the periodic
overdue and due-soon sweep.

The sweep functions are run by the scheduler in ``hopebridge.main``; each
opens its own session via ``run_notification_sweep``.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import case, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from hopebridge.models.base import as_utc, utcnow
from hopebridge.models.notification import Notification
from hopebridge.models.task import OPEN_TASK_STATUSES, Task

logger = logging.getLogger(__name__)

_TITLES = {
    "new_task_assigned": "New Task Assigned",
    "task_updated": "Task Updated",
    "task_completed": "Task Completed",
    "task_overdue": "Task Overdue",
    "task_cancelled": "Task Cancelled",
}

_MESSAGES = {
    "new_task_assigned": 'You have been assigned: "{title}"',
    "task_updated": '"{title}" has been updated',
    "task_completed": '"{title}" has been completed',
    "task_overdue": '"{title}" is overdue and needs your attention',
    "task_cancelled": '"{title}" has been cancelled',
}

_ACTION_REQUIRED = {"new_task_assigned", "task_overdue"}


class NotificationNotFoundError(Exception):
    """Raised when a notification does not exist or belongs to someone else."""


class NotificationService:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------
    # Event notifications
    # ------------------------------------------------------------------

    async def create(
        self,
        notification_type: str,
        user_id: uuid.UUID,
        task: Task | None = None,
        priority: str | None = None,
        action_required: bool | None = None,
        details: dict | None = None,
    ) -> Notification:
        title = task.title if task is not None else "a task"
        notification = Notification(
            user_id=user_id,
            task_id=task.id if task is not None else None,
            type=notification_type,
            title=_TITLES.get(notification_type, "Task Notification"),
            message=_MESSAGES.get(notification_type, 'Update regarding "{title}"').format(title=title),
            priority=priority or (task.priority if task is not None else "medium"),
            action_required=notification_type in _ACTION_REQUIRED if action_required is None else action_required,
            details=details,
        )
        self.db.add(notification)
        await self.db.flush()
        return notification

    async def notify_task_assignment(self, task: Task) -> Notification:
        return await self.create(
            "new_task_assigned",
            task.assigned_to,
            task,
            details={"assigned_by": str(task.assigned_by), "assigned_by_name": task.assigned_by_name},
        )

    async def notify_task_completion(self, task: Task, completed_by: dict[str, Any]) -> Notification:
        return await self.create(
            "task_completed",
            task.assigned_to,
            task,
            details={"completed_by": str(completed_by["user_id"])},
        )

    async def notify_task_cancellation(self, task: Task, cancelled_by: dict[str, Any]) -> Notification:
        return await self.create(
            "task_cancelled",
            task.assigned_to,
            task,
            details={
                "cancelled_at": utcnow().isoformat(),
                "cancelled_by": str(cancelled_by["user_id"]),
            },
        )

    # ------------------------------------------------------------------
    # Periodic sweep
    # ------------------------------------------------------------------

    async def notify_overdue_tasks(self, now: datetime | None = None) -> int:
        """Urgent notification for each open task past its due date, at most
        once per task per 24 hours. Returns the number created."""
        now = now or utcnow()
        result = await self.db.execute(
            select(Task).where(
                Task.due_date.is_not(None),
                Task.due_date < now,
                Task.status.in_(OPEN_TASK_STATUSES),
            )
        )
        created = 0
        for task in result.scalars().all():
            recent = await self.db.execute(
                select(func.count()).select_from(Notification).where(
                    Notification.task_id == task.id,
                    Notification.type == "task_overdue",
                    Notification.created_at > now - timedelta(days=1),
                )
            )
            if recent.scalar_one():
                continue

            due = as_utc(task.due_date)
            await self.create(
                "task_overdue",
                task.assigned_to,
                task,
                priority="urgent",
                details={
                    "overdue_days": (now - due).days,
                    "original_due_date": due.isoformat(),
                },
            )
            created += 1
        return created

    async def check_upcoming_due_dates(self, now: datetime | None = None) -> int:
        """Due-soon reminder for open tasks due in the next 24 hours, at most
        once per task per calendar day. Returns the number created."""
        now = now or utcnow()
        start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
        result = await self.db.execute(
            select(Task).where(
                Task.due_date >= now,
                Task.due_date <= now + timedelta(days=1),
                Task.status.in_(OPEN_TASK_STATUSES),
            )
        )
        created = 0
        for task in result.scalars().all():
            today = await self.db.execute(
                select(Notification).where(
                    Notification.task_id == task.id,
                    Notification.type == "task_updated",
                    Notification.created_at >= start_of_day,
                )
            )
            if any(
                (n.details or {}).get("reminder_type") == "due_soon"
                for n in today.scalars().all()
            ):
                continue

            due = as_utc(task.due_date)
            await self.create(
                "task_updated",
                task.assigned_to,
                task,
                priority="urgent" if task.priority == "urgent" else "high",
                action_required=True,
                details={
                    "reminder_type": "due_soon",
                    "hours_until_due": int((due - now).total_seconds() // 3600),
                },
            )
            created += 1
        return created

    async def cleanup_old_notifications(
        self, days_to_keep: int = 30, now: datetime | None = None
    ) -> dict[str, int]:
        """Delete read notifications older than the cutoff; archive unread ones."""
        cutoff = (now or utcnow()) - timedelta(days=days_to_keep)

        deleted = await self.db.execute(
            delete(Notification).where(
                Notification.is_read.is_(True),
                Notification.created_at < cutoff,
            ).execution_options(synchronize_session=False)
        )
        archived = await self.db.execute(
            update(Notification)
            .where(
                Notification.is_read.is_(False),
                Notification.archived.is_(False),
                Notification.created_at < cutoff,
            )
            .values(archived=True, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return {"deleted": deleted.rowcount, "archived": archived.rowcount}

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_stats(self, user_id: uuid.UUID | None = None) -> dict[str, Any]:
        base = select(Notification)
        if user_id is not None:
            base = base.where(Notification.user_id == user_id)
        sub = base.subquery()

        totals = (
            await self.db.execute(
                select(
                    func.count(),
                    func.coalesce(func.sum(case((sub.c.is_read.is_(False), 1), else_=0)), 0),
                    func.coalesce(func.sum(case((sub.c.action_required.is_(True), 1), else_=0)), 0),
                ).select_from(sub)
            )
        ).one()

        by_type = await self.db.execute(
            select(sub.c.type, func.count()).group_by(sub.c.type).order_by(sub.c.type)
        )
        by_priority = await self.db.execute(
            select(sub.c.priority, func.count()).group_by(sub.c.priority).order_by(sub.c.priority)
        )

        return {
            "total": totals[0],
            "unread": int(totals[1]),
            "action_required": int(totals[2]),
            "by_type": {t: c for t, c in by_type.all()},
            "by_priority": {p: c for p, c in by_priority.all()},
        }

    async def list_for_user(
        self,
        user_id: uuid.UUID,
        unread_only: bool = False,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Notification], int]:
        conditions = [Notification.user_id == user_id, Notification.archived.is_(False)]
        if unread_only:
            conditions.append(Notification.is_read.is_(False))

        total = (
            await self.db.execute(select(func.count()).select_from(Notification).where(*conditions))
        ).scalar_one()
        result = await self.db.execute(
            select(Notification)
            .where(*conditions)
            .order_by(Notification.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def unread_count(self, user_id: uuid.UUID) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(Notification).where(
                Notification.user_id == user_id,
                Notification.is_read.is_(False),
                Notification.archived.is_(False),
            )
        )
        return result.scalar_one()

    async def mark_read(self, notification_id: uuid.UUID, user_id: uuid.UUID) -> Notification:
        result = await self.db.execute(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.user_id == user_id,
            )
        )
        notification = result.scalar_one_or_none()
        if notification is None:
            raise NotificationNotFoundError("Notification not found")
        notification.is_read = True
        notification.updated_at = utcnow()
        await self.db.flush()
        return notification

    async def mark_all_read(self, user_id: uuid.UUID) -> int:
        result = await self.db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount


async def run_notification_sweep(session_factory: Any) -> dict[str, int]:
    """Run the overdue and due-soon checks in one session. Returns a
    summary dict; cleanup is scheduled separately."""
    summary: dict[str, int] = {}
    async with session_factory() as db:
        service = NotificationService(db)
        summary["overdue"] = await service.notify_overdue_tasks()
        summary["due_soon"] = await service.check_upcoming_due_dates()
        await db.commit()
    logger.info("Notification sweep: %s", summary)
    return summary
