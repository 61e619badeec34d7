"""Task management service.

Managers (``TASK_MANAGER_ROLES``) create tasks for individual users; each
task carries a small form the assignee fills in and submits; the manager
then reviews and completes it.

    PENDING ──► IN_PROGRESS ──► SUBMITTED ──► COMPLETED
       │             │              │
       └─────────────┴──────────────┴──► CANCELLED
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from hopebridge.models.base import as_utc, utcnow
from hopebridge.models.task import OPEN_TASK_STATUSES, TASK_STATUSES, Task, TaskActivity
from hopebridge.models.user import User
from hopebridge.rbac import TASK_MANAGER_ROLES, Permission, has_permission, parse_role
from hopebridge.services.notification_service import NotificationService

UPDATABLE_STATUSES = ("PENDING", "IN_PROGRESS", "CANCELLED")

_PRIORITY_ORDER = case(
    {"low": 0, "medium": 1, "high": 2, "urgent": 3},
    value=Task.priority,
    else_=1,
)

SORT_COLUMNS = {
    "createdAt": Task.created_at,
    "updatedAt": Task.updated_at,
    "dueDate": Task.due_date,
    "priority": _PRIORITY_ORDER,
    "title": Task.title,
}


class TaskError(Exception):
    """Raised when a task operation is invalid (bad input or wrong state)."""


class TaskNotFoundError(TaskError):
    pass


class TaskAccessError(TaskError):
    """The caller's role or relationship to the task does not allow this."""


class TaskStateError(TaskError):
    pass


def _uuid(value: Any) -> uuid.UUID:
    return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))


def _to_utc(value: datetime | None) -> datetime | None:
    return as_utc(value).astimezone(timezone.utc) if value is not None else None


def is_task_manager(role: str) -> bool:
    return parse_role(role) in TASK_MANAGER_ROLES


class TaskService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.notifications = NotificationService(db)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _load(self, task_id: uuid.UUID) -> Task:
        result = await self.db.execute(select(Task).where(Task.id == task_id))
        task = result.scalar_one_or_none()
        if task is None:
            raise TaskNotFoundError("Task not found")
        return task

    @staticmethod
    def _record(task: Task, action: str, user: dict[str, Any], comment: str, details: dict | None = None) -> None:
        task.activities.append(TaskActivity(
            action=action,
            performed_by=_uuid(user["user_id"]),
            performed_by_role=user["role"],
            comment=comment,
            details=details,
        ))

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create_task(self, data: dict[str, Any], creator: dict[str, Any]) -> Task:
        role = creator["role"]
        if not has_permission(role, Permission.CREATE_TASKS):
            raise TaskAccessError("Insufficient permissions to create tasks")
        if not is_task_manager(role):
            raise TaskAccessError("Only General Manager can assign tasks to all users")

        result = await self.db.execute(
            select(User).where(User.id == _uuid(data["assigned_to"]), User.is_active.is_(True))
        )
        assignee = result.scalar_one_or_none()
        if assignee is None:
            raise TaskError("Assigned user not found or inactive")

        task = Task(
            title=data["title"],
            description=data["description"],
            assigned_by=_uuid(creator["user_id"]),
            assigned_by_name=creator["name"],
            assigned_by_role=role,
            assigned_to=assignee.id,
            assigned_to_name=assignee.name,
            assigned_to_role=assignee.role,
            status="PENDING",
            priority=data.get("priority") or "medium",
            form_data=data["form_data"],
            attachments=data.get("attachments") or [],
            response_files=[],
            category=data.get("category"),
            tags=data.get("tags") or [],
            estimated_hours=data.get("estimated_hours"),
            due_date=_to_utc(data.get("due_date")),
            activities=[],
        )
        self._record(task, "CREATED", creator, f"Task created and assigned to {assignee.name}")
        self._record(task, "ASSIGNED", creator, f"Task assigned to {assignee.name} ({assignee.role})")
        self.db.add(task)
        await self.db.flush()

        await self.notifications.notify_task_assignment(task)
        return task

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def list_tasks(
        self,
        user: dict[str, Any],
        page: int = 1,
        limit: int = 10,
        sort_by: str = "createdAt",
        sort_order: str = "desc",
        status: str | None = None,
        priority: str | None = None,
        category: str | None = None,
        assigned_to: uuid.UUID | None = None,
        assigned_by: uuid.UUID | None = None,
        search: str | None = None,
    ) -> dict[str, Any]:
        """Users with ``canViewAllTasks`` see every task; others see only
        the tasks assigned to them."""
        view_all = has_permission(user["role"], Permission.VIEW_ALL_TASKS)

        conditions = []
        if not view_all:
            conditions.append(Task.assigned_to == _uuid(user["user_id"]))
        elif assigned_to is not None:
            conditions.append(Task.assigned_to == assigned_to)
        if status:
            conditions.append(Task.status == status)
        if priority:
            conditions.append(Task.priority == priority)
        if category:
            conditions.append(Task.category == category)
        if assigned_by is not None:
            conditions.append(Task.assigned_by == assigned_by)
        if search:
            pattern = f"%{search}%"
            conditions.append(or_(Task.title.ilike(pattern), Task.description.ilike(pattern)))

        total = (
            await self.db.execute(select(func.count()).select_from(Task).where(*conditions))
        ).scalar_one()

        column = SORT_COLUMNS.get(sort_by, Task.created_at)
        order = column.asc() if sort_order == "asc" else column.desc()
        result = await self.db.execute(
            select(Task)
            .where(*conditions)
            .order_by(order, Task.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        tasks = list(result.scalars().all())

        return {
            "tasks": tasks,
            "total": total,
            "view_mode": "ALL_TASKS" if view_all else "MY_TASKS",
            "pagination": {
                "page": page,
                "limit": limit,
                "total_pages": (total + limit - 1) // limit,
                "has_next": page * limit < total,
                "has_prev": page > 1,
            },
        }

    async def get_task(self, task_id: uuid.UUID, user: dict[str, Any]) -> Task:
        task = await self._load(task_id)
        user_id = _uuid(user["user_id"])

        can_access = (
            task.assigned_to == user_id
            or task.assigned_by == user_id
            or has_permission(user["role"], Permission.VIEW_ALL_TASKS)
        )
        if not can_access:
            raise TaskAccessError("Access denied to this task")

        self._record(task, "VIEWED", user, "Task viewed")
        await self.db.flush()
        return task

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def submit_response(
        self,
        task_id: uuid.UUID,
        response: dict[str, Any],
        uploaded_files: list[dict],
        user: dict[str, Any],
    ) -> Task:
        task = await self._load(task_id)

        if task.assigned_to != _uuid(user["user_id"]):
            raise TaskAccessError("You can only submit tasks assigned to you")
        if task.status == "COMPLETED":
            raise TaskStateError("Cannot submit a completed task")
        if task.status == "SUBMITTED":
            raise TaskStateError("Task has already been submitted")
        if task.status == "CANCELLED":
            raise TaskStateError("Cannot submit a cancelled task")

        missing = [
            field.get("label", field.get("id"))
            for field in task.form_data.get("fields", [])
            if field.get("required") and response.get(field.get("id")) in (None, "", [])
        ]
        if missing:
            raise TaskError(f"Required fields missing: {', '.join(missing)}")

        now = utcnow()
        task.status = "SUBMITTED"
        task.employee_response = response
        task.response_files = uploaded_files
        task.submitted_at = now
        task.updated_at = now
        self._record(
            task,
            "SUBMITTED",
            user,
            "Task submitted for review",
            details={"files_uploaded": len(uploaded_files), "fields_completed": len(response)},
        )
        await self.db.flush()
        return task

    async def review_and_complete(self, task_id: uuid.UUID, review_comment: str, user: dict[str, Any]) -> Task:
        task = await self._load(task_id)

        if not (is_task_manager(user["role"]) and has_permission(user["role"], Permission.ASSIGN_TASKS)):
            raise TaskAccessError("Only General Manager can complete tasks")
        if task.status != "SUBMITTED":
            raise TaskStateError("Can only complete submitted tasks")

        now = utcnow()
        task.status = "COMPLETED"
        task.review_comment = review_comment
        task.completed_at = now
        task.updated_at = now
        self._record(task, "REVIEWED", user, review_comment)
        self._record(task, "COMPLETED", user, "Task marked as completed")
        await self.db.flush()

        await self.notifications.notify_task_completion(task, user)
        return task

    async def update_status(self, task_id: uuid.UUID, status: str, user: dict[str, Any]) -> Task:
        if status not in UPDATABLE_STATUSES:
            raise TaskError(f"Status must be one of: {', '.join(UPDATABLE_STATUSES)}")

        task = await self._load(task_id)
        user_id = _uuid(user["user_id"])

        can_update = (
            task.assigned_to == user_id
            or task.assigned_by == user_id
            or has_permission(user["role"], Permission.ASSIGN_TASKS)
        )
        if not can_update:
            raise TaskAccessError("Insufficient permissions to update this task")

        if task.status == "CANCELLED":
            raise TaskStateError("Cannot modify a cancelled task")
        if task.status == "COMPLETED" and status != "CANCELLED":
            raise TaskStateError("Cannot modify a completed task")
        if task.status == "SUBMITTED" and status != "CANCELLED":
            raise TaskStateError("Task is submitted and awaiting review")

        task.status = status
        task.updated_at = utcnow()
        self._record(task, status, user, f"Status changed to {status}")
        await self.db.flush()

        if status == "CANCELLED":
            await self.notifications.notify_task_cancellation(task, user)
        return task

    # ------------------------------------------------------------------
    # Dashboard helpers
    # ------------------------------------------------------------------

    async def get_statistics(self, user: dict[str, Any]) -> dict[str, int]:
        conditions = []
        view_all = has_permission(user["role"], Permission.VIEW_ALL_TASKS)
        if not view_all:
            conditions.append(Task.assigned_to == _uuid(user["user_id"]))

        rows = await self.db.execute(
            select(Task.status, func.count()).where(*conditions).group_by(Task.status)
        )
        counts = {status: 0 for status in TASK_STATUSES}
        counts.update({status: n for status, n in rows.all()})

        overdue = (
            await self.db.execute(
                select(func.count()).select_from(Task).where(
                    *conditions,
                    Task.status.in_(OPEN_TASK_STATUSES),
                    Task.due_date < utcnow(),
                )
            )
        ).scalar_one()

        stats = {
            "total": sum(counts.values()),
            "pending": counts["PENDING"],
            "in_progress": counts["IN_PROGRESS"],
            "submitted": counts["SUBMITTED"],
            "completed": counts["COMPLETED"],
            "cancelled": counts["CANCELLED"],
            "overdue": overdue,
        }
        if not view_all:
            stats["my_tasks_only"] = stats["total"]
        return stats

    async def get_available_users(self, user: dict[str, Any]) -> list[dict[str, Any]]:
        if not has_permission(user["role"], Permission.ASSIGN_TASKS):
            raise TaskAccessError("Insufficient permissions to view users for assignment")

        result = await self.db.execute(
            select(User).where(User.is_active.is_(True)).order_by(User.name)
        )
        return [
            {
                "id": str(u.id),
                "name": u.name,
                "email": u.email,
                "role": u.role,
                "department": u.department,
            }
            for u in result.scalars().all()
        ]
