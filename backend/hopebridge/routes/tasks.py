"""Task management routes --- create, list, submit, review, cancel."""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from hopebridge.database import get_db
from hopebridge.middleware.auth import get_current_user
from hopebridge.services.task_service import (
    SORT_COLUMNS,
    TaskAccessError,
    TaskError,
    TaskNotFoundError,
    TaskService,
)

router = APIRouter(prefix="/api/task-management", tags=["tasks"])

Priority = Literal["low", "medium", "high", "urgent"]


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------


class FormField(BaseModel):
    id: str = Field(min_length=1)
    type: Literal[
        "text", "textarea", "number", "email", "date", "select", "checkbox", "radio", "file"
    ] = "text"
    label: str = Field(min_length=1)
    required: bool = False
    options: list[str] | None = None
    placeholder: str | None = None


class TaskForm(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1, max_length=2000)
    fields: list[FormField] = Field(min_length=1)
    instructions: str | None = None


class TaskCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1, max_length=2000)
    assigned_to: uuid.UUID
    priority: Priority = "medium"
    form_data: TaskForm
    attachments: list[dict[str, Any]] = []
    category: str | None = Field(default=None, max_length=100)
    tags: list[str] = []
    estimated_hours: float | None = Field(default=None, ge=0)
    due_date: datetime | None = None


class TaskUpdate(BaseModel):
    operation: Literal["submit_response", "review_and_complete", "update_status"]
    response: dict[str, Any] | None = None
    uploaded_files: list[dict[str, Any]] = []
    review_comment: str | None = Field(default=None, max_length=1000)
    status: str | None = None


def _http_error(exc: TaskError) -> HTTPException:
    if isinstance(exc, TaskNotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, TaskAccessError):
        return HTTPException(status_code=403, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


# ---------------------------------------------------------------------------
# Collection
# ---------------------------------------------------------------------------


@router.get("")
async def list_tasks(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort_by: str = Query("createdAt"),
    sort_order: Literal["asc", "desc"] = Query("desc"),
    status: str | None = Query(None),
    priority: str | None = Query(None),
    category: str | None = Query(None),
    assigned_to: uuid.UUID | None = Query(None),
    assigned_by: uuid.UUID | None = Query(None),
    search: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    if sort_by not in SORT_COLUMNS:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid sort field. Use one of: {', '.join(SORT_COLUMNS)}",
        )

    result = await TaskService(db).list_tasks(
        user,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
        status=status,
        priority=priority,
        category=category,
        assigned_to=assigned_to,
        assigned_by=assigned_by,
        search=search,
    )
    result["tasks"] = [t.to_dict(include_activities=False) for t in result["tasks"]]
    result["user_role"] = user["role"]
    return result


@router.post("", status_code=201)
async def create_task(
    body: TaskCreate,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    try:
        task = await TaskService(db).create_task(body.model_dump(), user)
    except TaskError as exc:
        raise _http_error(exc)
    await db.commit()
    return {"task": task.to_dict()}


# Static paths are registered before ``/{task_id}``.


@router.get("/stats")
async def task_stats(
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    return await TaskService(db).get_statistics(user)


@router.get("/available-users")
async def available_users(
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    try:
        users = await TaskService(db).get_available_users(user)
    except TaskError as exc:
        raise _http_error(exc)
    return {"users": users, "total": len(users)}


# ---------------------------------------------------------------------------
# Single task
# ---------------------------------------------------------------------------


@router.get("/{task_id}")
async def get_task(
    task_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    try:
        task = await TaskService(db).get_task(task_id, user)
    except TaskError as exc:
        raise _http_error(exc)
    await db.commit()
    return {"task": task.to_dict()}


@router.patch("/{task_id}")
async def update_task(
    task_id: uuid.UUID,
    body: TaskUpdate,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    """Apply one lifecycle operation to a task."""
    service = TaskService(db)
    try:
        if body.operation == "submit_response":
            if body.response is None:
                raise TaskError("Response data is required")
            task = await service.submit_response(task_id, body.response, body.uploaded_files, user)
            message = "Task submitted successfully"
        elif body.operation == "review_and_complete":
            if not (body.review_comment or "").strip():
                raise TaskError("Review comment is required")
            task = await service.review_and_complete(task_id, body.review_comment, user)
            message = "Task completed successfully"
        else:
            if not body.status:
                raise TaskError("Status is required")
            task = await service.update_status(task_id, body.status, user)
            message = "Task status updated successfully"
    except TaskError as exc:
        raise _http_error(exc)

    await db.commit()
    return {"task": task.to_dict(), "message": message}
