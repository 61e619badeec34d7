"""Task management models: assigned tasks with a form to fill in, and their activity history."""
from __future__ import annotations

import datetime
import uuid

from sqlalchemy import JSON, DateTime, Float, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hopebridge.database import Base
from hopebridge.models.base import TimestampMixin, UUIDPrimaryKeyMixin, isoformat, utcnow

TASK_STATUSES = ("PENDING", "IN_PROGRESS", "SUBMITTED", "COMPLETED", "CANCELLED")
TASK_PRIORITIES = ("low", "medium", "high", "urgent")

# Statuses that still count toward "open" / overdue.
OPEN_TASK_STATUSES = ("PENDING", "IN_PROGRESS")


class Task(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A task assigned by a manager to one user."""
    __tablename__ = "tasks"

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)

    assigned_by: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False, index=True
    )
    assigned_by_name: Mapped[str] = mapped_column(String(100), nullable=False)
    assigned_by_role: Mapped[str] = mapped_column(String(50), nullable=False)
    assigned_to: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False, index=True
    )
    assigned_to_name: Mapped[str] = mapped_column(String(100), nullable=False)
    assigned_to_role: Mapped[str] = mapped_column(String(50), nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PENDING", index=True)
    priority: Mapped[str] = mapped_column(String(10), nullable=False, default="medium")

    form_data: Mapped[dict] = mapped_column(JSON, nullable=False)
    attachments: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    employee_response: Mapped[dict | None] = mapped_column(JSON)
    response_files: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    category: Mapped[str | None] = mapped_column(String(100))
    tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    estimated_hours: Mapped[float | None] = mapped_column(Float)
    due_date: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), index=True)

    submitted_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True))
    review_comment: Mapped[str | None] = mapped_column(Text)

    # ------ relationships ------
    activities: Mapped[list[TaskActivity]] = relationship(
        "TaskActivity",
        back_populates="task",
        lazy="selectin",
        order_by="TaskActivity.created_at",
        cascade="all, delete-orphan",
    )

    def to_dict(self, include_activities: bool = True) -> dict:
        data = {
            "id": str(self.id),
            "title": self.title,
            "description": self.description,
            "assigned_by": str(self.assigned_by),
            "assigned_by_name": self.assigned_by_name,
            "assigned_by_role": self.assigned_by_role,
            "assigned_to": str(self.assigned_to),
            "assigned_to_name": self.assigned_to_name,
            "assigned_to_role": self.assigned_to_role,
            "status": self.status,
            "priority": self.priority,
            "form_data": self.form_data,
            "attachments": self.attachments,
            "employee_response": self.employee_response,
            "response_files": self.response_files,
            "category": self.category,
            "tags": self.tags,
            "estimated_hours": self.estimated_hours,
            "due_date": isoformat(self.due_date),
            "submitted_at": isoformat(self.submitted_at),
            "completed_at": isoformat(self.completed_at),
            "review_comment": self.review_comment,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }
        if include_activities:
            data["activities"] = [a.to_dict() for a in self.activities]
        return data

    def __repr__(self) -> str:
        return f"<Task {self.title!r} status={self.status!r}>"


class TaskActivity(UUIDPrimaryKeyMixin, Base):
    """One entry in a task's history (created, viewed, submitted, ...)."""
    __tablename__ = "task_activities"

    task_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    action: Mapped[str] = mapped_column(String(30), nullable=False)
    performed_by: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    performed_by_role: Mapped[str] = mapped_column(String(50), nullable=False)
    comment: Mapped[str | None] = mapped_column(Text)
    details: Mapped[dict | None] = mapped_column(JSON)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    task: Mapped[Task] = relationship("Task", back_populates="activities")

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "action": self.action,
            "performed_by": str(self.performed_by),
            "performed_by_role": self.performed_by_role,
            "comment": self.comment,
            "details": self.details,
            "timestamp": isoformat(self.created_at),
        }
