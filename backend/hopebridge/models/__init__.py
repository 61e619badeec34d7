from hopebridge.models.activity import ActivityLog
from hopebridge.models.message import Message
from hopebridge.models.notification import Notification
from hopebridge.models.task import Task, TaskActivity
from hopebridge.models.user import User

__all__ = [
    # Users
    "User",
    # Task management
    "Task",
    "TaskActivity",
    # Messaging
    "Message",
    # Notifications
    "Notification",
    # Audit trail
    "ActivityLog",
]
