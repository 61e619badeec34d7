"""User model for dashboard authentication and role-based access."""
from __future__ import annotations

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from hopebridge.database import Base
from hopebridge.models.base import TimestampMixin, UUIDPrimaryKeyMixin, isoformat
from hopebridge.rbac import ROLE_DISPLAY_NAMES, UserRole, parse_role


class User(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A dashboard user. ``role`` holds an exact ``UserRole`` value."""
    __tablename__ = "users"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(200), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(200), nullable=False)
    role: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default=UserRole.USER.value,
    )
    department: Mapped[str | None] = mapped_column(String(100))
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    email_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    updated_by: Mapped[str | None] = mapped_column(String(200))

    @property
    def role_display_name(self) -> str:
        role = parse_role(self.role)
        return ROLE_DISPLAY_NAMES[role] if role else self.role

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "role_display_name": self.role_display_name,
            "department": self.department,
            "is_active": self.is_active,
            "email_verified": self.email_verified,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }

    def __repr__(self) -> str:
        return f"<User {self.email!r} role={self.role!r}>"
