"""Role assignment and transition validation.

Builds on the static tables in ``hopebridge.rbac`` to answer the questions
the admin routes ask before changing a user's role: may this assigner give
this role, is it a self-change, is it a sensitive elevation or a demotion.
"""
from __future__ import annotations

import dataclasses

from hopebridge.rbac import (
    ROLE_HIERARCHY,
    Permission,
    UserRole,
    can_assign_role,
    has_permission,
    parse_role,
    role_rank,
)


@dataclasses.dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    error: str | None = None
    warning: str | None = None


VALID = ValidationResult(is_valid=True)


ACTION_PERMISSIONS: dict[str, Permission] = {
    "create_task": Permission.CREATE_TASKS,
    "assign_task": Permission.ASSIGN_TASKS,
    "view_all_tasks": Permission.VIEW_ALL_TASKS,
    "manage_projects": Permission.MANAGE_PROJECTS,
    "manage_content": Permission.MANAGE_CONTENT,
    "view_analytics": Permission.VIEW_ANALYTICS,
    "manage_finance": Permission.MANAGE_FINANCE,
    "manage_hr": Permission.MANAGE_HR,
    "manage_procurement": Permission.MANAGE_PROCUREMENT,
    "manage_inventory": Permission.MANAGE_INVENTORY,
    "send_messages": Permission.SEND_MESSAGES,
    "view_reports": Permission.VIEW_REPORTS,
}

SENSITIVE_TRANSITIONS: dict[tuple[UserRole, UserRole], str] = {
    (UserRole.USER, UserRole.ADMIN): "Elevating user to Admin level",
    (UserRole.USER, UserRole.SUPER_ADMIN): "Elevating user to Super Admin level",
    (UserRole.FIELD_OFFICER, UserRole.ADMIN): "Elevating Field Officer to Admin level",
    (UserRole.HR, UserRole.SUPER_ADMIN): "Elevating HR to Super Admin level",
    (UserRole.FINANCE, UserRole.SUPER_ADMIN): "Elevating Finance to Super Admin level",
}


def validate_role_assignment(
    assigner_role: UserRole | str | None,
    target_role: UserRole | str | None,
    target_user_id: str | None = None,
    assigner_user_id: str | None = None,
) -> ValidationResult:
    """Check that *assigner_role* may give *target_role* to a user."""
    if not has_permission(assigner_role, Permission.MANAGE_USERS):
        return ValidationResult(
            is_valid=False,
            error="Only authorized administrators can assign or update roles",
        )

    if not can_assign_role(assigner_role, target_role):
        return ValidationResult(is_valid=False, error="Insufficient privileges to assign this role")

    if target_user_id and assigner_user_id and str(target_user_id) == str(assigner_user_id):
        if parse_role(assigner_role) is not UserRole.SUPER_ADMIN:
            return ValidationResult(is_valid=False, error="Cannot modify your own role")
        return ValidationResult(is_valid=True, warning="Super Admin modifying their own role")

    return VALID


def validate_role_action(role: UserRole | str | None, action: str) -> ValidationResult:
    permission = ACTION_PERMISSIONS.get(action)
    if permission is None:
        return ValidationResult(is_valid=False, error=f"Unknown action: {action}")

    if not has_permission(role, permission):
        role_name = role.value if isinstance(role, UserRole) else role
        return ValidationResult(
            is_valid=False,
            error=f"Role {role_name} does not have permission to {action.replace('_', ' ')}",
        )
    return VALID


def validate_role_transition(
    current_role: UserRole | str | None,
    new_role: UserRole | str | None,
    assigner_role: UserRole | str | None,
    target_user_id: str | None = None,
    assigner_user_id: str | None = None,
) -> ValidationResult:
    """Validate the assignment, then flag sensitive elevations and demotions."""
    result = validate_role_assignment(assigner_role, new_role, target_user_id, assigner_user_id)
    if not result.is_valid:
        return result

    current = parse_role(current_role)
    new = parse_role(new_role)

    warning = SENSITIVE_TRANSITIONS.get((current, new))
    if warning:
        return ValidationResult(is_valid=True, warning=warning)

    if current is not None and role_rank(new) > role_rank(current):
        return ValidationResult(
            is_valid=True,
            warning=f"Demoting from {current.value} to {new.value}",
        )

    return result


def get_role_restrictions(role: UserRole | str | None) -> dict:
    """Which roles the caller may hand out, for the role picker UI."""
    all_roles = [r.value for r in ROLE_HIERARCHY]

    if not has_permission(role, Permission.MANAGE_USERS):
        return {
            "can_assign_roles": [],
            "cannot_assign_roles": all_roles,
            "reason": (
                "Only authorized administrators can assign or update roles. "
                "Roles are hidden from general users."
            ),
        }

    assignable = [r.value for r in ROLE_HIERARCHY if can_assign_role(role, r)]
    blocked = [r.value for r in ROLE_HIERARCHY if not can_assign_role(role, r)]

    parsed = parse_role(role)
    if parsed is UserRole.SUPER_ADMIN:
        reason = "Super Admin can assign any role"
    elif parsed is UserRole.GENERAL_MANAGER:
        reason = "General Manager can assign roles below General Manager"
    else:
        reason = "Limited role assignment permissions"

    return {
        "can_assign_roles": assignable,
        "cannot_assign_roles": blocked,
        "reason": reason,
    }


def validate_bulk_role_assignment(
    assigner_role: UserRole | str | None,
    assignments: list[tuple[str, UserRole | str]],
    assigner_user_id: str | None = None,
) -> ValidationResult:
    """All-or-nothing check for ``[(user_id, new_role), ...]``."""
    if not has_permission(assigner_role, Permission.MANAGE_USERS):
        return ValidationResult(
            is_valid=False,
            error="Only authorized administrators can perform bulk role assignments",
        )

    errors: list[str] = []
    warnings: list[str] = []
    for user_id, new_role in assignments:
        result = validate_role_assignment(assigner_role, new_role, user_id, assigner_user_id)
        if not result.is_valid:
            errors.append(f"User {user_id}: {result.error}")
        if result.warning:
            warnings.append(f"User {user_id}: {result.warning}")

    if errors:
        return ValidationResult(is_valid=False, error=f"Bulk assignment failed: {'; '.join(errors)}")
    if warnings:
        return ValidationResult(
            is_valid=True,
            warning=f"Bulk assignment completed with warnings: {'; '.join(warnings)}",
        )
    return VALID
