"""Per-role route registry for the upstream portal REST API.

Each dashboard section talks to a different family of upstream routes; this
module is the single place those paths live.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from taskdesk.common.constants import UserRole
from taskdesk.common.exceptions import ForbiddenException
from taskdesk.config import settings

ACTIVE_CAMPUSES_PATH = "/super-admin/campuses/active"


@dataclass(frozen=True)
class ManageRoutes:
    """Task CRUD routes for a managing role."""

    list_path: str
    create_path: str
    item_template: str

    def item(self, task_id: str) -> str:
        return self.item_template.format(task_id=task_id)


@dataclass(frozen=True)
class InboxRoutes:
    """Recipient task routes (list + acknowledgement)."""

    list_path: str
    ack_template: str

    def acknowledgement(self, task_id: str) -> str:
        return self.ack_template.format(task_id=task_id)


@dataclass(frozen=True)
class MetadataSource:
    """One upstream collection used to build assignment options."""

    key: str
    path: str
    error_message: str
    params: dict[str, Any] = field(default_factory=dict)
    # Some routes wrap the list: {"data": [...]} or {"employees": [...]}
    unwrap: Optional[str] = None


MANAGE_ROUTES: dict[UserRole, ManageRoutes] = {
    UserRole.hr: ManageRoutes(
        list_path="/hr/tasks",
        create_path="/hr/tasks",
        item_template="/hr/tasks/{task_id}",
    ),
    UserRole.principal: ManageRoutes(
        list_path="/principal/tasks/manage",
        create_path="/principal/tasks",
        item_template="/principal/tasks/{task_id}",
    ),
    UserRole.superadmin: ManageRoutes(
        list_path="/super-admin/tasks",
        create_path="/super-admin/tasks",
        item_template="/super-admin/tasks/{task_id}",
    ),
    UserRole.hod: ManageRoutes(
        list_path="/hod/tasks/manage",
        create_path="/hod/tasks/manage",
        item_template="/hod/tasks/manage/{task_id}",
    ),
}

INBOX_ROUTES: dict[UserRole, InboxRoutes] = {
    UserRole.employee: InboxRoutes(
        list_path="/employee/tasks",
        ack_template="/employee/tasks/{task_id}/acknowledgements",
    ),
    UserRole.hod: InboxRoutes(
        list_path="/hod/tasks",
        ack_template="/hod/tasks/{task_id}/acknowledgements",
    ),
}

# Roles whose section aborts on any metadata failure instead of degrading
STRICT_METADATA_ROLES: frozenset[UserRole] = frozenset({UserRole.principal, UserRole.hod})


def metadata_sources(role: UserRole) -> tuple[MetadataSource, ...]:
    """Return the collections a managing role loads for its assignment form."""
    if role == UserRole.hr:
        return (
            MetadataSource("employees", "/hr/employees", "Failed to load employees", {"status": "active"}),
            MetadataSource("hods", "/hr/hods", "Failed to load HODs"),
            MetadataSource("branches", "/hr/branches", "Failed to load branches", unwrap="data"),
        )
    if role == UserRole.principal:
        return (
            MetadataSource("employees", "/principal/employees", "Failed to load employees", {"status": "active"}),
            MetadataSource("hods", "/principal/hods", "Failed to load HODs"),
            MetadataSource("branches", "/principal/branches", "Failed to load branches"),
        )
    if role == UserRole.superadmin:
        return (
            MetadataSource(
                "employees",
                "/super-admin/employees",
                "Failed to load employees",
                {"status": "active", "limit": settings.METADATA_EMPLOYEE_LIMIT},
                unwrap="employees",
            ),
            MetadataSource("hods", "/super-admin/hods", "Failed to load HODs"),
            MetadataSource("campuses", "/super-admin/campuses", "Failed to load campuses"),
        )
    if role == UserRole.hod:
        return (
            MetadataSource("employees", "/hod/department/employees", "Failed to fetch employees"),
        )
    raise ForbiddenException(detail=f"Role '{role.value}' cannot manage tasks.")


def manage_routes(role: UserRole) -> ManageRoutes:
    try:
        return MANAGE_ROUTES[role]
    except KeyError:
        raise ForbiddenException(detail=f"Role '{role.value}' cannot manage tasks.") from None


def inbox_routes(role: UserRole) -> InboxRoutes:
    try:
        return INBOX_ROUTES[role]
    except KeyError:
        raise ForbiddenException(detail=f"Role '{role.value}' does not receive tasks.") from None


def login_path(role: UserRole) -> str:
    return f"/{role.path_segment}/login"
