"""Enums and constants for the task desk — matching the upstream portal's wire values."""

from __future__ import annotations

import enum


# ── Auth / Roles ────────────────────────────────────────────────────

class UserRole(str, enum.Enum):
    superadmin = "superadmin"
    principal = "principal"
    hr = "hr"
    hod = "hod"
    employee = "employee"

    @property
    def path_segment(self) -> str:
        """Upstream URL segment for this role (``/super-admin/...``)."""
        return ROLE_PATH_SEGMENTS[self]


ROLE_PATH_SEGMENTS: dict[UserRole, str] = {
    UserRole.superadmin: "super-admin",
    UserRole.principal: "principal",
    UserRole.hr: "hr",
    UserRole.hod: "hod",
    UserRole.employee: "employee",
}


class HodType(str, enum.Enum):
    teaching = "teaching"
    non_teaching = "non-teaching"


# ── Tasks ───────────────────────────────────────────────────────────

class TaskPriority(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"


class TaskStatus(str, enum.Enum):
    draft = "draft"
    active = "active"
    completed = "completed"
    archived = "archived"


class RecurrenceFrequency(str, enum.Enum):
    none = "none"
    daily = "daily"
    weekly = "weekly"
    monthly = "monthly"
    yearly = "yearly"


class AcknowledgementStatus(str, enum.Enum):
    pending = "pending"
    acknowledged = "acknowledged"
    completed = "completed"


class WorkType(str, enum.Enum):
    individual = "individual"
    group = "group"


class AssigneeType(str, enum.Enum):
    employee = "employee"
    hod = "hod"


class BranchSelectionType(str, enum.Enum):
    single = "single"
    multiple = "multiple"


# Sort weight used by recipient inboxes (highest first)
PRIORITY_RANK: dict[str, int] = {
    TaskPriority.critical.value: 4,
    TaskPriority.high.value: 3,
    TaskPriority.medium.value: 2,
    TaskPriority.low.value: 1,
}

# Python weekday() is Monday=0; the portal stores Sunday=0
WEEKDAY_LABELS: dict[int, str] = {
    0: "Sun",
    1: "Mon",
    2: "Tue",
    3: "Wed",
    4: "Thu",
    5: "Fri",
    6: "Sat",
}

# Statuses a recipient may submit (pending is the implicit initial state)
RECIPIENT_ACK_STATUSES: tuple[AcknowledgementStatus, ...] = (
    AcknowledgementStatus.acknowledged,
    AcknowledgementStatus.completed,
)

RECIPIENT_ROLES: tuple[UserRole, ...] = (
    UserRole.employee,
    UserRole.hod,
)


# ── Permissions ─────────────────────────────────────────────────────

PERMISSIONS: dict[UserRole, list[str]] = {
    UserRole.employee: [
        "task:read_own",
        "task:acknowledge",
    ],
    UserRole.hod: [
        "task:read_own",
        "task:acknowledge",
        "task:manage",
    ],
    UserRole.principal: [
        "task:manage",
    ],
    UserRole.hr: [
        "task:manage",
    ],
    UserRole.superadmin: [
        "task:manage",
    ],
}

# ── Misc constants ──────────────────────────────────────────────────

MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 50
HOD_AUDIENCE_NAME_LIMIT = 5
