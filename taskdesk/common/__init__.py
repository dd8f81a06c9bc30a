"""Common module — shared utilities for the task desk gateway."""

from taskdesk.common.audit import AuditTrail, create_audit_entry
from taskdesk.common.constants import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    PERMISSIONS,
    PRIORITY_RANK,
    RECIPIENT_ROLES,
    WEEKDAY_LABELS,
    AcknowledgementStatus,
    AssigneeType,
    BranchSelectionType,
    HodType,
    RecurrenceFrequency,
    TaskPriority,
    TaskStatus,
    UserRole,
    WorkType,
)
from taskdesk.common.exceptions import (
    AppException,
    ForbiddenException,
    NotFoundException,
    UnauthorizedException,
    UpstreamError,
    ValidationException,
    register_exception_handlers,
)
from taskdesk.common.pagination import (
    PaginatedResponse,
    PaginationMeta,
    PaginationParams,
    paginate,
)

__all__ = [
    # Audit
    "AuditTrail",
    "create_audit_entry",
    # Constants / Enums
    "AcknowledgementStatus",
    "AssigneeType",
    "BranchSelectionType",
    "HodType",
    "RecurrenceFrequency",
    "TaskPriority",
    "TaskStatus",
    "UserRole",
    "WorkType",
    "RECIPIENT_ROLES",
    "PERMISSIONS",
    "PRIORITY_RANK",
    "WEEKDAY_LABELS",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    # Exceptions
    "AppException",
    "ForbiddenException",
    "NotFoundException",
    "UnauthorizedException",
    "UpstreamError",
    "ValidationException",
    "register_exception_handlers",
    # Pagination
    "PaginatedResponse",
    "PaginationMeta",
    "PaginationParams",
    "paginate",
]
