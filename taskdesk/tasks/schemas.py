"""Task Pydantic v2 schemas — task forms, wire payloads, list envelopes.

Naming conventions:
  - *Form           → editable state of a create/edit dialog
  - *Payload        → body forwarded to the upstream portal
  - *Update         → request bodies (write)
  - *Response / *Out → response bodies (read)

Wire keys are camelCase (``assignedTo``, ``daysOfWeek``); snake_case is accepted
on input as well.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from taskdesk.common.constants import (
    RECIPIENT_ACK_STATUSES,
    AcknowledgementStatus,
    AssigneeType,
    BranchSelectionType,
    RecurrenceFrequency,
    TaskPriority,
    TaskStatus,
    WorkType,
)
from taskdesk.common.pagination import PaginationMeta


class CamelModel(BaseModel):
    """Base for models that travel in the portal's camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _date_part(value: Any) -> Any:
    """Accept ISO timestamps for date fields (``2025-01-10T00:00:00.000Z``)."""
    value = _blank_to_none(value)
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str) and len(value) > 10 and value[10] == "T":
        return value[:10]
    return value


def _member_id(value: Any) -> Any:
    if isinstance(value, dict):
        return value.get("_id") or value.get("id")
    return value


# ═════════════════════════════════════════════════════════════════════
# Audience
# ═════════════════════════════════════════════════════════════════════


class AssignedTo(CamelModel):
    """Who a task targets: toggles, explicit people, and scope filters."""

    include_all_employees: bool = False
    include_all_hods: bool = False
    employees: list[str] = Field(default_factory=list)
    hods: list[str] = Field(default_factory=list)
    departments: list[str] = Field(default_factory=list)
    campuses: list[str] = Field(default_factory=list)

    @field_validator("employees", "hods", mode="before")
    @classmethod
    def _ids_from_members(cls, v: Any) -> Any:
        # Populated upstream documents collapse to their ids
        if v is None:
            return []
        if isinstance(v, list):
            return [str(_member_id(item)) for item in v if _member_id(item)]
        return v

    @field_validator("departments", "campuses", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    @property
    def has_targets(self) -> bool:
        return bool(
            self.include_all_employees
            or self.include_all_hods
            or self.employees
            or self.hods
        )


# ═════════════════════════════════════════════════════════════════════
# Recurrence
# ═════════════════════════════════════════════════════════════════════


class Recurrence(CamelModel):
    """Repeat rule; invalid input degrades to safe defaults instead of failing."""

    frequency: RecurrenceFrequency = RecurrenceFrequency.none
    interval: int = 1
    days_of_week: list[int] = Field(default_factory=list)
    end_date: Optional[date] = None

    @field_validator("frequency", mode="before")
    @classmethod
    def _coerce_frequency(cls, v: Any) -> Any:
        if isinstance(v, RecurrenceFrequency):
            return v
        try:
            return RecurrenceFrequency(str(v).strip().lower())
        except ValueError:
            return RecurrenceFrequency.none

    @field_validator("interval", mode="before")
    @classmethod
    def _coerce_interval(cls, v: Any) -> int:
        if isinstance(v, bool):
            return 1
        try:
            number = int(float(v))
        except (TypeError, ValueError):
            return 1
        return number if number > 0 else 1

    @field_validator("days_of_week", mode="before")
    @classmethod
    def _coerce_days(cls, v: Any) -> list[int]:
        if not isinstance(v, (list, tuple, set)):
            return []
        days: list[int] = []
        for item in v:
            if isinstance(item, bool):
                continue
            try:
                day = int(item)
            except (TypeError, ValueError):
                continue
            if 0 <= day <= 6 and day not in days:
                days.append(day)
        return days

    @field_validator("end_date", mode="before")
    @classmethod
    def _coerce_end_date(cls, v: Any) -> Any:
        v = _date_part(v)
        if isinstance(v, str):
            try:
                return date.fromisoformat(v)
            except ValueError:
                return None
        return v


# ═════════════════════════════════════════════════════════════════════
# Task form / payload
# ═════════════════════════════════════════════════════════════════════


class TaskForm(CamelModel):
    """State of the create/edit dialog, including UI-only audience modes."""

    title: str = ""
    description: str = ""
    due_date: Optional[date] = None
    priority: TaskPriority = TaskPriority.medium
    status: TaskStatus = TaskStatus.active
    require_acknowledgement: bool = False
    work_type: Optional[WorkType] = None
    assignee_type: Optional[AssigneeType] = None
    branch_selection_type: Optional[BranchSelectionType] = None
    assigned_to: AssignedTo = Field(default_factory=AssignedTo)
    recurrence: Recurrence = Field(default_factory=Recurrence)
    attachments: list[str] = Field(default_factory=list)

    @field_validator("work_type", "assignee_type", "branch_selection_type", mode="before")
    @classmethod
    def _empty_choice(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("due_date", mode="before")
    @classmethod
    def _due_date(cls, v: Any) -> Any:
        return _date_part(v)

    @field_validator("priority", mode="before")
    @classmethod
    def _priority_default(cls, v: Any) -> Any:
        return _blank_to_none(v) or TaskPriority.medium

    @field_validator("status", mode="before")
    @classmethod
    def _status_default(cls, v: Any) -> Any:
        return _blank_to_none(v) or TaskStatus.active

    @field_validator("attachments", mode="before")
    @classmethod
    def _attachments(cls, v: Any) -> Any:
        if v is None:
            return []
        return [item if isinstance(item, str) else "" for item in v] if isinstance(v, list) else v


class TaskPayload(CamelModel):
    """Body sent to the upstream create/update routes."""

    title: str
    description: str
    due_date: Optional[date] = None
    priority: TaskPriority
    status: TaskStatus
    require_acknowledgement: bool
    assigned_to: AssignedTo
    recurrence: Recurrence
    attachments: list[str]

    def to_upstream(self, *, include_campuses: bool = True) -> dict[str, Any]:
        body = self.model_dump(mode="json", by_alias=True)
        if not include_campuses:
            body["assignedTo"].pop("campuses", None)
        return body


# ═════════════════════════════════════════════════════════════════════
# Form transitions
# ═════════════════════════════════════════════════════════════════════


TransitionAction = Literal[
    "work_type",
    "assignee_type",
    "branch_selection_type",
    "departments",
    "campuses",
    "toggle",
    "day",
    "members",
]


class FormTransition(CamelModel):
    """One UI interaction applied to a form on the server side."""

    action: TransitionAction
    form: TaskForm
    value: Any = None


class FormTransitionResponse(CamelModel):
    form: TaskForm


# ═════════════════════════════════════════════════════════════════════
# Assignment options / preview
# ═════════════════════════════════════════════════════════════════════


class AssignmentOptions(CamelModel):
    """Everything the audience pickers can offer for one role."""

    employees: list[dict[str, Any]] = Field(default_factory=list)
    hods: list[dict[str, Any]] = Field(default_factory=list)
    departments: list[str] = Field(default_factory=list)
    campuses: list[str] = Field(default_factory=list)


class RecipientPreview(CamelModel):
    employees: list[str] = Field(default_factory=list)
    hods: list[str] = Field(default_factory=list)
    employee_count: int = 0
    hod_count: int = 0


class TaskPreviewResponse(CamelModel):
    payload: dict[str, Any]
    audience_summary: str
    recurrence_summary: str
    recipients: RecipientPreview
    upcoming_occurrences: list[date] = Field(default_factory=list)


# ═════════════════════════════════════════════════════════════════════
# Acknowledgements
# ═════════════════════════════════════════════════════════════════════


class AcknowledgementSummary(CamelModel):
    responses: int = 0
    acknowledged: int = 0
    completed: int = 0
    pending: int = 0


class AcknowledgementUpdate(CamelModel):
    """Recipient response: acknowledged or completed, with optional evidence."""

    status: AcknowledgementStatus = AcknowledgementStatus.acknowledged
    comment: str = ""
    proof_url: str = ""

    @field_validator("status")
    @classmethod
    def _recipient_status(cls, v: AcknowledgementStatus) -> AcknowledgementStatus:
        if v not in RECIPIENT_ACK_STATUSES:
            raise ValueError("Invalid acknowledgement status.")
        return v

    @field_validator("comment", "proof_url", mode="before")
    @classmethod
    def _trim(cls, v: Any) -> Any:
        return "" if v is None else (v.strip() if isinstance(v, str) else v)


# ═════════════════════════════════════════════════════════════════════
# Lists
# ═════════════════════════════════════════════════════════════════════


class ManagerKpis(CamelModel):
    total_tasks: int = 0
    active_tasks: int = 0
    completed_tasks: int = 0
    overdue_tasks: int = 0
    # HOD dashboards only
    pending_acknowledgements: Optional[int] = None


class RecipientKpis(CamelModel):
    total_tasks: int = 0
    pending_acknowledgements: int = 0
    acknowledged_tasks: int = 0
    completed_acknowledgements: int = 0
    overdue_tasks: int = 0
    critical_tasks: int = 0
    high_priority_tasks: int = 0


class ManagedTaskListResponse(CamelModel):
    data: list[dict[str, Any]]
    meta: PaginationMeta
    kpis: ManagerKpis


class InboxListResponse(CamelModel):
    data: list[dict[str, Any]]
    meta: PaginationMeta
    kpis: RecipientKpis


class TaskMutationResponse(CamelModel):
    message: str
    task: Optional[dict[str, Any]] = None
