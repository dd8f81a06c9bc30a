"""Task dialog state per managing role: defaults, transitions, payload preparation.

Each role's dashboard section behaves differently:

  - hr / principal: audience defaults to "all employees"; no client-side audience rules
  - superadmin: explicit work type (individual vs group) with assignee / branch modes
  - hod: work type restricted to own department employees; HOD targets always cleared
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Sequence

from taskdesk.auth.schemas import ViewerProfile
from taskdesk.common.constants import (
    AssigneeType,
    BranchSelectionType,
    UserRole,
    WorkType,
)
from taskdesk.common.exceptions import ValidationException
from taskdesk.tasks.audience import (
    dedupe_ids,
    sanitize_attachments,
    sanitize_string_list,
    select_campuses,
    select_departments,
    set_members,
    toggle_target,
)
from taskdesk.tasks.recurrence import normalize_recurrence, toggle_day
from taskdesk.tasks.schemas import (
    AssignedTo,
    AssignmentOptions,
    FormTransition,
    TaskForm,
    TaskPayload,
)


def _own_departments(viewer: Optional[ViewerProfile]) -> list[str]:
    if viewer and viewer.branch_code:
        return [viewer.branch_code.lower()]
    return []


def _invalid(field: str, message: str) -> ValidationException:
    return ValidationException({field: [message]})


# ═════════════════════════════════════════════════════════════════════
# Defaults
# ═════════════════════════════════════════════════════════════════════


def empty_task_form(role: UserRole, viewer: Optional[ViewerProfile] = None) -> TaskForm:
    """Blank dialog state for *role*."""
    if role in (UserRole.hr, UserRole.principal):
        return TaskForm(
            require_acknowledgement=False,
            assigned_to=AssignedTo(include_all_employees=True),
        )
    if role == UserRole.hod:
        return TaskForm(
            require_acknowledgement=True,
            assigned_to=AssignedTo(departments=_own_departments(viewer)),
        )
    return TaskForm(require_acknowledgement=True)


# ═════════════════════════════════════════════════════════════════════
# Transitions
# ═════════════════════════════════════════════════════════════════════


def change_work_type(
    role: UserRole,
    form: TaskForm,
    work_type: Optional[WorkType],
    viewer: Optional[ViewerProfile] = None,
) -> TaskForm:
    """Switching work type resets the modes and the whole audience."""
    departments = _own_departments(viewer) if role == UserRole.hod else []
    return form.model_copy(update={
        "work_type": work_type,
        "assignee_type": None,
        "branch_selection_type": None,
        "assigned_to": AssignedTo(departments=departments),
    })


def change_branch_selection_type(
    form: TaskForm,
    selection: Optional[BranchSelectionType],
) -> TaskForm:
    assigned = form.assigned_to.model_copy(update={"departments": [], "employees": []})
    return form.model_copy(update={"branch_selection_type": selection, "assigned_to": assigned})


def change_assignee_type(form: TaskForm, assignee: Optional[AssigneeType]) -> TaskForm:
    """Keep only the person list that matches the new assignee type."""
    assigned = form.assigned_to.model_copy(update={
        "employees": form.assigned_to.employees if assignee == AssigneeType.employee else [],
        "hods": form.assigned_to.hods if assignee == AssigneeType.hod else [],
    })
    return form.model_copy(update={"assignee_type": assignee, "assigned_to": assigned})


def _choice(enum_cls: Any, value: Any) -> Any:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        return enum_cls(value)
    except ValueError:
        raise _invalid("value", f"'{value}' is not a valid choice.") from None


def _string_list(value: Any) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        raise _invalid("value", "Expected a list of values.")
    return [str(item) for item in value]


def apply_transition(
    role: UserRole,
    transition: FormTransition,
    options: Optional[AssignmentOptions] = None,
    viewer: Optional[ViewerProfile] = None,
) -> TaskForm:
    """Apply one dialog interaction and return the resulting form."""
    form, value = transition.form, transition.value
    action = transition.action

    if action == "work_type":
        return change_work_type(role, form, _choice(WorkType, value), viewer)
    if action == "assignee_type":
        return change_assignee_type(form, _choice(AssigneeType, value))
    if action == "branch_selection_type":
        return change_branch_selection_type(form, _choice(BranchSelectionType, value))
    if action == "departments":
        return select_departments(form, options or AssignmentOptions(), _string_list(value))
    if action == "campuses":
        return select_campuses(form, _string_list(value))
    if action == "day":
        try:
            day = int(value)
        except (TypeError, ValueError):
            raise _invalid("value", "Weekday must be a number between 0 and 6.") from None
        if not 0 <= day <= 6:
            raise _invalid("value", "Weekday must be a number between 0 and 6.")
        return form.model_copy(update={"recurrence": toggle_day(form.recurrence, day)})

    try:
        if action == "toggle":
            return toggle_target(form, str(value))
        # members: {"field": "employees" | "hods", "ids": [...]}
        if not isinstance(value, Mapping):
            raise ValueError("Expected {'field': ..., 'ids': [...]}.")
        return set_members(form, str(value.get("field")), _string_list(value.get("ids")))
    except ValueError as exc:
        raise _invalid("value", str(exc)) from None


# ═════════════════════════════════════════════════════════════════════
# Validation + payload
# ═════════════════════════════════════════════════════════════════════


def _validate_superadmin(form: TaskForm) -> None:
    assigned = form.assigned_to
    if form.work_type is None:
        raise _invalid("work_type", "Please select a work type (Individual or Group)")

    if form.work_type == WorkType.individual:
        if form.assignee_type is None:
            raise _invalid("assignee_type", "Please select assignee type (Employee or HOD)")
        if form.assignee_type == AssigneeType.employee and not assigned.employees:
            raise _invalid("employees", "Please select at least one employee")
        if form.assignee_type == AssigneeType.hod and not assigned.hods:
            raise _invalid("hods", "Please select at least one HOD")
        return

    if form.branch_selection_type is None:
        raise _invalid(
            "branch_selection_type",
            "Please select branch selection type (Single or Multiple)",
        )
    # Campus-only group selections are allowed
    if not assigned.has_targets:
        raise _invalid(
            "assigned_to",
            "Please select at least one target option (employees or HODs)",
        )


def _validate_hod(form: TaskForm) -> None:
    assigned = form.assigned_to
    if form.work_type is None:
        raise _invalid("work_type", "Please select a work type (Individual or Group)")

    if form.work_type == WorkType.individual:
        if not assigned.employees:
            raise _invalid("employees", "Please select at least one employee")
        if len(assigned.employees) > 1:
            raise _invalid("employees", "Individual work can only be assigned to one employee")
        return

    if not assigned.include_all_employees and not assigned.employees:
        raise _invalid(
            "assigned_to",
            'Please select "Target all employees" or select specific employees',
        )


def prepare_payload(role: UserRole, form: TaskForm) -> TaskPayload:
    """Validate the dialog for *role* and build the upstream body.

    Raises ``ValidationException`` with the first failing rule.
    """
    if not form.title.strip() or not form.description.strip():
        field = "title" if not form.title.strip() else "description"
        raise _invalid(field, "Title and description are required.")

    if role == UserRole.superadmin:
        _validate_superadmin(form)
    elif role == UserRole.hod:
        _validate_hod(form)

    assigned = form.assigned_to
    if role == UserRole.hod:
        audience = AssignedTo(
            include_all_employees=assigned.include_all_employees,
            include_all_hods=False,
            employees=dedupe_ids(assigned.employees),
            hods=[],
            departments=sanitize_string_list(assigned.departments),
        )
    else:
        audience = AssignedTo(
            include_all_employees=assigned.include_all_employees,
            include_all_hods=assigned.include_all_hods,
            employees=dedupe_ids(assigned.employees),
            hods=dedupe_ids(assigned.hods),
            departments=sanitize_string_list(assigned.departments),
            campuses=sanitize_string_list(assigned.campuses) if role == UserRole.superadmin else [],
        )

    return TaskPayload(
        title=form.title.strip(),
        description=form.description.strip(),
        due_date=form.due_date,
        priority=form.priority,
        status=form.status,
        require_acknowledgement=form.require_acknowledgement,
        assigned_to=audience,
        recurrence=normalize_recurrence(form.recurrence),
        attachments=sanitize_attachments(form.attachments),
    )


def includes_campuses(role: UserRole) -> bool:
    """Only the super-admin dialog sends a campus filter upstream."""
    return role == UserRole.superadmin


# ═════════════════════════════════════════════════════════════════════
# Edit round-trip
# ═════════════════════════════════════════════════════════════════════


def _infer_modes(role: UserRole, assigned: Mapping[str, Any]) -> dict[str, Any]:
    """Recover the dialog's work type and sub-mode from a saved audience."""
    departments: Sequence[Any] = assigned.get("departments") or []
    campuses: Sequence[Any] = assigned.get("campuses") or []
    employees: Sequence[Any] = assigned.get("employees") or []
    hods: Sequence[Any] = assigned.get("hods") or []

    if role == UserRole.hod:
        if assigned.get("includeAllEmployees") or departments:
            return {"work_type": WorkType.group}
        if employees:
            return {"work_type": WorkType.individual, "assignee_type": AssigneeType.employee}
        return {"work_type": WorkType.group}

    is_group = (
        assigned.get("includeAllEmployees")
        or assigned.get("includeAllHods")
        or departments
        or campuses
    )
    if is_group:
        selection = BranchSelectionType.multiple if len(departments) > 1 else BranchSelectionType.single
        return {"work_type": WorkType.group, "branch_selection_type": selection}
    if employees:
        return {"work_type": WorkType.individual, "assignee_type": AssigneeType.employee}
    if hods:
        return {"work_type": WorkType.individual, "assignee_type": AssigneeType.hod}
    return {"work_type": WorkType.group, "branch_selection_type": BranchSelectionType.single}


def form_from_task(
    role: UserRole,
    task: Mapping[str, Any],
    viewer: Optional[ViewerProfile] = None,
    options: Optional[AssignmentOptions] = None,
) -> TaskForm:
    """Rebuild the edit dialog from a task as the upstream list returned it."""
    assigned: Mapping[str, Any] = task.get("assignedTo") or {}
    recurrence = task.get("recurrence") or {}

    departments = assigned.get("departments")
    if departments is None:
        if role == UserRole.hod:
            departments = _own_departments(viewer)
        elif role == UserRole.hr and options is not None:
            departments = list(options.departments)
        else:
            departments = []

    if role == UserRole.hod:
        require_ack = task.get("requireAcknowledgement")
        require_ack = True if require_ack is None else bool(require_ack)
    else:
        require_ack = bool(task.get("requireAcknowledgement"))

    audience = AssignedTo(
        include_all_employees=bool(assigned.get("includeAllEmployees")),
        include_all_hods=False if role == UserRole.hod else bool(assigned.get("includeAllHods")),
        employees=assigned.get("employees") or [],
        hods=[] if role == UserRole.hod else assigned.get("hods") or [],
        departments=departments,
        campuses=assigned.get("campuses") or [] if role == UserRole.superadmin else [],
    )

    modes: dict[str, Any] = {}
    if role in (UserRole.superadmin, UserRole.hod):
        modes = _infer_modes(role, assigned)

    return TaskForm(
        title=task.get("title") or "",
        description=task.get("description") or "",
        due_date=task.get("dueDate"),
        priority=task.get("priority") or "medium",
        status=task.get("status") or "active",
        require_acknowledgement=require_ack,
        assigned_to=audience,
        recurrence=normalize_recurrence({
            "frequency": recurrence.get("frequency") or "none",
            "interval": recurrence.get("interval") or 1,
            "days_of_week": recurrence.get("daysOfWeek") or [],
            "end_date": recurrence.get("endDate"),
        }),
        attachments=list(task.get("attachments") or []),
        **modes,
    )
