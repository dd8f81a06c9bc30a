"""Audience resolution: assignment options, auto-selection, previews, summaries.

Departments and campuses are compared lowercase everywhere; upstream data mixes
``CSE`` / ``cse`` and ``Engineering`` / ``engineering``.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional, Sequence

from pydantic.alias_generators import to_camel

from taskdesk.auth.schemas import ViewerProfile
from taskdesk.common.constants import HOD_AUDIENCE_NAME_LIMIT, BranchSelectionType, UserRole
from taskdesk.tasks.schemas import (
    AssignedTo,
    AssignmentOptions,
    RecipientPreview,
    TaskForm,
)

TARGET_TOGGLES = ("include_all_employees", "include_all_hods")
_TOGGLE_ALIASES = {to_camel(name): name for name in TARGET_TOGGLES}
MEMBER_FIELDS = ("employees", "hods")


# ── Sanitizers ──────────────────────────────────────────────────────

def sanitize_string_list(values: Optional[Iterable[Any]]) -> list[str]:
    """Trim, lowercase, de-duplicate (order kept) and drop empties."""
    cleaned: list[str] = []
    for value in values or []:
        if value is None:
            continue
        text = str(value).strip().lower()
        if text and text not in cleaned:
            cleaned.append(text)
    return cleaned


def dedupe_ids(values: Optional[Iterable[Any]]) -> list[str]:
    ids: list[str] = []
    for value in values or []:
        if isinstance(value, dict):
            value = value.get("_id") or value.get("id")
        if value is None:
            continue
        text = str(value).strip()
        if text and text not in ids:
            ids.append(text)
    return ids


def sanitize_attachments(values: Optional[Iterable[Any]]) -> list[str]:
    links: list[str] = []
    for value in values or []:
        if not isinstance(value, str):
            continue
        link = value.strip()
        if link and link not in links:
            links.append(link)
    return links


# ── Member attributes ───────────────────────────────────────────────

def _lower(value: Any) -> str:
    return str(value).strip().lower() if value else ""


def member_id(member: Mapping[str, Any]) -> str:
    return str(member.get("_id") or member.get("id") or "")


def employee_department(employee: Mapping[str, Any]) -> str:
    department = employee.get("department")
    if isinstance(department, Mapping):
        department = department.get("code") or department.get("name")
    return _lower(department or employee.get("branchCode"))


def hod_department(hod: Mapping[str, Any]) -> str:
    department = hod.get("department")
    if isinstance(department, Mapping):
        department = department.get("code")
    return _lower(department or hod.get("branchCode"))


def member_campus(member: Mapping[str, Any]) -> str:
    campus = member.get("campus")
    if isinstance(campus, Mapping):
        campus = campus.get("name") or campus.get("type")
    return _lower(campus)


def member_label(member: Any) -> Optional[str]:
    if isinstance(member, Mapping):
        return member.get("name") or member.get("employeeId") or "Unknown"
    return None


# ── Assignment options ──────────────────────────────────────────────

def _branch_codes(branches: Sequence[Mapping[str, Any]], *, lowercase: bool) -> list[str]:
    codes: list[str] = []
    for branch in branches:
        code = branch.get("code") or (branch.get("name") if lowercase else None)
        if not code:
            continue
        code = str(code).strip()
        if lowercase:
            code = code.lower()
        if code and code not in codes:
            codes.append(code)
    return codes


def build_options(
    role: UserRole,
    sources: Mapping[str, list[dict[str, Any]]],
    viewer: ViewerProfile,
) -> AssignmentOptions:
    """Turn the role's raw metadata collections into picker options."""
    employees = list(sources.get("employees") or [])
    hods = list(sources.get("hods") or [])
    viewer_campus = [viewer.campus.lower()] if viewer.campus else []

    if role == UserRole.hr:
        branches = sources.get("branches") or []
        campuses = sanitize_string_list(b.get("campusType") for b in branches)
        return AssignmentOptions(
            employees=employees,
            hods=hods,
            departments=_branch_codes(branches, lowercase=False),
            campuses=campuses or viewer_campus,
        )

    if role == UserRole.principal:
        return AssignmentOptions(
            employees=employees,
            hods=hods,
            departments=_branch_codes(sources.get("branches") or [], lowercase=True),
            campuses=viewer_campus,
        )

    if role == UserRole.superadmin:
        departments: list[str] = []
        for employee in employees:
            for value in (employee.get("department"), employee.get("branchCode")):
                if isinstance(value, str) and value and value not in departments:
                    departments.append(value)
        for hod in hods:
            department = hod.get("department")
            if isinstance(department, Mapping):
                for value in (department.get("code"), department.get("name")):
                    if value and value not in departments:
                        departments.append(value)
        campuses = [c.get("name") for c in sources.get("campuses") or [] if c.get("name")]
        return AssignmentOptions(
            employees=employees,
            hods=hods,
            departments=departments,
            campuses=campuses,
        )

    # HOD: own department's employees only
    return AssignmentOptions(
        employees=employees,
        departments=[viewer.branch_code.lower()] if viewer.branch_code else [],
        campuses=viewer_campus,
    )


def filter_members(
    members: Sequence[Mapping[str, Any]],
    departments: Sequence[str],
    *,
    kind: str = "employee",
) -> list[Mapping[str, Any]]:
    """Narrow selectable people to the selected departments (none selected = all)."""
    wanted = set(sanitize_string_list(departments))
    if not wanted:
        return list(members)
    department_of = hod_department if kind == "hod" else employee_department
    return [m for m in members if department_of(m) in wanted]


# ── Form interactions ──────────────────────────────────────────────

def _with_audience(form: TaskForm, **changes: Any) -> TaskForm:
    assigned = form.assigned_to.model_copy(update=changes)
    return form.model_copy(update={"assigned_to": assigned})


def select_departments(
    form: TaskForm,
    options: AssignmentOptions,
    departments: Sequence[str],
) -> TaskForm:
    """Set the department filter and auto-select every member inside it.

    Employee and HOD selections are replaced, not merged. In single-branch mode
    only the first department is kept.
    """
    chosen = [str(d) for d in departments if d]
    if form.branch_selection_type == BranchSelectionType.single:
        chosen = chosen[:1]
    wanted = {d.lower() for d in chosen}

    employees = [
        member_id(e) for e in options.employees
        if employee_department(e) and employee_department(e) in wanted
    ]
    hods = [
        member_id(h) for h in options.hods
        if hod_department(h) and hod_department(h) in wanted
    ]
    return _with_audience(
        form,
        departments=chosen,
        employees=dedupe_ids(employees),
        hods=dedupe_ids(hods),
    )


def select_campuses(form: TaskForm, campuses: Sequence[str]) -> TaskForm:
    return _with_audience(form, campuses=[str(c) for c in campuses if c])


def toggle_target(form: TaskForm, field: str) -> TaskForm:
    """Flip a target-all toggle; accepts the snake_case or camelCase field name."""
    field = _TOGGLE_ALIASES.get(field, field)
    if field not in TARGET_TOGGLES:
        raise ValueError(f"Unknown target toggle '{field}'.")
    return _with_audience(form, **{field: not getattr(form.assigned_to, field)})


def set_members(form: TaskForm, field: str, ids: Sequence[Any]) -> TaskForm:
    if field not in MEMBER_FIELDS:
        raise ValueError(f"Unknown member list '{field}'.")
    return _with_audience(form, **{field: dedupe_ids(ids)})


# ── Recipient preview ───────────────────────────────────────────────

def _reaches(
    member: Mapping[str, Any],
    *,
    include_all: bool,
    explicit: set[str],
    department: str,
    departments: set[str],
    campuses: set[str],
) -> bool:
    campus = member_campus(member)
    if include_all:
        if not departments and not campuses:
            return True
        if (department and department in departments) or (campus and campus in campuses):
            return True
    if member_id(member) in explicit:
        return True
    if department and department in departments:
        return True
    return bool(campus and campus in campuses)


def preview_recipients(assigned_to: AssignedTo, options: AssignmentOptions) -> RecipientPreview:
    """Which of the known employees and HODs a task with this audience reaches."""
    departments = set(sanitize_string_list(assigned_to.departments))
    campuses = set(sanitize_string_list(assigned_to.campuses))

    employees = [
        member_id(e) for e in options.employees
        if _reaches(
            e,
            include_all=assigned_to.include_all_employees,
            explicit=set(assigned_to.employees),
            department=employee_department(e),
            departments=departments,
            campuses=campuses,
        )
    ]
    hods = [
        member_id(h) for h in options.hods
        if _reaches(
            h,
            include_all=assigned_to.include_all_hods,
            explicit=set(assigned_to.hods),
            department=hod_department(h),
            departments=departments,
            campuses=campuses,
        )
    ]
    return RecipientPreview(
        employees=employees,
        hods=hods,
        employee_count=len(employees),
        hod_count=len(hods),
    )


# ── Summaries ───────────────────────────────────────────────────────

def _as_mapping(assigned_to: Any) -> Mapping[str, Any]:
    if isinstance(assigned_to, AssignedTo):
        return assigned_to.model_dump(by_alias=True)
    return assigned_to or {}


def describe_audience(assigned_to: Any) -> str:
    """One-line audience summary used in task tables."""
    audience = _as_mapping(assigned_to)
    segments: list[str] = []
    if audience.get("includeAllEmployees"):
        segments.append("All employees")
    if audience.get("includeAllHods"):
        segments.append("All HODs")
    if audience.get("departments"):
        segments.append(f"Departments: {', '.join(d.upper() for d in audience['departments'])}")
    if audience.get("campuses"):
        segments.append(f"Campuses: {', '.join(c.upper() for c in audience['campuses'])}")
    if audience.get("employees"):
        segments.append(f"Individuals: {len(audience['employees'])}")
    if audience.get("hods"):
        segments.append(f"HODs: {len(audience['hods'])}")
    return " • ".join(segments) if segments else "No audience specified"


def describe_hod_audience(assigned_to: Any) -> str:
    """HOD table variant: names the first few employees when they are populated."""
    audience = _as_mapping(assigned_to)
    departments = audience.get("departments") or []
    employees = audience.get("employees") or []
    segments: list[str] = []

    if audience.get("includeAllEmployees"):
        scope = ", ".join(d.upper() for d in departments) if departments else "department"
        segments.append(f"All employees in {scope}")

    names = [label for label in (member_label(e) for e in employees) if label]
    if names:
        shown = ", ".join(names[:HOD_AUDIENCE_NAME_LIMIT])
        if len(names) > HOD_AUDIENCE_NAME_LIMIT:
            shown += f" and {len(names) - HOD_AUDIENCE_NAME_LIMIT} more"
        segments.append(f"Employees: {shown}")
    elif employees:
        segments.append(f"Employees: {len(employees)} selected")

    if not audience.get("includeAllEmployees") and not employees and departments:
        segments.append(f"Departments: {', '.join(d.upper() for d in departments)}")

    return " • ".join(segments) if segments else "No audience specified"
