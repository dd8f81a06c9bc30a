"""In-memory filtering, ordering and KPI tallies for task lists.

Upstream list routes return every task visible to the caller; narrowing happens
here. All dates are compared in UTC; naive timestamps are taken as UTC.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Any, Iterable, Literal, Mapping, Optional, Sequence

from pydantic import TypeAdapter, ValidationError

from taskdesk.common.constants import (
    PRIORITY_RANK,
    AcknowledgementStatus,
    TaskPriority,
    TaskStatus,
)
from taskdesk.tasks.schemas import ManagerKpis, RecipientKpis

_DATETIME = TypeAdapter(datetime)

ALL = "all"

# Query choices for list endpoints; "all" disables that filter
StatusChoice = Literal["all", "draft", "active", "completed", "archived"]
PriorityChoice = Literal["all", "low", "medium", "high", "critical"]
AckStatusChoice = Literal["all", "pending", "acknowledged", "completed"]

_CLOSED_STATUSES = {TaskStatus.completed.value, TaskStatus.archived.value}


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an upstream date or timestamp; unparseable values become None."""
    if value in (None, ""):
        return None
    if isinstance(value, date) and not isinstance(value, datetime):
        value = datetime.combine(value, time.min)
    try:
        parsed = _DATETIME.validate_python(value)
    except ValidationError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _day_start(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def _day_end(day: date) -> datetime:
    return datetime.combine(day, time.max, tzinfo=timezone.utc)


def _matches_search(task: Mapping[str, Any], search: Optional[str]) -> bool:
    if not search:
        return True
    needle = search.lower()
    return any(needle in str(task.get(key) or "").lower() for key in ("title", "description"))


def _in_due_range(task: Mapping[str, Any], date_from: Optional[date], date_to: Optional[date]) -> bool:
    # Tasks without a due date are never excluded by the range
    due = parse_timestamp(task.get("dueDate"))
    if due is None:
        return True
    if date_from and due < _day_start(date_from):
        return False
    if date_to and due > _day_end(date_to):
        return False
    return True


def _selected(value: Optional[str]) -> Optional[str]:
    if value is None or value == ALL or value == "":
        return None
    return getattr(value, "value", value)


# ── Filters ─────────────────────────────────────────────────────────

@dataclass
class ManagerTaskFilter:
    status: Optional[str] = None
    priority: Optional[str] = None
    search: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None

    def matches(self, task: Mapping[str, Any]) -> bool:
        status = _selected(self.status)
        if status and task.get("status") != status:
            return False
        priority = _selected(self.priority)
        if priority and task.get("priority") != priority:
            return False
        return _matches_search(task, self.search) and _in_due_range(task, self.date_from, self.date_to)


@dataclass
class RecipientTaskFilter:
    priority: Optional[str] = None
    acknowledgement_status: Optional[str] = None
    search: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None

    def matches(self, task: Mapping[str, Any]) -> bool:
        priority = _selected(self.priority)
        if priority and task.get("priority") != priority:
            return False
        wanted = _selected(self.acknowledgement_status)
        if wanted:
            current = task.get("acknowledgementStatus") or AcknowledgementStatus.pending.value
            if current != wanted:
                return False
        return _matches_search(task, self.search) and _in_due_range(task, self.date_from, self.date_to)


def apply_filter(tasks: Iterable[Mapping[str, Any]], criteria: Any) -> list[Mapping[str, Any]]:
    return [task for task in tasks if criteria.matches(task)]


def sort_for_recipient(tasks: Sequence[Mapping[str, Any]]) -> list[Mapping[str, Any]]:
    """Priority high to low, then earliest due date (undated last), then newest."""
    ordered = sorted(
        tasks,
        key=lambda t: (parse_timestamp(t.get("createdAt")) or datetime.min.replace(tzinfo=timezone.utc)),
        reverse=True,
    )
    return sorted(
        ordered,
        key=lambda t: (
            -PRIORITY_RANK.get(t.get("priority") or TaskPriority.medium.value, 0),
            parse_timestamp(t.get("dueDate")) is None,
            parse_timestamp(t.get("dueDate")) or datetime.max.replace(tzinfo=timezone.utc),
        ),
    )


# ── KPIs ────────────────────────────────────────────────────────────

def _now(now: Optional[datetime]) -> datetime:
    return now if now is not None else datetime.now(timezone.utc)


def _fully_completed(task: Mapping[str, Any]) -> bool:
    """Every recorded response is in and at least one recipient completed."""
    summary = task.get("acknowledgementSummary")
    if not task.get("requireAcknowledgement") or not isinstance(summary, Mapping):
        return False
    return (
        (summary.get("responses") or 0) > 0
        and (summary.get("pending") or 0) == 0
        and (summary.get("completed") or 0) > 0
    )


def manager_kpis(
    tasks: Sequence[Mapping[str, Any]],
    *,
    count_acknowledged_completion: bool = False,
    now: Optional[datetime] = None,
) -> ManagerKpis:
    """Dashboard counters for a managing role.

    With *count_acknowledged_completion* (HOD dashboards) a task whose
    acknowledgements are all done also counts as completed, and pending
    responses are totalled.
    """
    current = _now(now)

    def completed(task: Mapping[str, Any]) -> bool:
        if task.get("status") in _CLOSED_STATUSES:
            return True
        return count_acknowledged_completion and _fully_completed(task)

    overdue = 0
    for task in tasks:
        due = parse_timestamp(task.get("dueDate"))
        if due is not None and due < current and not completed(task):
            overdue += 1

    kpis = ManagerKpis(
        total_tasks=len(tasks),
        active_tasks=sum(1 for t in tasks if t.get("status") == TaskStatus.active.value),
        completed_tasks=sum(1 for t in tasks if completed(t)),
        overdue_tasks=overdue,
    )
    if count_acknowledged_completion:
        kpis.pending_acknowledgements = sum(
            int((t.get("acknowledgementSummary") or {}).get("pending") or 0)
            for t in tasks
            if t.get("requireAcknowledgement")
        )
    return kpis


def recipient_kpis(tasks: Sequence[Mapping[str, Any]], *, now: Optional[datetime] = None) -> RecipientKpis:
    current = _now(now)
    pending = AcknowledgementStatus.pending.value
    done = AcknowledgementStatus.completed.value

    def status(task: Mapping[str, Any]) -> Optional[str]:
        return task.get("acknowledgementStatus")

    overdue = 0
    for task in tasks:
        due = parse_timestamp(task.get("dueDate"))
        if due is not None and status(task) != done and due < current:
            overdue += 1

    return RecipientKpis(
        total_tasks=len(tasks),
        pending_acknowledgements=sum(
            1 for t in tasks
            if t.get("requireAcknowledgement") and status(t) in (None, "", pending)
        ),
        acknowledged_tasks=sum(
            1 for t in tasks
            if t.get("requireAcknowledgement") and status(t) == AcknowledgementStatus.acknowledged.value
        ),
        completed_acknowledgements=sum(
            1 for t in tasks if t.get("requireAcknowledgement") and status(t) == done
        ),
        overdue_tasks=overdue,
        critical_tasks=sum(
            1 for t in tasks if t.get("priority") == TaskPriority.critical.value and status(t) != done
        ),
        high_priority_tasks=sum(
            1 for t in tasks if t.get("priority") == TaskPriority.high.value and status(t) != done
        ),
    )
