"""Recurrence rules: normalisation, weekday toggling, descriptions, expansion.

Weekdays use the portal's numbering (Sunday=0 … Saturday=6), not Python's.
"""

from __future__ import annotations

import calendar
from datetime import date, timedelta
from typing import Any, Mapping, Optional

from taskdesk.common.constants import WEEKDAY_LABELS, RecurrenceFrequency
from taskdesk.tasks.schemas import Recurrence

# Display order in the weekday picker (Mon first, Sun last)
WEEKDAY_ORDER: tuple[int, ...] = (1, 2, 3, 4, 5, 6, 0)

_UNIT = {
    RecurrenceFrequency.daily: ("day", "days"),
    RecurrenceFrequency.weekly: ("week", "weeks"),
    RecurrenceFrequency.monthly: ("month", "months"),
    RecurrenceFrequency.yearly: ("year", "years"),
}


def normalize_recurrence(raw: Optional[Mapping[str, Any] | Recurrence]) -> Recurrence:
    """Coerce any client-supplied rule into a valid ``Recurrence``."""
    if isinstance(raw, Recurrence):
        return raw
    return Recurrence.model_validate(dict(raw or {}))


def portal_weekday(day: date) -> int:
    return (day.weekday() + 1) % 7


def toggle_day(recurrence: Recurrence, day: int) -> Recurrence:
    """Add *day* to the rule's weekdays, or remove it if already present."""
    days = list(recurrence.days_of_week)
    if day in days:
        days.remove(day)
    else:
        days.append(day)
    return normalize_recurrence({**recurrence.model_dump(), "days_of_week": days})


def describe_recurrence(recurrence: Recurrence) -> str:
    if recurrence.frequency == RecurrenceFrequency.none:
        return "Does not repeat"

    singular, plural = _UNIT[recurrence.frequency]
    if recurrence.interval == 1:
        text = f"Every {singular}"
    else:
        text = f"Every {recurrence.interval} {plural}"

    if recurrence.frequency == RecurrenceFrequency.weekly and recurrence.days_of_week:
        labels = [WEEKDAY_LABELS[d] for d in WEEKDAY_ORDER if d in recurrence.days_of_week]
        text += f" on {', '.join(labels)}"

    if recurrence.end_date:
        text += f" until {recurrence.end_date.isoformat()}"
    return text


# ── Expansion ───────────────────────────────────────────────────────

def _add_months(start: date, months: int) -> date:
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(start.day, last_day))


def _weekly_with_days(recurrence: Recurrence, start: date, count: int) -> list[date]:
    # Weeks run Sunday to Saturday; the start date's week is week zero
    week_start = start - timedelta(days=portal_weekday(start))
    days = sorted(recurrence.days_of_week)
    found: list[date] = []
    while len(found) < count:
        for day in days:
            current = week_start + timedelta(days=day)
            if current < start:
                continue
            if recurrence.end_date and current > recurrence.end_date:
                return found
            found.append(current)
            if len(found) == count:
                break
        week_start += timedelta(weeks=recurrence.interval)
    return found


def upcoming_occurrences(recurrence: Recurrence, start: date, count: int = 5) -> list[date]:
    """Return up to *count* occurrence dates on or after *start*.

    A non-repeating rule yields just *start*. Monthly and yearly rules clamp to
    the last day of shorter months (Jan 31 → Feb 28).
    """
    if count <= 0:
        return []
    if recurrence.end_date and start > recurrence.end_date:
        return []
    if recurrence.frequency == RecurrenceFrequency.none:
        return [start]
    if recurrence.frequency == RecurrenceFrequency.weekly and recurrence.days_of_week:
        return _weekly_with_days(recurrence, start, count)

    found: list[date] = []
    step = 0
    while len(found) < count:
        if recurrence.frequency == RecurrenceFrequency.daily:
            current = start + timedelta(days=step * recurrence.interval)
        elif recurrence.frequency == RecurrenceFrequency.weekly:
            current = start + timedelta(weeks=step * recurrence.interval)
        elif recurrence.frequency == RecurrenceFrequency.monthly:
            current = _add_months(start, step * recurrence.interval)
        else:
            current = _add_months(start, 12 * step * recurrence.interval)
        if recurrence.end_date and current > recurrence.end_date:
            break
        found.append(current)
        step += 1
    return found
