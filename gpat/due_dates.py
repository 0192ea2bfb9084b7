"""
Indicator reporting schedule.

An indicator either reports once (on start_date) or repeats every
frequency_months from start_date up to and including end_date.
"""

import calendar
from datetime import date

from gpat.errors import Violation
from gpat.models import INDICATOR_SCHEDULE_FIELDS


def _as_date(value) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _as_int(value) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def add_months(start: date, months: int) -> date:
    """Calendar month arithmetic, clamping to the last day of short months."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def validate_schedule(state: dict) -> list[Violation]:
    """Scheduling field checks for an indicator's resulting state."""
    violations = []
    try:
        start = _as_date(state.get("start_date"))
        end = _as_date(state.get("end_date"))
    except ValueError:
        return [Violation("start_date", "must be a valid date")]

    frequency = state.get("frequency_months")
    months = _as_int(frequency)
    if frequency not in (None, "") and months is None:
        violations.append(Violation("frequency_months", "is not a number"))

    if state.get("repeat"):
        if end is None:
            violations.append(Violation("end_date", "can't be blank"))
        if frequency in (None, "", 0):
            violations.append(Violation("frequency_months", "can't be blank"))
        elif months is not None and months < 1:
            violations.append(Violation("frequency_months", "must be greater than 0"))
        if start is None:
            violations.append(Violation("start_date", "can't be blank"))

    if start and end and start > end:
        violations.append(Violation("end_date", "must be after start_date"))
    return violations


def build_due_dates(state: dict) -> list[date]:
    """Due dates implied by an indicator's scheduling fields."""
    start = _as_date(state.get("start_date"))
    if start is None:
        return []
    if not state.get("repeat"):
        return [start]

    end = _as_date(state.get("end_date"))
    frequency = _as_int(state.get("frequency_months"))
    if end is None or frequency is None or frequency < 1:
        return [start]

    dates = []
    step = 0
    current = start
    while current <= end:
        dates.append(current)
        step += 1
        current = add_months(start, step * frequency)
    return dates


def schedule_changed(changed_fields) -> bool:
    return any(name in changed_fields for name in INDICATOR_SCHEDULE_FIELDS)
