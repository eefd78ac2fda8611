import calendar
from datetime import datetime, timedelta

from app.constants.constants import RecurrencePattern


def _add_months(value: datetime, months: int) -> datetime:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def next_due_date(due: datetime, pattern, interval: int = 1) -> datetime:
    """Next occurrence after `due`. Month and year steps clamp to the last day of the month."""
    pattern = RecurrencePattern(pattern)
    interval = max(1, interval or 1)
    if pattern == RecurrencePattern.daily:
        return due + timedelta(days=interval)
    if pattern == RecurrencePattern.weekly:
        return due + timedelta(weeks=interval)
    if pattern == RecurrencePattern.monthly:
        return _add_months(due, interval)
    return _add_months(due, 12 * interval)


def advance_recurrence(task) -> bool:
    """
    Compute the next due date of a recurring task.

    Returns True when a next occurrence was scheduled; recurrence is switched
    off once the next date would fall after the end date.
    """
    if not task.recurring_enabled or not task.recurring_pattern:
        return False
    upcoming = next_due_date(task.due, task.recurring_pattern, task.recurring_interval)
    if task.recurring_end_date and upcoming > task.recurring_end_date:
        task.recurring_enabled = False
        task.recurring_next_due = None
        return False
    task.recurring_next_due = upcoming
    return True
