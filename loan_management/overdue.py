"""
Overdue Classification Module

Derives the reporting status and days overdue of a schedule row. Pure:
persisting the Unpaid -> Late transition is a separate step, see
RepaymentScheduleManager.apply_late_transitions.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Union

from .schedule import ScheduleEntry, ScheduleStatus


OVERDUE = "Overdue"


@dataclass(frozen=True)
class Classification:
    """Derived view of one schedule row at a point in time"""
    schedule_id: str
    derived_status: str
    days_overdue: int
    mark_late: bool = False  # the row should be persisted as Late


def days_overdue(due_date: date, as_of: Union[date, datetime]) -> int:
    """Whole calendar days elapsed since the due date, never negative"""
    as_of_date = as_of.date() if isinstance(as_of, datetime) else as_of
    return max((as_of_date - due_date).days, 0)


def classify(entry: ScheduleEntry, as_of: Union[date, datetime]) -> Classification:
    """
    Classify a schedule row as of a date.

    An Unpaid row past its due date is reported as Overdue and flagged to be
    marked Late. A Late row keeps its status but still reports its days
    overdue. Paid rows and Unpaid rows not yet due report 0 days.
    """
    if entry.status == ScheduleStatus.UNPAID:
        days = days_overdue(entry.due_date, as_of)
        if days > 0:
            return Classification(entry.id, OVERDUE, days, mark_late=True)
        return Classification(entry.id, entry.status.value, 0)

    if entry.status == ScheduleStatus.LATE:
        return Classification(entry.id, entry.status.value, days_overdue(entry.due_date, as_of))

    return Classification(entry.id, entry.status.value, 0)
