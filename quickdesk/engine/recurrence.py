"""Recurrence handling for reminders."""

from datetime import datetime

from dateutil.relativedelta import relativedelta

from quickdesk.db.models import Recurrence

_STEPS = {
    "daily": relativedelta(days=+1),
    "weekly": relativedelta(days=+7),
    # relativedelta clamps to the last day of a shorter month (Jan 31 -> Feb 28/29)
    "monthly": relativedelta(months=+1),
}


def compute_next_occurrence(current: datetime, recurrence: Recurrence | str) -> datetime | None:
    """Get the occurrence following ``current``.

    Args:
        current: Current scheduled time (timezone-aware)
        recurrence: "none", "daily", "weekly" or "monthly"

    Returns:
        The next occurrence at the same wall-clock time, or None for "none"

    Raises:
        ValueError: for an unknown recurrence
    """
    if recurrence == "none" or not recurrence:
        return None

    step = _STEPS.get(recurrence)
    if step is None:
        raise ValueError(f"Unknown recurrence: {recurrence}")

    return current + step


def next_occurrence_after(
    current: datetime, recurrence: Recurrence | str, now: datetime
) -> datetime | None:
    """First occurrence strictly after ``now``.

    Monthly steps are counted from ``current`` so a reminder on the 31st comes
    back to the 31st whenever the month allows it.
    """
    if compute_next_occurrence(current, recurrence) is None:
        return None

    step = _STEPS[recurrence]
    count = 1
    candidate = current + step
    while candidate <= now:
        count += 1
        candidate = current + step * count
    return candidate
