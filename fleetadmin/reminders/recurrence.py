"""Next-trigger computation for unique and recurring reminders.

Occurrences are anchored on the first ``scheduled_date``: occurrence *k* is
``scheduled_date + k * step``. Anchoring (instead of adding one step to the
previous occurrence) keeps month-end dates from drifting, e.g. Jan 31 ->
Feb 28 -> Mar 31 for a monthly series.

``dateutil.rrule`` is not used here: a monthly rule on day 31 skips months
that have no 31st instead of clamping to the last day, so occurrences are
walked by hand with ``relativedelta`` (which clamps). The walk is bounded by
``_MAX_STEPS``; daily and weekly patterns jump ahead by whole days first.
"""

from datetime import datetime, timezone
from typing import Optional

from dateutil.relativedelta import relativedelta

from fleetadmin.schemas.reminders import Reminder

_STEPS = {
    "daily": relativedelta(days=1),
    "weekly": relativedelta(weeks=1),
    "biweekly": relativedelta(weeks=2),
    "monthly": relativedelta(months=1),
    "yearly": relativedelta(years=1),
}

# Evita bucles largos con fechas absurdas (p.ej. diario desde el año 1900)
_MAX_STEPS = 100_000


def _now_like(reference: datetime) -> datetime:
    now = datetime.now(timezone.utc)
    if reference.tzinfo is None:
        return now.replace(tzinfo=None)
    return now.astimezone(reference.tzinfo)


def _comparable(value: datetime, reference: datetime) -> datetime:
    # Normaliza naive/aware contra la referencia para poder comparar
    if value.tzinfo is None and reference.tzinfo is not None:
        return value.replace(tzinfo=reference.tzinfo)
    if value.tzinfo is not None and reference.tzinfo is None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def compute_next_trigger(
    scheduled_date: datetime,
    pattern: Optional[str],
    end_date: Optional[datetime] = None,
    after: Optional[datetime] = None,
) -> Optional[datetime]:
    """
    First occurrence at or after ``after`` (default: now), bounded by ``end_date``.

    Returns None when the series is exhausted.
    """
    step = _STEPS.get(pattern or "")
    if step is None:
        raise ValueError(f"Unknown recurrence pattern: {pattern!r}")

    after = _comparable(after, scheduled_date) if after is not None else _now_like(scheduled_date)
    end = _comparable(end_date, scheduled_date) if end_date is not None else None

    if scheduled_date >= after:
        candidate = scheduled_date
    else:
        candidate = None
        # salto grueso por días para patrones diarios/semanales, luego ajuste fino
        k = 0
        if pattern in ("daily", "weekly", "biweekly"):
            days = {"daily": 1, "weekly": 7, "biweekly": 14}[pattern]
            k = max((after - scheduled_date).days // days - 1, 0)
        for _ in range(_MAX_STEPS):
            occurrence = scheduled_date + step * k
            if occurrence >= after:
                candidate = occurrence
                break
            if end is not None and occurrence > end:
                return None
            k += 1
        if candidate is None:
            return None

    if end is not None and candidate > end:
        return None
    return candidate


def next_trigger_for(reminder: Reminder, after: Optional[datetime] = None) -> Optional[datetime]:
    """
    "Next due" date to surface to dependent records.

    Unique reminders use ``scheduled_date``; recurring ones use the stored
    ``next_trigger`` and only compute it when it is missing.
    """
    if reminder.reminder_type != "recurring":
        return reminder.scheduled_date
    if reminder.next_trigger is not None:
        return reminder.next_trigger
    if not reminder.recurrence_pattern:
        return reminder.scheduled_date
    return compute_next_trigger(
        reminder.scheduled_date,
        reminder.recurrence_pattern,
        reminder.recurrence_end_date,
        after=after,
    )
