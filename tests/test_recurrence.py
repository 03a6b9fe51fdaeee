from datetime import datetime, timedelta, timezone

import pytest

from fleetadmin.reminders.recurrence import compute_next_trigger, next_trigger_for
from fleetadmin.schemas.reminders import Reminder

START = datetime(2025, 1, 10, 9, 0)


@pytest.mark.parametrize(
    "pattern, after, expected",
    [
        ("daily", datetime(2025, 1, 12, 10, 0), datetime(2025, 1, 13, 9, 0)),
        ("weekly", datetime(2025, 1, 18), datetime(2025, 1, 24, 9, 0)),
        ("biweekly", datetime(2025, 1, 18), datetime(2025, 1, 24, 9, 0)),
        ("monthly", datetime(2025, 3, 1), datetime(2025, 3, 10, 9, 0)),
        ("yearly", datetime(2025, 1, 11), datetime(2026, 1, 10, 9, 0)),
    ],
)
def test_next_occurrence_after_reference(pattern, after, expected):
    assert compute_next_trigger(START, pattern, after=after) == expected


def test_future_series_starts_on_scheduled_date():
    assert compute_next_trigger(START, "monthly", after=datetime(2024, 12, 1)) == START


def test_occurrence_on_reference_instant_is_included():
    assert compute_next_trigger(START, "weekly", after=datetime(2025, 1, 17, 9, 0)) == datetime(2025, 1, 17, 9, 0)


def test_monthly_series_is_anchored_on_first_occurrence():
    jan31 = datetime(2025, 1, 31, 8, 0)
    assert compute_next_trigger(jan31, "monthly", after=datetime(2025, 2, 2)) == datetime(2025, 2, 28, 8, 0)
    assert compute_next_trigger(jan31, "monthly", after=datetime(2025, 3, 1)) == datetime(2025, 3, 31, 8, 0)


def test_end_date_exhausts_series():
    end = datetime(2025, 2, 15)
    assert compute_next_trigger(START, "monthly", end, after=datetime(2025, 2, 1)) == datetime(2025, 2, 10, 9, 0)
    assert compute_next_trigger(START, "monthly", end, after=datetime(2025, 2, 11)) is None


def test_long_running_daily_series():
    after = START + timedelta(days=3650, hours=1)
    assert compute_next_trigger(START, "daily", after=after) == START + timedelta(days=3651)


def test_mixed_naive_and_aware_datetimes():
    aware = datetime(2025, 1, 10, 9, 0, tzinfo=timezone.utc)
    assert compute_next_trigger(aware, "weekly", after=datetime(2025, 1, 11)) == datetime(
        2025, 1, 17, 9, 0, tzinfo=timezone.utc
    )


def test_unknown_pattern_is_rejected():
    with pytest.raises(ValueError):
        compute_next_trigger(START, "hourly", after=START)


def _reminder(**kwargs) -> Reminder:
    data = {"id": 1, "title": "x", "scheduled_date": START}
    data.update(kwargs)
    return Reminder.model_validate(data)


def test_unique_reminder_uses_scheduled_date():
    reminder = _reminder(reminder_type="unique", next_trigger=datetime(2030, 1, 1))
    assert next_trigger_for(reminder) == START


def test_recurring_reminder_prefers_stored_next_trigger():
    stored = datetime(2025, 6, 10, 9, 0)
    reminder = _reminder(reminder_type="recurring", recurrence_pattern="monthly", next_trigger=stored)
    assert next_trigger_for(reminder) == stored


def test_recurring_reminder_computes_missing_next_trigger():
    reminder = _reminder(reminder_type="recurring", recurrence_pattern="monthly")
    assert next_trigger_for(reminder, after=datetime(2025, 4, 11)) == datetime(2025, 5, 10, 9, 0)
