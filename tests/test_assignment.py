import pytest

from fleetadmin.core.errors import ValidationError
from fleetadmin.reminders.assignment import aggregate, aggregate_or_raise, canonical_user_id
from fleetadmin.schemas.fleet import Vehicle

VEHICLE = Vehicle(id=10, responsable_ids=[1, 4], assigned_driver_ids=[2, 4])


@pytest.mark.parametrize(
    "value, expected",
    [(5, 5), ("5", 5), (" 7 ", 7), ("user-doc-3", 3), ("unknown-doc", None), ("", None), (None, None), (True, None), ("²", None)],
)
def test_canonical_user_id(value, expected):
    assert canonical_user_id(value, {"user-doc-3": 3}) == expected


def test_union_of_manual_responsables_and_drivers():
    assert aggregate([3, "3", "1"], VEHICLE) == [1, 2, 3, 4]


def test_empty_manual_selection_still_gets_vehicle_users():
    assert aggregate([], VEHICLE) == [1, 2, 4]


def test_aggregation_is_idempotent():
    once = aggregate(["9", 3, "user-doc-5"], VEHICLE, {"user-doc-5": 5})
    assert aggregate(once, VEHICLE) == once


def test_without_vehicle_only_manual_ids_count():
    assert aggregate(["2", 2, "x"], None) == [2]


def test_empty_result_is_rejected():
    with pytest.raises(ValidationError):
        aggregate_or_raise(["unknown-doc"], Vehicle(id=20))
