"""Tests for reference resolution (numeric id / opaque document id)."""

import httpx
import pytest

from fleetadmin.core.errors import (
    NotFoundError,
    TransientConnectivityError,
    UnknownBackendError,
    ValidationError,
)
from fleetadmin.reminders.resolver import ReminderResolver

from tests.conftest import api_error, reminder_row


def _by_document_id(db, p_document_id):
    return [r for r in db.tables.get("notifications", []) if r.get("document_id") == p_document_id]


def test_numeric_reference_uses_point_lookup_and_never_scans(sb, store):
    sb.seed("notifications", reminder_row(7))

    found = ReminderResolver(store).resolve("7")

    assert found.id == 7
    selects = sb.calls_for("notifications", "select")
    assert len(selects) == 1
    assert selects[0]["eq"] == [("id", 7)]
    assert all(c.get("range") is None for c in sb.calls)


def test_missing_numeric_reference_is_not_found_without_scan(sb, store):
    sb.seed("notifications", reminder_row(7))

    with pytest.raises(NotFoundError):
        ReminderResolver(store).resolve(99)

    assert all(c.get("range") is None for c in sb.calls)
    assert not sb.calls_for(op="rpc")


def test_superscript_digit_reference_is_not_found(sb, store):
    sb.seed("notifications", reminder_row(7))

    with pytest.raises(NotFoundError):
        ReminderResolver(store).resolve("²")


def test_opaque_reference_found_by_point_lookup(sb, store):
    sb.seed("notifications", reminder_row(7, "abc123"))
    sb.rpcs["reminder_by_document_id"] = _by_document_id

    found = ReminderResolver(store).resolve("abc123")

    assert found.id == 7
    assert not sb.calls_for("notifications", "select")


def test_opaque_reference_falls_back_to_filter_when_rpc_missing(sb, store):
    sb.seed("notifications", reminder_row(7, "abc123"))

    found = ReminderResolver(store).resolve("abc123")

    assert found.document_id == "abc123"
    selects = sb.calls_for("notifications", "select")
    assert selects[0]["eq"] == [("document_id", "abc123")]
    assert all(c.get("range") is None for c in sb.calls)


def test_opaque_reference_found_on_third_page_of_scan(sb, store):
    sb.seed("notifications", *[reminder_row(i, f"doc-{i}") for i in range(1, 701)])
    sb.tables["notifications"][599]["document_id"] = "abc123"
    sb.hidden_columns.add("document_id")

    found = ReminderResolver(store, page_size=250, max_pages=20).resolve("abc123")

    assert found.id == 600
    ranges = [c["range"] for c in sb.calls if c.get("range")]
    assert ranges == [(0, 249), (250, 499), (500, 749)]


def test_scan_stops_at_page_ceiling(sb, store):
    sb.seed("notifications", *[reminder_row(i, f"doc-{i}") for i in range(1, 701)])
    sb.tables["notifications"][599]["document_id"] = "abc123"
    sb.hidden_columns.add("document_id")

    with pytest.raises(NotFoundError):
        ReminderResolver(store, page_size=250, max_pages=2).resolve("abc123")

    assert len([c for c in sb.calls if c.get("range")]) == 2


def test_scan_stops_on_short_page(sb, store):
    sb.seed("notifications", *[reminder_row(i) for i in range(1, 11)])

    assert ReminderResolver(store, page_size=250).find("nope") is None
    assert len([c for c in sb.calls if c.get("range")]) == 1


def test_transport_failure_is_not_reported_as_not_found(sb, store):
    sb.failures[("notifications", "select")] = httpx.ConnectError("connection refused")

    with pytest.raises(TransientConnectivityError):
        ReminderResolver(store).resolve("7")


def test_backend_error_during_point_lookup_propagates(sb, store):
    def broken(db, p_document_id):
        raise api_error("XX000", "internal error")

    sb.rpcs["reminder_by_document_id"] = broken

    with pytest.raises(UnknownBackendError):
        ReminderResolver(store).resolve("abc123")


@pytest.mark.parametrize("reference", ["", "   ", None])
def test_empty_reference_is_rejected(store, reference):
    with pytest.raises(ValidationError):
        ReminderResolver(store).resolve(reference)
