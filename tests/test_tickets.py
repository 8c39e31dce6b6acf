"""Tests for ticket operations on the repairs document."""

import sys
from pathlib import Path

import pytest
from pydantic import ValidationError as PayloadValidationError

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from repair_tracker.crud.tickets import (
    NOTE_ACTION_CREATED,
    create_ticket,
    delete_ticket,
    get_ticket,
    next_ticket_number,
    prepend_note,
    update_ticket,
)


@pytest.fixture()
def repairs():
    return []


def test_create_ticket_fills_generated_fields(repairs):
    ticket = create_ticket(
        repairs,
        {"brand": "Dell", "model": "Latitude 5420", "problem": "No power", "note": "Left charger"},
    )

    assert repairs == [ticket]
    assert ticket["id"]
    assert ticket["ticketNumber"] == "00001"
    assert ticket["status"] == "received"
    assert ticket["dateCreated"] == ticket["dateModified"]
    assert ticket["dateCreated"].endswith("Z")
    assert ticket["notes"].startswith(f"[{ticket['dateCreated']}] {NOTE_ACTION_CREATED}: Left charger")
    assert "note" not in ticket


def test_create_ticket_ids_are_unique_and_newest_first(repairs):
    first = create_ticket(repairs, {"brand": "HP"})
    second = create_ticket(repairs, {"brand": "Acer"})

    assert first["id"] != second["id"]
    assert [t["id"] for t in repairs] == [second["id"], first["id"]]
    assert second["ticketNumber"] == "00002"


def test_create_ticket_rejects_duplicate_id(repairs):
    create_ticket(repairs, {"id": "fixed"})

    with pytest.raises(ValueError):
        create_ticket(repairs, {"id": "fixed"})


def test_create_ticket_keeps_unknown_fields(repairs):
    ticket = create_ticket(repairs, {"brand": "Apple", "customerPhone": "555-0100"})

    assert ticket["customerPhone"] == "555-0100"


def test_create_ticket_rejects_unknown_status(repairs):
    with pytest.raises(PayloadValidationError):
        create_ticket(repairs, {"status": "lost"})


def test_status_is_normalized(repairs):
    ticket = create_ticket(repairs, {"status": "Waiting Parts"})

    assert ticket["status"] == "waiting-parts"


def test_update_ticket_logs_status_change_and_note(repairs):
    ticket = create_ticket(repairs, {"brand": "Lenovo"})
    created_notes = ticket["notes"]

    updated = update_ticket(
        repairs,
        ticket["id"],
        {"status": "diagnosing", "diagnosis": "Bad DC jack", "note": "Ordered part"},
    )

    assert updated is ticket
    assert updated["status"] == "diagnosing"
    assert updated["diagnosis"] == "Bad DC jack"
    lines = updated["notes"].splitlines()
    assert lines[0].endswith("Updated: Ordered part")
    assert lines[1].endswith("Status changed: Received -> Diagnosing")
    assert lines[2:] == created_notes.splitlines()


def test_update_ticket_cannot_overwrite_identity_fields(repairs):
    ticket = create_ticket(repairs, {"brand": "Asus"})
    original_id = ticket["id"]
    created = ticket["dateCreated"]

    update_ticket(repairs, original_id, {"id": "other", "dateCreated": "1999-01-01", "notes": "wiped"})

    assert ticket["id"] == original_id
    assert ticket["dateCreated"] == created
    assert ticket["notes"] != "wiped"


def test_update_unknown_ticket_raises(repairs):
    with pytest.raises(ValueError):
        update_ticket(repairs, "missing", {"brand": "HP"})


def test_delete_ticket_removes_record(repairs):
    keep = create_ticket(repairs, {"brand": "HP"})
    drop = create_ticket(repairs, {"brand": "Dell"})

    removed = delete_ticket(repairs, drop["id"])

    assert removed["id"] == drop["id"]
    assert repairs == [keep]
    assert get_ticket(repairs, drop["id"]) is None
    with pytest.raises(ValueError):
        delete_ticket(repairs, drop["id"])


def test_next_ticket_number_uses_highest_trailing_number():
    tickets = [{"ticketNumber": "R-0007"}, {"ticketNumber": "12"}, {"ticketNumber": "walk-in"}]

    assert next_ticket_number(tickets) == "00013"


def test_prepend_note_puts_newest_entry_first():
    notes = prepend_note("", "Created", timestamp="2024-01-01T00:00:00.000Z")
    notes = prepend_note(notes, "Updated", "Replaced screen", timestamp="2024-01-02T00:00:00.000Z")

    assert notes.splitlines() == [
        "[2024-01-02T00:00:00.000Z] Updated: Replaced screen",
        "[2024-01-01T00:00:00.000Z] Created",
    ]
