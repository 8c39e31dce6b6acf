"""Ticket operations on an in-memory repairs document.

The repairs document is a plain ``list`` of ticket dicts (camelCase keys, the
same shape that is stored on disk). Every function here mutates that list in
place; persisting the result is the caller's job.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Mapping, MutableSequence
from uuid import uuid4

from ..core.ticket_status import STATUS_LABELS
from ..schemas.ticket import TicketCreate, TicketUpdate

NOTE_ACTION_CREATED = "Created"
NOTE_ACTION_UPDATED = "Updated"
NOTE_ACTION_STATUS = "Status changed"

# Fields a client update must never overwrite.
IMMUTABLE_FIELDS = {"id", "dateCreated", "dateModified", "notes"}

_TRAILING_DIGITS = re.compile(r"(\d+)\s*$")


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def new_ticket_id() -> str:
    return uuid4().hex


def next_ticket_number(tickets: list[Mapping[str, Any]]) -> str:
    highest = 0
    for ticket in tickets:
        match = _TRAILING_DIGITS.search(str(ticket.get("ticketNumber") or ""))
        if match:
            highest = max(highest, int(match.group(1)))
    return f"{highest + 1:05d}"


def prepend_note(notes: str | None, action: str, text: str | None = None, *, timestamp: str | None = None) -> str:
    """Return ``notes`` with a new ``[timestamp] action: text`` line on top."""

    entry = f"[{timestamp or utc_timestamp()}] {action}"
    if text and text.strip():
        entry = f"{entry}: {text.strip()}"
    existing = (notes or "").strip()
    return f"{entry}\n{existing}" if existing else entry


def get_ticket(tickets: list[dict[str, Any]], ticket_id: str) -> dict[str, Any] | None:
    for ticket in tickets:
        if ticket.get("id") == ticket_id:
            return ticket
    return None


def create_ticket(tickets: MutableSequence[dict[str, Any]], payload: Mapping[str, Any]) -> dict[str, Any]:
    data = TicketCreate.model_validate(dict(payload))
    record = data.model_dump(by_alias=True)
    ticket_id = data.id or new_ticket_id()
    if get_ticket(list(tickets), ticket_id) is not None:
        raise ValueError(f"Ticket id {ticket_id} already exists")

    now = utc_timestamp()
    record["id"] = ticket_id
    if not record.get("ticketNumber"):
        record["ticketNumber"] = next_ticket_number(list(tickets))
    record["notes"] = prepend_note(record.get("notes"), NOTE_ACTION_CREATED, data.note, timestamp=now)
    record["dateCreated"] = now
    record["dateModified"] = now
    tickets.insert(0, record)
    return record


def update_ticket(
    tickets: list[dict[str, Any]], ticket_id: str, payload: Mapping[str, Any]
) -> dict[str, Any]:
    ticket = get_ticket(tickets, ticket_id)
    if ticket is None:
        raise ValueError(f"Ticket {ticket_id} not found")

    changes = TicketUpdate.model_validate(dict(payload)).model_dump(by_alias=True, exclude_unset=True)
    note = changes.pop("note", None)
    now = utc_timestamp()

    previous_status = ticket.get("status")
    for key, value in changes.items():
        if key in IMMUTABLE_FIELDS or value is None:
            continue
        ticket[key] = value

    notes = ticket.get("notes")
    new_status = ticket.get("status")
    if new_status != previous_status:
        old_label = STATUS_LABELS.get(previous_status, previous_status or "none")
        new_label = STATUS_LABELS.get(new_status, new_status)
        notes = prepend_note(notes, NOTE_ACTION_STATUS, f"{old_label} -> {new_label}", timestamp=now)
    if note and note.strip():
        notes = prepend_note(notes, NOTE_ACTION_UPDATED, note, timestamp=now)
    ticket["notes"] = notes or ""
    ticket["dateModified"] = now
    return ticket


def delete_ticket(tickets: list[dict[str, Any]], ticket_id: str) -> dict[str, Any]:
    for index, ticket in enumerate(tickets):
        if ticket.get("id") == ticket_id:
            return tickets.pop(index)
    raise ValueError(f"Ticket {ticket_id} not found")


__all__ = [
    "IMMUTABLE_FIELDS",
    "NOTE_ACTION_CREATED",
    "NOTE_ACTION_STATUS",
    "NOTE_ACTION_UPDATED",
    "create_ticket",
    "delete_ticket",
    "get_ticket",
    "new_ticket_id",
    "next_ticket_number",
    "prepend_note",
    "update_ticket",
    "utc_timestamp",
]
