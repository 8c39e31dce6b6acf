"""Pydantic shapes for repair tickets.

Tickets travel as camelCase JSON (``ticketNumber``, ``dateCreated``...) because
that is what the browser client reads and writes. The models accept either the
camelCase alias or the snake_case field name and keep unknown keys so a
client with newer fields never loses data on a round trip.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..core.ticket_status import STATUS_CHOICES, STATUS_RECEIVED, normalize_status

STATUS_PATTERN = f"^({'|'.join(STATUS_CHOICES)})$"


class TicketBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    ticket_number: str = Field(default="", alias="ticketNumber")
    brand: str = ""
    model: str = ""
    serial: str = ""
    specs: str = ""
    problem: str = ""
    diagnosis: str = ""
    status: str = Field(default=STATUS_RECEIVED, pattern=STATUS_PATTERN)
    notes: str = ""

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value: object) -> object:
        if value is None or isinstance(value, str):
            return normalize_status(value)
        return value


class TicketCreate(TicketBase):
    id: Optional[str] = None
    # Free text recorded in the notes log alongside the "Created" entry.
    note: Optional[str] = Field(default=None, exclude=True)


class TicketUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    ticket_number: Optional[str] = Field(default=None, alias="ticketNumber")
    brand: Optional[str] = None
    model: Optional[str] = None
    serial: Optional[str] = None
    specs: Optional[str] = None
    problem: Optional[str] = None
    diagnosis: Optional[str] = None
    status: Optional[str] = Field(default=None, pattern=STATUS_PATTERN)
    note: Optional[str] = None

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value: object) -> object:
        if isinstance(value, str):
            return normalize_status(value)
        return value


class Ticket(TicketBase):
    id: str
    date_created: str = Field(alias="dateCreated")
    date_modified: str = Field(alias="dateModified")


__all__ = ["STATUS_PATTERN", "Ticket", "TicketBase", "TicketCreate", "TicketUpdate"]
