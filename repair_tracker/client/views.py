"""Views derived from the local repairs mirror.

Pure functions: they never touch the network and are recomputed from scratch
every time the mirror changes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

from ..core.ticket_status import OPEN_STATUSES, STATUS_CHOICES

SEARCH_FIELDS = ("ticketNumber", "brand", "model", "serial", "problem")


@dataclass(frozen=True)
class TicketFilters:
    search: str = ""
    status: str = ""
    brand: str = ""


@dataclass(frozen=True)
class RepairViews:
    filtered: list[dict[str, Any]] = field(default_factory=list)
    stats: dict[str, int] = field(default_factory=dict)
    brands: list[str] = field(default_factory=list)


def filter_tickets(
    tickets: Iterable[dict[str, Any]],
    search: str = "",
    status: str = "",
    brand: str = "",
) -> list[dict[str, Any]]:
    needle = (search or "").strip().casefold()
    results = []
    for ticket in tickets:
        if status and ticket.get("status") != status:
            continue
        if brand and ticket.get("brand") != brand:
            continue
        if needle:
            haystack = " ".join(str(ticket.get(key) or "") for key in SEARCH_FIELDS).casefold()
            if needle not in haystack:
                continue
        results.append(ticket)
    return results


def ticket_stats(tickets: Iterable[dict[str, Any]]) -> dict[str, int]:
    stats = {"total": 0, "open": 0}
    stats.update({status: 0 for status in STATUS_CHOICES})
    for ticket in tickets:
        stats["total"] += 1
        status = ticket.get("status")
        if status in stats:
            stats[status] += 1
        if status in OPEN_STATUSES:
            stats["open"] += 1
    return stats


def brand_options(tickets: Iterable[dict[str, Any]]) -> list[str]:
    brands = {str(ticket["brand"]) for ticket in tickets if ticket.get("brand")}
    return sorted(brands, key=lambda brand: (brand.casefold(), brand))


def derive_views(tickets: list[dict[str, Any]], filters: TicketFilters | None = None) -> RepairViews:
    filters = filters or TicketFilters()
    return RepairViews(
        filtered=filter_tickets(tickets, filters.search, filters.status, filters.brand),
        stats=ticket_stats(tickets),
        brands=brand_options(tickets),
    )


__all__ = [
    "RepairViews",
    "SEARCH_FIELDS",
    "TicketFilters",
    "brand_options",
    "derive_views",
    "filter_tickets",
    "ticket_stats",
]
