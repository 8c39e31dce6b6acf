#!/usr/bin/env python3
"""
repair-tracker-client

Purpose:
  Small command line companion for the repair tracker server.
  - watch: stay connected and log ticket counts whenever the document changes.
  - add:   create one ticket through the sync client and exit once it is saved.

Examples:
  repair-tracker-client watch --url http://localhost:3000
  repair-tracker-client add --brand Dell --model "Latitude 5420" --problem "No power"

Exit codes:
  0 = success
  1 = could not sync with the server
  2 = the ticket could not be saved
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Optional, Sequence

from ..core.config import get_settings
from ..core.logging import configure_logging
from .agent import EVENT_SAVE_ERROR, ReconciliationAgent
from .views import RepairViews

logger = logging.getLogger("repair_tracker.client")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    settings = get_settings()
    default_url = f"http://localhost:{settings.PORT}"

    p = argparse.ArgumentParser(description="Repair tracker sync client.")
    p.add_argument("--url", default=default_url, help=f"Server base URL (default: {default_url})")
    p.add_argument("--file", default=settings.DEFAULT_DATA_FILE, help="Document name to mirror.")
    p.add_argument("--timeout", type=float, default=10.0, help="Seconds to wait for the first sync.")
    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("watch", help="Log ticket counts on every change until interrupted.")

    add = sub.add_parser("add", help="Create a ticket and exit after it is saved.")
    add.add_argument("--ticket-number", default="")
    add.add_argument("--brand", default="")
    add.add_argument("--model", default="")
    add.add_argument("--serial", default="")
    add.add_argument("--specs", default="")
    add.add_argument("--problem", default="")
    add.add_argument("--status", default="received")
    add.add_argument("--note", default=None)
    return p.parse_args(argv)


def _build_agent(args: argparse.Namespace, **kwargs) -> ReconciliationAgent:
    settings = get_settings()
    return ReconciliationAgent(
        args.url,
        args.file,
        reconnect_delay=settings.CLIENT_RECONNECT_DELAY,
        request_retry_delay=settings.CLIENT_REQUEST_RETRY_DELAY,
        **kwargs,
    )


def _log_views(views: RepairViews) -> None:
    logger.info("client.views", extra={"extra_data": {"stats": views.stats, "brands": views.brands}})


async def watch(args: argparse.Namespace) -> int:
    agent = _build_agent(args, on_change=_log_views)
    await agent.start()
    try:
        await asyncio.Event().wait()
    finally:
        await agent.stop()
    return 0


async def add(args: argparse.Namespace) -> int:
    save_errors: list[str] = []

    def on_notify(event: str, message: str, level: str) -> None:
        if event == EVENT_SAVE_ERROR:
            save_errors.append(message)

    agent = _build_agent(args, on_notify=on_notify)
    await agent.start()
    try:
        try:
            await agent.wait_until_synced(timeout=args.timeout)
        except asyncio.TimeoutError:
            logger.error("Timed out waiting for %s from %s", args.file, args.url)
            return 1
        ticket = agent.create_ticket(
            {
                "ticketNumber": args.ticket_number,
                "brand": args.brand,
                "model": args.model,
                "serial": args.serial,
                "specs": args.specs,
                "problem": args.problem,
                "status": args.status,
                "note": args.note,
            }
        )
        await agent.flush()
    finally:
        await agent.stop()
    if save_errors:
        return 2
    print(ticket["id"])
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(get_settings().LOG_LEVEL, service="repair-tracker-client")
    command = watch if args.command == "watch" else add
    try:
        return asyncio.run(command(args))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    sys.exit(main())
