"""
CLI Adapter - Command-line interface.

Thin wrapper over BoxUnlockClient + UnlockCoordinator. The operator
confirms on stdin whether the box opened while the signal loops.
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from box_unlock.adapters.api import BoxUnlockClient
from box_unlock.config import UnlockConfig
from box_unlock.coordinator import AttemptState, UnlockSnapshot
from box_unlock.errors import UnlockError
from box_unlock.models import (
    CheckIn,
    CheckOut,
    FulfillOrder,
    NoAction,
    PendingAction,
    Principal,
    Role,
)


def main(args: list[str] | None = None) -> int:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="box-unlock",
        description="Open storage boxes with one-time acoustic signals",
    )
    parser.add_argument("--api-url", help="Backend base URL (default: $BOX_UNLOCK_API_URL)")
    parser.add_argument("--token", help="Bearer token (default: $BOX_UNLOCK_API_TOKEN)")
    parser.add_argument("--human-logs", action="store_true", help="Human-readable logs instead of JSON")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # open command (host)
    open_parser = subparsers.add_parser("open", help="Open your own box")
    open_parser.add_argument("qr", help="Scanned QR payload (box id)")
    open_parser.add_argument("--host-id", type=int, required=True, help="Your host id")

    # checkin / checkout commands (guest)
    for name, help_text in (("checkin", "Open your box and check in"), ("checkout", "Open your box and check out")):
        p = subparsers.add_parser(name, help=help_text)
        p.add_argument("qr", help="Scanned QR payload (box id)")
        p.add_argument("--reservation", type=int, required=True, help="Reservation id")
        p.add_argument("--guest-id", type=int, required=True, help="Your guest id")

    # fulfill command (cleaner)
    fulfill_parser = subparsers.add_parser("fulfill", help="Open a guest's box and fulfill an order")
    fulfill_parser.add_argument("qr", help="Scanned QR payload (box id)")
    fulfill_parser.add_argument("--order", type=int, required=True, help="Extra order id")
    fulfill_parser.add_argument("--cleaner-id", type=int, required=True, help="Your cleaner id")

    # history command
    history_parser = subparsers.add_parser("history", help="Show a box's opening history")
    history_parser.add_argument("box_id", type=int, help="Box id")

    # version command
    subparsers.add_parser("version", help="Show version")

    parsed = parser.parse_args(args)

    if parsed.command is None:
        parser.print_help()
        return 0

    if parsed.command == "version":
        from box_unlock import __version__
        print(f"box-unlock {__version__}")
        return 0

    if parsed.command == "history":
        return _run(_cmd_history(parsed))

    if parsed.command in ("open", "checkin", "checkout", "fulfill"):
        return _run(_cmd_unlock(parsed))

    return 1


def _run(command) -> int:
    # Ctrl-C cancels the running command; its finally block closes the
    # client, which cancels the attempt and stops the signal
    try:
        return asyncio.run(command)
    except KeyboardInterrupt:
        print("Cancelled", file=sys.stderr)
        return 130


def _build_client(args: argparse.Namespace) -> BoxUnlockClient:
    overrides = {}
    if args.api_url:
        overrides["api_url"] = args.api_url
    if args.token:
        overrides["api_token"] = args.token
    if args.human_logs:
        overrides["json_logs"] = False
    return BoxUnlockClient(UnlockConfig(**overrides))


async def _resolve(client: BoxUnlockClient, args: argparse.Namespace) -> tuple[Principal, PendingAction]:
    if args.command == "open":
        return Principal(args.host_id, Role.HOST), NoAction()

    if args.command in ("checkin", "checkout"):
        reservation = await client.get_reservation(args.reservation)
        action_type = CheckIn if args.command == "checkin" else CheckOut
        return Principal(args.guest_id, Role.GUEST), action_type(reservation)

    order = await client.find_order(args.order)
    if order is None:
        raise UnlockError(f"Order #{args.order} is not pending")
    return Principal(args.cleaner_id, Role.CLEANER), FulfillOrder(order)


async def _ask(prompt: str) -> str:
    return await asyncio.to_thread(input, prompt)


async def _cmd_unlock(args: argparse.Namespace) -> int:
    """Handle open/checkin/checkout/fulfill."""
    client = _build_client(args)
    try:
        principal, action = await _resolve(client, args)
        coordinator = client.coordinator

        snap = await coordinator.start_from_qr(args.qr, principal, action)
        if snap.confirmation_required:
            print("Signal playing. Hold the device near the box.")
            answer = await _ask("Did the box open? [y/N] ")
            snap = await coordinator.confirm(answer.strip().lower() in ("y", "yes"))

        if snap.notes_required:
            notes = await _ask("Notes (optional): ")
            snap = await coordinator.submit_notes(notes)

        return _report(snap)

    except UnlockError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 2
    finally:
        await client.aclose()


async def _cmd_history(args: argparse.Namespace) -> int:
    """Print a box's opening history."""
    client = _build_client(args)
    try:
        events = await client.opening_history(args.box_id)
    except UnlockError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 2
    finally:
        await client.aclose()

    print(f"Opening history for box #{args.box_id}:")
    if not events:
        print("  (none)")
    for event in events:
        when = event.opened_at.isoformat() if event.opened_at else "unknown time"
        who = event.opened_by.username if event.opened_by else "unknown"
        print(f"  {when}  {who}")
    return 0


def _report(snap: UnlockSnapshot) -> int:
    if snap.state is AttemptState.SUCCEEDED:
        print(snap.message)
        return 0
    if snap.failure is not None:
        print(f"Error: {snap.failure.message}", file=sys.stderr)
        return 1
    print(f"Attempt ended in state {snap.state.value}", file=sys.stderr)
    return 1


if __name__ == "__main__":
    sys.exit(main())
