"""Command-line front end.

Usage:
    clinic-queue book "Jane Doe"
    clinic-queue status [BOOKING_ID]
    clinic-queue cancel [BOOKING_ID]
    clinic-queue queue [--watch]
    clinic-queue admin [--username NAME]

The commands only wire user input to the controllers; all queue and session
behaviour lives in the library.
"""

from __future__ import annotations

import argparse
import asyncio
import getpass
import logging
import sys
from typing import List, Optional

from .admin import AdminQueueController
from .app import ClinicQueueApp
from .config import settings
from .errors import ClinicQueueError
from .models import AuthState
from .schemas import Booking, QueueSnapshot

logger = logging.getLogger(__name__)


async def prompt(text: str) -> str:
    return await asyncio.to_thread(input, text)


async def confirm(text: str) -> bool:
    answer = await prompt(f"{text} [y/N] ")
    return answer.strip().lower() in ("y", "yes")


def format_snapshot(snapshot: QueueSnapshot) -> str:
    return (
        f"👥 Waiting: {snapshot.total_waiting}\n"
        f"🩺 Now serving: {snapshot.current_patient or '-'}\n"
        f"⏭️  Next up: {snapshot.next_patient or '-'}"
    )


def format_booking(booking: Booking) -> str:
    lines = [
        f"🎫 Booking {booking.booking_id}",
        f"   Name: {booking.patient_name}",
        f"   Status: {booking.status.value}",
    ]
    if booking.position is not None:
        lines.append(f"   Position in queue: #{booking.position}")
    lines.append(f"   Booked at: {booking.booking_time:%Y-%m-%d %H:%M}")
    return "\n".join(lines)


async def cmd_book(app: ClinicQueueApp, args: argparse.Namespace) -> int:
    controller = app.booking(confirm)
    booking_id = await controller.create(args.name)
    if booking_id is None:
        print(f"❌ {controller.error}")
        return 1
    print(f"✅ {controller.message}")
    return 0


async def cmd_status(app: ClinicQueueApp, args: argparse.Namespace) -> int:
    controller = app.booking(confirm)
    booking = await controller.lookup(args.booking_id)
    if booking is None:
        print(f"❌ {controller.error}")
        return 1
    print(format_booking(booking))
    return 0


async def cmd_cancel(app: ClinicQueueApp, args: argparse.Namespace) -> int:
    controller = app.booking(confirm)
    try:
        booking = await controller.lookup(args.booking_id)
        if booking is None:
            print(f"❌ {controller.error}")
            return 1
        print(format_booking(booking))
        if not controller.can_cancel:
            print(f"ℹ️  Booking is {booking.status.value}; nothing to cancel.")
            return 1
        if not await controller.cancel():
            if controller.error:
                print(f"❌ {controller.error}")
                return 1
            print("Kept your booking.")
            return 0
        print(f"✅ {controller.message}")
        return 0
    finally:
        controller.close()


async def cmd_queue(app: ClinicQueueApp, args: argparse.Namespace) -> int:
    if not args.watch:
        board = app.queue_board()
        await board.refresh(foreground=True)
        if board.error:
            print(f"❌ {board.error}")
            return 1
        print(format_snapshot(board.data))
        return 0

    def show(snapshot: QueueSnapshot) -> None:
        print(format_snapshot(snapshot))
        print("-" * 30)

    async with app.queue_board(on_update=show) as board:
        last_error = ""
        while True:
            await asyncio.sleep(1)
            if board.error and board.error != last_error:
                print(f"⚠️  {board.error}")
            last_error = board.error


async def admin_login(app: ClinicQueueApp, username: Optional[str]) -> bool:
    state = await app.sessions.verify()
    if state is AuthState.authenticated:
        return True
    username = username or (await prompt("Username: ")).strip()
    password = await asyncio.to_thread(getpass.getpass, "Password: ")
    try:
        message = await app.sessions.login(username, password)
    except ClinicQueueError as e:
        print(f"❌ {e.message}")
        return False
    print(f"🔐 {message or 'Logged in.'}")
    return True


def print_listing(controller: AdminQueueController) -> None:
    if controller.listing_error:
        print(f"⚠️  {controller.listing_error}")
    if not controller.queue:
        print("✅ Queue clear! There are no patients currently waiting.")
        return
    for index, entry in enumerate(controller.queue, start=1):
        marker = "▶" if index == 1 else " "
        print(f"{marker} {index:>2}. {entry.patient_name:<24} {entry.booking_time:%H:%M}  {entry.booking_id}")


async def cmd_admin(app: ClinicQueueApp, args: argparse.Namespace) -> int:
    if not await admin_login(app, args.username):
        return 1
    async with app.admin(confirm) as controller:
        while controller.poller.running and controller.poller.fetch_count == 0:
            await asyncio.sleep(0.05)
        while app.session.is_authenticated:
            print_listing(controller)
            choice = (await prompt("[#] mark done, [r]efresh, [l]ogout, [q]uit: ")).strip().lower()
            if choice == "q":
                break
            if choice == "l":
                await controller.logout()
                print("👋 Logged out.")
                break
            if choice == "r":
                await controller.refresh()
                continue
            if choice.isdigit() and 1 <= int(choice) <= len(controller.queue):
                entry = controller.queue[int(choice) - 1]
                if await controller.mark_done(entry.internal_id, entry.patient_name):
                    print(f"✅ {controller.message}")
                elif controller.error:
                    print(f"❌ {controller.error}")
        if not app.session.is_authenticated:
            print("🔐 Session ended. Please log in again.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="clinic-queue", description="Walk-in clinic queue client")
    parser.add_argument("--api-url", default=None, help="Base URL of the queue service")
    sub = parser.add_subparsers(dest="command", required=True)

    book = sub.add_parser("book", help="Book a slot")
    book.add_argument("name")
    book.set_defaults(handler=cmd_book)

    status = sub.add_parser("status", help="Check a booking (defaults to your last booking)")
    status.add_argument("booking_id", nargs="?")
    status.set_defaults(handler=cmd_status)

    cancel = sub.add_parser("cancel", help="Cancel a waiting booking")
    cancel.add_argument("booking_id", nargs="?")
    cancel.set_defaults(handler=cmd_cancel)

    queue = sub.add_parser("queue", help="Show the live queue")
    queue.add_argument("--watch", action="store_true", help="Keep refreshing until interrupted")
    queue.set_defaults(handler=cmd_queue)

    admin = sub.add_parser("admin", help="Operator console")
    admin.add_argument("--username", default=None)
    admin.set_defaults(handler=cmd_admin)
    return parser


async def run(args: argparse.Namespace) -> int:
    config = settings
    if args.api_url:
        config = settings.model_copy(update={"api_url": args.api_url})
    logger.debug(f"Using clinic API at {config.api_url}")
    async with ClinicQueueApp(config) as app:
        return await args.handler(app, args)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        print("\n👋 Goodbye!")
        return 0


if __name__ == "__main__":
    sys.exit(main())
