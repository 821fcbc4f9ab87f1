#!/usr/bin/env python3
"""
Call Console CLI — inspect numbers, call history and recordings from a shell.

Reads the bearer credential from CALL_CONSOLE_TOKEN (a .env file is honored)
and the backend location from config/settings.yaml.

Usage:
    python scripts/call_console.py numbers list
    python scripts/call_console.py numbers search --area-code 910
    python scripts/call_console.py numbers buy +19105550100
    python scripts/call_console.py numbers release 42
    python scripts/call_console.py calls --status completed --limit 20
    python scripts/call_console.py call CA123
    python scripts/call_console.py recordings --call-sid CA123
    python scripts/call_console.py delete-recording RE123
    python scripts/call_console.py forwarding list
    python scripts/call_console.py simulate 9107555577 --from 9105550100 --seconds 3
"""
import argparse
import asyncio
import json
import logging
import os
import sys

import structlog
from dotenv import load_dotenv

sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), ".."))

from backend.auth import EnvCredentialProvider  # noqa: E402
from calling.device import MockVoiceDevice  # noqa: E402
from config.settings import load_settings  # noqa: E402
from console.adapter import CallConsole  # noqa: E402
from models.errors import CallConsoleError  # noqa: E402
from models.schemas import CallLogFilters, RecordingFilters  # noqa: E402
from utils.formatting import format_duration, format_price  # noqa: E402


def _configure_logging(verbose: bool) -> None:
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="%H:%M:%S"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.DEBUG if verbose else logging.WARNING
        ),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


def _dump(data) -> None:
    print(json.dumps(data, indent=2, default=str))


def _call_row(call) -> dict:
    row = call.model_dump(mode="json")
    row["duration"] = format_duration(call.duration_seconds)
    row["cost"] = format_price(call.price, call.price_unit)
    return row


async def _numbers(console: CallConsole, args) -> None:
    if args.numbers_cmd == "list":
        _dump([n.model_dump(mode="json") for n in await console.refresh_numbers()])
    elif args.numbers_cmd == "search":
        found = await console.search(args.area_code, country=args.country, limit=args.limit)
        if not found:
            print("No numbers available for that search.")
            return
        _dump([n.model_dump(mode="json") for n in found])
    elif args.numbers_cmd == "buy":
        owned = await console.purchase(args.phone_number, country=args.country,
                                       area_code=args.area_code)
        _dump(owned.model_dump(mode="json"))
    elif args.numbers_cmd == "release":
        await console.refresh_numbers()
        await console.release(args.number_id)
        print(f"Released number {args.number_id}")


async def _simulate(console: CallConsole, args) -> None:
    """Run one call end to end against the in-process device."""
    if not args.from_number:
        await console.refresh_numbers()
    if not await console.initialize():
        _dump(console.controller.snapshot()["last_error"])
        return
    await console.controller.wait_until_ready()
    await console.dial(args.to, from_number=args.from_number)
    await asyncio.sleep(args.seconds)
    console.end_call()
    last = console.controller.last_session
    print(f"Call to {last.to_number} ended after {format_duration(last.duration_seconds)}")


async def run(args) -> int:
    settings = load_settings(args.config)
    device_factory = lambda token: MockVoiceDevice(token, auto_ready=True, auto_answer=True)  # noqa: E731
    console = CallConsole.create(EnvCredentialProvider(), device_factory, settings)

    try:
        if args.cmd == "numbers":
            await _numbers(console, args)
        elif args.cmd == "calls":
            filters = CallLogFilters(
                page=args.page, limit=args.limit, status=args.status,
                phone_number_id=args.number_id,
            )
            _dump([_call_row(c) for c in await console.refresh_calls(filters)])
        elif args.cmd == "call":
            _dump(_call_row(await console.history.get_call(args.call_sid)))
        elif args.cmd == "recordings":
            filters = RecordingFilters(
                page=args.page, limit=args.limit, call_sid=args.call_sid,
                phone_number_id=args.number_id,
            )
            _dump([r.model_dump(mode="json") for r in await console.refresh_recordings(filters)])
        elif args.cmd == "delete-recording":
            await console.delete_recording(args.recording_sid)
            print(f"Deleted recording {args.recording_sid}")
        elif args.cmd == "forwarding":
            _dump([r.model_dump(mode="json") for r in await console.forwarding.refresh()])
        elif args.cmd == "simulate":
            await _simulate(console, args)
    except CallConsoleError as e:
        print(f"Error [{e.kind.value}]: {e}", file=sys.stderr)
        return 1
    finally:
        await console.close()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Call console command line")
    parser.add_argument("--config", default=None, help="Path to settings.yaml")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show debug logs")
    sub = parser.add_subparsers(dest="cmd", required=True)

    numbers = sub.add_parser("numbers", help="Owned and purchasable numbers")
    nsub = numbers.add_subparsers(dest="numbers_cmd", required=True)
    nsub.add_parser("list", help="List owned numbers")
    search = nsub.add_parser("search", help="Search purchasable numbers")
    search.add_argument("--area-code", default="")
    search.add_argument("--country", default="US")
    search.add_argument("--limit", type=int, default=10)
    buy = nsub.add_parser("buy", help="Purchase a number")
    buy.add_argument("phone_number")
    buy.add_argument("--country", default="US")
    buy.add_argument("--area-code", default="")
    release = nsub.add_parser("release", help="Release an owned number")
    release.add_argument("number_id")

    calls = sub.add_parser("calls", help="List call history")
    calls.add_argument("--status", default=None)
    calls.add_argument("--number-id", default=None)
    calls.add_argument("--limit", type=int, default=None)
    calls.add_argument("--page", type=int, default=None)

    call = sub.add_parser("call", help="Show one call record")
    call.add_argument("call_sid")

    recordings = sub.add_parser("recordings", help="List recordings")
    recordings.add_argument("--call-sid", default=None)
    recordings.add_argument("--number-id", default=None)
    recordings.add_argument("--limit", type=int, default=None)
    recordings.add_argument("--page", type=int, default=None)

    delete = sub.add_parser("delete-recording", help="Delete a recording")
    delete.add_argument("recording_sid")

    forwarding = sub.add_parser("forwarding", help="Call-forwarding rules")
    forwarding.add_argument("action", choices=["list"])

    simulate = sub.add_parser("simulate", help="Place a call on the in-process device")
    simulate.add_argument("to")
    simulate.add_argument("--from", dest="from_number", default=None)
    simulate.add_argument("--seconds", type=float, default=2.0)
    return parser


def main():
    load_dotenv()
    args = build_parser().parse_args()
    _configure_logging(args.verbose)
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
