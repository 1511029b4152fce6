"""
Console Transport for Finance Bot

Development stand-in for the messaging client: every stdin line becomes
one inbound message and every reply is printed.

Input lines look like:

    +51999999999: gasto 25.50 food lunch

or just the text when --phone is given.

Usage:
    python app/main.py --offline --phone +51999999999
    python app/main.py                     # uses the Google Sheets stores

The admin phone comes from BOT_ADMIN_PHONE; in offline mode authorize
yourself first with "<admin phone>: authorize <your phone>".
"""

import argparse
import asyncio
import logging
import re
import sys
from typing import Optional

from finance_bot.config import get_settings, validate_all_settings
from finance_bot.conversation import Dispatcher, InboundMessage, build_dispatcher


# "+51 999 999 999" or "51999999999@c.us"
_SENDER_RE = re.compile(r"^\+?[\d\s()\-]+(@[\w.]+)?$")


class ConsoleMessage(InboundMessage):
    """A stdin line wrapped as an inbound message."""

    def __init__(self, sender: str, text: str):
        self._sender = sender
        self._text = text

    @property
    def sender(self) -> str:
        return self._sender

    @property
    def text(self) -> str:
        return self._text

    async def reply(self, text: str) -> None:
        print(f"[bot -> {self._sender}]\n{text}\n", flush=True)


def parse_line(line: str, default_phone: Optional[str]) -> Optional[ConsoleMessage]:
    """'<phone>: <text>', or plain text when a default phone is set."""
    line = line.strip()
    if not line:
        return None

    sender, sep, text = line.partition(":")
    if sep and _SENDER_RE.match(sender.strip()):
        return ConsoleMessage(sender.strip(), text.strip())

    if default_phone:
        return ConsoleMessage(default_phone, line)

    print("Expected '<phone>: <text>' (or start with --phone)", file=sys.stderr)
    return None


async def run_console(dispatcher: Dispatcher, default_phone: Optional[str]) -> None:
    while True:
        line = await asyncio.to_thread(sys.stdin.readline)
        if not line:
            break
        message = parse_line(line, default_phone)
        if message is not None:
            await dispatcher.handle(message)


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Chat with the finance bot from a terminal")
    parser.add_argument("--phone", default=None, help="Sender for lines without a '<phone>:' prefix")
    parser.add_argument("--offline", action="store_true", help="Use in-memory stores instead of Google Sheets")
    args = parser.parse_args(argv)

    if not args.offline:
        checks = validate_all_settings()
        errors = {name: value for name, value in checks.items() if name.endswith("_error")}
        if errors:
            for name, error in errors.items():
                print(f"Configuration error ({name.removesuffix('_error')}): {error}", file=sys.stderr)
            sys.exit(1)

    settings = get_settings()
    logging.basicConfig(
        level=logging.DEBUG if settings.app.debug_mode else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    dispatcher = build_dispatcher(settings, offline=args.offline)
    try:
        asyncio.run(run_console(dispatcher, args.phone))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
