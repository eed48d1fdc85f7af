"""Command-line client for poking a running prompt service.

Usage:
    sgfw-prompt test
    sgfw-prompt close
    sgfw-prompt request --application curl --path /usr/bin/curl --address example.com --port 443
"""

import argparse
import sys
from typing import List, Optional

from loguru import logger

from .config import Config
from .models import RuleAction

# G_MAXINT: the call never times out while the user is deciding
NO_TIMEOUT_MS = 2**31 - 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sgfw-prompt", description="Talk to the firewall prompt service"
    )
    parser.add_argument(
        "--bus",
        choices=["system", "session"],
        default=Config.BUS,
        help="Bus the service is on (default: %(default)s)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("test", help="Queue the built-in sample prompt")
    subparsers.add_parser("close", help="Abandon every pending prompt")

    request = subparsers.add_parser("request", help="Send a prompt and print the decision")
    request.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds to wait for the decision (default: wait forever)",
    )
    request.add_argument("--application", default="Test")
    request.add_argument("--icon", default="")
    request.add_argument("--path", default="/usr/bin/test")
    request.add_argument("--address", default="example.com")
    request.add_argument("--port", type=int, default=443)
    request.add_argument("--ip", default="")
    request.add_argument("--origin", default="")
    request.add_argument("--proto", default="tcp")
    request.add_argument("--uid", type=int, default=-1)
    request.add_argument("--gid", type=int, default=-1)
    request.add_argument("--user", default="")
    request.add_argument("--group", default="")
    request.add_argument("--pid", type=int, default=-1)
    request.add_argument("--sandbox", default="")
    request.add_argument("--tlsguard", action="store_true")
    request.add_argument("--optstring", default="")
    request.add_argument("--expanded", action="store_true")
    request.add_argument("--expert", action="store_true")
    request.add_argument(
        "--action",
        choices=[a.name.lower() for a in RuleAction],
        default="deny",
        help="Suggested default action (default: %(default)s)",
    )
    return parser


def request_args(args: argparse.Namespace) -> tuple:
    """RequestPrompt arguments in bus order."""
    return (
        args.application,
        args.icon,
        args.path,
        args.address,
        args.port,
        args.ip,
        args.origin,
        args.proto,
        args.uid,
        args.gid,
        args.user,
        args.group,
        args.pid,
        args.sandbox,
        args.tlsguard,
        args.optstring,
        args.expanded,
        args.expert,
        int(RuleAction[args.action.upper()]),
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    from .bus import get_message_bus

    message_bus = get_message_bus(args.bus)
    try:
        proxy = message_bus.get_proxy(Config.BUS_NAME, Config.OBJECT_PATH)
        if args.command == "test":
            proxy.TestPrompt()
        elif args.command == "close":
            proxy.ClosePrompt()
        else:
            timeout = NO_TIMEOUT_MS if args.timeout is None else int(args.timeout * 1000)
            scope, rule = proxy.RequestPrompt(*request_args(args), timeout=timeout)
            print(f"{scope} {rule}")
    except Exception as e:
        logger.error(f"{args.command} failed: {e}")
        return 1
    finally:
        message_bus.disconnect()
    return 0


if __name__ == "__main__":
    sys.exit(main())
