"""Command-line interface.

Builds and validates the argparse interface for running the requests of
a request document.
"""

import argparse
import os
import sys

from reqrunner import __version__
from reqrunner.engine import DEFAULT_TIMEOUT
from reqrunner.transports.base import DEFAULT_MAX_MESSAGES


def build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser for the reqrunner CLI."""
    parser = argparse.ArgumentParser(
        prog="reqrunner",
        description=(
            "reqrunner v{ver} - run HTTP and pub/sub requests from a "
            "request document.\n\n"
            "HTTP requests are sent with their method (GET, POST, ...). "
            "PUB and SUB requests publish to or subscribe on Kafka, "
            "RabbitMQ, NATS, RocketMQ, Redis, MQTT or Aliyun EventBridge "
            "targets, selected by the URI scheme."
        ).format(ver=__version__),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  reqrunner requests.http\n"
            "  reqrunner requests.http create-order\n"
            "  reqrunner requests.http --tag smoke --timeout 10\n"
            "  reqrunner events.http --max-messages 5\n"
        ),
    )

    parser.add_argument(
        "request_file",
        help="Path to the request document.",
    )
    parser.add_argument(
        "targets",
        nargs="*",
        metavar="NAME",
        help="Names or indexes of the requests to run (default: all).",
    )
    parser.add_argument(
        "--tag",
        action="append",
        default=[],
        dest="tags",
        help="Only run requests carrying this tag (repeatable).",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        dest="list_only",
        help="List the requests in the document and exit.",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help=(
            "Timeout in seconds for HTTP requests (default: {0}) and for "
            "subscriptions (default: none)."
        ).format(DEFAULT_TIMEOUT),
    )
    parser.add_argument(
        "--max-messages",
        type=int,
        default=DEFAULT_MAX_MESSAGES,
        help=(
            "Stop a subscription after this many messages "
            "(default: {0}).".format(DEFAULT_MAX_MESSAGES)
        ),
    )
    parser.add_argument(
        "--proxy",
        default=None,
        help=(
            "Route HTTP traffic through a proxy for debugging "
            "(e.g. http://127.0.0.1:8080)."
        ),
    )
    parser.add_argument(
        "--insecure",
        action="store_false",
        dest="verify",
        help="Do not verify TLS certificates of HTTP targets.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    return parser


def validate_args(args: argparse.Namespace) -> None:
    """Validate parsed CLI arguments.

    Raises:
        SystemExit: If the request file does not exist or is not readable,
            or a numeric option is not positive.
    """
    document = args.request_file
    if not os.path.isfile(document) or not os.access(document, os.R_OK):
        problem = "missing" if not os.path.exists(document) else "unreadable"
        print(f"Error: request document is {problem}: {document}", file=sys.stderr)
        sys.exit(1)

    if args.timeout is not None and args.timeout <= 0:
        print("Error: --timeout must be positive.", file=sys.stderr)
        sys.exit(1)

    if args.max_messages <= 0:
        print("Error: --max-messages must be positive.", file=sys.stderr)
        sys.exit(1)


def parse_cli(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse and validate command-line arguments.

    Args:
        argv: Optional list of arguments (defaults to sys.argv).

    Returns:
        Parsed and validated argument namespace.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    validate_args(args)
    return args
