"""reqrunner - Main entry point.

Ties together the CLI, document parser, HTTP engine and pub/sub
dispatcher to run the requests of a request document.
"""

import logging
import sys
from pathlib import Path

from reqrunner.cli import parse_cli
from reqrunner.dispatcher import dispatch
from reqrunner.engine import (
    DEFAULT_TIMEOUT,
    disable_tls_warnings,
    execute_http,
    print_response,
    save_redirect,
)
from reqrunner.errors import BodyFileError, HttpExecutionError, report_error
from reqrunner.parser import RequestDocument, load_request_file, parse_document
from reqrunner.transports.base import SubscribeOptions, shutdown_signal


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def select_requests(
    requests: list[RequestDocument], targets: list[str], tags: list[str]
) -> list[RequestDocument]:
    """Filter requests by name or index, then by tag."""
    selected = requests
    if targets:
        wanted = set(targets)
        selected = [r for r in selected if r.name in wanted or str(r.index) in wanted]
    if tags:
        selected = [r for r in selected if any(tag in r.tags for tag in tags)]
    return selected


def run_request(request: RequestDocument, args, cancel) -> bool:
    """Clean and execute one request.

    Returns:
        True if the request ran, False if it failed locally.
    """
    try:
        request.clean_body()
    except BodyFileError as exc:
        report_error("HTX-002-404", exc.path, exc)
        return False

    if request.test_script is not None:
        print("[*] Embedded test script found; not executed.")
    for ref in request.handler_refs:
        print(f"[*] Response handler file referenced: {ref}")

    if request.is_pubsub:
        options = SubscribeOptions(
            max_messages=args.max_messages,
            timeout=args.timeout,
            cancel=cancel,
        )
        dispatch(request, request.operation, options)
        print()
        return True

    try:
        result = execute_http(
            request,
            timeout=args.timeout or DEFAULT_TIMEOUT,
            proxy=args.proxy,
            verify=args.verify,
        )
    except HttpExecutionError:
        return False

    print_response(result)
    if request.redirect:
        try:
            path = save_redirect(result, request.redirect, request.base_dir)
        except OSError as exc:
            report_error("HTX-108-500", request.redirect, exc)
            return False
        print(f"[*] Response saved to {path}")
    return True


def main(argv: list[str] | None = None) -> int:
    """Run the requests of a request document.

    Args:
        argv: Optional argument list (defaults to sys.argv).

    Returns:
        Exit code (0 = all requests ran, 1 = a request failed,
        2 = the document could not be read or parsed).
    """
    args = parse_cli(argv)
    configure_logging(args.verbose)
    if not args.verify:
        disable_tls_warnings()

    try:
        text = load_request_file(args.request_file)
    except (FileNotFoundError, IOError) as exc:
        print(f"Error reading request file: {exc}", file=sys.stderr)
        return 2

    try:
        requests = parse_document(text, Path(args.request_file).resolve().parent)
    except ValueError as exc:
        print(f"Error parsing request file: {exc}", file=sys.stderr)
        return 2

    selected = select_requests(requests, args.targets, args.tags)
    if args.list_only:
        for request in selected:
            verb = request.method or request.operation
            tags = f"  [{', '.join(request.tags)}]" if request.tags else ""
            print(f"{request.index:>3}  {request.name}  {verb.value} "
                  f"{request.target.request_line}{tags}")
        return 0

    if not selected:
        print("No matching requests found.", file=sys.stderr)
        return 1

    failures = 0
    with shutdown_signal() as cancel:
        for request in selected:
            if cancel.is_set():
                break
            print(f"### {request.name}")
            if not run_request(request, args, cancel):
                failures += 1

    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
