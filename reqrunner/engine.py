"""HTTP execution engine.

Sends requests that carry an HTTP method with ``requests``, prints the
response and saves it when the request has a ``>>`` redirect directive.
"""

from __future__ import annotations

from pathlib import Path

import requests
import urllib3

from reqrunner.errors import HttpExecutionError, report_error
from reqrunner.parser import RequestDocument

# Headers that requests computes itself from the URL and body
MANAGED_HEADERS = {"host", "content-length", "accept-encoding"}

DEFAULT_TIMEOUT = 30


class HttpResult:
    """Container for the response of an executed HTTP request."""

    __slots__ = ("status_code", "reason", "headers", "body")

    def __init__(
        self,
        status_code: int,
        reason: str,
        headers: dict[str, str],
        body: bytes,
    ) -> None:
        self.status_code = status_code
        self.reason = reason
        self.headers = headers
        self.body = body

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


def disable_tls_warnings() -> None:
    """Silence InsecureRequestWarning when TLS verification is off."""
    urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)


def build_headers(request: RequestDocument) -> dict[str, str]:
    """Return the request headers minus the ones requests manages.

    For duplicate names the first value wins, like header lookup.
    """
    headers: dict[str, str] = {}
    seen: set[str] = set()
    for name, value in request.headers:
        lower = name.lower()
        if lower in MANAGED_HEADERS or lower in seen:
            continue
        seen.add(lower)
        headers[name] = value
    return headers


def execute_http(
    request: RequestDocument,
    timeout: int = DEFAULT_TIMEOUT,
    proxy: str | None = None,
    verify: bool = True,
) -> HttpResult:
    """Send an HTTP request document.

    Args:
        request: A cleaned request document with an HTTP method.
        timeout: Request timeout in seconds.
        proxy: Optional proxy URL for debugging.
        verify: Whether to verify TLS certificates.

    Returns:
        An HttpResult holding the response.

    Raises:
        HttpExecutionError: If the request could not be sent.
    """
    url = request.target.url
    proxies = None
    if proxy:
        proxies = {"http": proxy, "https": proxy}

    try:
        response = requests.request(
            method=request.method.value,
            url=url,
            headers=build_headers(request),
            data=request.body or None,
            proxies=proxies,
            timeout=timeout,
            verify=verify,
            allow_redirects=False,
        )
    except requests.RequestException as exc:
        report_error("HTX-103-500", url, exc)
        raise HttpExecutionError(str(exc), details={"url": url}) from exc

    return HttpResult(
        status_code=response.status_code,
        reason=response.reason or "",
        headers=dict(response.headers),
        body=response.content,
    )


def print_response(result: HttpResult) -> None:
    """Print the status line, headers and body of a response."""
    print(f"HTTP {result.status_code} {result.reason}".rstrip())
    for key, value in result.headers.items():
        print(f"{key}: {value}")
    print()
    if result.body:
        print(result.text)


def _next_free_path(path: Path) -> Path:
    counter = 1
    candidate = path
    while candidate.exists():
        candidate = path.with_name(f"{path.stem}-{counter}{path.suffix}")
        counter += 1
    return candidate


def save_redirect(
    result: HttpResult, directive: str, base_dir: Path | None = None
) -> Path:
    """Write the response body to the file named by a redirect directive.

    ``path`` keeps an existing file and writes ``path-1`` (``-2``, ...)
    instead; ``! path`` overwrites it.

    Args:
        result: The response to save.
        directive: The redirect text after ``>>``.
        base_dir: Directory used to resolve a relative path.

    Returns:
        The path that was written.
    """
    overwrite = directive.startswith("!")
    path = Path(directive.lstrip("!").strip())
    if base_dir is not None and not path.is_absolute():
        path = base_dir / path
    if not overwrite:
        path = _next_free_path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(result.body)
    return path
