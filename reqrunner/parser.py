"""Request document parsing.

Converts the text of a request document into :class:`RequestDocument`
entries and cleans each entry's raw body lines into payload bytes, an
embedded test script, external handler references and a response redirect.
"""

from __future__ import annotations

import base64
import enum
from pathlib import Path
from typing import Iterable, NamedTuple
from urllib.parse import urlsplit, SplitResult

from reqrunner.errors import BodyFileError, RequestParseError

# Body directive markers
EXTERNAL_BODY_MARKER = "< "
DISCARD_MARKER = "<>"
SCRIPT_START_MARKER = "> {%"
SCRIPT_END_MARKER = "%}"
HANDLER_REF_MARKER = "> "
HANDLER_REF_SUFFIX = ".js"
REDIRECT_MARKER = ">>"

ENTRY_SEPARATOR = "###"
LINE_SEPARATOR = "\n"


class HttpMethod(enum.Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"
    TRACE = "TRACE"
    CONNECT = "CONNECT"


class Operation(enum.Enum):
    """Pub/sub operation selected by a ``PUB`` or ``SUB`` request line."""

    PUBLISH = "PUB"
    SUBSCRIBE = "SUB"


class HttpHeader(NamedTuple):
    name: str
    value: str


class CleanedBody(NamedTuple):
    """Artifacts extracted from the raw body lines of one request."""

    body: bytes
    test_script: str | None
    redirect: str | None
    handler_refs: list[str]


class RequestTarget:
    """The authored request line plus an optional ``Host`` header override."""

    __slots__ = ("request_line", "host_override")

    def __init__(self, request_line: str, host_override: str | None = None) -> None:
        self.request_line = request_line
        self.host_override = host_override

    @property
    def url(self) -> str:
        """The absolute URL the request line points at."""
        if "://" in self.request_line or not self.host_override:
            return self.request_line
        host = self.host_override.rstrip("/")
        if "://" not in host:
            host = "http://" + host
        return f"{host}/{self.request_line.lstrip('/')}"

    @property
    def uri(self) -> SplitResult:
        return urlsplit(self.url)

    def __repr__(self) -> str:
        return (
            f"RequestTarget(request_line={self.request_line!r}, "
            f"host_override={self.host_override!r})"
        )


def normalize_headers(
    headers: Iterable[tuple[str, str]],
) -> tuple[tuple[HttpHeader, ...], str | None]:
    """Normalize raw header pairs collected while assembling a request.

    ``Authorization: Basic user:pass`` (or ``Basic user pass``) is rewritten
    to standard base64 encoded Basic credentials, and the first ``Host``
    header is returned as the target host override.

    Args:
        headers: Raw ``(name, value)`` pairs in authored order.

    Returns:
        A tuple of (normalized headers, host override or None).
    """
    normalized: list[HttpHeader] = []
    host_override: str | None = None

    for name, value in headers:
        lower = name.lower()
        if lower == "authorization" and value.startswith("Basic "):
            credential = value[len("Basic "):].strip()
            if " " in credential or ":" in credential:
                text = credential.replace(" ", ":")
                encoded = base64.b64encode(text.encode("utf-8")).decode("ascii")
                value = f"Basic {encoded}"
        elif lower == "host" and host_override is None:
            host_override = value
        normalized.append(HttpHeader(name, value))

    return tuple(normalized), host_override


def clean_body(lines: list[str] | None, base_dir: Path | None = None) -> CleanedBody:
    """Split raw body lines into payload and directives.

    Rules are applied in a fixed order so each line is consumed by at most
    one of them:

      1. ``< path`` on the first line loads the whole body from a file and
         short-circuits every other rule.
      2. ``<>`` lines are discarded.
      3. A ``> {%`` ... ``%}`` block becomes the test script.
      4. ``> path.js`` lines become handler references.
      5. ``>>`` lines are removed; the last one is the redirect.
      6. Trailing blank lines are trimmed.

    Args:
        lines: Raw body lines as authored.
        base_dir: Directory used to resolve a relative ``< path``.

    Returns:
        A CleanedBody; ``body`` is ``b""`` when there is no payload.

    Raises:
        BodyFileError: If the ``< path`` file cannot be read.
    """
    if not lines:
        return CleanedBody(b"", None, None, [])

    first = lines[0]
    if first.startswith(EXTERNAL_BODY_MARKER):
        file_name = first[1:].strip()
        path = Path(file_name)
        if base_dir is not None and not path.is_absolute():
            path = base_dir / path
        try:
            return CleanedBody(path.read_bytes(), None, None, [])
        except OSError as exc:
            raise BodyFileError(file_name, exc) from exc

    working = [line for line in lines if not line.startswith(DISCARD_MARKER)]

    # --- Embedded test script ---
    test_script = None
    start = len(working)
    end = -1
    for i, line in enumerate(working):
        if line.startswith(SCRIPT_START_MARKER):
            start = i
        if line == SCRIPT_END_MARKER and i > start:
            end = i
            break
    if end > 0:
        test_script = LINE_SEPARATOR.join(working[start + 1 : end])
        working = working[:start] + working[end + 1 :]

    # --- External handler files ---
    handler_refs: list[str] = []
    remaining: list[str] = []
    for line in working:
        if line.startswith(HANDLER_REF_MARKER) and line.endswith(HANDLER_REF_SUFFIX):
            handler_refs.append(line[len(HANDLER_REF_MARKER):].strip())
        else:
            remaining.append(line)
    working = remaining

    # --- Response redirect, last one wins ---
    redirect = None
    remaining = []
    for line in working:
        if line.startswith(REDIRECT_MARKER):
            redirect = line[len(REDIRECT_MARKER):].strip()
        else:
            remaining.append(line)
    working = remaining

    while working and working[-1] == "":
        working.pop()

    body = LINE_SEPARATOR.join(working).encode("utf-8") if working else b""
    return CleanedBody(body, test_script, redirect, handler_refs)


class RequestDocument:
    """One request entry of a request document."""

    __slots__ = (
        "index",
        "_name",
        "comment",
        "tags",
        "method",
        "operation",
        "target",
        "headers",
        "raw_body_lines",
        "base_dir",
        "body",
        "test_script",
        "redirect",
        "handler_refs",
    )

    def __init__(
        self,
        index: int,
        name: str | None = None,
        method: HttpMethod | None = None,
        operation: Operation | None = None,
        target: RequestTarget | None = None,
        base_dir: Path | None = None,
    ) -> None:
        self.index = index
        self._name = name
        self.comment: str | None = None
        self.tags: list[str] = []
        self.method = method
        self.operation = operation
        self.target = target
        self.headers: tuple[HttpHeader, ...] = ()
        self.raw_body_lines: list[str] = []
        self.base_dir = base_dir
        self.body = b""
        self.test_script: str | None = None
        self.redirect: str | None = None
        self.handler_refs: list[str] = []

    @property
    def name(self) -> str:
        return self._name if self._name is not None else str(self.index)

    @name.setter
    def name(self, value: str | None) -> None:
        self._name = value

    def add_tag(self, tag: str) -> None:
        if tag and tag not in self.tags:
            self.tags.append(tag)

    def set_headers(self, headers: Iterable[tuple[str, str]]) -> None:
        """Store normalized headers and apply the ``Host`` override.

        Meant to run once, when the document entry has been assembled.
        """
        self.headers, host_override = normalize_headers(headers)
        if host_override is not None and self.target is not None:
            self.target.host_override = host_override

    def header(self, name: str) -> str | None:
        """Return the first header value matching ``name`` (case-insensitive)."""
        lower = name.lower()
        for header in self.headers:
            if header.name.lower() == lower:
                return header.value
        return None

    def basic_credentials(self) -> tuple[str, str] | None:
        """Decode a Basic ``Authorization`` header into (user, secret)."""
        value = self.header("Authorization")
        if not value or not value.startswith("Basic "):
            return None
        try:
            decoded = base64.b64decode(value[len("Basic "):].strip(), validate=True)
            text = decoded.decode("utf-8")
        except ValueError:
            return None
        if ":" not in text:
            return None
        user, secret = text.split(":", 1)
        return user, secret

    def add_body_line(self, line: str) -> None:
        self.raw_body_lines.append(line)

    @property
    def is_filled(self) -> bool:
        return self.method is not None and self.target is not None

    @property
    def is_pubsub(self) -> bool:
        return self.operation is not None and self.target is not None

    @property
    def is_body_empty(self) -> bool:
        return not self.raw_body_lines

    def clean_body(self) -> None:
        """Populate body, test script, redirect and handler refs.

        Raises:
            BodyFileError: If the body references an unreadable file.
        """
        cleaned = clean_body(self.raw_body_lines, self.base_dir)
        self.body = cleaned.body
        self.test_script = cleaned.test_script
        self.redirect = cleaned.redirect
        self.handler_refs = cleaned.handler_refs

    def __repr__(self) -> str:
        verb = self.method.value if self.method else (
            self.operation.value if self.operation else None
        )
        line = self.target.request_line if self.target else None
        return (
            f"RequestDocument(index={self.index}, name={self.name!r}, "
            f"verb={verb!r}, target={line!r}, "
            f"headers=<{len(self.headers)} headers>, "
            f"body={'<none>' if self.is_body_empty else '<present>'})"
        )


def _parse_request_line(line: str) -> tuple[HttpMethod | None, Operation | None, str]:
    parts = line.split()
    if len(parts) == 1:
        return HttpMethod.GET, None, parts[0]
    if len(parts) not in (2, 3):
        raise RequestParseError(f"Malformed request line: {line!r}")
    verb, target = parts[0].upper(), parts[1]
    if verb in HttpMethod.__members__:
        return HttpMethod[verb], None, target
    for operation in Operation:
        if verb == operation.value:
            return None, operation, target
    raise RequestParseError(f"Malformed request line: {line!r}")


def _comment_text(line: str) -> str | None:
    stripped = line.strip()
    for prefix in ("#", "//"):
        if stripped.startswith(prefix):
            return stripped[len(prefix):].strip()
    return None


def _parse_entry(
    title: str | None, lines: list[str], index: int, base_dir: Path | None
) -> RequestDocument | None:
    name = title or None
    tags: list[str] = []
    comments: list[str] = []
    pos = 0

    # --- Comments and annotations before the request line ---
    while pos < len(lines):
        line = lines[pos]
        if not line.strip():
            pos += 1
            continue
        comment = _comment_text(line)
        if comment is None:
            break
        if comment.startswith("@name"):
            name = comment[len("@name"):].strip() or name
        elif comment.startswith("@tag"):
            tags.extend(t.strip() for t in comment[len("@tag"):].split(","))
        elif comment:
            comments.append(comment)
        pos += 1

    if pos >= len(lines):
        return None

    method, operation, target = _parse_request_line(lines[pos].strip())
    request = RequestDocument(
        index,
        name=name,
        method=method,
        operation=operation,
        target=RequestTarget(target),
        base_dir=base_dir,
    )
    request.comment = "\n".join(comments) or None
    for tag in tags:
        request.add_tag(tag)
    pos += 1

    # --- Headers until the first blank line ---
    raw_headers: list[tuple[str, str]] = []
    while pos < len(lines):
        line = lines[pos]
        pos += 1
        if not line.strip():
            break
        colon_idx = line.find(":")
        if colon_idx <= 0:
            raise RequestParseError(f"Malformed header line: {line!r}")
        raw_headers.append((line[:colon_idx].strip(), line[colon_idx + 1 :].strip()))
    request.set_headers(raw_headers)

    for line in lines[pos:]:
        request.add_body_line(line)
    return request


def parse_document(text: str, base_dir: Path | None = None) -> list[RequestDocument]:
    """Parse a request document into its request entries.

    Entries are separated by lines starting with ``###``. Bodies are left
    raw; call :meth:`RequestDocument.clean_body` on each entry before
    executing it.

    Args:
        text: The document text.
        base_dir: Directory of the document, used for ``< path`` bodies.

    Returns:
        The request entries in document order.

    Raises:
        RequestParseError: If a request line or header line is malformed.
    """
    entries: list[tuple[str | None, list[str]]] = [(None, [])]
    for line in text.replace("\r\n", "\n").split("\n"):
        if line.startswith(ENTRY_SEPARATOR):
            entries.append((line[len(ENTRY_SEPARATOR):].strip(), []))
        else:
            entries[-1][1].append(line)

    requests: list[RequestDocument] = []
    for title, lines in entries:
        request = _parse_entry(title, lines, len(requests) + 1, base_dir)
        if request is not None:
            requests.append(request)
    return requests


def load_request_file(filepath: str) -> str:
    """Return the UTF-8 text of a request document; OSError propagates."""
    with open(filepath, "r", encoding="utf-8") as fh:
        return fh.read()
