"""
=============================================================================
HTTP REQUEST MODEL AND PARSER
=============================================================================

The request object every handler and middleware receives, plus the
HTTP/1.1 parser the bundled server uses to build it from raw bytes.

=============================================================================
WHAT MIDDLEWARE READS FROM A REQUEST
=============================================================================

    GET /api/jobs?state=done HTTP/1.1
    ─┬─ ──────────┬───────── ────┬───
     │            │              └── version   → keep-alive defaults
     │            └── target       → request_uri (path + query, as sent)
     └── method                    → router dispatch

    Host: api.example.com             → access log "host"
    User-Agent: curl/8.4              → access log "user_agent"
    X-Forwarded-For: 10.0.0.7, 1.2.3.4→ access log "remote_addr"
    X-Forwarded-Proto: http           → protocol redirect
    X-Request-Id: 6f1c...             → propagated request id
    Authorization: Basic dTpw         → basic auth gate
    Accept-Encoding: gzip, deflate    → compression negotiation

Headers are stored with LOWERCASE names so lookups never depend on how
the client spelled them.

=============================================================================
IMMUTABLE CONTEXT, SHALLOW COPIES
=============================================================================

Middleware never mutates ``request.context``. ``with_context()`` returns
a shallow copy of the request carrying the new context, so layers
further out keep seeing the context they created:

    outer:  request  ── context A
                │
    inner:  request.with_context(B)  ── context B (parent: A)

=============================================================================
"""

import base64
import binascii
import re
from dataclasses import dataclass, field, replace
from typing import Dict, Optional
from urllib.parse import parse_qs, unquote

from ..context import RequestContext


class HTTPParseError(Exception):
    """
    Raised when HTTP request parsing fails.

    Carries the status code the server should answer with:

        400 Bad Request                 - Malformed request syntax
        405 Method Not Allowed          - Unknown method token
        413 Payload Too Large           - Request exceeds size limit
        505 HTTP Version Not Supported  - Unknown HTTP version
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class HTTPRequest:
    """
    A parsed HTTP request.

    Attributes:
        method:         HTTP method as sent ("GET", "POST", ...)
        path:           URL-decoded path without the query string
        version:        "HTTP/1.1" or "HTTP/1.0"
        headers:        Header dict with lowercase names
        query_string:   Raw query string (no leading "?")
        query_params:   Parsed query, "?a=1&a=2" → {"a": ["1", "2"]}
        body:           Raw body bytes
        path_params:    Named groups captured by the regex router
        client_address: (ip, port) of the transport-level peer
        target:         Request target exactly as it appeared on the
                        request line
        context:        Immutable per-request context bag
    """

    method: str
    path: str
    version: str = "HTTP/1.1"
    headers: Dict[str, str] = field(default_factory=dict)
    query_string: str = ""
    query_params: Dict[str, list[str]] = field(default_factory=dict)
    body: bytes = b""
    path_params: Dict[str, str] = field(default_factory=dict)
    client_address: tuple[str, int] = ("", 0)
    target: str = ""
    context: RequestContext = field(default_factory=RequestContext, repr=False)

    @classmethod
    def from_target(
        cls,
        method: str,
        target: str,
        body: bytes = b"",
        headers: Optional[Dict[str, str]] = None,
        client_address: tuple[str, int] = ("192.0.2.1", 1234),
    ) -> "HTTPRequest":
        """
        Build a request as if it had arrived with ``method target``.

        Handy for exercising handlers in-process:

            request = HTTPRequest.from_target("GET", "/v1/jobs?state=done")
        """
        raw_path, query = split_target(target)
        lowered = {name.lower(): value for name, value in (headers or {}).items()}
        lowered.setdefault("host", "example.com")
        if body:
            lowered.setdefault("content-length", str(len(body)))
        return cls(
            method=method,
            path=unquote(raw_path) or "/",
            headers=lowered,
            query_string=query,
            query_params=parse_qs(query, keep_blank_values=True),
            body=body,
            client_address=client_address,
            target=target,
        )

    # =========================================================================
    # CONTEXT
    # =========================================================================

    def with_context(self, context: RequestContext) -> "HTTPRequest":
        """Shallow copy of this request carrying ``context``."""
        return replace(self, context=context)

    # =========================================================================
    # DERIVED VALUES
    # =========================================================================

    @property
    def request_uri(self) -> str:
        """Path plus query string, as the client sent it."""
        if self.target:
            return self.target
        if self.query_string:
            return f"{self.path}?{self.query_string}"
        return self.path

    @property
    def remote_addr(self) -> str:
        """Transport-level peer as "ip:port"."""
        ip, port = self.client_address
        return f"{ip}:{port}"

    @property
    def host(self) -> str:
        return self.headers.get("host", "")

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    @property
    def content_length(self) -> int:
        """Content-Length as an int; 0 if missing or invalid."""
        try:
            return int(self.headers.get("content-length", 0))
        except ValueError:
            return 0

    @property
    def is_keep_alive(self) -> bool:
        """
        Whether the client wants the connection kept open.

            HTTP/1.1: keep-alive unless "Connection: close"
            HTTP/1.0: close unless "Connection: keep-alive"
        """
        connection = self.headers.get("connection", "").lower()
        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"

    def basic_auth(self) -> Optional[tuple[str, str]]:
        """
        Decode "Authorization: Basic <base64(user:pass)>".

        Returns ``(username, password)``, or ``None`` when the header is
        missing, uses another scheme, or does not decode to "user:pass".
        """
        auth = self.headers.get("authorization", "")
        prefix = "basic "
        if len(auth) < len(prefix) or auth[:len(prefix)].lower() != prefix:
            return None
        try:
            decoded = base64.b64decode(auth[len(prefix):], validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            return None
        username, sep, password = decoded.partition(":")
        if not sep:
            return None
        return username, password

    def get_header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)

    def get_query(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """First value of a query parameter."""
        values = self.query_params.get(name, [])
        return values[0] if values else default


def split_target(target: str) -> tuple[str, str]:
    """
    Split a request target into (raw path, query string).

    The fragment, if a client sends one, is dropped. ``urlparse`` is not
    used here: it reads "//host/x" as a network location, while on a
    request line it is just a path with a doubled slash.
    """
    target = target.split("#", 1)[0]
    raw_path, _, query = target.partition("?")
    return raw_path, query


class RequestParser:
    """
    Parses raw HTTP/1.1 request bytes into HTTPRequest objects.

        Raw bytes
            │
            ├──► size check ─────────────── too large → 413
            ├──► split at \\r\\n\\r\\n ──────── missing → 400
            ├──► request line ──────────── bad method/version → 405/505
            ├──► headers (lowercased, repeats joined with ", ")
            └──► body (exactly Content-Length bytes)
    """

    VALID_METHODS = {
        "GET", "POST", "PUT", "DELETE", "PATCH",
        "HEAD", "OPTIONS", "TRACE", "CONNECT",
    }

    REQUEST_LINE_PATTERN = re.compile(r"^([A-Za-z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    def __init__(self, max_request_size: int = 10 * 1024 * 1024):
        self.max_request_size = max_request_size

    def parse(
        self,
        data: bytes,
        client_address: tuple[str, int] = ("", 0),
    ) -> HTTPRequest:
        """
        Parse one complete request.

        Raises:
            HTTPParseError: If the request is malformed.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(
                f"Request too large: {len(data)} bytes",
                status_code=413,
            )

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        header_section = data[:header_end].decode("latin-1")
        body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        method, target, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        try:
            content_length = int(headers.get("content-length", 0))
        except ValueError:
            raise HTTPParseError("Invalid Content-Length header")
        if len(body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )

        raw_path, query = split_target(target)
        path = unquote(raw_path) or "/"
        # Path traversal: "GET /../../etc/passwd HTTP/1.1"
        if ".." in path.split("/"):
            raise HTTPParseError("Invalid path: contains ..", status_code=400)

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            query_string=query,
            query_params=parse_qs(query, keep_blank_values=True),
            body=body[:content_length],
            client_address=client_address,
            target=target,
        )

    def _parse_request_line(self, line: str) -> tuple[str, str, str]:
        """
        Parse "METHOD SP REQUEST-TARGET SP HTTP-VERSION".

        The method is kept as sent; the router upper-cases it when it
        dispatches.
        """
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line!r}")

        method, target, version = match.groups()
        if method.upper() not in self.VALID_METHODS:
            raise HTTPParseError(f"Invalid method: {method}", status_code=405)
        if version not in ("HTTP/1.0", "HTTP/1.1"):
            raise HTTPParseError(
                f"Unsupported HTTP version: {version}",
                status_code=505,
            )
        return method, target, version

    def _parse_headers(self, lines: list[str]) -> Dict[str, str]:
        """
        Parse header lines into a lowercase-keyed dict.

        Repeated headers are joined with ", " (RFC 7230 §3.2.2); obsolete
        line folding continues the previous header.
        """
        headers: Dict[str, str] = {}
        current_name = None

        for line in lines:
            if not line:
                continue

            if line[0] in (" ", "\t"):
                if current_name is not None:
                    headers[current_name] += " " + line.strip()
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue  # lenient: skip malformed lines

            name, value = match.groups()
            name = name.strip().lower()
            value = value.strip()
            current_name = name

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers


def parse_request(
    data: bytes,
    client_address: tuple[str, int] = ("", 0),
    max_size: int = 10 * 1024 * 1024,
) -> HTTPRequest:
    """Parse one request with a throwaway parser."""
    return RequestParser(max_request_size=max_size).parse(data, client_address)
