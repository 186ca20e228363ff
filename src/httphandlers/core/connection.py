"""
=============================================================================
CONNECTIONS AND THE WIRE RESPONSE WRITER
=============================================================================

``Connection`` wraps one accepted client socket: it turns the TCP byte
stream back into complete HTTP requests, one at a time.

``ConnectionWriter`` is the ResponseWriter handed to the handler chain
for one request on that connection. It is the bottom of every writer
stack built by the middleware:

    handler ─► CompressWriter ─► LoggingWriter ─► DurationWriter ─► ConnectionWriter ─► socket

=============================================================================
TCP IS A BYTE STREAM, NOT A MESSAGE PROTOCOL
=============================================================================

    Client sends:  "GET / HTTP/1.1\\r\\nHost: a\\r\\n\\r\\n"
    recv() may return:  "GET / HT" then "TP/1.1\\r\\nHost: a\\r\\n\\r\\n"

So reads are buffered until "\\r\\n\\r\\n" ends the headers, then until
Content-Length body bytes are in. Whatever arrives beyond that belongs
to the next (pipelined) request and stays in the buffer.

=============================================================================
HOW THE WRITER PUTS A RESPONSE ON THE WIRE
=============================================================================

    ┌─────────────────────────────┬───────────────────────────────────────┐
    │ handler only writes         │ body buffered; at the end one         │
    │                             │ response with Content-Length          │
    ├─────────────────────────────┼───────────────────────────────────────┤
    │ handler calls flush()       │ head sent now with                    │
    │  (HTTP/1.1)                 │ Transfer-Encoding: chunked, each      │
    │                             │ later write is one chunk, "0" ends it │
    ├─────────────────────────────┼───────────────────────────────────────┤
    │ handler calls flush()       │ head sent without a length, body      │
    │  (HTTP/1.0)                 │ streamed raw, connection closed after │
    ├─────────────────────────────┼───────────────────────────────────────┤
    │ handler calls hijack()      │ socket handed over; the server never  │
    │                             │ touches it again                      │
    └─────────────────────────────┴───────────────────────────────────────┘

HEAD requests and 1xx/204/304 responses never carry a body; anything
written for them is discarded.

Server push is an HTTP/2 feature; this writer does not offer it, so
``push(writer, ...)`` raises NotSupportedError.

=============================================================================
"""

import socket
import time
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import format_datetime
from enum import Enum
from typing import Optional, Tuple

from ..http.headers import Headers
from ..http.request import HTTPRequest
from ..http.status_codes import HTTPStatus, body_allowed, status_text
from ..http.writer import ResponseWriter


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Connection lifecycle states, for logging and clean shutdown."""

    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    KEEP_ALIVE = "keep_alive"
    HIJACKED = "hijacked"      # Socket handed to a handler
    CLOSING = "closing"
    CLOSED = "closed"


class ConnectionHijackedError(RuntimeError):
    """The response writer was used after its connection was hijacked."""


@dataclass
class Connection:
    """
    One client connection.

    Attributes:
        socket: The client socket.
        address: Client's (ip, port) tuple.
        id: Short identifier used in log lines.
        state: Current ConnectionState.
        requests_handled: Requests read on this connection so far.
    """

    socket: socket.socket
    address: Tuple[str, int]
    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)
    requests_handled: int = 0

    buffer_size: int = 8192
    timeout: Optional[float] = 30.0           # first request
    keep_alive_timeout: float = 5.0           # every later one
    max_request_size: int = 10 * 1024 * 1024

    _buffer: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def idle_time(self) -> float:
        return time.time() - self.last_activity

    @property
    def is_open(self) -> bool:
        return self.state not in (
            ConnectionState.HIJACKED,
            ConnectionState.CLOSING,
            ConnectionState.CLOSED,
        )

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete HTTP request.

            set timeout (keep-alive timeout after the first request)
            recv until "\\r\\n\\r\\n"
            read Content-Length
            recv until the body is complete
            cut the request off the buffer, keep the rest

        Returns:
            The request bytes, or None if the client closed the
            connection (or went idle on a kept-alive one).

        Raises:
            TimeoutError: if the first request does not arrive in time.
            ValueError: if the request exceeds max_request_size.
        """
        self.state = ConnectionState.READING
        self.last_activity = time.time()

        if self.requests_handled > 0:
            self.socket.settimeout(self.keep_alive_timeout)

        try:
            while b"\r\n\r\n" not in self._buffer:
                chunk = self._recv()
                if not chunk:
                    return None
                self._buffer += chunk
                self._check_size()

            header_end = self._buffer.find(b"\r\n\r\n")
            body_start = header_end + 4
            content_length = self._parse_content_length(self._buffer[:header_end])

            while len(self._buffer) - body_start < content_length:
                chunk = self._recv()
                if not chunk:
                    break  # Closed mid-body; the parser reports it
                self._buffer += chunk
                self._check_size()

            request_end = body_start + content_length
            request_data = self._buffer[:request_end]
            self._buffer = self._buffer[request_end:]

            self.requests_handled += 1
            self.last_activity = time.time()
            return request_data

        except socket.timeout:
            if self.requests_handled > 0:
                logger.debug(f"[{self.id}] Keep-alive timeout")
                return None
            raise TimeoutError("Request read timeout")

        finally:
            if self.is_open:
                self.socket.settimeout(self.timeout)

    def _check_size(self) -> None:
        if len(self._buffer) > self.max_request_size:
            raise ValueError(f"Request too large: {len(self._buffer)} bytes")

    def _recv(self) -> bytes:
        try:
            data = self.socket.recv(self.buffer_size)
            self.last_activity = time.time()
            return data
        except (ConnectionResetError, BrokenPipeError):
            return b""

    @staticmethod
    def _parse_content_length(headers: bytes) -> int:
        """Content-Length from raw header bytes, 0 if absent or invalid."""
        try:
            for line in headers.decode("latin-1").lower().split("\r\n"):
                if line.startswith("content-length:"):
                    return int(line.split(":", 1)[1].strip())
        except ValueError:
            pass
        return 0

    def send(self, data: bytes) -> bool:
        """
        Send all of ``data``.

        Returns:
            True on success, False if the connection was lost.
        """
        self.state = ConnectionState.WRITING
        try:
            self.socket.sendall(data)
            self.last_activity = time.time()
            return True
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False

    def detach(self) -> Tuple[socket.socket, bytes]:
        """
        Hand the socket over to the caller.

        Returns the socket and any bytes already read past the current
        request. After this the connection never reads, writes or
        closes the socket.
        """
        self.state = ConnectionState.HIJACKED
        pending, self._buffer = self._buffer, b""
        logger.debug(f"[{self.id}] Connection hijacked")
        return self.socket, pending

    def close(self):
        """
        Close gracefully: FIN, drain what the client still sends, close.

        Does nothing for a hijacked connection; its socket belongs to
        the handler now.
        """
        if self.state in (ConnectionState.CLOSED, ConnectionState.HIJACKED):
            return

        self.state = ConnectionState.CLOSING
        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Already disconnected

        try:
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except OSError:
            pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.requests_handled} requests")

    def set_keep_alive(self):
        self.state = ConnectionState.KEEP_ALIVE

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


def format_http_date(dt: datetime) -> str:
    """RFC 7231 IMF-fixdate: "Wed, 01 Jan 2026 12:00:00 GMT"."""
    return format_datetime(dt.astimezone(timezone.utc), usegmt=True)


class ConnectionWriter(ResponseWriter):
    """
    ResponseWriter writing HTTP/1.x to a Connection.

    Supports flush (switches to streaming) and hijack. Not push.
    """

    def __init__(self, connection: Connection, request: HTTPRequest, keep_alive: bool = True):
        self._connection = connection
        self._request = request
        self._headers = Headers()
        self._body = bytearray()
        self.status = HTTPStatus.OK.value
        self.wrote_header = False     # status decided
        self.headers_sent = False     # head on the wire
        self.chunked = False
        self.hijacked = False
        self.keep_alive = keep_alive and request.is_keep_alive

    # =========================================================================
    # ResponseWriter
    # =========================================================================

    @property
    def headers(self) -> Headers:
        return self._headers

    def write_header(self, status: int) -> None:
        self._check_hijacked()
        if self.wrote_header:
            logger.warning(
                f"[{self._connection.id}] superfluous write_header({int(status)}), "
                f"status already {self.status}"
            )
            return
        self.status = int(status)
        self.wrote_header = True

    def write(self, data: bytes) -> int:
        self._check_hijacked()
        if not self.wrote_header:
            self.write_header(HTTPStatus.OK)
        if not self._has_body:
            return len(data)
        if not self.headers_sent:
            self._body += data
        elif self.chunked:
            if data:
                self._connection.send(b"%x\r\n%s\r\n" % (len(data), data))
        else:
            self._connection.send(data)
        return len(data)

    # =========================================================================
    # Flusher / Hijacker
    # =========================================================================

    def flush(self) -> None:
        """Send the head and everything written so far, then stream."""
        self._check_hijacked()
        if not self.wrote_header:
            self.write_header(HTTPStatus.OK)
        if self.headers_sent:
            return

        if self._has_body and "Content-Length" not in self._headers:
            if self._request.version == "HTTP/1.1":
                self.chunked = True
                self._headers.set("Transfer-Encoding", "chunked")
            else:
                self.keep_alive = False   # body ends when the connection does

        pending, self._body = bytes(self._body), bytearray()
        self._send_head()
        if pending:
            self.write(pending)

    def hijack(self) -> Tuple[socket.socket, bytes]:
        """
        Take over the connection.

        Returns ``(socket, pending)`` where ``pending`` holds bytes the
        client already sent past this request. Nothing buffered for the
        response is sent.
        """
        self._check_hijacked()
        self.hijacked = True
        self.keep_alive = False
        return self._connection.detach()

    # =========================================================================
    # Server side
    # =========================================================================

    def finish(self) -> None:
        """Complete the response after the handler returned."""
        if self.hijacked:
            return
        if not self.wrote_header:
            self.write_header(HTTPStatus.OK)
        if not self.headers_sent:
            if self._has_body:
                self._headers.set("Content-Length", str(len(self._body)))
            self._send_head(bytes(self._body))
            self._body = bytearray()
        elif self.chunked:
            self._connection.send(b"0\r\n\r\n")

    def reset(self) -> bool:
        """
        Discard an uncommitted response so an error can be sent instead.

        Returns False when the head is already on the wire (or the
        connection was hijacked) and nothing can be replaced.
        """
        if self.headers_sent or self.hijacked:
            return False
        self._headers = Headers()
        self._body = bytearray()
        self.status = HTTPStatus.OK.value
        self.wrote_header = False
        return True

    @property
    def _has_body(self) -> bool:
        return body_allowed(self.status) and self._request.method.upper() != "HEAD"

    def _check_hijacked(self) -> None:
        if self.hijacked:
            raise ConnectionHijackedError("connection has been hijacked")

    def _send_head(self, body: bytes = b"") -> None:
        headers = self._headers
        if "Date" not in headers:
            headers.set("Date", format_http_date(datetime.now(timezone.utc)))
        if self.keep_alive:
            headers.set("Connection", "keep-alive")
        else:
            headers.set("Connection", "close")

        status_line = f"HTTP/1.1 {self.status} {status_text(self.status)}\r\n"
        head = status_line.encode("latin-1") + headers.to_bytes() + b"\r\n"
        self.headers_sent = True
        if not self._connection.send(head + body):
            self.keep_alive = False
