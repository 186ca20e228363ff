"""
=============================================================================
TRAFFIC DEBUG MIDDLEWARE
=============================================================================

With ``DEBUG_HTTP_TRAFFIC=true`` in the environment, every request and
its response are dumped to stderr:

    GET /v1/jobs?state=done HTTP/1.1
    Host: api.example.com
    User-Agent: curl/8.4

    HTTP/1.1 200
    Content-Type: application/json; charset=utf-8
    X-Request-Id: 6f1c...

    {"jobs": []}

The toggle is read on every request, so it can be flipped without a
restart. Accepted values: true, 1, yes, on (any case).

=============================================================================
ONE WRITE PER REQUEST
=============================================================================

Concurrent requests share stderr. Writing the request, the status line
and the body separately would interleave them with other requests'
dumps, so everything is assembled in memory and written with a single
``sink.write()``:

    ┌──────────────┐   handler(request, recorder)   ┌──────────────────┐
    │ request dump │ ─────────────────────────────► │ ResponseRecorder │
    └──────┬───────┘                                └────────┬─────────┘
           │                                                 │
           │         copy headers, status, body              ▼
           │                                          real writer
           ▼                                                 │
      buffer += request + "HTTP/1.1 <code>" + headers + body ◄┘
           │
           └──► sink.write(buffer)          exactly once

The cost: while debugging is on, responses are fully buffered before
the first byte reaches the client, and flush/hijack are not available
to the inner handler.

Bodies with a Content-Encoding (gzip, deflate) are replaced by
``[binary data omitted]``.

=============================================================================
"""

import contextlib
import os
import sys
from typing import BinaryIO, Callable, Optional

from ..http.headers import canonical_name
from ..http.request import HTTPRequest
from ..http.writer import ResponseRecorder, ResponseWriter
from .base import Handler


DEBUG_ENV = "DEBUG_HTTP_TRAFFIC"
BINARY_PLACEHOLDER = b"[binary data omitted]"

_TRUTHY = {"true", "1", "yes", "on"}


def debug_enabled(getenv: Callable[[str], Optional[str]] = os.getenv) -> bool:
    value = getenv(DEBUG_ENV) or ""
    return value.strip().lower() in _TRUTHY


def dump_request(request: HTTPRequest) -> bytes:
    """Wire-like rendering of ``request``, body included."""
    lines = [f"{request.method} {request.request_uri} {request.version}"]
    for name, value in request.headers.items():
        lines.append(f"{canonical_name(name)}: {value}")
    head = "\r\n".join(lines) + "\r\n\r\n"
    return head.encode("latin-1", errors="replace") + request.body


def dump_response(recorder: ResponseRecorder) -> bytes:
    buffer = bytearray(f"HTTP/1.1 {recorder.code}\r\n".encode("ascii"))
    buffer += recorder.headers.to_bytes()
    buffer += b"\r\n"
    if "Content-Encoding" in recorder.headers:
        buffer += BINARY_PLACEHOLDER
    else:
        buffer += recorder.body
    return bytes(buffer)


def debug_writer(
    handler: Handler,
    sink: Optional[BinaryIO] = None,
    getenv: Callable[[str], Optional[str]] = os.getenv,
) -> Handler:
    """
    Dump traffic to ``sink`` (a binary stream; stderr when None) while
    ``DEBUG_HTTP_TRAFFIC`` is on.

    ``getenv`` is injectable so tests can flip the toggle without
    touching the process environment.
    """

    def debug_handler(request: HTTPRequest, writer: ResponseWriter) -> None:
        if not debug_enabled(getenv):
            handler(request, writer)
            return

        request_dump = dump_request(request)
        recorder = ResponseRecorder()
        for name, value in writer.headers.items_all():
            recorder.headers.add(name, value)
        handler(request, recorder)

        for name in recorder.headers:
            writer.headers.delete(name)
            for value in recorder.headers.get_list(name):
                writer.headers.add(name, value)
        writer.write_header(recorder.code)
        if recorder.body:
            writer.write(bytes(recorder.body))

        with contextlib.suppress(Exception):
            out = sink if sink is not None else sys.stderr.buffer
            out.write(request_dump + dump_response(recorder))
            out.flush()

    return debug_handler


def debug(handler: Handler) -> Handler:
    """Dump traffic to stderr while ``DEBUG_HTTP_TRAFFIC`` is on."""
    return debug_writer(handler)
