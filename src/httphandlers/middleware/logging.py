"""
=============================================================================
ACCESS LOG MIDDLEWARE
=============================================================================

Emits exactly one structured record per request, after the handler
returns:

    t=2024-06-10T10:55:36.120Z lvl=info method=GET path=/v1/jobs?state=done
      time=3 bytes=512 status=200 remote_addr=10.0.0.7 host=api.example.com
      user_agent=curl/8.4 user=alice request_id=6f1c...

=============================================================================
FIELDS, IN ORDER
=============================================================================

    method       as sent
    path         path + query string, as sent
    time         whole milliseconds, rounded half up
    bytes        body bytes that passed through this layer
    status       200 if the handler never set one
    remote_addr  first X-Forwarded-For entry, else "ip:port" of the peer
    host         Host header
    user_agent   User-Agent header
    user         basic-auth username        (only when present)
    request_id   X-Request-Id header         (only when present)
    ...          extra pairs from append_log(), in the order appended

=============================================================================
EXTRA FIELDS
=============================================================================

Inner handlers can add to the one record instead of logging a second
line:

    def create_job(request, writer):
        job = jobs.create(request.body)
        append_log(request, job_id=job.id, queue=job.queue)
        ...

Extras are additive: a key that collides with a base field is dropped.

=============================================================================
INTERVIEW INSIGHT
=============================================================================

Q: "Why can't a failing log sink break the response?"
A: "By the time the record is written the response has already been
   sent. Raising then would only turn a served request into a 500 in
   the server's own error log, or kill the worker. So emission is
   wrapped and any failure is dropped."

=============================================================================
"""

import contextlib
import logging
import time
from typing import Any, List, Tuple

from ..context import REQUEST_ID_HEADER, LogFields, get_log_fields, with_log_fields
from ..http.request import HTTPRequest
from ..http.status_codes import HTTPStatus
from ..http.writer import ResponseWriter
from ..logger import LOGGER, format_logfmt
from .base import Handler
from .wrappers import WrappedWriter, wrap_writer


class LoggingWriter(WrappedWriter):
    """Tracks the status and byte count of a response."""

    def __init__(self, writer: ResponseWriter):
        super().__init__(writer)
        self.status = 0
        self.size = 0

    def write_header(self, status: int) -> None:
        if not self.status:
            self.status = int(status)
        super().write_header(status)

    def write(self, data: bytes) -> int:
        if not self.status:
            self.status = HTTPStatus.OK.value
        written = super().write(data)
        self.size += written
        return written

    @property
    def final_status(self) -> int:
        return self.status or HTTPStatus.OK.value


def remote_ip(request: HTTPRequest) -> str:
    """First X-Forwarded-For entry, falling back to the peer address."""
    forwarded = request.get_header("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.remote_addr


def elapsed_ms(start_ns: int) -> int:
    """Milliseconds since ``start_ns``, rounded half up."""
    return (time.monotonic_ns() - start_ns + 500_000) // 1_000_000


def access_fields(
    request: HTTPRequest,
    start_ns: int,
    status: int,
    size: int,
) -> List[Tuple[str, Any]]:
    fields: List[Tuple[str, Any]] = [
        ("method", request.method),
        ("path", request.request_uri),
        ("time", elapsed_ms(start_ns)),
        ("bytes", size),
        ("status", status),
        ("remote_addr", remote_ip(request)),
        ("host", request.host),
        ("user_agent", request.user_agent),
    ]
    credentials = request.basic_auth()
    if credentials is not None and credentials[0]:
        fields.append(("user", credentials[0]))
    rid = request.get_header(REQUEST_ID_HEADER)
    if rid:
        fields.append(("request_id", rid))
    return fields


def write_log(
    logger: logging.Logger,
    request: HTTPRequest,
    start_ns: int,
    status: int,
    size: int,
    extra: List[Tuple[str, Any]] = (),
) -> None:
    """Emit one access record. Never raises."""
    with contextlib.suppress(Exception):
        fields = access_fields(request, start_ns, status, size)
        taken = {key for key, _ in fields}
        for key, value in extra:
            if key not in taken:
                fields.append((key, value))
        logger.info(format_logfmt(fields), extra={"fields": fields})


def append_log(request: HTTPRequest, **fields: Any) -> None:
    """
    Add key/value pairs to this request's access record.

    A no-op when no access logger wraps the request.
    """
    holder = get_log_fields(request.context)
    if holder is None:
        return
    for key, value in fields.items():
        holder.append(key, value)


def with_logger(handler: Handler, logger: logging.Logger) -> Handler:
    """Log every request handled by ``handler`` to ``logger``."""

    def logging_handler(request: HTTPRequest, writer: ResponseWriter) -> None:
        start_ns = time.monotonic_ns()
        holder = LogFields()
        request = request.with_context(with_log_fields(request.context, holder))
        logged = wrap_writer(LoggingWriter, writer)
        try:
            handler(request, logged)
        except Exception as e:
            # Still log failed requests, then let the server answer them.
            with contextlib.suppress(Exception):
                logger.error(
                    "request failed: %s %s - %s: %s (%dms)",
                    request.method, request.request_uri,
                    type(e).__name__, e, elapsed_ms(start_ns),
                )
            raise
        logged.finish()
        write_log(logger, request, start_ns, logged.final_status, logged.size, holder.pairs)

    return logging_handler


def log(handler: Handler) -> Handler:
    """``with_logger`` using the package logger (logfmt on stderr)."""
    return with_logger(handler, LOGGER)
