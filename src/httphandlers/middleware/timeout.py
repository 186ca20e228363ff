"""
Deadline middleware.

    handler = with_timeout(app, 2.5)

Each request gets a context carrying a Deadline 2.5 seconds out. The
middleware never interrupts the handler; it publishes the deadline and
releases its timer when the request ends. Handlers cooperate:

    def export(request, writer):
        deadline = get_deadline(request.context)
        for chunk in rows():
            deadline.check()           # raises DeadlineExceeded when late
            writer.write(chunk)
"""

from datetime import timedelta
from typing import Union

from ..context import deadline_scope
from ..http.request import HTTPRequest
from ..http.writer import ResponseWriter
from .base import Handler


def with_timeout(handler: Handler, timeout: Union[float, timedelta]) -> Handler:
    """
    Publish a per-request deadline ``timeout`` from now.

    Raises:
        ValueError: if ``timeout`` is negative. This is a setup error and
                    is reported when the middleware is built, not per
                    request.
    """
    seconds = timeout.total_seconds() if isinstance(timeout, timedelta) else float(timeout)
    if seconds < 0:
        raise ValueError(f"timeout must be >= 0, got {timeout!r}")

    def timeout_handler(request: HTTPRequest, writer: ResponseWriter) -> None:
        with deadline_scope(request.context, seconds) as ctx:
            handler(request.with_context(ctx), writer)

    return timeout_handler
