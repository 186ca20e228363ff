"""
=============================================================================
DURATION MIDDLEWARE
=============================================================================

Stamps every response with how long the server spent before the first
byte went out:

    X-Request-Duration: 1.2ms

and makes the running duration available to inner handlers:

    get_duration(request.context)    # timedelta since the request started
    get_start_time(request.context)  # UTC datetime of the start

=============================================================================
WHEN IS THE HEADER WRITTEN?
=============================================================================

    duration_handler                 DurationWriter
    ────────────────                 ──────────────
    t0 = monotonic_ns()
    handler(request, writer) ───────► first write_header()/write()
                                        └─ elapsed = now - t0
                                           set X-Request-Duration
                                           forward to inner writer
    finally: writer.finish() ───────► no-op if already committed,
                                      else stamp the header now

The header can only be set before the status line goes out, so it
measures time-to-first-byte, not total time. A handler that never writes
still gets the header, stamped when it returns.

The value is rounded DOWN to 100µs: sub-millisecond precision, without
every response carrying nanosecond noise.

=============================================================================
"""

import time
from datetime import datetime, timezone

from ..context import with_start
from ..http.request import HTTPRequest
from ..http.writer import ResponseWriter
from .base import Handler
from .wrappers import WrappedWriter, wrap_writer


DURATION_HEADER = "X-Request-Duration"

_GRANULARITY_NS = 100_000  # 100µs

_NANOSECOND = 1
_MICROSECOND = 1_000 * _NANOSECOND
_MILLISECOND = 1_000 * _MICROSECOND
_SECOND = 1_000 * _MILLISECOND


def _fraction(value: int, unit: int) -> str:
    """Render value/unit with trailing zeros trimmed: 1_200_000/1e6 → "1.2"."""
    whole, remainder = divmod(value, unit)
    if not remainder:
        return str(whole)
    digits = len(str(unit)) - 1
    return f"{whole}.{remainder:0{digits}d}".rstrip("0")


def format_duration(nanoseconds: int) -> str:
    """
    Human duration string.

        0            → "0s"
        850          → "850ns"
        150_000      → "150µs"
        1_200_000    → "1.2ms"
        1_500_000_000 → "1.5s"
        61 s         → "1m1s"
        3605 s       → "1h0m5s"
    """
    if nanoseconds == 0:
        return "0s"
    sign = "-" if nanoseconds < 0 else ""
    value = abs(nanoseconds)

    if value < _MICROSECOND:
        return f"{sign}{value}ns"
    if value < _MILLISECOND:
        return f"{sign}{_fraction(value, _MICROSECOND)}µs"
    if value < _SECOND:
        return f"{sign}{_fraction(value, _MILLISECOND)}ms"

    total_seconds, sub_second = divmod(value, _SECOND)
    hours, rest = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rest, 60)
    text = f"{_fraction(seconds * _SECOND + sub_second, _SECOND)}s"
    if hours:
        return f"{sign}{hours}h{minutes}m{text}"
    if minutes:
        return f"{sign}{minutes}m{text}"
    return f"{sign}{text}"


def round_down(nanoseconds: int, granularity: int = _GRANULARITY_NS) -> int:
    return (nanoseconds // granularity) * granularity


class DurationWriter(WrappedWriter):
    """Sets X-Request-Duration on commit."""

    def __init__(self, writer: ResponseWriter, start_ns: int):
        super().__init__(writer)
        self.start_ns = start_ns

    def _on_commit(self) -> None:
        elapsed = round_down(time.monotonic_ns() - self.start_ns)
        self.headers.set(DURATION_HEADER, format_duration(elapsed))


def duration(handler: Handler) -> Handler:
    """Record the request start and stamp X-Request-Duration."""

    def duration_handler(request: HTTPRequest, writer: ResponseWriter) -> None:
        wall = datetime.now(timezone.utc)
        start_ns = time.monotonic_ns()
        request = request.with_context(with_start(request.context, wall, start_ns))
        timed = wrap_writer(DurationWriter, writer, start_ns)
        try:
            handler(request, timed)
        finally:
            timed.finish()

    return duration_handler
