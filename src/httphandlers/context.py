"""
=============================================================================
REQUEST CONTEXT
=============================================================================

Per-request values (request id, start time, deadline, extra log fields)
travel with the request in an immutable context bag instead of global
lookup tables keyed by request.

=============================================================================
LAYERING
=============================================================================

Each middleware that adds a value produces a NEW bag linked to the
previous one. Nothing is ever mutated in place, so an outer layer's view
of the context is unaffected by what inner layers add:

    RequestContext()                          ← created with the request
          ▲
          │ parent
    [start_time = (wall, monotonic)]          ← duration()
          ▲
          │ parent
    [log_fields = LogFields()]                ← with_logger()
          ▲
          │ parent
    [request_id = UUID(...)]                  ← request_id()
          ▲
          │ parent
    [deadline = Deadline(...)]                ← with_timeout()

Lookup walks towards the root and returns the first hit, so binding the
same key twice makes the newest value visible ("last write wins").

The chain lives as long as the request object that carries it; nothing
here is retained across requests.

=============================================================================
INTERVIEW INSIGHT
=============================================================================

Q: "Why not thread-locals for the request id?"
A: "Thread-locals tie the value to the worker, not the request. A handler
   that fans work out to another thread, or a server that reuses threads
   across requests, silently loses or leaks the id. Carrying it on the
   request makes ownership explicit and the lifetime obvious."

Q: "Why record both a wall-clock and a monotonic start?"
A: "Wall time can jump (NTP slew, manual changes). Durations are computed
   from time.monotonic_ns(); the wall-clock value is kept only for
   display and logging."

=============================================================================
"""

import threading
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Iterator, List, Optional, Tuple, Union


class ContextKey:
    """Identity-compared key; two keys with the same name never collide."""

    __slots__ = ("name",)

    def __init__(self, name: str):
        self.name = name

    def __repr__(self) -> str:
        return f"<ContextKey {self.name}>"


class RequestContext:
    """
    Immutable, append-only key/value chain.

        ctx = RequestContext()
        ctx2 = ctx.with_value(KEY, 42)
        ctx2.value(KEY)   # 42
        ctx.value(KEY)    # None, the parent is unchanged
    """

    __slots__ = ("_parent", "_key", "_value")

    def __init__(
        self,
        parent: Optional["RequestContext"] = None,
        key: Optional[ContextKey] = None,
        value: Any = None,
    ):
        self._parent = parent
        self._key = key
        self._value = value

    def with_value(self, key: ContextKey, value: Any) -> "RequestContext":
        """Return a new context layered on this one with ``key`` bound."""
        return RequestContext(self, key, value)

    def value(self, key: ContextKey, default: Any = None) -> Any:
        """Look ``key`` up, newest binding first."""
        ctx: Optional[RequestContext] = self
        while ctx is not None:
            if ctx._key is key:
                return ctx._value
            ctx = ctx._parent
        return default

    def __repr__(self) -> str:
        keys = []
        ctx: Optional[RequestContext] = self
        while ctx is not None:
            if ctx._key is not None:
                keys.append(ctx._key.name)
            ctx = ctx._parent
        return f"RequestContext({', '.join(reversed(keys))})"


# Reserved keys
_REQUEST_ID = ContextKey("request_id")
_START = ContextKey("start")
_DEADLINE = ContextKey("deadline")
_LOG_FIELDS = ContextKey("log_fields")

REQUEST_ID_HEADER = "X-Request-Id"


# =============================================================================
# REQUEST IDENTIFIER
# =============================================================================

def with_request_id(ctx: RequestContext, request_id: uuid.UUID) -> RequestContext:
    """Bind ``request_id`` to a new context derived from ``ctx``."""
    return ctx.with_value(_REQUEST_ID, request_id)


def get_request_id(ctx: RequestContext) -> Tuple[Optional[uuid.UUID], bool]:
    """
    Return ``(request_id, found)``.

    Never raises; ``(None, False)`` when no id was bound.
    """
    request_id = ctx.value(_REQUEST_ID)
    return request_id, request_id is not None


def set_request_id(request, request_id: uuid.UUID):
    """
    Stamp ``request_id`` on the request header and its context.

    Returns the new request; the header dict is shared with the original.
    """
    request.headers[REQUEST_ID_HEADER.lower()] = str(request_id)
    return request.with_context(with_request_id(request.context, request_id))


# =============================================================================
# START TIME / DURATION
# =============================================================================

@dataclass(frozen=True)
class _Start:
    wall: datetime
    monotonic_ns: int


def with_start(ctx: RequestContext, wall: datetime, monotonic_ns: int) -> RequestContext:
    """Record the request start (UTC wall clock + monotonic instant)."""
    return ctx.with_value(_START, _Start(wall, monotonic_ns))


def get_start_time(ctx: RequestContext) -> Optional[datetime]:
    """The wall-clock start recorded by the duration middleware, if any."""
    start = ctx.value(_START)
    return start.wall if start is not None else None


def elapsed_ns(ctx: RequestContext) -> int:
    """Nanoseconds since the recorded start, or 0 if none was recorded."""
    start = ctx.value(_START)
    if start is None:
        return 0
    return time.monotonic_ns() - start.monotonic_ns


def get_duration(ctx: RequestContext) -> timedelta:
    """
    How long this request has been running.

    Zero until the duration middleware has seen the request.
    """
    return timedelta(microseconds=elapsed_ns(ctx) / 1000)


# =============================================================================
# DEADLINES
# =============================================================================
#
# The timeout middleware only PUBLISHES a deadline. Handlers that care poll
# it (deadline.done / deadline.check()) or block on it (deadline.wait()).
# Nothing here interrupts a running handler.
#
# =============================================================================

class DeadlineExceeded(Exception):
    """The request's deadline passed."""

    def __init__(self, message: str = "context deadline exceeded"):
        super().__init__(message)


class Cancelled(Exception):
    """The request's deadline was released before it expired."""

    def __init__(self, message: str = "context canceled"):
        super().__init__(message)


class Deadline:
    """
    Cancellation token with an absolute expiry on the monotonic clock.

    ┌─────────────────────────────────────────────────────────────────────┐
    │   start() ──► Timer(remaining) ──fires──► _expire() ──► event.set() │
    │                     │                                               │
    │   cancel() ─────────┴── timer.cancel() ─────────────► event.set()   │
    └─────────────────────────────────────────────────────────────────────┘

    Whichever happens first decides ``error``; the event is set exactly
    once either way, so ``wait()`` never blocks past the deadline.
    """

    def __init__(self, expires_at: float, parent: Optional["Deadline"] = None):
        self.expires_at = expires_at     # time.monotonic() seconds
        self.parent = parent
        self._event = threading.Event()
        self._error: Optional[Exception] = None
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._children: List["Deadline"] = []
        if parent is not None:
            parent._link(self)

    def start(self) -> None:
        remaining = self.remaining()
        if remaining <= 0:
            self._expire()
            return
        self._timer = threading.Timer(remaining, self._expire)
        self._timer.daemon = True
        self._timer.start()

    def remaining(self) -> float:
        """Seconds left before expiry (never negative)."""
        return max(0.0, self.expires_at - time.monotonic())

    @property
    def done(self) -> bool:
        if self._event.is_set() or time.monotonic() >= self.expires_at:
            return True
        return self.parent is not None and self.parent.done

    @property
    def error(self) -> Optional[Exception]:
        """``DeadlineExceeded``/``Cancelled`` once done, else ``None``."""
        if self._error is not None:
            return self._error
        if time.monotonic() >= self.expires_at:
            return DeadlineExceeded()
        if self.parent is not None:
            return self.parent.error
        return None

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until done or ``timeout`` elapses; return ``done``."""
        if self.done:
            return True
        limit = self.remaining() if timeout is None else min(timeout, self.remaining())
        self._event.wait(limit)
        return self.done

    def check(self) -> None:
        """Raise the deadline's error if it is done."""
        if self.done:
            raise self.error or DeadlineExceeded()

    def cancel(self) -> None:
        """Release the timer. Idempotent."""
        self._finish(Cancelled())

    def _expire(self) -> None:
        self._finish(DeadlineExceeded())

    def _finish(self, error: Exception) -> None:
        with self._lock:
            if self._error is None:
                self._error = error
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        if self.parent is not None:
            self.parent._unlink(self)
        self._wake()

    def _unlink(self, child: "Deadline") -> None:
        with self._lock:
            if child in self._children:
                self._children.remove(child)

    def _link(self, child: "Deadline") -> None:
        with self._lock:
            if not self._event.is_set():
                self._children.append(child)
                return
        child._wake()

    def _wake(self) -> None:
        # A finished parent wakes its waiting children; their error still
        # comes from the parent unless they finished on their own.
        with self._lock:
            self._event.set()
            children, self._children = self._children, []
        for child in children:
            child._wake()

    def __repr__(self) -> str:
        return f"<Deadline remaining={self.remaining():.3f}s done={self.done}>"


def get_deadline(ctx: RequestContext) -> Optional[Deadline]:
    return ctx.value(_DEADLINE)


@contextmanager
def deadline_scope(
    ctx: RequestContext,
    timeout: Union[float, timedelta],
) -> Iterator[RequestContext]:
    """
    Derive a context carrying a deadline ``timeout`` from now.

    The deadline never outlives an enclosing one, and its timer is
    released when the block exits, however it exits:

        with deadline_scope(request.context, 2.5) as ctx:
            handler(request.with_context(ctx), writer)
    """
    seconds = timeout.total_seconds() if isinstance(timeout, timedelta) else float(timeout)
    parent = get_deadline(ctx)
    expires_at = time.monotonic() + seconds
    if parent is not None:
        expires_at = min(expires_at, parent.expires_at)

    deadline = Deadline(expires_at, parent)
    deadline.start()
    try:
        yield ctx.with_value(_DEADLINE, deadline)
    finally:
        deadline.cancel()


# =============================================================================
# EXTRA ACCESS-LOG FIELDS
# =============================================================================

@dataclass
class LogFields:
    """
    Mutable holder installed by the access logger.

    The context itself stays immutable; the holder is the one shared
    object inner handlers append to, and the logger drains it when it
    emits the request's record.
    """

    pairs: List[Tuple[str, Any]] = field(default_factory=list)

    def append(self, key: str, value: Any) -> None:
        self.pairs.append((key, value))


def with_log_fields(ctx: RequestContext, holder: LogFields) -> RequestContext:
    return ctx.with_value(_LOG_FIELDS, holder)


def get_log_fields(ctx: RequestContext) -> Optional[LogFields]:
    return ctx.value(_LOG_FIELDS)
