"""
=============================================================================
CAPABILITY-PRESERVING WRITER WRAPPERS
=============================================================================

Most middleware in this package needs to see (or alter) what an inner
handler writes: the duration header goes out on the first byte, the
access logger counts bytes, compression re-encodes them. Each does this
by wrapping the ResponseWriter it was given.

=============================================================================
THE PROBLEM WITH NAIVE WRAPPING
=============================================================================

A wrapper that only implements write/write_header HIDES the optional
capabilities of the writer underneath:

    ConnectionWriter (flush, hijack)
          ▲
    LoggingWriter (write, write_header)       ← flush() is gone!
          ▲
    handler: flush(writer) → NotSupportedError

A wrapper that implements ALL of them LIES instead: it would advertise
push on top of an HTTP/1.1 connection that cannot push.

=============================================================================
THE SOLUTION: SHAPES
=============================================================================

At wrap time we probe the inner writer and build (once, then cache) a
subclass of the wrapper that mixes in exactly the pass-through methods
the inner writer has:

    wrap_writer(LoggingWriter, conn_writer)
        │
        ├── isinstance(inner, Flusher)?  yes → _FlushPassThrough
        ├── isinstance(inner, Hijacker)? yes → _HijackPassThrough
        ├── isinstance(inner, Pusher)?   no
        │
        └── type("LoggingWriter", (LoggingWriter, _FlushPassThrough,
                                  _HijackPassThrough), {})

Eight possible shapes per wrapper class; each is built on first use.

=============================================================================
WRITE THE HEADER ONCE, LAZILY
=============================================================================

Every wrapper has a two-state flag, pending → committed. Whichever entry
point runs first (write_header, write, flush, or the finish() finalizer
called by the middleware after the handler returns) runs the
``_on_commit`` hook exactly once.

=============================================================================
"""

import functools
import logging
from typing import Any, Optional, Tuple, Type, TypeVar

from ..http.headers import Headers
from ..http.writer import (
    Flusher,
    Hijacker,
    PushOptions,
    Pusher,
    ResponseWriter,
)


logger = logging.getLogger(__name__)

W = TypeVar("W", bound="WrappedWriter")


class WrappedWriter(ResponseWriter):
    """
    Base for single-concern writer decorators.

    Subclasses override the hooks, never the capability methods:

        _on_commit()    runs once, before the header reaches the inner writer
        _before_flush() runs before each flush is forwarded
    """

    def __init__(self, writer: ResponseWriter):
        self._writer = writer
        self.wrote_header = False
        self.hijacked = False

    @property
    def headers(self) -> Headers:
        return self._writer.headers

    def unwrap(self) -> ResponseWriter:
        """The writer this one decorates."""
        return self._writer

    def write_header(self, status: int) -> None:
        self._commit()
        self._writer.write_header(status)

    def write(self, data: bytes) -> int:
        self._commit()
        return self._writer.write(data)

    def finish(self) -> None:
        """Commit if nothing else did. Called after the handler returns."""
        self._commit()

    def _commit(self) -> None:
        if not self.wrote_header:
            self.wrote_header = True
            self._on_commit()

    def _on_commit(self) -> None:
        pass

    def _before_flush(self) -> None:
        pass


# =============================================================================
# PASS-THROUGH MIXINS
# =============================================================================

class _FlushPassThrough(Flusher):
    def flush(self) -> None:
        self._commit()
        self._before_flush()
        self._writer.flush()


class _HijackPassThrough(Hijacker):
    def hijack(self) -> Any:
        self.hijacked = True
        return self._writer.hijack()


class _PushPassThrough(Pusher):
    def push(self, target: str, options: Optional[PushOptions] = None) -> None:
        self._writer.push(target, options)


_CAPABILITIES = (
    (Flusher, _FlushPassThrough),
    (Hijacker, _HijackPassThrough),
    (Pusher, _PushPassThrough),
)


@functools.lru_cache(maxsize=None)
def _shape(cls: type, mixins: Tuple[type, ...]) -> type:
    if not mixins:
        return cls
    shaped = type(cls.__name__, (cls,) + mixins, {})
    shaped.__qualname__ = cls.__qualname__
    shaped.__module__ = cls.__module__
    logger.debug(
        "built writer shape %s+%s",
        cls.__name__,
        "+".join(m.__name__.strip("_") for m in mixins),
    )
    return shaped


def wrap_writer(cls: Type[W], writer: ResponseWriter, *args, **kwargs) -> W:
    """
    Instantiate ``cls`` around ``writer``, exposing exactly the optional
    capabilities ``writer`` has.
    """
    mixins = tuple(mixin for iface, mixin in _CAPABILITIES if isinstance(writer, iface))
    return _shape(cls, mixins)(writer, *args, **kwargs)
