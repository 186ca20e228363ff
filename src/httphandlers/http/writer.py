"""
=============================================================================
RESPONSE WRITER CONTRACT
=============================================================================

Handlers do not return response objects; they write to a response sink:

    def handler(request: HTTPRequest, writer: ResponseWriter) -> None:
        writer.headers.set("Content-Type", "text/plain")
        writer.write_header(200)          # optional, implied by write()
        writer.write(b"hello")

Streaming, middleware that must act "on the first byte", and protocol
upgrades all fall out of this shape naturally. A returned response object
only exists once the handler is finished.

=============================================================================
REQUIRED AND OPTIONAL CAPABILITIES
=============================================================================

    ┌──────────────────────┬──────────────────────────────────────────────┐
    │ ResponseWriter       │ headers, write_header(status), write(bytes)  │
    │  (always)            │                                              │
    ├──────────────────────┼──────────────────────────────────────────────┤
    │ Flusher  (optional)  │ flush(): push buffered bytes to the client   │
    │ Hijacker (optional)  │ hijack(): take over the raw connection       │
    │ Pusher   (optional)  │ push(target, options): HTTP/2 server push    │
    └──────────────────────┴──────────────────────────────────────────────┘

The optional capabilities are probed structurally: any object with a
``flush`` method IS a Flusher, exactly like ``collections.abc.Sized``
recognizes anything with ``__len__``:

    isinstance(writer, Flusher)      # True if writer has .flush()

Callers that need a capability go through the module helpers, which
raise NotSupportedError instead of pretending:

    flush(writer)                        # NotSupportedError if absent
    push(writer, "/app.css")             # NotSupportedError if absent

=============================================================================
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from .headers import Headers
from .status_codes import HTTPStatus


logger = logging.getLogger(__name__)


class NotSupportedError(NotImplementedError):
    """The response sink does not provide the requested capability."""

    def __init__(self, capability: str):
        super().__init__(f"response writer does not support {capability}")
        self.capability = capability


class ResponseWriter(ABC):
    """The sink contract every handler writes to."""

    @property
    @abstractmethod
    def headers(self) -> Headers:
        """Headers to be sent; mutable until the header is written."""

    @abstractmethod
    def write_header(self, status: int) -> None:
        """Commit the status line and headers."""

    @abstractmethod
    def write(self, data: bytes) -> int:
        """Write body bytes, committing a 200 status first if needed."""


def _has_method(cls, name: str):
    for klass in cls.__mro__:
        if name in klass.__dict__:
            return klass.__dict__[name] is not None
    return NotImplemented


class Flusher(ABC):
    """Sinks that can push buffered data to the client immediately."""

    @abstractmethod
    def flush(self) -> None: ...

    @classmethod
    def __subclasshook__(cls, other):
        if cls is Flusher:
            return _has_method(other, "flush")
        return NotImplemented


class Hijacker(ABC):
    """Sinks that can hand the raw connection to the handler."""

    @abstractmethod
    def hijack(self) -> Any: ...

    @classmethod
    def __subclasshook__(cls, other):
        if cls is Hijacker:
            return _has_method(other, "hijack")
        return NotImplemented


@dataclass
class PushOptions:
    """Options for an HTTP/2 server push."""

    method: str = "GET"
    header: Headers = field(default_factory=Headers)


class Pusher(ABC):
    """Sinks that can initiate an HTTP/2 server push."""

    @abstractmethod
    def push(self, target: str, options: Optional[PushOptions] = None) -> None: ...

    @classmethod
    def __subclasshook__(cls, other):
        if cls is Pusher:
            return _has_method(other, "push")
        return NotImplemented


# =============================================================================
# CAPABILITY HELPERS
# =============================================================================

def flush(writer: ResponseWriter) -> None:
    """Flush ``writer``; raise NotSupportedError if it cannot."""
    if not isinstance(writer, Flusher):
        raise NotSupportedError("flush")
    writer.flush()


def hijack(writer: ResponseWriter) -> Any:
    """Take over the connection behind ``writer``."""
    if not isinstance(writer, Hijacker):
        raise NotSupportedError("hijack")
    return writer.hijack()


def push(writer: ResponseWriter, target: str, options: Optional[PushOptions] = None) -> None:
    """Server-push ``target``; raise NotSupportedError if unavailable."""
    if not isinstance(writer, Pusher):
        raise NotSupportedError("push")
    writer.push(target, options)


# =============================================================================
# IN-MEMORY WRITER
# =============================================================================

class ResponseRecorder(ResponseWriter):
    """
    Records everything written to it.

    Used by the debug middleware to capture a response before copying it
    out, and by tests to inspect what a handler did:

        recorder = ResponseRecorder()
        handler(request, recorder)
        assert recorder.code == 200
        assert recorder.headers["Content-Type"] == "application/json; charset=utf-8"
        assert recorder.body == b"{}"

    ``snapshot`` holds a copy of the headers taken at the moment the
    status was committed, which is what a client would actually have
    received. Supports flush (recorded in ``flushed``); does not support
    hijack or push.
    """

    def __init__(self):
        self._headers = Headers()
        self.code = HTTPStatus.OK.value
        self.body = bytearray()
        self.wrote_header = False
        self.snapshot: Optional[Headers] = None
        self.flushed = False

    @property
    def headers(self) -> Headers:
        return self._headers

    def write_header(self, status: int) -> None:
        if self.wrote_header:
            logger.debug("superfluous write_header(%d) ignored", status)
            return
        self.code = int(status)
        self.wrote_header = True
        self.snapshot = self._headers.copy()

    def write(self, data: bytes) -> int:
        if not self.wrote_header:
            self.write_header(HTTPStatus.OK)
        self.body += data
        return len(data)

    def flush(self) -> None:
        if not self.wrote_header:
            self.write_header(HTTPStatus.OK)
        self.flushed = True

    @property
    def text(self) -> str:
        return self.body.decode("utf-8")
