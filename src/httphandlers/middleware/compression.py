"""
=============================================================================
COMPRESSION MIDDLEWARE
=============================================================================

Compresses response bodies on the fly with gzip or deflate, whichever the
client lists first in Accept-Encoding.

=============================================================================
CONTENT NEGOTIATION
=============================================================================

    Accept-Encoding: gzip, deflate, br
                     ───┬  ──────┬
                        │        └── also fine, but gzip came first
                        └── chosen

    Accept-Encoding: br, deflate;q=0.5      → deflate
    Accept-Encoding: gzip;q=0, deflate      → deflate (q=0 means "never")
    Accept-Encoding: identity / missing     → no compression at all

=============================================================================
STREAMING, NOT BUFFERING
=============================================================================

The body is pushed through a zlib compressor as the handler writes it:

    handler.write(b"...") ─► compressobj.compress() ─► inner.write(chunk)
    flush(writer)         ─► compressobj.flush(Z_SYNC_FLUSH) ─► inner.flush()
    handler returns       ─► compressobj.flush() (stream trailer)

Since the compressed length is unknown up front, Content-Length is
removed. Headers are decided at the first write, so an inner handler can
still opt out by setting Content-Encoding itself:

    ┌─────────────────────────────────────────┬───────────────────────────┐
    │ Content-Encoding already set by handler │ pass through untouched    │
    │ status 1xx, 204, 304                    │ pass through (no body)    │
    │ handler never writes                    │ nothing compressed at all │
    │ otherwise                               │ Content-Encoding: <enc>   │
    │                                         │ Vary: Accept-Encoding     │
    │                                         │ Content-Length removed    │
    └─────────────────────────────────────────┴───────────────────────────┘

"deflate" is sent as a raw DEFLATE stream (no zlib header), as the
service this package grew out of always has.

=============================================================================
"""

import zlib
from typing import Optional

from ..http.request import HTTPRequest
from ..http.status_codes import HTTPStatus, body_allowed
from ..http.writer import ResponseWriter
from .base import Handler
from .wrappers import WrappedWriter, wrap_writer


# encoding → zlib wbits
_WBITS = {
    "gzip": 16 + zlib.MAX_WBITS,   # gzip container
    "deflate": -zlib.MAX_WBITS,    # raw DEFLATE
}


def negotiate(accept_encoding: str) -> Optional[str]:
    """First supported coding listed in ``accept_encoding``, or None."""
    for part in accept_encoding.split(","):
        coding, _, params = part.partition(";")
        coding = coding.strip().lower()
        if coding not in _WBITS:
            continue
        if _q_value(params) == 0:
            continue
        return coding
    return None


def _q_value(params: str) -> float:
    for param in params.split(";"):
        name, _, value = param.partition("=")
        if name.strip().lower() == "q":
            try:
                return float(value.strip())
            except ValueError:
                return 1.0
    return 1.0


class CompressWriter(WrappedWriter):
    """Compresses everything written through it with ``encoding``."""

    def __init__(self, writer: ResponseWriter, encoding: str, level: int):
        super().__init__(writer)
        self.encoding = encoding
        self.level = level
        self._status = HTTPStatus.OK.value
        self._compressor = None

    def write_header(self, status: int) -> None:
        if not self.wrote_header:
            self._status = int(status)
        super().write_header(status)

    def write(self, data: bytes) -> int:
        if not self.wrote_header:
            self.write_header(HTTPStatus.OK)
        if self._compressor is None:
            return self._writer.write(data)
        chunk = self._compressor.compress(data)
        if chunk:
            self._writer.write(chunk)
        return len(data)

    def finish(self) -> None:
        """Write the stream trailer. Does not commit an untouched response."""
        if self._compressor is None or self.hijacked:
            return
        tail = self._compressor.flush()
        self._compressor = None
        if tail:
            self._writer.write(tail)

    def _on_commit(self) -> None:
        if "Content-Encoding" in self.headers or not body_allowed(self._status):
            return
        self.headers.set("Content-Encoding", self.encoding)
        self.headers.delete("Content-Length")
        vary = self.headers.get_list("Vary")
        if not any("accept-encoding" in value.lower() for value in vary):
            self.headers.add("Vary", "Accept-Encoding")
        self._compressor = zlib.compressobj(self.level, zlib.DEFLATED, _WBITS[self.encoding])

    def _before_flush(self) -> None:
        if self._compressor is not None:
            chunk = self._compressor.flush(zlib.Z_SYNC_FLUSH)
            if chunk:
                self._writer.write(chunk)


def compress(handler: Handler, level: int = zlib.Z_DEFAULT_COMPRESSION) -> Handler:
    """
    Compress responses for clients that accept gzip or deflate.

    Args:
        level: zlib level, 1 (fastest) to 9 (smallest); -1 is zlib's
               default (6).
    """

    def compress_handler(request: HTTPRequest, writer: ResponseWriter) -> None:
        encoding = negotiate(request.get_header("Accept-Encoding"))
        if encoding is None:
            handler(request, writer)
            return

        compressed = wrap_writer(CompressWriter, writer, encoding, level)
        try:
            handler(request, compressed)
        finally:
            compressed.finish()

    return compress_handler
