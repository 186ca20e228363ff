"""
=============================================================================
HEADER MIDDLEWARE
=============================================================================

Three one-header middleware:

    json_content_type          Content-Type: application/json; charset=utf-8
    strict_transport_security  Strict-Transport-Security: max-age=31536000; preload
    server(name)               Server: <name>

The first two set their header BEFORE calling the inner handler, so the
inner handler can still override it. ``server`` sets its header on the
first byte instead, so it wins over anything the inner handler set:

    inner handler:  writer.headers.add("Server", "inner")
                    writer.write(b"...")
                          │
                          ▼
    ServerNameWriter._on_commit():  headers.set("Server", "api/1.0")
                                    (replaces, never appends)

=============================================================================
"""

from ..http.request import HTTPRequest
from ..http.writer import ResponseWriter
from .base import Handler
from .wrappers import WrappedWriter, wrap_writer


JSON_CONTENT_TYPE = "application/json; charset=utf-8"

# One year, eligible for browser preload lists.
STS_VALUE = "max-age=31536000; preload"


def json_content_type(handler: Handler) -> Handler:
    """Mark every response as UTF-8 JSON."""

    def json_handler(request: HTTPRequest, writer: ResponseWriter) -> None:
        writer.headers.set("Content-Type", JSON_CONTENT_TYPE)
        handler(request, writer)

    return json_handler


def strict_transport_security(handler: Handler) -> Handler:
    """Tell browsers to use HTTPS for this host for a year."""

    def sts_handler(request: HTTPRequest, writer: ResponseWriter) -> None:
        writer.headers.set("Strict-Transport-Security", STS_VALUE)
        handler(request, writer)

    return sts_handler


class ServerNameWriter(WrappedWriter):
    """Sets the Server header on commit, replacing any inner value."""

    def __init__(self, writer: ResponseWriter, server_name: str):
        super().__init__(writer)
        self.server_name = server_name

    def _on_commit(self) -> None:
        self.headers.set("Server", self.server_name)


def server(handler: Handler, server_name: str) -> Handler:
    """Stamp ``Server: <server_name>`` on every response."""

    def server_handler(request: HTTPRequest, writer: ResponseWriter) -> None:
        named = wrap_writer(ServerNameWriter, writer, server_name)
        try:
            handler(request, named)
        finally:
            named.finish()

    return server_handler
