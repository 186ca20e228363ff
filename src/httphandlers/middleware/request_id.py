"""
Request identifier middleware.

Every request leaves this layer with an ``X-Request-Id``:

    inbound header absent     → generate uuid4, set on the request header,
                                bind to the context, echo on the response
    inbound header is a UUID  → bind it to the context, echo it
    inbound header is junk    → leave it alone (still logged as sent)
"""

import logging
import uuid
from typing import Callable

from ..context import REQUEST_ID_HEADER, set_request_id, with_request_id
from ..http.request import HTTPRequest
from ..http.writer import ResponseWriter
from .base import Handler


logger = logging.getLogger(__name__)


def request_id(
    handler: Handler,
    generate: Callable[[], uuid.UUID] = uuid.uuid4,
) -> Handler:
    """Ensure each request carries a request id (see module docstring)."""

    def request_id_handler(request: HTTPRequest, writer: ResponseWriter) -> None:
        inbound = request.get_header(REQUEST_ID_HEADER)
        if not inbound:
            rid = generate()
            request = set_request_id(request, rid)
            writer.headers.set(REQUEST_ID_HEADER, str(rid))
        else:
            try:
                rid = uuid.UUID(inbound)
            except ValueError:
                logger.debug("ignoring malformed %s: %r", REQUEST_ID_HEADER, inbound)
            else:
                request = request.with_context(with_request_id(request.context, rid))
                writer.headers.set(REQUEST_ID_HEADER, inbound)
        handler(request, writer)

    return request_id_handler
