"""
URL normalization redirects.

    trailing_slash_redirect   GET /jobs/     → 301 Location: /jobs
                              GET /jobs///// → 301 Location: /jobs/
    redirect_proto            X-Forwarded-Proto: http
                              GET /jobs?x=1  → 302 Location: https://<host>/jobs?x=1

Both only ever strip or upgrade; they never invent a path.
"""

import logging

from ..http.request import HTTPRequest
from ..http.response import redirect
from ..http.status_codes import HTTPStatus
from ..http.writer import ResponseWriter
from .base import Handler


logger = logging.getLogger(__name__)


def trailing_slash_redirect(handler: Handler) -> Handler:
    """
    301 any path ending in "/" (other than "/" itself) to the same path
    with one trailing slash removed.

    The redirect target is cleaned, so a run of slashes collapses: the
    client lands on "/a/" and the next hop takes it to "/a".
    """

    def trailing_slash_handler(request: HTTPRequest, writer: ResponseWriter) -> None:
        path = request.path
        if len(path) > 1 and path.endswith("/"):
            redirect(writer, request, path[:-1], HTTPStatus.MOVED_PERMANENTLY)
            return
        handler(request, writer)

    return trailing_slash_handler


def redirect_proto(handler: Handler) -> Handler:
    """
    302 plain-HTTP requests (as reported by a TLS-terminating proxy via
    ``X-Forwarded-Proto: http``) to the same URL over HTTPS.
    """

    def redirect_proto_handler(request: HTTPRequest, writer: ResponseWriter) -> None:
        if request.get_header("X-Forwarded-Proto") == "http":
            target = f"https://{request.host}{request.request_uri}"
            logger.debug("upgrading %s to %s", request.request_uri, target)
            redirect(writer, request, target, HTTPStatus.FOUND)
            return
        handler(request, writer)

    return redirect_proto_handler
