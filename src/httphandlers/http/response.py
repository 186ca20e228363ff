"""
=============================================================================
ERROR AND REDIRECT RESPONSES
=============================================================================

Helpers that write complete responses to a ResponseWriter: structured
JSON errors for auth failures and routing misses, and redirects.

=============================================================================
ERROR DOCUMENTS
=============================================================================

Errors are rendered as small problem documents (in the spirit of
RFC 7807) so clients can branch on a stable machine-readable ``id``
instead of parsing a human sentence:

    HTTP/1.1 403 Forbidden
    Content-Type: application/problem+json

    {
      "title": "Incorrect password for user alice",
      "id": "incorrect_password",
      "instance": "/v1/jobs",
      "status": 403
    }

Empty fields are omitted.

=============================================================================
"""

import html
import json
import posixpath
import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

from .request import HTTPRequest, split_target
from .status_codes import HTTPStatus, status_text
from .writer import ResponseWriter


PROBLEM_CONTENT_TYPE = "application/problem+json"


@dataclass
class Problem:
    """A structured error shown to API clients."""

    title: str
    id: str
    status: int
    detail: str = ""
    instance: str = ""

    def to_dict(self) -> dict:
        data = {"title": self.title, "id": self.id}
        if self.detail:
            data["detail"] = self.detail
        if self.instance:
            data["instance"] = self.instance
        data["status"] = int(self.status)
        return data


def write_problem(writer: ResponseWriter, problem: Problem) -> None:
    """Write ``problem`` as the complete response."""
    body = json.dumps(problem.to_dict(), indent=2).encode("utf-8") + b"\n"
    writer.headers.set("Content-Type", PROBLEM_CONTENT_TYPE)
    writer.write_header(problem.status)
    writer.write(body)


def unauthorized(writer: ResponseWriter, request: HTTPRequest, realm: str) -> None:
    """401 with a Basic challenge for ``realm``."""
    writer.headers.set("WWW-Authenticate", f'Basic realm="{realm}"')
    write_problem(writer, Problem(
        title="Unauthorized. Please include your API credentials",
        id="unauthorized",
        status=HTTPStatus.UNAUTHORIZED,
    ))


def forbidden(writer: ResponseWriter, request: HTTPRequest, problem: Problem) -> None:
    """403 carrying ``problem``; the status is forced to 403."""
    problem.status = HTTPStatus.FORBIDDEN
    write_problem(writer, problem)


def not_found(writer: ResponseWriter, request: HTTPRequest) -> None:
    write_problem(writer, Problem(
        title="Resource not found",
        id="not_found",
        instance=request.path,
        status=HTTPStatus.NOT_FOUND,
    ))


def not_allowed(writer: ResponseWriter, request: HTTPRequest) -> None:
    write_problem(writer, Problem(
        title="Method not allowed",
        id="method_not_allowed",
        instance=request.path,
        status=HTTPStatus.METHOD_NOT_ALLOWED,
    ))


def internal_error(writer: ResponseWriter, request: Optional[HTTPRequest] = None) -> None:
    write_problem(writer, Problem(
        title="Unexpected server error. Please try again",
        id="server_error",
        instance=request.path if request is not None else "",
        status=HTTPStatus.INTERNAL_SERVER_ERROR,
    ))


# =============================================================================
# REDIRECTS
# =============================================================================
#
# Relative targets are resolved against the request path and cleaned, so
# "/a/////" becomes "/a/". A trailing slash on the target survives
# cleaning; everything else about the path is normalized:
#
#     redirect target      Location
#     ───────────────      ────────────
#     /a/////          →   /a/
#     /a               →   /a
#     ../b  (from /x/y)→   /b
#     /a b             →   /a%20b          (the path is percent-encoded)
#     https://h/p      →   https://h/p     (absolute URLs are left alone)
#
# =============================================================================

_SCHEME = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*:")

# RFC 3986 pchar plus "/"; "%" is kept so existing escapes pass through
_PATH_SAFE = "/%:@!$&'()*+,;=~"


def clean_path(path: str) -> str:
    """
    Lexically clean ``path``: collapse slashes, drop "." and "..".

    The result always starts with "/" and has no trailing slash, except
    for the root itself.
    """
    if not path:
        return "/"
    cleaned = posixpath.normpath("/" + path.lstrip("/"))
    # normpath keeps a leading "//" (POSIX leaves it implementation-defined)
    return "/" + cleaned.lstrip("/")


def redirect(
    writer: ResponseWriter,
    request: HTTPRequest,
    url: str,
    status: int = HTTPStatus.FOUND,
) -> None:
    """
    Redirect the client to ``url`` with ``status``.

    GET requests also get a tiny HTML body with a link, for clients that
    do not follow redirects.
    """
    if not _SCHEME.match(url):
        path, query = split_target(url)
        if not path.startswith("/"):
            directory = posixpath.dirname(request.path)
            path = posixpath.join(directory, path)
        trailing = path.endswith("/")
        path = clean_path(path)
        if trailing and not path.endswith("/"):
            path += "/"
        path = quote(path, safe=_PATH_SAFE)
        url = f"{path}?{query}" if query else path

    had_content_type = "Content-Type" in writer.headers
    writer.headers.set("Location", url)
    method = request.method.upper()
    if not had_content_type and method in ("GET", "HEAD"):
        writer.headers.set("Content-Type", "text/html; charset=utf-8")
    writer.write_header(status)

    if not had_content_type and method == "GET":
        body = f'<a href="{html.escape(url)}">{status_text(status)}</a>.\n\n'
        writer.write(body.encode("utf-8"))
