"""
=============================================================================
HTTP BASIC AUTH
=============================================================================

    handler = basic_auth(app, "jobs-api", {"alice": "s3cret"})

    ┌───────────────────────────────────┬─────────────────────────────────┐
    │ credentials                       │ response                        │
    ├───────────────────────────────────┼─────────────────────────────────┤
    │ missing / not "Basic" / garbled   │ 401 + WWW-Authenticate          │
    │ empty username, unknown           │ 401 + WWW-Authenticate          │
    │ non-empty username, unknown       │ 403 "forbidden"                 │
    │ known username, wrong password    │ 403 "incorrect_password",       │
    │                                   │     title names the user        │
    │ known username, right password    │ inner handler, untouched        │
    └───────────────────────────────────┴─────────────────────────────────┘

The 401/403 split and the username in the wrong-password title are
existing client-visible behavior and are kept as they are.

=============================================================================
INTERVIEW INSIGHT
=============================================================================

Q: "Why hmac.compare_digest instead of ==?"
A: "== stops at the first differing byte, so response time leaks how
   much of the guess was right. compare_digest takes the same time for
   any two inputs of the same length."

=============================================================================
"""

import hmac
import logging
from typing import Mapping

from ..http.request import HTTPRequest
from ..http.response import Problem, forbidden, unauthorized
from ..http.writer import ResponseWriter
from .base import Handler


logger = logging.getLogger(__name__)


def basic_auth(handler: Handler, realm: str, users: Mapping[str, str]) -> Handler:
    """Require one of ``users`` (username → password) on every request."""

    def basic_auth_handler(request: HTTPRequest, writer: ResponseWriter) -> None:
        credentials = request.basic_auth()
        if credentials is None:
            unauthorized(writer, request, realm)
            return

        user, password = credentials
        expected = users.get(user)
        if expected is None:
            if user == "":
                unauthorized(writer, request, realm)
            else:
                forbidden(writer, request, Problem(
                    title="Username or password are invalid. Please double check your credentials",
                    id="forbidden",
                    status=403,
                ))
            return

        if not hmac.compare_digest(password.encode("utf-8"), expected.encode("utf-8")):
            logger.debug("basic auth: bad password for %r", user)
            forbidden(writer, request, Problem(
                title=f"Incorrect password for user {user}",
                id="incorrect_password",
                instance=request.path,
                status=403,
            ))
            return

        handler(request, writer)

    return basic_auth_handler
