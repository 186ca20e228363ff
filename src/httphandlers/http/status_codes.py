"""
=============================================================================
HTTP STATUS CODES
=============================================================================

Status codes produced by the middleware set and the host server, with the
reason phrases written on the status line.

=============================================================================
WHICH CODES THIS PACKAGE EMITS
=============================================================================

    ┌────────┬──────────────────────────────────────────────────────────┐
    │  200   │ Default when a handler writes a body without a status    │
    │  301   │ Trailing-slash redirect                                  │
    │  302   │ X-Forwarded-Proto: http -> https redirect                │
    │  401   │ Basic auth: missing credentials (with a challenge)       │
    │  403   │ Basic auth: unknown user or wrong password               │
    │  404   │ Router: no pattern matched the path                      │
    │  405   │ Router: a pattern matched but the method did not         │
    │  500   │ Host server: handler raised before writing anything      │
    └────────┴──────────────────────────────────────────────────────────┘

Handlers are free to write any other code; unknown codes still render
with a generic phrase.

=============================================================================
INTERVIEW INSIGHT
=============================================================================

Q: "What's the difference between 401 and 403?"
A: "401 means 'I don't know who you are' and must carry a
   WWW-Authenticate challenge. 403 means 'I know who you are (or you
   told me), and the answer is no'. Retrying a 403 with the same
   credentials will not help."

Q: "301 or 302 for an http -> https upgrade?"
A: "A 302 keeps the decision on the server side: browsers do not cache
   it, so turning the redirect off later takes effect immediately. HSTS
   is what makes the upgrade sticky."

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes.

    IntEnum so values compare and format as plain ints:

        HTTPStatus.NOT_FOUND == 404      # True
        f"{HTTPStatus.OK:d}"             # "200"
    """

    # 1xx Informational
    CONTINUE = 100
    SWITCHING_PROTOCOLS = 101

    # 2xx Success
    OK = 200
    CREATED = 201
    ACCEPTED = 202
    NO_CONTENT = 204

    # 3xx Redirection
    MOVED_PERMANENTLY = 301     # Trailing-slash redirect
    FOUND = 302                 # Protocol redirect
    SEE_OTHER = 303
    NOT_MODIFIED = 304          # Never carries a body
    TEMPORARY_REDIRECT = 307
    PERMANENT_REDIRECT = 308

    # 4xx Client Errors
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    REQUEST_TIMEOUT = 408
    PAYLOAD_TOO_LARGE = 413
    URI_TOO_LONG = 414

    # 5xx Server Errors
    INTERNAL_SERVER_ERROR = 500
    NOT_IMPLEMENTED = 501
    SERVICE_UNAVAILABLE = 503
    GATEWAY_TIMEOUT = 504
    HTTP_VERSION_NOT_SUPPORTED = 505

    @property
    def phrase(self) -> str:
        """
        Get the reason phrase for this status code.

            HTTP/1.1 200 OK
                     ─── ──
                      │   └── Reason phrase
                      └────── Status code
        """
        return _STATUS_PHRASES.get(self, "Unknown")

    @property
    def is_redirect(self) -> bool:
        """Check if this is a 3xx (redirection) status code."""
        return 300 <= self < 400

    @property
    def is_error(self) -> bool:
        """Check if this is an error status code (4xx or 5xx)."""
        return self >= 400


def status_text(code: int) -> str:
    """
    Reason phrase for any integer code.

    Handlers may write codes this enum does not list (418, 429, ...);
    those fall back to a phrase derived from the class of the code.
    """
    try:
        return HTTPStatus(code).phrase
    except ValueError:
        return _CLASS_PHRASES.get(code // 100, "Unknown")


def body_allowed(code: int) -> bool:
    """1xx, 204 and 304 responses never carry a body (RFC 7230 §3.3.3)."""
    return not (100 <= code < 200 or code in (204, 304))


_STATUS_PHRASES = {
    HTTPStatus.CONTINUE: "Continue",
    HTTPStatus.SWITCHING_PROTOCOLS: "Switching Protocols",
    HTTPStatus.OK: "OK",
    HTTPStatus.CREATED: "Created",
    HTTPStatus.ACCEPTED: "Accepted",
    HTTPStatus.NO_CONTENT: "No Content",
    HTTPStatus.MOVED_PERMANENTLY: "Moved Permanently",
    HTTPStatus.FOUND: "Found",
    HTTPStatus.SEE_OTHER: "See Other",
    HTTPStatus.NOT_MODIFIED: "Not Modified",
    HTTPStatus.TEMPORARY_REDIRECT: "Temporary Redirect",
    HTTPStatus.PERMANENT_REDIRECT: "Permanent Redirect",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.UNAUTHORIZED: "Unauthorized",
    HTTPStatus.FORBIDDEN: "Forbidden",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.REQUEST_TIMEOUT: "Request Timeout",
    HTTPStatus.PAYLOAD_TOO_LARGE: "Payload Too Large",
    HTTPStatus.URI_TOO_LONG: "URI Too Long",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.NOT_IMPLEMENTED: "Not Implemented",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
    HTTPStatus.GATEWAY_TIMEOUT: "Gateway Timeout",
    HTTPStatus.HTTP_VERSION_NOT_SUPPORTED: "HTTP Version Not Supported",
}

_CLASS_PHRASES = {
    1: "Informational",
    2: "Success",
    3: "Redirection",
    4: "Client Error",
    5: "Server Error",
}
