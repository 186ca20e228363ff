"""
=============================================================================
HTTP BUILDING BLOCKS
=============================================================================

The request model, the response-writer contract and the small helpers
that write complete responses, plus the regex router.

    ┌─────────────────────────────────────────────────────────────────────┐
    │ request.py      HTTPRequest, RequestParser, HTTPParseError          │
    │ headers.py      Headers: case-insensitive, multi-valued             │
    │ writer.py       ResponseWriter, Flusher/Hijacker/Pusher,            │
    │                 flush()/hijack()/push(), ResponseRecorder           │
    │ response.py     problem-JSON errors, redirect()                     │
    │ router.py       RegexRouter, Route                                  │
    │ status_codes.py HTTPStatus                                          │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .headers import Headers
from .request import HTTPRequest, RequestParser, HTTPParseError, parse_request
from .response import (
    Problem,
    write_problem,
    unauthorized,     # 401 + WWW-Authenticate
    forbidden,        # 403
    not_found,        # 404
    not_allowed,      # 405
    internal_error,   # 500
    redirect,         # 3xx + Location
)
from .router import RegexRouter, Route, ALL_METHODS
from .status_codes import HTTPStatus
from .writer import (
    ResponseWriter,
    Flusher,
    Hijacker,
    Pusher,
    PushOptions,
    NotSupportedError,
    ResponseRecorder,
    flush,
    hijack,
    push,
)

__all__ = [
    "Headers",

    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "parse_request",

    "Problem",
    "write_problem",
    "unauthorized",
    "forbidden",
    "not_found",
    "not_allowed",
    "internal_error",
    "redirect",

    "RegexRouter",
    "Route",
    "ALL_METHODS",

    "HTTPStatus",

    "ResponseWriter",
    "Flusher",
    "Hijacker",
    "Pusher",
    "PushOptions",
    "NotSupportedError",
    "ResponseRecorder",
    "flush",
    "hijack",
    "push",
]
