"""
=============================================================================
MIDDLEWARE
=============================================================================

Each middleware here is a plain function that takes a Handler and
returns a Handler adding exactly one concern. Configured ones take their
settings as extra arguments:

    ┌──────────────────────────────┬──────────────────────────────────────┐
    │ request_id(h)                │ X-Request-Id, generated or propagated│
    │ duration(h)                  │ X-Request-Duration, start time       │
    │ with_timeout(h, seconds)     │ per-request Deadline in the context  │
    │ log(h) / with_logger(h, lg)  │ one access record per request        │
    │ debug(h)                     │ full traffic dump when toggled on    │
    │ compress(h)                  │ gzip / deflate response bodies       │
    │ basic_auth(h, realm, users)  │ 401/403 gate                         │
    │ json_content_type(h)         │ Content-Type: application/json       │
    │ strict_transport_security(h) │ HSTS                                 │
    │ server(h, name)              │ Server: <name>                       │
    │ trailing_slash_redirect(h)   │ 301 /jobs/ → /jobs                   │
    │ redirect_proto(h)            │ 302 http → https behind a proxy      │
    └──────────────────────────────┴──────────────────────────────────────┘

Every middleware that needs to see the response wraps the writer with
``wrap_writer`` (see wrappers.py), which keeps flush/hijack/push
available exactly when the underlying writer has them.

=============================================================================
"""

from .base import Handler, Middleware, MiddlewarePipeline
from .wrappers import WrappedWriter, wrap_writer
from .auth import basic_auth
from .compression import CompressWriter, compress
from .debug import debug, debug_writer
from .duration import DURATION_HEADER, DurationWriter, duration, format_duration
from .headers import (
    JSON_CONTENT_TYPE,
    ServerNameWriter,
    json_content_type,
    server,
    strict_transport_security,
)
from .logging import LoggingWriter, append_log, log, with_logger
from .redirects import redirect_proto, trailing_slash_redirect
from .request_id import request_id
from .timeout import with_timeout

__all__ = [
    # Composition
    "Handler",
    "Middleware",
    "MiddlewarePipeline",
    "WrappedWriter",
    "wrap_writer",

    # Middleware
    "basic_auth",
    "compress",
    "debug",
    "debug_writer",
    "duration",
    "json_content_type",
    "log",
    "with_logger",
    "append_log",
    "redirect_proto",
    "request_id",
    "server",
    "strict_transport_security",
    "trailing_slash_redirect",
    "with_timeout",

    # Writers and helpers
    "CompressWriter",
    "DurationWriter",
    "LoggingWriter",
    "ServerNameWriter",
    "DURATION_HEADER",
    "JSON_CONTENT_TYPE",
    "format_duration",
]
