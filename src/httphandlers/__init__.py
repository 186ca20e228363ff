"""
=============================================================================
HTTPHANDLERS - Composable Middleware for HTTP Handlers
=============================================================================

A set of small, independently usable decorators for request handlers.
Each one wraps a handler and adds a single cross-cutting concern:

    Handler    = Callable[[HTTPRequest, ResponseWriter], None]
    Middleware = Callable[[Handler], Handler]

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    httphandlers/
    ├── __init__.py          # This file - exports, all_handlers()
    ├── __main__.py          # Demo service (python -m httphandlers)
    ├── config.py            # ServerConfig for the bundled server
    ├── context.py           # Request context: id, start, deadline, log fields
    ├── logger.py            # Access log sinks and formatters
    ├── http_server.py       # HTTPServer: serves any Handler
    ├── core/                # Sockets, connections, the wire writer
    ├── http/                # Request, headers, writer contract, router
    └── middleware/          # One concern per module

=============================================================================
QUICK START
=============================================================================

    from httphandlers import HTTPServer, RegexRouter, all_handlers, compress

    router = RegexRouter()

    @router.get(r"^/v1/jobs/(?P<id>[^/]+)$")
    def get_job(request, writer):
        writer.write(json.dumps({"id": request.path_params["id"]}).encode())

    app = all_handlers(compress(router), "jobs-api/1.0")
    HTTPServer(app).run()

``all_handlers`` stacks the usual set, outermost first:

    duration → log → debug → request_id → trailing_slash_redirect
             → json_content_type → server(name) → your handler

=============================================================================
"""

__version__ = "0.39.0"

import functools

from .context import (
    Cancelled,
    Deadline,
    DeadlineExceeded,
    RequestContext,
    get_deadline,
    get_duration,
    get_request_id,
    get_start_time,
    set_request_id,
)
from .config import ServerConfig
from .http import (
    Headers,
    HTTPRequest,
    HTTPStatus,
    NotSupportedError,
    PushOptions,
    RegexRouter,
    ResponseRecorder,
    ResponseWriter,
    flush,
    hijack,
    push,
)
from .logger import LOGGER, new_logger, new_logger_level
from .http_server import HTTPServer
from .middleware import (
    Handler,
    Middleware,
    MiddlewarePipeline,
    append_log,
    basic_auth,
    compress,
    debug,
    debug_writer,
    duration,
    json_content_type,
    log,
    redirect_proto,
    request_id,
    server,
    strict_transport_security,
    trailing_slash_redirect,
    with_logger,
    with_timeout,
)


def all_handlers(handler: Handler, server_name: str) -> Handler:
    """
    Wrap ``handler`` in the standard stack (see module docstring).

    Equivalent to::

        duration(log(debug(request_id(trailing_slash_redirect(
            json_content_type(server(handler, server_name)))))))
    """
    pipeline = MiddlewarePipeline().use(
        duration,
        log,
        debug,
        request_id,
        trailing_slash_redirect,
        json_content_type,
        functools.partial(server, server_name=server_name),
    )
    return pipeline.wrap(handler)


__all__ = [
    "__version__",
    "all_handlers",

    # Calling convention
    "Handler",
    "Middleware",
    "MiddlewarePipeline",
    "HTTPRequest",
    "ResponseWriter",
    "ResponseRecorder",
    "Headers",
    "HTTPStatus",
    "PushOptions",
    "NotSupportedError",
    "flush",
    "hijack",
    "push",

    # Middleware
    "append_log",
    "basic_auth",
    "compress",
    "debug",
    "debug_writer",
    "duration",
    "json_content_type",
    "log",
    "redirect_proto",
    "request_id",
    "server",
    "strict_transport_security",
    "trailing_slash_redirect",
    "with_logger",
    "with_timeout",

    # Routing
    "RegexRouter",

    # Context
    "RequestContext",
    "Deadline",
    "DeadlineExceeded",
    "Cancelled",
    "get_deadline",
    "get_duration",
    "get_request_id",
    "get_start_time",
    "set_request_id",

    # Logging
    "LOGGER",
    "new_logger",
    "new_logger_level",

    # Server
    "HTTPServer",
    "ServerConfig",
]
