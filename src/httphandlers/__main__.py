"""
=============================================================================
DEMO SERVICE - python -m httphandlers
=============================================================================

Runs a tiny JSON API behind the full middleware stack, to poke at with
curl:

    python -m httphandlers --port 8080

    curl -i localhost:8080/v1/ping
    curl -i localhost:8080/v1/echo/hello?x=1
    curl -i -X OPTIONS localhost:8080/v1/ping
    curl -i --compressed localhost:8080/v1/slow
    DEBUG_HTTP_TRAFFIC=true python -m httphandlers   # dump every exchange

=============================================================================
"""

import argparse
import json
import sys
import time

from . import __version__, all_handlers
from .config import ServerConfig
from .context import DeadlineExceeded, get_deadline, get_request_id
from .http.request import HTTPRequest
from .http.router import RegexRouter
from .http.writer import ResponseWriter, flush
from .middleware import append_log, compress
from .http_server import HTTPServer


def build_router() -> RegexRouter:
    """Demo routes."""
    router = RegexRouter()

    @router.get(r"^/v1/ping$")
    def ping(request: HTTPRequest, writer: ResponseWriter) -> None:
        rid, _ = get_request_id(request.context)
        writer.write(json.dumps({"pong": True, "request_id": str(rid)}).encode("utf-8"))

    @router.route(r"^/v1/echo/(?P<word>[^/]+)$", ["GET", "POST"])
    def echo(request: HTTPRequest, writer: ResponseWriter) -> None:
        word = request.path_params["word"]
        append_log(request, word=word)
        writer.write(json.dumps({
            "word": word,
            "query": request.query_params,
            "body": request.body.decode("utf-8", errors="replace"),
        }).encode("utf-8"))

    @router.get(r"^/v1/slow$")
    def slow(request: HTTPRequest, writer: ResponseWriter) -> None:
        # Streams one line per tick until done or the deadline passes.
        deadline = get_deadline(request.context)
        writer.write(b"[")
        for i in range(5):
            if deadline is not None:
                try:
                    deadline.check()
                except DeadlineExceeded:
                    break
            writer.write(b"%s%d" % (b"," if i else b"", i))
            flush(writer)
            time.sleep(0.2)
        writer.write(b"]\n")

    return router


def main(argv=None):
    """Parse arguments, build the stack, serve."""
    parser = argparse.ArgumentParser(
        prog="python -m httphandlers",
        description="Demo JSON service wrapped in the httphandlers middleware stack",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m httphandlers                        # Run with defaults
  python -m httphandlers --port 3000            # Custom port
  python -m httphandlers --timeout 0.5          # 500ms per-request deadline
  python -m httphandlers --log-format json      # JSON access log
        """,
    )

    # Defaults come from the environment (HTTP_*), flags override them.
    defaults = ServerConfig.from_env()

    parser.add_argument("--host", "-H", default=defaults.host,
                        help=f"Host to bind to (default: {defaults.host})")
    parser.add_argument("--port", "-p", type=int, default=defaults.port,
                        help=f"Port to listen on (default: {defaults.port})")
    parser.add_argument("--server-name", default=defaults.server_name,
                        help=f"Server header value (default: {defaults.server_name})")
    parser.add_argument("--timeout", "-t", type=float, default=defaults.request_timeout,
                        help="Per-request deadline in seconds (default: none)")
    parser.add_argument("--log-level", "-l", default=defaults.log_level,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help=f"Logging level (default: {defaults.log_level})")
    parser.add_argument("--log-format", default=defaults.log_format,
                        choices=["text", "json"],
                        help=f"Access log format (default: {defaults.log_format})")
    parser.add_argument("--version", "-v", action="version",
                        version=f"httphandlers {__version__}")

    args = parser.parse_args(argv)

    config = ServerConfig(
        host=args.host,
        port=args.port,
        max_workers=defaults.max_workers,
        timeout=defaults.timeout,
        server_name=args.server_name,
        request_timeout=args.timeout,
        log_level=args.log_level,
        log_format=args.log_format,
    )

    router = build_router()
    app = all_handlers(compress(router), config.server_name)

    try:
        server = HTTPServer(app, config)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    router.print_routes()
    server.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
