"""
=============================================================================
HTTP SERVER
=============================================================================

A small threaded HTTP/1.1 server that serves any Handler:

    from httphandlers import HTTPServer, ServerConfig, all_handlers

    def hello(request, writer):
        writer.write(b'{"hello": "world"}')

    server = HTTPServer(all_handlers(hello, "api/1.0"), ServerConfig(port=8080))
    server.run()

It exists so the middleware can be run and tested end to end without an
external server; the middleware never depend on it.

=============================================================================
ONE CONNECTION, MANY REQUESTS
=============================================================================

    accept thread                       worker thread (ThreadPoolExecutor)
    ─────────────                       ──────────────────────────────────
    accept() ─► Connection ─► submit ─► while keep-alive:
                                            read_request()
                                            parse            ── error → 4xx/5xx, close
                                            writer = ConnectionWriter(conn, request)
                                            handler(request, writer)
                                                             ── raises → 500 or close
                                            writer.finish()
                                        close()

A handler exception is logged with its traceback. If nothing of the
response has reached the socket yet, the client gets a 500 problem
document; otherwise the connection is closed mid-response, which is the
only honest signal left.

=============================================================================
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Tuple

from .config import ServerConfig
from .core import Connection, ConnectionState, ConnectionWriter, SocketServer
from .http.request import HTTPParseError, HTTPRequest, RequestParser
from .http.response import Problem, internal_error, write_problem
from .http.status_codes import HTTPStatus, status_text
from .logger import ACCESS_LOGGER_NAME, new_logger
from .middleware.base import Handler
from .middleware.timeout import with_timeout


logger = logging.getLogger(__name__)


class HTTPServer:
    """
    Threaded HTTP/1.1 server for a Handler.

    =========================================================================
    COMPONENTS
    =========================================================================

    - ServerConfig:        settings, validated up front
    - SocketServer:        listening socket + accept loop
    - ThreadPoolExecutor:  max_workers threads, one connection each
    - RequestParser:       raw bytes → HTTPRequest
    - ConnectionWriter:    ResponseWriter on the socket (flush, hijack)

    When ``config.request_timeout`` is set, the handler is wrapped with
    ``with_timeout`` so every request carries a Deadline.

    =========================================================================
    """

    def __init__(self, handler: Handler, config: Optional[ServerConfig] = None):
        self.config = config or ServerConfig()
        self.config.validate()

        if self.config.request_timeout is not None:
            handler = with_timeout(handler, self.config.request_timeout)
        self.handler = handler

        self._socket_server = SocketServer(self.config)
        self._parser = RequestParser(max_request_size=self.config.max_request_size)
        self._executor: Optional[ThreadPoolExecutor] = None
        # Connections allowed in flight (running or queued) before 503s.
        self._slots = threading.BoundedSemaphore(self.config.max_workers + self.config.backlog)
        self._running = False

    @property
    def address(self) -> Tuple[str, int]:
        return self._socket_server.address

    @property
    def is_running(self) -> bool:
        return self._running

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the socket is listening; False on timeout."""
        return self._socket_server.ready.wait(timeout)

    def run(self, host: Optional[str] = None, port: Optional[int] = None):
        """
        Serve until shutdown() or SIGINT/SIGTERM (blocking).

        Args:
            host: Override config host.
            port: Override config port.
        """
        if host:
            self.config.host = host
        if port is not None:
            self.config.port = port

        self._setup_logging()
        self._executor = ThreadPoolExecutor(
            max_workers=self.config.max_workers,
            thread_name_prefix="httphandlers-worker",
        )
        self._running = True
        logger.info(f"Starting HTTP server on {self.config.host}:{self.config.port}")

        try:
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def shutdown(self):
        """Ask the accept loop to stop; run() then drains the workers."""
        self._socket_server.shutdown()

    def _setup_logging(self):
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)
        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("httphandlers").setLevel(level)
        new_logger(ACCESS_LOGGER_NAME, level=level, fmt=self.config.log_format)

    def _shutdown(self):
        logger.info("Shutting down server...")
        self._running = False
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
        logger.info("Server stopped")

    # =========================================================================
    # CONNECTION HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """Hand a new connection to a worker, or answer 503 if saturated."""
        if not self._slots.acquire(blocking=False):
            logger.warning(f"[{conn.id}] Server saturated, rejecting connection")
            self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE, "Server overloaded")
            conn.close()
            return

        try:
            self._executor.submit(self._process_connection, conn)
        except RuntimeError:
            # Executor already shut down
            self._slots.release()
            conn.close()

    def _process_connection(self, conn: Connection):
        try:
            with conn:
                while self._running:
                    try:
                        raw_request = conn.read_request()
                    except TimeoutError:
                        self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT, "Request timeout")
                        break
                    except ValueError as e:
                        self._send_error(conn, HTTPStatus.PAYLOAD_TOO_LARGE, str(e))
                        break

                    if raw_request is None:
                        break

                    try:
                        request = self._parser.parse(raw_request, conn.address)
                    except HTTPParseError as e:
                        self._send_error(conn, e.status_code, str(e))
                        break

                    if not self._serve(conn, request):
                        break
                    conn.set_keep_alive()
        except Exception as e:
            logger.exception(f"[{conn.id}] Connection error: {e}")
        finally:
            self._slots.release()

    def _serve(self, conn: Connection, request: HTTPRequest) -> bool:
        """Run the handler for one request; True to keep the connection."""
        conn.state = ConnectionState.PROCESSING
        writer = ConnectionWriter(conn, request, keep_alive=self.config.keep_alive)

        try:
            self.handler(request, writer)
        except Exception as e:
            logger.exception(f"[{conn.id}] Handler error: {e}")
            if not writer.reset():
                return False
            writer.keep_alive = False
            internal_error(writer, request)

        writer.finish()
        return writer.keep_alive and conn.is_open

    def _send_error(self, conn: Connection, status: int, message: str):
        """Error response for failures before a handler ran."""
        placeholder = HTTPRequest(method="GET", path="/", headers={"connection": "close"})
        writer = ConnectionWriter(conn, placeholder, keep_alive=False)
        write_problem(writer, Problem(
            title=message,
            id=status_text(status).lower().replace(" ", "_"),
            status=int(status),
        ))
        writer.finish()


# =============================================================================
# MODULE SUMMARY
# =============================================================================
#
# HTTPServer glues the transport (core/) to a Handler:
#
# 1. Bounded concurrency: max_workers threads, 503 once saturated
# 2. Keep-alive loop per connection, HTTP/1.0 and HTTP/1.1 semantics
# 3. Handler errors become 500s while the response is still unsent
# 4. Hijacked connections are left to the handler that took them
# =============================================================================
