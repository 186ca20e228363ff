"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Settings for the bundled HTTP server and the demo service.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │   Priority (highest to lowest):                                     │
    │                                                                     │
    │   1. Command-line arguments                                         │
    │      └── python -m httphandlers --port 3000                         │
    │                                                                     │
    │   2. Environment variables                                          │
    │      └── HTTP_PORT=3000 python -m httphandlers                      │
    │                                                                     │
    │   3. Default values (in this dataclass)                             │
    └─────────────────────────────────────────────────────────────────────┘

The middleware themselves take no configuration object: each one is
configured by its arguments. The one exception is the traffic dump,
toggled per request by DEBUG_HTTP_TRAFFIC (see middleware/debug.py).

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional

from . import __version__
from .logger import FORMATS


@dataclass
class ServerConfig:
    """
    Configuration for the HTTP server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK        host, port, backlog, buffer_size, timeout
    HTTP           keep_alive, keep_alive_timeout, max_request_size
    CONCURRENCY    max_workers
    IDENTITY       server_name
    DEADLINES      request_timeout
    LOGGING        log_level, log_format

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """
    The IP address to bind to.
    - "127.0.0.1" - Localhost only (development)
    - "0.0.0.0" - All network interfaces (containers, production)
    """

    port: int = 8080
    """Port to listen on; 0 lets the OS pick a free one."""

    backlog: int = 128
    """Maximum number of queued, not yet accepted connections."""

    buffer_size: int = 8192
    """Size of each recv() in bytes."""

    timeout: Optional[float] = 30.0
    """Socket timeout in seconds. None blocks forever."""

    # ─────────────────────────────────────────────────────────────────────
    # HTTP SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    keep_alive: bool = True
    """Allow several requests on one TCP connection."""

    keep_alive_timeout: float = 5.0
    """Idle seconds before a kept-alive connection is closed."""

    max_request_size: int = 10 * 1024 * 1024  # 10 MB
    """Largest request (headers + body) accepted, in bytes."""

    # ─────────────────────────────────────────────────────────────────────
    # CONCURRENCY
    # ─────────────────────────────────────────────────────────────────────

    max_workers: int = 16
    """
    Worker threads serving connections.
    Rule of thumb: num_cores * 2 for I/O-bound workloads.
    """

    # ─────────────────────────────────────────────────────────────────────
    # IDENTITY AND DEADLINES
    # ─────────────────────────────────────────────────────────────────────

    server_name: str = f"httphandlers/{__version__}"
    """Value of the Server response header."""

    request_timeout: Optional[float] = None
    """
    Per-request deadline in seconds, published to handlers through the
    request context. None disables it.
    """

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """DEBUG, INFO, WARNING, ERROR or CRITICAL."""

    log_format: str = "text"
    """'text' (logfmt) or 'json'."""

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        HTTP_HOST             Server host (default: 127.0.0.1)
        HTTP_PORT             Server port (default: 8080)
        HTTP_WORKERS          Worker threads (default: 16)
        HTTP_TIMEOUT          Socket timeout in seconds (default: 30)
        HTTP_REQUEST_TIMEOUT  Per-request deadline in seconds (default: none)
        HTTP_SERVER_NAME      Server header (default: httphandlers/<version>)
        HTTP_LOG_LEVEL        Logging level (default: INFO)
        HTTP_LOG_FORMAT       text or json (default: text)

        =====================================================================
        """
        request_timeout = os.getenv("HTTP_REQUEST_TIMEOUT")
        return cls(
            host=os.getenv("HTTP_HOST", "127.0.0.1"),
            port=int(os.getenv("HTTP_PORT", "8080")),
            max_workers=int(os.getenv("HTTP_WORKERS", "16")),
            timeout=float(os.getenv("HTTP_TIMEOUT", "30")),
            request_timeout=float(request_timeout) if request_timeout else None,
            server_name=os.getenv("HTTP_SERVER_NAME", f"httphandlers/{__version__}"),
            log_level=os.getenv("HTTP_LOG_LEVEL", "INFO"),
            log_format=os.getenv("HTTP_LOG_FORMAT", "text"),
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Run at startup so a bad value fails immediately, not on the first
        request.

        Raises:
            ValueError: naming the offending setting.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.max_workers < 1:
            raise ValueError("max_workers must be >= 1")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.request_timeout is not None and self.request_timeout < 0:
            raise ValueError("request_timeout must be >= 0")

        if self.log_format not in FORMATS:
            raise ValueError(f"log_format must be one of {FORMATS}, got {self.log_format!r}")


# =============================================================================
# MODULE SUMMARY
# =============================================================================
#
# 1. Type-safe configuration with a dataclass
# 2. Environment variable support (HTTP_*)
# 3. Validation at startup (fail-fast)
#
# The middleware layer reads none of this; it is the bundled server's and
# the CLI's configuration only.
# =============================================================================
