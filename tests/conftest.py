"""
pytest configuration and fixtures.
"""

import socket
import threading
from typing import Generator, Optional

import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from httphandlers import HTTPServer, ServerConfig
from httphandlers.http import HTTPRequest, ResponseRecorder
from httphandlers.middleware import Handler


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /api/users?page=1&limit=10 HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: application/json\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with JSON body."""
    body = b'{"name": "John", "email": "john@example.com"}'
    return (
        b"POST /api/users HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"Content-Type: application/json\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"Connection: close\r\n"
        b"\r\n"
    ) + body


@pytest.fixture
def recorder() -> ResponseRecorder:
    """Fresh in-memory response writer."""
    return ResponseRecorder()


def run_handler(handler: Handler, method: str = "GET", target: str = "/", **kwargs) -> ResponseRecorder:
    """Run ``handler`` on a synthetic request and return what it wrote."""
    request = HTTPRequest.from_target(method, target, **kwargs)
    recorder = ResponseRecorder()
    handler(request, recorder)
    return recorder


@pytest.fixture
def serve():
    """The run_handler helper, as a fixture."""
    return run_handler


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


class TestServer:
    """Runs an HTTPServer in a background thread."""

    __test__ = False  # not a test class

    def __init__(self, server: HTTPServer):
        self.server = server
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> int:
        return self.server.address[1]

    def start(self):
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()
        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        self.server.shutdown()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)

    def request(self, raw: bytes, timeout: float = 5.0) -> bytes:
        """Send ``raw`` on a fresh connection and read until the server closes it."""
        with socket.create_connection(("127.0.0.1", self.port), timeout=timeout) as sock:
            sock.sendall(raw)
            chunks = []
            while True:
                chunk = sock.recv(65536)
                if not chunk:
                    break
                chunks.append(chunk)
        return b"".join(chunks)


@pytest.fixture
def start_server(free_port: int) -> Generator:
    """Factory: start_server(handler, **config) → running TestServer."""
    started = []

    def factory(handler: Handler, **overrides) -> TestServer:
        settings = dict(
            host="127.0.0.1",
            port=free_port,
            max_workers=4,
            timeout=5.0,
            keep_alive_timeout=1.0,
            log_level="WARNING",
        )
        settings.update(overrides)
        test_srv = TestServer(HTTPServer(handler, ServerConfig(**settings)))
        test_srv.start()
        started.append(test_srv)
        return test_srv

    yield factory

    for test_srv in started:
        test_srv.stop()
