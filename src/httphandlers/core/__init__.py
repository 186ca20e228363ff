"""
Transport for the bundled server: the accept loop, client connections
and the ResponseWriter that writes HTTP/1.1 to a socket.
"""

from .connection import (
    Connection,
    ConnectionHijackedError,
    ConnectionState,
    ConnectionWriter,
)
from .socket_server import SocketServer

__all__ = [
    "Connection",
    "ConnectionHijackedError",
    "ConnectionState",
    "ConnectionWriter",
    "SocketServer",
]
