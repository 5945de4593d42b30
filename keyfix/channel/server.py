"""
Threaded TCP accept loop.

The accept loop runs on one thread and hands each connection to its own
worker thread. A failing connection is logged and closed; it never stops
the listener.
"""

import logging
import socket
import threading
from typing import Any, Callable, Optional, Tuple

from ..crypto.cbc import DecryptError
from ..crypto.group import DomainError
from ..crypto.session import StateError
from ..protocol.frame import DecodeError, ProtocolError
from .stream import TransportError

# Per-connection failures the accept loop absorbs
CONNECTION_ERRORS = (
    TransportError,
    DecodeError,
    ProtocolError,
    StateError,
    DecryptError,
    DomainError,
)

ConnectionHandler = Callable[[socket.socket, Tuple[str, int]], Any]


class ConnectionServer:
    """
    Listens on a TCP port and dispatches connections to a handler.
    """

    def __init__(self, handler: ConnectionHandler, bind_port: int = 0,
                 bind_address: str = "127.0.0.1", name: str = "server",
                 connection_timeout: Optional[float] = None):
        """
        Initialize the server.

        Args:
            handler: Called as handler(sock, address) on a worker thread
            bind_port: Port to bind to (0 for random port)
            bind_address: Address to bind to
            name: Label used in log lines
            connection_timeout: Socket timeout applied to accepted connections
        """
        self.handler = handler
        self.bind_address = bind_address
        self.bind_port = bind_port
        self.name = name
        self.connection_timeout = connection_timeout
        self.socket: Optional[socket.socket] = None
        self.actual_port: Optional[int] = None
        self.running = False
        self.accept_thread: Optional[threading.Thread] = None
        self.connections_handled = 0
        self.connections_failed = 0
        self._stats_lock = threading.Lock()
        self.logger = logging.getLogger(__name__)

    def bind(self) -> int:
        """
        Create and bind the listening socket.

        Returns:
            Actual port number being used

        Raises:
            TransportError: If the socket cannot be bound
        """
        if self.socket is not None:
            return self.actual_port

        try:
            self.socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            self.socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            self.socket.bind((self.bind_address, self.bind_port))
            self.socket.listen()
            # Periodic wakeups so stop() is noticed
            self.socket.settimeout(0.5)
            self.actual_port = self.socket.getsockname()[1]
        except OSError as e:
            self._close_listener()
            raise TransportError(f"{self.name}: failed to bind {self.bind_address}:{self.bind_port}: {e}") from e

        self.logger.info(f"{self.name} listening on {self.bind_address}:{self.actual_port}")
        return self.actual_port

    def start(self) -> int:
        """
        Bind and run the accept loop on a background thread.

        Returns:
            Actual port number being used
        """
        if self.running:
            return self.actual_port

        port = self.bind()
        self.running = True
        self.accept_thread = threading.Thread(
            target=self._accept_loop, name=f"{self.name}-accept", daemon=True
        )
        self.accept_thread.start()
        return port

    def serve_forever(self) -> None:
        """Bind and run the accept loop on the calling thread."""
        self.bind()
        self.running = True
        try:
            self._accept_loop()
        finally:
            self.stop()

    def stop(self) -> None:
        """Stop accepting connections. Workers already running finish on their own."""
        self.running = False

        if self.accept_thread and self.accept_thread.is_alive() \
                and self.accept_thread is not threading.current_thread():
            self.accept_thread.join(timeout=2.0)

        self._close_listener()
        self.logger.info(f"{self.name} stopped")

    def _close_listener(self) -> None:
        if self.socket:
            self.socket.close()
            self.socket = None

    def _accept_loop(self) -> None:
        while self.running:
            try:
                conn, address = self.socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self.running:
                    self.logger.error(f"{self.name}: error accepting connection: {e}")
                    continue
                break

            conn.settimeout(self.connection_timeout)
            worker = threading.Thread(
                target=self._handle, args=(conn, address),
                name=f"{self.name}-{address[0]}:{address[1]}", daemon=True,
            )
            worker.start()

    def _handle(self, conn: socket.socket, address: Tuple[str, int]) -> None:
        self.logger.info(f"{self.name}: connection from {address[0]}:{address[1]}")
        failed = False
        try:
            self.handler(conn, address)
        except CONNECTION_ERRORS as e:
            failed = True
            self.logger.warning(f"{self.name}: connection {address[0]}:{address[1]} failed "
                                f"with {type(e).__name__}: {e}")
        except Exception:
            failed = True
            self.logger.exception(f"{self.name}: unexpected error on {address[0]}:{address[1]}")
        finally:
            conn.close()
            with self._stats_lock:
                self.connections_handled += 1
                if failed:
                    self.connections_failed += 1

    def get_stats(self) -> dict:
        """Connection counters for this server."""
        with self._stats_lock:
            return {
                'name': self.name,
                'address': (self.bind_address, self.actual_port),
                'running': self.running,
                'connections_handled': self.connections_handled,
                'connections_failed': self.connections_failed,
            }

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
