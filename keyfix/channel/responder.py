"""
Responder role ("Bob").

Serves one handshake and one request/response per connection. The reply is
an echo of the received message unless another reply function is given.
"""

import logging
import socket
from typing import Callable, Optional, Tuple

from ..crypto.session import DHSession
from ..crypto.utils import RandomSource
from .server import ConnectionServer
from .stream import StreamChannel

logger = logging.getLogger(__name__)


def echo(message: bytes) -> bytes:
    return message


class Responder:
    """
    Accepts connections and answers each initiator with a DH handshake
    followed by an encrypted reply.
    """

    def __init__(self, reply: Callable[[bytes], bytes] = echo,
                 random_source: Optional[RandomSource] = None):
        """
        Args:
            reply: Maps the decrypted request to the plaintext reply
            random_source: Source for exponents and IVs (system RNG if omitted)
        """
        self.reply = reply
        self.random_source = random_source

    def handle_connection(self, sock: socket.socket, address: Tuple[str, int]) -> None:
        """
        Run the responder side of the protocol on one connection.

        Every exit path closes the connection. Errors propagate to the caller.
        """
        name = f"responder[{address[0]}:{address[1]}]"
        with StreamChannel(sock, name=name, random_source=self.random_source) as channel:
            exchange = channel.receive_exchange()

            session = DHSession(exchange.group, self.random_source)
            session.derive_key(exchange.public_key)
            channel.establish(session)

            channel.send_exchange(exchange.with_public_key(session.public_key))

            request = channel.receive_encrypted()
            logger.info(f"{name}: received {len(request)}-byte message")
            channel.send_encrypted(self.reply(request))

    def create_server(self, port: int = 0, host: str = "127.0.0.1",
                      connection_timeout: Optional[float] = None) -> ConnectionServer:
        """Build a ConnectionServer that dispatches to this responder."""
        return ConnectionServer(self.handle_connection, bind_port=port, bind_address=host,
                                name="responder", connection_timeout=connection_timeout)
