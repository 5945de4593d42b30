"""
Initiator role ("Alice").

Opens a connection, performs the DH handshake over a fixed group, sends one
encrypted message and returns the decrypted reply.
"""

import logging
from typing import Optional

from ..crypto.group import Group, SMALL_GROUP
from ..crypto.session import DHSession
from ..crypto.utils import RandomSource
from ..protocol.message import ExchangeMessage
from .stream import connect

logger = logging.getLogger(__name__)

DEFAULT_MESSAGE = b"Go Ninja, Go Ninja, GO: Go Ninja, Go Ninja, GO!"


class Initiator:
    """
    Client side of the protocol.

    The session from the most recent run is kept on ``self.session`` so a
    caller can inspect the derived key.
    """

    def __init__(self, host: str, port: int, group: Group = SMALL_GROUP,
                 random_source: Optional[RandomSource] = None,
                 timeout: Optional[float] = None):
        self.host = host
        self.port = port
        self.group = group
        self.random_source = random_source
        self.timeout = timeout
        self.session: Optional[DHSession] = None

    def run(self, message: bytes = DEFAULT_MESSAGE) -> bytes:
        """
        Perform one full exchange.

        Args:
            message: Plaintext to send

        Returns:
            The responder's decrypted reply

        Raises:
            TransportError, DecodeError, ProtocolError, DecryptError: On any failure;
            nothing is retried here
        """
        session = DHSession(self.group, self.random_source)
        self.session = session

        with connect(self.host, self.port, name="initiator",
                     random_source=self.random_source, timeout=self.timeout) as channel:
            channel.send_exchange(ExchangeMessage(group=self.group, public_key=session.public_key))

            reply = channel.receive_exchange()
            session.derive_key(reply.public_key)
            channel.establish(session)

            channel.send_encrypted(message)
            response = channel.receive_encrypted()

        logger.info(f"initiator: received {len(response)}-byte reply from {self.host}:{self.port}")
        return response
