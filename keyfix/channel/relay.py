"""
Relay role ("Eve"): man-in-the-middle with DH parameter injection.

The relay answers the initiator as if it were the responder and dials the
real responder as if it were the initiator. On both legs it replaces the
public value with the group modulus P. Both honest parties then compute
P^x mod P = 0 as their shared secret, so both keys are SHA1(b"")[:16] and
the relay can read every message while passing the ciphertext through
untouched.
"""

import logging
import socket
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from ..crypto.session import DHSession, derive_symmetric_key
from ..crypto.utils import RandomSource, format_hex
from ..protocol.frame import Frame
from .server import ConnectionServer
from .stream import ConnectionClosedError, StreamChannel, connect

logger = logging.getLogger(__name__)

INITIATOR_TO_RESPONDER = "initiator->responder"
RESPONDER_TO_INITIATOR = "responder->initiator"


@dataclass(frozen=True)
class Interception:
    """A message the relay decrypted in transit."""
    direction: str
    plaintext: bytes


def fixed_key() -> bytes:
    """The key every party derives once its peer value is replaced by P."""
    return derive_symmetric_key(0)


class Relay:
    """
    Key-fixing man-in-the-middle between an initiator and a responder.

    Each accepted connection gets two legs, each with its own session and
    channel. Either leg failing tears down both.
    """

    def __init__(self, upstream_host: str, upstream_port: int,
                 random_source: Optional[RandomSource] = None,
                 on_intercept: Optional[Callable[[Interception], None]] = None,
                 timeout: Optional[float] = None):
        """
        Args:
            upstream_host: Real responder host
            upstream_port: Real responder port
            random_source: Source for exponents and IVs (system RNG if omitted)
            on_intercept: Called with every decrypted message
            timeout: Socket timeout for the upstream leg
        """
        self.upstream_host = upstream_host
        self.upstream_port = upstream_port
        self.random_source = random_source
        self.on_intercept = on_intercept
        self.timeout = timeout

    def handle_connection(self, sock: socket.socket, address: Tuple[str, int]) -> List[Interception]:
        """
        Run the attack for one initiator connection.

        Both legs are closed on every exit path. Observations stay local to
        the connection; callers see them through ``on_intercept``.

        Returns:
            The messages decrypted on this connection
        """
        name = f"relay[{address[0]}:{address[1]}]"
        with StreamChannel(sock, name=f"{name}<-initiator",
                           random_source=self.random_source) as downstream:
            exchange = downstream.receive_exchange()
            group = exchange.group
            tampered = exchange.with_public_key(group.p)

            downstream_session = DHSession(group, self.random_source)
            downstream_session.derive_key(group.p)
            downstream.establish(downstream_session)
            downstream.send_exchange(tampered)

            with connect(self.upstream_host, self.upstream_port, name=f"{name}->responder",
                         random_source=self.random_source, timeout=self.timeout) as upstream:
                upstream_session = DHSession(group, self.random_source)
                upstream.send_exchange(tampered)

                # The responder's real public value is irrelevant once P was injected
                upstream.receive_exchange()
                upstream_session.derive_key(group.p)
                upstream.establish(upstream_session)

                logger.info(f"{name}: fixed key {format_hex(upstream_session.key)} "
                            f"(shared secret {upstream_session.shared_secret})")

                return self._relay(downstream, upstream)

    def _relay(self, downstream: StreamChannel, upstream: StreamChannel) -> List[Interception]:
        observed: List[Interception] = []
        while True:
            try:
                frame = downstream.receive_encrypted_frame()
            except ConnectionClosedError as e:
                if e.clean:
                    logger.debug(f"{downstream.name}: initiator closed the connection")
                    return observed
                raise

            observed.append(self._observe(INITIATOR_TO_RESPONDER, downstream, frame))
            upstream.forward_raw(frame)

            frame = upstream.receive_encrypted_frame()
            observed.append(self._observe(RESPONDER_TO_INITIATOR, upstream, frame))
            downstream.forward_raw(frame)

    def _observe(self, direction: str, channel: StreamChannel, frame: Frame) -> Interception:
        plaintext = channel.decrypt_frame(frame)
        interception = Interception(direction=direction, plaintext=plaintext)

        logger.info(f"{channel.name}: intercepted {direction}: {plaintext!r}")
        if self.on_intercept:
            self.on_intercept(interception)
        return interception

    def create_server(self, port: int = 0, host: str = "127.0.0.1",
                      connection_timeout: Optional[float] = None) -> ConnectionServer:
        """Build a ConnectionServer that dispatches to this relay."""
        return ConnectionServer(self.handle_connection, bind_port=port, bind_address=host,
                                name="relay", connection_timeout=connection_timeout)
