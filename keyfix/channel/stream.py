"""
Framed, typed messaging over a connected stream socket.

A StreamChannel owns one socket. It reads and writes whole frames, tracks
the connection state, and once a DH session with a derived key is attached
it encrypts and decrypts ENCRYPTED frames with that key.
"""

import logging
import socket
from typing import Optional

from ..crypto.cbc import open_sealed, seal
from ..crypto.session import DHSession, StateError
from ..crypto.utils import RandomSource, default_random_source
from ..protocol.frame import Frame, MessageType, ProtocolError, HEADER_SIZE, decode_header
from ..protocol.message import EncryptedPayload, ExchangeMessage, Payload, decode_payload
from ..protocol.state import ConnectionState, StateMachine


class TransportError(IOError):
    """Raised when the underlying stream fails."""
    pass


class ConnectionClosedError(TransportError):
    """
    Raised when the peer closes the stream.

    ``clean`` is True when the close happened on a frame boundary.
    """

    def __init__(self, message: str, clean: bool = False):
        super().__init__(message)
        self.clean = clean


class StreamChannel:
    """
    One side of a framed connection.
    """

    def __init__(self, sock: socket.socket, name: str = "channel",
                 random_source: Optional[RandomSource] = None):
        """
        Wrap a connected socket.

        Args:
            sock: Connected stream socket; the channel takes ownership
            name: Label used in log lines
            random_source: Source for IVs (system RNG if omitted)
        """
        self.sock = sock
        self.name = name
        self.session: Optional[DHSession] = None
        self.state = StateMachine(name)
        self._random = random_source or default_random_source()
        self.logger = logging.getLogger(__name__)

    # Raw frame I/O

    def _recv_exactly(self, length: int, at_boundary: bool = False) -> bytes:
        data = bytearray()
        while len(data) < length:
            try:
                chunk = self.sock.recv(length - len(data))
            except OSError as e:
                raise TransportError(f"{self.name}: read failed: {e}") from e
            if not chunk:
                clean = at_boundary and not data
                raise ConnectionClosedError(
                    f"{self.name}: connection closed after {len(data)} of {length} bytes",
                    clean=clean,
                )
            data.extend(chunk)
        return bytes(data)

    def send_frame(self, frame: Frame) -> None:
        """
        Write one frame fully to the stream.

        Raises:
            TransportError: If the write fails
        """
        data = frame.to_bytes()
        try:
            self.sock.sendall(data)
        except OSError as e:
            raise TransportError(f"{self.name}: write failed: {e}") from e
        self.logger.debug(f"{self.name}: sent {frame.message_type.name} frame ({len(data)} bytes)")

    def receive_frame(self) -> Frame:
        """
        Block until one complete frame has been read.

        Raises:
            TransportError: On read failure or premature close
            DecodeError: On a malformed header
        """
        header = self._recv_exactly(HEADER_SIZE, at_boundary=True)
        message_type, length = decode_header(header)
        payload = self._recv_exactly(length)
        self.logger.debug(f"{self.name}: received {message_type.name} frame ({length} bytes)")
        return Frame(message_type=message_type, payload=payload)

    def send(self, message_type: MessageType, payload: bytes) -> None:
        """Frame and send a serialized payload."""
        self.send_frame(Frame(message_type=message_type, payload=payload))

    def receive(self, expected: MessageType) -> bytes:
        """
        Receive one frame of the expected type.

        Returns:
            The frame's payload bytes

        Raises:
            ProtocolError: If the frame type is wrong for the request or state
        """
        frame = self.receive_frame()
        self.state.check_frame(frame.message_type)
        return frame.expect(expected)

    def receive_message(self) -> Payload:
        """
        Receive one frame allowed in the current state and decode its payload.

        Returns:
            ExchangeMessage or EncryptedPayload

        Raises:
            ProtocolError: If the frame type is not allowed in the current state
            DecodeError: If the payload is malformed
        """
        frame = self.receive_frame()
        self.state.check_frame(frame.message_type)
        return decode_payload(frame)

    # Handshake

    def send_exchange(self, message: ExchangeMessage) -> None:
        self.send(MessageType.EXCHANGE, message.to_bytes())

    def receive_exchange(self) -> ExchangeMessage:
        """
        Receive the peer's EXCHANGE message.

        Raises:
            ProtocolError: If anything other than EXCHANGE arrives
            DecodeError: If the payload is malformed
        """
        message = self.receive_message()
        if not isinstance(message, ExchangeMessage):
            raise ProtocolError(f"{self.name}: expected EXCHANGE, received {message.message_type.name}")
        return message

    def establish(self, session: DHSession) -> None:
        """
        Attach a keyed session and move to KEY_ESTABLISHED.

        Raises:
            StateError: If the session has no derived key
        """
        if not session.has_key:
            raise StateError(f"{self.name}: cannot establish channel before key derivation")
        self.session = session
        self.state.advance(ConnectionState.KEY_ESTABLISHED)
        self.logger.info(f"{self.name}: key established")

    # Encrypted messaging

    def _require_key(self) -> bytes:
        if self.session is None or not self.session.has_key:
            raise StateError(f"{self.name}: no key has been derived yet")
        return self.session.key

    def send_encrypted(self, plaintext: bytes) -> None:
        """
        Encrypt under the session key with a fresh IV and send.

        Raises:
            StateError: If no key has been derived yet
            TransportError: If the write fails
        """
        key = self._require_key()
        body = seal(key, plaintext, self._random)
        payload = EncryptedPayload.from_body(body)
        self.send_frame(payload.to_frame())
        self.state.advance(ConnectionState.EXCHANGING_ENCRYPTED_MESSAGES)

    def decrypt_frame(self, frame: Frame) -> bytes:
        """
        Decrypt a received ENCRYPTED frame with this channel's key.

        Raises:
            StateError: If no key has been derived yet
            ProtocolError: If the frame is not ENCRYPTED
            DecryptError: If the ciphertext is structurally invalid
        """
        key = self._require_key()
        payload = decode_payload(frame)
        if not isinstance(payload, EncryptedPayload):
            raise ProtocolError(f"{self.name}: expected ENCRYPTED, received {payload.message_type.name}")
        return open_sealed(key, payload.body)

    def receive_encrypted_frame(self) -> Frame:
        """
        Receive an ENCRYPTED frame without decrypting it.

        Raises:
            StateError: If no key has been derived yet
            ProtocolError: If another frame type arrives
        """
        self._require_key()
        frame = self.receive_frame()
        self.state.check_frame(frame.message_type)
        frame.expect(MessageType.ENCRYPTED)
        self.state.advance(ConnectionState.EXCHANGING_ENCRYPTED_MESSAGES)
        return frame

    def receive_encrypted(self) -> bytes:
        """
        Receive and decrypt one ENCRYPTED frame.

        Raises:
            StateError: If no key has been derived yet
            ProtocolError: If another frame type arrives
            DecryptError: If the ciphertext is structurally invalid
        """
        return self.decrypt_frame(self.receive_encrypted_frame())

    def forward_raw(self, frame: Frame) -> None:
        """
        Send a received ENCRYPTED frame on this channel byte for byte.

        Raises:
            ProtocolError: If the frame is not ENCRYPTED
        """
        if frame.message_type != MessageType.ENCRYPTED:
            raise ProtocolError(f"{self.name}: only ENCRYPTED frames can be forwarded")
        self.send_frame(frame)
        self.state.advance(ConnectionState.EXCHANGING_ENCRYPTED_MESSAGES)

    # Lifecycle

    def close(self) -> None:
        """Close the socket. Safe to call more than once."""
        if self.state.closed:
            return
        self.state.close()
        try:
            self.sock.close()
        except OSError as e:
            self.logger.debug(f"{self.name}: error closing socket: {e}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def connect(host: str, port: int, name: str = "client",
            random_source: Optional[RandomSource] = None,
            timeout: Optional[float] = None) -> StreamChannel:
    """
    Dial a TCP endpoint and wrap it in a StreamChannel.

    Raises:
        TransportError: If the connection cannot be made
    """
    try:
        sock = socket.create_connection((host, port), timeout=timeout)
    except OSError as e:
        raise TransportError(f"{name}: failed to connect to {host}:{port}: {e}") from e
    return StreamChannel(sock, name=name, random_source=random_source)
