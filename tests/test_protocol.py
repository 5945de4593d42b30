"""
Protocol tests for keyfix.

Tests frame encoding, payload serialization and the connection state machine.
"""

import base64
import json

import pytest

from keyfix.crypto.cbc import DecryptError
from keyfix.crypto.group import MODP_1536_GROUP, SMALL_GROUP, DomainError
from keyfix.protocol.frame import (
    HEADER_SIZE,
    MAX_PAYLOAD_SIZE,
    DecodeError,
    Frame,
    MessageType,
    ProtocolError,
    decode_frame,
    decode_header,
    encode_frame,
)
from keyfix.protocol.message import EncryptedPayload, ExchangeMessage, decode_payload
from keyfix.protocol.state import ConnectionState, StateMachine


class TestFrame:
    """Test frame encoding and parsing."""

    def test_layout(self):
        assert HEADER_SIZE == 5
        assert encode_frame(MessageType.EXCHANGE, b"abc") == b"\x01\x00\x00\x00\x03abc"
        assert encode_frame(MessageType.ENCRYPTED, b"") == b"\x02\x00\x00\x00\x00"

    def test_parse(self):
        frame = decode_frame(b"\x02\x00\x00\x00\x02hi")
        assert frame.message_type == MessageType.ENCRYPTED
        assert frame.payload == b"hi"
        assert len(frame) == 7

    def test_to_bytes_matches_encode(self):
        frame = Frame(MessageType.EXCHANGE, b"{}")
        assert frame.to_bytes() == encode_frame(MessageType.EXCHANGE, b"{}")
        assert decode_frame(frame.to_bytes()) == frame

    def test_unknown_type(self):
        with pytest.raises(DecodeError):
            decode_header(b"\x07\x00\x00\x00\x00")

    def test_oversized_declared_length(self):
        header = bytes([1]) + (MAX_PAYLOAD_SIZE + 1).to_bytes(4, 'big')
        with pytest.raises(DecodeError):
            decode_header(header)

    def test_oversized_payload(self):
        with pytest.raises(DecodeError):
            encode_frame(MessageType.ENCRYPTED, b"\x00" * (MAX_PAYLOAD_SIZE + 1))

    def test_truncated(self):
        with pytest.raises(DecodeError):
            decode_frame(b"\x01\x00")
        with pytest.raises(DecodeError):
            decode_frame(b"\x01\x00\x00\x00\x05ab")

    def test_expect(self):
        frame = Frame(MessageType.EXCHANGE, b"x")
        assert frame.expect(MessageType.EXCHANGE) == b"x"
        with pytest.raises(ProtocolError):
            frame.expect(MessageType.ENCRYPTED)


class TestExchangeMessage:
    """Test EXCHANGE payload serialization."""

    def test_wire_format(self):
        payload = ExchangeMessage(SMALL_GROUP, 10).to_bytes()
        assert json.loads(payload) == {"group": {"p": "25", "g": "5"}, "public_key": "a"}

    def test_roundtrip_large_group(self):
        message = ExchangeMessage(MODP_1536_GROUP, MODP_1536_GROUP.p - 5)
        assert ExchangeMessage.from_bytes(message.to_bytes()) == message

    def test_modulus_as_public_value(self):
        tampered = ExchangeMessage(SMALL_GROUP, 8).with_public_key(SMALL_GROUP.p)
        assert tampered.public_key == 37
        assert tampered.group == SMALL_GROUP
        assert ExchangeMessage.from_bytes(tampered.to_bytes()).public_key == 37

    @pytest.mark.parametrize("payload", [
        b"not json",
        b"\xff\xfe",
        b"[1, 2]",
        b'{"group": {"p": "25", "g": "5"}}',
        b'{"group": {"p": "25"}, "public_key": "a"}',
        b'{"group": {"p": "zz", "g": "5"}, "public_key": "a"}',
        b'{"group": "small", "public_key": "a"}',
        b'{"group": {"p": "25", "g": "5"}, "public_key": "-a"}',
        b'{"group": {"p": "0x25", "g": "5"}, "public_key": "a"}',
        b'{"group": {"p": " 25 ", "g": "5"}, "public_key": "a"}',
        b'{"group": {"p": "2_5", "g": "5"}, "public_key": "a"}',
        b'{"group": {"p": "25", "g": "5"}, "public_key": "0xa"}',
        b'{"group": {"p": "25", "g": "5"}, "public_key": "+a"}',
        b'{"group": {"p": "25", "g": "5"}, "public_key": "A"}',
        b'{"group": {"p": "25", "g": "5"}, "public_key": ""}',
        b'{"group": {"p": "25", "g": "5"}, "public_key": 10}',
    ])
    def test_malformed(self, payload):
        with pytest.raises(DecodeError):
            ExchangeMessage.from_bytes(payload)

    def test_invalid_group(self):
        with pytest.raises(DomainError):
            ExchangeMessage.from_bytes(b'{"group": {"p": "2", "g": "1"}, "public_key": "1"}')


class TestEncryptedPayload:
    """Test ENCRYPTED payload serialization."""

    def test_body_appends_iv(self):
        payload = EncryptedPayload(ciphertext=b"c" * 32, iv=b"i" * 16)
        assert payload.body == b"c" * 32 + b"i" * 16
        assert EncryptedPayload.from_body(payload.body) == payload

    def test_roundtrip(self):
        payload = EncryptedPayload(ciphertext=b"\x01" * 16, iv=b"\x02" * 16)
        assert EncryptedPayload.from_bytes(payload.to_bytes()) == payload

    def test_wire_format(self):
        payload = EncryptedPayload(ciphertext=b"\x01" * 16, iv=b"\x02" * 16)
        obj = json.loads(payload.to_bytes())
        assert base64.b64decode(obj["body"]) == payload.body

    def test_short_body(self):
        data = json.dumps({"body": base64.b64encode(b"x" * 10).decode()}).encode()
        with pytest.raises(DecryptError):
            EncryptedPayload.from_bytes(data)

    @pytest.mark.parametrize("payload", [
        b"{}",
        b'{"body": "!!!"}',
        b'{"body": 5}',
    ])
    def test_malformed(self, payload):
        with pytest.raises(DecodeError):
            EncryptedPayload.from_bytes(payload)

    def test_decode_payload_dispatch(self):
        exchange = ExchangeMessage(SMALL_GROUP, 3)
        encrypted = EncryptedPayload(ciphertext=b"\x00" * 16, iv=b"\x00" * 16)
        assert decode_payload(exchange.to_frame()) == exchange
        assert decode_payload(encrypted.to_frame()) == encrypted
        assert exchange.to_frame().message_type == MessageType.EXCHANGE
        assert encrypted.to_frame().message_type == MessageType.ENCRYPTED


class TestStateMachine:
    """Test connection state transitions."""

    def test_happy_path(self):
        machine = StateMachine("test")
        assert machine.state == ConnectionState.AWAITING_EXCHANGE
        machine.advance(ConnectionState.KEY_ESTABLISHED)
        machine.advance(ConnectionState.EXCHANGING_ENCRYPTED_MESSAGES)
        machine.advance(ConnectionState.EXCHANGING_ENCRYPTED_MESSAGES)
        machine.close()
        assert machine.closed

    def test_cannot_skip_key_establishment(self):
        machine = StateMachine("test")
        with pytest.raises(ProtocolError):
            machine.advance(ConnectionState.EXCHANGING_ENCRYPTED_MESSAGES)

    def test_closed_is_terminal(self):
        machine = StateMachine("test")
        machine.close()
        machine.close()
        with pytest.raises(ProtocolError):
            machine.advance(ConnectionState.KEY_ESTABLISHED)

    def test_frame_checks(self):
        machine = StateMachine("test")
        machine.check_frame(MessageType.EXCHANGE)
        with pytest.raises(ProtocolError):
            machine.check_frame(MessageType.ENCRYPTED)

        machine.advance(ConnectionState.KEY_ESTABLISHED)
        machine.check_frame(MessageType.ENCRYPTED)
        with pytest.raises(ProtocolError):
            machine.check_frame(MessageType.EXCHANGE)
