"""
Random sources and byte helpers for the keyfix protocol engine.

Sessions and channels never reach for a global PRNG; they are handed a
RandomSource at construction so tests can swap in a seeded one.
"""

import random
import re
import secrets


class RandomSource:
    """
    Capability for drawing private exponents and IVs.

    Subclasses implement ``randbelow`` and ``token_bytes`` with the same
    contract as the ``secrets`` module functions of the same name.
    """

    def randbelow(self, upper: int) -> int:
        raise NotImplementedError

    def token_bytes(self, length: int) -> bytes:
        raise NotImplementedError

    def randrange(self, lower: int, upper: int) -> int:
        """Return a uniform integer in [lower, upper)."""
        if upper <= lower:
            raise ValueError(f"Empty range [{lower}, {upper})")
        return lower + self.randbelow(upper - lower)


class SystemRandomSource(RandomSource):
    """Cryptographically secure source backed by ``secrets``."""

    def randbelow(self, upper: int) -> int:
        return secrets.randbelow(upper)

    def token_bytes(self, length: int) -> bytes:
        return secrets.token_bytes(length)


class SeededRandomSource(RandomSource):
    """
    Deterministic source for tests and reproducible demos.

    Never use this for anything that has to stay secret.
    """

    def __init__(self, seed: int = 0):
        self.seed = seed
        self._rng = random.Random(seed)

    def randbelow(self, upper: int) -> int:
        return self._rng.randrange(upper)

    def token_bytes(self, length: int) -> bytes:
        return bytes(self._rng.getrandbits(8) for _ in range(length))


_default_source = SystemRandomSource()


def default_random_source() -> RandomSource:
    """Return the shared system random source."""
    return _default_source


def int_to_bytes(value: int) -> bytes:
    """
    Minimal big-endian encoding of a non-negative integer.

    Zero encodes to the empty byte string.

    Args:
        value: Integer to convert

    Returns:
        Bytes representation
    """
    if value < 0:
        raise ValueError("Cannot encode a negative integer")
    return value.to_bytes((value.bit_length() + 7) // 8, byteorder='big')


def bytes_to_int(data: bytes) -> int:
    """Convert big-endian bytes to an integer."""
    return int.from_bytes(data, byteorder='big')


_HEX_DIGITS = re.compile(r"[0-9a-f]+")


def parse_hex(text: str) -> int:
    """
    Parse a canonical lowercase hex string into a non-negative integer.

    Unlike ``int(text, 16)`` this rejects prefixes, signs, whitespace,
    underscores and uppercase digits.

    Raises:
        TypeError: If text is not a string
        ValueError: If text is not canonical hex
    """
    if not isinstance(text, str):
        raise TypeError(f"Expected a hex string, got {type(text).__name__}")
    if _HEX_DIGITS.fullmatch(text) is None:
        raise ValueError(f"Not a lowercase hex string: {text!r}")
    return int(text, 16)


def format_hex(data: bytes, separator: str = "") -> str:
    """
    Format bytes as hexadecimal string.

    Args:
        data: Bytes to format
        separator: Separator between hex bytes

    Returns:
        Formatted hex string
    """
    return separator.join(f"{b:02x}" for b in data)
