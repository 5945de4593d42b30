"""
AES-128-CBC with PKCS#7 padding.

Encrypted bodies travel as ``ciphertext || iv``; the IV is always the
trailing BLOCK_SIZE bytes.
"""

from typing import Optional, Tuple

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .session import KEY_LENGTH
from .utils import RandomSource, default_random_source

BLOCK_SIZE = 16  # AES block size in bytes


class DecryptError(Exception):
    """Raised when a ciphertext is structurally invalid or fails to decrypt."""
    pass


def cbc_encrypt(key: bytes, iv: bytes, plaintext: bytes) -> bytes:
    """
    Pad and encrypt a plaintext.

    Args:
        key: 16-byte AES key
        iv: 16-byte initialization vector
        plaintext: Data to encrypt

    Returns:
        Ciphertext, a whole number of blocks
    """
    if len(key) != KEY_LENGTH:
        raise ValueError(f"Key must be {KEY_LENGTH} bytes")
    if len(iv) != BLOCK_SIZE:
        raise ValueError(f"IV must be {BLOCK_SIZE} bytes")

    padder = padding.PKCS7(BLOCK_SIZE * 8).padder()
    padded = padder.update(plaintext) + padder.finalize()

    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    return encryptor.update(padded) + encryptor.finalize()


def cbc_decrypt(key: bytes, iv: bytes, ciphertext: bytes) -> bytes:
    """
    Decrypt and unpad a ciphertext.

    Args:
        key: 16-byte AES key
        iv: 16-byte initialization vector
        ciphertext: Encrypted data

    Returns:
        Plaintext

    Raises:
        DecryptError: If lengths are wrong or the padding is invalid
    """
    if len(key) != KEY_LENGTH:
        raise DecryptError(f"Key must be {KEY_LENGTH} bytes")
    if len(iv) != BLOCK_SIZE:
        raise DecryptError(f"IV must be {BLOCK_SIZE} bytes")
    if not ciphertext or len(ciphertext) % BLOCK_SIZE != 0:
        raise DecryptError(
            f"Ciphertext length {len(ciphertext)} is not a positive multiple of {BLOCK_SIZE}"
        )

    decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
    padded = decryptor.update(ciphertext) + decryptor.finalize()

    try:
        unpadder = padding.PKCS7(BLOCK_SIZE * 8).unpadder()
        return unpadder.update(padded) + unpadder.finalize()
    except ValueError as e:
        raise DecryptError("Invalid padding") from e


def split_body(body: bytes) -> Tuple[bytes, bytes]:
    """
    Split an encrypted body into (ciphertext, iv).

    Raises:
        DecryptError: If the body is too short to hold an IV
    """
    if len(body) < BLOCK_SIZE:
        raise DecryptError(f"Encrypted body too short: {len(body)} bytes")
    return body[:-BLOCK_SIZE], body[-BLOCK_SIZE:]


def seal(key: bytes, plaintext: bytes, random_source: Optional[RandomSource] = None) -> bytes:
    """
    Encrypt under a fresh random IV and append the IV.

    Args:
        key: 16-byte AES key
        plaintext: Data to encrypt
        random_source: Source for the IV

    Returns:
        ``ciphertext || iv``
    """
    iv = (random_source or default_random_source()).token_bytes(BLOCK_SIZE)
    return cbc_encrypt(key, iv, plaintext) + iv


def open_sealed(key: bytes, body: bytes) -> bytes:
    """
    Reverse ``seal``.

    Raises:
        DecryptError: If the body is malformed
    """
    ciphertext, iv = split_body(body)
    return cbc_decrypt(key, iv, ciphertext)
