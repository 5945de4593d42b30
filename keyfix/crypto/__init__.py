"""
Cryptographic primitives for keyfix.

This module provides:
- Diffie-Hellman groups and sessions
- SHA-1 based symmetric key derivation
- AES-128-CBC encryption with appended IVs
- Injectable random sources
"""

from .group import Group, DomainError, SMALL_GROUP, MODP_1536_GROUP, get_group
from .session import DHSession, StateError, new_session, derive_symmetric_key, KEY_LENGTH
from .cbc import DecryptError, seal, open_sealed, cbc_encrypt, cbc_decrypt, BLOCK_SIZE
from .utils import RandomSource, SystemRandomSource, SeededRandomSource

__all__ = [
    'Group',
    'DomainError',
    'SMALL_GROUP',
    'MODP_1536_GROUP',
    'get_group',
    'DHSession',
    'StateError',
    'new_session',
    'derive_symmetric_key',
    'KEY_LENGTH',
    'DecryptError',
    'seal',
    'open_sealed',
    'cbc_encrypt',
    'cbc_decrypt',
    'BLOCK_SIZE',
    'RandomSource',
    'SystemRandomSource',
    'SeededRandomSource',
]
