"""DES key generation, XOR component splitting and key check values."""

from __future__ import annotations

import binascii
import secrets
from functools import reduce
from typing import Iterable, Sequence

from .cryptoutils import BytesLike, des_encrypt_block, tdes_encrypt_block, xor_bytes

KEY_LENGTH_64 = 64
KEY_LENGTH_128 = 128
KEY_LENGTH_192 = 192
KCV_LENGTH = 3

_VALID_KEY_BITS = (KEY_LENGTH_64, KEY_LENGTH_128, KEY_LENGTH_192)


class KeyMaterialError(ValueError):
    """Base class for errors in key material handling."""


class InvalidKeyLengthError(KeyMaterialError):
    """The key has an unsupported or inconsistent length."""

    def __init__(self, message: str = "invalid key length") -> None:
        super().__init__(message)


class InvalidHexStringError(KeyMaterialError):
    """A value is not a valid hex string."""

    def __init__(self, message: str = "invalid hex string") -> None:
        super().__init__(message)


class InvalidComponentCountError(KeyMaterialError):
    """Fewer than two key components were given or requested."""

    def __init__(self, message: str = "invalid component count") -> None:
        super().__init__(message)


def _decode_hex(text: str) -> bytes:
    if len(text) % 2:
        raise InvalidHexStringError()
    try:
        return binascii.unhexlify(text)
    except (binascii.Error, ValueError, TypeError):
        raise InvalidHexStringError() from None


def generate_key(length_bits: int, enforce_odd_parity: bool = False) -> tuple[str, str]:
    """Return a random key of 64, 128 or 192 bits and its KCV, both as hex."""
    if length_bits not in _VALID_KEY_BITS:
        raise InvalidKeyLengthError()
    key = secrets.token_bytes(length_bits // 8)
    if enforce_odd_parity:
        key = adjust_parity(key)
    return key.hex(), calculate_kcv(key).hex()


def split_key(key_hex: str, num_components: int) -> tuple[list[str], str]:
    """Split a hex key into XOR components; return them and the key's KCV."""
    if num_components < 2:
        raise InvalidComponentCountError()
    key = _decode_hex(key_hex)
    randoms = [secrets.token_bytes(len(key)) for _ in range(num_components - 1)]
    last = reduce(xor_bytes, randoms, key)
    components = [component.hex() for component in (*randoms, last)]
    return components, calculate_kcv(key).hex()


def combine_components(components: Sequence[str]) -> str:
    """XOR hex key components together and return the key as hex."""
    if len(components) < 2:
        raise InvalidComponentCountError()
    decoded = [_decode_hex(component) for component in components]
    key_length = len(decoded[0])
    if any(len(part) != key_length for part in decoded[1:]):
        raise InvalidKeyLengthError()
    return reduce(xor_bytes, decoded).hex()


def calculate_kcv(key: BytesLike) -> bytes:
    """Return the 3-byte check value: the key encrypted over a zero block.

    Keys of 8, 16 and 24 bytes use DES, K1K2K1 triple DES and triple DES;
    any other length yields its first three bytes, zero padded.
    """
    key = bytes(key)
    if not key:
        return bytes(KCV_LENGTH)
    zero = bytes(8)
    if len(key) == 8:
        encrypted = des_encrypt_block(key, zero)
    elif len(key) in (16, 24):
        encrypted = tdes_encrypt_block(key, zero)
    else:
        return key[:KCV_LENGTH].ljust(KCV_LENGTH, b"\x00")
    return encrypted[:KCV_LENGTH]


def adjust_parity(key: BytesLike) -> bytes:
    """Return the key with each low bit set so that every byte has odd parity."""
    adjusted = bytearray()
    for byte in bytes(key):
        high_bits = bin(byte >> 1).count("1")
        adjusted.append(byte | 1 if high_bits % 2 == 0 else byte & 0xFE)
    return bytes(adjusted)


def validate_key_parity(key: BytesLike) -> bool:
    """Return True if every byte of the key has odd parity."""
    return all(bin(byte).count("1") % 2 for byte in bytes(key))


def validate_component_consistency(original: str, components: Iterable[str]) -> bool:
    """Return True if the components XOR back to the original hex key."""
    try:
        original_bytes = _decode_hex(original)
        recombined = _decode_hex(combine_components(list(components)))
    except KeyMaterialError:
        return False
    return original_bytes == recombined