"""ISO/IEC 9797-1 DES MACs and AES-CMAC."""

from __future__ import annotations

from Crypto.Cipher import AES

from .cryptoutils import (
    BytesLike,
    chunk,
    des_decrypt_block,
    des_encrypt_block,
    pad_iso9797_method2,
    xor_bytes,
)

_AES_BLOCK = 16
_RB = 0x87


def _check_mac_size(size: int) -> None:
    if not 4 <= size <= 8:
        raise ValueError(f"invalid MAC length {size}")


def calculate_mac(msg: BytesLike, key: BytesLike, size: int, algo: int) -> bytes:
    """Return a size-byte CBC-DES MAC (algorithm 1 or 3) over already padded msg."""
    _check_mac_size(size)
    key = bytes(key)
    if len(key) not in (8, 16):
        raise ValueError(f"ks must be 8 or 16 bytes, got {len(key)}")

    k1 = key[:8]
    h = bytes(8)
    for block in chunk(msg, 8):
        h = des_encrypt_block(k1, xor_bytes(block, h))

    if algo == 1 or len(key) == 8:
        result = h
    elif algo == 3:
        result = des_encrypt_block(k1, des_decrypt_block(key[8:16], h))
    else:
        raise ValueError("unknown algorithm, must be 1 or 3")
    return result[:size]


def derive_cmac_subkeys(key: BytesLike) -> tuple[bytes, bytes]:
    """Return the AES-CMAC subkeys K1 and K2 for key."""
    cipher = AES.new(bytes(key), AES.MODE_ECB)
    l_value = cipher.encrypt(bytes(_AES_BLOCK))
    k1 = _double(l_value)
    return k1, _double(k1)


def _double(block: bytes) -> bytes:
    value = int.from_bytes(block, "big")
    shifted = (value << 1) & ((1 << (8 * len(block))) - 1)
    if block[0] & 0x80:
        shifted ^= _RB
    return shifted.to_bytes(len(block), "big")


def cmac(msg: BytesLike, key: BytesLike, size: int) -> bytes:
    """Return a size-byte AES-CMAC over msg."""
    _check_mac_size(size)
    key = bytes(key)
    if len(key) not in (16, 24, 32):
        raise ValueError(f"AES key must be 16/24/32 bytes, got {len(key)}")
    msg = bytes(msg)
    if not msg:
        raise ValueError("message must not be empty")

    k1, k2 = derive_cmac_subkeys(key)
    if len(msg) % _AES_BLOCK == 0:
        blocks = chunk(msg, _AES_BLOCK)
        blocks[-1] = xor_bytes(blocks[-1], k1)
    else:
        blocks = chunk(pad_iso9797_method2(msg, _AES_BLOCK), _AES_BLOCK)
        blocks[-1] = xor_bytes(blocks[-1], k2)

    cipher = AES.new(key, AES.MODE_ECB)
    h = bytes(_AES_BLOCK)
    for block in blocks:
        h = cipher.encrypt(xor_bytes(block, h))
    return h[:size]