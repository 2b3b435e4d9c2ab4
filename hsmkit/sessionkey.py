"""EMV common session key derivation (Annex A1.3.1)."""

from __future__ import annotations

from Crypto.Cipher import AES

from .cryptoutils import (
    DES_BLOCK_SIZE,
    BytesLike,
    des_encrypt_block,
    fix_key_parity,
    tdes_encrypt_block,
)

_AES_BLOCK = 16


def derive_session_key(km: BytesLike, r: BytesLike) -> bytes:
    """Derive a session key from master key km and diversification data r."""
    km, r = bytes(km), bytes(r)
    n, klen = len(r), len(km)

    if klen == n:
        if n == DES_BLOCK_SIZE:
            return des_encrypt_block(km, r)
        if n == _AES_BLOCK:
            return AES.new(km, AES.MODE_ECB).encrypt(r)
        raise ValueError(f"unsupported block size {n}")

    if n < klen <= 2 * n:
        f1, f2 = bytearray(r), bytearray(r)
        if n >= 3:
            f1[2], f2[2] = 0xF0, 0x0F
        else:
            f1[-1] ^= 0xF0
            f2[-1] ^= 0x0F

        if n == DES_BLOCK_SIZE:
            blocks = tdes_encrypt_block(km, f1) + tdes_encrypt_block(km, f2)
        elif n == _AES_BLOCK:
            cipher = AES.new(km, AES.MODE_ECB)
            blocks = cipher.encrypt(bytes(f1)) + cipher.encrypt(bytes(f2))
        else:
            raise ValueError(f"unsupported block size {n}")
        return fix_key_parity(blocks)[:klen]

    raise ValueError(f"invalid key length {klen} for block size {n}")