"""EMV ICC master key derivation (Annex A1.4 options A, B and C)."""

from __future__ import annotations

import hashlib

from Crypto.Cipher import AES

from .cryptoutils import (
    DES_BLOCK_SIZE,
    BytesLike,
    fix_key_parity,
    tdes_encrypt_block,
    xor_bytes,
)

AES_BLOCK_SIZE = 16


def _bcd(digits: str) -> bytes:
    try:
        return bytes.fromhex(digits)
    except ValueError as exc:
        raise ValueError(f"invalid digit string {digits!r}: {exc}") from exc


def _fit_digits(digits: str, width: int) -> str:
    """Left-pad with zeros or keep the rightmost width digits."""
    return digits.rjust(width, "0")[-width:]


def derive_icc_key(imk: BytesLike, pan: str, pan_seq: str, option: str) -> bytes:
    """Derive the ICC master key from an issuer master key using option A, B or C."""
    derivations = {"A": _derive_option_a, "B": _derive_option_b, "C": _derive_option_c}
    try:
        derive = derivations[option.upper()]
    except KeyError:
        raise ValueError(f"unsupported derivation option {option!r}") from None
    return derive(bytes(imk), pan, pan_seq or "00")


def _derive_option_a(imk: bytes, pan: str, pan_seq: str) -> bytes:
    y = _bcd(_fit_digits(pan + pan_seq, 16))
    return derive_3des_key(imk, y)


def _derive_option_b(imk: bytes, pan: str, pan_seq: str) -> bytes:
    if len(pan) <= 16:
        return _derive_option_a(imk, pan, pan_seq)
    if len(pan) % 2:
        pan = "0" + pan
    digest = hashlib.sha1((pan + pan_seq).encode("ascii")).digest()
    return derive_3des_key(imk, _bcd(decimalize(digest)))


def _derive_option_c(imk: bytes, pan: str, pan_seq: str) -> bytes:
    y = _bcd(_fit_digits(pan + pan_seq, 32))
    first = aes_ecb_encrypt_block(imk, y)
    if len(imk) <= AES_BLOCK_SIZE:
        return first
    second = aes_ecb_encrypt_block(imk, xor_bytes(y, b"\xff" * AES_BLOCK_SIZE))
    return (first + second)[: len(imk)]


def derive_3des_key(imk: BytesLike, block8: BytesLike) -> bytes:
    """Return E(block) || E(block XOR FF..FF) under the triple DES key, with odd parity."""
    block8 = bytes(block8)
    if len(block8) != DES_BLOCK_SIZE:
        raise ValueError("invalid block size for 3DES")
    left = tdes_encrypt_block(imk, block8)
    right = tdes_encrypt_block(imk, xor_bytes(block8, b"\xff" * DES_BLOCK_SIZE))
    return fix_key_parity(left + right)


def aes_ecb_encrypt_block(key: BytesLike, block: BytesLike) -> bytes:
    """Encrypt exactly one 16-byte block with AES."""
    block = bytes(block)
    if len(block) != AES_BLOCK_SIZE:
        raise ValueError("invalid block size for AES")
    return AES.new(bytes(key), AES.MODE_ECB).encrypt(block)


def decimalize(digest: BytesLike) -> str:
    """Return 16 decimal digits from a hash: decimal nibbles first, then A-F as 0-5."""
    nibbles = [n for b in bytes(digest) for n in (b >> 4, b & 0x0F)]
    digits = [str(n) for n in nibbles if n < 10][:16]
    if len(digits) < 16:
        extra = (str(n - 10) for n in nibbles if n >= 10)
        for digit in extra:
            digits.append(digit)
            if len(digits) == 16:
                break
    return "".join(digits)