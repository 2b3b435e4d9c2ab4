"""Binary helpers and DES-based card security primitives."""

from __future__ import annotations

import binascii
import secrets
from typing import Union

from Crypto.Cipher import DES

BytesLike = Union[bytes, bytearray, memoryview]
HexLike = Union[str, bytes, bytearray, memoryview]

DES_BLOCK_SIZE = 8
_HEX_CHARS = frozenset("0123456789abcdefABCDEF")
_VALID_KEY_LENGTHS = (8, 16, 24)
_WORD_MASK = 0xFFFFFFFFFFFFFFFF


def _unhex(value: HexLike) -> bytes:
    """Decode a hex string (text or ASCII bytes), raising ValueError on bad input."""
    if isinstance(value, (bytes, bytearray, memoryview)):
        value = bytes(value).decode("ascii")
    try:
        return binascii.unhexlify(value)
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"invalid hex string: {exc}") from exc


def _des(key: BytesLike):
    key = bytes(key)
    if len(key) != DES_BLOCK_SIZE:
        raise ValueError(f"DES key must be 8 bytes, got {len(key)}")
    return DES.new(key, DES.MODE_ECB)


def _check_block(block: BytesLike) -> bytes:
    block = bytes(block)
    if len(block) != DES_BLOCK_SIZE:
        raise ValueError(f"block must be 8 bytes, got {len(block)}")
    return block


def _triple_ciphers(key: BytesLike):
    full = prepare_triple_des_key(key)
    if len(full) != 24:
        raise ValueError(f"invalid triple DES key length {len(full)}")
    return _des(full[:8]), _des(full[8:16]), _des(full[16:])


def pad_iso9797_method1(data: BytesLike, block_size: int) -> bytes:
    """Zero-pad data to a multiple of block_size; empty data becomes one zero block."""
    data = bytes(data)
    if not data:
        return bytes(block_size)
    remainder = len(data) % block_size
    if remainder == 0:
        return data
    return data + bytes(block_size - remainder)


def pad_iso9797_method2(msg: BytesLike, block_size: int) -> bytes:
    """Append 0x80 and zero-pad to a multiple of block_size."""
    return pad_iso9797_method1(bytes(msg) + b"\x80", block_size)


def raw2str(raw: BytesLike) -> str:
    """Return raw bytes as an uppercase hex string."""
    return bytes(raw).hex().upper()


def raw2b(raw: BytesLike) -> bytes:
    """Return raw bytes as uppercase hex, encoded as ASCII bytes."""
    return raw2str(raw).encode("ascii")


def prepare_triple_des_key(key: BytesLike) -> bytes:
    """Extend a single or double length key to triple length (K1K1K1 or K1K2K1)."""
    key = bytes(key)
    if len(key) == 8:
        return key * 3
    if len(key) == 16:
        return key + key[:8]
    return key


def des_encrypt_block(key: BytesLike, block: BytesLike) -> bytes:
    """Encrypt one 8-byte block with single DES."""
    return _des(key).encrypt(_check_block(block))


def des_decrypt_block(key: BytesLike, block: BytesLike) -> bytes:
    """Decrypt one 8-byte block with single DES."""
    return _des(key).decrypt(_check_block(block))


def tdes_encrypt_block(key: BytesLike, block: BytesLike) -> bytes:
    """Encrypt one 8-byte block with triple DES (EDE); short keys are extended."""
    return tdes_ecb_encrypt(key, _check_block(block))


def tdes_decrypt_block(key: BytesLike, block: BytesLike) -> bytes:
    """Decrypt one 8-byte block with triple DES (EDE); short keys are extended."""
    return tdes_ecb_decrypt(key, _check_block(block))


def tdes_ecb_encrypt(key: BytesLike, data: BytesLike) -> bytes:
    """Encrypt data in triple DES ECB mode; data must be a multiple of 8 bytes."""
    data = bytes(data)
    if len(data) % DES_BLOCK_SIZE:
        raise ValueError(
            f"input length {len(data)} not a multiple of block size {DES_BLOCK_SIZE}"
        )
    c1, c2, c3 = _triple_ciphers(key)
    return c3.encrypt(c2.decrypt(c1.encrypt(data)))


def tdes_ecb_decrypt(key: BytesLike, data: BytesLike) -> bytes:
    """Decrypt data in triple DES ECB mode; data must be a multiple of 8 bytes."""
    data = bytes(data)
    if len(data) % DES_BLOCK_SIZE:
        raise ValueError(
            f"input length {len(data)} not a multiple of block size {DES_BLOCK_SIZE}"
        )
    c1, c2, c3 = _triple_ciphers(key)
    return c1.decrypt(c2.encrypt(c3.decrypt(data)))


def xor_hex(block1: HexLike, block2: HexLike) -> bytes:
    """XOR two equal-length hex values and return the result as uppercase hex bytes."""
    raw1 = _unhex(block1)
    raw2 = _unhex(block2)
    if len(raw1) != len(raw2):
        raise ValueError(f"xor: length mismatch {len(raw1)} vs {len(raw2)}")
    return raw2b(bytes(a ^ b for a, b in zip(raw1, raw2)))


def hexify(n: int) -> str:
    """Return a non-negative integer as an even-length uppercase hex string."""
    if n < 0:
        raise ValueError("hexify: negative value")
    text = f"{n:X}"
    return "0" + text if len(text) % 2 else text


def key_cv(key_hex: HexLike, kcv_len: int) -> bytes:
    """Return the first kcv_len hex characters of the key encrypted over zeros."""
    raw_key = _unhex(key_hex)
    if len(raw_key) not in _VALID_KEY_LENGTHS:
        raise ValueError(f"keycv: invalid key length {len(raw_key)}")
    check = raw2b(tdes_ecb_encrypt(raw_key, bytes(2 * DES_BLOCK_SIZE)))
    if kcv_len > len(check):
        raise ValueError(f"keycv: kcv_length {kcv_len} too large")
    return check[:kcv_len]


def get_digits_from_string(ct: str, length: int) -> str:
    """Pick up to length decimal digits from ct, then decimalise hex letters A-F."""
    digits = [c for c in ct if c.isdecimal()][:length]
    if len(digits) < length:
        for c in ct:
            if len(digits) >= length:
                break
            if c in _HEX_CHARS:
                value = int(c, 16)
                if value >= 10:
                    digits.append(str(value - 10))
    return "".join(digits)


def get_visa_pvv(account_number: str, key_index: str, pin: str, pvk: BytesLike) -> bytes:
    """Return the 4-digit Visa PIN verification value."""
    if len(account_number) < 11:
        raise ValueError("account number must have at least 11 digits")
    if len(pin) < 4:
        raise ValueError("PIN must have at least 4 digits")
    tsp = account_number[-11:] + key_index + pin[:4]
    pvk = bytes(pvk)
    if len(pvk) == 16:
        pvk = pvk + pvk[:8]
    if len(pvk) != 24:
        raise ValueError(f"invalid PVK length {len(pvk)}")
    encrypted = tdes_ecb_encrypt(pvk, _unhex(tsp))
    return get_digits_from_string(raw2str(encrypted), 4).encode("ascii")


def get_visa_cvv(pan: str, exp_date: str, serv_code: str, cvk: BytesLike) -> bytes:
    """Return the 3-digit Visa CVV for the card data under a double-length CVK."""
    cvk = bytes(cvk)
    if len(cvk) != 16:
        raise ValueError(
            f"invalid CVK length: expected 16 bytes (double-length), got {len(cvk)}"
        )
    key1, key2 = cvk[:8], cvk[8:]
    if not 13 <= len(pan) <= 19:
        raise ValueError("invalid PAN length: must be between 13 and 19 digits")
    if len(exp_date) != 4:
        raise ValueError("invalid expiration date length: must be 4 characters")
    if len(serv_code) != 3:
        raise ValueError("invalid service code length: must be 3 characters")

    data = (pan + exp_date + serv_code).ljust(32, "0")
    first = _unhex(data[:16])
    second = _unhex(data[16:])

    step = des_encrypt_block(key1, first)
    step = xor_bytes(step, second)
    step = des_encrypt_block(key1, step)
    step = des_decrypt_block(key2, step)
    step = des_encrypt_block(key1, step)
    return get_digits_from_string(raw2str(step), 3).encode("ascii")


def parity_of(x: int) -> int:
    """Return 0 if x has an even number of set bits, -1 if odd (64-bit view)."""
    value = x & _WORD_MASK
    parity = 0
    while value:
        parity = ~parity
        value &= value - 1
    return parity


def check_key_parity(key: BytesLike) -> bool:
    """Return True if every byte of key has odd parity."""
    return all(parity_of(b) == -1 for b in bytes(key))


def fix_key_parity(key: BytesLike) -> bytes:
    """Return a copy of key with every byte forced to odd parity."""
    return bytes(b if bin(b).count("1") % 2 else b ^ 1 for b in bytes(key))


def generate_random_key(length: int) -> bytes:
    """Return a random odd-parity DES key of 8, 16 or 24 bytes."""
    if length not in _VALID_KEY_LENGTHS:
        raise ValueError("invalid key length: must be 8, 16, or 24 bytes")
    mixed = xor_bytes(secrets.token_bytes(length), secrets.token_bytes(length))
    return fix_key_parity(mixed)


def extend_double_to_triple_key(double_key: BytesLike) -> bytes:
    """Extend a 16-byte K1K2 key to the 24-byte K1K2K1 form."""
    double_key = bytes(double_key)
    if len(double_key) != 16:
        raise ValueError(
            "input key must be 16 bytes for double-to-triple extension, "
            f"got {len(double_key)}"
        )
    return double_key + double_key[:8]


def extend_to_double(single_key: BytesLike) -> bytes:
    """Return the key concatenated with itself."""
    single_key = bytes(single_key)
    return single_key + single_key


def truncate_to_single(double_key: BytesLike) -> bytes:
    """Return the first half of the key."""
    double_key = bytes(double_key)
    return double_key[: len(double_key) // 2]


def chunk(data: BytesLike, size: int) -> list[bytes]:
    """Split data into blocks of size bytes; the last may be shorter."""
    if size <= 0:
        return []
    data = bytes(data)
    return [data[start : start + size] for start in range(0, len(data), size)]


def xor_bytes(a: BytesLike, b: BytesLike) -> bytes:
    """Return a XOR b for equal-length byte strings."""
    a, b = bytes(a), bytes(b)
    if len(a) != len(b):
        raise ValueError("xor: length mismatch")
    return bytes(x ^ y for x, y in zip(a, b))