"""Key wrapping in Thales 'S' key block format under an AES local master key."""

from __future__ import annotations

import binascii
import hmac
import secrets
from typing import Iterable, Optional, Union

from Crypto.Cipher import AES

from .cryptoutils import BytesLike, chunk, pad_iso9797_method2, xor_bytes
from .keyblock_header import HEADER_LENGTH, Header, OptionalBlock
from .mac import derive_cmac_subkeys

AES_BLOCK_SIZE = 16
CHECK_VALUE_LENGTH = 8
KEY_SCHEME_TAG = b"S"
DEFAULT_TEST_AES_LMK = bytes.fromhex(
    "9B71333A13F9FAE72F9D0E2DAB4AD6784718012F9244033F3F26A2DE0C8AA11A"
)

_AUTH_LENGTH = 8
_MAC_FIELD_LENGTH = 2 * _AUTH_LENGTH
_USAGE_ENCRYPTION = 0x0000
_USAGE_AUTHENTICATION = 0x0001
_ALGORITHM_AES256 = 0x0004
_AES_KEY_SIZES = (16, 24, 32)


class KeyBlockError(ValueError):
    """Raised when a key block cannot be built, parsed or verified."""


def _check_aes_key(key: bytes) -> None:
    if len(key) not in _AES_KEY_SIZES:
        raise KeyBlockError(f"aes cipher init failed: invalid key size {len(key)}")


def _unhex(data: bytes, what: str) -> bytes:
    try:
        return binascii.unhexlify(data)
    except (binascii.Error, ValueError) as exc:
        raise KeyBlockError(f"invalid {what}: {exc}") from exc


def compute_aes_cmac(key: BytesLike, data: BytesLike) -> bytes:
    """Return the full 16-byte AES-CMAC of data; empty data is one padded block."""
    key, data = bytes(key), bytes(data)
    _check_aes_key(key)
    k1, k2 = derive_cmac_subkeys(key)
    if data and len(data) % AES_BLOCK_SIZE == 0:
        blocks = chunk(data, AES_BLOCK_SIZE)
        blocks[-1] = xor_bytes(blocks[-1], k1)
    else:
        blocks = chunk(pad_iso9797_method2(data, AES_BLOCK_SIZE), AES_BLOCK_SIZE)
        blocks[-1] = xor_bytes(blocks[-1], k2)

    cipher = AES.new(key, AES.MODE_ECB)
    state = bytes(AES_BLOCK_SIZE)
    for block in blocks:
        state = cipher.encrypt(xor_bytes(state, block))
    return state


def calculate_cmac_check_value(aes_key: BytesLike) -> bytes:
    """Return the 8-byte check value: the AES-CMAC of a zero block, truncated."""
    try:
        mac = compute_aes_cmac(aes_key, bytes(AES_BLOCK_SIZE))
    except KeyBlockError as exc:
        raise KeyBlockError(f"failed to compute CMAC for check value: {exc}") from exc
    return mac[:CHECK_VALUE_LENGTH]


def _derivation_block(counter: int, usage: int, key_bits: int) -> bytes:
    return bytes(
        [
            counter & 0xFF,
            usage >> 8,
            usage & 0xFF,
            0x00,
            _ALGORITHM_AES256 >> 8,
            _ALGORITHM_AES256 & 0xFF,
            key_bits >> 8,
            key_bits & 0xFF,
        ]
    ) + bytes(8)


def derive_encryption_and_mac_keys(lmk: BytesLike, key_len: int) -> tuple[bytes, bytes]:
    """Derive the key block encryption and authentication keys from the LMK."""
    if key_len < 0:
        raise KeyBlockError(f"invalid key length {key_len}")
    lmk = bytes(lmk)
    key_bits = (key_len * 8) & 0xFFFF
    iterations = ((key_bits + 127) & 0xFFFF) // 128

    def derive(usage: int) -> bytes:
        try:
            output = b"".join(
                compute_aes_cmac(lmk, _derivation_block(counter, usage, key_bits))
                for counter in range(1, iterations + 1)
            )
        except KeyBlockError as exc:
            raise KeyBlockError(f"aes-cmac derivation failed: {exc}") from exc
        return output[:key_len]

    return derive(_USAGE_ENCRYPTION), derive(_USAGE_AUTHENTICATION)


def wrap_key_block(
    lmk: BytesLike,
    header: Header,
    opt_blocks: Optional[Iterable[OptionalBlock]],
    key: BytesLike,
) -> bytes:
    """Encrypt a clear key under the LMK and return the 'S' key block."""
    lmk = bytes(lmk)
    try:
        kbek, kbak = derive_encryption_and_mac_keys(lmk, len(lmk))
    except KeyBlockError as exc:
        raise KeyBlockError(f"key derivation failed: {exc}") from exc

    key = bytes(key)
    key_bits = len(key) * 8
    plain = bytes([(key_bits >> 8) & 0xFF, key_bits & 0xFF]) + key
    padding = -len(plain) % AES_BLOCK_SIZE
    if padding:
        plain += secrets.token_bytes(padding)

    try:
        header_bytes = header.to_bytes()
        optional = b"".join(block.marshal() for block in opt_blocks or ())
    except ValueError as exc:
        raise KeyBlockError(str(exc)) from exc

    _check_aes_key(kbek)
    ciphertext = AES.new(kbek, AES.MODE_CBC, iv=header_bytes).encrypt(plain)
    hex_ciphertext = ciphertext.hex().upper().encode("ascii")

    auth = compute_aes_cmac(kbak, header_bytes + optional + hex_ciphertext)[:_AUTH_LENGTH]
    return (
        KEY_SCHEME_TAG
        + header_bytes
        + optional
        + hex_ciphertext
        + auth.hex().upper().encode("ascii")
    )


def unwrap_key_block(
    lmk: BytesLike, key_block: Union[str, BytesLike]
) -> tuple[Header, bytes]:
    """Verify and decrypt a key block, returning its header and the clear key."""
    if isinstance(key_block, str):
        key_block = key_block.encode("latin-1")
    key_block = bytes(key_block)
    if not key_block:
        raise KeyBlockError("key block is empty")

    body = key_block[1:]
    if len(body) < HEADER_LENGTH + 8:
        raise KeyBlockError("key block too short")

    try:
        header = Header.from_bytes(body[:HEADER_LENGTH])
    except ValueError as exc:
        raise KeyBlockError(f"invalid header: {exc}") from exc

    offset = HEADER_LENGTH
    for _ in range(header.optional_blocks):
        if offset + 3 > len(body):
            raise KeyBlockError("truncated optional block")
        block_end = offset + 3 + body[offset + 2]
        if block_end > len(body):
            raise KeyBlockError("optional block length out of range")
        offset = block_end

    if len(body) < offset + _MAC_FIELD_LENGTH:
        raise KeyBlockError("key block data too short for MAC")

    ciphertext = body[offset:-_MAC_FIELD_LENGTH]
    received_mac = body[-_MAC_FIELD_LENGTH:]

    lmk = bytes(lmk)
    kbek, kbak = derive_encryption_and_mac_keys(lmk, len(lmk))
    calculated = compute_aes_cmac(kbak, body[:offset] + ciphertext)[:_AUTH_LENGTH]
    if not hmac.compare_digest(_unhex(received_mac, "received MAC"), calculated):
        raise KeyBlockError("mac verification failed")

    try:
        iv = header.to_bytes()
    except ValueError as exc:
        raise KeyBlockError(str(exc)) from exc
    _check_aes_key(kbek)
    binary_ciphertext = _unhex(ciphertext, "ciphertext hex")
    if len(binary_ciphertext) % AES_BLOCK_SIZE:
        raise KeyBlockError(
            f"ciphertext length {len(binary_ciphertext)} is not a multiple of "
            f"the block size {AES_BLOCK_SIZE}"
        )
    plain = (
        AES.new(kbek, AES.MODE_CBC, iv=iv).decrypt(binary_ciphertext)
        if binary_ciphertext
        else b""
    )

    if len(plain) < 2:
        raise KeyBlockError("decrypted data too short")
    key_bits = (plain[0] << 8) | plain[1]
    expected = (key_bits + 7) // 8
    if expected > len(plain) - 2:
        raise KeyBlockError("invalid key length in data")
    return header, plain[2 : 2 + expected]