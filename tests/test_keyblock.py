import pytest

from hsmkit.keyblock import (
    DEFAULT_TEST_AES_LMK,
    KeyBlockError,
    calculate_cmac_check_value,
    compute_aes_cmac,
    derive_encryption_and_mac_keys,
    unwrap_key_block,
    wrap_key_block,
)
from hsmkit.keyblock_header import Header, OptionalBlock
from hsmkit.mac import cmac

TEST_LMK = bytes.fromhex(
    "9B71333A13F9FAE72F9D0E2DAB4AD6784718012F9244033F3F26A2DE0C8AA11A"
)


def _header(**changes):
    fields = dict(
        version="D",
        key_usage="B0",
        algorithm="A",
        mode_of_use="E",
        key_version_num="01",
        exportability="E",
        optional_blocks=0,
        key_context=0,
    )
    fields.update(changes)
    return Header(**fields)


def _thales_header(**changes):
    fields = dict(
        version="1",
        key_usage="B0",
        algorithm="A",
        mode_of_use="E",
        key_version_num="00",
        exportability="S",
        key_context=ord("0"),
    )
    fields.update(changes)
    return Header(**fields)


# --- check value and CMAC ---------------------------------------------------


def test_check_value_default_lmk():
    assert calculate_cmac_check_value(DEFAULT_TEST_AES_LMK) == bytes.fromhex(
        "DB3FB663EE8D2B66"
    )


@pytest.mark.parametrize(
    "key",
    [b"", bytes(range(1, 9)), bytes(range(1, 11))],
)
def test_check_value_invalid_key(key):
    with pytest.raises(
        KeyBlockError,
        match=rf"failed to compute CMAC for check value: .*invalid key size {len(key)}$",
    ):
        calculate_cmac_check_value(key)


def test_compute_aes_cmac_empty_message_vector():
    key = bytes.fromhex("2b7e151628aed2a6abf7158809cf4f3c")
    assert compute_aes_cmac(key, b"") == bytes.fromhex(
        "bb1d6929e95937287fa37d129b756746"
    )


def test_compute_aes_cmac_one_block_vector():
    key = bytes.fromhex("2b7e151628aed2a6abf7158809cf4f3c")
    msg = bytes.fromhex("6bc1bee22e409f96e93d7e117393172a")
    assert compute_aes_cmac(key, msg) == bytes.fromhex(
        "070a16b46b4d4144f79bdd9dd04a287c"
    )


@pytest.mark.parametrize("size", [1, 15, 16, 17, 32, 40])
def test_compute_aes_cmac_agrees_with_truncated_cmac(size):
    msg = bytes(range(size))
    full = compute_aes_cmac(TEST_LMK, msg)
    assert len(full) == 16
    assert full[:8] == cmac(msg, TEST_LMK, 8)


def test_derived_keys_lengths_and_separation():
    kbek, kbak = derive_encryption_and_mac_keys(TEST_LMK, len(TEST_LMK))
    assert len(kbek) == 32
    assert len(kbak) == 32
    assert kbek != kbak
    assert derive_encryption_and_mac_keys(TEST_LMK, 32) == (kbek, kbak)


def test_derived_keys_for_aes128_length():
    kbek, kbak = derive_encryption_and_mac_keys(TEST_LMK, 16)
    assert (len(kbek), len(kbak)) == (16, 16)


def test_derived_keys_invalid_lmk():
    with pytest.raises(KeyBlockError, match="aes-cmac derivation failed"):
        derive_encryption_and_mac_keys(bytes(10), 10)


# --- wrap and unwrap ---------------------------------------------------------


def test_round_trip_default_header():
    header = _header()
    plain_key = bytes([0x01, 0x02, 0x03, 0x04, 0x05])
    block = wrap_key_block(DEFAULT_TEST_AES_LMK, header, None, plain_key)
    got_header, got_key = unwrap_key_block(DEFAULT_TEST_AES_LMK, block)
    assert got_header == header
    assert got_key == plain_key


def test_round_trip_with_optional_block():
    header = _header(
        key_usage="B1", mode_of_use="B", key_version_num="02",
        exportability="N", optional_blocks=1,
    )
    opt = OptionalBlock(tag="0A", value=bytes([0xAA, 0xBB]))
    plain_key = bytes([0x10, 0x20, 0x30])
    block = wrap_key_block(DEFAULT_TEST_AES_LMK, header, [opt], plain_key)
    got_header, got_key = unwrap_key_block(DEFAULT_TEST_AES_LMK, block)
    assert got_header == header
    assert got_key == plain_key


def test_tampered_block_fails():
    block = bytearray(
        wrap_key_block(DEFAULT_TEST_AES_LMK, _header(), None, bytes([0xAA, 0xBB]))
    )
    block[len(block) // 2] ^= 0xFF
    with pytest.raises(KeyBlockError):
        unwrap_key_block(DEFAULT_TEST_AES_LMK, bytes(block))


def test_format_s_length():
    header = _header(version="S")
    plain_key = bytes([0x01, 0x02, 0x03, 0x04, 0x05])
    block = wrap_key_block(DEFAULT_TEST_AES_LMK, header, None, plain_key)
    assert len(block) == 1 + 16 + (16 + 8) * 2
    got_header, got_key = unwrap_key_block(DEFAULT_TEST_AES_LMK, block)
    assert got_header == header
    assert got_key == plain_key


@pytest.mark.parametrize("size", [8, 16, 24, 32])
def test_different_key_sizes_default_header(size):
    header = _header()
    plain_key = bytes(range(size))
    block = wrap_key_block(DEFAULT_TEST_AES_LMK, header, None, plain_key)
    got_header, got_key = unwrap_key_block(DEFAULT_TEST_AES_LMK, block)
    assert got_header == header
    assert got_key == plain_key


@pytest.mark.parametrize("size", [8, 16, 24, 32, 40])
def test_different_key_sizes_thales_header(size):
    plain_key = bytes(i % 256 for i in range(size))
    block = wrap_key_block(TEST_LMK, _thales_header(), None, plain_key)
    _, got_key = unwrap_key_block(TEST_LMK, block)
    assert got_key == plain_key


def test_valid_header_wraps():
    block = wrap_key_block(DEFAULT_TEST_AES_LMK, _header(), None, bytes([1, 2, 3]))
    assert unwrap_key_block(DEFAULT_TEST_AES_LMK, block)[1] == bytes([1, 2, 3])


@pytest.mark.parametrize(
    "changes", [{"key_usage": "B"}, {"key_version_num": "1"}, {"key_usage": ""}]
)
def test_invalid_header_rejected(changes):
    with pytest.raises(KeyBlockError, match="2 characters"):
        wrap_key_block(DEFAULT_TEST_AES_LMK, _header(**changes), None, bytes([1, 2, 3]))


@pytest.mark.parametrize(
    "block",
    [
        bytes(15),
        b"\xff" * 32,
        bytes(16) + b"\x01",
        b"",
        b"short",
    ],
)
def test_unwrap_error_conditions(block):
    with pytest.raises(KeyBlockError):
        unwrap_key_block(DEFAULT_TEST_AES_LMK, block)


def test_unwrap_empty_block_message():
    with pytest.raises(KeyBlockError, match="key block is empty"):
        unwrap_key_block(TEST_LMK, b"")


def test_thales_key_block_format():
    header = Header("1", "B0", "A", "E", "00", "S", 0, 0)
    plain_key = bytes([0x01, 0x23, 0x45, 0x67, 0x89, 0xAB, 0xCD, 0xEF])
    block = wrap_key_block(DEFAULT_TEST_AES_LMK, header, None, plain_key)
    assert block[:1] == b"S"
    header_ascii = block[1:17]
    assert len(header_ascii) == 16
    assert header_ascii[:1] == b"1"
    assert header_ascii[5:7] == b"B0"
    got_header, got_key = unwrap_key_block(DEFAULT_TEST_AES_LMK, block)
    assert got_header == header
    assert got_key == plain_key


@pytest.mark.parametrize(
    "key, usage, algorithm",
    [
        (b"0123456789ABCDEF", "B0", "A"),
        (b"0123456789ABCDEF01234567", "B1", "A"),
        (b"0123456789ABCDEF0123456789ABCDEF", "B2", "A"),
        (b"0123456789ABCDEF01234567", "P0", "T"),
    ],
)
def test_wrap_unwrap_thales_headers(key, usage, algorithm):
    header = _thales_header(key_usage=usage, algorithm=algorithm)
    block = wrap_key_block(TEST_LMK, header, None, key)
    assert len(block) > 0
    got_header, got_key = unwrap_key_block(TEST_LMK, block)
    assert got_key == key
    assert got_header.version == header.version
    assert got_header.key_usage == header.key_usage
    assert got_header.algorithm == header.algorithm
    assert got_header.mode_of_use == header.mode_of_use
    assert got_header == header


def test_known_key_block():
    block = b"S10064B0AE00S000079EAFA5D0F6575FE50C1BD5BB847E4F699B7B5E878D52956"
    header, clear_key = unwrap_key_block(TEST_LMK, block)
    assert clear_key == bytes.fromhex("0123456789ABCDEF")
    assert header.version == "1"
    assert header.key_usage == "B0"
    assert header.algorithm == "A"
    assert header.mode_of_use == "E"
    assert header.exportability == "S"


def test_known_key_block_as_text():
    block = "S10064B0AE00S000079EAFA5D0F6575FE50C1BD5BB847E4F699B7B5E878D52956"
    assert unwrap_key_block(TEST_LMK, block)[1] == bytes.fromhex("0123456789ABCDEF")


def test_wrap_key_block_format():
    block = wrap_key_block(TEST_LMK, _thales_header(), None, b"0123456789ABCDEF")
    assert block[:1] == b"S"
    assert len(block) >= 60


def test_mac_validation_fails_on_corrupted_mac():
    block = wrap_key_block(TEST_LMK, _thales_header(), None, b"0123456789ABCDEF")
    assert unwrap_key_block(TEST_LMK, block)[1] == b"0123456789ABCDEF"
    replacement = b"1" if block[-1:] == b"0" else b"0"
    corrupted = block[:-1] + replacement
    with pytest.raises(KeyBlockError, match="^mac verification failed$"):
        unwrap_key_block(TEST_LMK, corrupted)


def test_empty_key_round_trip():
    block = wrap_key_block(TEST_LMK, _thales_header(), None, b"")
    assert unwrap_key_block(TEST_LMK, block)[1] == b""


def test_wrong_lmk_fails_verification():
    block = wrap_key_block(TEST_LMK, _thales_header(), None, b"0123456789ABCDEF")
    other_lmk = bytes(reversed(TEST_LMK))
    with pytest.raises(KeyBlockError, match="mac verification failed"):
        unwrap_key_block(other_lmk, block)


def test_round_trip_with_aes128_lmk():
    lmk = TEST_LMK[:16]
    key = bytes(range(16))
    block = wrap_key_block(lmk, _thales_header(), None, key)
    assert unwrap_key_block(lmk, block) == (_thales_header(), key)


@pytest.mark.parametrize("lmk", [b"", bytes(10)])
def test_wrap_with_invalid_lmk(lmk):
    with pytest.raises(KeyBlockError):
        wrap_key_block(lmk, _thales_header(), None, bytes(16))


def test_wrap_is_randomised_but_unwraps_to_same_key():
    key = bytes([0x01, 0x02, 0x03])
    first = wrap_key_block(TEST_LMK, _thales_header(), None, key)
    second = wrap_key_block(TEST_LMK, _thales_header(), None, key)
    assert first[:17] == second[:17]
    assert unwrap_key_block(TEST_LMK, first)[1] == key
    assert unwrap_key_block(TEST_LMK, second)[1] == key