# hsmkit

Building blocks for payment hardware security module work, in Python on top
of pycryptodome.

## Modules

- `hsmkit.cryptoutils`: hex helpers (`raw2str`, `raw2b`, `xor_hex`, `hexify`),
  ISO/IEC 9797-1 padding methods 1 and 2, single and triple DES block and ECB
  operations, `key_cv` check values, DES key parity (`parity_of`,
  `check_key_parity`, `fix_key_parity`), Visa PVV (`get_visa_pvv`) and CVV
  (`get_visa_cvv`), random odd-parity DES keys (`generate_random_key`), key
  length helpers and `chunk`/`xor_bytes`.
- `hsmkit.derivedkey`: EMV ICC master key derivation with `derive_icc_key`,
  options `"A"`, `"B"` and `"C"`.
- `hsmkit.sessionkey`: EMV common session key derivation with
  `derive_session_key`.
- `hsmkit.mac`: `calculate_mac` (ISO/IEC 9797-1 MAC algorithms 1 and 3 over
  already padded data), `cmac` (truncated AES-CMAC) and `derive_cmac_subkeys`.
- `hsmkit.cryptograms`: Visa ARQC and ARPC for CVN 10, 18 and 22
  (`generate_arqc10`, `generate_arpc10`, `generate_arqc18`, `generate_arpc18`,
  `generate_arqc22`, `generate_arpc22`).
- `hsmkit.keyblock_header`: the 16-byte key block `Header` and TLV
  `OptionalBlock`.
- `hsmkit.keyblock`: wrapping and unwrapping keys under an AES LMK in
  Thales `S` key block format (`wrap_key_block`, `unwrap_key_block`), the
  key block key derivation, `compute_aes_cmac`, `calculate_cmac_check_value`
  and the test LMK `DEFAULT_TEST_AES_LMK`.
- `hsmkit.keys`: key generation with a 3-byte KCV (`generate_key`), splitting
  a key into XOR components (`split_key`), recombining them
  (`combine_components`, `validate_component_consistency`), `calculate_kcv`,
  `adjust_parity` and `validate_key_parity`.
- `hsmkit.bufferpool`: `BufferPool`, a thread-safe pool of reusable, zeroed
  `bytearray` buffers in size buckets from 64 to 4096 bytes.
- `hsmkit.logformat`: `init_logger` (JSON or human-readable lines on stdout),
  `log_request`, `log_response` and `format_data`, which shows bytes as text
  when they are printable ASCII or newlines and as hex otherwise.

## Installation

```
pip install .
```

Tests need the `test` extra:

```
pip install ".[test]"
pytest
```

## Examples

Derive an EMV session key:

```python
from hsmkit.sessionkey import derive_session_key

km = bytes.fromhex("0123456789ABCDEFFEDCBA9876543210")
r = bytes.fromhex("001C000000000000")
print(derive_session_key(km, r).hex().upper())
```

Wrap and unwrap a key under an LMK:

```python
from hsmkit.keyblock import DEFAULT_TEST_AES_LMK, unwrap_key_block, wrap_key_block
from hsmkit.keyblock_header import Header

header = Header(
    version="1",
    key_usage="B0",
    algorithm="A",
    mode_of_use="E",
    key_version_num="00",
    exportability="S",
    optional_blocks=0,
    key_context=0,
)
block = wrap_key_block(DEFAULT_TEST_AES_LMK, header, [], bytes(16))
restored_header, clear_key = unwrap_key_block(DEFAULT_TEST_AES_LMK, block)
assert clear_key == bytes(16)
```

Split a key into components and put it back together:

```python
from hsmkit.keys import combine_components, generate_key, split_key

key_hex, kcv = generate_key(128, True)
components, kcv_again = split_key(key_hex, 3)
assert combine_components(components) == key_hex
assert kcv == kcv_again
```

## Errors

Errors are raised as exceptions. Bad input raises `ValueError` or one of its
subclasses: `hsmkit.keys` raises `InvalidKeyLengthError`,
`InvalidHexStringError` and `InvalidComponentCountError` (all
`KeyMaterialError`), and `hsmkit.keyblock` raises `KeyBlockError` when a key
block cannot be built or parsed, or its MAC does not verify.

## What it does not do

hsmkit is a library of functions only. It has no network server that accepts
HSM commands, no command dispatcher, and no command-line program; a service
that answers HSM requests has to be built on top of it.