"""Thales 'S' key block header and optional header blocks."""

from __future__ import annotations

from dataclasses import dataclass

from .cryptoutils import BytesLike

HEADER_LENGTH = 16
_ZERO = ord("0")
_LENGTH_PLACEHOLDER = b"0000"


def _char_byte(name: str, value: str) -> bytes:
    if len(value) != 1:
        raise ValueError(f"{name} must be a single character, got {value!r}")
    try:
        return value.encode("latin-1")
    except UnicodeEncodeError as exc:
        raise ValueError(f"{name} must be a single byte character") from exc


def _two_digits(name: str, value: int) -> bytes:
    if not 0 <= value <= 0xFF:
        raise ValueError(f"{name} must be between 0 and 255, got {value}")
    return bytes([_ZERO + value // 10, _ZERO + value % 10])


def _parse_two_digits(high: int, low: int) -> int:
    return ((high - _ZERO) * 10 + (low - _ZERO)) & 0xFF


@dataclass(frozen=True)
class Header:
    """The 16-byte key block header.

    Single-character fields are one-character strings; ``optional_blocks`` and
    ``key_context`` are written as two ASCII digits.
    """

    version: str
    key_usage: str
    algorithm: str
    mode_of_use: str
    key_version_num: str
    exportability: str
    optional_blocks: int = 0
    key_context: int = 0

    def to_bytes(self) -> bytes:
        """Serialise the header; the key block length field is always '0000'."""
        if len(self.key_usage) != 2 or len(self.key_version_num) != 2:
            raise ValueError("key usage and KeyVersionNum must be 2 characters each")
        try:
            usage = self.key_usage.encode("latin-1")
            key_version = self.key_version_num.encode("latin-1")
        except UnicodeEncodeError as exc:
            raise ValueError("header fields must be single byte characters") from exc
        return b"".join(
            (
                _char_byte("version", self.version),
                _LENGTH_PLACEHOLDER,
                usage,
                _char_byte("algorithm", self.algorithm),
                _char_byte("mode_of_use", self.mode_of_use),
                key_version,
                _char_byte("exportability", self.exportability),
                _two_digits("optional_blocks", self.optional_blocks),
                _two_digits("key_context", self.key_context),
            )
        )

    @classmethod
    def from_bytes(cls, data: BytesLike) -> "Header":
        """Parse a 16-byte header; the key block length field is ignored."""
        data = bytes(data)
        if len(data) != HEADER_LENGTH:
            raise ValueError(f"header must be 16 bytes, got {len(data)}")
        text = data.decode("latin-1")
        return cls(
            version=text[0],
            key_usage=text[5:7],
            algorithm=text[7],
            mode_of_use=text[8],
            key_version_num=text[9:11],
            exportability=text[11],
            optional_blocks=_parse_two_digits(data[12], data[13]),
            key_context=_parse_two_digits(data[14], data[15]),
        )


@dataclass(frozen=True)
class OptionalBlock:
    """A TLV optional header block: two-character tag, one length byte, value."""

    tag: str
    value: bytes = b""

    def marshal(self) -> bytes:
        """Return the TLV encoding of the block."""
        value = bytes(self.value)
        if len(value) > 0xFF:
            raise ValueError(f"optional block value too long: {len(value)} bytes")
        return self.tag.encode("latin-1") + bytes([len(value)]) + value