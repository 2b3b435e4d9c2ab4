"""Visa application cryptograms (ARQC) and response cryptograms (ARPC)."""

from __future__ import annotations

from typing import Optional

from .cryptoutils import (
    DES_BLOCK_SIZE,
    BytesLike,
    pad_iso9797_method1,
    pad_iso9797_method2,
    xor_bytes,
)
from .derivedkey import derive_icc_key
from .mac import calculate_mac
from .sessionkey import derive_session_key


def _session_key(iss_mk_ac: BytesLike, pan: str, psn: str, atc: BytesLike) -> bytes:
    icc_mk_ac = derive_icc_key(iss_mk_ac, pan, psn, "B")
    return derive_session_key(icc_mk_ac, bytes(atc) + bytes(6))


def generate_arqc10(iss_mk_ac: BytesLike, data: BytesLike, pan: str, psn: str) -> bytes:
    """Return the 8-byte CVN 10 ARQC over data."""
    icc_mk_ac = derive_icc_key(iss_mk_ac, pan, psn, "A")
    padded = pad_iso9797_method1(data, DES_BLOCK_SIZE)
    return calculate_mac(padded, icc_mk_ac, 8, 3)[-DES_BLOCK_SIZE:]


def generate_arpc10(
    iss_mk_ac: BytesLike, arqc: BytesLike, arpc_rc: BytesLike, pan: str, psn: str
) -> bytes:
    """Return the 8-byte CVN 10 ARPC (method 1) for the ARQC and response code."""
    icc_mk_ac = derive_icc_key(iss_mk_ac, pan, psn, "A")
    msg = xor_bytes(bytes(arpc_rc) + bytes(6), arqc)
    return calculate_mac(msg, icc_mk_ac, DES_BLOCK_SIZE, 3)


def generate_arqc18(
    iss_mk_ac: BytesLike, data: BytesLike, atc: BytesLike, pan: str, psn: str
) -> bytes:
    """Return the 8-byte CVN 18 ARQC over data."""
    sk_ac = _session_key(iss_mk_ac, pan, psn, atc)
    padded = pad_iso9797_method2(data, DES_BLOCK_SIZE)
    return calculate_mac(padded, sk_ac, DES_BLOCK_SIZE, 3)[-DES_BLOCK_SIZE:]


def generate_arpc18(
    iss_mk_ac: BytesLike,
    pan: str,
    psn: str,
    atc: BytesLike,
    arqc: BytesLike,
    csu: BytesLike,
    prop_auth_data: Optional[BytesLike] = None,
) -> bytes:
    """Return the 4-byte CVN 18 ARPC (method 2)."""
    sk_ac = _session_key(iss_mk_ac, pan, psn, atc)
    msg = bytes(arqc) + bytes(csu) + bytes(prop_auth_data or b"")
    padded = pad_iso9797_method2(msg, DES_BLOCK_SIZE)
    return calculate_mac(padded, sk_ac, DES_BLOCK_SIZE, 3)[:4]


def generate_arqc22(
    iss_mk_ac: BytesLike, data: BytesLike, atc: BytesLike, pan: str, psn: str
) -> bytes:
    """Return the 8-byte CVN 22 ARQC, computed as for CVN 18."""
    return generate_arqc18(iss_mk_ac, data, atc, pan, psn)


def generate_arpc22(
    iss_mk_ac: BytesLike,
    pan: str,
    psn: str,
    atc: BytesLike,
    arqc: BytesLike,
    csu: BytesLike,
    prop_auth_data: Optional[BytesLike] = None,
) -> bytes:
    """Return the 4-byte CVN 22 ARPC, computed as for CVN 18."""
    return generate_arpc18(iss_mk_ac, pan, psn, atc, arqc, csu, prop_auth_data)