"""Payment HSM cryptography: DES/AES key handling, EMV cryptograms, MACs, key blocks and helpers."""

__version__ = "0.1.0"