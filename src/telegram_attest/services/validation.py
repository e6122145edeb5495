"""Wallet address and identity data validation.

Obyte addresses are 160-bit "checksummed hashes" encoded as 32 base32
characters. 32 of the 160 bits are checksum bits spread over the clean data at
offsets taken from the digits of pi; the checksum itself is four bytes of the
SHA-256 digest of the 128 clean bits.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
from collections.abc import Mapping
from typing import Any, Protocol

_PI_DIGITS = "14159265358979323846264338327950288419716939937510"
_CHASH160_BITS = 160
_CHASH160_CLEAN_BYTES = 16
_ADDRESS_LENGTH = 32
_CHECKSUM_BYTE_POSITIONS = (5, 13, 21, 29)


def _calc_offsets(length: int) -> tuple[int, ...]:
    offsets: list[int] = []
    offset = 0
    for digit in _PI_DIGITS:
        relative = int(digit)
        if relative == 0:
            continue
        offset += relative
        if offset >= length:
            break
        offsets.append(offset)
    if len(offsets) != 32:
        raise ValueError("wrong number of checksum bits")
    return tuple(offsets)


_OFFSETS_160 = _calc_offsets(_CHASH160_BITS)


def _to_bits(data: bytes) -> str:
    return "".join(f"{byte:08b}" for byte in data)


def _from_bits(bits: str) -> bytes:
    return int(bits, 2).to_bytes(len(bits) // 8, "big")


def _checksum(clean_data: bytes) -> bytes:
    digest = hashlib.sha256(clean_data).digest()
    return bytes(digest[i] for i in _CHECKSUM_BYTE_POSITIONS)


def _separate(bits: str) -> tuple[str, str]:
    frags: list[str] = []
    checksum_bits: list[str] = []
    start = 0
    for offset in _OFFSETS_160:
        frags.append(bits[start:offset])
        checksum_bits.append(bits[offset])
        start = offset + 1
    frags.append(bits[start:])
    return "".join(frags), "".join(checksum_bits)


def encode_chash160(clean_data: bytes) -> str:
    """Return the address whose clean data is the given 16 bytes."""
    if len(clean_data) != _CHASH160_CLEAN_BYTES:
        raise ValueError("chash160 clean data must be 16 bytes")
    clean_bits = _to_bits(clean_data)
    checksum_bits = _to_bits(_checksum(clean_data))
    frags: list[str] = []
    start = 0
    for index, offset in enumerate(_OFFSETS_160):
        end = offset - index
        frags.append(clean_bits[start:end])
        frags.append(checksum_bits[index])
        start = end
    frags.append(clean_bits[start:])
    return base64.b32encode(_from_bits("".join(frags))).decode("ascii")


def is_chash160_valid(encoded: str) -> bool:
    """Return True if ``encoded`` is a base32 chash160 with a matching checksum."""
    if len(encoded) != _ADDRESS_LENGTH:
        return False
    try:
        raw = base64.b32decode(encoded)
    except (binascii.Error, ValueError):
        return False
    clean_bits, checksum_bits = _separate(_to_bits(raw))
    return _from_bits(checksum_bits) == _checksum(_from_bits(clean_bits))


class AddressValidator(Protocol):
    """Replaceable strategy deciding whether a string is a wallet address."""

    def is_wallet_address(self, value: Any) -> bool: ...


class ObyteAddressValidator:
    """Accepts upper-case base32 chash160 addresses."""

    def is_wallet_address(self, value: Any) -> bool:
        if not isinstance(value, str):
            return False
        if value != value.upper():
            return False
        return is_chash160_valid(value)


def is_identity_data(data: Any) -> bool:
    """Return True if ``data`` looks like identity data taken from a verify link.

    The mapping must be non-empty, map non-empty string keys to string values,
    and carry a non-empty ``userId``.
    """
    if not isinstance(data, Mapping) or not data:
        return False
    for key, value in data.items():
        if not isinstance(key, str) or not key or not isinstance(value, str):
            return False
    return bool(data.get("userId"))


default_validator = ObyteAddressValidator()
