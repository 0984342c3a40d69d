"""Canonical field element encoding.

Every hashed, compared, or exported value is a 32-byte big-endian unsigned
integer rendered as ``0x`` followed by 64 lowercase hex digits.
"""

import re
from typing import Union

from zkt.exceptions import EncodingError

FIELD_BYTES = 32
FIELD_HEX_DIGITS = FIELD_BYTES * 2

# BN254 scalar field order used by the paired proving systems
FIELD_MODULUS = 21888242871839275222246405745257275088548364400416034343698204186575808495617

ZERO_FIELD = "0x" + "0" * FIELD_HEX_DIGITS

_HEX_RE = re.compile(r"^[0-9a-f]*$")

FieldLike = Union[int, str]


def to_field(value: FieldLike, strict: bool = False) -> str:
    """
    Normalize an integer or hex string to canonical field form.

    Strings with a ``0x`` prefix are read as hex in any letter case; bare
    strings are read as decimal digits. No modulus reduction is applied.

    Args:
        value: Non-negative integer, ``0x`` hex string, or decimal string
        strict: Reject values that are not below FIELD_MODULUS

    Returns:
        str: ``0x`` + 64 lowercase hex digits

    Raises:
        EncodingError: If the value is malformed, negative, or wider than 32 bytes
    """
    if isinstance(value, bool):
        raise EncodingError("Booleans are not field elements")

    if isinstance(value, int):
        if value < 0:
            raise EncodingError(f"Field elements are unsigned, got {value}")
        digits = format(value, "x")
    elif isinstance(value, str):
        if value[:2].lower() == "0x":
            digits = value[2:].lower()
            if not digits or not _HEX_RE.match(digits):
                raise EncodingError(f"Malformed hex string: {value!r}")
        elif value.isascii() and value.isdigit():
            digits = format(int(value), "x")
        else:
            raise EncodingError(f"Malformed numeric string: {value!r}")
    else:
        raise EncodingError(f"Expected int or hex string, got {type(value).__name__}")

    digits = digits.lstrip("0") or "0"
    if len(digits) > FIELD_HEX_DIGITS:
        raise EncodingError(f"Value exceeds {FIELD_BYTES} bytes")

    canonical = "0x" + digits.rjust(FIELD_HEX_DIGITS, "0")
    if strict and int(digits, 16) >= FIELD_MODULUS:
        raise EncodingError("Value is not below the field modulus")
    return canonical


def field_to_int(value: FieldLike) -> int:
    """Decode a field element (or anything ``to_field`` accepts) to an integer."""
    return int(to_field(value), 16)


def is_field(value: object) -> bool:
    """Return True when ``value`` is already in canonical field form."""
    return (
        isinstance(value, str)
        and len(value) == FIELD_HEX_DIGITS + 2
        and value.startswith("0x")
        and bool(_HEX_RE.match(value[2:]))
    )


def fields_equal(a: FieldLike, b: FieldLike) -> bool:
    """Compare two values by their canonical field strings."""
    return to_field(a) == to_field(b)


def field_to_bytes(value: FieldLike) -> bytes:
    """Return the 32-byte big-endian representation of a field element."""
    return bytes.fromhex(to_field(value)[2:])


def bytes_to_field(data: bytes) -> str:
    """Encode up to 32 big-endian bytes as a field element."""
    if len(data) > FIELD_BYTES:
        raise EncodingError(f"Expected at most {FIELD_BYTES} bytes, got {len(data)}")
    return to_field("0x" + (data.hex() or "0"))
