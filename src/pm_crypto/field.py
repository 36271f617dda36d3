"""Canonical encoding of external values into BN254 scalar-field elements.

Every function here is pure and reduces its result mod P as the final step.
Inputs that collide mod P are accepted; callers that care about aliasing
must validate magnitude before encoding.
"""

import hashlib
import re
from collections.abc import Sequence
from decimal import Decimal
from typing import TypeVar

import base58

from src.pm_common.amounts import to_micros
from src.pm_common.enums import Side
from src.pm_common.errors import EncodingError

BN254_PRIME = 21888242871839275222246405745257275088548364400416034343698204186575808495617

# Addresses are truncated to this many bytes so the packed integer stays
# below the 254-bit modulus. Changing either value invalidates every
# existing commitment, hence the explicit version.
ADDRESS_FIELD_BYTES = 31
ADDRESS_ENCODING_VERSION = 1

_FIELD_HEX_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")
_HEX_BODY_RE = re.compile(r"^[0-9a-fA-F]*$")

T = TypeVar("T")


def hex_to_field(value: str) -> int:
    """'0x...' or bare hex -> field element."""
    body = value[2:] if value[:2].lower() == "0x" else value
    if not body or not _HEX_BODY_RE.match(body):
        raise EncodingError(EncodingError.MALFORMED, f"not a hex string: {value!r}")
    return int(body, 16) % BN254_PRIME


def field_to_hex(value: int, byte_length: int = 32) -> str:
    """Field element -> '0x' + zero-padded lowercase hex."""
    if value < 0:
        raise EncodingError(EncodingError.NEGATIVE, f"{value}")
    return "0x" + format(value % BN254_PRIME, "x").zfill(byte_length * 2)


def is_field_hex(value: str) -> bool:
    """Structural check for a 32-byte 0x-prefixed public input."""
    return bool(_FIELD_HEX_RE.match(value))


def decimal_to_field(value: int | str) -> int:
    """Integer (or integer string) -> field element. Negatives are rejected."""
    if isinstance(value, str):
        text = value.strip()
        if not re.fullmatch(r"-?\d+", text):
            raise EncodingError(EncodingError.MALFORMED, f"not an integer: {value!r}")
        number = int(text)
    else:
        number = value
    if number < 0:
        raise EncodingError(EncodingError.NEGATIVE, f"{value}")
    return number % BN254_PRIME


def usdc_to_field(amount: Decimal | str | int) -> int:
    """Human USDC amount -> micros (floored) -> field element."""
    try:
        micros = to_micros(amount)
    except ValueError as e:
        raise EncodingError(EncodingError.MALFORMED, str(e)) from e
    return decimal_to_field(micros)


def shares_to_field(amount: Decimal | str | int) -> int:
    """Shares share the 6-decimal convention with USDC."""
    return usdc_to_field(amount)


def side_to_field(side: Side | str) -> int:
    """YES -> 1, NO -> 0."""
    try:
        return 1 if Side(side) is Side.YES else 0
    except ValueError as e:
        raise EncodingError(EncodingError.MALFORMED, f"unknown side: {side!r}") from e


def address_to_field(address: str) -> int:
    """Base58 public address -> first 31 bytes, big-endian packed.

    All-digit strings are treated as already-encoded decimal field values.
    """
    if not address:
        raise EncodingError(EncodingError.MALFORMED, "empty address")
    if address.isdigit():
        return decimal_to_field(address)
    try:
        raw = base58.b58decode(address)
    except ValueError as e:
        raise EncodingError(EncodingError.MALFORMED, f"invalid base58 address: {address!r}") from e
    if not raw:
        raise EncodingError(EncodingError.MALFORMED, f"empty address bytes: {address!r}")
    return int.from_bytes(raw[:ADDRESS_FIELD_BYTES], "big") % BN254_PRIME


def string_to_field(value: str) -> int:
    """Short identifier -> field element.

    Decimal strings pass through unchanged; anything else is SHA-256 hashed
    and reduced.
    """
    if value.isdigit():
        return decimal_to_field(value)
    digest = hashlib.sha256(value.encode("utf-8")).digest()
    return int.from_bytes(digest, "big") % BN254_PRIME


def market_id_to_field(market_id: str) -> int:
    return string_to_field(market_id)


def pad_list(values: Sequence[T], length: int, fill: T) -> list[T]:
    """Right-pad to ``length``; longer inputs are rejected, not truncated."""
    if len(values) > length:
        raise ValueError(f"{len(values)} values exceed target length {length}")
    return list(values) + [fill] * (length - len(values))
