"""Fixed-point price encoding and Aleo literal helpers.

Prices travel as integers scaled by 10**18 (the same scale as the 18-decimal
"ether" unit, so the web3 unit helpers do the conversion exactly). Digits
beyond the 18th fractional place are truncated, never rounded.

.. code-block:: python

    >>> to_fixed("0.4213")
    421300000000000000
    >>> u128_literal(421300000000000000)
    '421300000000000000u128'
    >>> parse_integer_literal("3u32")
    3
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation

import bech32
from web3 import Web3

PRICE_DECIMALS = 18

# Aleo address human readable part
ADDRESS_HRP = "aleo"

BECH32M_CONST = 0x2BC830A3
ADDRESS_BYTES = 32

_INTEGER_LITERAL = re.compile(r"^(\d+)(?:u(?:8|16|32|64|128)|field)?$")


def to_fixed(value: float | str | Decimal | int) -> int:
    """Scale a decimal price to an 18-decimal fixed-point integer.

    :param value: Price as returned by an API (float, numeric string, Decimal).
    :returns: Price multiplied by 10**18, truncated toward zero.
    :raises ValueError: If the value is negative, NaN, infinite or not numeric.
    """
    try:
        # str() of a float is its shortest round-tripping repr
        number = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
    except InvalidOperation as e:
        raise ValueError(f"Not a number: {value!r}") from e

    if not number.is_finite():
        raise ValueError(f"Price must be finite, got {value!r}")
    if number < 0:
        raise ValueError(f"Price must not be negative, got {value!r}")

    # Normalize exponents away so web3 sees a plain positional decimal
    return int(Web3.to_wei(Decimal(format(number, "f")), "ether"))


def from_fixed(value: int) -> Decimal:
    """Convert an 18-decimal fixed-point integer back to a Decimal.

    :param value: Fixed-point price.
    :returns: Exact decimal value.
    """
    return Decimal(Web3.from_wei(value, "ether"))


def u128_literal(value: int) -> str:
    """Render an integer as an Aleo u128 literal.

    :param value: Non-negative integer below 2**128.
    :returns: Literal such as "1000u128".
    :raises ValueError: If the value does not fit in a u128.
    """
    if value < 0 or value >= 2**128:
        raise ValueError(f"Value {value} does not fit in u128")
    return f"{value}u128"


def field_literal(identifier: str | int) -> str:
    """Render a record or feed identifier as an Aleo field literal.

    :param identifier: Identifier, optionally already suffixed with "field".
    :returns: Literal such as "12field".
    """
    identifier = str(identifier).strip()
    if identifier.endswith("field"):
        return identifier
    return f"{identifier}field"


def parse_integer_literal(raw: str | int | None) -> int:
    """Parse an integer value read from a program mapping.

    The explorer returns mapping values as JSON strings carrying their Aleo
    type suffix (e.g. "5u32"), or null when the key is absent.

    :param raw: Raw mapping value.
    :returns: Parsed integer.
    :raises ValueError: If the value is missing or not an integer literal.
    """
    if raw is None:
        raise ValueError("Mapping value is empty")
    if isinstance(raw, int):
        return raw

    match = _INTEGER_LITERAL.match(raw.strip().strip('"'))
    if not match:
        raise ValueError(f"Not an integer literal: {raw!r}")
    return int(match.group(1))


def decode_address(address: str) -> tuple[str, list[int]] | tuple[None, None]:
    """Split a bech32m string into its hrp and 5-bit payload.

    Aleo encodes addresses with the bech32m checksum constant, which
    ``bech32.bech32_decode`` does not accept, so the checksum is verified here
    using the library's polymod.

    :param address: Encoded address.
    :returns: Tuple of (hrp, data words without checksum), or (None, None).
    """
    if address.lower() != address and address.upper() != address:
        return None, None
    address = address.lower()
    pos = address.rfind("1")
    if pos < 1 or pos + 7 > len(address):
        return None, None

    hrp = address[:pos]
    data = [bech32.CHARSET.find(c) for c in address[pos + 1:]]
    if -1 in data:
        return None, None

    if bech32.bech32_polymod(bech32.bech32_hrp_expand(hrp) + data) != BECH32M_CONST:
        return None, None
    return hrp, data[:-6]


def _address_bytes(address: str) -> bytes | None:
    hrp, data = decode_address(address)
    if hrp != ADDRESS_HRP or data is None:
        return None
    raw = bech32.convertbits(data, 5, 8, False)
    if raw is None or len(raw) != ADDRESS_BYTES:
        return None
    return bytes(raw)


def is_valid_address(address: str) -> bool:
    """Check that a string is a well-formed Aleo address."""
    return _address_bytes(address) is not None


def address_to_field(address: str) -> str:
    """Convert an Aleo address into its field literal representation.

    The 32-byte payload is read as a big-endian integer.

    :param address: Encoded address (e.g., "aleo1...").
    :returns: Field literal such as "1234...field".
    :raises ValueError: If the address is not a valid Aleo address.
    """
    raw = _address_bytes(address)
    if raw is None:
        raise ValueError(f"Invalid Aleo address: {address}")
    return f"{int.from_bytes(raw, 'big')}field"
