"""Unit tests for fixed-point and literal helpers."""

from decimal import Decimal

import bech32
import pytest

from feeder.src.fixed_point import (
    address_to_field,
    decode_address,
    field_literal,
    from_fixed,
    is_valid_address,
    parse_integer_literal,
    to_fixed,
    u128_literal,
)


class TestToFixed:
    """Test decimal to fixed-point conversion."""

    def test_integer_and_fraction(self) -> None:
        assert to_fixed("1") == 10**18
        assert to_fixed("0.4213") == 421300000000000000
        assert to_fixed(Decimal("100.02")) == 100020000000000000000

    def test_float_uses_shortest_repr(self) -> None:
        """0.1 as a float must not leak binary noise into the integer."""
        assert to_fixed(0.1) == 100000000000000000

    def test_scientific_notation(self) -> None:
        assert to_fixed("1E-18") == 1
        assert to_fixed(Decimal("2.5E+3")) == 2500 * 10**18

    def test_truncates_beyond_18_digits(self) -> None:
        assert to_fixed("0.0000000000000000019") == 1
        assert to_fixed("1.9999999999999999999") == 1999999999999999999

    def test_zero(self) -> None:
        assert to_fixed(0) == 0

    @pytest.mark.parametrize("value", ["-1", "NaN", "Infinity", "abc", float("inf")])
    def test_invalid_values(self, value) -> None:
        with pytest.raises(ValueError):
            to_fixed(value)


class TestFromFixed:
    """Test fixed-point to decimal conversion."""

    @pytest.mark.parametrize(
        "text",
        ["0.000000000000000001", "1", "0.4213", "123456.123456789012345678"],
    )
    def test_round_trip(self, text: str) -> None:
        assert from_fixed(to_fixed(text)) == Decimal(text)

    def test_exact_value(self) -> None:
        assert from_fixed(1500000000000000000) == Decimal("1.5")


class TestLiterals:
    """Test Aleo literal rendering and parsing."""

    def test_u128_literal(self) -> None:
        assert u128_literal(1000) == "1000u128"
        assert u128_literal(0) == "0u128"

    def test_u128_out_of_range(self) -> None:
        with pytest.raises(ValueError, match="does not fit in u128"):
            u128_literal(-1)
        with pytest.raises(ValueError, match="does not fit in u128"):
            u128_literal(2**128)

    def test_field_literal(self) -> None:
        assert field_literal("12") == "12field"
        assert field_literal(7) == "7field"
        assert field_literal("12field") == "12field"

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("5u32", 5),
            ('"5u32"', 5),
            ("1000u128", 1000),
            ("42", 42),
            ("3field", 3),
            (17, 17),
        ],
    )
    def test_parse_integer_literal(self, raw, expected: int) -> None:
        assert parse_integer_literal(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "abc", "5u7", "-3u32", "aleo1xyz"])
    def test_parse_integer_literal_invalid(self, raw) -> None:
        with pytest.raises(ValueError):
            parse_integer_literal(raw)


class TestAddresses:
    """Test bech32m address handling."""

    def test_decode_valid_address(self, make_address) -> None:
        address = make_address(7)
        hrp, data = decode_address(address)
        assert hrp == "aleo"
        assert data is not None
        assert len(data) == 52
        assert len(address) == 63

    def test_is_valid_address(self, make_address) -> None:
        assert is_valid_address(make_address(1))
        assert not is_valid_address("aleo1invalid")
        assert not is_valid_address("")

    def test_checksum_mismatch(self, make_address) -> None:
        address = make_address(1)
        tampered = address[:-1] + ("q" if address[-1] != "q" else "p")
        assert not is_valid_address(tampered)

    def test_wrong_hrp(self, make_address) -> None:
        address = make_address(bytes(32), hrp="rofl")
        assert decode_address(address)[0] == "rofl"
        assert not is_valid_address(address)

    def test_bech32_checksum_rejected(self) -> None:
        data = bech32.convertbits(bytes(32), 8, 5, True)
        address = bech32.bech32_encode("aleo", data)
        assert decode_address(address) == (None, None)
        assert not is_valid_address(address)

    @pytest.mark.parametrize("size", [20, 31, 33])
    def test_payload_must_be_32_bytes(self, make_address, size) -> None:
        address = make_address(bytes([1]) * size)
        assert decode_address(address)[0] == "aleo"
        assert not is_valid_address(address)
        with pytest.raises(ValueError, match="Invalid Aleo address"):
            address_to_field(address)

    def test_address_to_field(self, make_address) -> None:
        payload = bytes(range(1, 33))
        address = make_address(payload)
        assert address_to_field(address) == f"{int.from_bytes(payload, 'big')}field"

    def test_address_to_field_zero_payload(self, make_address) -> None:
        assert address_to_field(make_address(bytes(32))) == "0field"

    def test_address_to_field_invalid(self) -> None:
        with pytest.raises(ValueError, match="Invalid Aleo address"):
            address_to_field("aleo1notanaddress")
