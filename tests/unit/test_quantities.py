"""
Tests for quantity, price and text validation helpers.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from inventory_kernel.db.types import (
    MAX_QUANTITY,
    MAX_UNIT_PRICE,
    round_money,
    to_quantity,
    to_text,
    to_unit_price,
    to_utc,
    to_uuid,
)
from inventory_kernel.exceptions import InvalidInputError, InvalidQuantityError


class TestToQuantity:

    @pytest.mark.parametrize(
        "raw, expected",
        [
            (Decimal("5"), Decimal("5")),
            ("2.5", Decimal("2.5")),
            (3, Decimal("3")),
            (0.1, Decimal("0.1")),
            ("0.001", Decimal("0.001")),
        ],
    )
    def test_accepts_positive_numbers(self, raw, expected):
        assert to_quantity(raw) == expected

    @pytest.mark.parametrize(
        "raw",
        [0, "-1", Decimal("0"), "NaN", "Infinity", "ten", None, True, "1.0001"],
    )
    def test_rejects_invalid(self, raw):
        with pytest.raises(InvalidQuantityError) as exc_info:
            to_quantity(raw)
        assert exc_info.value.code == "INVALID_QUANTITY"

    def test_too_many_decimals_names_the_limit(self):
        with pytest.raises(InvalidQuantityError, match="3 decimal places"):
            to_quantity("0.0005")

    def test_upper_bound(self):
        assert to_quantity("9999999.999") == MAX_QUANTITY
        with pytest.raises(InvalidQuantityError, match="at most 9999999.999"):
            to_quantity("10000000")
        with pytest.raises(InvalidQuantityError):
            to_quantity(Decimal("1E+30"))


class TestToUnitPrice:

    def test_zero_is_allowed(self):
        assert to_unit_price("0") == Decimal("0")

    def test_rounds_to_storage_precision(self):
        assert to_unit_price("1.0000000004") == Decimal("1.000000000")

    @pytest.mark.parametrize("raw", ["-0.01", "NaN", "abc", None])
    def test_rejects_invalid(self, raw):
        with pytest.raises(InvalidInputError) as exc_info:
            to_unit_price(raw)
        assert exc_info.value.field == "unit_price"

    def test_upper_bound(self):
        assert to_unit_price("99999999.99") == MAX_UNIT_PRICE
        with pytest.raises(InvalidInputError, match="at most"):
            to_unit_price("100000000")


class TestRoundMoney:

    def test_half_up(self):
        assert round_money(Decimal("2.345")) == Decimal("2.35")
        assert round_money(Decimal("2.344")) == Decimal("2.34")


class TestToText:

    def test_trims(self):
        assert to_text("name", "  Flour  ", 100) == "Flour"

    def test_blank_required_fails(self):
        with pytest.raises(InvalidInputError, match="name"):
            to_text("name", "   ", 100)

    def test_blank_optional_is_none(self):
        assert to_text("notes", "  ", 500, required=False) is None
        assert to_text("notes", None, 500, required=False) is None

    def test_length_limit(self):
        assert to_text("unit", "x" * 20, 20) == "x" * 20
        with pytest.raises(InvalidInputError):
            to_text("unit", "x" * 21, 20)


class TestToUtcAndUuid:

    def test_naive_is_taken_as_utc(self):
        naive = datetime(2024, 3, 1, 8, 30)
        assert to_utc("occurred_at", naive) == naive.replace(tzinfo=timezone.utc)

    def test_aware_is_converted(self):
        plus_two = timezone(timedelta(hours=2))
        moment = datetime(2024, 3, 1, 10, 0, tzinfo=plus_two)
        converted = to_utc("occurred_at", moment)
        assert converted.tzinfo == timezone.utc
        assert converted.hour == 8

    def test_non_datetime_rejected(self):
        with pytest.raises(InvalidInputError):
            to_utc("occurred_at", "2024-03-01")

    def test_uuid_string_round_trips(self):
        value = uuid4()
        assert to_uuid("owner_id", str(value)) == value
        with pytest.raises(InvalidInputError):
            to_uuid("owner_id", "not-a-uuid")
