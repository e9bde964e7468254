import random
from decimal import Decimal

import pytest

from courtside.money import (
    allocate,
    format_amount,
    format_currency,
    from_cents,
    multiply,
    parse_currency,
    split_equal,
    to_cents,
)
from courtside.validation import ValidationError, coerce_cents, coerce_quantity


def test_to_cents_and_back():
    assert to_cents("280.00") == 28000
    assert to_cents(Decimal("0.01")) == 1
    assert to_cents(12) == 1200
    assert from_cents(28050) == Decimal("280.50")


def test_to_cents_rejects_sub_minor_precision():
    with pytest.raises(ValidationError):
        to_cents("1.005")
    with pytest.raises(ValidationError):
        to_cents("abc")


def test_formatting():
    assert format_amount(28000) == "280.00"
    assert format_currency(123450) == "1 234,50 Kč"
    assert format_currency(-250) == "-2,50 Kč"
    assert format_currency(100, "EUR") == "1,00 €"


def test_parse_currency_reads_czech_display_format():
    assert parse_currency("1 234,50 Kč") == 123450
    assert parse_currency("280.5") == 28050
    assert parse_currency("") == 0


def test_multiply_rounds_half_up():
    assert multiply(50000, Decimal("1.5")) == 75000
    assert multiply(333, Decimal("0.5")) == 167
    assert multiply(1999, 3) == 5997


def test_split_equal_remainder_goes_to_first_parts():
    assert split_equal(300, 2) == [150, 150]
    assert split_equal(301, 2) == [151, 150]
    assert split_equal(100, 3) == [34, 33, 33]
    with pytest.raises(ValidationError):
        split_equal(100, 0)


def test_split_equal_always_sums_to_total():
    rng = random.Random(20261019)
    for parts in range(1, 51):
        total = rng.randint(0, 5_000_000)
        shares = split_equal(total, parts)
        assert sum(shares) == total
        assert max(shares) - min(shares) <= 1


def test_allocate_largest_remainder():
    assert allocate(1000, [Decimal("33.33"), Decimal("33.33"), Decimal("33.34")]) == [333, 333, 334]
    assert allocate(100, [1, 1, 1]) == [34, 33, 33]
    assert sum(allocate(99999, [Decimal("12.5"), Decimal("37.5"), Decimal("50")])) == 99999


def test_allocate_rejects_bad_weights():
    with pytest.raises(ValidationError):
        allocate(100, [])
    with pytest.raises(ValidationError):
        allocate(100, [Decimal("-1"), Decimal("2")])
    with pytest.raises(ValidationError):
        allocate(100, [0, 0])


def test_coerce_cents_is_strict():
    assert coerce_cents("150", "amount") == 150
    for bad in (1.5, "1.50", "1e3", True, None, "", [1]):
        with pytest.raises(ValidationError):
            coerce_cents(bad, "amount")
    with pytest.raises(ValidationError):
        coerce_cents(-1, "amount")
    with pytest.raises(ValidationError):
        coerce_cents(0, "amount", allow_zero=False)


def test_coerce_quantity():
    assert coerce_quantity(None) == Decimal(1)
    assert coerce_quantity("1.5") == Decimal("1.5")
    for bad in ("0", "-1", "1.2345", "x", True):
        with pytest.raises(ValidationError):
            coerce_quantity(bad)
