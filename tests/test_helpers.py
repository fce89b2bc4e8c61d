"""
Tests for number formatting and emptiness checks.
"""

import math
from decimal import Decimal

import pytest

from crypto_convert.utils import format_number, is_empty


@pytest.mark.parametrize("value, expected", [
    (5, 5.0),
    (2.5, 2.5),
    ("1.25", 1.25),
    ("  42 ", 42.0),
    (Decimal("0.1"), 0.1),
    ("-3", -3.0),
])
def test_format_number_parses_numeric_input(value, expected):
    assert format_number(value) == expected


@pytest.mark.parametrize("value", ["", "   ", "abc", "1.2.3", None, True, [], {}, "nan", "inf", float("inf")])
def test_format_number_rejects_non_numeric_input(value):
    assert math.isnan(format_number(value))


def test_format_number_rounds_to_precision():
    assert format_number(1 / 3, 8) == 0.33333333
    assert format_number("88.888888", 4) == 88.8889
    assert format_number(90000.000000001, 8) == 90000


def test_format_number_without_precision_passes_through():
    assert format_number(0.123456789123) == 0.123456789123


def test_is_empty():
    assert is_empty({})
    assert is_empty(None)
    assert not is_empty({"BTCUSD": 1.0})
