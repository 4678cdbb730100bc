import math

import pytest

from faultbench.validation import clamp, parse_float


def test_parses_default_voltage():
    assert parse_float("115") == 115.0


@pytest.mark.parametrize("text", ["12.5", " 12.5", "\t12.5", "+12.5", "1.25e1", "125e-1"])
def test_equivalent_spellings(text):
    assert parse_float(text) == 12.5


def test_negative_and_fraction_forms():
    assert parse_float("-180") == -180.0
    assert parse_float(".5") == 0.5
    assert parse_float("5.") == 5.0


def test_hexadecimal():
    assert parse_float("0x10") == 16.0


def test_infinity_and_nan():
    assert parse_float("inf") == math.inf
    assert parse_float("-Infinity") == -math.inf
    assert math.isnan(parse_float("nan"))


@pytest.mark.parametrize(
    "text",
    ["", "   ", "abc", "12.5 ", "12,5", "1e", "1_000", "0x", "--1", "1.2.3", "."],
)
def test_rejects_malformed(text):
    with pytest.raises(ValueError):
        parse_float(text)


@pytest.mark.parametrize("text", ["1e999", "-1e999", "1e-400", "0x1p99999"])
def test_rejects_out_of_range(text):
    with pytest.raises(ValueError):
        parse_float(text)


def test_zero_is_not_underflow():
    assert parse_float("0e-400") == 0.0


def test_clamp_limits():
    assert clamp(500.0, 0.0, 450.0) == 450.0
    assert clamp(-200.0, -180.0, 180.0) == -180.0
    assert clamp(60.0, 45.0, 70.0) == 60.0


def test_clamp_result_within_bounds():
    for value in (-1e9, -1.0, 0.0, 3.5, 10.0, 1e9):
        result = clamp(value, 0.0, 10.0)
        assert 0.0 <= result <= 10.0