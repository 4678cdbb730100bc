"""Checking of numbers typed by the operator."""

from __future__ import annotations

import math
import re
import sys

_WHITESPACE = " \t\n\v\f\r"
_DECIMAL = re.compile(r"([+-]?(?:\d+\.?\d*|\.\d+))(?:[eE][+-]?\d+)?")
_HEX = re.compile(
    r"([+-]?)0[xX]((?:[0-9a-fA-F]+\.?[0-9a-fA-F]*|\.[0-9a-fA-F]+)(?:[pP][+-]?\d+)?)"
)
_INFINITY = re.compile(r"([+-]?)inf(?:inity)?", re.IGNORECASE)
_NAN = re.compile(r"([+-]?)nan(?:\([0-9A-Za-z_]*\))?", re.IGNORECASE)


def _check_range(result: float, mantissa: str, nonzero_digits: str, text: str) -> float:
    if math.isinf(result):
        raise ValueError(f"{text!r} is too large for a float")
    has_nonzero = any(char in nonzero_digits for char in mantissa)
    if (result == 0 and has_nonzero) or 0 < abs(result) < sys.float_info.min:
        raise ValueError(f"{text!r} is too small for a float")
    return result


def parse_float(text: str) -> float:
    """Parse a whole string as a floating point number.

    Leading whitespace is skipped; anything left over after the number,
    an empty string and values out of the range of a float are rejected
    with ValueError.
    """
    body = text.lstrip(_WHITESPACE)
    if not body:
        raise ValueError(f"{text!r} is not a number")

    if match := _HEX.fullmatch(body):
        sign, digits = match.groups()
        mantissa = re.split(r"[pP]", digits)[0]
        try:
            result = float.fromhex(f"{sign}0x{digits}")
        except OverflowError as exc:
            raise ValueError(f"{text!r} is too large for a float") from exc
        return _check_range(result, mantissa, "123456789abcdefABCDEF", text)

    if match := _DECIMAL.fullmatch(body):
        return _check_range(float(body), match.group(1), "123456789", text)

    if match := _INFINITY.fullmatch(body):
        return float(f"{match.group(1)}inf")

    if match := _NAN.fullmatch(body):
        return float(f"{match.group(1)}nan")

    raise ValueError(f"{text!r} is not a number")


def clamp(value: float, low: float, high: float) -> float:
    """Limit value to the closed range [low, high]."""
    if value > high:
        return high
    if value < low:
        return low
    return value