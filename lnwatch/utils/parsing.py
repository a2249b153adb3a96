"""Numeric coercion and rounding helpers shared by every analysis"""

import logging
import math
from fractions import Fraction
from typing import Any, Union

logger = logging.getLogger(__name__)

Number = Union[int, float, Fraction]


def to_int(value: Any, default: int = 0) -> int:
    """Parse an LND integer field.

    LND's REST gateway encodes 64-bit integers as JSON strings, and optional
    fields are simply omitted. Missing, empty or unparseable values fall back
    to ``default``.
    """
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        try:
            return int(float(value))
        except (TypeError, ValueError, OverflowError):
            logger.debug(f"Could not parse integer from {value!r}, using {default}")
            return default


def round_half_away(value: Number) -> int:
    """Round to the nearest integer, halves away from zero"""
    if value < 0:
        return -int(math.floor(-value + Fraction(1, 2)))
    return int(math.floor(value + Fraction(1, 2)))


def ratio_pct(part: int, whole: int) -> int:
    """``part / whole`` as a rounded percentage, 0 when ``whole`` is 0"""
    if not whole:
        return 0
    return round_half_away(Fraction(part * 100, whole))


def msat_to_sat(msat: int) -> int:
    """Floor millisatoshi to whole satoshi"""
    return msat // 1000
