"""
Answer Normalizer - canonical answer strings per declared format.

The vote hash is computed over the canonical string, and other miners
normalize the same raw fact the same way, so these rules are part of the
protocol: two honest miners must produce byte-identical answers.
"""

import math
import re
from enum import Enum
from typing import Any

from truthminer.core.errors import InvalidFormat


class AnswerFormat(Enum):
    """Declared answer format of a query."""
    BINARY = "binary"
    OPTION_INDEX = "option-index"
    DECIMAL = "decimal"
    SCORE = "score"
    FREE_TEXT = "free-text"


BINARY_TRUE_VALUES = frozenset({"TRUE", "1", "YES", "Y"})

# Fixed-point scale for DECIMAL answers (cents)
DECIMAL_SCALE = 100

# Leading numeric prefixes; trailing text is ignored. A "0x" prefix selects hex.
INT_PREFIX = re.compile(r"([+-]?)(?:0[xX]([0-9a-fA-F]+)|(?!0[xX])([0-9]+))")
FLOAT_PREFIX = re.compile(r"[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _parse_float(raw: Any, fmt: AnswerFormat) -> float:
    # Longest leading number wins: "12.5 USD" -> 12.5
    match = FLOAT_PREFIX.match(str(raw).strip())
    if match is None:
        raise InvalidFormat(f"{fmt.value}: {raw!r} is not a number")
    value = float(match.group(0))
    if math.isinf(value):
        raise InvalidFormat(f"{fmt.value}: {raw!r} is not a finite number")
    return value


def _parse_int(raw: Any) -> int:
    match = INT_PREFIX.match(str(raw).strip())
    if match is None:
        raise InvalidFormat(f"option-index: {raw!r} is not an integer")
    sign, hex_digits, digits = match.groups()
    value = int(hex_digits, 16) if hex_digits is not None else int(digits, 10)
    return -value if sign == "-" else value


def normalize(raw: Any, fmt: AnswerFormat) -> str:
    """
    Canonicalize a raw answer for its declared format.

    Args:
        raw: Raw answer from the data source
        fmt: Declared answer format

    Returns:
        Canonical answer string

    Raises:
        InvalidFormat: raw cannot be interpreted in this format
    """
    if fmt is AnswerFormat.BINARY:
        return "YES" if str(raw).strip().upper() in BINARY_TRUE_VALUES else "NO"

    if fmt is AnswerFormat.OPTION_INDEX:
        return str(_parse_int(raw))

    if fmt is AnswerFormat.DECIMAL:
        return str(_round_half_up(_parse_float(raw, fmt) * DECIMAL_SCALE))

    if fmt is AnswerFormat.SCORE:
        return str(_round_half_up(_parse_float(raw, fmt)))

    return str(raw).strip()


def parse_format(name: str) -> AnswerFormat:
    """Parse a format name ('binary', 'option-index', ...)."""
    try:
        return AnswerFormat(name.strip().lower())
    except ValueError:
        valid = ", ".join(f.value for f in AnswerFormat)
        raise InvalidFormat(f"Unknown format {name!r} (expected one of: {valid})")
