"""
Tests for the Answer Normalizer.

Tests cover:
1. Binary table
2. Option index parsing
3. Decimal fixed-point cents
4. Score rounding
5. Free text and format names
"""

import pytest

from truthminer.core.errors import InvalidFormat
from truthminer.core.normalizer import AnswerFormat, normalize, parse_format


class TestBinary:
    """Binary answers collapse to YES/NO."""

    @pytest.mark.parametrize("raw", ["YES", "true", "1", "y", " Yes ", "TRUE"])
    def test_truthy(self, raw):
        assert normalize(raw, AnswerFormat.BINARY) == "YES"

    @pytest.mark.parametrize("raw", ["0", "maybe", "no", "", "false", "yes please"])
    def test_everything_else_is_no(self, raw):
        assert normalize(raw, AnswerFormat.BINARY) == "NO"


class TestOptionIndex:
    """Option indices are the leading integer of the raw answer."""

    def test_canonical_integer(self):
        assert normalize(" 3 ", AnswerFormat.OPTION_INDEX) == "3"
        assert normalize("007", AnswerFormat.OPTION_INDEX) == "7"
        assert normalize("-2", AnswerFormat.OPTION_INDEX) == "-2"

    @pytest.mark.parametrize("raw, expected", [
        ("2nd", "2"),
        ("1.0", "1"),
        ("3 goals", "3"),
        ("1_000", "1"),
        ("+4", "4"),
        ("0x10", "16"),
        ("-0", "0"),
    ])
    def test_leading_integer(self, raw, expected):
        assert normalize(raw, AnswerFormat.OPTION_INDEX) == expected

    @pytest.mark.parametrize("raw", ["abc", "", "second", "0x", "- 1", "#1"])
    def test_invalid(self, raw):
        with pytest.raises(InvalidFormat):
            normalize(raw, AnswerFormat.OPTION_INDEX)


class TestDecimal:
    """Decimals become integer cents, rounded half up."""

    def test_rounds_half_up(self):
        assert normalize("123.456", AnswerFormat.DECIMAL) == "12346"

    def test_whole_and_negative(self):
        assert normalize("42", AnswerFormat.DECIMAL) == "4200"
        assert normalize("-1.25", AnswerFormat.DECIMAL) == "-125"
        assert normalize("0.004", AnswerFormat.DECIMAL) == "0"

    @pytest.mark.parametrize("raw, expected", [
        ("12.5 USD", "1250"),
        ("1_0.5", "100"),
        ("1.", "100"),
        (".5", "50"),
        ("1e2", "10000"),
        ("1e", "100"),
    ])
    def test_leading_number(self, raw, expected):
        assert normalize(raw, AnswerFormat.DECIMAL) == expected

    @pytest.mark.parametrize("raw", ["abc", "nan", "inf", "-Infinity", "1e999", ".", "$5"])
    def test_invalid(self, raw):
        with pytest.raises(InvalidFormat):
            normalize(raw, AnswerFormat.DECIMAL)


class TestScore:
    """Scores round half up to integers."""

    def test_rounding(self):
        assert normalize("2.5", AnswerFormat.SCORE) == "3"
        assert normalize("2.49", AnswerFormat.SCORE) == "2"
        assert normalize("-2.5", AnswerFormat.SCORE) == "-2"
        assert normalize(" 10 ", AnswerFormat.SCORE) == "10"

    def test_invalid(self):
        with pytest.raises(InvalidFormat):
            normalize("three", AnswerFormat.SCORE)

    def test_trailing_text_ignored(self):
        assert normalize("2.5 pts", AnswerFormat.SCORE) == "3"


class TestFreeText:

    def test_trimmed(self):
        assert normalize("  Real Madrid \n", AnswerFormat.FREE_TEXT) == "Real Madrid"

    def test_deterministic(self):
        for fmt in AnswerFormat:
            raw = "1" if fmt is not AnswerFormat.FREE_TEXT else " x "
            assert normalize(raw, fmt) == normalize(raw, fmt)


class TestParseFormat:

    def test_known_names(self):
        assert parse_format("option-index") is AnswerFormat.OPTION_INDEX
        assert parse_format(" BINARY ") is AnswerFormat.BINARY

    def test_unknown_name(self):
        with pytest.raises(InvalidFormat):
            parse_format("ternary")
