"""
Tests for the query-parameter range binder
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from query.binders import (
    bind,
    bind_optional_bool,
    bind_optional_decimal,
    bind_optional_float,
    bind_optional_int,
    bind_optional_str,
    bind_optional_time,
    parse_time,
)

ALL_BINDERS = [
    bind_optional_int,
    bind_optional_float,
    bind_optional_decimal,
    bind_optional_str,
    bind_optional_bool,
    bind_optional_time,
]


class TestEmptyInput:
    """Absent parameters never overwrite what is already there."""

    @pytest.mark.parametrize("binder", ALL_BINDERS)
    @pytest.mark.parametrize("raw", ["", "   ", None])
    def test_empty_leaves_unset(self, binder, raw):
        assert binder(raw) is None

    @pytest.mark.parametrize("binder,current", [
        (bind_optional_int, 7),
        (bind_optional_float, 1.5),
        (bind_optional_str, "kept"),
        (bind_optional_bool, False),
        (bind_optional_time, datetime(2020, 1, 1, tzinfo=timezone.utc)),
    ])
    def test_empty_keeps_current(self, binder, current):
        assert binder("", current) == current


class TestUnparseableInput:
    @pytest.mark.parametrize("binder,raw", [
        (bind_optional_int, "abc"),
        (bind_optional_int, "1.5"),
        (bind_optional_int, "1_000"),
        (bind_optional_int, "0x10"),
        (bind_optional_int, "1 000"),
        (bind_optional_int, "\u0661\u0662"),
        (bind_optional_float, "ten"),
        (bind_optional_float, "nan"),
        (bind_optional_decimal, "1,5"),
        (bind_optional_decimal, "Infinity"),
        (bind_optional_bool, "maybe"),
        (bind_optional_time, "yesterday"),
        (bind_optional_time, "2024-13-01"),
        (bind_optional_time, "01/02/2024"),
    ])
    def test_unparseable_leaves_unset(self, binder, raw):
        assert binder(raw) is None

    def test_unparseable_keeps_current(self):
        assert bind_optional_int("x", 3) == 3


class TestParsedInput:
    def test_int(self):
        assert bind_optional_int("42") == 42
        assert bind_optional_int(" -3 ") == -3

    def test_float_and_decimal(self):
        assert bind_optional_float("10.25") == 10.25
        assert bind_optional_decimal("10.25") == Decimal("10.25")

    def test_str_is_trimmed(self):
        assert bind_optional_str("  Maria ") == "Maria"

    @pytest.mark.parametrize("raw,expected", [
        ("true", True), ("TRUE", True), ("1", True), ("t", True),
        ("false", False), ("False", False), ("0", False), ("f", False),
    ])
    def test_bool(self, raw, expected):
        assert bind_optional_bool(raw) is expected

    def test_parsed_value_replaces_current(self):
        assert bind_optional_int("5", 1) == 5


class TestTimeLayouts:
    def test_rfc3339_with_offset(self):
        value = parse_time("2024-01-15T10:30:00-03:00")
        assert value.utcoffset() == timedelta(hours=-3)
        assert value.hour == 10

    def test_rfc3339_zulu_with_fraction(self):
        value = parse_time("2024-01-15T10:30:00.250Z")
        assert value.tzinfo is not None
        assert value.microsecond == 250000

    def test_rfc3339_without_offset_is_utc(self):
        assert parse_time("2024-01-15T10:30:00") == datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)

    def test_space_separated(self):
        assert parse_time("2024-01-15 10:30:00") == datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)

    def test_date_only(self):
        assert parse_time("2024-01-15") == datetime(2024, 1, 15, tzinfo=timezone.utc)

    def test_no_layout_matches(self):
        with pytest.raises(ValueError):
            parse_time("15/01/2024")


class TestDispatch:
    def test_known_kind(self):
        assert bind("int", "12") == 12

    def test_unknown_kind_is_noop(self):
        assert bind("uuid", "abc") is None
        assert bind("uuid", "abc", "current") == "current"
