"""
Tests for value converters and the converter registry (src/data/converters.py).

This module tests:
  - The default quote-wrapping string converter (None vs empty string).
  - Optional[X] handling (NullableConverter).
  - Reflective converters for builtin, stdlib, numpy and pandas types.
  - ConversionUnsupportedError for types without a text conversion.
  - Registration and replacement of converters.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum, IntEnum
from pathlib import Path
from typing import List, Optional, Union
from uuid import UUID

import numpy as np
import pandas as pd
import pytest

from src.data.converters import (
    ConverterRegistry,
    FunctionConverter,
    NullableConverter,
    QuotedStringConverter,
    reflective_converter,
)
from src.data.errors import ConversionUnsupportedError


class Color(Enum):
    RED = "r"
    GREEN = "g"


class Priority(IntEnum):
    LOW = 1
    HIGH = 2


class Handle:
    """Custom type with its own __str__ and a one-argument constructor."""

    def __init__(self, value):
        self.value = value.lstrip("@")

    def __str__(self):
        return f"@{self.value}"

    def __eq__(self, other):
        return isinstance(other, Handle) and other.value == self.value


class Opaque:
    """No __str__ override: nothing to convert with."""

    def __init__(self, a, b):
        self.a = a
        self.b = b


# ============================================================================
# String converter
# ============================================================================

def test_string_converter_quotes_values():
    converter = QuotedStringConverter()
    assert converter.to_text("abc") == '"abc"'
    assert converter.from_text('"abc"') == "abc"


def test_string_converter_distinguishes_none_and_empty():
    """None is an empty cell; an empty string is a pair of quotes."""
    converter = QuotedStringConverter()
    assert converter.to_text(None) == ""
    assert converter.to_text("") == '""'
    assert converter.from_text("") is None
    assert converter.from_text('""') == ""


def test_string_converter_keeps_inner_quotes():
    converter = QuotedStringConverter()
    assert converter.to_text('say "hi"') == '"say "hi""'
    assert converter.from_text('"say "hi""') == 'say "hi"'


@pytest.mark.parametrize("bad", ['abc', '"', '"abc', 'abc"'])
def test_string_converter_rejects_unquoted_text(bad):
    with pytest.raises(ValueError) as exc_info:
        QuotedStringConverter().from_text(bad)
    assert "quote-wrapped" in str(exc_info.value)


# ============================================================================
# Registry lookup
# ============================================================================

def test_registry_has_default_string_converter():
    registry = ConverterRegistry()
    assert str in registry
    assert isinstance(registry.get(str), QuotedStringConverter)


def test_optional_str_uses_string_converter_directly():
    registry = ConverterRegistry()
    assert registry.get(Optional[str]) is registry.get(str)


def test_optional_int_wraps_in_nullable():
    registry = ConverterRegistry()
    converter = registry.get(Optional[int])
    assert isinstance(converter, NullableConverter)
    assert converter.to_text(None) == ""
    assert converter.from_text("") is None
    assert converter.to_text(7) == "7"
    assert converter.from_text("7") == 7


def test_pep604_optional_is_supported():
    registry = ConverterRegistry()
    converter = registry.get(int | None)
    assert converter.from_text("") is None
    assert converter.from_text("3") == 3


def test_register_replaces_existing_converter():
    """The last registration for a type wins, including over str's default."""
    registry = ConverterRegistry()
    plain = FunctionConverter(lambda v: "" if v is None else v, lambda t: t)

    returned = registry.register(str, plain)

    assert returned is registry
    assert registry.get(str) is plain
    assert registry.get(str).to_text("abc") == "abc"


def test_register_overrides_cached_reflective_converter():
    registry = ConverterRegistry()
    registry.get(int)  # builds and caches the reflective converter

    hex_converter = FunctionConverter(lambda v: format(v, "x"), lambda t: int(t, 16))
    registry.register(int, hex_converter)

    assert registry.get(int).to_text(255) == "ff"
    # Optional[int] picks up the new converter too
    assert registry.get(Optional[int]).from_text("ff") == 255


def test_register_rejects_non_converters():
    with pytest.raises(TypeError):
        ConverterRegistry().register(int, object())


def test_reflective_converter_is_cached():
    registry = ConverterRegistry()
    assert registry.get(int) is registry.get(int)


# ============================================================================
# Reflective converters
# ============================================================================

@pytest.mark.parametrize(
    "value_type, value, text",
    [
        (int, 42, "42"),
        (int, -7, "-7"),
        (float, 0.1, "0.1"),
        (Decimal, Decimal("12.50"), "12.50"),
        (bool, True, "True"),
        (bool, False, "False"),
        (Color, Color.GREEN, "GREEN"),
        (Priority, Priority.HIGH, "HIGH"),
        (date, date(2024, 1, 15), "2024-01-15"),
        (UUID, UUID("12345678-1234-5678-1234-567812345678"), "12345678-1234-5678-1234-567812345678"),
        (Handle, Handle("alice"), "@alice"),
    ],
)
def test_reflective_roundtrip(value_type, value, text):
    converter = reflective_converter(value_type)
    assert converter.to_text(value) == text
    assert converter.from_text(text) == value


def test_reflective_datetime_keeps_timezone_and_microseconds():
    value = datetime(2024, 1, 15, 9, 30, 1, 123456, tzinfo=timezone(timedelta(hours=9)))
    converter = reflective_converter(datetime)
    text = converter.to_text(value)
    assert text == "2024-01-15T09:30:01.123456+09:00"
    assert converter.from_text(text) == value
    assert converter.from_text(text).utcoffset() == timedelta(hours=9)


def test_reflective_path():
    converter = reflective_converter(Path)
    assert converter.from_text(converter.to_text(Path("data/tweets.tsv"))) == Path("data/tweets.tsv")


def test_reflective_bool_parsing_is_case_insensitive():
    converter = reflective_converter(bool)
    assert converter.from_text("true") is True
    assert converter.from_text("FALSE") is False
    with pytest.raises(ValueError):
        converter.from_text("yes")


def test_reflective_numpy_scalars():
    int_converter = reflective_converter(np.int64)
    assert int_converter.to_text(np.int64(5)) == "5"
    assert int_converter.from_text("5") == np.int64(5)
    assert isinstance(int_converter.from_text("5"), np.int64)

    bool_converter = reflective_converter(np.bool_)
    assert bool_converter.from_text("False") == np.bool_(False)


def test_reflective_pandas_timestamp():
    value = pd.Timestamp("2024-01-15 09:30:00", tz="UTC")
    converter = reflective_converter(pd.Timestamp)
    restored = converter.from_text(converter.to_text(value))
    assert isinstance(restored, pd.Timestamp)
    assert restored == value


def test_reflective_writes_none_as_empty_cell():
    assert reflective_converter(int).to_text(None) == ""


def test_reflective_int_rejects_empty_cell():
    """A non-Optional int column cannot hold an empty cell."""
    with pytest.raises(ValueError):
        reflective_converter(int).from_text("")


# ============================================================================
# Unsupported types
# ============================================================================

def test_unsupported_plain_class():
    with pytest.raises(ConversionUnsupportedError) as exc_info:
        ConverterRegistry().get(Opaque)
    assert "Opaque" in str(exc_info.value)
    assert exc_info.value.value_type is Opaque


@pytest.mark.parametrize("value_type", [List[int], list[str], Union[int, str], Union[int, str, None]])
def test_unsupported_composite_types(value_type):
    with pytest.raises(ConversionUnsupportedError):
        ConverterRegistry().get(value_type)


def test_registered_converter_makes_unsupported_type_usable():
    registry = ConverterRegistry()
    registry.register(Opaque, FunctionConverter(lambda o: f"{o.a},{o.b}", lambda t: Opaque(*t.split(","))))
    restored = registry.get(Opaque).from_text("1,2")
    assert (restored.a, restored.b) == ("1", "2")


# ============================================================================
# str subclasses
# ============================================================================

class ScreenName(str):
    """str subclass used as a field type."""


def test_str_subclass_is_quote_wrapped():
    converter = ConverterRegistry().get(ScreenName)
    assert converter.to_text(ScreenName("alice")) == '"alice"'
    restored = converter.from_text('"alice"')
    assert restored == "alice"
    assert isinstance(restored, ScreenName)


def test_optional_str_subclass_keeps_none_and_empty_apart():
    converter = ConverterRegistry().get(Optional[ScreenName])
    assert converter.to_text(None) == ""
    assert converter.to_text(ScreenName("")) == '""'
    assert converter.from_text("") is None
    assert converter.from_text('""') == ""
    assert isinstance(converter.from_text('""'), ScreenName)
