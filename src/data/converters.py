"""
Value converters: bidirectional text <-> value mapping for one value type.

**Conceptual**: The TSV codec never knows how to print or parse a field on its
own. It asks a ConverterRegistry for the converter of the field's declared
type and calls ``to_text`` when writing and ``from_text`` when reading.
Callers can register their own converter for any type; the last registration
for a type wins.

**Default string converter**: Strings are written quote-wrapped (``"abc"``)
and a None string is written as an empty cell. This keeps an empty string
(``""`` on disk) distinguishable from a missing one (nothing on disk).

**Reflective fallback**: When no converter is registered for a type, the
registry builds one from the type's own text conversion:
  - Enum members by name.
  - bool / numpy.bool_ as ``True`` / ``False``.
  - ``str`` subclasses quote-wrapped, like plain strings.
  - pandas.Timestamp and other types with ``isoformat``/``fromisoformat``
    (datetime, date, time) as ISO 8601.
  - Numeric and text-constructible types (int, float, Decimal, UUID, Path,
    numpy numeric scalars, ...) via ``str(value)`` and ``value_type(text)``.
  - Any other class that overrides ``__str__`` and whose constructor takes a
    single positional argument.
Anything else raises ConversionUnsupportedError at lookup time.

**Optional[X]**: Resolved to the converter for X wrapped in a
NullableConverter, so None is an empty cell. ``Optional[str]`` (or a ``str``
subclass) uses the string converter directly because it already maps None to
an empty cell.
"""

import inspect
import types
import typing
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from fractions import Fraction
from pathlib import PurePath
from typing import Any, Callable, Dict, Optional, Protocol, Union
from uuid import UUID

import numpy as np
import pandas as pd

from src.data.errors import ConversionUnsupportedError


class ValueConverter(Protocol):
    """
    Protocol for a bidirectional text converter for one value type.

    Any object with ``to_text`` and ``from_text`` methods can be registered;
    no inheritance is required.
    """

    def to_text(self, value: Any) -> str:
        """Convert an in-memory value to its textual form (unescaped)."""
        ...

    def from_text(self, text: str) -> Any:
        """Convert a textual form (already unescaped) back to a value."""
        ...


class QuotedStringConverter:
    """
    Default converter for ``str`` fields.

    ``None`` <-> empty text; any other string ``s`` <-> ``"s"``.

    Args:
        value_type: ``str`` or a ``str`` subclass; values read back are
                    rebuilt with ``value_type(text)``.
    """

    QUOTE = '"'

    def __init__(self, value_type: type = str):
        self.value_type = value_type

    def to_text(self, value: Optional[str]) -> str:
        if value is None:
            return ""
        return f"{self.QUOTE}{value}{self.QUOTE}"

    def from_text(self, text: str) -> Optional[str]:
        # Empty cell is reserved for None
        if text == "":
            return None
        if len(text) < 2 or not (text.startswith(self.QUOTE) and text.endswith(self.QUOTE)):
            raise ValueError(
                f"Expected a quote-wrapped string, got {text!r}. "
                f"String cells must be written as \"value\"."
            )
        # Drop the surrounding quotes only; inner quotes are kept as-is
        value = text[1:-1]
        if self.value_type is str:
            return value
        return self.value_type(value)


class NullableConverter:
    """Wrap a converter so None is written as an empty cell and read back as None."""

    def __init__(self, inner: ValueConverter):
        self.inner = inner

    def to_text(self, value: Any) -> str:
        if value is None:
            return ""
        return self.inner.to_text(value)

    def from_text(self, text: str) -> Any:
        if text == "":
            return None
        return self.inner.from_text(text)


class FunctionConverter:
    """
    Adapt a pair of plain callables to the ValueConverter protocol.

    Example:
        >>> registry.register(Money, FunctionConverter(Money.format, Money.parse))
    """

    def __init__(self, to_text: Callable[[Any], str], from_text: Callable[[str], Any]):
        self._to_text = to_text
        self._from_text = from_text

    def to_text(self, value: Any) -> str:
        return self._to_text(value)

    def from_text(self, text: str) -> Any:
        return self._from_text(text)


class ReflectiveConverter:
    """
    Converter built from a value type's own text conversion.

    None is written as an empty cell, mirroring how most types' own string
    conversion treats a missing value. Reading an empty cell back is left to
    ``parse`` (for most types this raises), so nullable fields should be
    annotated ``Optional[...]``.
    """

    def __init__(self, value_type: type, format_value: Callable[[Any], str], parse_text: Callable[[str], Any]):
        self.value_type = value_type
        self._format = format_value
        self._parse = parse_text

    def to_text(self, value: Any) -> str:
        if value is None:
            return ""
        return self._format(value)

    def from_text(self, text: str) -> Any:
        return self._parse(text)

    def __repr__(self) -> str:
        return f"ReflectiveConverter({self.value_type.__name__})"


# Types whose str() output is accepted back by their own constructor
_TEXT_CONSTRUCTIBLE_TYPES = (
    int,
    float,
    complex,
    Decimal,
    Fraction,
    UUID,
    PurePath,
    np.number,
)


def _parse_bool(text: str) -> bool:
    lowered = text.strip().lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    raise ValueError(f"Expected 'True' or 'False', got {text!r}")


def _accepts_single_argument(value_type: type) -> bool:
    """Whether ``value_type(text)`` is a plausible call for this class."""
    try:
        signature = inspect.signature(value_type)
    except (TypeError, ValueError):
        return False

    positional_kinds = (
        inspect.Parameter.POSITIONAL_ONLY,
        inspect.Parameter.POSITIONAL_OR_KEYWORD,
    )
    positional = [p for p in signature.parameters.values() if p.kind in positional_kinds]
    required = [p for p in positional if p.default is inspect.Parameter.empty]
    has_var_positional = any(
        p.kind == inspect.Parameter.VAR_POSITIONAL for p in signature.parameters.values()
    )
    return len(required) <= 1 and (len(positional) >= 1 or has_var_positional)


def reflective_converter(value_type: Any) -> ReflectiveConverter:
    """
    Build a converter from the type's own text conversion capability.

    Args:
        value_type: The field's declared value type.

    Returns:
        ReflectiveConverter for the type.

    Raises:
        ConversionUnsupportedError: If the type offers no usable text conversion.
    """
    if not isinstance(value_type, type):
        raise ConversionUnsupportedError(
            f"No converter for {value_type!r}: only plain classes can be "
            f"converted reflectively. Register a converter for this type.",
            value_type=value_type,
        )

    # Enum before the numeric types: IntEnum members are also ints
    if issubclass(value_type, Enum):
        return ReflectiveConverter(value_type, lambda v: v.name, lambda t: value_type[t])

    if issubclass(value_type, (bool, np.bool_)):
        return ReflectiveConverter(
            value_type,
            lambda v: "True" if v else "False",
            lambda t: value_type(_parse_bool(t)),
        )

    # str subclasses keep the quoted form so "" and None stay distinct
    if issubclass(value_type, str):
        quoted = QuotedStringConverter(value_type)
        return ReflectiveConverter(value_type, quoted.to_text, quoted.from_text)

    # Timestamp.fromisoformat drops the UTC offset; the constructor keeps it
    if issubclass(value_type, pd.Timestamp):
        return ReflectiveConverter(value_type, lambda v: v.isoformat(), pd.Timestamp)

    # datetime, date, time
    if issubclass(value_type, (datetime, date, time)) or (
        callable(getattr(value_type, "isoformat", None))
        and callable(getattr(value_type, "fromisoformat", None))
    ):
        return ReflectiveConverter(value_type, lambda v: v.isoformat(), value_type.fromisoformat)

    if issubclass(value_type, _TEXT_CONSTRUCTIBLE_TYPES):
        return ReflectiveConverter(value_type, str, value_type)

    # Last resort: a custom class with its own __str__ and a one-argument constructor
    if value_type.__str__ is not object.__str__ and _accepts_single_argument(value_type):
        return ReflectiveConverter(value_type, str, value_type)

    raise ConversionUnsupportedError(
        f"No converter for type '{value_type.__name__}': it has no registered "
        f"converter and no usable text conversion of its own. "
        f"Register one with add_type_converter({value_type.__name__}, converter).",
        value_type=value_type,
    )


def _is_string_type(value_type: Any) -> bool:
    return isinstance(value_type, type) and issubclass(value_type, str)


def _optional_inner_type(value_type: Any) -> Optional[Any]:
    """Return X for Optional[X] / X | None, otherwise None."""
    origin = typing.get_origin(value_type)
    if origin is not Union and origin is not types.UnionType:
        return None
    args = [arg for arg in typing.get_args(value_type) if arg is not type(None)]
    if len(args) != 1 or len(args) == len(typing.get_args(value_type)):
        return None
    return args[0]


class ConverterRegistry:
    """
    Registry mapping a value type to its ValueConverter.

    **Lifecycle**: One registry is created per TsvSerializer and lives as long
    as the serializer. ``str`` is pre-registered with QuotedStringConverter.

    **Lookup order** (``get``):
      1. A converter registered for exactly this type.
      2. ``Optional[X]``: the converter for X, wrapped in NullableConverter
         unless X is ``str`` or a ``str`` subclass.
      3. A cached or newly built reflective converter.

    Example:
        >>> registry = ConverterRegistry()
        >>> registry.get(str).to_text("abc")
        '"abc"'
        >>> registry.get(int).from_text("42")
        42
    """

    def __init__(self):
        self._converters: Dict[Any, ValueConverter] = {str: QuotedStringConverter()}
        self._reflective: Dict[Any, ValueConverter] = {}

    def register(self, value_type: Any, converter: ValueConverter) -> "ConverterRegistry":
        """
        Register (or replace) the converter for ``value_type``.

        Returns:
            This registry, for chaining.
        """
        if not (callable(getattr(converter, "to_text", None)) and callable(getattr(converter, "from_text", None))):
            raise TypeError(
                f"Converter for {value_type!r} must define to_text() and from_text(), "
                f"got {type(converter).__name__}"
            )
        self._converters[value_type] = converter
        # A registration always beats a previously built reflective converter
        self._reflective.pop(value_type, None)
        return self

    def get(self, value_type: Any) -> ValueConverter:
        """
        Return the converter for ``value_type``.

        Raises:
            ConversionUnsupportedError: If no converter can be found or built.
        """
        registered = self._converters.get(value_type)
        if registered is not None:
            return registered

        inner = _optional_inner_type(value_type)
        if inner is not None:
            if _is_string_type(inner):
                return self.get(inner)
            return NullableConverter(self.get(inner))

        if typing.get_origin(value_type) is not None:
            raise ConversionUnsupportedError(
                f"No converter for {value_type!r}: composite and union types are "
                f"not supported in a TSV cell. Register a converter for this exact type.",
                value_type=value_type,
            )

        cached = self._reflective.get(value_type)
        if cached is None:
            cached = reflective_converter(value_type)
            self._reflective[value_type] = cached
        return cached

    def __contains__(self, value_type: Any) -> bool:
        return value_type in self._converters
