"""
Exception taxonomy for the TSV record codec.

**Conceptual**: Every failure the codec can detect on its own is raised as a
subclass of TsvError, so callers can catch the whole family in one place or
pick out a specific kind. I/O failures (permission denied, disk full, a file
locked by another writer) are NOT wrapped: they propagate as the OSError the
operating system produced.

**Where each error is raised**:
  - SchemaError: while deriving the column schema of a record type, before
    any file is touched.
  - ConversionUnsupportedError: while resolving value converters, at the
    start of a serialize/deserialize call and before the file is opened.
  - TsvFormatError: while reading a header or a data line that cannot be
    mapped onto the bound record type, or when appending onto a file whose
    header does not match.

The codec never logs, swallows, or retries any of these. Retry policy belongs
to the orchestration layer.
"""

from pathlib import Path
from typing import Optional


class TsvError(Exception):
    """Base class for all errors raised by the TSV codec."""
    pass


class SchemaError(TsvError):
    """
    Raised when a record type cannot be turned into a valid column schema.

    **Typical causes**: two members resolve to the same column name, a member
    has no type annotation, the type is a frozen dataclass, or the type has
    no zero-argument construction path.

    **Recovery**: This is a configuration error in the record type itself.
    Rename or ignore a member with TsvColumn, add annotations, or give every
    field a default.
    """
    pass


# Configuration errors and schema errors are the same thing for this codec.
ConfigurationError = SchemaError


class ConversionUnsupportedError(TsvError):
    """
    Raised when a value type has neither a registered nor a reflective converter.

    **Recovery**: Register a converter for the type before the first
    serialize/deserialize call, e.g.
    ``serializer.add_type_converter(MyType, FunctionConverter(str, MyType.parse))``.
    """

    def __init__(self, message: str, value_type: object = None):
        super().__init__(message)
        self.value_type = value_type


class TsvFormatError(TsvError):
    """
    Raised when the contents of a TSV file cannot be mapped onto the record type.

    Attributes:
        file: Path of the offending file (None if unknown).
        column: Column name involved in the failure (None if not column specific).
        line_number: 1-based line number of the offending line (None for
                     header-level failures).
    """

    def __init__(
        self,
        message: str,
        file: Optional[Path] = None,
        column: Optional[str] = None,
        line_number: Optional[int] = None,
    ):
        super().__init__(message)
        self.file = file
        self.column = column
        self.line_number = line_number
