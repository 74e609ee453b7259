"""
TSV readers and writers for collections of records.

**Conceptual**: This module is the I/O boundary for TSV record files. A
TsvSerializer is bound to one record type and one file path. It writes a
sequence of records as one header line plus one line per record, and reads
them back lazily, one record per line.

**On-disk format**:
  - Text in the serializer's encoding (default UTF-8 without BOM).
  - First line: column names of the record type's schema, tab-separated,
    unescaped.
  - One line per record; cells in schema order, tab-separated. Each cell is
    the value converter's text with backslash/tab/CR/LF escaped.
  - Lines end with the platform line terminator.

**Write modes**:
  - Overwrite (default): truncate the file and write a fresh header.
  - Append: add lines after the existing ones without a header. Appending to
    a missing or empty file falls back to overwrite so the header is still
    written. The existing header must match the record type's header exactly,
    otherwise TsvFormatError is raised and nothing is written.

**Reading**: ``deserialize()`` is a generator. The header is matched against
the schema by name, so the file's column order may differ from the schema
order; an unknown header column raises TsvFormatError before any record is
produced. Short lines leave the remaining fields at their defaults, extra
cells are ignored.

**Resources**: The file is opened inside each call and closed on every exit
path: normal completion, an exception, or a reader that stops pulling records
early (closing or dropping the generator). Writers hold an exclusive advisory
lock and readers a shared one (POSIX only); a conflicting lock raises
BlockingIOError. Nothing is retried, logged, or rolled back.

**Teaching note**: Keeping converters, escaping and schema derivation in their
own modules leaves this file with only the file-handling decisions: which mode
to open in, when to write a header, and how a line maps to a record.
"""

import codecs
import os
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Generic, Iterable, Iterator, List, Optional, Tuple, Type, TypeVar

from src.data.converters import ConverterRegistry, ValueConverter
from src.data.errors import TsvFormatError
from src.data.escaping import decode_special_characters, encode_special_characters
from src.data.schemas import ColumnDescriptor, derive_columns, header_names

if sys.platform != "win32":
    import fcntl
else:
    fcntl = None

T = TypeVar("T")

DELIMITER = "\t"
DEFAULT_ENCODING = "utf-8"

_BOM = "\ufeff"


class WriteMode(Enum):
    """How serialize() opens the destination file."""
    OVERWRITE = "overwrite"
    APPEND = "append"


@dataclass(frozen=True)
class TsvFileInfo:
    """
    Snapshot of the bound file's metadata.

    Attributes:
        path: Absolute path of the file.
        exists: Whether the file exists right now.
        size_bytes: File size (0 if missing).
        modified_at: Last modification time in UTC (None if missing).
    """
    path: Path
    exists: bool
    size_bytes: int
    modified_at: Optional[datetime]


def _acquire_lock(stream: Any, exclusive: bool) -> None:
    """Take an advisory lock on an open file; released when the file closes."""
    if fcntl is None:
        return
    operation = fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH
    fcntl.flock(stream.fileno(), operation | fcntl.LOCK_NB)


def _strip_line_end(line: str) -> str:
    # Universal newlines turn CRLF into LF on read
    if line.endswith("\n"):
        return line[:-1]
    return line


class TsvSerializer(Generic[T]):
    """
    Serialize and deserialize records of one type to and from one TSV file.

    **Lifecycle**: The column schema and the converter registry are created
    when the serializer is constructed and live as long as it does. The file
    is opened and closed inside each serialize()/deserialize() call.

    **Usage**:
        >>> serializer = TsvSerializer(Tweet, "data/tweets.tsv")
        >>> serializer.serialize(tweets)                 # overwrite
        >>> serializer.serialize(more_tweets, append=True)
        >>> for tweet in serializer.deserialize():
        ...     print(tweet.user, tweet.text)

    Args:
        record_type: Record class; must be constructible with no arguments.
        file_path: TSV file path (made absolute).
        encoding: Text encoding. Default "utf-8" (no BOM); "utf-8-sig" writes a BOM.
        registry: Converter registry to use. Default: a fresh ConverterRegistry.

    Raises:
        SchemaError: If record_type cannot be used as a TSV record.
        LookupError: If the encoding is unknown.
    """

    def __init__(
        self,
        record_type: Type[T],
        file_path: Path | str,
        encoding: str = DEFAULT_ENCODING,
        registry: Optional[ConverterRegistry] = None,
    ):
        # Fail on unknown encodings now instead of at the first open()
        codecs.lookup(encoding)

        self.record_type = record_type
        self.encoding = encoding
        self.converters = registry if registry is not None else ConverterRegistry()
        self.columns: Tuple[ColumnDescriptor, ...] = derive_columns(record_type)
        self._path = Path(file_path).absolute()

    def __repr__(self) -> str:
        return f"TsvSerializer({self.record_type.__name__}, '{self._path}', encoding='{self.encoding}')"

    @property
    def path(self) -> Path:
        """Absolute path of the bound file."""
        return self._path

    @property
    def header(self) -> str:
        """Header line (without line terminator) written for this record type."""
        return DELIMITER.join(header_names(self.columns))

    def file_info(self) -> TsvFileInfo:
        """Current metadata of the bound file (re-read on every call)."""
        try:
            stat = self._path.stat()
        except FileNotFoundError:
            return TsvFileInfo(path=self._path, exists=False, size_bytes=0, modified_at=None)
        return TsvFileInfo(
            path=self._path,
            exists=True,
            size_bytes=stat.st_size,
            modified_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        )

    def add_type_converter(self, value_type: Any, converter: ValueConverter) -> "TsvSerializer[T]":
        """
        Register (or replace) the converter used for fields of ``value_type``.

        Takes effect from the next serialize()/deserialize() call.

        Returns:
            This serializer, for chaining.
        """
        self.converters.register(value_type, converter)
        return self

    def resolve_write_mode(self, append: bool) -> WriteMode:
        """Append only makes sense onto a non-empty file; otherwise overwrite."""
        if append and self._has_content():
            return WriteMode.APPEND
        return WriteMode.OVERWRITE

    def serialize(self, items: Iterable[T], append: bool = False) -> None:
        """
        Write records to the bound file.

        **Functionally**:
          - Resolves every column's converter and formats every record first,
            so any conversion failure happens before the file is opened.
            Items are therefore fully consumed before truncation, and
            ``serialize(serializer.deserialize())`` rewrites the file with its
            own records instead of emptying it.
          - Overwrite: truncates the file and writes the header.
          - Append onto a non-empty file: checks the existing header, then adds
            lines at the end without a header.
          - Writes one line per record in the order given.

        Args:
            items: Records to write. Consumed fully, once, and held in memory
                   as formatted lines until the write.
            append: If True, append to an existing non-empty file.

        Raises:
            ConversionUnsupportedError: If a column's type has no converter.
            TsvFormatError: If appending onto a file with a different header.
            OSError: On I/O failure (including BlockingIOError if another
                     process holds the file lock). The file is left as-is.
        """
        converters = self._resolve_converters()
        # Every line is built before the file is touched: a failing item leaves
        # the file as it was, and items may be read lazily from this same file.
        lines = [self._format_line(item, converters) for item in items]
        mode = self.resolve_write_mode(append)

        # Ensure parent directory exists
        self._path.parent.mkdir(parents=True, exist_ok=True)

        # Open without truncating so the lock is held before anything is destroyed.
        # "a+" is needed in append mode to read the existing header.
        open_mode = "a+" if mode is WriteMode.APPEND else "a"
        with open(self._path, open_mode, encoding=self.encoding) as writer:
            _acquire_lock(writer, exclusive=True)

            if mode is WriteMode.APPEND:
                self._check_existing_header(writer)
            else:
                # seek(0) also resets the encoder, so a BOM encoding writes its BOM
                writer.seek(0)
                writer.truncate()
                writer.write(self.header + "\n")

            for line in lines:
                writer.write(line + "\n")

    def deserialize(self) -> Iterator[T]:
        """
        Lazily read records from the bound file.

        **Functionally**:
          - Missing or empty file: yields nothing (the file is not opened).
          - Maps each header column to the schema by name.
          - For each following line, builds a fresh ``record_type()``, sets the
            field for each present cell, and yields it.

        The returned generator is single-pass; call deserialize() again to
        read the file from the start.

        Yields:
            One record per data line.

        Raises:
            ConversionUnsupportedError: If a column's type has no converter.
            TsvFormatError: If a header column is not in the schema (raised
                            before the first record), or if a cell cannot be
                            converted (raised at that line).
            OSError: On I/O failure.
        """
        if not self._has_content():
            return

        by_name = {column.name: (column, converter) for column, converter in self._resolve_converters()}

        with open(self._path, "r", encoding=self._read_encoding()) as reader:
            _acquire_lock(reader, exclusive=False)

            header = _strip_line_end(reader.readline()).lstrip(_BOM)
            setters = self._map_header(header.split(DELIMITER), by_name)

            for line_number, line in enumerate(reader, start=2):
                fields = _strip_line_end(line).split(DELIMITER)
                record = self.record_type()
                # zip() stops at the shorter side: short lines keep defaults,
                # extra cells are ignored
                for (column, converter), cell in zip(setters, fields):
                    column.set(record, self._parse_cell(cell, column, converter, line_number))
                yield record

    def _has_content(self) -> bool:
        try:
            return self._path.is_file() and self._path.stat().st_size > 0
        except FileNotFoundError:
            return False

    def _read_encoding(self) -> str:
        # Tolerate a BOM in UTF-8 files regardless of how they were written
        if codecs.lookup(self.encoding).name == "utf-8":
            return "utf-8-sig"
        return self.encoding

    def _resolve_converters(self) -> List[Tuple[ColumnDescriptor, ValueConverter]]:
        return [(column, self.converters.get(column.value_type)) for column in self.columns]

    def _format_line(self, item: T, converters: List[Tuple[ColumnDescriptor, ValueConverter]]) -> str:
        return DELIMITER.join(
            encode_special_characters(converter.to_text(column.get(item)))
            for column, converter in converters
        )

    def _parse_cell(self, cell: str, column: ColumnDescriptor, converter: ValueConverter, line_number: int) -> Any:
        text = decode_special_characters(cell)
        try:
            return converter.from_text(text)
        except (ValueError, TypeError, KeyError, ArithmeticError) as e:
            raise TsvFormatError(
                f"{self._path}:{line_number}: cannot convert column '{column.name}' "
                f"value {text!r} to {getattr(column.value_type, '__name__', column.value_type)}. "
                f"Error: {e}",
                file=self._path,
                column=column.name,
                line_number=line_number,
            ) from e

    def _map_header(self, names: List[str], by_name: dict) -> List[Tuple[ColumnDescriptor, ValueConverter]]:
        setters = []
        for name in names:
            if name not in by_name:
                raise TsvFormatError(
                    f"Unsupported file format: column '{name}' in {self._path} does not "
                    f"match any member of {self.record_type.__name__}. "
                    f"Expected columns: {list(by_name)}.",
                    file=self._path,
                    column=name,
                )
            setters.append(by_name[name])
        return setters

    def _check_existing_header(self, stream: Any) -> None:
        stream.seek(0)
        existing = _strip_line_end(stream.readline()).lstrip(_BOM)
        # Back to the end so the encoder does not emit a second BOM
        stream.seek(0, os.SEEK_END)

        if existing != self.header:
            existing_names = existing.split(DELIMITER)
            expected_names = header_names(self.columns)
            unknown = [name for name in existing_names if name not in expected_names]
            raise TsvFormatError(
                f"Cannot append to {self._path}: its header {existing_names} does not "
                f"match {self.record_type.__name__} columns {expected_names}. "
                f"Write with append=False to replace the file.",
                file=self._path,
                column=unknown[0] if unknown else None,
            )
