"""
Column schemas derived from record types.

**Conceptual**: A record type's column schema is the ordered list of its
public, readable-and-writable members, each paired with the column name used
in the TSV header. The schema is derived once per type and cached, so the
column order on disk is stable for as long as the type does not change.

**Which members become columns** (in this order):
  1. Dataclass fields, in ``dataclasses.fields`` order. For plain classes,
     the annotated class attributes instead (base classes first).
  2. Properties with both a getter and a setter, in class body order (base
     classes first). Read-only and write-only properties are skipped silently.
Names starting with an underscore are private and never become columns.

**Renaming and ignoring**: Attach a TsvColumn to a member, either on a
dataclass field through ``tsv_field(name=..., ignore=...)`` or for any member
through a ``__tsv_columns__ = {"member": TsvColumn(...)}`` class attribute.
``ignore=True`` drops the member before its name is resolved.

**Schema rules** (violations raise SchemaError):
  - Resolved column names must be unique.
  - Column names must be non-empty and contain no tab, CR or LF (headers are
    written unescaped).
  - Every member needs a type annotation (properties: the getter's return
    annotation); it selects the value converter.
  - The type must be constructible with no arguments and its members must
    be writable (so no frozen dataclasses).

**Teaching note**: The header is a data contract. Deriving it from the type
(instead of hand-maintaining a column list) keeps writer and reader in sync,
and failing fast on duplicate names prevents two fields from silently
fighting over one column.
"""

import dataclasses
import inspect
import sys
import typing
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from src.data.errors import SchemaError

# dataclasses.field metadata key holding a TsvColumn override
TSV_METADATA_KEY = "tsv"

# Class attribute holding per-member TsvColumn overrides
TSV_COLUMNS_ATTRIBUTE = "__tsv_columns__"

_RESERVED_HEADER_CHARACTERS = ("\t", "\r", "\n")


@dataclass(frozen=True)
class TsvColumn:
    """
    Per-member column override.

    Attributes:
        name: Column name to use instead of the member name (None = member name).
        ignore: If True, the member is excluded from the schema entirely.
    """
    name: Optional[str] = None
    ignore: bool = False


def tsv_field(*, name: Optional[str] = None, ignore: bool = False, **kwargs: Any) -> Any:
    """
    ``dataclasses.field`` wrapper that attaches a TsvColumn override.

    Example:
        >>> @dataclass
        ... class Tweet:
        ...     id: int = 0
        ...     text: Optional[str] = tsv_field(name="body", default=None)
        ...     cached_html: str = tsv_field(ignore=True, default="")
    """
    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata[TSV_METADATA_KEY] = TsvColumn(name=name, ignore=ignore)
    return dataclasses.field(metadata=metadata, **kwargs)


@dataclass(frozen=True)
class ColumnDescriptor:
    """
    One column of a record type's schema.

    Attributes:
        member: Attribute name on the record (field or property).
        name: Column name in the TSV header.
        value_type: Declared type of the member; selects the value converter.
        position: 0-based position in the schema (= on-disk column order).
    """
    member: str
    name: str
    value_type: Any
    position: int

    def get(self, record: Any) -> Any:
        """Read this column's value from a record."""
        return getattr(record, self.member)

    def set(self, record: Any, value: Any) -> None:
        """Write this column's value onto a record."""
        setattr(record, self.member, value)


# Derived schemas, keyed by record type
_SCHEMA_CACHE: Dict[type, Tuple[ColumnDescriptor, ...]] = {}


def derive_columns(record_type: type) -> Tuple[ColumnDescriptor, ...]:
    """
    Return the ordered column schema of ``record_type``.

    The schema is derived on first request and cached; later calls for the
    same type return the identical tuple.

    Args:
        record_type: The record class.

    Returns:
        Tuple of ColumnDescriptor in on-disk column order.

    Raises:
        SchemaError: If the type cannot be used as a TSV record (see module
                     docstring for the rules).
    """
    cached = _SCHEMA_CACHE.get(record_type)
    if cached is not None:
        return cached

    columns = _build_columns(record_type)
    _SCHEMA_CACHE[record_type] = columns
    return columns


def clear_schema_cache() -> None:
    """Forget all derived schemas (used by tests that redefine record types)."""
    _SCHEMA_CACHE.clear()


def header_names(columns: Sequence[ColumnDescriptor]) -> List[str]:
    """Column names in schema order."""
    return [column.name for column in columns]


def _build_columns(record_type: type) -> Tuple[ColumnDescriptor, ...]:
    if not isinstance(record_type, type):
        raise SchemaError(f"Record type must be a class, got {record_type!r}")

    type_name = record_type.__name__
    _check_constructible(record_type)

    hints = _resolve_hints(record_type)

    class_overrides = _class_overrides(record_type)

    # (member name, value type, override) in declaration order
    members: List[Tuple[str, Any, Optional[TsvColumn]]] = []
    seen = set()

    if dataclasses.is_dataclass(record_type):
        for f in dataclasses.fields(record_type):
            seen.add(f.name)
            members.append((f.name, hints.get(f.name, f.type), f.metadata.get(TSV_METADATA_KEY)))
    else:
        for klass in reversed(record_type.__mro__):
            for name in inspect.get_annotations(klass):
                if name in seen:
                    continue
                seen.add(name)
                hint = hints.get(name)
                if hint is None or typing.get_origin(hint) is typing.ClassVar:
                    continue
                members.append((name, hint, None))

    members.extend(_property_members(record_type, seen))

    columns: List[ColumnDescriptor] = []
    owners: Dict[str, str] = {}
    for member, value_type, field_override in members:
        if member.startswith("_"):
            continue

        override = class_overrides.get(member, field_override)
        if override is not None and override.ignore:
            continue

        if isinstance(value_type, str):
            raise SchemaError(
                f"{type_name}.{member}: annotation {value_type!r} could not be resolved. "
                f"Define the type at module level or ignore the member with TsvColumn."
            )

        name = override.name if override is not None and override.name is not None else member
        _check_column_name(type_name, member, name)

        if name in owners:
            raise SchemaError(
                f"{type_name}: members '{owners[name]}' and '{member}' both map to "
                f"column '{name}'. Column names must be unique; rename or ignore one "
                f"of them with TsvColumn."
            )
        owners[name] = member

        columns.append(
            ColumnDescriptor(
                member=member,
                name=name,
                value_type=value_type,
                position=len(columns),
            )
        )

    return tuple(columns)


def _resolve_hints(record_type: type) -> Dict[str, Any]:
    """
    Type hints of all annotated members, base classes first.

    When some annotation cannot be resolved (e.g. a postponed annotation naming
    a class local to a function), the others are resolved one by one and the
    failing ones are left as strings. They only matter if they become columns.
    """
    try:
        return typing.get_type_hints(record_type)
    except (NameError, TypeError):
        pass

    hints: Dict[str, Any] = {}
    for klass in reversed(record_type.__mro__):
        module = sys.modules.get(klass.__module__)
        module_globals = vars(module) if module is not None else {}
        for name, annotation in inspect.get_annotations(klass).items():
            hints[name] = _resolve_annotation(annotation, module_globals, dict(vars(klass)))
    return hints


def _resolve_annotation(annotation: Any, module_globals: Dict[str, Any], class_namespace: Dict[str, Any]) -> Any:
    if not isinstance(annotation, str):
        return annotation
    try:
        # Same evaluation inspect.get_annotations(eval_str=True) performs
        return eval(annotation, module_globals, class_namespace)
    except (NameError, AttributeError, SyntaxError, TypeError):
        return annotation


def _property_members(record_type: type, seen: set) -> List[Tuple[str, Any, Optional[TsvColumn]]]:
    """Readable-and-writable properties, base classes first."""
    members = []
    for klass in reversed(record_type.__mro__):
        for name in vars(klass):
            if name in seen:
                continue
            # Resolve through the MRO so subclass overrides win
            attribute = inspect.getattr_static(record_type, name)
            if not isinstance(attribute, property):
                continue
            seen.add(name)
            if attribute.fget is None or attribute.fset is None:
                continue

            try:
                value_type = typing.get_type_hints(attribute.fget).get("return")
            except (NameError, TypeError) as e:
                raise SchemaError(
                    f"{record_type.__name__}.{name}: could not resolve return annotation: {e}"
                ) from e
            if value_type is None and not name.startswith("_"):
                raise SchemaError(
                    f"{record_type.__name__}.{name}: property getter needs a return "
                    f"annotation so its value converter can be chosen."
                )
            members.append((name, value_type, None))
    return members


def _class_overrides(record_type: type) -> Dict[str, TsvColumn]:
    """Merge ``__tsv_columns__`` maps, subclasses overriding base classes."""
    overrides: Dict[str, TsvColumn] = {}
    for klass in reversed(record_type.__mro__):
        mapping = vars(klass).get(TSV_COLUMNS_ATTRIBUTE)
        if not mapping:
            continue
        for member, override in mapping.items():
            if not isinstance(override, TsvColumn):
                raise SchemaError(
                    f"{record_type.__name__}.{TSV_COLUMNS_ATTRIBUTE}['{member}'] must be "
                    f"a TsvColumn, got {type(override).__name__}"
                )
            overrides[member] = override
    return overrides


def _check_column_name(type_name: str, member: str, name: str) -> None:
    if not isinstance(name, str) or not name:
        raise SchemaError(f"{type_name}.{member}: column name must be a non-empty string")
    if any(char in name for char in _RESERVED_HEADER_CHARACTERS):
        raise SchemaError(
            f"{type_name}.{member}: column name {name!r} contains a tab or line break; "
            f"header names are written unescaped."
        )


def _check_constructible(record_type: type) -> None:
    """The reader builds every record with ``record_type()`` and then sets members."""
    type_name = record_type.__name__

    if dataclasses.is_dataclass(record_type):
        if record_type.__dataclass_params__.frozen:
            raise SchemaError(
                f"{type_name} is a frozen dataclass; TSV records need writable members."
            )
        required = [
            f.name
            for f in dataclasses.fields(record_type)
            if f.init
            and f.default is dataclasses.MISSING
            and f.default_factory is dataclasses.MISSING
        ]
        if required:
            raise SchemaError(
                f"{type_name} cannot be constructed without arguments: fields "
                f"{required} have no default. Give every field a default value."
            )
        return

    try:
        signature = inspect.signature(record_type)
    except (TypeError, ValueError):
        # Builtins without introspectable signatures; let construction decide
        return

    required = [
        p.name
        for p in signature.parameters.values()
        if p.default is inspect.Parameter.empty
        and p.kind not in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)
    ]
    if required:
        raise SchemaError(
            f"{type_name} cannot be constructed without arguments: parameters "
            f"{required} are required."
        )
