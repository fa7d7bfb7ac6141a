"""
Field descriptors for record types.

A record type is any class whose public, annotated attributes (dataclass
fields included) and public properties map one-to-one onto table columns.
`describe()` turns such a class into an ordered tuple of `FieldDescriptor`
objects; everything else in the package works from that tuple rather than
inspecting the class again.
"""
import dataclasses
import datetime
import enum
import inspect
import types
import typing
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from dbmapper.exceptions import MappingError

__all__ = ['FieldKind', 'FieldDescriptor', 'describe']


class FieldKind(enum.Enum):
    """Semantic type tag of a mapped field."""
    INTEGER = 'integer'
    FLOAT = 'float'
    DECIMAL = 'decimal'
    TEXT = 'text'
    BOOLEAN = 'boolean'
    DATETIME = 'datetime'
    DATE = 'date'
    TIME = 'time'
    BINARY = 'binary'
    ANY = 'any'


# bool before int: bool is an int subclass; datetime before date likewise
_KIND_BY_TYPE: tuple[tuple[type, FieldKind], ...] = (
    (bool, FieldKind.BOOLEAN),
    (int, FieldKind.INTEGER),
    (float, FieldKind.FLOAT),
    (Decimal, FieldKind.DECIMAL),
    (str, FieldKind.TEXT),
    (datetime.datetime, FieldKind.DATETIME),
    (datetime.date, FieldKind.DATE),
    (datetime.time, FieldKind.TIME),
    (bytes, FieldKind.BINARY),
    (bytearray, FieldKind.BINARY),
)

_ZERO_VALUES: dict[FieldKind, Any] = {
    FieldKind.INTEGER: 0,
    FieldKind.FLOAT: 0.0,
    FieldKind.DECIMAL: Decimal(0),
    FieldKind.TEXT: '',
    FieldKind.BOOLEAN: False,
    FieldKind.DATETIME: datetime.datetime.min,
    FieldKind.DATE: datetime.date.min,
    FieldKind.TIME: datetime.time.min,
    FieldKind.BINARY: b'',
    FieldKind.ANY: None,
}


@dataclass(frozen=True)
class FieldDescriptor:
    """Metadata describing one mappable attribute of a record type.
    """
    name: str
    kind: FieldKind
    python_type: Any = None
    nullable: bool = False
    readable: bool = True
    writable: bool = True
    column: str = ''

    def __post_init__(self):
        if not self.column:
            object.__setattr__(self, 'column', self.name)

    def zero_value(self) -> Any:
        """Value assigned when the database returns NULL for this field."""
        if self.nullable:
            return None
        return _ZERO_VALUES[self.kind]

    def with_column(self, column: str) -> 'FieldDescriptor':
        return dataclasses.replace(self, column=column)


def resolve_kind(annotation: Any) -> tuple[FieldKind, Any, bool]:
    """Resolve a type annotation to (kind, python_type, nullable).

    `X | None` and `Optional[X]` unwrap to X with nullable set. Unions of
    several non-None types and unknown classes resolve to `FieldKind.ANY`.
    """
    nullable = False
    origin = typing.get_origin(annotation)
    if origin is typing.Union or origin is types.UnionType:
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        nullable = len(args) != len(typing.get_args(annotation))
        if len(args) != 1:
            return FieldKind.ANY, annotation, nullable
        annotation = args[0]

    if annotation is Any:
        return FieldKind.ANY, annotation, True

    if isinstance(annotation, type):
        for klass, kind in _KIND_BY_TYPE:
            if issubclass(annotation, klass):
                return kind, annotation, nullable

    return FieldKind.ANY, annotation, nullable


def _is_classvar(annotation: Any) -> bool:
    return annotation is typing.ClassVar or typing.get_origin(annotation) is typing.ClassVar


def _annotated_fields(cls: type) -> list[FieldDescriptor]:
    try:
        hints = typing.get_type_hints(cls)
    except Exception as err:
        raise MappingError(f'Cannot resolve annotations of {cls.__name__}: {err}') from err

    if dataclasses.is_dataclass(cls):
        names = [f.name for f in dataclasses.fields(cls)]
    else:
        # declaration order, base classes first
        names = []
        for klass in reversed(cls.__mro__):
            for name in inspect.get_annotations(klass):
                if name not in names:
                    names.append(name)

    descriptors = []
    for name in names:
        if name.startswith('_') or _is_classvar(hints.get(name)):
            continue
        kind, python_type, nullable = resolve_kind(hints.get(name, Any))
        descriptors.append(FieldDescriptor(name=name, kind=kind, python_type=python_type,
                                           nullable=nullable))
    return descriptors


def _property_fields(cls: type, seen: set[str]) -> list[FieldDescriptor]:
    descriptors = []
    for klass in reversed(cls.__mro__):
        for name, attr in vars(klass).items():
            if name.startswith('_') or name in seen or not isinstance(attr, property):
                continue
            try:
                hints = typing.get_type_hints(attr.fget) if attr.fget else {}
            except Exception:
                hints = {}
            kind, python_type, nullable = resolve_kind(hints.get('return', Any))
            descriptors.append(FieldDescriptor(name=name, kind=kind, python_type=python_type,
                                               nullable=nullable,
                                               readable=attr.fget is not None,
                                               writable=attr.fset is not None))
            seen.add(name)
    return descriptors


def describe(cls: type) -> tuple[FieldDescriptor, ...]:
    """Return the ordered field descriptors of a record type.

    All public fields are candidates: annotated attributes (dataclass fields
    included) followed by properties. Names with a leading underscore and
    `ClassVar` annotations are skipped.

    Raises
        MappingError: If the type exposes no public field.
    """
    if not isinstance(cls, type):
        raise MappingError(f'Expected a record type, got {cls!r}')

    descriptors = _annotated_fields(cls)
    descriptors += _property_fields(cls, {d.name for d in descriptors})

    if not descriptors:
        raise MappingError(f'{cls.__name__} has no public fields to map')

    return tuple(descriptors)
