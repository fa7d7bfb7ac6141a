"""
Row mapping between result rows and record instances.
"""
import dataclasses
import logging
from collections.abc import Mapping
from typing import Any, TypeVar

from dbmapper.exceptions import MappingError
from dbmapper.mapping import TableMapping
from dbmapper.types import TypeConverter, coerce

__all__ = ['map_row', 'bind_parameters']

logger = logging.getLogger(__name__)

T = TypeVar('T')

_MISSING = object()


def _lookup(row: Mapping[str, Any], column: str) -> Any:
    """Column value by exact name, then case-insensitively; _MISSING if absent."""
    if column in row:
        return row[column]
    lower = column.lower()
    for key in row:
        if key.lower() == lower:
            return row[key]
    return _MISSING


def _instantiate(cls: type[T], values: dict[str, Any], mapping: TableMapping) -> T:
    """Create a record, passing init-able dataclass fields as keyword arguments.

    Required dataclass fields with no value in the row receive their zero
    value; all other mapped values are assigned as attributes afterwards.
    """
    kwargs = {}
    if dataclasses.is_dataclass(cls):
        zeros = {f.name: f.zero_value() for f in mapping.fields}
        for dc_field in dataclasses.fields(cls):
            if not dc_field.init:
                continue
            if dc_field.name in values:
                kwargs[dc_field.name] = values[dc_field.name]
            elif (dc_field.default is dataclasses.MISSING
                  and dc_field.default_factory is dataclasses.MISSING):
                kwargs[dc_field.name] = zeros.get(dc_field.name)

    try:
        obj = cls(**kwargs)
    except TypeError as err:
        raise MappingError(f'Cannot instantiate {cls.__name__}: {err}') from err

    for name, value in values.items():
        if name not in kwargs:
            setattr(obj, name, value)
    return obj


def map_row(row: Mapping[str, Any], mapping: TableMapping) -> Any:
    """Convert a result row into a populated record instance.

    For each writable field: a column missing from the row leaves the field
    at its default, a NULL sets the field's zero value, anything else is
    coerced to the field's declared kind.

    Raises
        MappingError: If a value cannot be converted to its field's kind.
    """
    values = {}
    for f in mapping.fields:
        if not f.writable:
            continue
        raw = _lookup(row, f.column)
        if raw is _MISSING:
            continue
        values[f.name] = f.zero_value() if raw is None else coerce(raw, f)
    return _instantiate(mapping.record_type, values, mapping)


def bind_parameters(record: Any, mapping: TableMapping) -> dict[str, Any]:
    """Read every readable field of a record into a name -> value mapping.

    Unset attributes and NaN/NaT-like values become None, the SQL null marker.
    """
    if not isinstance(record, mapping.record_type):
        raise MappingError(f'Expected {mapping.record_type.__name__}, got {type(record).__name__}')

    values = {}
    for f in mapping.fields:
        if not f.readable:
            continue
        values[f.name] = TypeConverter.convert_value(getattr(record, f.name, None))
    return values
