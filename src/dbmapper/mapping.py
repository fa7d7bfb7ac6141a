"""
Record type to table mapping.

The default convention is identity: a type named ``User`` maps to table
``User`` and each field to a same-named column. `register()` overrides the
table name and individual column names and freezes the field descriptor
table for the type, so registered types are described once instead of on
every operation.

Usage:
    @register(table='users', columns={'name': 'user_name'})
    @dataclass
    class User:
        id: int | None = None
        name: str = ''
"""
import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass

from dbmapper.exceptions import MappingError
from dbmapper.fields import FieldDescriptor, describe

__all__ = [
    'TableMapping',
    'register',
    'unregister',
    'clear_registry',
    'is_registered',
    'get_mapping',
    'table_name',
]

logger = logging.getLogger(__name__)

_registry: dict[type, 'TableMapping'] = {}
_registry_lock = threading.RLock()


@dataclass(frozen=True)
class TableMapping:
    """Table identity and field descriptors of one record type."""
    record_type: type
    table: str
    fields: tuple[FieldDescriptor, ...]

    @property
    def columns(self) -> list[str]:
        return [f.column for f in self.fields]

    def field_for_column(self, column: str) -> FieldDescriptor | None:
        """Find the field mapped to a column, exact match first then case-insensitive."""
        for f in self.fields:
            if f.column == column:
                return f
        lower = column.lower()
        for f in self.fields:
            if f.column.lower() == lower:
                return f
        return None


def _build_mapping(cls: type, table: str | None = None,
                   columns: Mapping[str, str] | None = None) -> TableMapping:
    descriptors = describe(cls)
    columns = dict(columns or {})

    unknown = set(columns) - {f.name for f in descriptors}
    if unknown:
        raise MappingError(f'{cls.__name__} has no field(s) {sorted(unknown)}')

    descriptors = tuple(f.with_column(columns[f.name]) if f.name in columns else f
                        for f in descriptors)
    return TableMapping(record_type=cls, table=table or cls.__name__, fields=descriptors)


def register(cls: type | None = None, *, table: str | None = None,
             columns: Mapping[str, str] | None = None):
    """Register a record type, optionally overriding its table and column names.

    Supports both @register and @register(...) syntax, and plain calls.
    """
    def decorator(klass: type) -> type:
        mapping = _build_mapping(klass, table, columns)
        with _registry_lock:
            _registry[klass] = mapping
        logger.debug(f'Registered {klass.__name__} -> {mapping.table} ({len(mapping.fields)} fields)')
        return klass

    if cls is None:
        return decorator
    return decorator(cls)


def unregister(cls: type) -> None:
    """Drop a registered mapping; the type falls back to the identity convention."""
    with _registry_lock:
        _registry.pop(cls, None)


def clear_registry() -> None:
    with _registry_lock:
        _registry.clear()


def is_registered(cls: type) -> bool:
    with _registry_lock:
        return cls in _registry


def get_mapping(cls: type) -> TableMapping:
    """Return the mapping of a record type.

    Unregistered types are described on each call.
    """
    with _registry_lock:
        mapping = _registry.get(cls)
    if mapping is not None:
        return mapping
    return _build_mapping(cls)


def table_name(cls: type) -> str:
    """Table name of a record type: the registered override or the bare type name."""
    return get_mapping(cls).table
