"""
SQL statement synthesis for mapped record types.

Every builder returns a `Statement`: the SQL text with one named
placeholder per bound value, plus the ordered parameters. Table and column
names come from the record type's mapping and are quoted for the dialect;
values are always bound, never interpolated. The filter fragment accepted
by `build_select()` and `build_delete_all()` is caller-owned text and is
appended verbatim.

Placeholder names are the field names; key predicates use `<name>_cond`
so a column can appear in both the SET list and the WHERE clause.
"""
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, NamedTuple

from dbmapper.exceptions import SQLSynthesisError
from dbmapper.fields import FieldDescriptor, FieldKind
from dbmapper.mapping import TableMapping
from dbmapper.strategy import DatabaseStrategy

__all__ = [
    'Parameter',
    'Statement',
    'build_select',
    'build_insert',
    'build_update',
    'build_delete',
    'build_delete_all',
    'split_key_fields',
]

logger = logging.getLogger(__name__)

KEY_SUFFIX = '_cond'


class Parameter(NamedTuple):
    """A bound value and the kind of the field it came from."""
    value: Any
    kind: FieldKind


@dataclass
class Statement:
    """Parameterized SQL statement."""
    sql: str
    params: dict[str, Parameter] = field(default_factory=dict)

    def bind(self) -> dict[str, Any]:
        """Plain name -> value mapping handed to the driver."""
        return {name: p.value for name, p in self.params.items()}

    def __str__(self) -> str:
        return self.sql


def _filter_clause(where: str | None) -> str:
    if not where or not where.strip():
        return ''
    return ' ' + where.strip()


def _unique_name(base: str, taken: dict[str, Any]) -> str:
    """Return `base`, or `base_<n>` when already used by another parameter."""
    name, n = base, 1
    while name in taken:
        name = f'{base}_{n}'
        n += 1
    return name


def split_key_fields(mapping: TableMapping, keys: Sequence[str]
                     ) -> tuple[list[FieldDescriptor], list[FieldDescriptor]]:
    """Partition a mapping's fields into (key fields, non-key fields).

    Key fields are returned in key order. Key columns are matched to field
    columns case-insensitively.

    Raises
        SQLSynthesisError: If a key column has no matching field.
    """
    key_fields = []
    for key in keys:
        f = mapping.field_for_column(key)
        if f is None:
            raise SQLSynthesisError(f'{mapping.table}: primary key column {key!r} has no matching field')
        if f not in key_fields:
            key_fields.append(f)
    data_fields = [f for f in mapping.fields if f not in key_fields]
    return key_fields, data_fields


def _key_predicates(strategy: DatabaseStrategy, key_fields: list[FieldDescriptor],
                    values: dict[str, Any], params: dict[str, Parameter]) -> str:
    predicates = []
    for f in key_fields:
        name = _unique_name(f'{f.name}{KEY_SUFFIX}', params)
        predicates.append(f'{strategy.quote_identifier(f.column)}={strategy.placeholder(name)}')
        params[name] = Parameter(values.get(f.name), f.kind)
    return ' AND '.join(predicates)


def build_select(strategy: DatabaseStrategy, mapping: TableMapping,
                 where: str | None = None, sql: str | None = None) -> Statement:
    """Build ``SELECT * FROM <table>[ <filter>]``.

    A non-blank `sql` override is used verbatim and the filter is ignored.
    """
    if sql and sql.strip():
        return Statement(sql)
    table = strategy.quote_identifier(mapping.table)
    return Statement(f'SELECT * FROM {table}{_filter_clause(where)}')


def build_insert(strategy: DatabaseStrategy, mapping: TableMapping,
                 values: dict[str, Any], keys: Sequence[str] = ()) -> Statement:
    """Build ``INSERT INTO <table> (<cols>) VALUES (<placeholders>)`` over all readable fields.

    Args:
        values: field name -> value, as produced by `mapper.bind_parameters()`
        keys: primary-key columns; on dialects with `null_key_as_default`
            a key holding None is written as ``DEFAULT``
    """
    fields_ = [f for f in mapping.fields if f.readable]
    if not fields_:
        raise SQLSynthesisError(f'{mapping.table}: no readable fields to insert')

    defaulted = set()
    if strategy.null_key_as_default:
        defaulted = {f.name for f in map(mapping.field_for_column, keys) if f is not None}

    params: dict[str, Parameter] = {}
    placeholders = []
    for f in fields_:
        if f.name in defaulted and values.get(f.name) is None:
            placeholders.append('DEFAULT')
            continue
        name = _unique_name(f.name, params)
        placeholders.append(strategy.placeholder(name))
        params[name] = Parameter(values.get(f.name), f.kind)

    table = strategy.quote_identifier(mapping.table)
    columns = ', '.join(strategy.quote_identifier(f.column) for f in fields_)
    sql = f"INSERT INTO {table} ({columns}) VALUES ({', '.join(placeholders)})"
    return Statement(sql, params)


def build_update(strategy: DatabaseStrategy, mapping: TableMapping,
                 keys: Sequence[str], values: dict[str, Any]) -> Statement:
    """Build ``UPDATE <table> SET <col>=<ph>, ... WHERE <key>=<key_cond> AND ...``.

    Every non-key readable field is set; every key field is matched.

    Raises
        SQLSynthesisError: If the type has no key field or no non-key field.
    """
    key_fields, data_fields = split_key_fields(mapping, keys)
    data_fields = [f for f in data_fields if f.readable]
    if not key_fields:
        raise SQLSynthesisError(f'{mapping.table}: cannot update without primary key fields')
    if not data_fields:
        raise SQLSynthesisError(f'{mapping.table}: no non-key fields to update')

    params: dict[str, Parameter] = {}
    assignments = []
    for f in data_fields:
        name = _unique_name(f.name, params)
        assignments.append(f'{strategy.quote_identifier(f.column)}={strategy.placeholder(name)}')
        params[name] = Parameter(values.get(f.name), f.kind)

    where = _key_predicates(strategy, key_fields, values, params)
    table = strategy.quote_identifier(mapping.table)
    return Statement(f"UPDATE {table} SET {', '.join(assignments)} WHERE {where}", params)


def build_delete(strategy: DatabaseStrategy, mapping: TableMapping,
                 keys: Sequence[str], values: dict[str, Any]) -> Statement:
    """Build ``DELETE FROM <table> WHERE <key>=<key_cond> AND ...``.

    Raises
        SQLSynthesisError: If the type has no key field.
    """
    key_fields, _ = split_key_fields(mapping, keys)
    if not key_fields:
        raise SQLSynthesisError(f'{mapping.table}: cannot delete without primary key fields')

    params: dict[str, Parameter] = {}
    where = _key_predicates(strategy, key_fields, values, params)
    table = strategy.quote_identifier(mapping.table)
    return Statement(f'DELETE FROM {table} WHERE {where}', params)


def build_delete_all(strategy: DatabaseStrategy, mapping: TableMapping,
                     where: str | None = None) -> Statement:
    """Build ``DELETE FROM <table>[ <filter>]``; no filter deletes every row.
    """
    table = strategy.quote_identifier(mapping.table)
    return Statement(f'DELETE FROM {table}{_filter_clause(where)}')
