"""
CRUD orchestration over mapped record types.

`Database` ties the pieces together: each public operation opens a
connection, builds statements from the record type's mapping, runs them
and closes the connection on every exit path.

Reads (`select`, `execute_raw`) raise on failure after logging. Batch
writes (`insert`, `update`, `delete`, `delete_all`) run in one transaction,
roll back on any failure and report the outcome as a `WriteResult`.

Examples
    >>> db = Database.from_settings('appsettings.json')
    >>> db.insert(User(Name='Alice', Email='alice@x.com'))
    >>> users = db.select(User, where="WHERE Email = 'alice@x.com'")
"""
import logging
import pathlib
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, is_dataclass
from typing import Any, Self, TypeVar

from dbmapper.cache import Cache
from dbmapper.connection import ConnectionWrapper, connect, dispose_engine
from dbmapper.exceptions import DatabaseError, DriverError, QueryError
from dbmapper.exceptions import ValidationError
from dbmapper.mapper import bind_parameters, map_row
from dbmapper.mapping import TableMapping, get_mapping, is_registered, table_name
from dbmapper.options import DEFAULT_SETTINGS_PATH, DatabaseOptions, load_options
from dbmapper.sql import Statement, build_delete, build_delete_all, build_insert
from dbmapper.sql import build_select, build_update
from dbmapper.strategy import get_strategy
from dbmapper.transaction import Transaction

__all__ = ['Database', 'WriteResult']

logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass(frozen=True)
class WriteResult:
    """Outcome of a write operation.

    Truthy when the write committed. On failure `error` carries the
    exception that caused the rollback.
    """
    ok: bool
    rowcount: int = 0
    error: BaseException | None = None

    def __bool__(self) -> bool:
        return self.ok


def _as_batch(records: Any) -> list[Any]:
    """Normalize a single record or any iterable of records to a list.

    Dataclass and registered record instances are single records even when
    they are iterable.
    """
    if records is None:
        return []
    if is_dataclass(records) or is_registered(type(records)):
        return [records]
    if isinstance(records, Iterable) and not isinstance(records, str | bytes | Mapping):
        return list(records)
    return [records]


class Database:
    """Maps record types onto tables of one database.

    Construction validates the options but opens no connection; every
    operation opens and closes its own.

    Args:
        options: Can be:
                - DatabaseOptions object
                - String path to a JSON settings file
                - Dictionary of options
                - None, with options specified as keyword arguments
        **kw: Additional keyword arguments to override options

    Attributes
        where: one-shot filter fragment (e.g. ``"WHERE Email = 'a@x.com'"``)
            used by the next `select` or `delete_all` and then reset to ''
    """

    def __init__(self, options: DatabaseOptions | dict[str, Any] | str | pathlib.Path | None = None,
                 **kw: Any) -> None:
        self.options = load_options(options, **kw)
        self.strategy = get_strategy(self.options.drivername)
        self.where = ''

    @classmethod
    def from_settings(cls, path: str | pathlib.Path = DEFAULT_SETTINGS_PATH, **kw: Any) -> Self:
        """Create a Database from a JSON settings file."""
        return cls(DatabaseOptions.from_json(path, **kw))

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        self.close()

    def __repr__(self) -> str:
        return f'{type(self).__name__}({self.options.cache_namespace!r})'

    def close(self) -> None:
        """Release the engine held for this database."""
        dispose_engine(self.options)

    def connect(self) -> ConnectionWrapper:
        """Open a new connection to this database."""
        return connect(self.options)

    def _take_filter(self, where: str | None) -> str:
        """Return the filter for this call and reset the one-shot attribute."""
        fragment = self.where if where is None else where
        self.where = ''
        return fragment or ''

    def primary_keys(self, cn: ConnectionWrapper, table: str) -> list[str]:
        """Primary-key columns of a table, in key order.
        """
        try:
            return self.strategy.get_primary_keys(cn, table, bypass_cache=not self.options.cache_keys)
        except DriverError as err:
            raise QueryError(f'Cannot read primary keys of {table}: {err}') from err

    def invalidate_keys(self, table: str | type | None = None) -> None:
        """Forget cached primary keys of one table (name or record type), or of all tables.
        """
        cache = Cache.get_instance()
        namespace = self.options.cache_namespace
        if table is None:
            cache.clear_namespace(namespace)
            logger.debug(f'Cleared cached primary keys for {namespace}')
            return
        if isinstance(table, type):
            table = table_name(table)
        cache.clear_for_table(table, namespace)

    def select(self, record_type: type[T], sql: str | None = None, *,
               where: str | None = None, params: dict[str, Any] | None = None) -> list[T]:
        """Read rows of a record type's table as records.

        Args:
            record_type: the record type to read
            sql: complete statement used verbatim instead of the generated one
            where: filter fragment appended to the generated statement;
                defaults to the `where` attribute
            params: named parameters for `sql`

        Returns
            list of records, empty when no rows match

        Raises
            QueryError, ConnectionFailure: database failures
            MappingError: a column value cannot be converted to its field
        """
        fragment = self._take_filter(where)
        try:
            mapping = get_mapping(record_type)
            stmt = build_select(self.strategy, mapping, fragment, sql)
            with self.connect() as cn:
                rows = cn.query(stmt.sql, params)
            records = [map_row(row, mapping) for row in rows]
        except DatabaseError as err:
            logger.error(f'Select of {record_type.__name__} failed: {err}')
            raise
        logger.debug(f'Selected {len(records)} {record_type.__name__} record(s)')
        return records

    def _write_batch(self, operation: str, records: Iterable[Any] | Any,
                     build: Callable[[TableMapping, list[str], dict[str, Any]], Statement],
                     needs_keys: bool = True) -> WriteResult:
        batch = _as_batch(records)
        if not batch:
            logger.debug(f'Skipping {operation} of empty batch')
            return WriteResult(True)

        record_type = type(batch[0])
        try:
            if any(type(record) is not record_type for record in batch):
                raise ValidationError(f'{operation} batch mixes record types')
            mapping = get_mapping(record_type)
            rowcount = 0
            with self.connect() as cn, Transaction(cn) as tx:
                keys = self.primary_keys(cn, mapping.table) if needs_keys else []
                for record in batch:
                    stmt = build(mapping, keys, bind_parameters(record, mapping))
                    rowcount += max(tx.execute(stmt.sql, stmt.bind()), 0)
        except Exception as err:
            logger.exception(f'{operation} of {len(batch)} {record_type.__name__} record(s) failed')
            return WriteResult(False, 0, err)

        logger.debug(f'{operation} of {len(batch)} {record_type.__name__} record(s) '
                     f'affected {rowcount} row(s)')
        return WriteResult(True, rowcount)

    def insert(self, records: Iterable[T] | T) -> WriteResult:
        """Insert records in one transaction.

        Fields holding None bind as NULL, so auto-increment keys are
        generated by the server. On PostgreSQL a None key is written as
        DEFAULT so serial and identity columns draw from their sequence.
        """
        return self._write_batch(
            'Insert', records,
            lambda mapping, keys, values: build_insert(self.strategy, mapping, values, keys),
            needs_keys=self.strategy.null_key_as_default)

    def update(self, records: Iterable[T] | T) -> WriteResult:
        """Update records by primary key in one transaction.

        Every non-key field is written; the key fields select the row.
        """
        return self._write_batch(
            'Update', records,
            lambda mapping, keys, values: build_update(self.strategy, mapping, keys, values))

    def delete(self, records: Iterable[T] | T) -> WriteResult:
        """Delete records by primary key in one transaction."""
        return self._write_batch(
            'Delete', records,
            lambda mapping, keys, values: build_delete(self.strategy, mapping, keys, values))

    def delete_all(self, record_type: type, *, where: str | None = None) -> WriteResult:
        """Delete the rows of a record type's table matching the filter, or every row.

        The filter defaults to the `where` attribute, which is reset.
        """
        fragment = self._take_filter(where)
        try:
            stmt = build_delete_all(self.strategy, get_mapping(record_type), fragment)
            with self.connect() as cn:
                rowcount = cn.execute(stmt.sql)
        except Exception as err:
            logger.exception(f'Delete all of {record_type.__name__} failed')
            return WriteResult(False, 0, err)
        return WriteResult(True, max(rowcount, 0))

    def execute_raw(self, sql: str, params: dict[str, Any] | None = None) -> int:
        """Execute caller-supplied SQL verbatim and return the affected row count.

        Raises
            ValidationError: If `sql` is empty
            QueryError, ConnectionFailure: database failures
        """
        if not sql or not sql.strip():
            raise ValidationError('SQL statement is empty')
        with self.connect() as cn:
            return cn.execute(sql, params)
