"""
SQLite-specific strategy implementation.

Primary keys come from the `pragma_table_info` table-valued function.
Python values SQLite cannot store natively (Decimal, date/time) are adapted
to text and read back through declared-type converters.
"""
import datetime
import logging
import sqlite3
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import dateutil.parser
import sqlalchemy as sa

from dbmapper.exceptions import QueryError
from dbmapper.strategy.base import DatabaseStrategy, register_strategy

if TYPE_CHECKING:
    from dbmapper.connection import ConnectionWrapper
    from dbmapper.options import DatabaseOptions

logger = logging.getLogger(__name__)


def convert_date(val: bytes) -> datetime.date:
    """Convert ISO 8601 date string to date object."""
    return dateutil.parser.isoparse(val.decode()).date()


def convert_datetime(val: bytes) -> datetime.datetime:
    """Convert ISO 8601 datetime string to datetime object."""
    return dateutil.parser.isoparse(val.decode())


def register_type_adapters() -> None:
    """Register adapters (Python -> SQLite) and converters (SQLite -> Python).
    """
    sqlite3.register_adapter(Decimal, str)
    sqlite3.register_adapter(datetime.datetime, lambda v: v.isoformat(' '))
    sqlite3.register_adapter(datetime.date, lambda v: v.isoformat())
    sqlite3.register_adapter(datetime.time, lambda v: v.isoformat())

    sqlite3.register_converter('date', convert_date)
    sqlite3.register_converter('datetime', convert_datetime)


@register_strategy('sqlite')
class SQLiteStrategy(DatabaseStrategy):
    """SQLite-specific operations.
    """

    @property
    def dialect_name(self) -> str:
        return 'sqlite'

    def build_connection_url(self, options: 'DatabaseOptions') -> sa.URL:
        """Build the SQLAlchemy connection URL for SQLite."""
        return sa.URL.create(drivername='sqlite', database=options.database)

    def get_engine_kwargs(self, options: 'DatabaseOptions') -> dict[str, Any]:
        connect_args: dict[str, Any] = {
            'detect_types': sqlite3.PARSE_DECLTYPES | sqlite3.PARSE_COLNAMES
        }
        if options.timeout:
            connect_args['timeout'] = options.timeout
        return {'connect_args': connect_args}

    def configure_connection(self, raw_conn: Any) -> None:
        """Enable foreign keys and make sure the type adapters are installed.
        """
        register_type_adapters()
        raw_conn.execute('PRAGMA foreign_keys = ON')

    @classmethod
    def get_required_options(cls) -> list[str]:
        return ['database']

    def placeholder(self, name: str) -> str:
        """Return SQLite's named placeholder."""
        return f':{name}'

    def _query_primary_keys(self, cn: 'ConnectionWrapper', table: str) -> list[str]:
        sql = 'select name from pragma_table_info(:table) where pk <> 0 order by pk'
        rows = cn.query(sql, {'table': table})
        if not rows and not cn.query('select 1 from sqlite_master where type = :type and name = :table',
                                     {'type': 'table', 'table': table}):
            raise QueryError(f'no such table: {table}')
        return [row['name'] for row in rows]
