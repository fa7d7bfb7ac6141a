"""
MySQL-specific strategy implementation.

Identifiers are quoted with backticks and primary keys are discovered with
``SHOW KEYS ... WHERE Key_name = 'PRIMARY'``.
"""
import logging
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa

from dbmapper.strategy.base import DatabaseStrategy, register_strategy

if TYPE_CHECKING:
    from dbmapper.connection import ConnectionWrapper
    from dbmapper.options import DatabaseOptions

logger = logging.getLogger(__name__)


@register_strategy('mysql')
class MySQLStrategy(DatabaseStrategy):
    """MySQL-specific operations.
    """

    default_port = 3306
    identifier_quote = '`'

    @property
    def dialect_name(self) -> str:
        return 'mysql'

    def build_connection_url(self, options: 'DatabaseOptions') -> sa.URL:
        """Build the SQLAlchemy connection URL for MySQL (mysql-connector driver)."""
        return sa.URL.create(
            drivername='mysql+mysqlconnector',
            username=options.username,
            password=options.password,
            host=options.hostname,
            port=options.port,
            database=options.database,
            query={'charset': options.charset},
        )

    def get_engine_kwargs(self, options: 'DatabaseOptions') -> dict[str, Any]:
        connect_args: dict[str, Any] = {}
        if options.timeout:
            connect_args['connection_timeout'] = options.timeout
        return {'connect_args': connect_args}

    @classmethod
    def get_required_options(cls) -> list[str]:
        return ['hostname', 'username', 'password', 'database']

    def _query_primary_keys(self, cn: 'ConnectionWrapper', table: str) -> list[str]:
        quoted_table = self.quote_identifier(table)
        rows = cn.query(f"SHOW KEYS FROM {quoted_table} WHERE Key_name = 'PRIMARY'")
        rows = sorted(rows, key=lambda row: row.get('Seq_in_index', 0))
        return [row['Column_name'] for row in rows]
