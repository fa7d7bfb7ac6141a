"""
PostgreSQL-specific strategy implementation.

Primary keys are read from the system catalogs (`pg_index` joined with
`pg_attribute`), in index column order.
"""
import logging
from typing import TYPE_CHECKING

import sqlalchemy as sa

from dbmapper.strategy.base import DatabaseStrategy, register_strategy

if TYPE_CHECKING:
    from dbmapper.connection import ConnectionWrapper
    from dbmapper.options import DatabaseOptions

logger = logging.getLogger(__name__)


@register_strategy('postgresql')
class PostgresStrategy(DatabaseStrategy):
    """PostgreSQL-specific operations.
    """

    default_port = 5432
    null_key_as_default = True

    @property
    def dialect_name(self) -> str:
        return 'postgresql'

    def build_connection_url(self, options: 'DatabaseOptions') -> sa.URL:
        """Build the SQLAlchemy connection URL for PostgreSQL."""
        query = {}
        if options.timeout:
            query['connect_timeout'] = str(options.timeout)

        return sa.URL.create(
            drivername='postgresql+psycopg',
            username=options.username,
            password=options.password,
            host=options.hostname,
            port=options.port,
            database=options.database,
            query=query
        )

    @classmethod
    def get_required_options(cls) -> list[str]:
        return ['hostname', 'username', 'password', 'database']

    def _query_primary_keys(self, cn: 'ConnectionWrapper', table: str) -> list[str]:
        sql = """
select a.attname as column_name
from pg_index i
join pg_attribute a on a.attrelid = i.indrelid and a.attnum = any(i.indkey)
where i.indrelid = %(table)s::regclass and i.indisprimary
order by array_position(i.indkey, a.attnum)
"""
        rows = cn.query(sql, {'table': self.quote_identifier(table)})
        return [row['column_name'] for row in rows]
