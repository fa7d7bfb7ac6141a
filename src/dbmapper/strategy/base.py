"""
Base strategy interface for dialect-specific operations.

Defines the abstract base class that all dialect strategies inherit from.
A strategy owns everything that differs between database servers: the
SQLAlchemy URL, identifier quoting, named placeholder syntax, connection
setup and the metadata query that discovers primary-key columns.
"""
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa

from dbmapper.cache import cacheable_strategy
from dbmapper.exceptions import ConfigurationError

if TYPE_CHECKING:
    from dbmapper.connection import ConnectionWrapper
    from dbmapper.options import DatabaseOptions

# Registry of dialect name -> strategy class
# Defined here to avoid circular imports (concrete strategies import from base)
_STRATEGY_REGISTRY: dict[str, type['DatabaseStrategy']] = {}


def register_strategy(dialect: str):
    """Decorator to register a strategy class for a dialect.

    Usage:
        @register_strategy('mysql')
        class MySQLStrategy(DatabaseStrategy):
            ...
    """
    def decorator(cls: type['DatabaseStrategy']) -> type['DatabaseStrategy']:
        _STRATEGY_REGISTRY[dialect] = cls
        return cls
    return decorator


class DatabaseStrategy(ABC):
    """Base class for dialect-specific operations.
    """

    default_port: int = 0
    identifier_quote: str = '"'
    blank_allowed: frozenset[str] = frozenset({'password'})
    # NULL into an identity key column is rejected; emit DEFAULT instead
    null_key_as_default: bool = False

    @property
    @abstractmethod
    def dialect_name(self) -> str:
        """Return the dialect identifier (e.g., 'mysql', 'sqlite')."""

    @abstractmethod
    def build_connection_url(self, options: 'DatabaseOptions') -> sa.URL:
        """Build the SQLAlchemy connection URL for this dialect.

        Args:
            options: DatabaseOptions containing connection parameters

        Returns
            URL suitable for sqlalchemy.create_engine
        """

    def get_engine_kwargs(self, options: 'DatabaseOptions') -> dict[str, Any]:
        """Return SQLAlchemy create_engine kwargs for this dialect.
        """
        return {}

    def configure_connection(self, raw_conn: Any) -> None:
        """Configure a freshly opened DBAPI connection.

        Args:
            raw_conn: The raw DBAPI connection (not wrapped)
        """

    @classmethod
    @abstractmethod
    def get_required_options(cls) -> list[str]:
        """Return list of required option field names for this dialect.

        Returns
            List of field names that must have non-empty values
        """

    @classmethod
    def validate_options(cls, options: 'DatabaseOptions') -> None:
        """Validate options for this dialect.

        Args:
            options: DatabaseOptions to validate

        Raises
            ConfigurationError: If any required field is missing or empty
                (an empty password is allowed)
        """
        for field in cls.get_required_options():
            value = getattr(options, field)
            if value is None or (value == '' and field not in cls.blank_allowed):
                raise ConfigurationError(f'field {field} is required for {options.drivername}')

    def quote_identifier(self, identifier: str) -> str:
        """Quote a database identifier.

        The quote character is doubled inside the identifier.

        Args:
            identifier: Table or column name

        Returns
            str: Quoted identifier
        """
        q = self.identifier_quote
        return q + identifier.replace(q, q + q) + q

    def placeholder(self, name: str) -> str:
        """Return the named placeholder for a parameter.

        Default is the pyformat style shared by psycopg and mysql-connector.
        """
        return f'%({name})s'

    @cacheable_strategy('primary_keys', ttl=300, maxsize=50)
    def get_primary_keys(self, cn: 'ConnectionWrapper', table: str,
                         bypass_cache: bool = False) -> list[str]:
        """Get primary key columns for a table

        Args:
            cn: Open database connection
            table: Table name to get primary keys for
            bypass_cache: If True, bypass cache and query database directly, by default False

        Returns
            list: Primary key column names in key order
        """
        return self._query_primary_keys(cn, table)

    @abstractmethod
    def _query_primary_keys(self, cn: 'ConnectionWrapper', table: str) -> list[str]:
        """Run the dialect's metadata query for primary key columns."""
