"""
Database connection handling with SQLAlchemy.

This module provides:
1. The `connect()` function for opening a connection from DatabaseOptions
2. The `ConnectionWrapper` class exposing execute/query/commit/rollback
3. Engine creation and management through a thread-safe registry

SQLAlchemy supplies the engine and URL handling; statements run on the raw
DBAPI cursor so the dialect's named placeholders reach the driver as built.
Engines use NullPool: every operation opens a fresh connection and closes
it when done.
"""
import atexit
import logging
import threading
import time
from functools import wraps
from typing import Any, Self

import sqlalchemy as sa
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool

from dbmapper.exceptions import ConnectionFailure, DriverError, QueryError
from dbmapper.options import DatabaseOptions
from dbmapper.strategy import DatabaseStrategy, get_strategy
from dbmapper.types import TypeConverter

__all__ = [
    'ConnectionWrapper',
    'connect',
    'get_engine_for_options',
    'dispose_engine',
    'dispose_all_engines',
]

logger = logging.getLogger(__name__)

_engine_registry: dict[str, Engine] = {}
_engine_registry_lock = threading.RLock()


def _engine_key(options: DatabaseOptions) -> str:
    return repr(options)


def get_engine_for_options(options: DatabaseOptions, **kwargs: Any) -> Engine:
    """Get or create a SQLAlchemy engine for the given options.
    """
    key = _engine_key(options)

    with _engine_registry_lock:
        if key in _engine_registry:
            logger.debug(f'Using existing engine for {options.drivername}')
            return _engine_registry[key]

        strategy = get_strategy(options.drivername)
        url = strategy.build_connection_url(options)

        engine_kwargs: dict[str, Any] = {'echo': False, 'poolclass': NullPool}
        engine_kwargs.update(strategy.get_engine_kwargs(options))
        engine_kwargs.update(kwargs)

        engine = sa.create_engine(url, **engine_kwargs)

        _engine_registry[key] = engine
        logger.debug(f'Created new engine for {options.drivername}')

        return engine


def dispose_engine(options: DatabaseOptions) -> None:
    """Dispose and forget the engine created for these options, if any.
    """
    with _engine_registry_lock:
        engine = _engine_registry.pop(_engine_key(options), None)
    if engine is not None:
        engine.dispose()
        logger.debug(f'Disposed engine for {options.drivername}')


def dispose_all_engines() -> None:
    """Dispose all engines in the registry.
    """
    with _engine_registry_lock:
        for engine in _engine_registry.values():
            engine.dispose()
        _engine_registry.clear()
        logger.debug('All database engines disposed')


atexit.register(dispose_all_engines)


def dumpsql(func):
    """Decorator for logging SQL statements, parameters and timing."""
    @wraps(func)
    def wrapper(self, sql: str, params: dict[str, Any] | None = None):
        start = time.time()
        logger.debug(f'SQL:\n{sql}\nargs: {params}')
        try:
            return func(self, sql, params)
        except Exception:
            logger.error(f'Error with query:\nSQL:\n{sql}\nargs: {params}')
            raise
        finally:
            elapsed = time.time() - start
            self.addcall(elapsed)
            logger.debug(f'Query time: {elapsed:.4f}s')
    return wrapper


class ConnectionWrapper:
    """Wraps a SQLAlchemy connection to run statements and track calls and execution time

    Statements run outside a transaction are committed immediately; inside
    a `Transaction` the caller decides.
    """

    def __init__(self, sa_connection: sa.engine.Connection, options: DatabaseOptions,
                 strategy: DatabaseStrategy) -> None:
        self.sa_connection = sa_connection
        self.dbapi_connection = sa_connection.connection.dbapi_connection
        self.options = options
        self.strategy = strategy
        self.calls = 0
        self.time = 0
        self.in_transaction = False

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        """Close the connection, never masking an exception raised in the block.
        """
        try:
            self.close()
        except Exception as e:
            logger.debug(f'Error closing connection in __exit__: {e}')

    @property
    def dialect(self) -> str:
        return self.strategy.dialect_name

    @property
    def cache_namespace(self) -> str:
        """Identity of the database this connection points to."""
        return self.options.cache_namespace

    @property
    def closed(self) -> bool:
        return self.sa_connection.closed

    def addcall(self, elapsed: float) -> None:
        """Track execution statistics
        """
        self.time += elapsed
        self.calls += 1

    def _run(self, sql: str, params: dict[str, Any] | None) -> Any:
        cursor = self.dbapi_connection.cursor()
        params = TypeConverter.convert_params(params)
        try:
            if params:
                cursor.execute(sql, params)
            else:
                cursor.execute(sql)
        except DriverError as err:
            cursor.close()
            raise QueryError(str(err)) from err
        return cursor

    @dumpsql
    def execute(self, sql: str, params: dict[str, Any] | None = None) -> int:
        """Execute a statement and return the affected row count.
        """
        cursor = self._run(sql, params)
        try:
            rowcount = cursor.rowcount
        finally:
            cursor.close()
        if not self.in_transaction:
            self.commit()
        return rowcount

    @dumpsql
    def query(self, sql: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        """Execute a query and return its rows as column -> value dicts.
        """
        cursor = self._run(sql, params)
        try:
            if cursor.description is None:
                return []
            columns = [col[0] for col in cursor.description]
            rows = [dict(zip(columns, row)) for row in cursor.fetchall()]
        except DriverError as err:
            raise QueryError(str(err)) from err
        finally:
            cursor.close()
        logger.debug(f'Query returned {len(rows)} rows')
        return rows

    def commit(self) -> None:
        """Commit on the DBAPI connection."""
        try:
            self.dbapi_connection.commit()
        except DriverError as err:
            raise QueryError(f'Commit failed: {err}') from err

    def rollback(self) -> None:
        """Roll back on the DBAPI connection."""
        try:
            self.dbapi_connection.rollback()
        except DriverError as err:
            raise QueryError(f'Rollback failed: {err}') from err

    def close(self) -> None:
        """Close the SQLAlchemy connection
        """
        if self.sa_connection.closed:
            return
        self.sa_connection.close()
        logger.debug(f'Connection closed: {self.calls} queries in {self.time:.2f}s '
                     f'(avg: {self.time/max(1, self.calls):.3f}s per query)')


def connect(options: DatabaseOptions) -> ConnectionWrapper:
    """Open a connection for the given options.

    Raises
        ConnectionFailure: If the database cannot be reached or the new
            connection cannot be configured.
    """
    strategy = get_strategy(options.drivername)
    engine = get_engine_for_options(options)

    try:
        sa_connection = engine.connect()
    except DriverError as err:
        logger.error(f'Cannot connect to {options.cache_namespace}: {err}')
        raise ConnectionFailure(f'Cannot connect to {options.cache_namespace}: {err}') from err

    try:
        strategy.configure_connection(sa_connection.connection.dbapi_connection)
    except DriverError as err:
        sa_connection.close()
        raise ConnectionFailure(f'Cannot configure connection: {err}') from err

    logger.debug(f'Opened connection to {options.cache_namespace}')
    return ConnectionWrapper(sa_connection, options, strategy)
