"""
Record-to-table mapping for MySQL, PostgreSQL and SQLite.

Plain Python classes (dataclasses or annotated classes) map onto tables:
the class name is the table name and each public field is a column, unless
overridden with `register()`. `Database` reads rows into records and writes
records back with statements generated from the mapping; primary keys are
discovered from the live database.
"""
__version__ = '0.1.0'

from dbmapper.connection import ConnectionWrapper, connect
from dbmapper.exceptions import ConfigurationError, ConnectionFailure
from dbmapper.exceptions import DatabaseError, MappingError, QueryError
from dbmapper.exceptions import SQLSynthesisError, ValidationError
from dbmapper.fields import FieldDescriptor, FieldKind, describe
from dbmapper.mapping import TableMapping, get_mapping, register, table_name
from dbmapper.mapping import unregister
from dbmapper.options import DatabaseOptions
from dbmapper.session import Database, WriteResult
from dbmapper.transaction import Transaction as transaction

__all__ = [
    'Database',
    'WriteResult',
    'DatabaseOptions',
    'ConnectionWrapper',
    'connect',
    'transaction',
    'register',
    'unregister',
    'get_mapping',
    'table_name',
    'describe',
    'TableMapping',
    'FieldDescriptor',
    'FieldKind',
    'DatabaseError',
    'ConfigurationError',
    'ConnectionFailure',
    'QueryError',
    'MappingError',
    'SQLSynthesisError',
    'ValidationError',
]
