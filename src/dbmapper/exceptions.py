"""
Mapper-specific exception classes.
"""
import sqlite3

import mysql.connector
import psycopg
import sqlalchemy.exc


class DatabaseError(Exception):
    """Base class for all dbmapper errors.
    """


class ConfigurationError(DatabaseError, ValueError):
    """Missing or invalid connection setting.
    """


class ConnectionFailure(DatabaseError):
    """Error establishing or maintaining database connection.
    """


class QueryError(DatabaseError):
    """Error in query syntax or execution.
    """


class MappingError(DatabaseError):
    """A value could not be converted between a column and a record field.
    """


class SQLSynthesisError(DatabaseError):
    """A statement cannot be built from the available fields and keys.
    """


class ValidationError(DatabaseError):
    """Error in input validation.
    """


DriverError = (
    sqlalchemy.exc.DBAPIError,
    psycopg.Error,
    mysql.connector.Error,
    sqlite3.Error,
    )
