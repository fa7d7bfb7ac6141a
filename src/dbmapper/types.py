"""
Type handling between record fields and database values.

This module provides:
- TypeConverter: Convert Python values to database-compatible parameters
- coerce: Convert database values to a field's declared kind
"""
import datetime
import logging
import math
from decimal import Decimal
from typing import Any

import dateutil.parser
import numpy as np
import pandas as pd

from dbmapper.exceptions import MappingError
from dbmapper.fields import FieldDescriptor, FieldKind

logger = logging.getLogger(__name__)

NUMPY_FLOAT_TYPES = (np.floating,)
NUMPY_INT_TYPES = (np.integer, np.unsignedinteger)

_TRUE_STRINGS = {'true', 't', 'yes', 'y', '1'}
_FALSE_STRINGS = {'false', 'f', 'no', 'n', '0'}


# Type Converter - Handles Python -> Database value conversion

def _convert_numpy_value(val: Any) -> Any:
    """Convert NumPy value to Python type."""
    if isinstance(val, np.floating) and np.isnan(val):
        return None

    if isinstance(val, np.datetime64):
        if np.isnat(val):
            return None
        return pd.Timestamp(val).to_pydatetime()

    if isinstance(val, np.bool_):
        return bool(val)

    return val.item()


class TypeConverter:
    """Conversion of bound parameters to values every driver accepts.

    Handles NumPy and Pandas scalars; NaN, infinities, NaT and pd.NA become
    None, the DB-API null marker.
    """

    @staticmethod
    def convert_value(value: Any) -> Any:
        """Convert a single value to a database-compatible format."""
        if value is None:
            return None

        if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
            return None

        if isinstance(value, (*NUMPY_FLOAT_TYPES, *NUMPY_INT_TYPES, np.bool_, np.datetime64)):
            return _convert_numpy_value(value)

        if value is pd.NaT or value is pd.NA:
            return None

        if isinstance(value, pd.Timestamp):
            return value.to_pydatetime()

        if isinstance(value, bytearray | memoryview):
            return bytes(value)

        return value

    @staticmethod
    def convert_params(params: dict[str, Any] | None) -> dict[str, Any] | None:
        """Convert a mapping of named parameters for database operations."""
        if params is None:
            return None
        return {k: TypeConverter.convert_value(v) for k, v in params.items()}


# Coercion - Database value -> declared field kind

def _fail(value: Any, field: FieldDescriptor, reason: str = '') -> MappingError:
    detail = f': {reason}' if reason else ''
    return MappingError(f'Cannot convert {value!r} ({type(value).__name__}) '
                        f'to {field.kind.value} for field {field.name!r}{detail}')


def _to_text(value: Any) -> str:
    if isinstance(value, bytes | bytearray | memoryview):
        return bytes(value).decode('utf-8')
    if isinstance(value, datetime.date | datetime.time):
        return value.isoformat()
    if isinstance(value, str | int | float | Decimal):
        return str(value)
    raise TypeError('unsupported source type')


def _to_integer(value: Any) -> int:
    if isinstance(value, bool | int):
        return int(value)
    if isinstance(value, float | Decimal):
        if value != int(value):
            raise ValueError('not integral')
        return int(value)
    if isinstance(value, str | bytes | bytearray):
        return int(_to_text(value).strip())
    raise TypeError('unsupported source type')


def _to_float(value: Any) -> float:
    if isinstance(value, bool | int | float | Decimal):
        return float(value)
    if isinstance(value, str | bytes | bytearray):
        return float(_to_text(value).strip())
    raise TypeError('unsupported source type')


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool | int):
        return Decimal(int(value))
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, str | bytes | bytearray):
        return Decimal(_to_text(value).strip())
    raise TypeError('unsupported source type')


def _to_boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int | Decimal):
        return value != 0
    if isinstance(value, str | bytes | bytearray):
        text = _to_text(value).strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
        raise ValueError('not a boolean literal')
    raise TypeError('unsupported source type')


def _to_datetime(value: Any) -> datetime.datetime:
    if isinstance(value, datetime.datetime):
        return value
    if isinstance(value, datetime.date):
        return datetime.datetime.combine(value, datetime.time.min)
    if isinstance(value, str | bytes | bytearray):
        return dateutil.parser.isoparse(_to_text(value).strip())
    raise TypeError('unsupported source type')


def _to_date(value: Any) -> datetime.date:
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if isinstance(value, str | bytes | bytearray):
        return dateutil.parser.isoparse(_to_text(value).strip()).date()
    raise TypeError('unsupported source type')


def _to_time(value: Any) -> datetime.time:
    if isinstance(value, datetime.time):
        return value
    if isinstance(value, datetime.datetime):
        return value.time()
    if isinstance(value, datetime.timedelta):
        # MySQL TIME columns arrive as timedelta
        if not datetime.timedelta(0) <= value < datetime.timedelta(days=1):
            raise ValueError(f'{value} is outside the time of day range')
        return (datetime.datetime.min + value).time()
    if isinstance(value, str | bytes | bytearray):
        return datetime.time.fromisoformat(_to_text(value).strip())
    raise TypeError('unsupported source type')


def _to_binary(value: Any) -> bytes:
    if isinstance(value, bytes | bytearray | memoryview):
        return bytes(value)
    if isinstance(value, str):
        return value.encode('utf-8')
    raise TypeError('unsupported source type')


_CONVERTERS = {
    FieldKind.INTEGER: _to_integer,
    FieldKind.FLOAT: _to_float,
    FieldKind.DECIMAL: _to_decimal,
    FieldKind.TEXT: _to_text,
    FieldKind.BOOLEAN: _to_boolean,
    FieldKind.DATETIME: _to_datetime,
    FieldKind.DATE: _to_date,
    FieldKind.TIME: _to_time,
    FieldKind.BINARY: _to_binary,
}


def coerce(value: Any, field: FieldDescriptor) -> Any:
    """Convert a non-null database value to the field's declared kind.

    Values of kind ANY pass through untouched. Subclasses of the target
    type (an IntEnum for an int field, say) are built from the converted
    value.

    Raises
        MappingError: If the value cannot be represented as the field's kind.
    """
    if field.kind is FieldKind.ANY:
        return value

    try:
        converted = _CONVERTERS[field.kind](value)
    except (TypeError, ValueError, ArithmeticError) as err:
        raise _fail(value, field, str(err)) from err

    target = field.python_type
    if isinstance(target, type) and not isinstance(converted, target):
        try:
            converted = target(converted)
        except (TypeError, ValueError) as err:
            raise _fail(value, field, str(err)) from err
    return converted
