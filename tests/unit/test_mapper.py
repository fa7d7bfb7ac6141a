"""
Unit tests for row <-> record mapping.
"""
import datetime
from dataclasses import dataclass, field
from decimal import Decimal

import numpy as np
import pytest
from dbmapper.exceptions import MappingError
from dbmapper.mapper import bind_parameters, map_row
from dbmapper.mapping import get_mapping
from tests.fixtures.records import Measurement, User


def test_map_row_populates_fields(user_mapping):
    user = map_row({'Id': 7, 'Name': 'Alice', 'Email': 'alice@x.com'}, user_mapping)
    assert user == User(Id=7, Name='Alice', Email='alice@x.com')


def test_map_row_null_becomes_zero_value(user_mapping):
    """NULL maps to '' for a text field and None for an optional one"""
    user = map_row({'Id': None, 'Name': None, 'Email': None}, user_mapping)
    assert user.Id is None
    assert user.Name == ''
    assert user.Email == ''


def test_map_row_matches_columns_case_insensitively(user_mapping):
    user = map_row({'ID': 3, 'name': 'Bob', 'EMAIL': 'b@x'}, user_mapping)
    assert user == User(Id=3, Name='Bob', Email='b@x')


def test_map_row_missing_column_keeps_default(user_mapping):
    user = map_row({'Name': 'Bob'}, user_mapping)
    assert user.Id is None
    assert user.Email == ''


def test_map_row_coerces_to_declared_kind():
    mapping = get_mapping(Measurement)
    row = {
        'Id': '4', 'Label': b'probe', 'Value': Decimal('1.5'), 'Amount': 2.25,
        'Active': 1, 'TakenAt': '2024-03-01 12:00:00', 'TakenOn': '2024-03-01',
        'Payload': memoryview(b'\x00\x01'),
    }
    m = map_row(row, mapping)
    assert m.Id == 4
    assert m.Label == 'probe'
    assert m.Value == 1.5
    assert m.Amount == Decimal('2.25')
    assert m.Active is True
    assert m.TakenAt == datetime.datetime(2024, 3, 1, 12)
    assert m.TakenOn == datetime.date(2024, 3, 1)
    assert m.Payload == b'\x00\x01'


def test_map_row_conversion_failure_propagates(user_mapping):
    with pytest.raises(MappingError, match='Id'):
        map_row({'Id': 'seven', 'Name': 'x', 'Email': 'y'}, user_mapping)


def test_map_row_required_dataclass_fields_get_zero_values():
    @dataclass
    class Strict:
        Id: int
        Name: str
        Tags: list = field(default_factory=list)

    obj = map_row({'Name': 'n'}, get_mapping(Strict))
    assert obj.Id == 0
    assert obj.Name == 'n'


def test_map_row_plain_class_and_properties():
    class Account:
        Id: int
        _balance: Decimal

        def __init__(self):
            self.Id = 0
            self._balance = Decimal(0)

        @property
        def Balance(self) -> Decimal:
            return self._balance

        @Balance.setter
        def Balance(self, value: Decimal) -> None:
            self._balance = value

        @property
        def Label(self) -> str:
            return f'#{self.Id}'

    obj = map_row({'Id': 9, 'Balance': '10.50', 'Label': 'ignored'}, get_mapping(Account))
    assert obj.Id == 9
    assert obj.Balance == Decimal('10.50')
    assert obj.Label == '#9'


def test_map_row_uninstantiable_type():
    class NeedsArgs:
        Id: int

        def __init__(self, required):
            self.required = required

    with pytest.raises(MappingError, match='Cannot instantiate'):
        map_row({'Id': 1}, get_mapping(NeedsArgs))


def test_bind_parameters_reads_readable_fields(user_mapping):
    params = bind_parameters(User(Name='Alice', Email='alice@x.com'), user_mapping)
    assert params == {'Id': None, 'Name': 'Alice', 'Email': 'alice@x.com'}


def test_bind_parameters_null_markers():
    @dataclass
    class Reading:
        Value: float = 0.0
        Count: int = 0

    params = bind_parameters(Reading(Value=np.float64('nan'), Count=np.int64(3)),
                             get_mapping(Reading))
    assert params == {'Value': None, 'Count': 3}


def test_bind_parameters_unset_attribute_is_null():
    class Loose:
        Id: int
        Name: str

    obj = Loose()
    obj.Name = 'set'
    assert bind_parameters(obj, get_mapping(Loose)) == {'Id': None, 'Name': 'set'}


def test_bind_parameters_rejects_other_types(user_mapping):
    with pytest.raises(MappingError, match='Expected User'):
        bind_parameters(Measurement(), user_mapping)
