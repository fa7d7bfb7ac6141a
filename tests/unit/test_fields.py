"""
Unit tests for record type introspection.
"""
import datetime
import enum
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, ClassVar, Optional

import pytest
from dbmapper.exceptions import MappingError
from dbmapper.fields import FieldDescriptor, FieldKind, describe, resolve_kind


class Status(enum.IntEnum):
    NEW = 0
    DONE = 1


@dataclass
class Sample:
    Id: int
    Name: str
    Price: Decimal
    Ratio: float
    Active: bool
    Created: datetime.datetime
    Day: datetime.date
    At: datetime.time
    Blob: bytes
    Note: str | None = None
    State: Status = Status.NEW
    Extra: Any = None
    _hidden: int = 0
    counter: ClassVar[int] = 0


class Plain:
    Id: int
    Name: Optional[str]

    def __init__(self):
        self._secret = 'x'

    @property
    def Upper(self) -> str:
        return (self.Name or '').upper()

    @property
    def Secret(self) -> str:
        return self._secret

    @Secret.setter
    def Secret(self, value: str) -> None:
        self._secret = value


def test_describe_dataclass_order_and_kinds():
    """Fields come back in declaration order with their kinds"""
    descriptors = describe(Sample)
    assert [d.name for d in descriptors] == [
        'Id', 'Name', 'Price', 'Ratio', 'Active', 'Created', 'Day', 'At',
        'Blob', 'Note', 'State', 'Extra',
    ]
    kinds = {d.name: d.kind for d in descriptors}
    assert kinds['Id'] is FieldKind.INTEGER
    assert kinds['Name'] is FieldKind.TEXT
    assert kinds['Price'] is FieldKind.DECIMAL
    assert kinds['Ratio'] is FieldKind.FLOAT
    assert kinds['Active'] is FieldKind.BOOLEAN
    assert kinds['Created'] is FieldKind.DATETIME
    assert kinds['Day'] is FieldKind.DATE
    assert kinds['At'] is FieldKind.TIME
    assert kinds['Blob'] is FieldKind.BINARY
    assert kinds['State'] is FieldKind.INTEGER
    assert kinds['Extra'] is FieldKind.ANY


def test_describe_skips_private_and_classvar():
    names = {d.name for d in describe(Sample)}
    assert '_hidden' not in names
    assert 'counter' not in names


def test_optional_fields_are_nullable():
    descriptors = {d.name: d for d in describe(Sample)}
    assert descriptors['Note'].nullable is True
    assert descriptors['Note'].kind is FieldKind.TEXT
    assert descriptors['Name'].nullable is False


def test_describe_plain_class_with_properties():
    """Annotated attributes first, then properties with their capabilities"""
    descriptors = {d.name: d for d in describe(Plain)}
    assert list(descriptors) == ['Id', 'Name', 'Upper', 'Secret']
    assert descriptors['Name'].nullable is True

    assert descriptors['Upper'].readable is True
    assert descriptors['Upper'].writable is False
    assert descriptors['Upper'].kind is FieldKind.TEXT

    assert descriptors['Secret'].readable is True
    assert descriptors['Secret'].writable is True


def test_column_defaults_to_name():
    d = FieldDescriptor(name='Email', kind=FieldKind.TEXT)
    assert d.column == 'Email'
    assert d.with_column('email_address').column == 'email_address'
    assert d.with_column('email_address').name == 'Email'


@pytest.mark.parametrize(('kind', 'expected'), [
    (FieldKind.INTEGER, 0),
    (FieldKind.FLOAT, 0.0),
    (FieldKind.DECIMAL, Decimal(0)),
    (FieldKind.TEXT, ''),
    (FieldKind.BOOLEAN, False),
    (FieldKind.DATETIME, datetime.datetime.min),
    (FieldKind.DATE, datetime.date.min),
    (FieldKind.TIME, datetime.time.min),
    (FieldKind.BINARY, b''),
    (FieldKind.ANY, None),
])
def test_zero_values(kind, expected):
    assert FieldDescriptor(name='x', kind=kind).zero_value() == expected


def test_nullable_zero_value_is_none():
    assert FieldDescriptor(name='x', kind=FieldKind.INTEGER, nullable=True).zero_value() is None


def test_resolve_kind_multi_type_union_is_any():
    kind, _, nullable = resolve_kind(int | str | None)
    assert kind is FieldKind.ANY
    assert nullable is True


def test_describe_rejects_non_type():
    with pytest.raises(MappingError):
        describe(Sample(1, 'a', Decimal(1), 1.0, True, datetime.datetime.now(),
                        datetime.date.today(), datetime.time(), b''))


def test_describe_rejects_type_without_fields():
    class Empty:
        pass

    with pytest.raises(MappingError, match='no public fields'):
        describe(Empty)


def test_describe_dataclass_with_default_factory():
    @dataclass
    class Bag:
        Items: bytes = field(default_factory=bytes)

    (d,) = describe(Bag)
    assert d.kind is FieldKind.BINARY
