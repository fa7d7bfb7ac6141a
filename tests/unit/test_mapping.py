"""
Unit tests for the type -> table mapping registry.
"""
from dataclasses import dataclass

import pytest
from dbmapper.exceptions import MappingError
from dbmapper.mapping import get_mapping, register, table_name, unregister
from tests.fixtures.records import User


def test_identity_convention(user_mapping):
    """Unregistered types map to a table of the same name"""
    assert user_mapping.table == 'User'
    assert user_mapping.columns == ['Id', 'Name', 'Email']
    assert table_name(User) == 'User'


def test_register_decorator_with_overrides():
    @register(table='accounts', columns={'Name': 'account_name'})
    @dataclass
    class Account:
        Id: int = 0
        Name: str = ''

    mapping = get_mapping(Account)
    assert mapping.table == 'accounts'
    assert mapping.columns == ['Id', 'account_name']
    assert mapping.field_for_column('account_name').name == 'Name'


def test_register_bare_decorator_and_plain_call():
    @register
    @dataclass
    class Order:
        Id: int = 0

    assert get_mapping(Order).table == 'Order'

    register(User, table='users')
    assert table_name(User) == 'users'


def test_registered_mapping_is_reused():
    register(User)
    assert get_mapping(User) is get_mapping(User)


def test_unregistered_types_are_described_each_call():
    assert get_mapping(User) is not get_mapping(User)
    assert get_mapping(User) == get_mapping(User)


def test_unregister_restores_convention():
    register(User, table='users')
    unregister(User)
    assert table_name(User) == 'User'


def test_register_unknown_column_override():
    with pytest.raises(MappingError, match='no field'):
        register(User, columns={'Missing': 'x'})


def test_field_for_column_is_case_insensitive(user_mapping):
    assert user_mapping.field_for_column('EMAIL').name == 'Email'
    assert user_mapping.field_for_column('id').name == 'Id'
    assert user_mapping.field_for_column('nope') is None
