"""
Unit tests for the Database orchestrator that need no live database.
"""
import json
from collections import deque

import pytest
from dbmapper import Database, WriteResult
from dbmapper.exceptions import ConfigurationError, MappingError, QueryError
from dbmapper.exceptions import ValidationError
from dbmapper.mapping import register
from dbmapper.options import DatabaseOptions
from dbmapper.session import _as_batch
from tests.fixtures.records import Holding, User

SERVER = {
    'hostname': 'testhost',
    'username': 'testuser',
    'password': 'testpass',
    'database': 'testdb',
}


@pytest.fixture
def database():
    return Database(SERVER)


@pytest.fixture
def mock_connect(mocker):
    """Patch Database.connect with a mocked connection"""
    cn = mocker.MagicMock()
    cn.__enter__.return_value = cn
    cn.__exit__.return_value = False
    cn.cache_namespace = 'mysql://testhost:3306/testdb'
    cn.in_transaction = False
    return mocker.patch.object(Database, 'connect', return_value=cn)


def test_construction_opens_no_connection(mocker):
    connect = mocker.patch('dbmapper.session.connect')
    Database(SERVER)
    connect.assert_not_called()


def test_construction_forms(tmp_path):
    assert Database(DatabaseOptions(**SERVER)).options.hostname == 'testhost'
    assert Database(**SERVER).options.port == 3306
    assert Database(SERVER, port=3310).options.port == 3310

    path = tmp_path / 'appsettings.json'
    path.write_text(json.dumps({'host': 'h', 'user': 'u', 'password': 'p', 'database': 'd'}))
    assert Database.from_settings(path).options.hostname == 'h'
    assert Database(str(path)).options.database == 'd'


def test_construction_requires_settings():
    with pytest.raises(ConfigurationError):
        Database({'hostname': 'h'})


def test_write_result_truthiness():
    assert WriteResult(True)
    assert not WriteResult(False, error=RuntimeError('x'))
    assert WriteResult(True, 3).rowcount == 3


@pytest.mark.parametrize(('records', 'expected'), [
    (None, []),
    ([], []),
    (User(Name='a'), [User(Name='a')]),
    ((User(Name='a'), User(Name='b')), [User(Name='a'), User(Name='b')]),
])
def test_as_batch(records, expected):
    assert _as_batch(records) == expected


def test_as_batch_accepts_generators():
    assert _as_batch(User(Name=n) for n in 'ab') == [User(Name='a'), User(Name='b')]


def test_as_batch_accepts_any_iterable():
    users = [User(Name='a'), User(Name='b')]
    assert _as_batch(deque(users)) == users
    assert _as_batch(dict(enumerate(users)).values()) == users


def test_as_batch_keeps_iterable_records_whole():
    @register
    class Pair:
        Left: str
        Right: str

        def __init__(self, Left='', Right=''):
            self.Left = Left
            self.Right = Right

        def __iter__(self):
            return iter((self.Left, self.Right))

    pair = Pair('x', 'y')
    assert _as_batch(pair) == [pair]


@pytest.mark.parametrize('method', ['insert', 'update', 'delete'])
@pytest.mark.parametrize('records', [None, []])
def test_empty_batch_succeeds_without_connecting(database, mock_connect, method, records):
    result = getattr(database, method)(records)
    assert result
    assert result.rowcount == 0
    mock_connect.assert_not_called()


def test_mixed_record_types_are_rejected(database, mock_connect):
    result = database.insert([User(Name='a'), Holding(Account='x')])
    assert not result
    assert isinstance(result.error, ValidationError)
    mock_connect.assert_not_called()


@pytest.mark.parametrize('sql', ['', '   ', None])
def test_execute_raw_rejects_empty_sql(database, mock_connect, sql):
    with pytest.raises(ValidationError):
        database.execute_raw(sql)
    mock_connect.assert_not_called()


def test_select_resets_one_shot_filter_on_failure(database, mock_connect):
    cn = mock_connect.return_value
    cn.query.side_effect = QueryError('boom')
    database.where = 'WHERE bogus'

    with pytest.raises(QueryError):
        database.select(User)

    assert database.where == ''
    assert cn.query.call_args[0][0] == 'SELECT * FROM `User` WHERE bogus'


def test_select_argument_overrides_attribute(database, mock_connect):
    cn = mock_connect.return_value
    cn.query.return_value = [{'Id': 1, 'Name': 'Alice', 'Email': 'a@x'}]
    database.where = 'WHERE ignored'

    assert database.select(User, where='WHERE Id = 1') == [User(1, 'Alice', 'a@x')]
    assert cn.query.call_args[0][0] == 'SELECT * FROM `User` WHERE Id = 1'
    assert database.where == ''


def test_update_failure_reports_error(database, mock_connect, mocker):
    """Missing key field yields a failed result carrying the cause"""
    mocker.patch.object(Database, 'primary_keys', return_value=['UserId'])
    result = database.update(User(Id=1, Name='Bob'))
    assert not result
    assert 'no matching field' in str(result.error)


def test_invalidate_keys(database, mocker):
    cache = mocker.patch('dbmapper.session.Cache.get_instance').return_value

    database.invalidate_keys(User)
    cache.clear_for_table.assert_called_once_with('User', 'mysql://testhost:3306/testdb')

    database.invalidate_keys()
    cache.clear_namespace.assert_called_once_with('mysql://testhost:3306/testdb')


def test_cache_keys_option_bypasses_cache(mocker):
    database = Database(SERVER, cache_keys=False)
    get_primary_keys = mocker.patch.object(database.strategy, 'get_primary_keys',
                                           return_value=['Id'])
    assert database.primary_keys(mocker.Mock(), 'User') == ['Id']
    assert get_primary_keys.call_args.kwargs['bypass_cache'] is True


def test_select_logs_mapping_failure(database, mock_connect, caplog):
    class Empty:
        pass

    with pytest.raises(MappingError):
        database.select(Empty)

    assert 'Select of Empty failed' in caplog.text
    mock_connect.assert_not_called()


def test_insert_on_postgres_resolves_keys(mocker):
    cn = mocker.MagicMock()
    cn.__enter__.return_value = cn
    cn.__exit__.return_value = False
    cn.in_transaction = False
    cn.execute.return_value = 1
    mocker.patch.object(Database, 'connect', return_value=cn)
    primary_keys = mocker.patch.object(Database, 'primary_keys', return_value=['Id'])

    database = Database(SERVER, drivername='postgresql')
    assert database.insert(User(Name='Alice', Email='a@x'))

    primary_keys.assert_called_once()
    sql, params = cn.execute.call_args[0]
    assert sql == 'INSERT INTO "User" ("Id", "Name", "Email") VALUES (DEFAULT, %(Name)s, %(Email)s)'
    assert params == {'Name': 'Alice', 'Email': 'a@x'}


def test_insert_on_mysql_skips_key_lookup(database, mock_connect, mocker):
    primary_keys = mocker.patch.object(Database, 'primary_keys')
    mock_connect.return_value.execute.return_value = 1
    assert database.insert(User(Name='Alice'))
    primary_keys.assert_not_called()
