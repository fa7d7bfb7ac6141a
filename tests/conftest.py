import pathlib
import site

import pytest
from dbmapper.cache import Cache
from dbmapper.connection import dispose_all_engines
from dbmapper.mapping import clear_registry

HERE = pathlib.Path(pathlib.Path(__file__).resolve()).parent
site.addsitedir(HERE)


@pytest.fixture(autouse=True)
def clear_caches():
    """Clear key caches and registered mappings before and after each test to ensure test isolation."""
    Cache.get_instance().clear_all()
    clear_registry()
    yield
    Cache.get_instance().clear_all()
    clear_registry()
    dispose_all_engines()


pytest_plugins = [
    'tests.fixtures.records',
    'tests.fixtures.sqlite',
]
