import json
import logging
import pathlib
from dataclasses import dataclass, fields, replace
from typing import Any

from dbmapper.exceptions import ConfigurationError
from dbmapper.strategy import get_available_dialects, get_strategy_class
from dbmapper.strategy import is_supported_dialect

__all__ = [
    'DatabaseOptions',
    'DEFAULT_SETTINGS_PATH',
    'load_options',
]

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_PATH = './appsettings.json'

# settings file key -> option field
_SETTINGS_KEYS = {
    'driver': 'drivername',
    'host': 'hostname',
    'port': 'port',
    'user': 'username',
    'password': 'password',
    'database': 'database',
    'timeout': 'timeout',
    'charset': 'charset',
}


def _parse_positive_int(value: Any) -> int:
    """Parse a numeric setting, returning 0 when it is missing or not a positive integer."""
    try:
        number = int(value)
    except (TypeError, ValueError):
        return 0
    return max(number, 0)


@dataclass
class DatabaseOptions:
    """Options

    supported driver names: `mysql`, `postgresql`, `sqlite`

    A missing or invalid port falls back to the dialect default (3306 for
    MySQL, 5432 for PostgreSQL). Required settings per dialect are checked
    here, so a `Database` can never be built from incomplete options.

    cache_keys: keep discovered primary keys in the TTL cache (default: True)
    """
    drivername: str = 'mysql'
    hostname: str = None
    username: str = None
    password: str = None
    database: str = None
    port: int = 0
    timeout: int = 0
    charset: str = 'utf8mb4'
    cache_keys: bool = True

    def __post_init__(self):
        if not is_supported_dialect(self.drivername):
            available = get_available_dialects()
            raise ConfigurationError(f'drivername must be one of: {available}')
        strategy_cls = get_strategy_class(self.drivername)
        self.port = _parse_positive_int(self.port) or strategy_cls.default_port
        self.timeout = _parse_positive_int(self.timeout)
        strategy_cls.validate_options(self)

    @property
    def cache_namespace(self) -> str:
        """Identity of the target database, used to key metadata caches."""
        return f'{self.drivername}://{self.hostname or ""}:{self.port}/{self.database}'

    @classmethod
    def from_dict(cls, data: dict[str, Any], **kw: Any) -> 'DatabaseOptions':
        """Build options from a dict of option fields, ignoring unknown keys.
        """
        names = {f.name for f in fields(cls)}
        values = {k: v for k, v in {**data, **kw}.items() if k in names}
        ignored = set(data) - names
        if ignored:
            logger.debug(f'Ignoring unknown options: {sorted(ignored)}')
        return cls(**values)

    @classmethod
    def from_json(cls, path: str | pathlib.Path = DEFAULT_SETTINGS_PATH,
                  **kw: Any) -> 'DatabaseOptions':
        """Load options from a JSON settings file.

        The file uses the keys `host`, `port`, `user`, `password` and
        `database` (plus optional `driver`, `timeout`, `charset`).

        Raises
            ConfigurationError: If the file is missing, unreadable or incomplete.
        """
        path = pathlib.Path(path)
        try:
            settings = json.loads(path.read_text(encoding='utf-8'))
        except FileNotFoundError as err:
            raise ConfigurationError(f'Settings file not found: {path}') from err
        except (OSError, json.JSONDecodeError) as err:
            raise ConfigurationError(f'Cannot read settings file {path}: {err}') from err

        if not isinstance(settings, dict):
            raise ConfigurationError(f'Settings file {path} must contain a JSON object')

        data = {_SETTINGS_KEYS[k]: v for k, v in settings.items() if k in _SETTINGS_KEYS}
        logger.debug(f'Loaded settings from {path}')
        return cls.from_dict(data, **kw)


def load_options(options: 'DatabaseOptions | dict[str, Any] | str | pathlib.Path | None' = None,
                 **kw: Any) -> DatabaseOptions:
    """Normalize the accepted option forms into a DatabaseOptions.

    Args:
        options: Can be:
                - DatabaseOptions object
                - String path to a JSON settings file
                - Dictionary of options
                - None, with options specified as keyword arguments
        **kw: Additional keyword arguments to override options
    """
    if isinstance(options, DatabaseOptions):
        return replace(options, **kw) if kw else options
    if isinstance(options, (str, pathlib.Path)):
        return DatabaseOptions.from_json(options, **kw)
    return DatabaseOptions.from_dict(options or {}, **kw)
