"""Logging facility

Package modules log through `logging.getLogger(__name__)`. This module adds
an optional daily log file for the `dbmapper` logger: one file per day
named ``<YYYY-MM-DD><suffix>`` inside the log directory, with files older
than the retention period removed as new entries are written.
"""
import datetime
import logging
import pathlib
import time
from dataclasses import dataclass

__all__ = [
    'LEVELS',
    'LogSettings',
    'DailyFileHandler',
    'setup',
    'write_message',
    'write_exception',
]

LEVELS = {
    'DEBUG': logging.DEBUG,
    'INFO': logging.INFO,
    'WARNING': logging.WARNING,
    'WARN': logging.WARNING,
    'ERROR': logging.ERROR,
    'CRITICAL': logging.CRITICAL,
}

DEFAULT_PATH = './logs'
DEFAULT_SUFFIX = '_Log.log'
DEFAULT_SAVE_DAYS = 30

LOG_FORMAT = '%(asctime)s >>> [%(levelname)s] : %(message)s'
DATE_FORMAT = '%d.%m.%Y %H:%M:%S'

PACKAGE_LOGGER = 'dbmapper'

logger = logging.getLogger(PACKAGE_LOGGER)


@dataclass
class LogSettings:
    """Log file location and retention.

    Invalid values fall back to the defaults instead of raising: an empty
    path or suffix uses the default, a custom suffix ``x`` becomes
    ``_x.log``, and fewer than one day of retention means 30 days.
    """
    path: str | pathlib.Path = DEFAULT_PATH
    suffix: str = DEFAULT_SUFFIX
    save_days: int = DEFAULT_SAVE_DAYS

    def __post_init__(self):
        self.path = pathlib.Path(self.path or DEFAULT_PATH)
        if not self.suffix:
            self.suffix = DEFAULT_SUFFIX
        elif self.suffix != DEFAULT_SUFFIX:
            self.suffix = f'_{self.suffix}.log'
        try:
            self.save_days = int(self.save_days)
        except (TypeError, ValueError):
            self.save_days = DEFAULT_SAVE_DAYS
        if self.save_days < 1:
            self.save_days = DEFAULT_SAVE_DAYS


class DailyFileHandler(logging.Handler):
    """
    Logging handler appending to a file named after the current date.

    After each write, files in the log directory ending with the suffix
    and last modified more than `save_days` ago are deleted.
    """

    def __init__(self, settings: LogSettings | None = None, level=logging.NOTSET):
        super().__init__(level)
        self.settings = settings or LogSettings()
        self.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))

    @property
    def current_file(self) -> pathlib.Path:
        today = datetime.date.today().strftime('%Y-%m-%d')
        return self.settings.path / f'{today}{self.settings.suffix}'

    def emit(self, record):
        try:
            msg = self.format(record)
            self.settings.path.mkdir(parents=True, exist_ok=True)
            with self.current_file.open('a', encoding='utf-8') as f:
                f.write(msg + '\n')
        except (KeyboardInterrupt, SystemExit):
            raise
        except Exception:
            self.handleError(record)
            return
        self.remove_old_files()

    def remove_old_files(self) -> None:
        """Delete expired log files; failures are ignored."""
        cutoff = time.time() - self.settings.save_days * 86400
        try:
            for path in self.settings.path.glob(f'*{self.settings.suffix}'):
                if path.stat().st_mtime < cutoff:
                    path.unlink()
        except OSError:
            pass


def setup(path: str | pathlib.Path | None = None, suffix: str | None = None,
          save_days: int | None = None, level: str = 'DEBUG') -> DailyFileHandler:
    """Attach a daily file handler to the package logger.

    Calling again replaces the previously installed handler.
    """
    settings = LogSettings(path or DEFAULT_PATH, suffix or DEFAULT_SUFFIX,
                           DEFAULT_SAVE_DAYS if save_days is None else save_days)
    for handler in list(logger.handlers):
        if isinstance(handler, DailyFileHandler):
            logger.removeHandler(handler)
            handler.close()

    handler = DailyFileHandler(settings)
    logger.addHandler(handler)
    logger.setLevel(LEVELS.get(level.upper(), logging.DEBUG))
    return handler


def write_message(level: str, text: str) -> None:
    """Log a message at a named level; unknown levels log as INFO."""
    logger.log(LEVELS.get(str(level).upper(), logging.INFO), text)


def write_exception(exc: BaseException) -> None:
    """Log an exception with its traceback at ERROR."""
    logger.error(str(exc), exc_info=exc)
