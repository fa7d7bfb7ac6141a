"""
Transaction handling for batch writes.
"""
import logging
import threading
from typing import Any

from dbmapper.connection import ConnectionWrapper

logger = logging.getLogger(__name__)


_local = threading.local()


class Transaction:
    """Context manager for running multiple commands in a transaction.

    Commits when the block completes and rolls back when it raises. Uses
    thread-local storage to track transaction state; nested transactions
    on the same connection are not supported.

    Examples
        with Transaction(cn) as tx:
            tx.execute('delete from ...', params)
            tx.execute('update ...', params)
    """

    def __init__(self, cn: ConnectionWrapper) -> None:
        self.connection = cn

        if not hasattr(_local, 'active_transactions'):
            _local.active_transactions = {}

        if id(cn) in _local.active_transactions:
            raise RuntimeError('Nested transactions are not supported')

    def __enter__(self):
        _local.active_transactions[id(self.connection)] = True
        self.connection.in_transaction = True
        logger.debug(f'Started transaction for connection {id(self.connection)}')
        return self

    def __exit__(self, exc_type: type | None, value: Exception | None, traceback: Any | None) -> None:
        try:
            if exc_type is not None:
                logger.warning('Rolling back the current transaction')
                try:
                    self.connection.rollback()
                except Exception as e:
                    logger.debug(f'Rollback failed: {e}')
            else:
                self.connection.commit()
                logger.debug(f'Committed transaction for connection {id(self.connection)}')
        finally:
            _local.active_transactions.pop(id(self.connection), None)
            self.connection.in_transaction = False

    def execute(self, sql: str, params: dict[str, Any] | None = None) -> int:
        """Execute SQL within transaction context"""
        return self.connection.execute(sql, params)
