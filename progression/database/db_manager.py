import logging
import os
from functools import wraps
from typing import Any, Callable, Iterable, List, Optional, TypeVar

import psycopg
from psycopg import errors as pg_errors
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from progression.utils.config import Settings

T = TypeVar('T')

logger = logging.getLogger(__name__)


def require_connection(func: Callable) -> Callable:
    '''Decorator to ensure DBManager is used within a context manager.'''

    @wraps(func)
    def wrapper(self: 'DBManager', *args, **kwargs) -> Any:
        if self._conn is None:
            raise RuntimeError(
                'DBManager is not in a context. Use "with DBManager() as db:"'
            )
        return func(self, *args, **kwargs)

    return wrapper


def _database_url(db_url: Optional[str] = None) -> str:
    conninfo = db_url or os.getenv('DATABASE_URL')
    if not conninfo:
        raise RuntimeError('DATABASE_URL is not set.')
    return conninfo


def _connect_kwargs(settings: Settings) -> dict[str, Any]:
    # Bound every statement so a stuck query surfaces as an error
    return {
        'row_factory': dict_row,
        'options': f'-c statement_timeout={int(settings.db_statement_timeout_ms)}',
    }


class DBManager:
    '''Postgres connection scope: one transaction per ``with`` block.

    Commits on clean exit and rolls back when the block raises.
    '''

    # Shared pool across the process
    _pool: Optional[ConnectionPool] = None
    _settings: Settings = Settings()

    def __init__(self) -> None:
        self._conn: Optional[psycopg.Connection] = None
        self._from_pool: bool = False
        # Set once a statement ran in the current transaction
        self._dirty: bool = False

    @classmethod
    def configure(cls, settings: Settings) -> None:
        cls._settings = settings

    @classmethod
    def init_pool(cls, db_url: Optional[str] = None, min_size: int = 1) -> None:
        '''Initialize a global connection pool for reuse across requests.'''
        if cls._pool is not None:
            return
        cls._pool = ConnectionPool(
            conninfo=_database_url(db_url),
            min_size=min_size,
            max_size=cls._settings.db_pool_max_size,
            timeout=cls._settings.db_pool_timeout_s,
            kwargs=_connect_kwargs(cls._settings),
            open=True,
        )
        logger.info('Initialized Postgres connection pool')

    @classmethod
    def close_pool(cls) -> None:
        '''Close the global connection pool if it exists.'''
        if cls._pool is not None:
            try:
                cls._pool.close()
            finally:
                cls._pool = None

    def _open(self) -> None:
        pool = self.__class__._pool
        if pool is not None:
            self._conn = pool.getconn(timeout=self._settings.db_pool_timeout_s)
            self._from_pool = True
        else:
            self._conn = psycopg.connect(
                _database_url(),
                connect_timeout=max(1, int(self._settings.db_pool_timeout_s)),
                **_connect_kwargs(self._settings),
            )
            self._from_pool = False

    def _release(self) -> None:
        conn, self._conn = self._conn, None
        if conn is None:
            return
        pool = self.__class__._pool
        if self._from_pool and pool is not None:
            # a broken connection is discarded by the pool on put
            pool.putconn(conn)
        else:
            conn.close()
        self._from_pool = False

    def __enter__(self) -> 'DBManager':
        self._open()
        self._dirty = False
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._conn is None:
            return
        try:
            if exc_type is None:
                self._conn.commit()
            else:
                self._conn.rollback()
        finally:
            self._release()
            self._dirty = False

    def _run_with_retry(self, fn: Callable[[], T]) -> T:
        '''Run a statement, reconnecting once if the connection dropped.

        Only the first statement of a transaction is retried; later ones
        would silently lose the work done on the dead connection.
        '''
        try:
            result = fn()
        except pg_errors.QueryCanceled:
            raise
        except (psycopg.OperationalError, psycopg.InterfaceError) as e:
            if self._dirty:
                raise
            logger.warning(
                f'DB operation failed due to connection issue: {e}. '
                f'Reconnecting and retrying once...'
            )
            self._release()
            self._open()
            result = fn()
        self._dirty = True
        return result

    def _exec(self, query: str, params: Iterable[Any] | None) -> None:
        assert self._conn is not None
        with self._conn.cursor() as cur:
            cur.execute(query, tuple(params or ()))

    def _select(self, query: str, params: Iterable[Any] | None) -> List[dict[str, Any]]:
        assert self._conn is not None
        with self._conn.cursor() as cur:
            cur.execute(query, tuple(params or ()))
            return cur.fetchall() if cur.description else []

    @require_connection
    def execute(self, query: str, params: Iterable[Any] | None = None) -> None:
        '''Execute a single SQL statement.'''
        try:
            self._run_with_retry(lambda: self._exec(query, params))
        except psycopg.Error as e:
            logger.error(f'Postgres execute() error: {e}\nQuery: {query}')
            raise

    @require_connection
    def fetchall(
        self, query: str, params: Iterable[Any] | None = None
    ) -> List[dict[str, Any]]:
        '''Return all rows as a list of dictionaries.'''
        try:
            return self._run_with_retry(lambda: self._select(query, params))
        except psycopg.Error as e:
            logger.error(f'Postgres fetchall() error: {e}\nQuery: {query}')
            raise

    @require_connection
    def fetchone(
        self, query: str, params: Iterable[Any] | None = None
    ) -> Optional[dict[str, Any]]:
        '''Return a single row as a dictionary, or None if no result.'''
        rows = self.fetchall(query, params)
        return rows[0] if rows else None
