"""
Database handle contract and its SQLAlchemy/psycopg implementation.

Models only need three operations from a database handle:
- execute(sql, *args) - run a statement and return the affected row count
- query(sql, *args) - run a query and return all rows
- query_row(sql, *args) - return the first row or raise NoRowsError

Statements use PostgreSQL's `$n` positional placeholders. `ConnectionWrapper`
converts them for psycopg and checks a pooled connection out of a SQLAlchemy
engine for every call, so one wrapper can be shared between threads.
"""
import atexit
import logging
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from functools import wraps
from typing import Any, Protocol, TypeVar

import sqlalchemy as sa
from pgmodel.exceptions import DbConnectionError, NoRowsError, is_retryable_error
from pgmodel.options import DatabaseOptions
from pgmodel.sql import to_driver_sql
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool

__all__ = [
    'Handle',
    'ConnectionWrapper',
    'connect',
    'check_connection',
    'create_url_from_options',
    'get_engine_for_options',
    'dispose_all_engines',
]

logger = logging.getLogger(__name__)

T = TypeVar('T')
_engine_registry: dict[str, Engine] = {}
_engine_registry_lock = threading.RLock()


class Handle(Protocol):
    """Anything that can execute `$n`-parameterized SQL for a model.
    """

    def execute(self, sql: str, *args: Any) -> int: ...

    def query(self, sql: str, *args: Any) -> list[tuple]: ...

    def query_row(self, sql: str, *args: Any) -> tuple: ...


def create_url_from_options(options: DatabaseOptions,
                            url_creator: Callable[..., sa.URL] = sa.URL.create) -> sa.URL:
    """Convert DatabaseOptions to SQLAlchemy URL.
    """
    query = {'application_name': options.appname}
    if options.timeout:
        query['connect_timeout'] = str(options.timeout)

    return url_creator(
        drivername='postgresql+psycopg',
        username=options.username,
        password=options.password,
        host=options.hostname,
        port=options.port,
        database=options.database,
        query=query
    )


def check_connection(func: Callable[..., T] | None = None, *, max_retries: int = 3,
                     retry_delay: float = 1, retry_errors: type | tuple[type, ...] | None = None,
                     retry_backoff: float = 1.5,
                     sleep_func: Callable[[float], None] = time.sleep) -> Callable[..., T]:
    """Connection retry decorator with backoff.

    Supports both @check_connection and @check_connection() syntax. By
    default only connection errors that look transient are retried; a
    failed login, for instance, is raised at once.
    """
    def decorator(f: Callable[..., T]) -> Callable[..., T]:
        @wraps(f)
        def inner(*args: Any, **kwargs: Any) -> T:
            error_types = retry_errors if retry_errors is not None else DbConnectionError

            tries = 0
            delay = retry_delay
            while tries < max_retries:
                try:
                    return f(*args, **kwargs)
                except error_types as err:
                    if retry_errors is None and not is_retryable_error(err):
                        raise
                    tries += 1
                    if tries >= max_retries:
                        logger.error(f'Maximum retries ({max_retries}) exceeded: {err}')
                        raise
                    logger.warning(f'Connection error (attempt {tries}/{max_retries}): {err}')
                    sleep_func(delay)
                    delay *= retry_backoff

        return inner

    if func is None:
        return decorator
    return decorator(func)


def get_engine_for_options(options: DatabaseOptions,
                           engine_factory: Callable[..., Engine] = sa.create_engine,
                           **kwargs: Any) -> Engine:
    """Get or create a SQLAlchemy engine for the given options.

    Engines run in autocommit mode: every statement is its own round trip.
    """
    key = str(options)

    with _engine_registry_lock:
        if key in _engine_registry:
            logger.debug(f'Using existing engine for {options.hostname}/{options.database}')
            return _engine_registry[key]

        engine_kwargs: dict[str, Any] = {'echo': False, 'isolation_level': 'AUTOCOMMIT'}

        if not options.use_pool:
            engine_kwargs['poolclass'] = NullPool
        else:
            engine_kwargs['pool_size'] = options.pool_max_connections
            engine_kwargs['pool_recycle'] = options.pool_max_idle_time
            engine_kwargs['pool_timeout'] = options.pool_wait_timeout
            engine_kwargs['max_overflow'] = 10
            engine_kwargs['pool_pre_ping'] = True

        engine_kwargs.update(kwargs)

        engine = engine_factory(create_url_from_options(options), **engine_kwargs)

        _engine_registry[key] = engine
        logger.debug(f'Created new engine for {options.hostname}/{options.database}')

        return engine


def dispose_all_engines() -> None:
    """Dispose all engines in the registry.
    """
    with _engine_registry_lock:
        for engine in _engine_registry.values():
            engine.dispose()
        _engine_registry.clear()
        logger.debug('All database engines disposed')


atexit.register(dispose_all_engines)


class ConnectionWrapper:
    """Database handle backed by a SQLAlchemy engine.

    Tracks call counts and execution time. The wrapper holds no connection
    between calls; each call checks one out of the engine's pool.
    """

    def __init__(self, engine: Engine, options: DatabaseOptions | None = None) -> None:
        self.engine = engine
        self.options = options
        self.calls = 0
        self.time = 0.0
        self._lock = threading.Lock()

    def addcall(self, elapsed: float) -> None:
        """Track execution statistics
        """
        with self._lock:
            self.time += elapsed
            self.calls += 1

    @contextmanager
    def _cursor(self, sql: str, args: tuple) -> Iterator[Any]:
        """Check out a connection, execute, and yield the DBAPI cursor.
        """
        driver_sql, driver_args = to_driver_sql(sql, args)
        logger.debug(f'SQL:\n{sql}\nargs: {args}')
        start = time.time()
        try:
            with self.engine.connect() as sa_connection:
                cursor = sa_connection.connection.cursor()
                try:
                    cursor.execute(driver_sql, driver_args or None)
                    yield cursor
                finally:
                    cursor.close()
        except Exception:
            logger.error(f'Error with query:\nSQL:\n{sql}\nargs: {args}')
            raise
        finally:
            elapsed = time.time() - start
            self.addcall(elapsed)
            logger.debug(f'Query time: {elapsed:.4f}s')

    @check_connection
    def execute(self, sql: str, *args: Any) -> int:
        """Execute a statement and return the affected row count.
        """
        with self._cursor(sql, args) as cursor:
            return cursor.rowcount

    @check_connection
    def query(self, sql: str, *args: Any) -> list[tuple]:
        """Execute a query and return all rows as tuples.
        """
        with self._cursor(sql, args) as cursor:
            rows = cursor.fetchall()
        logger.debug(f'Query returned {len(rows)} rows')
        return rows

    @check_connection
    def query_row(self, sql: str, *args: Any) -> tuple:
        """Execute a query and return its first row.

        Raises NoRowsError if the query returns nothing.
        """
        with self._cursor(sql, args) as cursor:
            row = cursor.fetchone()
        if row is None:
            raise NoRowsError('no rows in result set')
        return row

    def close(self) -> None:
        """Dispose of the engine's pooled connections.
        """
        self.engine.dispose()
        logger.debug(f'Engine disposed: {self.calls} queries in {self.time:.2f}s (avg: {self.time/max(1,self.calls):.3f}s per query)')

    def __enter__(self) -> 'ConnectionWrapper':
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        self.close()


def connect(options: DatabaseOptions | None = None, **kw: Any) -> ConnectionWrapper:
    """Create a database handle.

    Args:
        options: DatabaseOptions, or None to build them from keyword arguments
        **kw: DatabaseOptions fields when `options` is not given

    Returns
        ConnectionWrapper usable as a model handle
    """
    if options is None:
        options = DatabaseOptions(**kw)
    elif kw:
        raise TypeError('pass either DatabaseOptions or keyword options, not both')

    engine = get_engine_for_options(options)
    return ConnectionWrapper(engine, options)
