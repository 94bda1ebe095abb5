"""
Configuration for models and database connections.
"""
import pathlib
import sys
from dataclasses import dataclass
from enum import Enum

__all__ = ['ReconcilePolicy', 'ModelOptions', 'DatabaseOptions']


class ReconcilePolicy(Enum):
    """How an existing table is reconciled with the declared schema.

    STRICT fails on any divergence in column count, order, name or type.

    PERMISSIVE adds missing columns and drops remote columns that are no
    longer declared. Dropping is destructive: the column's data is lost
    without confirmation.
    """
    STRICT = 'strict'
    PERMISSIVE = 'permissive'


def _scriptname() -> str | None:
    if not sys.argv or not sys.argv[0]:
        return None
    return pathlib.Path(sys.argv[0]).stem or None


@dataclass
class ModelOptions:
    """Options

    - schema: database schema holding the table (default: public)
    - database: catalog name to introspect (default: the connection's database)
    - table: table name, overriding the one derived from the record schema
    - policy: reconciliation policy for existing tables (default: STRICT)
    - check_snake_case: reject column names that are not snake case
    - create_if_not_exists: guard CREATE TABLE against concurrent creation
    """
    schema: str = 'public'
    database: str | None = None
    table: str | None = None
    policy: ReconcilePolicy | str = ReconcilePolicy.STRICT
    check_snake_case: bool = True
    create_if_not_exists: bool = False

    def __post_init__(self):
        if not self.schema:
            raise ValueError('schema cannot be empty')
        if isinstance(self.policy, str):
            try:
                self.policy = ReconcilePolicy(self.policy.lower())
            except ValueError:
                available = [p.value for p in ReconcilePolicy]
                raise ValueError(f'policy must be one of: {available}') from None
        elif not isinstance(self.policy, ReconcilePolicy):
            raise ValueError(f'policy must be a ReconcilePolicy, got {self.policy!r}')


@dataclass
class DatabaseOptions:
    """Options

    supported driver names: `postgresql`

    Connection pooling options:
    - use_pool: Whether to use connection pooling (default: False)
    - pool_max_connections: Maximum connections in pool (default: 5)
    - pool_max_idle_time: Maximum seconds a connection can be idle (default: 300)
    - pool_wait_timeout: Maximum seconds to wait for a connection (default: 30)
    """
    drivername: str = 'postgresql'
    hostname: str = None
    username: str = None
    password: str = None
    database: str = None
    port: int = 5432
    timeout: int = 0
    appname: str = None
    use_pool: bool = False
    pool_max_connections: int = 5
    pool_max_idle_time: int = 300
    pool_wait_timeout: int = 30

    def __post_init__(self):
        if self.drivername != 'postgresql':
            raise ValueError("drivername must be one of: ['postgresql']")
        for field in ('hostname', 'username', 'database', 'port'):
            if not getattr(self, field):
                raise ValueError(f'field {field} cannot be None or 0')
        self.appname = self.appname or _scriptname() or 'python_console'
