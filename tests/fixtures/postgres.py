import logging

import pytest
from pgmodel.connection import ConnectionWrapper, connect, dispose_all_engines
from pgmodel.options import DatabaseOptions
from testcontainers.postgres import PostgresContainer

from tests import config

logger = logging.getLogger(__name__)


@pytest.fixture(scope='session')
def psql_docker(request):
    """Session-scoped PostgreSQL container using testcontainers.

    Testcontainers automatically:
    - Assigns a random available port
    - Waits for the database to be ready
    - Handles cleanup when the session ends

    Tests using it are skipped when no container runtime is available.
    """
    container = PostgresContainer(
        image='postgres:16',
        username=config.postgresql['username'],
        password=config.postgresql['password'],
        dbname=config.postgresql['database'],
    )

    try:
        container.start()
    except Exception as e:
        pytest.skip(f'PostgreSQL container unavailable: {e}')

    options = DatabaseOptions(**{
        **config.postgresql,
        'hostname': container.get_container_host_ip(),
        'port': int(container.get_exposed_port(5432)),
    })
    logger.info(f'PostgreSQL container started at {options.hostname}:{options.port}')

    def finalizer():
        try:
            dispose_all_engines()
            container.stop()
            logger.info('PostgreSQL container stopped')
        except Exception as e:
            logger.warning(f'Error stopping container: {e}')

    request.addfinalizer(finalizer)
    return options


def drop_public_tables(cn: ConnectionWrapper):
    rows = cn.query("select tablename from pg_tables where schemaname='public'")
    for (table,) in rows:
        cn.execute(f'drop table if exists public."{table}" cascade')


@pytest.fixture
def conn(psql_docker):
    """
    Connection fixture with function scope for clean tests.
    Each test starts with an empty public schema.
    """
    cn = connect(psql_docker)
    drop_public_tables(cn)
    try:
        yield cn
    finally:
        try:
            drop_public_tables(cn)
        except Exception as e:
            logger.warning(f'Error during table cleanup: {e}')
