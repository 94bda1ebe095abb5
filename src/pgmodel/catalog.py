"""
Remote table introspection through information_schema.
"""
import logging
from typing import TYPE_CHECKING, NamedTuple

from pgmodel.sql import TableName

if TYPE_CHECKING:
    from pgmodel.connection import Handle

logger = logging.getLogger(__name__)

__all__ = ['RemoteColumn', 'describe_table']


class RemoteColumn(NamedTuple):
    """A column as reported by the catalog.
    """
    column_name: str
    data_type: str


def describe_table(handle: 'Handle', table: TableName,
                   database: str | None = None) -> list[RemoteColumn]:
    """List a table's columns in ordinal order.

    An empty list means the table does not exist. Without `database` the
    lookup is scoped to the connection's current database.

    Results are never cached: every call reads the catalog.
    """
    if database:
        catalog, args = '$1', [database]
    else:
        catalog, args = 'current_database()', []
    args.extend([table.schema, table.name])
    first = len(args) - 1
    sql = f"""
select column_name,data_type
from information_schema.columns
where table_catalog={catalog}
and table_schema=${first}
and table_name=${first + 1}
order by ordinal_position
""".strip()
    rows = handle.query(sql, *args)
    columns = [RemoteColumn(name, data_type) for name, data_type in rows]
    logger.debug(f'Catalog lists {len(columns)} columns for {table}')
    return columns
