"""
Reconciliation of a declared field list against a live table.

Planning is pure: `plan_migration()` compares the local fields with the
catalog's column list and either raises a `SchemaDivergenceError` or returns
the DDL work to do. `Reconciler` applies a plan through a database handle.

Each DDL statement runs as its own round trip outside any transaction. A
failure part way through leaves the table partially migrated.
"""
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from pgmodel.catalog import RemoteColumn
from pgmodel.exceptions import ColumnCountMismatch, ColumnNameMismatch
from pgmodel.exceptions import ColumnTypeMismatch, QueryError
from pgmodel.fields import FieldSpec, index_directives
from pgmodel.index import build_indexes, create_index_sql
from pgmodel.options import ModelOptions, ReconcilePolicy
from pgmodel.sql import TableName, add_column_sql, create_table_sql
from pgmodel.sql import drop_column_sql
from pgmodel.types import primitive_type

if TYPE_CHECKING:
    from pgmodel.connection import Handle

logger = logging.getLogger(__name__)

__all__ = ['MigrationPlan', 'plan_migration', 'Reconciler']


@dataclass
class MigrationPlan:
    """DDL work needed to bring a table in line with its fields.
    """
    create: bool = False
    add: list[FieldSpec] = field(default_factory=list)
    drop: list[str] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not (self.create or self.add or self.drop)


def _check_type(spec: FieldSpec, remote: RemoteColumn) -> None:
    local_type = primitive_type(spec.column_type)
    remote_type = primitive_type(remote.data_type)
    if local_type != remote_type:
        raise ColumnTypeMismatch(spec.name, local_type, remote_type)


def _plan_strict(table: str, fields: Sequence[FieldSpec],
                 remote: Sequence[RemoteColumn]) -> MigrationPlan:
    if len(fields) != len(remote):
        raise ColumnCountMismatch(table, len(fields), len(remote))
    for position, (spec, column) in enumerate(zip(fields, remote)):
        if spec.column != column.column_name:
            raise ColumnNameMismatch(table, position, spec.column, column.column_name)
        _check_type(spec, column)
    return MigrationPlan()


def _plan_permissive(fields: Sequence[FieldSpec],
                     remote: Sequence[RemoteColumn]) -> MigrationPlan:
    by_name = {column.column_name: column for column in remote}
    plan = MigrationPlan()
    for spec in fields:
        column = by_name.get(spec.column)
        if column is None:
            plan.add.append(spec)
        else:
            _check_type(spec, column)

    local = {spec.column for spec in fields}
    plan.drop = [column.column_name for column in remote if column.column_name not in local]
    return plan


def plan_migration(fields: Sequence[FieldSpec], remote: Sequence[RemoteColumn],
                   policy: ReconcilePolicy = ReconcilePolicy.STRICT,
                   table: str = '') -> MigrationPlan:
    """Decide what DDL brings the remote table in line with `fields`.

    An empty `remote` means the table does not exist yet. Type mismatches
    are found before any DDL is planned, so a failing plan never leaves a
    half-applied migration behind.
    """
    if not remote:
        return MigrationPlan(create=True)
    if policy is ReconcilePolicy.STRICT:
        return _plan_strict(table, fields, remote)
    return _plan_permissive(fields, remote)


class Reconciler:
    """Apply migration plans for one table through a database handle.
    """

    def __init__(self, handle: 'Handle', table: TableName, fields: Sequence[FieldSpec],
                 options: ModelOptions | None = None) -> None:
        self.handle = handle
        self.table = table
        self.fields = tuple(fields)
        self.options = options or ModelOptions()

    def reconcile(self, remote: Sequence[RemoteColumn]) -> bool:
        """Reconcile the table and report whether it was created.
        """
        plan = plan_migration(self.fields, remote, self.options.policy, str(self.table))
        logger.debug(f'Migration plan for {self.table}: {plan}')
        self.apply(plan)
        return plan.create

    def apply(self, plan: MigrationPlan) -> None:
        if plan.create:
            self._create()
            return
        for spec in plan.add:
            self._execute(add_column_sql(self.table, spec.column, spec.column_type))
            logger.info(f'Added column {spec.column} to {self.table}')
        for column in plan.drop:
            self._execute(drop_column_sql(self.table, column))
            logger.warning(f'Dropped column {column} from {self.table}, its data is lost')

    def _create(self) -> None:
        indexes = build_indexes(index_directives(self.fields))
        sql = create_table_sql(self.table, self.fields, self.options.create_if_not_exists)
        self._execute(sql)
        logger.info(f'Created table {self.table}')

        for spec in indexes:
            self._execute(create_index_sql(self.table, spec))
            logger.info(f"Created {'unique ' if spec.unique else ''}index on {self.table} {spec.columns}")

    def _execute(self, sql: str) -> None:
        logger.debug(f'DDL: {sql}')
        try:
            self.handle.execute(sql)
        except QueryError:
            raise
        except Exception as err:
            raise QueryError(str(err), sql) from err
