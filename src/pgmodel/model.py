"""
Model: a record schema bound to a live table.

Constructing a `Model` builds the field list, reads the table's columns from
the catalog and reconciles the two, creating or migrating the table as the
reconcile policy allows. Afterwards every CRUD call generates its statement
from the field list and runs it through the handle.

Construct one model per record type per process and reuse it; each
construction costs a catalog round trip.

Predicates (`where`) are raw SQL fragments with `$n` placeholders bound to
the positional arguments, or a column/value mapping turned into an AND-ed
equality test. Raw fragments are passed to the database verbatim.
"""
import logging
from collections.abc import Callable, Iterable, Mapping
from typing import TYPE_CHECKING, Any

import pandas as pd
from pgmodel.catalog import describe_table
from pgmodel.exceptions import BatchInsertError, DatabaseError, NoRowsError
from pgmodel.exceptions import QueryError, ValidationError
from pgmodel.fields import Schema, build_fields
from pgmodel.options import ModelOptions
from pgmodel.reconcile import Reconciler
from pgmodel.sql import Statement, TableName, assignments, count_statement
from pgmodel.sql import create_table_sql, delete_statement, equals
from pgmodel.sql import exists_statement, format_identifier, insert_statement
from pgmodel.sql import select_statement, shift_placeholders, truncate_sql
from pgmodel.sql import update_statement

if TYPE_CHECKING:
    from pgmodel.connection import Handle

logger = logging.getLogger(__name__)

__all__ = ['Model']

Where = str | Mapping[str, Any]


class Model:
    """Record schema reconciled against a table, with CRUD operations.

    Attributes
        fields: validated field specs, in declaration order
        table: schema-qualified table name
        created: True if the table was created by this model
    """

    def __init__(self, handle: 'Handle', schema: Schema,
                 options: ModelOptions | None = None) -> None:
        self.handle = handle
        self.schema = schema
        self.options = options or ModelOptions()
        self.fields = build_fields(schema, self.options.check_snake_case)
        self.table = TableName(self.options.schema, self.options.table or schema.table_name)

        try:
            remote = describe_table(handle, self.table, self.options.database)
        except DatabaseError:
            raise
        except Exception as err:
            raise QueryError(f'cannot describe {self.table}: {err}') from err
        self.created = Reconciler(handle, self.table, self.fields, self.options).reconcile(remote)
        logger.debug(f'Model ready for {self.table} (created={self.created})')

    def __repr__(self) -> str:
        return f'Model({self.table}, {len(self.fields)} fields)'

    @property
    def primary_key(self) -> str:
        return self.fields[0].column

    # =========================================================================
    # Statements
    # =========================================================================

    def create_table_sql(self) -> str:
        return create_table_sql(self.table, self.fields, self.options.create_if_not_exists)

    def insert_sql(self) -> Statement:
        return insert_statement(self.table, self.fields)

    def insert_returning_sql(self) -> Statement:
        return insert_statement(self.table, self.fields, returning=True)

    def select_sql(self) -> Statement:
        return select_statement(self.table, self.fields)

    # =========================================================================
    # Records
    # =========================================================================

    def _values(self, record: Any) -> list[Any]:
        """Read every field of a record, in field order.
        """
        record_type = self.schema.record_type
        if record_type is dict:
            if not isinstance(record, Mapping):
                raise ValidationError(f'wrong insert type {type(record).__name__} for table {self.table}')
            missing = [spec.name for spec in self.fields
                       if spec.name not in record and not spec.primary_key]
            if missing:
                raise ValidationError(f'record for {self.table} is missing {", ".join(missing)}')
            return [record.get(spec.name) for spec in self.fields]

        if not isinstance(record, record_type):
            raise ValidationError(f'wrong insert type {type(record).__name__} for table {self.table}')
        return [getattr(record, spec.name, None) for spec in self.fields]

    def _to_record(self, row: Iterable[Any]) -> Any:
        values = {spec.name: value for spec, value in zip(self.fields, row)}
        return self.schema.record_type(**values)

    def _where(self, where: Where, args: tuple) -> tuple[str, tuple]:
        """Resolve a predicate into fragment text and its full argument tuple.

        Mapping predicates bind after any positional arguments already given.
        """
        if isinstance(where, Mapping):
            text, extra = equals(self.fields, where, offset=len(args))
            return text, args + extra
        return where or '', args

    def _run(self, method: Callable[..., Any], sql: str, *args: Any) -> Any:
        """Call a handle method, attaching the SQL to driver failures.
        """
        try:
            return method(sql, *args)
        except DatabaseError:
            raise
        except Exception as err:
            raise QueryError(str(err), sql) from err

    # =========================================================================
    # Insert
    # =========================================================================

    def insert(self, record: Any) -> Any:
        """Insert one record and return its primary key.

        Serial primary keys are generated by the server; the record's own
        value for them is ignored.
        """
        statement = self.insert_returning_sql()
        args = statement.bind(self._values(record))
        row = self._run(self.handle.query_row, statement.text, *args)
        return row[0]

    def insert_all(self, records: Iterable[Any]) -> int:
        """Insert records one statement at a time and return the count.

        Every record is validated before the first insert. On failure the
        records already inserted stay committed and `BatchInsertError` names
        the failing record and its position.
        """
        records = list(records)
        statement = self.insert_sql()
        rows = [statement.bind(self._values(record)) for record in records]

        for i, (record, args) in enumerate(zip(records, rows)):
            try:
                self.handle.execute(statement.text, *args)
            except Exception as err:
                raise BatchInsertError(f'insert failed for record {i} ({record!r}): {err}',
                                       statement.text, i, record) from err
        logger.debug(f'Inserted {len(records)} records into {self.table}')
        return len(records)

    # =========================================================================
    # Query
    # =========================================================================

    def find(self, pk: Any) -> Any | None:
        """Find a record by primary key, or None.
        """
        return self.find_where(f'{format_identifier(self.primary_key)}=$1', pk)

    def find_where(self, where: Where, *args: Any) -> Any | None:
        """Find the first record matching `where`, or None.
        """
        where, args = self._where(where, args)
        sql = select_statement(self.table, self.fields, where).text
        try:
            row = self._run(self.handle.query_row, sql, *args)
        except NoRowsError:
            return None
        return self._to_record(row)

    def query_where(self, where: Where = '', *args: Any) -> list[Any]:
        """Return every record matching `where`. An empty predicate returns all.
        """
        where, args = self._where(where, args)
        sql = select_statement(self.table, self.fields, where).text
        rows = self._run(self.handle.query, sql, *args)
        return [self._to_record(row) for row in rows]

    def query_frame(self, where: Where = '', *args: Any) -> pd.DataFrame:
        """Return rows matching `where` as a DataFrame with one column per field.
        """
        where, args = self._where(where, args)
        sql = select_statement(self.table, self.fields, where).text
        rows = self._run(self.handle.query, sql, *args)
        columns = [spec.column for spec in self.fields]
        return pd.DataFrame.from_records(list(rows), columns=columns)

    def exists(self, pk: Any) -> bool:
        return self.exists_where(f'{format_identifier(self.primary_key)}=$1', pk)

    def exists_where(self, where: Where, *args: Any) -> bool:
        where, args = self._where(where, args)
        rows = self._run(self.handle.query, exists_statement(self.table, where), *args)
        return len(rows) > 0

    def count_where(self, where: Where = '', *args: Any) -> int:
        where, args = self._where(where, args)
        row = self._run(self.handle.query_row, count_statement(self.table, where), *args)
        return row[0]

    # =========================================================================
    # Update and delete
    # =========================================================================

    def update_set(self, sets: str | Mapping[str, Any], where: Where = '', *args: Any) -> int:
        """Update matching rows and return the number affected.

        `sets` is either a raw SET fragment, bound to `args`, or a column/value
        mapping. With a mapping, the placeholders of a raw `where` fragment
        are renumbered to follow the SET values.
        """
        if isinstance(sets, Mapping):
            sets, set_args = assignments(self.fields, sets)
            if isinstance(where, str):
                where = shift_placeholders(where, len(set_args))
            args = set_args + args
        where, args = self._where(where, args)
        return self._run(self.handle.execute, update_statement(self.table, sets, where), *args)

    def delete(self, pk: Any) -> int:
        return self.delete_where(f'{format_identifier(self.primary_key)}=$1', pk)

    def delete_where(self, where: Where, *args: Any) -> int:
        """Delete matching rows. An empty predicate deletes every row.
        """
        where, args = self._where(where, args)
        return self._run(self.handle.execute, delete_statement(self.table, where), *args)

    def clear(self) -> None:
        """Truncate the table.
        """
        self._run(self.handle.execute, truncate_sql(self.table))
        logger.info(f'Truncated {self.table}')

    truncate = clear
