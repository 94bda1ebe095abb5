"""
Recording fake database handle for model tests.

The fake answers catalog lookups from a canned column list, serves queued
results to other queries, and records every statement it is given.

Usage:
    def test_creates_table(make_handle):
        handle = make_handle(catalog=[('id', 'integer'), ('name', 'text')])
        Model(handle, schema)
        assert handle.ddl == []
"""
from collections import deque
from collections.abc import Callable

import pytest
from pgmodel.exceptions import NoRowsError


class FakeHandle:
    """In-memory stand-in for a database handle.

    - catalog: `(column_name, data_type)` rows returned for catalog lookups
    - results: queue of row lists served to queries in order
    - rowcount: value returned by `execute`
    - fail_when: predicate on `(sql, args)`; a match makes the call raise
    """

    def __init__(self, catalog=None, results=None, rowcount=1,
                 fail_when: Callable[[str, tuple], bool] | None = None):
        self.catalog = list(catalog or [])
        self.results = deque(results or [])
        self.rowcount = rowcount
        self.fail_when = fail_when
        self.statements: list[tuple[str, tuple]] = []

    def _record(self, sql, args):
        self.statements.append((sql, args))
        if self.fail_when is not None and self.fail_when(sql, args):
            raise RuntimeError(f'statement failed: {sql}')

    def execute(self, sql, *args):
        self._record(sql, args)
        return self.rowcount

    def query(self, sql, *args):
        self._record(sql, args)
        if 'information_schema.columns' in sql:
            return list(self.catalog)
        if self.results:
            return list(self.results.popleft())
        return []

    def query_row(self, sql, *args):
        rows = self.query(sql, *args)
        if not rows:
            raise NoRowsError('no rows in result set')
        return rows[0]

    @property
    def sql(self) -> list[str]:
        """Statement texts, excluding catalog lookups.
        """
        return [sql for sql, _ in self.statements if 'information_schema' not in sql]

    @property
    def ddl(self) -> list[str]:
        return [sql for sql in self.sql if sql.startswith(('create ', 'alter '))]

    @property
    def last(self) -> tuple[str, tuple]:
        return self.statements[-1]


@pytest.fixture
def make_handle():
    """Factory for FakeHandle instances.

    Example usage:
        def test_exists(make_handle):
            handle = make_handle(catalog=STUDENT_CATALOG, results=[[(1,)]])
    """
    def factory(catalog=None, results=None, rowcount=1, fail_when=None):
        return FakeHandle(catalog, results, rowcount, fail_when)

    return factory
