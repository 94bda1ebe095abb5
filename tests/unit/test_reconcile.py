"""
Tests for migration planning and DDL application.
"""
from dataclasses import dataclass

import pytest
from pgmodel.catalog import RemoteColumn
from pgmodel.exceptions import ColumnCountMismatch, ColumnNameMismatch
from pgmodel.exceptions import ColumnTypeMismatch, QueryError
from pgmodel.fields import Schema, build_fields
from pgmodel.options import ModelOptions, ReconcilePolicy
from pgmodel.reconcile import MigrationPlan, Reconciler, plan_migration
from pgmodel.sql import TableName

STUDENTS = TableName('public', 'students')

STRICT = ReconcilePolicy.STRICT
PERMISSIVE = ReconcilePolicy.PERMISSIVE


@dataclass
class Student:
    id: int = 0
    name: str = ''
    comment_id: int = 0


@pytest.fixture
def fields():
    schema = Schema(Student)
    schema.field('id', 'uint32', 'id')
    schema.field('name', str, 'name', limit=5, index='single=asc,unique=true,group=unique,lower=true')
    schema.field('comment_id', int, 'comment_id', index='group=unique')
    return build_fields(schema)


def remote(*columns):
    return [RemoteColumn(name, data_type) for name, data_type in columns]


MATCHING = remote(('id', 'integer'), ('name', 'character varying'), ('comment_id', 'bigint'))


class TestPlanMigration:

    @pytest.mark.parametrize('policy', [STRICT, PERMISSIVE])
    def test_missing_table_is_created(self, fields, policy):
        assert plan_migration(fields, [], policy) == MigrationPlan(create=True)

    @pytest.mark.parametrize('policy', [STRICT, PERMISSIVE])
    def test_matching_table_needs_nothing(self, fields, policy):
        assert plan_migration(fields, MATCHING, policy).empty

    def test_strict_count_mismatch(self, fields):
        with pytest.raises(ColumnCountMismatch) as exc:
            plan_migration(fields, MATCHING[:2], STRICT, 'public.students')
        assert (exc.value.local, exc.value.remote) == (3, 2)

    def test_strict_order_mismatch(self, fields):
        reordered = [MATCHING[0], MATCHING[2], MATCHING[1]]
        with pytest.raises(ColumnNameMismatch) as exc:
            plan_migration(fields, reordered, STRICT)
        assert (exc.value.position, exc.value.local, exc.value.remote) == (1, 'name', 'comment_id')

    @pytest.mark.parametrize('policy', [STRICT, PERMISSIVE])
    def test_type_mismatch(self, fields, policy):
        changed = remote(('id', 'integer'), ('name', 'integer'), ('comment_id', 'bigint'))
        with pytest.raises(ColumnTypeMismatch) as exc:
            plan_migration(fields, changed, policy)
        assert (exc.value.field, exc.value.local_type, exc.value.remote_type) == \
            ('name', 'character', 'integer')

    def test_permissive_adds_missing_column(self, fields):
        plan = plan_migration(fields, MATCHING[:2], PERMISSIVE)
        assert [spec.column for spec in plan.add] == ['comment_id']
        assert plan.drop == []
        assert not plan.create

    def test_permissive_drops_extra_column(self, fields):
        plan = plan_migration(fields, [*MATCHING, RemoteColumn('legacy', 'text')], PERMISSIVE)
        assert plan.add == []
        assert plan.drop == ['legacy']

    def test_permissive_ignores_order(self, fields):
        reordered = [MATCHING[2], MATCHING[0], MATCHING[1]]
        assert plan_migration(fields, reordered, PERMISSIVE).empty

    def test_permissive_type_mismatch_found_before_any_ddl(self, fields):
        """A type conflict fails the plan even when other columns need adding."""
        partial = remote(('id', 'integer'), ('name', 'boolean'), ('legacy', 'text'))
        with pytest.raises(ColumnTypeMismatch):
            plan_migration(fields, partial, PERMISSIVE)


class TestReconciler:

    def test_create_runs_table_then_indexes(self, make_handle, fields):
        handle = make_handle()
        created = Reconciler(handle, STUDENTS, fields).reconcile([])
        assert created is True
        assert handle.sql == [
            'create table public.students (id serial primary key,'
            "name varchar(5) not null default '',comment_id bigint not null default 0)",
            'create unique index on public.students (lower(name) asc,comment_id asc)',
        ]

    def test_create_if_not_exists(self, make_handle, fields):
        handle = make_handle()
        options = ModelOptions(create_if_not_exists=True)
        Reconciler(handle, STUDENTS, fields, options).reconcile([])
        assert handle.sql[0].startswith('create table if not exists public.students')

    def test_matching_table_runs_no_ddl(self, make_handle, fields):
        handle = make_handle()
        assert Reconciler(handle, STUDENTS, fields).reconcile(MATCHING) is False
        assert handle.statements == []

    def test_permissive_add_and_drop(self, make_handle, fields):
        handle = make_handle()
        options = ModelOptions(policy='permissive')
        current = remote(('id', 'integer'), ('name', 'text'), ('legacy', 'text'))
        created = Reconciler(handle, STUDENTS, fields, options).reconcile(current)
        assert created is False
        assert handle.sql == [
            'alter table public.students add column comment_id bigint not null default 0',
            'alter table public.students drop column legacy',
        ]

    def test_added_column_gets_no_index(self, make_handle, fields):
        handle = make_handle()
        options = ModelOptions(policy=PERMISSIVE)
        Reconciler(handle, STUDENTS, fields, options).reconcile(MATCHING[:2])
        assert not any('index' in sql for sql in handle.sql)

    def test_strict_failure_runs_no_ddl(self, make_handle, fields):
        handle = make_handle()
        with pytest.raises(ColumnCountMismatch):
            Reconciler(handle, STUDENTS, fields).reconcile(MATCHING[:2])
        assert handle.statements == []

    def test_ddl_failure_carries_sql(self, make_handle, fields):
        handle = make_handle(fail_when=lambda sql, args: sql.startswith('create unique index'))
        with pytest.raises(QueryError) as exc:
            Reconciler(handle, STUDENTS, fields).reconcile([])
        assert exc.value.sql == 'create unique index on public.students (lower(name) asc,comment_id asc)'
        assert len(handle.statements) == 2

    def test_partial_migration_is_not_rolled_back(self, make_handle, fields):
        handle = make_handle(fail_when=lambda sql, args: 'drop column' in sql)
        options = ModelOptions(policy=PERMISSIVE)
        current = remote(('id', 'integer'), ('name', 'text'), ('legacy', 'text'))
        with pytest.raises(QueryError):
            Reconciler(handle, STUDENTS, fields, options).reconcile(current)
        assert handle.sql[0].startswith('alter table public.students add column comment_id')


if __name__ == '__main__':
    __import__('pytest').main([__file__])
