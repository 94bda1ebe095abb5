"""
Record-to-table mapping for PostgreSQL.

A declared record schema is validated, reconciled against the live table
(created when missing) and then used to generate parameterized SQL:

    cn = pgmodel.connect(hostname='localhost', username='me', database='app')
    schema = pgmodel.Schema(Student).field('id', 'uint32', 'id').field('name', str, 'name', limit=5)
    students = pgmodel.Model(cn, schema)
    students.insert(Student(id=0, name='bob'))
"""
__version__ = '0.1.0'

from pgmodel.catalog import RemoteColumn, describe_table
from pgmodel.connection import ConnectionWrapper, Handle, connect
from pgmodel.exceptions import BatchInsertError, ColumnCountMismatch
from pgmodel.exceptions import ColumnNameMismatch, ColumnTypeMismatch
from pgmodel.exceptions import ConfigurationError, DatabaseError
from pgmodel.exceptions import DbConnectionError, DuplicateColumnName
from pgmodel.exceptions import IntegrityError, InvalidIndexDirective, UniqueViolation
from pgmodel.exceptions import InvalidLimitFormat, InvalidPrimaryKeyName
from pgmodel.exceptions import InvalidPrimaryKeyType, InvalidRecordType
from pgmodel.exceptions import MissingColumnName, NoRowsError, NotSnakeCase
from pgmodel.exceptions import QueryError, SchemaDivergenceError
from pgmodel.exceptions import UnsupportedFieldType, UnsupportedIndexKey
from pgmodel.exceptions import ValidationError
from pgmodel.fields import Field, FieldSpec, Schema, build_fields
from pgmodel.index import IndexKey, IndexSpec, build_indexes
from pgmodel.model import Model
from pgmodel.options import DatabaseOptions, ModelOptions, ReconcilePolicy
from pgmodel.reconcile import MigrationPlan, Reconciler, plan_migration
from pgmodel.sql import Statement, TableName
from pgmodel.types import FieldType, map_type, primitive_type

__all__ = [
    # Core
    'Model',
    'Schema',
    'Field',
    'FieldSpec',
    'FieldType',
    'build_fields',
    # Connection
    'connect',
    'ConnectionWrapper',
    'Handle',
    # Options
    'ModelOptions',
    'DatabaseOptions',
    'ReconcilePolicy',
    # Building blocks
    'RemoteColumn',
    'describe_table',
    'MigrationPlan',
    'plan_migration',
    'Reconciler',
    'IndexKey',
    'IndexSpec',
    'build_indexes',
    'Statement',
    'TableName',
    'map_type',
    'primitive_type',
    # Exceptions
    'DatabaseError',
    'ConfigurationError',
    'InvalidRecordType',
    'MissingColumnName',
    'InvalidPrimaryKeyType',
    'InvalidPrimaryKeyName',
    'NotSnakeCase',
    'DuplicateColumnName',
    'InvalidLimitFormat',
    'UnsupportedFieldType',
    'UnsupportedIndexKey',
    'InvalidIndexDirective',
    'SchemaDivergenceError',
    'ColumnCountMismatch',
    'ColumnNameMismatch',
    'ColumnTypeMismatch',
    'QueryError',
    'BatchInsertError',
    'NoRowsError',
    'ValidationError',
    'DbConnectionError',
    'IntegrityError',
    'UniqueViolation',
]
