"""
Declarative record schemas and the field list derived from them.

A schema names the record type, the table, and every field's column, type,
size limit and index directive explicitly:

    students = Schema(Student, table='students')
    students.field('id', FieldType.UINT32, 'id')
    students.field('name', str, 'name', limit=5, index='unique=true')

`build_fields()` validates the declaration once and produces the ordered,
immutable `FieldSpec` tuple. That order fixes positional parameter numbering
for every statement generated for the model.
"""
import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Self

from pgmodel.exceptions import DuplicateColumnName, InvalidLimitFormat
from pgmodel.exceptions import InvalidPrimaryKeyName, InvalidPrimaryKeyType
from pgmodel.exceptions import InvalidRecordType, MissingColumnName
from pgmodel.exceptions import ConfigurationError, NotSnakeCase
from pgmodel.exceptions import UnsupportedFieldType
from pgmodel.types import PRIMARY_KEY_TYPES, FieldType, is_serial, map_type
from pgmodel.types import resolve_field_type

logger = logging.getLogger(__name__)

__all__ = [
    'Field',
    'FieldSpec',
    'Schema',
    'build_fields',
    'index_directives',
    'to_snake',
    'to_table_name',
]

PRIMARY_KEY_COLUMN = 'id'

_SEPARATORS = re.compile(r'[\s\-.]+')
_ACRONYM_BOUNDARY = re.compile(r'([A-Z]+)([A-Z][a-z])')
_WORD_BOUNDARY = re.compile(r'([a-z0-9])([A-Z])')


def to_snake(name: str) -> str:
    """Convert a name to snake case.

    >>> to_snake('CommentID')
    'comment_id'
    >>> to_snake('HTTPServer')
    'http_server'
    """
    s = _SEPARATORS.sub('_', name.strip())
    s = _ACRONYM_BOUNDARY.sub(r'\1_\2', s)
    s = _WORD_BOUNDARY.sub(r'\1_\2', s)
    return s.lower()


def to_table_name(name: str) -> str:
    """Derive a table name from a record type name.
    """
    table = to_snake(name)
    if table == 'user':
        return 'users'
    return table


@dataclass(frozen=True)
class Field:
    """One declared field: record attribute, type and column metadata.
    """
    name: str
    type: Any
    column: str | None = None
    limit: int | str | None = None
    index: str | None = None


@dataclass(frozen=True)
class FieldSpec:
    """A validated field with its resolved column type.
    """
    name: str
    column: str
    field_type: FieldType
    column_type: str
    limit: int = 0
    index: str | None = None
    primary_key: bool = False

    @property
    def serial(self) -> bool:
        """Whether the server generates this column's values.
        """
        return is_serial(self.column_type)


class Schema:
    """Declarative description of a record type and its table.

    Records are built with `record_type(**values)` and read by attribute,
    or by key when the record type is `dict`.
    """

    def __init__(self, record_type: Any = dict, *fields: Field,
                 table: str | None = None) -> None:
        self.record_type = record_type
        self.fields: list[Field] = list(fields)
        self.table = table

    def field(self, name: str, type: Any, column: str | None = None,
              limit: int | str | None = None, index: str | None = None) -> Self:
        """Append a field declaration and return the schema for chaining.
        """
        self.fields.append(Field(name, type, column, limit, index))
        return self

    @property
    def table_name(self) -> str:
        if self.table:
            return self.table
        if self.record_type is dict:
            raise ConfigurationError('a table name is required for dict records')
        return to_table_name(self.record_type.__name__)

    def __repr__(self) -> str:
        names = ', '.join(f.name for f in self.fields)
        return f'Schema({getattr(self.record_type, "__name__", self.record_type)}: {names})'


def _parse_limit(field: Field) -> int:
    limit = field.limit
    if limit is None:
        return 0
    if isinstance(limit, bool):
        raise InvalidLimitFormat(f'invalid limit format: {limit!r} for field {field.name}')
    if isinstance(limit, int):
        if limit < 0:
            raise InvalidLimitFormat(f'invalid limit format: {limit!r} for field {field.name}')
        return limit
    if isinstance(limit, str) and limit.strip().isdecimal():
        return int(limit.strip())
    raise InvalidLimitFormat(f'invalid limit format: {limit!r} for field {field.name}')


def build_fields(schema: Schema, check_snake_case: bool = True) -> tuple[FieldSpec, ...]:
    """Validate a schema declaration and derive its ordered field specs.

    The first failure aborts the whole build.
    """
    if not isinstance(schema.record_type, type):
        raise InvalidRecordType(
            f'record type must be a class, got {type(schema.record_type).__name__} instance')
    if not schema.fields:
        raise ConfigurationError(f'{schema!r} declares no fields')

    specs: list[FieldSpec] = []
    columns: set[str] = set()
    for i, field in enumerate(schema.fields):
        primary_key = i == 0

        try:
            field_type = resolve_field_type(field.type)
        except UnsupportedFieldType as err:
            raise UnsupportedFieldType(f'field {field.name}: {err}') from err

        if primary_key and field_type not in PRIMARY_KEY_TYPES:
            allowed = ','.join(sorted(t.value for t in PRIMARY_KEY_TYPES))
            raise InvalidPrimaryKeyType(
                f"the first field {field.name}'s type must be one of {allowed}, got {field_type.value}")

        column = field.column
        if not column:
            raise MissingColumnName(f'field {field.name} has no column name')
        if primary_key and column != PRIMARY_KEY_COLUMN:
            raise InvalidPrimaryKeyName(
                f"the first field's column must be {PRIMARY_KEY_COLUMN!r}, got {column!r}")
        if check_snake_case and column != to_snake(column):
            raise NotSnakeCase(f"field {field.name}'s column {column!r} is not in snake case")
        if column in columns:
            raise DuplicateColumnName(f'column {column!r} is declared more than once')
        columns.add(column)

        limit = _parse_limit(field)
        if limit and not field_type.string_like:
            logger.debug(f'Ignoring limit {limit} on non-string field {field.name}')

        try:
            column_type = map_type(field_type, column, primary_key, limit)
        except UnsupportedFieldType as err:
            raise UnsupportedFieldType(f'field {field.name}: {err}') from err

        specs.append(FieldSpec(
            name=field.name,
            column=column,
            field_type=field_type,
            column_type=column_type,
            limit=limit,
            index=field.index,
            primary_key=primary_key,
        ))

    logger.debug(f'Built {len(specs)} fields for {schema!r}')
    return tuple(specs)


def index_directives(fields: Iterable[FieldSpec]) -> list[tuple[str, str]]:
    """Ordered `(column, directive)` pairs for fields that declare an index.
    """
    return [(spec.column, spec.index) for spec in fields if spec.index is not None]
