"""
SQL statement generation with positional parameter binding.

Every statement is assembled from the model's ordered field list. Values
never enter the statement text: builders return the text together with the
field indices (or values) that bind to its `$n` placeholders, in order.

    fields → column list → placeholders ($1..$n) → Statement(text, arg_positions)

Main entry points:
- `create_table_sql()`, `add_column_sql()`, `drop_column_sql()` - DDL
- `insert_statement()`, `select_statement()` - DML with argument mapping
- `to_where()` - normalize a caller-supplied predicate fragment
- `equals()`, `assignments()` - typed fragments from column/value mappings
- `to_driver_sql()` - convert `$n` placeholders to psycopg's `%s`
"""
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pgmodel.exceptions import ValidationError

if TYPE_CHECKING:
    from pgmodel.fields import FieldSpec

__all__ = [
    'Statement',
    'TableName',
    'quote_identifier',
    'format_identifier',
    'create_table_sql',
    'add_column_sql',
    'drop_column_sql',
    'insert_statement',
    'select_statement',
    'exists_statement',
    'count_statement',
    'update_statement',
    'delete_statement',
    'truncate_sql',
    'to_where',
    'equals',
    'assignments',
    'shift_placeholders',
    'to_driver_sql',
]

# =============================================================================
# Identifiers
# =============================================================================

_PLAIN_IDENTIFIER = re.compile(r'^[a-z_][a-z0-9_]*$')

_RESERVED = frozenset({
    'all', 'and', 'any', 'array', 'as', 'asc', 'both', 'case', 'check',
    'column', 'constraint', 'create', 'default', 'desc', 'distinct', 'do',
    'else', 'end', 'false', 'for', 'foreign', 'from', 'grant', 'group',
    'having', 'in', 'into', 'leading', 'limit', 'not', 'null', 'offset',
    'on', 'only', 'or', 'order', 'primary', 'references', 'select', 'table',
    'then', 'to', 'true', 'union', 'unique', 'user', 'using', 'when',
    'where', 'with',
    })


def quote_identifier(identifier: str) -> str:
    """Safely quote a database identifier.
    """
    return '"' + identifier.replace('"', '""') + '"'


def format_identifier(identifier: str) -> str:
    """Emit an identifier bare when PostgreSQL would read it back unchanged.

    Lowercase, non-reserved names stay bare so generated statements read
    like hand-written ones; everything else is quoted.
    """
    if _PLAIN_IDENTIFIER.match(identifier) and identifier not in _RESERVED:
        return identifier
    return quote_identifier(identifier)


@dataclass(frozen=True)
class TableName:
    """Schema-qualified table identifier.
    """
    schema: str
    name: str

    def __str__(self) -> str:
        return f'{format_identifier(self.schema)}.{format_identifier(self.name)}'


@dataclass(frozen=True)
class Statement:
    """Statement text plus the field indices bound to `$1..$n`, in order.
    """
    text: str
    arg_positions: tuple[int, ...]

    def __str__(self) -> str:
        return self.text

    def bind(self, values: Sequence[Any]) -> tuple[Any, ...]:
        """Pick the arguments for this statement out of a full field-ordered row.
        """
        return tuple(values[i] for i in self.arg_positions)


# =============================================================================
# DDL
# =============================================================================

def create_table_sql(table: TableName, fields: Sequence['FieldSpec'],
                     if_not_exists: bool = False) -> str:
    """Generate the CREATE TABLE statement. The primary key is always first.
    """
    columns = []
    for spec in fields:
        column = f'{format_identifier(spec.column)} {spec.column_type}'
        if spec.primary_key:
            column += ' primary key'
        columns.append(column)
    guard = 'if not exists ' if if_not_exists else ''
    return f"create table {guard}{table} ({','.join(columns)})"


def add_column_sql(table: TableName, column: str, column_type: str) -> str:
    return f'alter table {table} add column {format_identifier(column)} {column_type}'


def drop_column_sql(table: TableName, column: str) -> str:
    return f'alter table {table} drop column {format_identifier(column)}'


def truncate_sql(table: TableName) -> str:
    return f'truncate table {table}'


# =============================================================================
# DML
# =============================================================================

def insert_statement(table: TableName, fields: Sequence['FieldSpec'],
                     returning: bool = False) -> Statement:
    """Generate an INSERT statement.

    Serial columns are generated by the server and never appear in the
    column or value list. Placeholders are numbered in field order.
    """
    columns = []
    placeholders = []
    positions = []
    for i, spec in enumerate(fields):
        if spec.serial:
            continue
        positions.append(i)
        columns.append(format_identifier(spec.column))
        placeholders.append(f'${len(positions)}')

    if columns:
        sql = f"insert into {table} ({','.join(columns)}) values ({','.join(placeholders)})"
    else:
        sql = f'insert into {table} default values'

    if returning:
        sql += f' returning {format_identifier(fields[0].column)}'
    return Statement(sql, tuple(positions))


def select_statement(table: TableName, fields: Sequence['FieldSpec'],
                     where: str = '') -> Statement:
    """Generate a SELECT of every column in field order.

    The returned positions map result columns 1:1 onto fields for scanning.
    """
    columns = ','.join(format_identifier(spec.column) for spec in fields)
    sql = f'select {columns} from {table}{to_where(where)}'
    return Statement(sql, tuple(range(len(fields))))


def exists_statement(table: TableName, where: str = '') -> str:
    return f'select 1 from {table}{to_where(where)} limit 1'


def count_statement(table: TableName, where: str = '') -> str:
    return f'select count(*) as count from {table}{to_where(where)}'


def update_statement(table: TableName, sets: str, where: str = '') -> str:
    """Compose `update <table> set <sets> <where>`.

    The SET fragment is not validated; it is the caller's SQL.
    """
    return f'update {table} set {sets}{to_where(where)}'


def delete_statement(table: TableName, where: str = '') -> str:
    return f'delete from {table}{to_where(where)}'


def to_where(where: str | None) -> str:
    """Normalize a predicate fragment into a WHERE clause.

    Accepts either a bare condition or a full clause. Empty input means no
    filter.

    >>> to_where('id=$1')
    ' where id=$1'
    >>> to_where('  where id=$1')
    ' where id=$1'
    >>> to_where('')
    ''
    """
    if not where:
        return ''
    stripped = where.lstrip(' ')
    if not stripped:
        return ''
    if re.match(r'where\b', stripped, re.IGNORECASE):
        return ' ' + stripped
    return ' where ' + stripped


# =============================================================================
# Typed fragments
# =============================================================================

def _check_columns(fields: Sequence['FieldSpec'], values: Mapping[str, Any]) -> None:
    known = {spec.column for spec in fields}
    unknown = [col for col in values if col not in known]
    if unknown:
        raise ValidationError(f'unknown columns: {", ".join(unknown)}')
    if not values:
        raise ValidationError('at least one column is required')


def equals(fields: Sequence['FieldSpec'], values: Mapping[str, Any],
           offset: int = 0) -> tuple[str, tuple[Any, ...]]:
    """Build an AND-ed equality predicate from a column/value mapping.

    `None` values become `is null` tests and bind no argument, so
    `{'name': 'bob', 'note': None, 'age': 3}` gives
    `('name=$1 and note is null and age=$2', ('bob', 3))`.
    """
    _check_columns(fields, values)
    terms = []
    args = []
    for column, value in values.items():
        if value is None:
            terms.append(f'{format_identifier(column)} is null')
            continue
        args.append(value)
        terms.append(f'{format_identifier(column)}=${offset + len(args)}')
    return ' and '.join(terms), tuple(args)


def assignments(fields: Sequence['FieldSpec'], values: Mapping[str, Any],
                offset: int = 0) -> tuple[str, tuple[Any, ...]]:
    """Build a SET list from a column/value mapping.
    """
    _check_columns(fields, values)
    terms = []
    for i, column in enumerate(values, start=offset + 1):
        terms.append(f'{format_identifier(column)}=${i}')
    return ','.join(terms), tuple(values.values())


# =============================================================================
# Placeholders
# =============================================================================

_TOKENIZE = re.compile(r"""
    (?P<string>'(?:[^']|'')*'|"(?:[^"]|"")*")
    |(?P<placeholder>\$(?P<index>\d+))
    |(?P<percent>%)
""", re.VERBOSE)


def shift_placeholders(sql: str, offset: int) -> str:
    """Renumber `$n` placeholders outside string literals by `offset`.

    >>> shift_placeholders("name=$1 and note='$1'", 2)
    "name=$3 and note='$1'"
    """
    if not offset:
        return sql

    def replace(match: re.Match) -> str:
        if match.group('placeholder'):
            return f"${int(match.group('index')) + offset}"
        return match.group(0)

    return _TOKENIZE.sub(replace, sql)


def to_driver_sql(sql: str, args: Sequence[Any]) -> tuple[str, tuple[Any, ...]]:
    """Convert `$n` placeholders to psycopg `%s` markers.

    Arguments are reordered (and repeated) to follow the order in which the
    placeholders appear. Percent signs are doubled since the driver reads
    them as format markers whenever parameters are passed. Without
    arguments the statement is passed through untouched.

    >>> to_driver_sql('select $2, $1, $2', ('a', 'b'))
    ('select %s, %s, %s', ('b', 'a', 'b'))
    """
    if not args:
        return sql, ()

    ordered: list[Any] = []

    def replace(match: re.Match) -> str:
        if match.group('string'):
            return match.group('string').replace('%', '%%')
        if match.group('percent'):
            return '%%'
        index = int(match.group('index'))
        if not 1 <= index <= len(args):
            raise ValidationError(f'placeholder ${index} has no argument ({len(args)} given)')
        ordered.append(args[index - 1])
        return '%s'

    return _TOKENIZE.sub(replace, sql), tuple(ordered)
