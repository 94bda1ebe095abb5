"""
Field types and their PostgreSQL column types.

Two directions are handled here:

1. `map_type` turns a declared field type into the full column definition
   used in DDL (type, nullability, default and check constraint).
2. `primitive_type` reduces a column definition, or a `data_type` reported
   by `information_schema.columns`, to a bare comparable form. Defaults and
   constraints are not visible in the catalog, so reconciliation only ever
   compares primitive forms.
"""
import datetime
import logging
import types
import typing
from enum import Enum

from pgmodel.exceptions import UnsupportedFieldType
from pgmodel.sql import format_identifier

logger = logging.getLogger(__name__)

__all__ = [
    'FieldType',
    'PRIMARY_KEY_TYPES',
    'resolve_field_type',
    'map_type',
    'primitive_type',
    'is_serial',
]


class FieldType(Enum):
    """Semantic type of a record field.
    """
    INT = 'int'
    INT16 = 'int16'
    INT32 = 'int32'
    INT64 = 'int64'
    UINT = 'uint'
    UINT16 = 'uint16'
    UINT32 = 'uint32'
    UINT64 = 'uint64'
    FLOAT64 = 'float64'
    STRING = 'string'
    BOOL = 'bool'
    BYTES = 'bytes'
    STRING_LIST = 'string_list'
    TIMESTAMP = 'timestamp'
    NULL_STRING = 'null_string'
    NULL_BOOL = 'null_bool'
    NULL_INT32 = 'null_int32'
    NULL_INT64 = 'null_int64'
    NULL_FLOAT64 = 'null_float64'
    NULL_TIMESTAMP = 'null_timestamp'

    @property
    def nullable(self) -> bool:
        return self.name.startswith('NULL_')

    @property
    def string_like(self) -> bool:
        return self in {FieldType.STRING, FieldType.NULL_STRING}


PRIMARY_KEY_TYPES = frozenset({
    FieldType.UINT,
    FieldType.UINT16,
    FieldType.UINT32,
    FieldType.UINT64,
    FieldType.STRING,
    })

_PYTHON_TYPES: dict[object, FieldType] = {
    int: FieldType.INT64,
    str: FieldType.STRING,
    float: FieldType.FLOAT64,
    bool: FieldType.BOOL,
    bytes: FieldType.BYTES,
    bytearray: FieldType.BYTES,
    datetime.datetime: FieldType.TIMESTAMP,
    }

_NULLABLE_PYTHON_TYPES: dict[object, FieldType] = {
    int: FieldType.NULL_INT64,
    str: FieldType.NULL_STRING,
    float: FieldType.NULL_FLOAT64,
    bool: FieldType.NULL_BOOL,
    datetime.datetime: FieldType.NULL_TIMESTAMP,
    }

# (not null column type, serial type when used as primary key, unsigned)
_INTEGER_TYPES: dict[FieldType, tuple[str, str | None, bool]] = {
    FieldType.INT: ('bigint', None, False),
    FieldType.INT64: ('bigint', None, False),
    FieldType.INT32: ('integer', None, False),
    FieldType.INT16: ('smallint', None, False),
    FieldType.UINT: ('bigint', 'bigserial', True),
    FieldType.UINT64: ('bigint', 'bigserial', True),
    FieldType.UINT32: ('integer', 'serial', True),
    FieldType.UINT16: ('smallint', 'smallserial', True),
    }

_NULLABLE_TYPES: dict[FieldType, str] = {
    FieldType.NULL_BOOL: 'boolean',
    FieldType.NULL_INT32: 'integer',
    FieldType.NULL_INT64: 'bigint',
    FieldType.NULL_FLOAT64: 'double precision',
    FieldType.NULL_TIMESTAMP: 'timestamp with time zone',
    }

_PRIMITIVE_ALIASES = {
    'serial': 'integer',
    'serial4': 'integer',
    'smallserial': 'smallint',
    'serial2': 'smallint',
    'bigserial': 'bigint',
    'serial8': 'bigint',
    'char': 'character',
    'varchar': 'character',
    'bpchar': 'character',
    'bool': 'boolean',
    'int': 'integer',
    'int4': 'integer',
    'int2': 'smallint',
    'int8': 'bigint',
    'float8': 'double',
    }


def resolve_field_type(declared: object) -> FieldType:
    """Resolve a declared field type to a `FieldType`.

    Accepts a `FieldType` member, its string value, or one of the plain
    Python annotations listed in `_PYTHON_TYPES` (optionally wrapped in
    `X | None` / `Optional[X]`, or `list[str]`).
    """
    if isinstance(declared, FieldType):
        return declared
    if isinstance(declared, str):
        try:
            return FieldType(declared)
        except ValueError:
            raise UnsupportedFieldType(f'unsupported field type: {declared}') from None

    origin = typing.get_origin(declared)
    if origin in {typing.Union, types.UnionType}:
        args = [a for a in typing.get_args(declared) if a is not type(None)]
        if len(args) == 1 and len(typing.get_args(declared)) == 2 and args[0] in _NULLABLE_PYTHON_TYPES:
            return _NULLABLE_PYTHON_TYPES[args[0]]
    elif origin is list:
        if typing.get_args(declared) == (str,):
            return FieldType.STRING_LIST
    elif isinstance(declared, type) and declared in _PYTHON_TYPES:
        return _PYTHON_TYPES[declared]

    raise UnsupportedFieldType(f'unsupported field type: {_type_name(declared)}')


def _type_name(declared: object) -> str:
    return getattr(declared, '__name__', None) or repr(declared)


def map_type(field_type: FieldType, column: str, primary_key: bool = False,
             limit: int = 0) -> str:
    """Map a field type to a PostgreSQL column definition.

    Non-null columns always carry a default, so adding one to a table with
    existing rows never fails.
    """
    if field_type in _INTEGER_TYPES:
        sql_type, serial_type, unsigned = _INTEGER_TYPES[field_type]
        if primary_key and serial_type:
            return serial_type
        if unsigned:
            return f'{sql_type} not null default 0 check ({format_identifier(column)} > -1)'
        return f'{sql_type} not null default 0'

    match field_type:
        case FieldType.FLOAT64:
            return 'double precision not null default 0'
        case FieldType.STRING:
            return f"{_string_type(limit)} not null default ''"
        case FieldType.BOOL:
            return 'boolean not null default false'
        case FieldType.BYTES:
            return 'bytea'
        case FieldType.STRING_LIST:
            return 'text[]'
        case FieldType.TIMESTAMP:
            return "timestamp with time zone not null default '0001-01-01 00:00:00+00'"
        case FieldType.NULL_STRING:
            return _string_type(limit)

    if field_type in _NULLABLE_TYPES:
        return _NULLABLE_TYPES[field_type]

    raise UnsupportedFieldType(f'unsupported field type: {field_type}')


def _string_type(limit: int) -> str:
    if limit > 0:
        return f'varchar({limit})'
    return 'text'


def primitive_type(column_type: str) -> str:
    """Reduce a column definition or catalog data type to its primitive form.

    >>> primitive_type('bigserial')
    'bigint'
    >>> primitive_type("varchar(5) not null default ''")
    'character'
    >>> primitive_type('character varying')
    'character'
    >>> primitive_type('text[]')
    'ARRAY'
    """
    reduced = column_type.strip()
    for sep in (' ', '('):
        reduced = reduced.split(sep, 1)[0]
    if reduced.endswith('[]') or reduced.upper() == 'ARRAY':
        return 'ARRAY'
    reduced = reduced.lower()
    return _PRIMITIVE_ALIASES.get(reduced, reduced)


def is_serial(column_type: str) -> bool:
    """Check whether a column type is generated by the server.
    """
    return 'serial' in column_type
