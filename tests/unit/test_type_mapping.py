"""
Tests for field type resolution, column type mapping and primitive reduction.
"""
import datetime
from typing import Optional

import pytest
from pgmodel.exceptions import UnsupportedFieldType
from pgmodel.types import FieldType, is_serial, map_type, primitive_type
from pgmodel.types import resolve_field_type


class TestMapType:
    """Column definitions produced for each field type."""

    @pytest.mark.parametrize(('field_type', 'expected'), [
        (FieldType.INT, 'bigint not null default 0'),
        (FieldType.INT64, 'bigint not null default 0'),
        (FieldType.INT32, 'integer not null default 0'),
        (FieldType.INT16, 'smallint not null default 0'),
        (FieldType.UINT32, 'integer not null default 0 check (age > -1)'),
        (FieldType.UINT16, 'smallint not null default 0 check (age > -1)'),
        (FieldType.UINT64, 'bigint not null default 0 check (age > -1)'),
        (FieldType.FLOAT64, 'double precision not null default 0'),
        (FieldType.BOOL, 'boolean not null default false'),
        (FieldType.BYTES, 'bytea'),
        (FieldType.STRING_LIST, 'text[]'),
        (FieldType.TIMESTAMP, "timestamp with time zone not null default '0001-01-01 00:00:00+00'"),
        (FieldType.NULL_STRING, 'text'),
        (FieldType.NULL_BOOL, 'boolean'),
        (FieldType.NULL_INT32, 'integer'),
        (FieldType.NULL_INT64, 'bigint'),
        (FieldType.NULL_FLOAT64, 'double precision'),
        (FieldType.NULL_TIMESTAMP, 'timestamp with time zone'),
    ], ids=lambda x: x.value if isinstance(x, FieldType) else None)
    def test_regular_columns(self, field_type, expected):
        assert map_type(field_type, 'age') == expected

    @pytest.mark.parametrize(('field_type', 'expected'), [
        (FieldType.UINT, 'bigserial'),
        (FieldType.UINT64, 'bigserial'),
        (FieldType.UINT32, 'serial'),
        (FieldType.UINT16, 'smallserial'),
    ])
    def test_unsigned_primary_key_is_serial(self, field_type, expected):
        assert map_type(field_type, 'id', primary_key=True) == expected

    def test_string_primary_key_is_not_serial(self):
        assert map_type(FieldType.STRING, 'id', primary_key=True) == "text not null default ''"

    def test_string_limit(self):
        assert map_type(FieldType.STRING, 'name') == "text not null default ''"
        assert map_type(FieldType.STRING, 'name', limit=5) == "varchar(5) not null default ''"
        assert map_type(FieldType.NULL_STRING, 'name', limit=12) == 'varchar(12)'

    @pytest.mark.parametrize(('column', 'expected'), [
        ('order', 'integer not null default 0 check ("order" > -1)'),
        ('user', 'integer not null default 0 check ("user" > -1)'),
        ('Order', 'integer not null default 0 check ("Order" > -1)'),
    ])
    def test_unsigned_check_quotes_column(self, column, expected):
        assert map_type(FieldType.UINT32, column) == expected

    def test_non_null_columns_carry_default(self):
        """Every not-null column can be added to a table that already has rows."""
        for field_type in FieldType:
            column_type = map_type(field_type, 'c')
            if 'not null' in column_type:
                assert 'default' in column_type, field_type


class TestResolveFieldType:

    @pytest.mark.parametrize(('declared', 'expected'), [
        (FieldType.UINT32, FieldType.UINT32),
        ('uint32', FieldType.UINT32),
        ('null_string', FieldType.NULL_STRING),
        (int, FieldType.INT64),
        (str, FieldType.STRING),
        (float, FieldType.FLOAT64),
        (bool, FieldType.BOOL),
        (bytes, FieldType.BYTES),
        (datetime.datetime, FieldType.TIMESTAMP),
        (list[str], FieldType.STRING_LIST),
        (str | None, FieldType.NULL_STRING),
        (Optional[int], FieldType.NULL_INT64),
        (datetime.datetime | None, FieldType.NULL_TIMESTAMP),
    ])
    def test_supported(self, declared, expected):
        assert resolve_field_type(declared) == expected

    @pytest.mark.parametrize('declared', [
        'complex', dict, list[int], int | str | None, bytes | None, object(),
    ])
    def test_unsupported(self, declared):
        with pytest.raises(UnsupportedFieldType):
            resolve_field_type(declared)


class TestPrimitiveType:

    @pytest.mark.parametrize(('column_type', 'expected'), [
        ('serial', 'integer'),
        ('smallserial', 'smallint'),
        ('bigserial', 'bigint'),
        ('varchar(5)', 'character'),
        ("varchar(5) not null default ''", 'character'),
        ('character varying', 'character'),
        ('text[]', 'ARRAY'),
        ('ARRAY', 'ARRAY'),
        ('timestamp with time zone', 'timestamp'),
        ('double precision', 'double'),
        ('bool', 'boolean'),
        ('int4', 'integer'),
        ('  INTEGER  ', 'integer'),
    ])
    def test_reduction(self, column_type, expected):
        assert primitive_type(column_type) == expected

    @pytest.mark.parametrize(('field_type', 'catalog_type'), [
        (FieldType.INT, 'bigint'),
        (FieldType.INT32, 'integer'),
        (FieldType.INT16, 'smallint'),
        (FieldType.UINT32, 'integer'),
        (FieldType.FLOAT64, 'double precision'),
        (FieldType.STRING, 'text'),
        (FieldType.BOOL, 'boolean'),
        (FieldType.BYTES, 'bytea'),
        (FieldType.STRING_LIST, 'ARRAY'),
        (FieldType.TIMESTAMP, 'timestamp with time zone'),
        (FieldType.NULL_BOOL, 'boolean'),
        (FieldType.NULL_FLOAT64, 'double precision'),
        (FieldType.NULL_TIMESTAMP, 'timestamp with time zone'),
    ], ids=lambda x: x.value if isinstance(x, FieldType) else x)
    def test_mapped_type_matches_catalog(self, field_type, catalog_type):
        """A freshly created column reads back with the same primitive type."""
        assert primitive_type(map_type(field_type, 'c')) == primitive_type(catalog_type)

    def test_serial_primary_key_matches_catalog(self):
        assert primitive_type(map_type(FieldType.UINT32, 'id', primary_key=True)) == 'integer'
        assert primitive_type(map_type(FieldType.UINT64, 'id', primary_key=True)) == 'bigint'

    def test_varchar_matches_catalog(self):
        column_type = map_type(FieldType.STRING, 'name', limit=5)
        assert primitive_type(column_type) == primitive_type('character varying')


def test_is_serial():
    assert is_serial('serial')
    assert is_serial('bigserial')
    assert not is_serial('integer not null default 0')


if __name__ == '__main__':
    __import__('pytest').main([__file__])
