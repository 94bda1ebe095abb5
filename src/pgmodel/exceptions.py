"""
Exception classes for model building, reconciliation and execution.
"""
import re

import psycopg

RETRYABLE_PATTERNS = [
    # SSL/TLS errors
    r'ssl',
    r'tls',
    # Connection drops
    r'connection.*(closed|reset|refused|lost|terminated|broken)',
    r'server closed',
    r'eof detected',
    r'broken pipe',
    # Timeouts
    r'timeout',
    r'timed out',
    # Network issues
    r'could not connect',
    r'no route to host',
    r'network.*(unreachable|error)',
    # Database unavailable
    r'database.*unavailable',
    r'too many connections',
]

_RETRYABLE_REGEX = re.compile('|'.join(RETRYABLE_PATTERNS), re.IGNORECASE)


def is_retryable_error(exc: BaseException) -> bool:
    """Check if an exception represents a transient error worth retrying.

    Connection drops, timeouts and network issues are retryable. Syntax
    errors, constraint violations and type mismatches are not.

    :param exc: The exception to check.
    :returns: True if the error is likely transient.
    """
    return bool(_RETRYABLE_REGEX.search(str(exc)))


class DatabaseError(Exception):
    """Base class for all pgmodel errors.
    """


# =============================================================================
# Configuration errors: the schema declaration must be fixed
# =============================================================================

class ConfigurationError(DatabaseError):
    """Invalid schema declaration or index directive.
    """


class InvalidRecordType(ConfigurationError):
    """The record type is not a class (an instance was passed, for example).
    """


class MissingColumnName(ConfigurationError):
    """A field was declared without a column name.
    """


class InvalidPrimaryKeyType(ConfigurationError):
    """The first field's type is not allowed for a primary key.
    """


class InvalidPrimaryKeyName(ConfigurationError):
    """The first field's column is not named `id`.
    """


class NotSnakeCase(ConfigurationError):
    """A column name is not in snake case.
    """


class DuplicateColumnName(ConfigurationError):
    """Two fields map to the same column.
    """


class InvalidLimitFormat(ConfigurationError):
    """A size limit is not a non-negative integer.
    """


class UnsupportedFieldType(ConfigurationError):
    """A field type has no column type mapping.
    """


class UnsupportedIndexKey(ConfigurationError):
    """An index directive uses an unknown key.
    """


class InvalidIndexDirective(ConfigurationError):
    """An index directive is malformed.
    """


# =============================================================================
# Schema divergence errors: local declaration and live table disagree
# =============================================================================

class SchemaDivergenceError(DatabaseError):
    """The live table does not match the declared schema.
    """


class ColumnCountMismatch(SchemaDivergenceError):
    """Local and remote column counts differ.
    """

    def __init__(self, table: str, local: int, remote: int) -> None:
        self.table = table
        self.local = local
        self.remote = remote
        super().__init__(f'{table}: local schema has {local} columns, remote table has {remote}')


class ColumnNameMismatch(SchemaDivergenceError):
    """Local and remote column names differ at the same position.
    """

    def __init__(self, table: str, position: int, local: str, remote: str) -> None:
        self.table = table
        self.position = position
        self.local = local
        self.remote = remote
        super().__init__(f'{table}: column {position} is {local!r} locally but {remote!r} remotely')


class ColumnTypeMismatch(SchemaDivergenceError):
    """A column's local primitive type differs from the remote type.
    """

    def __init__(self, field: str, local_type: str, remote_type: str) -> None:
        self.field = field
        self.local_type = local_type
        self.remote_type = remote_type
        super().__init__(
            f"local field {field}'s type {local_type!r} doesn't match remote column type {remote_type!r}")


# =============================================================================
# Execution errors
# =============================================================================

class QueryError(DatabaseError):
    """A statement failed to execute. The generating SQL is attached.
    """

    def __init__(self, message: str, sql: str | None = None) -> None:
        self.sql = sql
        super().__init__(f'{message}: {sql}' if sql else message)


class BatchInsertError(QueryError):
    """One record of a batch insert failed; earlier records stay committed.
    """

    def __init__(self, message: str, sql: str, index: int, record: object) -> None:
        self.index = index
        self.record = record
        super().__init__(message, sql)


class NoRowsError(DatabaseError):
    """A single-row query returned no rows.
    """


class ValidationError(DatabaseError):
    """Error in input validation.
    """


DbConnectionError = (
    psycopg.OperationalError,
    psycopg.InterfaceError,
    )

IntegrityError = (
    psycopg.IntegrityError,
    )

UniqueViolation = (
    psycopg.errors.UniqueViolation,
    )
